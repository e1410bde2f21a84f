"""Public scheduling operations.

Every operation takes an explicit ``CallerContext`` and a SQLAlchemy session
and returns pydantic models, so callers never hold on to ORM rows.
"""

import logging
from datetime import date

from pydantic import TypeAdapter, ValidationError
from sqlalchemy.orm import Session

from backend.core import config
from backend.core.context import ROLE_DOCTOR, CallerContext
from backend.core.errors import InvalidArgumentError, PermissionDeniedError
from backend.models.appointment import AppointmentStatus
from backend.schemas import (
    AppointmentResponse,
    AvailabilityTemplateIn,
    AvailabilityTemplateResponse,
    BookAppointmentRequest,
    ResolvedSlot,
    describe_validation_error,
)
from backend.services import appointment_store, availability_store, booking, lifecycle, resolver

logger = logging.getLogger(__name__)

_templates_adapter = TypeAdapter(list[AvailabilityTemplateIn])
_date_adapter = TypeAdapter(date)


def _parse_date(value: date | str | None) -> date | None:
    if value is None or isinstance(value, date):
        return value
    try:
        return _date_adapter.validate_python(value)
    except ValidationError as exc:
        raise InvalidArgumentError('Date must use the YYYY-MM-DD format.') from exc


def _parse_status(value: AppointmentStatus | str | None) -> AppointmentStatus | None:
    if value is None or isinstance(value, AppointmentStatus):
        return value
    try:
        return AppointmentStatus(value.strip().upper())
    except ValueError as exc:
        raise InvalidArgumentError(f'Unknown appointment status: {value}.') from exc


def set_availability(
    db: Session,
    caller: CallerContext,
    templates: list[AvailabilityTemplateIn | dict],
) -> list[AvailabilityTemplateResponse]:
    doctor_id = caller.require_id('set availability slots')
    if caller.role != ROLE_DOCTOR:
        raise PermissionDeniedError('Only doctors can set availability slots.')

    try:
        parsed = _templates_adapter.validate_python(
            [t.model_dump() if isinstance(t, AvailabilityTemplateIn) else t for t in templates or []]
        )
    except ValidationError as exc:
        raise InvalidArgumentError(describe_validation_error(exc)) from exc

    rows = availability_store.replace_templates(db, doctor_id, parsed)
    return [AvailabilityTemplateResponse.model_validate(row) for row in rows]


def get_availability(
    db: Session,
    caller: CallerContext,
    doctor_id: str,
    on_date: date | str | None = None,
) -> list[ResolvedSlot]:
    caller.require_id('view doctor availability')
    if not doctor_id or not doctor_id.strip():
        raise InvalidArgumentError('Doctor ID is required.')

    return resolver.resolve(db, doctor_id.strip(), _parse_date(on_date))


def book_appointment(
    db: Session,
    caller: CallerContext,
    doctor_id: str | None,
    appointment_date: date | str | None,
    start_time: str | None,
    end_time: str | None,
    reason: str | None = None,
) -> AppointmentResponse:
    patient_id = caller.require_id('book an appointment')

    try:
        request = BookAppointmentRequest(
            doctor_id=doctor_id,
            date=appointment_date,
            start_time=start_time,
            end_time=end_time,
            reason=reason,
        )
    except ValidationError as exc:
        logger.warning('Invalid booking request from %s: %s', patient_id, exc.error_count())
        raise InvalidArgumentError(describe_validation_error(exc)) from exc

    appointment = booking.book(db, patient_id, request)
    return AppointmentResponse.model_validate(appointment)


def _transition(
    db: Session,
    caller: CallerContext,
    appointment_id: str | None,
    target: AppointmentStatus,
    notes: str | None,
    expected_version: int | None,
) -> AppointmentResponse:
    caller_id = caller.require_id(f'{lifecycle.VERBS[target]} an appointment')
    if not appointment_id or not appointment_id.strip():
        raise InvalidArgumentError('Appointment ID is required.')

    appointment = lifecycle.transition(
        db,
        caller_id,
        appointment_id.strip(),
        target,
        notes=notes,
        expected_version=expected_version,
    )
    return AppointmentResponse.model_validate(appointment)


def cancel_appointment(
    db: Session,
    caller: CallerContext,
    appointment_id: str | None,
    notes: str | None = None,
    expected_version: int | None = None,
) -> AppointmentResponse:
    return _transition(db, caller, appointment_id, AppointmentStatus.CANCELLED, notes, expected_version)


def confirm_appointment(
    db: Session,
    caller: CallerContext,
    appointment_id: str | None,
    notes: str | None = None,
    expected_version: int | None = None,
) -> AppointmentResponse:
    return _transition(db, caller, appointment_id, AppointmentStatus.CONFIRMED, notes, expected_version)


def complete_appointment(
    db: Session,
    caller: CallerContext,
    appointment_id: str | None,
    notes: str | None = None,
    expected_version: int | None = None,
) -> AppointmentResponse:
    return _transition(db, caller, appointment_id, AppointmentStatus.COMPLETED, notes, expected_version)


def list_appointments(
    db: Session,
    caller: CallerContext,
    status_filter: AppointmentStatus | str | None = None,
) -> list[AppointmentResponse]:
    caller_id = caller.require_id('view your appointments')
    status = _parse_status(status_filter)
    statuses = [status] if status else None

    if caller.is_admin:
        appointments = appointment_store.query_recent(db, config.ADMIN_APPOINTMENT_LIST_LIMIT, statuses)
    else:
        appointments = appointment_store.query_by_participant(db, caller_id, statuses)

    return [AppointmentResponse.model_validate(appointment) for appointment in appointments]
