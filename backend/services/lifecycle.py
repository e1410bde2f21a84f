"""Appointment status state machine and who may drive it."""

import logging

from pydantic import ValidationError
from sqlalchemy.orm import Session

from backend.core.errors import (
    ConflictError,
    FailedPreconditionError,
    InvalidArgumentError,
    PermissionDeniedError,
)
from backend.models.appointment import Appointment, AppointmentStatus
from backend.schemas import AppointmentResponse, AppointmentStatusPatch, describe_validation_error
from backend.services import appointment_store

logger = logging.getLogger(__name__)

TRANSITIONS = {
    AppointmentStatus.PENDING: {AppointmentStatus.CONFIRMED, AppointmentStatus.CANCELLED},
    AppointmentStatus.CONFIRMED: {AppointmentStatus.CANCELLED, AppointmentStatus.COMPLETED},
    AppointmentStatus.CANCELLED: set(),
    AppointmentStatus.COMPLETED: set(),
}

TERMINAL_STATUSES = {status for status, targets in TRANSITIONS.items() if not targets}

VERBS = {
    AppointmentStatus.CONFIRMED: 'confirm',
    AppointmentStatus.CANCELLED: 'cancel',
    AppointmentStatus.COMPLETED: 'complete',
}


def can_transition(current: AppointmentStatus, target: AppointmentStatus) -> bool:
    return target in TRANSITIONS.get(current, set())


def authorize(caller_id: str, appointment: Appointment, target: AppointmentStatus) -> None:
    if target == AppointmentStatus.CANCELLED:
        allowed = caller_id in (appointment.patient_id, appointment.doctor_id)
    else:
        allowed = caller_id == appointment.doctor_id

    if not allowed:
        logger.warning(
            'Caller %s may not %s appointment %s',
            caller_id,
            VERBS.get(target, 'update'),
            appointment.id,
        )
        raise PermissionDeniedError(f'You are not authorized to {VERBS.get(target, "update")} this appointment.')


def default_notes(caller_id: str, appointment: Appointment, target: AppointmentStatus) -> str | None:
    if target != AppointmentStatus.CANCELLED:
        return None
    return 'Cancelled by patient' if caller_id == appointment.patient_id else 'Cancelled by doctor'


def transition(
    db: Session,
    caller_id: str,
    appointment_id: str,
    target: AppointmentStatus,
    notes: str | None = None,
    expected_version: int | None = None,
) -> AppointmentResponse:
    appointment = appointment_store.get(db, appointment_id)
    authorize(caller_id, appointment, target)

    current = AppointmentStatus(appointment.status)
    verb = VERBS.get(target, 'update')
    if current in TERMINAL_STATUSES:
        raise FailedPreconditionError(f'Cannot {verb} an appointment that is already {current.value.lower()}.')
    if not can_transition(current, target):
        raise FailedPreconditionError(f'Cannot {verb} an appointment that is {current.value.lower()}.')

    if expected_version is not None and expected_version != appointment.version:
        raise ConflictError('The appointment was modified by another request; reload it and try again.')

    try:
        patch = AppointmentStatusPatch(
            status=target,
            notes=notes if notes is not None else default_notes(caller_id, appointment, target),
        )
    except ValidationError as exc:
        raise InvalidArgumentError(describe_validation_error(exc)) from exc

    updated = appointment_store.update_status(db, appointment_id, patch, expected_version=appointment.version)
    logger.info('Appointment %s moved from %s to %s', appointment_id, current.value, target.value)
    # Snapshot: the session hands back the same identity-mapped row on every load.
    return AppointmentResponse.model_validate(updated)
