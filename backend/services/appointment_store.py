"""Persistence of appointments.

Appointments are never deleted. Status changes go through ``update_status``,
which only succeeds when the stored ``version`` still equals the version the
caller read, so two racing transitions cannot both apply.
"""

import logging
from collections.abc import Iterable
from datetime import date

from sqlalchemy import or_, update
from sqlalchemy.orm import Session

from backend.core.errors import ConflictError, InvalidArgumentError, NotFoundError
from backend.models.appointment import ACTIVE_STATUSES, Appointment, AppointmentStatus, utc_now
from backend.schemas import AppointmentStatusPatch, normalize_time
from backend.services.storage import reading, transaction

logger = logging.getLogger(__name__)

REQUIRED_FIELDS = ('patient_id', 'doctor_id', 'appointment_date', 'start_time', 'end_time')


def build_appointment(
    *,
    patient_id: str,
    doctor_id: str,
    appointment_date: date,
    start_time: str,
    end_time: str,
    status: AppointmentStatus | str | None = None,
    reason: str | None = None,
    notes: str | None = None,
) -> Appointment:
    values = {
        'patient_id': patient_id,
        'doctor_id': doctor_id,
        'appointment_date': appointment_date,
        'start_time': start_time,
        'end_time': end_time,
    }
    missing = [
        name for name in REQUIRED_FIELDS
        if values[name] is None or (isinstance(values[name], str) and not values[name].strip())
    ]
    if missing:
        raise InvalidArgumentError(f"Missing required fields: {', '.join(missing)}")

    try:
        start_time = normalize_time(start_time)
        end_time = normalize_time(end_time)
    except ValueError as exc:
        raise InvalidArgumentError(str(exc)) from exc

    if start_time >= end_time:
        raise InvalidArgumentError('Start time must be before end time.')

    try:
        status = AppointmentStatus(status or AppointmentStatus.PENDING)
    except ValueError as exc:
        raise InvalidArgumentError(f'Unknown appointment status: {status}.') from exc

    now = utc_now()
    return Appointment(
        patient_id=patient_id,
        doctor_id=doctor_id,
        appointment_date=appointment_date,
        start_time=start_time,
        end_time=end_time,
        status=status.value,
        reason=reason,
        notes=notes,
        created_at=now,
        updated_at=now,
        version=1,
    )


def create(db: Session, **fields) -> Appointment:
    appointment = build_appointment(**fields)

    with transaction(db, 'create the appointment'):
        db.add(appointment)
        db.flush()

    db.refresh(appointment)
    logger.info('Created appointment %s', appointment.id)
    return appointment


def get(db: Session, appointment_id: str) -> Appointment:
    with reading('load the appointment'):
        appointment = db.get(Appointment, appointment_id) if appointment_id else None

    if appointment is None:
        raise NotFoundError('Appointment not found.')
    return appointment


def update_status(
    db: Session,
    appointment_id: str,
    patch: AppointmentStatusPatch,
    expected_version: int | None = None,
) -> Appointment:
    current = get(db, appointment_id)
    if expected_version is None:
        expected_version = current.version

    values = {
        'status': patch.status.value,
        'updated_at': utc_now(),
        'version': expected_version + 1,
    }
    if patch.notes is not None:
        values['notes'] = patch.notes

    with transaction(db, 'update the appointment'):
        result = db.execute(
            update(Appointment)
            .where(Appointment.id == appointment_id, Appointment.version == expected_version)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            raise ConflictError('The appointment was modified by another request; reload it and try again.')

    db.expire_all()
    return get(db, appointment_id)


def _apply_filters(query, date_from: date | None, date_to: date | None, statuses: Iterable[str] | None):
    if date_from is not None:
        query = query.filter(Appointment.appointment_date >= date_from)
    if date_to is not None:
        query = query.filter(Appointment.appointment_date <= date_to)
    if statuses:
        query = query.filter(Appointment.status.in_([str(getattr(s, 'value', s)) for s in statuses]))
    return query


def _ordered(query):
    return query.order_by(
        Appointment.appointment_date.desc(),
        Appointment.start_time.desc(),
        Appointment.created_at.desc(),
    )


def query_by_doctor(
    db: Session,
    doctor_id: str,
    date_from: date | None = None,
    date_to: date | None = None,
    statuses: Iterable[str] | None = None,
) -> list[Appointment]:
    with reading('list appointments'):
        query = db.query(Appointment).filter(Appointment.doctor_id == doctor_id)
        return _ordered(_apply_filters(query, date_from, date_to, statuses)).all()


def query_by_patient(
    db: Session,
    patient_id: str,
    date_from: date | None = None,
    date_to: date | None = None,
    statuses: Iterable[str] | None = None,
) -> list[Appointment]:
    with reading('list appointments'):
        query = db.query(Appointment).filter(Appointment.patient_id == patient_id)
        return _ordered(_apply_filters(query, date_from, date_to, statuses)).all()


def query_by_participant(
    db: Session,
    user_id: str,
    statuses: Iterable[str] | None = None,
) -> list[Appointment]:
    with reading('list appointments'):
        query = db.query(Appointment).filter(
            or_(Appointment.patient_id == user_id, Appointment.doctor_id == user_id)
        )
        return _ordered(_apply_filters(query, None, None, statuses)).all()


def query_recent(db: Session, limit: int, statuses: Iterable[str] | None = None) -> list[Appointment]:
    with reading('list appointments'):
        query = _apply_filters(db.query(Appointment), None, None, statuses)
        return _ordered(query).limit(limit).all()


def active_on_date(db: Session, doctor_id: str, appointment_date: date) -> list[Appointment]:
    """Appointments that still hold a slot on ``appointment_date``."""
    return query_by_doctor(
        db,
        doctor_id,
        date_from=appointment_date,
        date_to=appointment_date,
        statuses=ACTIVE_STATUSES,
    )
