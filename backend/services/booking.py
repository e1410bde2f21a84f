"""Check-and-create for new appointments.

The availability check and the insert run in one transaction while the
(doctor, date) key is locked twice: by ``booking_locks`` for threads of this
process and by a ``SELECT ... FOR UPDATE`` on the ``booking_locks`` row for
other processes sharing the database. A second request for an overlapping
interval therefore always sees the first one's appointment.
"""

import logging

from sqlalchemy.orm import Session

from backend.core import config
from backend.core.errors import FailedPreconditionError
from backend.models.appointment import Appointment, AppointmentStatus
from backend.schemas import BookAppointmentRequest
from backend.services import appointment_store, resolver
from backend.services.locks import booking_locks, lock_doctor_day
from backend.services.storage import transaction

logger = logging.getLogger(__name__)


def book(
    db: Session,
    patient_id: str,
    request: BookAppointmentRequest,
    lock_timeout: float | None = None,
) -> Appointment:
    timeout = lock_timeout if lock_timeout is not None else config.BOOKING_LOCK_TIMEOUT_SECONDS

    with booking_locks.hold((request.doctor_id, request.date), timeout):
        with transaction(db, 'book the appointment'):
            lock_doctor_day(db, request.doctor_id, request.date)

            free_slots = resolver.resolve(db, request.doctor_id, request.date)
            if not any(slot.contains(request.start_time, request.end_time) for slot in free_slots):
                logger.warning(
                    'Rejected booking for doctor %s on %s %s-%s: time not available',
                    request.doctor_id,
                    request.date,
                    request.start_time,
                    request.end_time,
                )
                raise FailedPreconditionError('Requested time is not available.')

            appointment = appointment_store.build_appointment(
                patient_id=patient_id,
                doctor_id=request.doctor_id,
                appointment_date=request.date,
                start_time=request.start_time,
                end_time=request.end_time,
                status=AppointmentStatus.PENDING,
                reason=request.reason,
            )
            db.add(appointment)
            db.flush()

    db.refresh(appointment)
    logger.info(
        'Booked appointment %s for doctor %s on %s %s-%s',
        appointment.id,
        appointment.doctor_id,
        appointment.appointment_date,
        appointment.start_time,
        appointment.end_time,
    )
    return appointment
