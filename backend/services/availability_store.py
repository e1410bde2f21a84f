"""Persistence of doctors' recurring weekly availability templates."""

import logging

from sqlalchemy.orm import Session

from backend.core.errors import InvalidArgumentError
from backend.models.availability import DoctorAvailability
from backend.schemas import AvailabilityTemplateIn
from backend.services.storage import reading, transaction

logger = logging.getLogger(__name__)


def replace_templates(
    db: Session,
    doctor_id: str,
    templates: list[AvailabilityTemplateIn],
) -> list[DoctorAvailability]:
    """Overwrite every stored template of ``doctor_id`` with ``templates``."""
    if not templates:
        raise InvalidArgumentError('At least one availability slot must be provided.')

    foreign = [template for template in templates if template.doctor_id != doctor_id]
    if foreign:
        raise InvalidArgumentError('All availability slots must belong to the authenticated doctor.')

    for template in templates:
        if template.start_time >= template.end_time:
            raise InvalidArgumentError('Start time must be before end time.')

    with transaction(db, 'save availability'):
        db.query(DoctorAvailability).filter(DoctorAvailability.doctor_id == doctor_id).delete(
            synchronize_session=False
        )
        rows = [
            DoctorAvailability(
                doctor_id=doctor_id,
                day_of_week=template.day_of_week,
                start_time=template.start_time,
                end_time=template.end_time,
                is_available=template.is_available,
            )
            for template in templates
        ]
        db.add_all(rows)
        db.flush()

    for row in rows:
        db.refresh(row)

    logger.info('Replaced availability for doctor %s with %d slot(s)', doctor_id, len(rows))
    return rows


def get_templates(
    db: Session,
    doctor_id: str,
    day_of_week: int | None = None,
    only_available: bool = False,
) -> list[DoctorAvailability]:
    with reading('load availability'):
        query = db.query(DoctorAvailability).filter(DoctorAvailability.doctor_id == doctor_id)
        if day_of_week is not None:
            query = query.filter(DoctorAvailability.day_of_week == day_of_week)
        if only_available:
            query = query.filter(DoctorAvailability.is_available.is_(True))

        return query.order_by(
            DoctorAvailability.day_of_week.asc(),
            DoctorAvailability.start_time.asc(),
        ).all()
