"""Turns weekly availability templates into bookable slots for one date.

Times are ``HH:MM`` strings. They are fixed width and zero padded, so plain
string comparison orders them correctly and all interval arithmetic below
works on the strings directly. Intervals are half-open ``[start, end)``.
"""

from collections.abc import Iterable
from datetime import date

from sqlalchemy.orm import Session

from backend.schemas import ResolvedSlot
from backend.services import appointment_store, availability_store


def day_of_week(value: date) -> int:
    """Monday=0 .. Sunday=6."""
    return value.weekday()


def overlaps(start_a: str, end_a: str, start_b: str, end_b: str) -> bool:
    return start_a < end_b and end_a > start_b


def subtract_intervals(start: str, end: str, booked: Iterable[tuple[str, str]]) -> list[tuple[str, str]]:
    """Return the parts of ``[start, end)`` not covered by any booked interval."""
    free: list[tuple[str, str]] = []
    cursor = start

    for booked_start, booked_end in sorted(booked):
        if not overlaps(cursor, end, booked_start, booked_end):
            continue
        if booked_start > cursor:
            free.append((cursor, booked_start))
        cursor = max(cursor, booked_end)
        if cursor >= end:
            break

    if cursor < end:
        free.append((cursor, end))
    return free


def resolve(db: Session, doctor_id: str, on_date: date | None = None) -> list[ResolvedSlot]:
    if on_date is None:
        return [
            ResolvedSlot(
                doctor_id=template.doctor_id,
                day_of_week=template.day_of_week,
                start_time=template.start_time,
                end_time=template.end_time,
                is_available=template.is_available,
                template_id=template.id,
            )
            for template in availability_store.get_templates(db, doctor_id)
        ]

    weekday = day_of_week(on_date)
    templates = availability_store.get_templates(db, doctor_id, day_of_week=weekday, only_available=True)
    if not templates:
        return []

    booked = [
        (appointment.start_time, appointment.end_time)
        for appointment in appointment_store.active_on_date(db, doctor_id, on_date)
    ]

    slots: list[ResolvedSlot] = []
    for template in templates:
        for start_time, end_time in subtract_intervals(template.start_time, template.end_time, booked):
            slots.append(
                ResolvedSlot(
                    doctor_id=doctor_id,
                    day_of_week=weekday,
                    start_time=start_time,
                    end_time=end_time,
                    is_available=True,
                    template_id=template.id,
                )
            )

    return sorted(slots, key=lambda slot: (slot.start_time, slot.end_time))
