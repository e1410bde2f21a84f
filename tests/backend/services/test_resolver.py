from datetime import date

import pytest

from backend.models.appointment import AppointmentStatus
from backend.schemas import AvailabilityTemplateIn
from backend.services import appointment_store, availability_store, resolver

DOCTOR_ID = 'doctor-1'
MONDAY = date(2026, 1, 5)
SUNDAY = date(2026, 1, 11)


def _set_templates(db, *templates: tuple[int, str, str, bool]) -> None:
    availability_store.replace_templates(
        db,
        DOCTOR_ID,
        [
            AvailabilityTemplateIn(
                doctor_id=DOCTOR_ID,
                day_of_week=day,
                start_time=start,
                end_time=end,
                is_available=enabled,
            )
            for day, start, end, enabled in templates
        ],
    )


def _book(db, start: str, end: str, status: AppointmentStatus = AppointmentStatus.CONFIRMED, on_date: date = MONDAY):
    return appointment_store.create(
        db,
        patient_id='patient-a',
        doctor_id=DOCTOR_ID,
        appointment_date=on_date,
        start_time=start,
        end_time=end,
        status=status,
    )


def _spans(slots) -> list[tuple[str, str]]:
    return [(slot.start_time, slot.end_time) for slot in slots]


@pytest.mark.parametrize(
    ('a', 'b', 'expected'),
    [
        (('09:00', '10:00'), ('09:30', '10:30'), True),
        (('09:00', '10:00'), ('10:00', '10:30'), False),
        (('10:00', '10:30'), ('09:00', '10:00'), False),
        (('09:00', '12:00'), ('10:00', '10:30'), True),
        (('10:00', '10:30'), ('10:00', '10:30'), True),
    ],
)
def test_overlaps_uses_half_open_intervals(a, b, expected) -> None:
    assert resolver.overlaps(*a, *b) is expected


def test_subtract_intervals_splits_around_bookings() -> None:
    free = resolver.subtract_intervals(
        '09:00',
        '17:00',
        [('12:00', '13:00'), ('09:00', '09:30'), ('12:30', '14:00'), ('18:00', '19:00')],
    )

    assert free == [('09:30', '12:00'), ('14:00', '17:00')]


def test_subtract_intervals_returns_nothing_when_fully_booked() -> None:
    assert resolver.subtract_intervals('09:00', '10:00', [('08:00', '11:00')]) == []


def test_day_of_week_is_monday_based() -> None:
    assert resolver.day_of_week(MONDAY) == 0
    assert resolver.day_of_week(SUNDAY) == 6


def test_resolve_without_date_returns_raw_templates(db) -> None:
    _set_templates(db, (0, '09:00', '12:00', True), (6, '10:00', '11:00', False))
    _book(db, '09:00', '09:30')

    slots = resolver.resolve(db, DOCTOR_ID)

    assert [(s.day_of_week, s.start_time, s.end_time, s.is_available) for s in slots] == [
        (0, '09:00', '12:00', True),
        (6, '10:00', '11:00', False),
    ]


def test_resolve_excludes_booked_interval(db) -> None:
    _set_templates(db, (0, '09:00', '12:00', True))
    _book(db, '10:00', '10:30')

    slots = resolver.resolve(db, DOCTOR_ID, MONDAY)

    assert _spans(slots) == [('09:00', '10:00'), ('10:30', '12:00')]
    assert all(slot.is_available and slot.day_of_week == 0 for slot in slots)
    assert not any(slot.contains('10:00', '10:30') for slot in slots)
    assert any(slot.contains('09:00', '09:30') for slot in slots)


def test_resolve_ignores_cancelled_and_completed_appointments(db) -> None:
    _set_templates(db, (0, '09:00', '12:00', True))
    _book(db, '09:00', '10:00', status=AppointmentStatus.CANCELLED)
    _book(db, '10:00', '11:00', status=AppointmentStatus.COMPLETED)

    assert _spans(resolver.resolve(db, DOCTOR_ID, MONDAY)) == [('09:00', '12:00')]


def test_resolve_only_considers_bookings_on_the_requested_date(db) -> None:
    _set_templates(db, (0, '09:00', '12:00', True))
    _book(db, '09:00', '12:00', on_date=date(2026, 1, 12))

    assert _spans(resolver.resolve(db, DOCTOR_ID, MONDAY)) == [('09:00', '12:00')]


def test_resolve_skips_disabled_templates_and_other_days(db) -> None:
    _set_templates(
        db,
        (0, '09:00', '10:00', False),
        (1, '09:00', '10:00', True),
        (6, '13:00', '15:00', True),
    )

    assert resolver.resolve(db, DOCTOR_ID, MONDAY) == []
    assert _spans(resolver.resolve(db, DOCTOR_ID, SUNDAY)) == [('13:00', '15:00')]


def test_resolve_without_templates_is_empty(db) -> None:
    assert resolver.resolve(db, 'nobody', MONDAY) == []
    assert resolver.resolve(db, 'nobody') == []


def test_resolve_is_repeatable(db) -> None:
    _set_templates(db, (0, '09:00', '12:00', True), (0, '14:00', '16:00', True))
    _book(db, '14:30', '15:00', status=AppointmentStatus.PENDING)

    assert resolver.resolve(db, DOCTOR_ID, MONDAY) == resolver.resolve(db, DOCTOR_ID, MONDAY)
