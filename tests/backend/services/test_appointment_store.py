from datetime import date

import pytest

from backend.core.errors import ConflictError, InvalidArgumentError, NotFoundError
from backend.models.appointment import Appointment, AppointmentStatus
from backend.schemas import AppointmentStatusPatch
from backend.services import appointment_store

MONDAY = date(2026, 1, 5)
TUESDAY = date(2026, 1, 6)


def _create(db, **overrides) -> Appointment:
    fields = {
        'patient_id': 'patient-a',
        'doctor_id': 'doctor-1',
        'appointment_date': MONDAY,
        'start_time': '09:00',
        'end_time': '09:30',
    }
    fields.update(overrides)
    return appointment_store.create(db, **fields)


def test_create_assigns_id_timestamps_and_pending_status(db) -> None:
    appointment = _create(db, reason='Checkup')

    assert appointment.id
    assert appointment.status == AppointmentStatus.PENDING.value
    assert appointment.created_at == appointment.updated_at
    assert appointment.version == 1
    assert appointment.reason == 'Checkup'


def test_create_keeps_explicit_status(db) -> None:
    appointment = _create(db, status=AppointmentStatus.CONFIRMED)

    assert appointment.status == 'CONFIRMED'


def test_create_accepts_status_given_as_text(db) -> None:
    appointment = _create(db, status='CONFIRMED')

    assert appointment.status == 'CONFIRMED'


def test_create_rejects_unknown_status(db) -> None:
    with pytest.raises(InvalidArgumentError) as exception_info:
        _create(db, status='RESCHEDULED')

    assert 'RESCHEDULED' in exception_info.value.message
    assert db.query(Appointment).count() == 0


@pytest.mark.parametrize(
    ('start_time', 'end_time'),
    [
        ('09:00', '9:30'),
        ('9:00', '09:30'),
        ('09:00', '24:00'),
        ('09:00', '09:5'),
        ('nine', '09:30'),
    ],
)
def test_create_rejects_malformed_times(db, start_time: str, end_time: str) -> None:
    with pytest.raises(InvalidArgumentError) as exception_info:
        _create(db, start_time=start_time, end_time=end_time)

    assert 'HH:MM' in exception_info.value.message
    assert db.query(Appointment).count() == 0


def test_create_rejects_empty_or_inverted_range(db) -> None:
    with pytest.raises(InvalidArgumentError):
        _create(db, start_time='09:30', end_time='09:30')
    with pytest.raises(InvalidArgumentError):
        _create(db, start_time='10:00', end_time='09:30')

    assert db.query(Appointment).count() == 0


def test_create_stores_trimmed_times(db) -> None:
    appointment = _create(db, start_time=' 09:00 ', end_time='09:30 ')

    assert (appointment.start_time, appointment.end_time) == ('09:00', '09:30')


@pytest.mark.parametrize('field', ['patient_id', 'doctor_id', 'appointment_date', 'start_time', 'end_time'])
def test_create_rejects_missing_required_field(db, field: str) -> None:
    with pytest.raises(InvalidArgumentError) as exception_info:
        _create(db, **{field: None if field == 'appointment_date' else '  '})

    assert field in exception_info.value.message
    assert db.query(Appointment).count() == 0


def test_get_raises_not_found_for_unknown_id(db) -> None:
    with pytest.raises(NotFoundError):
        appointment_store.get(db, 'missing')


def test_update_status_bumps_version_and_updated_at(db) -> None:
    appointment = _create(db)
    created_at = appointment.created_at

    updated = appointment_store.update_status(
        db,
        appointment.id,
        AppointmentStatusPatch(status=AppointmentStatus.CONFIRMED, notes='See you soon'),
    )

    assert updated.status == 'CONFIRMED'
    assert updated.notes == 'See you soon'
    assert updated.version == 2
    assert updated.updated_at >= created_at
    assert updated.created_at == created_at


def test_update_status_with_stale_version_is_a_conflict(db) -> None:
    appointment = _create(db)
    appointment_store.update_status(db, appointment.id, AppointmentStatusPatch(status=AppointmentStatus.CONFIRMED))

    with pytest.raises(ConflictError):
        appointment_store.update_status(
            db,
            appointment.id,
            AppointmentStatusPatch(status=AppointmentStatus.CANCELLED),
            expected_version=1,
        )

    assert appointment_store.get(db, appointment.id).status == 'CONFIRMED'


def test_update_status_loser_of_a_race_gets_conflict(db, session_factory) -> None:
    appointment = _create(db)
    first = session_factory()
    second = session_factory()
    try:
        seen_by_first = appointment_store.get(first, appointment.id).version
        seen_by_second = appointment_store.get(second, appointment.id).version

        appointment_store.update_status(
            first,
            appointment.id,
            AppointmentStatusPatch(status=AppointmentStatus.CONFIRMED),
            expected_version=seen_by_first,
        )
        with pytest.raises(ConflictError):
            appointment_store.update_status(
                second,
                appointment.id,
                AppointmentStatusPatch(status=AppointmentStatus.CANCELLED),
                expected_version=seen_by_second,
            )
    finally:
        first.close()
        second.close()

    db.expire_all()
    assert appointment_store.get(db, appointment.id).status == 'CONFIRMED'


def test_update_status_raises_not_found_for_unknown_id(db) -> None:
    with pytest.raises(NotFoundError):
        appointment_store.update_status(db, 'missing', AppointmentStatusPatch(status=AppointmentStatus.CANCELLED))


def test_status_patch_rejects_immutable_fields() -> None:
    with pytest.raises(ValueError):
        AppointmentStatusPatch(status=AppointmentStatus.CANCELLED, patient_id='someone-else')


def test_query_by_doctor_applies_date_range_and_status(db) -> None:
    monday = _create(db)
    tuesday = _create(db, appointment_date=TUESDAY, start_time='10:00', end_time='10:30')
    _create(db, doctor_id='doctor-2')
    appointment_store.update_status(db, tuesday.id, AppointmentStatusPatch(status=AppointmentStatus.CANCELLED))

    everything = appointment_store.query_by_doctor(db, 'doctor-1')
    only_monday = appointment_store.query_by_doctor(db, 'doctor-1', date_from=MONDAY, date_to=MONDAY)
    cancelled = appointment_store.query_by_doctor(db, 'doctor-1', statuses=[AppointmentStatus.CANCELLED])

    assert [a.id for a in everything] == [tuesday.id, monday.id]
    assert [a.id for a in only_monday] == [monday.id]
    assert [a.id for a in cancelled] == [tuesday.id]


def test_query_by_patient_and_participant(db) -> None:
    mine = _create(db)
    _create(db, patient_id='patient-b', start_time='11:00', end_time='11:30')

    assert [a.id for a in appointment_store.query_by_patient(db, 'patient-a')] == [mine.id]
    assert len(appointment_store.query_by_participant(db, 'doctor-1')) == 2
    assert [a.id for a in appointment_store.query_by_participant(db, 'patient-a')] == [mine.id]


def test_active_on_date_ignores_cancelled_and_completed(db) -> None:
    pending = _create(db)
    cancelled = _create(db, start_time='10:00', end_time='10:30')
    appointment_store.update_status(db, cancelled.id, AppointmentStatusPatch(status=AppointmentStatus.CANCELLED))
    _create(db, start_time='11:00', end_time='11:30', status=AppointmentStatus.COMPLETED)

    assert [a.id for a in appointment_store.active_on_date(db, 'doctor-1', MONDAY)] == [pending.id]
