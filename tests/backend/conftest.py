import os
from datetime import date

import pytest
from sqlalchemy.orm import sessionmaker

os.environ.setdefault('DATABASE_URL', 'sqlite:///./test.db')

from backend.core.context import CallerContext  # noqa: E402
from backend.database import Base, build_engine  # noqa: E402
from backend.models import appointment, availability, booking_lock, user  # noqa: E402,F401
from backend.schemas import AvailabilityTemplateIn  # noqa: E402
from backend.services import availability_store  # noqa: E402

MONDAY = date(2026, 1, 5)
SUNDAY = date(2026, 1, 4)
DOCTOR_ID = 'doctor-1'


@pytest.fixture
def session_factory(tmp_path):
    engine = build_engine(f"sqlite:///{tmp_path / 'scheduling.db'}")
    Base.metadata.create_all(bind=engine)
    try:
        yield sessionmaker(autocommit=False, autoflush=False, bind=engine)
    finally:
        engine.dispose()


@pytest.fixture
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def doctor() -> CallerContext:
    return CallerContext(caller_id=DOCTOR_ID, role='doctor')


@pytest.fixture
def patient_a() -> CallerContext:
    return CallerContext(caller_id='patient-a', role='patient')


@pytest.fixture
def patient_b() -> CallerContext:
    return CallerContext(caller_id='patient-b', role='patient')


@pytest.fixture
def monday_hours(db):
    """Doctor works Mondays 09:00-17:00."""
    return availability_store.replace_templates(
        db,
        DOCTOR_ID,
        [AvailabilityTemplateIn(doctor_id=DOCTOR_ID, day_of_week=0, start_time='09:00', end_time='17:00')],
    )
