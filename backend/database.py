import os
from dotenv import load_dotenv
from threading import Lock

from sqlalchemy import create_engine, inspect, text
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.orm import declarative_base, sessionmaker

from backend.core import config


load_dotenv()
DATABASE_URL = os.getenv("DATABASE_URL")


def build_engine(url: str) -> Engine:
    backend_name = make_url(url).get_backend_name()
    connect_args: dict = {}

    if backend_name == 'sqlite':
        connect_args['check_same_thread'] = False
        connect_args['timeout'] = config.DB_STATEMENT_TIMEOUT_MS / 1000
    elif backend_name == 'postgresql':
        connect_args['options'] = f'-c statement_timeout={config.DB_STATEMENT_TIMEOUT_MS}'

    return create_engine(url, echo=config.SQL_ECHO, pool_pre_ping=True, connect_args=connect_args)


engine = build_engine(DATABASE_URL)

SessionLocal = sessionmaker(
    autocommit=False,
    autoflush=False,
    bind=engine,
)

Base = declarative_base()

_schema_lock = Lock()
_availability_schema_checked = False
_appointment_schema_checked = False


def ensure_availability_schema() -> None:
    global _availability_schema_checked

    if _availability_schema_checked:
        return

    with _schema_lock:
        if _availability_schema_checked:
            return

        inspector = inspect(engine)

        if 'doctor_availability' not in inspector.get_table_names():
            _availability_schema_checked = True
            return

        existing_columns = {column['name'] for column in inspector.get_columns('doctor_availability')}
        migration_steps = [
            ('is_available', 'ALTER TABLE doctor_availability ADD COLUMN is_available BOOLEAN DEFAULT TRUE'),
            ('created_at', 'ALTER TABLE doctor_availability ADD COLUMN created_at TIMESTAMP'),
        ]

        with engine.begin() as connection:
            for column_name, statement in migration_steps:
                if column_name not in existing_columns:
                    connection.execute(text(statement))
            connection.execute(
                text(
                    'CREATE INDEX IF NOT EXISTS idx_doctor_availability_doctor_day '
                    'ON doctor_availability(doctor_id, day_of_week)'
                )
            )

        _availability_schema_checked = True


def ensure_appointment_schema() -> None:
    global _appointment_schema_checked

    if _appointment_schema_checked:
        return

    with _schema_lock:
        if _appointment_schema_checked:
            return

        inspector = inspect(engine)

        if 'appointments' not in inspector.get_table_names():
            _appointment_schema_checked = True
            return

        existing_columns = {column['name'] for column in inspector.get_columns('appointments')}
        migration_steps = [
            ('reason', 'ALTER TABLE appointments ADD COLUMN reason VARCHAR'),
            ('notes', 'ALTER TABLE appointments ADD COLUMN notes VARCHAR'),
            ('version', 'ALTER TABLE appointments ADD COLUMN version INTEGER NOT NULL DEFAULT 1'),
        ]

        with engine.begin() as connection:
            for column_name, statement in migration_steps:
                if column_name not in existing_columns:
                    connection.execute(text(statement))
            connection.execute(
                text(
                    'CREATE INDEX IF NOT EXISTS idx_appointments_doctor_date_status '
                    'ON appointments(doctor_id, appointment_date, status)'
                )
            )
            connection.execute(
                text('CREATE INDEX IF NOT EXISTS idx_appointments_patient_date ON appointments(patient_id, appointment_date)')
            )

        _appointment_schema_checked = True
