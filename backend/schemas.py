"""Request and response models for the scheduling core."""

import re
from datetime import date, datetime

from pydantic import BaseModel, ConfigDict, ValidationError, field_validator, model_validator

from backend.core import config
from backend.models.appointment import AppointmentStatus

TIME_PATTERN = re.compile(r'^([01]\d|2[0-3]):[0-5]\d$')


def normalize_time(value: str) -> str:
    normalized = (value or '').strip()
    if not TIME_PATTERN.match(normalized):
        raise ValueError('Times must use the 24-hour HH:MM format.')
    return normalized


def normalize_identifier(value: str, label: str) -> str:
    normalized = (value or '').strip()
    if not normalized:
        raise ValueError(f'{label} is required.')
    return normalized


def normalize_free_text(value: str | None) -> str | None:
    if value is None:
        return None

    normalized = value.strip()
    if not normalized:
        return None

    if len(normalized) > config.MAX_APPOINTMENT_NOTES_LENGTH:
        raise ValueError(f'Text must be {config.MAX_APPOINTMENT_NOTES_LENGTH} characters or fewer.')

    return normalized


def describe_validation_error(exc: ValidationError) -> str:
    """Flatten a pydantic error into one human readable sentence."""
    missing = []
    messages = []
    for error in exc.errors():
        field = '.'.join(str(part) for part in error['loc'])
        message = error['msg'].removeprefix('Value error, ')
        if error['type'] == 'missing' or (field and error.get('input') is None) or 'is required' in message:
            missing.append(field)
        else:
            messages.append(f'{field}: {message}' if field else message)
    if missing:
        messages.insert(0, f"Missing required fields: {', '.join(missing)}")
    return '; '.join(messages)


class AvailabilityTemplateIn(BaseModel):
    doctor_id: str
    day_of_week: int
    start_time: str
    end_time: str
    is_available: bool = True

    @field_validator('doctor_id')
    @classmethod
    def validate_doctor_id(cls, value: str) -> str:
        return normalize_identifier(value, 'Doctor ID')

    @field_validator('day_of_week')
    @classmethod
    def validate_day_of_week(cls, value: int) -> int:
        if not 0 <= value <= 6:
            raise ValueError('Day of week must be between 0 (Monday) and 6 (Sunday).')
        return value

    @field_validator('start_time', 'end_time')
    @classmethod
    def validate_time(cls, value: str) -> str:
        return normalize_time(value)

    @model_validator(mode='after')
    def validate_range(self) -> 'AvailabilityTemplateIn':
        if self.start_time >= self.end_time:
            raise ValueError('Start time must be before end time.')
        return self


class AvailabilityTemplateResponse(BaseModel):
    id: int
    doctor_id: str
    day_of_week: int
    start_time: str
    end_time: str
    is_available: bool

    class Config:
        from_attributes = True


class SetAvailabilityRequest(BaseModel):
    templates: list[AvailabilityTemplateIn]


class ResolvedSlot(BaseModel):
    doctor_id: str
    day_of_week: int
    start_time: str
    end_time: str
    is_available: bool
    template_id: int | None = None

    def contains(self, start_time: str, end_time: str) -> bool:
        return self.is_available and self.start_time <= start_time and end_time <= self.end_time


class BookAppointmentRequest(BaseModel):
    doctor_id: str
    date: date
    start_time: str
    end_time: str
    reason: str | None = None

    @field_validator('doctor_id')
    @classmethod
    def validate_doctor_id(cls, value: str) -> str:
        return normalize_identifier(value, 'Doctor ID')

    @field_validator('start_time', 'end_time')
    @classmethod
    def validate_time(cls, value: str) -> str:
        return normalize_time(value)

    @field_validator('reason')
    @classmethod
    def validate_reason(cls, value: str | None) -> str | None:
        return normalize_free_text(value)

    @model_validator(mode='after')
    def validate_range(self) -> 'BookAppointmentRequest':
        if self.start_time >= self.end_time:
            raise ValueError('Start time must be before end time.')
        return self


class AppointmentStatusPatch(BaseModel):
    """The only fields a lifecycle transition may write."""

    model_config = ConfigDict(extra='forbid')

    status: AppointmentStatus
    notes: str | None = None

    @field_validator('notes')
    @classmethod
    def validate_notes(cls, value: str | None) -> str | None:
        return normalize_free_text(value)


class TransitionRequest(BaseModel):
    notes: str | None = None
    expected_version: int | None = None


class AppointmentResponse(BaseModel):
    id: str
    patient_id: str
    doctor_id: str
    appointment_date: date
    start_time: str
    end_time: str
    status: AppointmentStatus
    reason: str | None = None
    notes: str | None = None
    created_at: datetime
    updated_at: datetime
    version: int

    class Config:
        from_attributes = True
