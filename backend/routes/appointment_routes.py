from datetime import date

from fastapi import APIRouter, Depends, Header, Query, status
from pydantic import BaseModel
from sqlalchemy.orm import Session

from backend.auth.dependencies import get_current_caller
from backend.core.context import CallerContext
from backend.core.errors import InvalidArgumentError, SchedulingError
from backend.models.appointment import AppointmentStatus
from backend.routes.common import ensure_database_ready, get_db, to_http_exception
from backend.schemas import AppointmentResponse, TransitionRequest
from backend.services import scheduling

router = APIRouter(tags=['appointments'])


class CreateAppointmentRequest(BaseModel):
    doctor_id: str | None = None
    appointment_date: date | None = None
    start_time: str | None = None
    end_time: str | None = None
    reason: str | None = None


def parse_if_match(if_match: str | None) -> int | None:
    if if_match is None:
        return None

    normalized = if_match.strip().strip('"').removeprefix('W/').strip('"')
    try:
        return int(normalized)
    except ValueError as exc:
        raise InvalidArgumentError('If-Match must carry the appointment version number.') from exc


@router.post('', response_model=AppointmentResponse, status_code=status.HTTP_201_CREATED)
def book_appointment(
    data: CreateAppointmentRequest,
    caller: CallerContext = Depends(get_current_caller),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    try:
        return scheduling.book_appointment(
            db,
            caller,
            doctor_id=data.doctor_id,
            appointment_date=data.appointment_date,
            start_time=data.start_time,
            end_time=data.end_time,
            reason=data.reason,
        )
    except SchedulingError as exc:
        raise to_http_exception(exc) from exc


@router.get('', response_model=list[AppointmentResponse])
def list_my_appointments(
    status_filter: AppointmentStatus | None = Query(default=None, alias='status'),
    caller: CallerContext = Depends(get_current_caller),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    try:
        return scheduling.list_appointments(db, caller, status_filter)
    except SchedulingError as exc:
        raise to_http_exception(exc) from exc


TRANSITION_HANDLERS = {
    'cancel': scheduling.cancel_appointment,
    'confirm': scheduling.confirm_appointment,
    'complete': scheduling.complete_appointment,
}


def _run_transition(
    action: str,
    appointment_id: str,
    data: TransitionRequest | None,
    if_match: str | None,
    caller: CallerContext,
    db: Session,
) -> AppointmentResponse:
    ensure_database_ready()

    try:
        data = data or TransitionRequest()
        expected_version = data.expected_version
        if expected_version is None:
            expected_version = parse_if_match(if_match)
        return TRANSITION_HANDLERS[action](
            db,
            caller,
            appointment_id,
            notes=data.notes,
            expected_version=expected_version,
        )
    except SchedulingError as exc:
        raise to_http_exception(exc) from exc


@router.post('/{appointment_id}/cancel', response_model=AppointmentResponse)
def cancel_appointment(
    appointment_id: str,
    data: TransitionRequest | None = None,
    if_match: str | None = Header(default=None),
    caller: CallerContext = Depends(get_current_caller),
    db: Session = Depends(get_db),
):
    return _run_transition('cancel', appointment_id, data, if_match, caller, db)


@router.post('/{appointment_id}/confirm', response_model=AppointmentResponse)
def confirm_appointment(
    appointment_id: str,
    data: TransitionRequest | None = None,
    if_match: str | None = Header(default=None),
    caller: CallerContext = Depends(get_current_caller),
    db: Session = Depends(get_db),
):
    return _run_transition('confirm', appointment_id, data, if_match, caller, db)


@router.post('/{appointment_id}/complete', response_model=AppointmentResponse)
def complete_appointment(
    appointment_id: str,
    data: TransitionRequest | None = None,
    if_match: str | None = Header(default=None),
    caller: CallerContext = Depends(get_current_caller),
    db: Session = Depends(get_db),
):
    return _run_transition('complete', appointment_id, data, if_match, caller, db)
