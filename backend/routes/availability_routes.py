from datetime import date

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from backend.auth.dependencies import get_current_caller
from backend.core.context import CallerContext
from backend.core.errors import SchedulingError
from backend.routes.common import ensure_database_ready, get_db, to_http_exception
from backend.schemas import AvailabilityTemplateResponse, ResolvedSlot, SetAvailabilityRequest
from backend.services import scheduling

router = APIRouter(tags=['availability'])


@router.put('', response_model=list[AvailabilityTemplateResponse])
def set_availability(
    data: SetAvailabilityRequest,
    caller: CallerContext = Depends(get_current_caller),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    try:
        return scheduling.set_availability(db, caller, data.templates)
    except SchedulingError as exc:
        raise to_http_exception(exc) from exc


@router.get('/{doctor_id}', response_model=list[ResolvedSlot])
def get_availability(
    doctor_id: str,
    on_date: date | None = Query(default=None, alias='date'),
    caller: CallerContext = Depends(get_current_caller),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    try:
        return scheduling.get_availability(db, caller, doctor_id, on_date)
    except SchedulingError as exc:
        raise to_http_exception(exc) from exc
