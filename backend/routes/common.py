from fastapi import HTTPException, status
from sqlalchemy.exc import SQLAlchemyError

from backend.core.errors import SchedulingError
from backend.database import SessionLocal, ensure_availability_schema, ensure_appointment_schema

STATUS_BY_KIND = {
    'unauthenticated': status.HTTP_401_UNAUTHORIZED,
    'permission_denied': status.HTTP_403_FORBIDDEN,
    'invalid_argument': status.HTTP_400_BAD_REQUEST,
    'not_found': status.HTTP_404_NOT_FOUND,
    'failed_precondition': status.HTTP_409_CONFLICT,
    'conflict': status.HTTP_409_CONFLICT,
    'internal': status.HTTP_503_SERVICE_UNAVAILABLE,
}


def ensure_database_ready() -> None:
    try:
        ensure_availability_schema()
        ensure_appointment_schema()
    except SQLAlchemyError as exc:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail='Database unavailable. Verify DATABASE_URL and Postgres credentials.',
        ) from exc


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def to_http_exception(exc: SchedulingError) -> HTTPException:
    headers = {'Retry-After': '1'} if exc.retryable else None
    return HTTPException(
        status_code=STATUS_BY_KIND.get(exc.kind, status.HTTP_500_INTERNAL_SERVER_ERROR),
        detail=exc.to_dict(),
        headers=headers,
    )
