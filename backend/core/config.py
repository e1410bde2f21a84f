import os



def _get_bool(value: str | None, default: bool = False) -> bool:
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _get_list(value: str | None, default: str) -> list[str]:
    raw = value if value is not None else default
    return [item.strip() for item in raw.split(",") if item.strip()]

APP_ENV = os.getenv("APP_ENV", "development")
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
SQL_ECHO = _get_bool(os.getenv("SQL_ECHO"), default=False)

CORS_ORIGINS = _get_list(os.getenv("CORS_ORIGINS"), "http://localhost:4200")

DB_STATEMENT_TIMEOUT_MS = int(os.getenv("DB_STATEMENT_TIMEOUT_MS", "5000"))
BOOKING_LOCK_TIMEOUT_SECONDS = float(os.getenv("BOOKING_LOCK_TIMEOUT_SECONDS", "5"))

MAX_APPOINTMENT_NOTES_LENGTH = int(os.getenv("MAX_APPOINTMENT_NOTES_LENGTH", "600"))
ADMIN_APPOINTMENT_LIST_LIMIT = int(os.getenv("ADMIN_APPOINTMENT_LIST_LIMIT", "100"))

JWT_SECRET_KEY = os.getenv("JWT_SECRET_KEY", "change-me")
JWT_ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")
JWT_EXPIRES_MINUTES = int(os.getenv("JWT_EXPIRES_MINUTES", "60"))

def validate_runtime_config() -> None:
    if APP_ENV.lower() == "production" and JWT_SECRET_KEY == "change-me":
        raise RuntimeError("JWT_SECRET_KEY must be set in production.")
    if BOOKING_LOCK_TIMEOUT_SECONDS <= 0:
        raise RuntimeError("BOOKING_LOCK_TIMEOUT_SECONDS must be positive.")
