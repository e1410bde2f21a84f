from dataclasses import dataclass

from backend.core.errors import UnauthenticatedError

ROLE_PATIENT = 'patient'
ROLE_DOCTOR = 'doctor'
ROLE_ADMIN = 'admin'
KNOWN_ROLES = {ROLE_PATIENT, ROLE_DOCTOR, ROLE_ADMIN}


@dataclass(frozen=True)
class CallerContext:
    """Identity of whoever invokes a scheduling operation."""

    caller_id: str | None
    role: str | None = None

    @property
    def is_authenticated(self) -> bool:
        return bool(self.caller_id and self.caller_id.strip())

    @property
    def is_admin(self) -> bool:
        return self.role == ROLE_ADMIN

    def require_id(self, action: str) -> str:
        if not self.is_authenticated:
            raise UnauthenticatedError(f'You must be logged in to {action}.')
        return self.caller_id.strip()
