"""Error taxonomy shared by the scheduling services and the HTTP layer."""


class SchedulingError(Exception):
    """Base class for every failure raised by the scheduling core."""

    kind = 'internal'

    def __init__(self, message: str, *, retryable: bool = False) -> None:
        super().__init__(message)
        self.message = message
        self.retryable = retryable

    def to_dict(self) -> dict:
        return {'kind': self.kind, 'detail': self.message, 'retryable': self.retryable}


class UnauthenticatedError(SchedulingError):
    kind = 'unauthenticated'


class PermissionDeniedError(SchedulingError):
    kind = 'permission_denied'


class InvalidArgumentError(SchedulingError):
    kind = 'invalid_argument'


class NotFoundError(SchedulingError):
    kind = 'not_found'


class FailedPreconditionError(SchedulingError):
    kind = 'failed_precondition'


class ConflictError(SchedulingError):
    kind = 'conflict'


class InternalError(SchedulingError):
    kind = 'internal'
