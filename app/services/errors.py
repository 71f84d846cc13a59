"""Service-layer exceptions shared by the task, notification and reminder services."""


class ServiceError(Exception):
    """Base class for errors raised by the service layer."""
    pass


class NotFoundError(ServiceError):
    """Raised when a referenced task, project, notification, reminder or user does not exist."""
    pass


class ForbiddenError(ServiceError):
    """Raised when the caller does not own the record being read or mutated."""
    pass


class ValidationError(ServiceError):
    """Raised when input fails a service-level check (e.g. a reminder time in the past)."""
    pass


class ChannelNotReadyError(ServiceError):
    """Raised when publishing before the real-time channel has been initialised."""
    pass


class PersistenceError(ServiceError):
    """Raised when a database operation fails; wraps the driver error."""

    def __init__(self, message: str, original: Exception | None = None) -> None:
        super().__init__(message)
        self.original = original
