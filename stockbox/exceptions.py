"""Exceptions raised by the StockBox import engine."""


class StockboxError(Exception):
    """Base class for StockBox errors."""


class InvalidStateError(StockboxError):
    """Raised when an import controller operation is invalid in its current state."""


class UnknownEntityError(StockboxError, KeyError):
    """Raised when the field catalog has no definition for an entity type."""

    def __init__(self, entity_type: str):
        super().__init__(entity_type)
        self.entity_type = entity_type

    def __str__(self) -> str:
        return f"Unknown entity type: {self.entity_type}"


class ApiError(StockboxError):
    """A request to a remote service failed."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class RateLimitedError(ApiError):
    """The remote service asked us to slow down (HTTP 429)."""

    def __init__(
        self,
        message: str = "Rate limit exceeded",
        status_code: int | None = 429,
        retry_after: float | None = None,
    ):
        super().__init__(message, status_code)
        self.retry_after = retry_after


class ImportCancelledError(StockboxError):
    """Raised inside the import loop to unwind a cancelled run."""


class RowRejectedError(StockboxError):
    """A row cannot be submitted; it is recorded as failed and the run goes on."""
