"""Error taxonomy for booking operations.

All errors are raised synchronously before any state is mutated and are
caught at the call boundary (API handlers, orchestrator callers).
"""


class BookingError(Exception):
    """Base class for booking errors."""
    pass


class NotFoundError(BookingError):
    """Raised when an appointment, service, special date or user id is absent."""

    def __init__(self, entity: str, entity_id: str):
        self.entity = entity
        self.entity_id = entity_id
        super().__init__(f"{entity.capitalize()} '{entity_id}' not found")


class ValidationError(BookingError):
    """Raised for malformed input or a rejected business rule."""
    pass


class SlotUnavailableError(ValidationError):
    """Raised when a requested start time cannot be booked."""
    pass


class InvalidTransitionError(ValidationError):
    """Raised when an appointment status change is not allowed."""
    pass
