"""Exceptions raised by the consignment engine and deal recorder."""

from typing import Optional


class ConsignmentError(Exception):
    """Base class for consignment-related errors."""
    pass


class ValidationError(ConsignmentError):
    """Raised for malformed or out-of-range input. Nothing is persisted."""
    pass


class MissingFixedTermsError(ValidationError):
    """Raised when a fixed-terms consignment omits its discount or lockup."""
    pass


class OutOfRangeError(ValidationError):
    """Raised when a reservation falls outside the consignment's deal-size bounds."""
    def __init__(self, amount: int, min_amount: int, max_amount: int):
        self.amount = amount
        self.min_amount = min_amount
        self.max_amount = max_amount
        super().__init__(
            f"Amount {amount} outside deal size bounds "
            f"[{min_amount}, {max_amount}]"
        )


class ConflictError(ConsignmentError):
    """Raised when an operation loses a race or exceeds available inventory.

    Conflicts never leave partial state behind, the caller may retry.
    """
    pass


class LockHeldError(ConflictError):
    """Raised when the consignment is already being modified by another caller."""
    def __init__(self, key: str):
        self.key = key
        super().__init__(f"Consignment is being modified, try again ({key})")


class InsufficientAmountError(ConflictError):
    """Raised when a reservation exceeds the remaining amount."""
    def __init__(self, consignment_id: str, available: int, requested: int):
        self.consignment_id = consignment_id
        self.available = available
        self.requested = requested
        super().__init__(
            f"Insufficient remaining amount for consignment {consignment_id}: "
            f"available {available}, requested {requested}"
        )


class NotFoundError(ConsignmentError):
    """Raised when a consignment or deal id is unknown."""
    pass


class ImmutabilityError(ConsignmentError):
    """Raised when updating fields that are frozen once deals have been made."""
    def __init__(self, field: str, consignment_id: Optional[str] = None):
        self.field = field
        self.consignment_id = consignment_id
        super().__init__(f"Cannot modify {field} after deals have been made")


class StateError(ConsignmentError):
    """Raised when an operation is invalid for the consignment's current status."""
    pass


class AlreadyWithdrawnError(StateError):
    """Raised when withdrawing a consignment twice."""
    pass
