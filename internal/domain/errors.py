"""
Domain-specific exceptions.

Custom exceptions for validation, authorization and lifecycle rule violations,
plus the side-effect failures that are logged rather than raised to callers.
"""
from typing import Optional


class DomainError(Exception):
    """Base exception for domain errors."""

    def __init__(self, message: str) -> None:
        """
        Initialize domain error.

        Args:
            message: Error message describing the issue.
        """
        self.message = message
        super().__init__(self.message)


class DomainValidationError(DomainError):
    """Exception raised when domain validation fails."""
    pass


class PermissionDeniedError(DomainError):
    """Exception raised when an actor lacks the privilege or ownership required."""

    def __init__(self, message: str, actor_id: Optional[str] = None) -> None:
        """
        Initialize permission denied error.

        Args:
            message: Error message describing the missing permission.
            actor_id: The ID of the actor that was rejected.
        """
        super().__init__(message)
        self.actor_id = actor_id


class ProductNotFoundError(DomainError):
    """Exception raised when a product is not found."""

    def __init__(self, gtin: str) -> None:
        """
        Initialize product not found error.

        Args:
            gtin: The GTIN of the product that was not found.
        """
        super().__init__(f"Product with GTIN {gtin} not found")
        self.gtin = gtin


class ConflictError(DomainError):
    """Exception raised when a mutation conflicts with the current state."""
    pass


class ProductAlreadyExistsError(ConflictError):
    """Exception raised when attempting to create a duplicate product."""

    def __init__(self, gtin: str) -> None:
        """
        Initialize product already exists error.

        Args:
            gtin: The GTIN that already exists.
        """
        super().__init__(f"Product with GTIN '{gtin}' already exists")
        self.gtin = gtin


class InvalidStatusTransitionError(ConflictError):
    """Exception raised on an illegal product status transition."""

    def __init__(self, gtin: str, current_status: str, target_status: str) -> None:
        """
        Initialize invalid status transition error.

        Args:
            gtin: The GTIN of the product.
            current_status: Status the product is in.
            target_status: Status that was requested.
        """
        super().__init__(
            f"Product {gtin} cannot move from '{current_status}' to '{target_status}'"
        )
        self.gtin = gtin
        self.current_status = current_status
        self.target_status = target_status


class AuditWriteError(DomainError):
    """Audit entry could not be persisted. Logged, never raised to callers."""

    def __init__(self, action: str, gtin: str, reason: str) -> None:
        """
        Initialize audit write error.

        Args:
            action: Audit action that failed to record.
            gtin: GTIN of the audited product.
            reason: The reason for the failure.
        """
        super().__init__(f"Failed to record '{action}' audit entry for {gtin}: {reason}")
        self.action = action
        self.gtin = gtin
        self.reason = reason


class EventPublishError(DomainError):
    """Exception raised when event publishing fails."""

    def __init__(self, event_type: str, reason: str) -> None:
        """
        Initialize event publish error.

        Args:
            event_type: Type of event that failed to publish.
            reason: The reason for the failure.
        """
        super().__init__(f"Failed to publish event '{event_type}': {reason}")
        self.event_type = event_type
        self.reason = reason


class ListenerProcessingError(DomainError):
    """A single inbound message could not be decoded or handled."""

    def __init__(self, topic: str, reason: str) -> None:
        """
        Initialize listener processing error.

        Args:
            topic: Topic the message arrived on.
            reason: The reason for the failure.
        """
        super().__init__(f"Failed to process message on '{topic}': {reason}")
        self.topic = topic
        self.reason = reason


class ListenerConnectionError(DomainError):
    """Listener could not (re)connect to the broker."""

    def __init__(self, topic: str, attempts: int, reason: str) -> None:
        """
        Initialize listener connection error.

        Args:
            topic: Topic the listener serves.
            attempts: Consecutive failed attempts so far.
            reason: The reason for the failure.
        """
        super().__init__(
            f"Listener for '{topic}' lost its connection (attempt {attempts}): {reason}"
        )
        self.topic = topic
        self.attempts = attempts
        self.reason = reason
