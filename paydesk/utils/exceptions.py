"""
Exception handling utilities.

Defines categorized exception types for the payment desk. Every error
carries a human-readable message that can be shown to the operator as is.
"""

import aiohttp


class PaymentDeskError(Exception):
    """Base class for all payment desk errors."""

    default_message = "Payment operation failed"

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)


class PaymentApiError(PaymentDeskError):
    """Raised when a backend call fails at transport or HTTP level."""

    default_message = "Payment backend request failed"

    def __init__(
        self, message: str | None = None, status_code: int | None = None
    ) -> None:
        super().__init__(message)
        self.status_code = status_code


class ValidationError(PaymentDeskError):
    """Raised when a pre-flight check rejects an item or a whole request."""

    default_message = "Failed to validate recipients"


class SubmissionError(PaymentDeskError):
    """Raised when a bulk batch could not be submitted (no handle obtained)."""

    default_message = "Failed to process bulk payment"


class PollError(PaymentDeskError):
    """Raised for a transient failure of a single status poll."""

    default_message = "Failed to fetch bulk transaction status"


class PollTimeoutError(PaymentDeskError):
    """Raised when the poll attempt limit is reached without a terminal status."""

    default_message = "Status polling timeout. Check transaction status manually."

    def __init__(
        self, bulk_transaction_id: str, attempts: int, message: str | None = None
    ) -> None:
        super().__init__(message)
        self.bulk_transaction_id = bulk_transaction_id
        self.attempts = attempts


class ConfirmationError(PaymentDeskError):
    """Raised when the backend rejects the confirm step of a single transfer."""

    default_message = "Failed to complete transaction. Please try again."


class FlowStateError(PaymentDeskError):
    """Raised on an illegal transition of the single transfer flow."""

    default_message = "Operation not allowed in the current state"


class QueueError(PaymentDeskError):
    """Raised on invalid payment queue operations."""

    default_message = "Invalid payment queue operation"


class TrackingConflictError(PaymentDeskError):
    """Raised when a bulk transaction is already being tracked."""

    default_message = "This bulk transaction is already being tracked"


# Exception categories based on handling strategy

# Transient - the poller skips the tick and retries on schedule
TRANSIENT_ERRORS = (
    PaymentApiError,
    aiohttp.ClientError,
    TimeoutError,
    ConnectionError,
)


def is_transient(exc: Exception) -> bool:
    """
    Check if exception is a transient backend failure.

    Args:
        exc: Exception to check

    Returns:
        True if the operation may simply be retried later
    """
    return isinstance(exc, TRANSIENT_ERRORS)
