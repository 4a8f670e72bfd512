"""
Error kinds raised by the dead letter queue.

Delivery failures are never raised; they are recorded on the entry.
"""


class DLQError(Exception):
    """Base class for operator-facing DLQ errors."""
    code = "dlq_error"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class NotFoundError(DLQError):
    """The requested queue entry does not exist."""
    code = "not_found"


class InvalidStateError(DLQError):
    """The entry is not in a state that allows the requested action."""
    code = "invalid_state"


class WebhookValidationError(DLQError):
    """Rejected enqueue input (bad URL, unknown type, unserializable payload)."""
    code = "validation_error"
