"""
Typed workflow errors.
Every failure crossing the public boundary is a (kind, message, field) triple.
"""

from typing import Optional


class WorkflowError(Exception):
    """Base class for all quote workflow errors."""

    kind = "workflow_error"
    status_code = 400

    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.field = field

    def to_dict(self) -> dict:
        return {
            "kind": self.kind,
            "message": self.message,
            "field": self.field,
        }

    def __repr__(self) -> str:
        return f"<{type(self).__name__}(kind='{self.kind}', message='{self.message}', field={self.field!r})>"


class NotFoundError(WorkflowError):
    """Referenced quote, signature or customer does not exist."""

    kind = "not_found"
    status_code = 404


class InvalidStateError(WorkflowError):
    """Requested transition is illegal from the quote's effective status."""

    kind = "invalid_state"
    status_code = 409


class AlreadyConvertedError(InvalidStateError):
    """Operation attempted on a quote that was already converted to a job."""

    kind = "already_converted"
    status_code = 409

    def __init__(self, quote_id, field: Optional[str] = None):
        super().__init__(f"Quote {quote_id} has already been converted to a job", field)
        self.quote_id = quote_id


class WorkflowValidationError(WorkflowError):
    """Input fails structural or business validation."""

    kind = "validation_error"
    status_code = 400


class GatewayError(WorkflowError):
    """An external gateway call failed or timed out. Nothing was committed."""

    kind = "gateway_error"
    status_code = 502

    def __init__(self, gateway: str, message: str, field: Optional[str] = None):
        super().__init__(f"{gateway} gateway failed: {message}", field)
        self.gateway = gateway
