"""Billing error taxonomy

Raised inside use cases and gateway adapters, converted to
``Return.err(Error(...))`` at the use-case boundary. Each class carries the
error code the API layer maps to an HTTP status.
"""

from typing import Optional
from src.libs.result import Error


class BillingError(Exception):
    """Base class for billing failures"""

    code = "BILLING_ERROR"

    def __init__(self, message: str, reason: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.reason = reason


class ValidationError(BillingError):
    """Missing or invalid input"""
    code = "VALIDATION_ERROR"


class NotFoundError(BillingError):
    """Record absent or not owned by the caller"""
    code = "NOT_FOUND"


class ConflictError(BillingError):
    """Record is in a state that forbids the operation (e.g. already billed)"""
    code = "CONFLICT"


class InvalidStateError(BillingError):
    """Precondition on related records not met (e.g. no gateway customer)"""
    code = "INVALID_STATE"


class UpstreamGatewayError(BillingError):
    """The payment gateway rejected the call or could not be reached"""

    code = "UPSTREAM_GATEWAY_ERROR"

    def __init__(
        self,
        message: str,
        reason: Optional[str] = None,
        missing_resource: Optional[str] = None,
        unreachable: bool = False,
    ):
        super().__init__(message, reason)
        self.missing_resource = missing_resource
        self.unreachable = unreachable


class PersistenceError(BillingError):
    """Datastore write failed after a gateway side effect succeeded"""
    code = "PERSISTENCE_ERROR"


class AuthError(BillingError):
    """Missing/invalid credentials or webhook signature"""
    code = "AUTH_ERROR"


def to_error(exc: BillingError) -> Error:
    """Convert a raised billing error into the Result error value"""
    return Error(code=exc.code, message=exc.message, reason=exc.reason)
