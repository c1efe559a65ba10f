"""
Error taxonomy for the credit ledger and request lifecycle.
Each error carries a stable machine-readable reason, an HTTP status and a payload
that the API layer renders as {success: false, reason, message, **payload}.
"""
from typing import Any


class ServiceError(Exception):
    """Base for expected failures surfaced to the caller."""

    reason = "service_error"
    status_code = 500
    retryable = False

    def __init__(self, message: str, payload: dict[str, Any] | None = None):
        super().__init__(message)
        self.message = message
        self.payload = payload or {}

    def to_dict(self) -> dict[str, Any]:
        body: dict[str, Any] = {
            "success": False,
            "reason": self.reason,
            "message": self.message,
        }
        if self.retryable:
            body["retryable"] = True
        body.update(self.payload)
        return body


class Unauthenticated(ServiceError):
    reason = "unauthenticated"
    status_code = 401

    def __init__(self, message: str = "Authentication required"):
        super().__init__(message)


class ValidationError(ServiceError):
    reason = "validation_error"
    status_code = 400

    def __init__(self, message: str = "Invalid request parameters", errors: list[dict[str, Any]] | None = None):
        super().__init__(message, {"errors": errors} if errors is not None else None)


class InvalidModel(ServiceError):
    reason = "invalid_model"
    status_code = 400

    def __init__(self, model_id: int):
        super().__init__("Invalid or inactive model selected", {"model_id": model_id})
        self.model_id = model_id


class InsufficientCredits(ServiceError):
    reason = "insufficient_credits"
    status_code = 402

    def __init__(self, required: int, available: int):
        super().__init__("Insufficient credits", {"required": required, "available": available})
        self.required = required
        self.available = available


class NotFound(ServiceError):
    reason = "not_found"
    status_code = 404

    def __init__(self, message: str = "Generation request not found"):
        super().__init__(message)


class InvalidState(ServiceError):
    reason = "invalid_state"
    status_code = 400

    def __init__(self, message: str, status: str | None = None):
        super().__init__(message, {"status": status} if status is not None else None)
        self.status = status


class DuplicateSubmission(ServiceError):
    reason = "duplicate_submission"
    status_code = 409

    def __init__(self) -> None:
        super().__init__("Request with this Idempotency-Key was already submitted")


class StoreConflict(ServiceError):
    """Concurrent writers extended the same ledger tail. Safe to retry from scratch."""

    reason = "store_conflict"
    status_code = 409
    retryable = True

    def __init__(self, message: str = "Concurrent update, please retry"):
        super().__init__(message)


class StoreUnavailable(ServiceError):
    reason = "store_unavailable"
    status_code = 503
    retryable = True

    def __init__(self, message: str = "Storage temporarily unavailable"):
        super().__init__(message)
