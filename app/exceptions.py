"""
Domain errors raised by the services.

Each error carries a machine-readable ``reason`` for the UI, a readable
message, and the related order id when there is one. ``app.main`` maps
them onto HTTP responses.
"""

from typing import Optional


class StoreError(Exception):
    status_code = 400
    default_reason = "error"

    def __init__(
        self,
        message: str,
        *,
        reason: Optional[str] = None,
        order_id: Optional[int] = None,
    ):
        super().__init__(message)
        self.message = message
        self.reason = reason or self.default_reason
        self.order_id = order_id

    def to_dict(self) -> dict:
        return {
            "detail": self.message,
            "reason": self.reason,
            "error": type(self).__name__,
            "order_id": self.order_id,
        }


class ValidationError(StoreError):
    status_code = 400
    default_reason = "invalid_input"


class NotFoundError(StoreError):
    status_code = 404
    default_reason = "not_found"


class AccessDeniedError(StoreError):
    status_code = 403
    default_reason = "access_denied"


class StateConflictError(StoreError):
    status_code = 409
    default_reason = "invalid_state"


class QuotaExceededError(StoreError):
    status_code = 429
    default_reason = "quota_exhausted"


class ExpiredError(StoreError):
    status_code = 410
    default_reason = "expired"


class ExternalDependencyError(StoreError):
    status_code = 502
    default_reason = "provider_unavailable"
