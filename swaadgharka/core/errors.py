from __future__ import annotations

from typing import Any


class AppError(Exception):
    """Base for every error the API reports to clients.

    Each subclass fixes the HTTP status and a machine-checkable ``code``.
    The boundary handlers in ``swaadgharka.main`` render them as
    ``{"success": false, "message", "code", "errors"?}``.
    """

    status_code = 500
    code = "internal_error"
    default_message = "Internal server error"

    def __init__(
        self,
        message: str | None = None,
        *,
        errors: list[dict[str, Any]] | None = None,
        headers: dict[str, str] | None = None,
    ) -> None:
        self.message = message or self.default_message
        self.errors = errors
        self.headers = headers
        super().__init__(self.message)

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "success": False,
            "message": self.message,
            "code": self.code,
        }
        if self.errors:
            payload["errors"] = self.errors
        return payload


class ValidationFailed(AppError):
    status_code = 400
    code = "validation_failed"
    default_message = "Validation failed"


class Unavailable(ValidationFailed):
    code = "item_unavailable"
    default_message = "Menu item is not available"


class AmountMismatch(AppError):
    status_code = 400
    code = "amount_mismatch"
    default_message = "Payment amount does not match the order total"


class Unauthenticated(AppError):
    status_code = 401
    code = "unauthenticated"
    default_message = "Authentication required"

    def __init__(self, message: str | None = None, **kwargs: Any) -> None:
        kwargs.setdefault("headers", {"WWW-Authenticate": "Bearer"})
        super().__init__(message, **kwargs)


class TokenExpired(Unauthenticated):
    code = "token_expired"
    default_message = "Token has expired"


class TokenInvalid(Unauthenticated):
    code = "token_invalid"
    default_message = "Invalid token"


class Forbidden(AppError):
    status_code = 403
    code = "forbidden"
    default_message = "Not allowed to access this resource"


class NotFound(AppError):
    status_code = 404
    code = "not_found"
    default_message = "Resource not found"


class Conflict(AppError):
    status_code = 409
    code = "conflict"
    default_message = "Request conflicts with the current state"


class InvalidTransition(Conflict):
    code = "invalid_transition"
    default_message = "Status transition is not allowed"


class ConcurrentModification(Conflict):
    code = "concurrent_modification"
    default_message = "Order was modified by another request, retry"


class RateLimited(AppError):
    status_code = 429
    code = "rate_limited"
    default_message = "Too many requests, please try again later"

    def __init__(self, message: str | None = None, *, retry_after: int, **kwargs: Any) -> None:
        self.retry_after = retry_after
        kwargs.setdefault("headers", {"Retry-After": str(retry_after)})
        super().__init__(message, **kwargs)

    def to_dict(self) -> dict[str, Any]:
        payload = super().to_dict()
        payload["retry_after"] = self.retry_after
        return payload


class PaymentDeclined(AppError):
    status_code = 400
    code = "payment_declined"
    default_message = "Payment was declined"


class PaymentGatewayError(AppError):
    status_code = 502
    code = "payment_gateway_error"
    default_message = "Payment gateway request failed"


class GatewayNotConfigured(PaymentGatewayError):
    status_code = 503
    code = "gateway_not_configured"
    default_message = "Payment gateway is not configured"


class InternalError(AppError):
    pass
