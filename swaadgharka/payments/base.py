from __future__ import annotations

import hashlib
import hmac
from dataclasses import dataclass, field
from typing import Any, Protocol

# Normalized outcome of a gateway payment lookup
SUCCEEDED = "succeeded"
PENDING = "pending"
FAILED = "failed"


@dataclass
class GatewayIntent:
    reference: str
    client_token: str | None
    status: str = "created"
    extra: dict[str, Any] = field(default_factory=dict)


@dataclass
class GatewayConfirmation:
    status: str  # succeeded | pending | failed
    reference: str
    paid_amount: int | None = None
    gateway_status: str | None = None
    currency: str | None = None
    # Intent/order id the payment belongs to, when the gateway reports it
    intent_reference: str | None = None


@dataclass
class GatewayRefund:
    refund_id: str
    status: str = "processed"


class PaymentGateway(Protocol):
    name: str
    supported_methods: frozenset[str]

    def create_intent(self, *, amount: int, currency: str, metadata: dict[str, Any]) -> GatewayIntent:
        ...

    def confirm(self, reference: str) -> GatewayConfirmation:
        ...

    def refund(self, reference: str, *, amount: int, reason: str | None = None) -> GatewayRefund:
        ...


def _as_bytes(value: str | bytes) -> bytes:
    return value if isinstance(value, bytes) else value.encode("utf-8")


def compute_signature(payload: str | bytes, secret: str) -> str:
    return hmac.new(_as_bytes(secret), _as_bytes(payload), hashlib.sha256).hexdigest()


def verify_signature(payload: str | bytes | None, signature: str | None, secret: str | None) -> bool:
    """HMAC-SHA256 check for externally pushed events. Missing input never verifies."""
    if not payload or not signature or not secret:
        return False
    expected = compute_signature(payload, secret)
    return hmac.compare_digest(expected, signature.strip().lower())


def to_minor_units(amount: int) -> int:
    return int(amount) * 100


def from_minor_units(amount: Any) -> int | None:
    if amount is None:
        return None
    return int(amount) // 100
