from __future__ import annotations

from typing import Any

import httpx

from swaadgharka.core.config import PAYMENT_GATEWAY_TIMEOUT_SECONDS, RAZORPAY_API_BASE
from swaadgharka.payments.base import (
    FAILED,
    PENDING,
    SUCCEEDED,
    GatewayConfirmation,
    GatewayIntent,
    GatewayRefund,
    compute_signature,
    from_minor_units,
    to_minor_units,
    verify_signature,
)
from swaadgharka.payments.http_gateway import HttpGateway


class RazorpayGateway(HttpGateway):
    """UPI, wallet and card payments through Razorpay Orders/Payments."""

    name = "razorpay"
    supported_methods = frozenset({"upi", "wallet", "card"})

    def __init__(
        self,
        *,
        key_id: str,
        key_secret: str,
        base_url: str = RAZORPAY_API_BASE,
        timeout: float = PAYMENT_GATEWAY_TIMEOUT_SECONDS,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        super().__init__(base_url=base_url, auth=(key_id, key_secret), timeout=timeout, transport=transport)
        self.key_id = key_id
        self._key_secret = key_secret

    def create_intent(self, *, amount: int, currency: str, metadata: dict[str, Any]) -> GatewayIntent:
        body = {
            "amount": to_minor_units(amount),
            "currency": currency.upper(),
            "receipt": str(metadata.get("order_number", "")),
            "notes": {key: str(value) for key, value in metadata.items()},
        }
        data = self._request("POST", "/orders", json=body)
        # Checkout opens with the gateway order id plus the public key id
        return GatewayIntent(
            reference=data["id"],
            client_token=data["id"],
            status=data.get("status", "created"),
            extra={"key_id": self.key_id},
        )

    def confirm(self, reference: str) -> GatewayConfirmation:
        data = self._request("GET", f"/payments/{reference}")
        gateway_status = data.get("status")
        if gateway_status == "captured":
            status = SUCCEEDED
        elif gateway_status in {"created", "authorized"}:
            status = PENDING
        else:
            status = FAILED
        return GatewayConfirmation(
            status=status,
            reference=data.get("id", reference),
            paid_amount=from_minor_units(data.get("amount")) if status == SUCCEEDED else None,
            gateway_status=gateway_status,
            currency=data.get("currency"),
            intent_reference=data.get("order_id"),
        )

    def refund(self, reference: str, *, amount: int, reason: str | None = None) -> GatewayRefund:
        body: dict[str, Any] = {"amount": to_minor_units(amount)}
        if reason:
            body["notes"] = {"reason": reason}
        data = self._request("POST", f"/payments/{reference}/refund", json=body)
        return GatewayRefund(refund_id=data["id"], status=data.get("status", "processed"))

    def checkout_signature(self, gateway_order_id: str, payment_id: str) -> str:
        return compute_signature(f"{gateway_order_id}|{payment_id}", self._key_secret)

    def verify_checkout_signature(self, gateway_order_id: str, payment_id: str, signature: str) -> bool:
        return verify_signature(f"{gateway_order_id}|{payment_id}", signature, self._key_secret)
