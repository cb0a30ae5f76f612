from __future__ import annotations

from typing import Any

import httpx

from swaadgharka.core.config import PAYMENT_GATEWAY_TIMEOUT_SECONDS, STRIPE_API_BASE
from swaadgharka.payments.base import (
    FAILED,
    PENDING,
    SUCCEEDED,
    GatewayConfirmation,
    GatewayIntent,
    GatewayRefund,
    from_minor_units,
    to_minor_units,
)
from swaadgharka.payments.http_gateway import HttpGateway

_PENDING_STATUSES = {"processing", "requires_action", "requires_confirmation", "requires_capture"}


class StripeGateway(HttpGateway):
    """Card payments through Stripe PaymentIntents (form-encoded REST API)."""

    name = "stripe"
    supported_methods = frozenset({"card"})

    def __init__(
        self,
        *,
        secret_key: str,
        base_url: str = STRIPE_API_BASE,
        timeout: float = PAYMENT_GATEWAY_TIMEOUT_SECONDS,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        super().__init__(base_url=base_url, auth=(secret_key, ""), timeout=timeout, transport=transport)

    def create_intent(self, *, amount: int, currency: str, metadata: dict[str, Any]) -> GatewayIntent:
        form = {
            "amount": str(to_minor_units(amount)),
            "currency": currency,
            "automatic_payment_methods[enabled]": "true",
        }
        for key, value in metadata.items():
            form[f"metadata[{key}]"] = str(value)

        data = self._request("POST", "/payment_intents", data=form)
        return GatewayIntent(
            reference=data["id"],
            client_token=data.get("client_secret"),
            status=data.get("status", "created"),
        )

    def confirm(self, reference: str) -> GatewayConfirmation:
        data = self._request("GET", f"/payment_intents/{reference}")
        gateway_status = data.get("status")
        if gateway_status == "succeeded":
            status = SUCCEEDED
        elif gateway_status in _PENDING_STATUSES:
            status = PENDING
        else:
            status = FAILED
        return GatewayConfirmation(
            status=status,
            reference=data.get("id", reference),
            paid_amount=from_minor_units(data.get("amount_received")) if status == SUCCEEDED else None,
            gateway_status=gateway_status,
            currency=data.get("currency"),
            intent_reference=data.get("id", reference),
        )

    def refund(self, reference: str, *, amount: int, reason: str | None = None) -> GatewayRefund:
        form = {
            "payment_intent": reference,
            "amount": str(to_minor_units(amount)),
            "reason": "requested_by_customer",
        }
        if reason:
            form["metadata[reason]"] = reason
        data = self._request("POST", "/refunds", data=form)
        return GatewayRefund(refund_id=data["id"], status=data.get("status", "processed"))
