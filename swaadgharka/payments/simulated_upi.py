from __future__ import annotations

import random
import time
import uuid
from typing import Any

from swaadgharka.payments.base import FAILED, SUCCEEDED, GatewayConfirmation, GatewayIntent, GatewayRefund


class SimulatedUpiGateway:
    """Demo-only UPI flow with a random outcome.

    Registered only when PAYMENT_SIMULATOR_ENABLED is set outside
    production; see ``swaadgharka.payments.service``.
    """

    name = "upi-simulator"
    supported_methods = frozenset({"upi"})

    def __init__(self, *, success_rate: float = 0.9, rng: random.Random | None = None) -> None:
        self.success_rate = success_rate
        self._rng = rng or random.Random()
        self._intents: dict[str, tuple[int, str]] = {}

    def create_intent(self, *, amount: int, currency: str, metadata: dict[str, Any]) -> GatewayIntent:
        reference = f"UPI_{int(time.time() * 1000)}_{uuid.uuid4().hex[:8]}"
        self._intents[reference] = (amount, currency)
        return GatewayIntent(reference=reference, client_token=reference, status="created")

    def confirm(self, reference: str) -> GatewayConfirmation:
        # An intent is settled once; a retry needs a new intent
        amount, currency = self._intents.pop(reference, (None, None))
        succeeded = amount is not None and self._rng.random() < self.success_rate
        return GatewayConfirmation(
            status=SUCCEEDED if succeeded else FAILED,
            reference=reference,
            paid_amount=amount if succeeded else None,
            gateway_status="success" if succeeded else "declined",
            currency=currency,
            intent_reference=reference,
        )

    def refund(self, reference: str, *, amount: int, reason: str | None = None) -> GatewayRefund:
        return GatewayRefund(refund_id=f"UPIREF_{int(time.time() * 1000)}_{uuid.uuid4().hex[:8]}")
