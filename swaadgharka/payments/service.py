from __future__ import annotations

import logging
from typing import Iterable

from swaadgharka.core.config import (
    IS_PROD,
    PAYMENT_SIMULATOR_ENABLED,
    RAZORPAY_KEY_ID,
    RAZORPAY_KEY_SECRET,
    STRIPE_SECRET_KEY,
)
from swaadgharka.core.errors import GatewayNotConfigured, ValidationFailed
from swaadgharka.payments.base import PaymentGateway
from swaadgharka.payments.razorpay_gateway import RazorpayGateway
from swaadgharka.payments.simulated_upi import SimulatedUpiGateway
from swaadgharka.payments.stripe_gateway import StripeGateway

logger = logging.getLogger(__name__)


class GatewayRegistry:
    """Maps gateway names to configured adapters."""

    def __init__(self, gateways: Iterable[PaymentGateway] = ()) -> None:
        self._gateways: dict[str, PaymentGateway] = {}
        for gateway in gateways:
            self.register(gateway)

    def register(self, gateway: PaymentGateway) -> None:
        self._gateways[gateway.name] = gateway

    def names(self) -> list[str]:
        return sorted(self._gateways)

    def get(self, name: str | None) -> PaymentGateway:
        gateway = self._gateways.get((name or "").strip().lower())
        if gateway is None:
            raise GatewayNotConfigured(f"Payment gateway '{name}' is not configured")
        return gateway

    def get_for_method(self, name: str, method: str) -> PaymentGateway:
        gateway = self.get(name)
        if method not in gateway.supported_methods:
            raise ValidationFailed(f"Gateway '{gateway.name}' does not support payment method '{method}'")
        return gateway


def build_default_registry() -> GatewayRegistry:
    registry = GatewayRegistry()
    if STRIPE_SECRET_KEY:
        registry.register(StripeGateway(secret_key=STRIPE_SECRET_KEY))
    if RAZORPAY_KEY_ID and RAZORPAY_KEY_SECRET:
        registry.register(RazorpayGateway(key_id=RAZORPAY_KEY_ID, key_secret=RAZORPAY_KEY_SECRET))
    if PAYMENT_SIMULATOR_ENABLED and not IS_PROD:
        logger.warning("UPI payment simulator enabled; outcomes are random")
        registry.register(SimulatedUpiGateway())
    logger.info("Payment gateways configured: %s", ",".join(registry.names()) or "none")
    return registry


_registry: GatewayRegistry | None = None


def get_gateway_registry() -> GatewayRegistry:
    global _registry
    if _registry is None:
        _registry = build_default_registry()
    return _registry
