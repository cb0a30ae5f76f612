import json
import random

import httpx
import pytest

from swaadgharka.core.errors import GatewayNotConfigured, PaymentGatewayError, ValidationFailed
from swaadgharka.payments import service as payment_service
from swaadgharka.payments.base import FAILED, PENDING, SUCCEEDED
from swaadgharka.payments.razorpay_gateway import RazorpayGateway
from swaadgharka.payments.service import GatewayRegistry
from swaadgharka.payments.simulated_upi import SimulatedUpiGateway
from swaadgharka.payments.stripe_gateway import StripeGateway


class Recorder:
    """MockTransport handler that replays queued responses and keeps requests."""

    def __init__(self, *responses):
        self.responses = list(responses)
        self.requests = []

    def __call__(self, request):
        self.requests.append(request)
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response


def _stripe(recorder):
    return StripeGateway(secret_key="sk_test", base_url="https://stripe.test/v1", transport=httpx.MockTransport(recorder))


def _razorpay(recorder):
    return RazorpayGateway(
        key_id="rzp_test",
        key_secret="rzp_secret",
        base_url="https://razorpay.test/v1",
        transport=httpx.MockTransport(recorder),
    )


def test_stripe_create_intent_sends_minor_units_and_metadata():
    recorder = Recorder(httpx.Response(200, json={"id": "pi_1", "client_secret": "pi_1_secret", "status": "requires_payment_method"}))

    intent = _stripe(recorder).create_intent(amount=217, currency="inr", metadata={"order_id": 7})

    request = recorder.requests[0]
    form = dict(httpx.QueryParams(request.content.decode()))
    assert request.method == "POST"
    assert request.url.path == "/v1/payment_intents"
    assert form["amount"] == "21700"
    assert form["metadata[order_id]"] == "7"
    assert intent.reference == "pi_1"
    assert intent.client_token == "pi_1_secret"


@pytest.mark.parametrize(
    ("stripe_status", "expected", "paid"),
    [("succeeded", SUCCEEDED, 217), ("processing", PENDING, None), ("canceled", FAILED, None)],
)
def test_stripe_confirm_maps_statuses(stripe_status, expected, paid):
    recorder = Recorder(httpx.Response(200, json={"id": "pi_1", "status": stripe_status, "amount_received": 21700}))

    confirmation = _stripe(recorder).confirm("pi_1")

    assert confirmation.status == expected
    assert confirmation.paid_amount == paid
    assert confirmation.intent_reference == "pi_1"


def test_reads_are_retried_after_server_errors():
    recorder = Recorder(
        httpx.Response(503, text="busy"),
        httpx.ConnectError("reset"),
        httpx.Response(200, json={"id": "pi_1", "status": "succeeded", "amount_received": 5000}),
    )

    confirmation = _stripe(recorder).confirm("pi_1")

    assert confirmation.status == SUCCEEDED
    assert len(recorder.requests) == 3


def test_reads_give_up_after_the_retry_budget():
    recorder = Recorder(*(httpx.ReadTimeout("slow") for _ in range(3)))

    with pytest.raises(PaymentGatewayError):
        _stripe(recorder).confirm("pi_1")
    assert len(recorder.requests) == 3


def test_writes_are_sent_once():
    recorder = Recorder(httpx.Response(500, text="boom"), httpx.Response(200, json={"id": "re_1"}))

    with pytest.raises(PaymentGatewayError):
        _stripe(recorder).refund("pi_1", amount=100)
    assert len(recorder.requests) == 1


def test_client_errors_are_not_retried():
    recorder = Recorder(httpx.Response(404, json={"error": {"message": "No such payment_intent"}}))

    with pytest.raises(PaymentGatewayError):
        _stripe(recorder).confirm("pi_missing")
    assert len(recorder.requests) == 1


def test_razorpay_order_confirm_and_refund():
    recorder = Recorder(
        httpx.Response(200, json={"id": "order_1", "status": "created"}),
        httpx.Response(
            200,
            json={"id": "pay_1", "order_id": "order_1", "status": "captured", "amount": 21700, "currency": "INR"},
        ),
        httpx.Response(200, json={"id": "rfnd_1", "status": "processed"}),
    )
    gateway = _razorpay(recorder)

    intent = gateway.create_intent(amount=217, currency="inr", metadata={"order_number": "SGK261019001"})
    confirmation = gateway.confirm("pay_1")
    refund = gateway.refund("pay_1", amount=100, reason="Cold food")

    create_body = json.loads(recorder.requests[0].content)
    assert create_body["amount"] == 21700
    assert create_body["currency"] == "INR"
    assert create_body["receipt"] == "SGK261019001"
    assert intent.extra == {"key_id": "rzp_test"}
    assert confirmation.status == SUCCEEDED
    assert confirmation.paid_amount == 217
    assert confirmation.intent_reference == "order_1"
    assert confirmation.currency == "INR"
    assert recorder.requests[2].url.path == "/v1/payments/pay_1/refund"
    assert json.loads(recorder.requests[2].content)["amount"] == 10000
    assert refund.refund_id == "rfnd_1"


def test_razorpay_checkout_signature():
    gateway = _razorpay(Recorder())
    signature = gateway.checkout_signature("order_1", "pay_1")

    assert gateway.verify_checkout_signature("order_1", "pay_1", signature) is True
    assert gateway.verify_checkout_signature("order_1", "pay_2", signature) is False


def test_simulator_outcome_follows_the_rng():
    gateway = SimulatedUpiGateway(success_rate=0.5, rng=random.Random(7))
    references = [gateway.create_intent(amount=217, currency="inr", metadata={}).reference for _ in range(20)]

    confirmations = [gateway.confirm(reference) for reference in references]

    assert {confirmation.status for confirmation in confirmations} == {SUCCEEDED, FAILED}
    assert {c.paid_amount for c in confirmations if c.status == SUCCEEDED} == {217}
    assert {c.currency for c in confirmations} == {"inr"}


def test_simulator_settles_each_intent_once():
    gateway = SimulatedUpiGateway(success_rate=1.0)
    intent = gateway.create_intent(amount=217, currency="inr", metadata={})

    assert gateway.confirm(intent.reference).status == SUCCEEDED
    assert gateway._intents == {}

    replay = gateway.confirm(intent.reference)
    assert replay.status == FAILED
    assert replay.paid_amount is None
    assert gateway.confirm("UPI_unknown").status == FAILED


def test_registry_lookup_and_method_support():
    registry = GatewayRegistry([SimulatedUpiGateway()])

    assert registry.get(" UPI-Simulator ").name == "upi-simulator"
    with pytest.raises(GatewayNotConfigured):
        registry.get("stripe")
    with pytest.raises(ValidationFailed):
        registry.get_for_method("upi-simulator", "card")


def test_default_registry_only_registers_configured_gateways(monkeypatch):
    monkeypatch.setattr(payment_service, "STRIPE_SECRET_KEY", "sk_test")
    monkeypatch.setattr(payment_service, "RAZORPAY_KEY_ID", "")
    monkeypatch.setattr(payment_service, "RAZORPAY_KEY_SECRET", "")
    monkeypatch.setattr(payment_service, "PAYMENT_SIMULATOR_ENABLED", True)
    monkeypatch.setattr(payment_service, "IS_PROD", False)

    assert payment_service.build_default_registry().names() == ["stripe", "upi-simulator"]

    monkeypatch.setattr(payment_service, "IS_PROD", True)
    assert payment_service.build_default_registry().names() == ["stripe"]
