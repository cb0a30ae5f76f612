from __future__ import annotations

import json
import logging

from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

from swaadgharka.core.config import (
    ACTION_RATE_WINDOW_SECONDS,
    CURRENCY,
    PAYMENT_RATE_LIMIT,
    RAZORPAY_WEBHOOK_SECRET,
)
from swaadgharka.core.database import get_db
from swaadgharka.core.errors import NotFound, PaymentDeclined, ValidationFailed
from swaadgharka.deps import get_current_user, get_payment_gateways, rate_limit
from swaadgharka.models.user import User
from swaadgharka.payments.base import SUCCEEDED
from swaadgharka.payments.razorpay_gateway import RazorpayGateway
from swaadgharka.payments.service import GatewayRegistry
from swaadgharka.schemas.payments import (
    CodConfirmRequest,
    ConfirmRequest,
    CreateIntentRequest,
    RazorpayVerifyRequest,
    RefundRequest,
    UpiProcessRequest,
)
from swaadgharka.services import order_lifecycle, payments

router = APIRouter(prefix="/api/payments", tags=["payments"])

logger = logging.getLogger(__name__)

_payment_limit = rate_limit("payment", limit=PAYMENT_RATE_LIMIT, window_seconds=ACTION_RATE_WINDOW_SECONDS)


@router.post("/razorpay/verify")
def razorpay_verify(
    payload: RazorpayVerifyRequest,
    user: User = Depends(get_current_user),
    _limit: None = Depends(_payment_limit),
    registry: GatewayRegistry = Depends(get_payment_gateways),
    db: Session = Depends(get_db),
):
    """Checkout callback: the signature proves Razorpay issued this payment for our order."""
    order = order_lifecycle.get_order_for_actor(db, payload.order_id, user)
    gateway = registry.get("razorpay")
    if not isinstance(gateway, RazorpayGateway):
        raise ValidationFailed("Razorpay checkout verification is not available")
    if order.transaction_id != payload.razorpay_order_id and order.payment_status != "completed":
        raise ValidationFailed("Razorpay order does not belong to this order")
    if not gateway.verify_checkout_signature(
        payload.razorpay_order_id, payload.razorpay_payment_id, payload.razorpay_signature
    ):
        logger.warning("Invalid Razorpay checkout signature order_id=%s", order.id, extra={"order_id": order.id})
        raise ValidationFailed("Invalid payment signature")

    order = payments.confirm(
        db,
        order,
        actor=user,
        reference=payload.razorpay_payment_id,
        registry=registry,
    )
    return {
        "success": True,
        "message": "Payment verified successfully",
        "data": payments.payment_summary(order),
    }


@router.post("/upi/process")
def upi_process(
    payload: UpiProcessRequest,
    user: User = Depends(get_current_user),
    _limit: None = Depends(_payment_limit),
    registry: GatewayRegistry = Depends(get_payment_gateways),
    db: Session = Depends(get_db),
):
    """One-shot simulated UPI payment; only exists when the simulator is registered."""
    order = order_lifecycle.get_order(db, payload.order_id)
    intent = payments.initiate(
        db,
        order,
        actor=user,
        gateway_name="upi-simulator",
        amount=payload.amount,
        registry=registry,
    )
    order = payments.confirm(db, order, actor=user, reference=intent.reference, registry=registry)
    if order.payment_status != "completed":
        raise PaymentDeclined("UPI payment failed, please try again")
    return {
        "success": True,
        "message": "UPI payment successful",
        "data": payments.payment_summary(order),
    }


@router.post("/cod/confirm")
def cod_confirm(
    payload: CodConfirmRequest,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    order = order_lifecycle.get_order(db, payload.order_id)
    order = payments.confirm_cod(db, order, actor=user)
    return {
        "success": True,
        "message": "Cash on delivery order confirmed",
        "data": payments.payment_summary(order),
    }


@router.post("/refund")
def refund(
    payload: RefundRequest,
    user: User = Depends(get_current_user),
    _limit: None = Depends(_payment_limit),
    registry: GatewayRegistry = Depends(get_payment_gateways),
    db: Session = Depends(get_db),
):
    order = order_lifecycle.get_order(db, payload.order_id)
    order = order_lifecycle.refund_order(
        db,
        order,
        actor=user,
        amount=payload.amount,
        reason=payload.reason,
        registry=registry,
    )
    return {
        "success": True,
        "message": "Refund processed successfully",
        "data": payments.payment_summary(order),
    }


@router.post("/webhooks/razorpay")
async def razorpay_webhook(
    request: Request,
    registry: GatewayRegistry = Depends(get_payment_gateways),
    db: Session = Depends(get_db),
):
    raw_body = await request.body()
    signature = request.headers.get("X-Razorpay-Signature")
    if not payments.verify_signature(raw_body, signature, RAZORPAY_WEBHOOK_SECRET):
        logger.warning("Rejected Razorpay webhook with invalid signature")
        raise ValidationFailed("Invalid webhook signature")

    try:
        event = json.loads(raw_body)
    except ValueError as exc:
        raise ValidationFailed("Webhook body is not valid JSON") from exc
    if not isinstance(event, dict):
        raise ValidationFailed("Webhook body must be a JSON object")

    try:
        order = payments.apply_webhook_event(db, event, registry=registry)
    except NotFound:
        # Acknowledge so the provider stops retrying events for unknown orders
        logger.info("Webhook for unknown payment event=%s", event.get("event"))
        return {"success": True, "status": "ignored"}

    if order is None:
        return {"success": True, "status": "ignored"}
    return {"success": True, "status": "processed", "data": payments.payment_summary(order)}


@router.get("/status/{order_id}")
def payment_status(order_id: int, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    order = order_lifecycle.get_order_for_actor(db, order_id, user)
    return {"success": True, "data": payments.payment_summary(order)}


@router.post("/{gateway}/create-intent")
def create_intent(
    gateway: str,
    payload: CreateIntentRequest,
    user: User = Depends(get_current_user),
    _limit: None = Depends(_payment_limit),
    registry: GatewayRegistry = Depends(get_payment_gateways),
    db: Session = Depends(get_db),
):
    order = order_lifecycle.get_order(db, payload.order_id)
    intent = payments.initiate(
        db,
        order,
        actor=user,
        gateway_name=gateway,
        amount=payload.amount,
        registry=registry,
        currency=payload.currency,
    )
    return {
        "success": True,
        "data": {
            "gateway": order.payment_gateway,
            "reference": intent.reference,
            "client_token": intent.client_token,
            "status": intent.status,
            "amount": order.total,
            "currency": CURRENCY,
            **intent.extra,
        },
    }


@router.post("/{gateway}/confirm")
def confirm_payment(
    gateway: str,
    payload: ConfirmRequest,
    user: User = Depends(get_current_user),
    _limit: None = Depends(_payment_limit),
    registry: GatewayRegistry = Depends(get_payment_gateways),
    db: Session = Depends(get_db),
):
    order = order_lifecycle.get_order(db, payload.order_id)
    if order.payment_gateway and order.payment_gateway != gateway.strip().lower():
        raise ValidationFailed(f"Order payment was started with '{order.payment_gateway}'")
    order = payments.confirm(db, order, actor=user, reference=payload.reference, registry=registry)
    succeeded = order.payment_status == "completed"
    return {
        "success": True,
        "message": "Payment confirmed" if succeeded else f"Payment is {order.payment_status}",
        "data": {
            "result": SUCCEEDED if succeeded else order.payment_status,
            **payments.payment_summary(order),
        },
    }
