from __future__ import annotations

import logging
from datetime import datetime
from typing import Any

from sqlalchemy.orm import Session

from swaadgharka.core.config import CURRENCY
from swaadgharka.core.errors import AmountMismatch, Conflict, NotFound, PaymentGatewayError, ValidationFailed
from swaadgharka.core.clock import utcnow
from swaadgharka.models.order import Order
from swaadgharka.payments.base import (
    FAILED,
    PENDING,
    SUCCEEDED,
    GatewayConfirmation,
    GatewayIntent,
    verify_signature,
)
from swaadgharka.payments.service import GatewayRegistry
from swaadgharka.services.access_policy import AccessPolicy
from swaadgharka.services.order_lifecycle import commit_order, record_status

logger = logging.getLogger(__name__)

__all__ = [
    "apply_gateway_result",
    "apply_webhook_event",
    "confirm",
    "confirm_cod",
    "initiate",
    "payment_summary",
    "verify_signature",
]


def initiate(
    db: Session,
    order: Order,
    *,
    actor: Any,
    gateway_name: str,
    amount: int,
    registry: GatewayRegistry,
    currency: str = CURRENCY,
) -> GatewayIntent:
    """Open a payment with the gateway; the declared amount must equal the order total."""
    AccessPolicy.ensure_can_mutate(actor, order)

    if order.payment_method == "cod":
        raise ValidationFailed("Cash on delivery orders do not use an online gateway")
    if order.payment_status == "completed":
        raise Conflict("Order is already paid")
    if order.status != "placed":
        raise Conflict(f"Payments can only be started for placed orders (status '{order.status}')")
    if currency.strip().lower() != CURRENCY:
        raise ValidationFailed(f"Payments are accepted in {CURRENCY.upper()} only")
    if int(amount) != int(order.total):
        logger.warning(
            "Payment amount mismatch order_id=%s declared=%s total=%s",
            order.id,
            amount,
            order.total,
            extra={"order_id": order.id},
        )
        raise AmountMismatch(f"Amount {amount} does not match order total {order.total}")

    gateway = registry.get_for_method(gateway_name, order.payment_method)
    intent = gateway.create_intent(
        amount=order.total,
        currency=CURRENCY,
        metadata={
            "order_id": order.id,
            "order_number": order.order_number,
            "customer_id": order.customer_id,
        },
    )

    order.payment_gateway = gateway.name
    order.transaction_id = intent.reference
    order.payment_status = "processing"
    commit_order(db)
    db.refresh(order)
    logger.info(
        "Payment initiated order_id=%s reference=%s",
        order.id,
        intent.reference,
        extra={"order_id": order.id, "gateway": gateway.name},
    )
    return intent


def _reject_settlement(db: Session, order: Order, paid_amount: int, currency: str) -> None:
    order.payment_status = "failed"
    commit_order(db)
    db.refresh(order)
    logger.error(
        "Gateway settlement does not match order order_id=%s paid=%s %s total=%s %s",
        order.id,
        paid_amount,
        currency,
        order.total,
        CURRENCY,
        extra={"order_id": order.id, "gateway": order.payment_gateway},
    )
    raise AmountMismatch(
        f"Gateway reported {paid_amount} {currency.upper()} for an order total of {order.total} {CURRENCY.upper()}"
    )


def _settle_cancelled_order(
    db: Session,
    order: Order,
    confirmation: GatewayConfirmation,
    paid_amount: int,
    *,
    registry: GatewayRegistry | None,
    now: datetime,
) -> Order:
    """Money arrived after the customer cancelled: record it and hand it straight back."""
    order.paid_amount = paid_amount
    order.payment_date = now
    order.transaction_id = confirmation.reference
    order.payment_status = "completed"

    refund = None
    if registry is not None and order.payment_gateway:
        try:
            refund = registry.get(order.payment_gateway).refund(
                confirmation.reference,
                amount=paid_amount,
                reason="Order was cancelled before the payment completed",
            )
        except PaymentGatewayError:
            logger.exception(
                "Automatic refund failed for cancelled order order_id=%s",
                order.id,
                extra={"order_id": order.id, "gateway": order.payment_gateway},
            )

    if refund is None:
        # refund_processed stays False: an admin refunds it with refund_order
        commit_order(db)
        db.refresh(order)
        logger.error(
            "Cancelled order captured a payment and needs a refund order_id=%s paid=%s",
            order.id,
            paid_amount,
            extra={"order_id": order.id, "gateway": order.payment_gateway},
        )
        return order

    order.refund_id = refund.refund_id
    order.refund_amount = paid_amount
    order.refund_date = now
    order.payment_status = "refunded"
    order.refund_processed = True
    commit_order(db)
    db.refresh(order)
    logger.warning(
        "Refunded payment captured after cancellation order_id=%s refund_id=%s",
        order.id,
        refund.refund_id,
        extra={"order_id": order.id, "gateway": order.payment_gateway},
    )
    return order


def apply_gateway_result(
    db: Session,
    order: Order,
    confirmation: GatewayConfirmation,
    *,
    actor_id: int | None,
    registry: GatewayRegistry | None = None,
    now: datetime | None = None,
) -> Order:
    """Map a normalized gateway outcome onto the order's payment state.

    A success is only accepted when the gateway settled exactly the order
    total in the configured currency; anything else fails the payment with
    ``AmountMismatch`` and leaves the order status alone. A success for an
    order that was cancelled meanwhile is refunded through ``registry``.
    """
    now = now or utcnow()
    if order.payment_status == "completed":
        return order
    if order.payment_status == "refunded":
        raise Conflict("Payment has already been refunded")

    if confirmation.status == SUCCEEDED:
        paid_amount = confirmation.paid_amount if confirmation.paid_amount is not None else order.total
        currency = (confirmation.currency or CURRENCY).strip().lower()
        if paid_amount != order.total or currency != CURRENCY:
            _reject_settlement(db, order, paid_amount, currency)
        if order.status == "cancelled":
            return _settle_cancelled_order(db, order, confirmation, paid_amount, registry=registry, now=now)

        order.payment_status = "completed"
        order.paid_amount = paid_amount
        order.payment_date = now
        order.transaction_id = confirmation.reference
        if order.status == "placed":
            record_status(
                order,
                "confirmed",
                actor_id=actor_id,
                notes=f"Payment received via {order.payment_gateway or order.payment_method}",
                now=now,
            )
    elif confirmation.status == PENDING:
        order.payment_status = "processing"
    else:
        order.payment_status = "failed"

    commit_order(db)
    db.refresh(order)
    logger.info(
        "Payment result applied order_id=%s result=%s gateway_status=%s",
        order.id,
        confirmation.status,
        confirmation.gateway_status,
        extra={"order_id": order.id, "gateway": order.payment_gateway},
    )
    return order


def confirm(
    db: Session,
    order: Order,
    *,
    actor: Any,
    reference: str,
    registry: GatewayRegistry,
    now: datetime | None = None,
) -> Order:
    """Ask the gateway for the authoritative outcome of ``reference``."""
    AccessPolicy.ensure_can_mutate(actor, order)

    if order.payment_status == "completed":
        return order
    if not order.payment_gateway or not order.transaction_id:
        raise ValidationFailed("Payment has not been initiated for this order")

    gateway = registry.get(order.payment_gateway)
    confirmation = gateway.confirm(reference)
    if confirmation.intent_reference and confirmation.intent_reference != order.transaction_id:
        logger.warning(
            "Payment reference belongs to another intent order_id=%s",
            order.id,
            extra={"order_id": order.id, "gateway": gateway.name},
        )
        raise ValidationFailed("Payment reference does not belong to this order")

    return apply_gateway_result(db, order, confirmation, actor_id=actor.id, registry=registry, now=now)


def confirm_cod(db: Session, order: Order, *, actor: Any, now: datetime | None = None) -> Order:
    """Accept a cash-on-delivery order; money is collected at the door."""
    AccessPolicy.ensure_can_mutate(actor, order)
    now = now or utcnow()

    if order.payment_method != "cod":
        raise ValidationFailed("Order is not a cash on delivery order")
    if order.status != "placed":
        raise Conflict(f"Only placed orders can be confirmed (status '{order.status}')")

    order.payment_status = "pending"
    record_status(order, "confirmed", actor_id=actor.id, notes="Cash on delivery order confirmed", now=now)
    commit_order(db)
    db.refresh(order)
    logger.info("COD order confirmed order_id=%s", order.id, extra={"order_id": order.id})
    return order


_RAZORPAY_EVENT_STATUS = {
    "payment.captured": SUCCEEDED,
    "payment.authorized": PENDING,
    "payment.failed": FAILED,
}


def apply_webhook_event(
    db: Session,
    event: dict[str, Any],
    *,
    registry: GatewayRegistry | None = None,
    now: datetime | None = None,
) -> Order | None:
    """Apply a signature-verified Razorpay webhook event. Unknown events are ignored."""
    event_name = event.get("event")
    status = _RAZORPAY_EVENT_STATUS.get(event_name or "")
    if status is None:
        logger.info("Ignoring webhook event=%s", event_name)
        return None

    entity = (((event.get("payload") or {}).get("payment") or {}).get("entity")) or {}
    gateway_order_id = entity.get("order_id")
    payment_id = entity.get("id")
    if not gateway_order_id or not payment_id:
        raise ValidationFailed("Webhook payload has no payment reference")

    order = (
        db.query(Order)
        .filter(Order.payment_gateway == "razorpay", Order.transaction_id.in_([gateway_order_id, payment_id]))
        .first()
    )
    if not order:
        raise NotFound("No order for this payment")

    amount = entity.get("amount")
    confirmation = GatewayConfirmation(
        status=status,
        reference=payment_id,
        paid_amount=int(amount) // 100 if amount is not None and status == SUCCEEDED else None,
        gateway_status=entity.get("status"),
        currency=entity.get("currency"),
        intent_reference=gateway_order_id,
    )
    return apply_gateway_result(db, order, confirmation, actor_id=None, registry=registry, now=now)


def payment_summary(order: Order) -> dict[str, Any]:
    return {
        "order_id": order.id,
        "order_number": order.order_number,
        "payment_method": order.payment_method,
        "payment_status": order.payment_status,
        "gateway": order.payment_gateway,
        "transaction_id": order.transaction_id,
        "paid_amount": order.paid_amount,
        "payment_date": order.payment_date.isoformat() if order.payment_date else None,
        "refund_id": order.refund_id,
        "refund_amount": order.refund_amount,
        "refund_date": order.refund_date.isoformat() if order.refund_date else None,
        "total": order.total,
        "order_status": order.status,
    }
