"""Order lifecycle.

Every mutation of an order goes through this module: creation, admin status
changes, cancellation, review and refund. Each operation checks the actor
with :class:`AccessPolicy` first, then the state guard, then writes the new
state together with a status history entry so that the last history entry
always matches ``Order.status``.

Writes are protected by the ``orders.version`` column (optimistic
concurrency); a request that lost a race gets ``ConcurrentModification``.
"""

from __future__ import annotations

import logging
import time
import uuid
from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone
from typing import Any

from sqlalchemy import func
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, selectinload
from sqlalchemy.orm.exc import StaleDataError

from swaadgharka.core.choices import (
    CANCELLATION_REASONS,
    CUSTOMER_CANCELLATION_REASONS,
    FULFILLED_STATUSES,
    ORDER_STATUSES,
)
from swaadgharka.core.clock import BUSINESS_TZ, to_business_time, utcnow
from swaadgharka.core.config import (
    DELIVERY_MINUTES,
    MIN_PREPARATION_MINUTES,
    ORDER_NUMBER_PREFIX,
    ORDER_SEQUENCE_WIDTH,
)
from swaadgharka.core.errors import (
    ConcurrentModification,
    Conflict,
    InvalidTransition,
    NotFound,
    ValidationFailed,
)
from swaadgharka.models.menu_item_review import MenuItemReview
from swaadgharka.models.order import Order
from swaadgharka.models.order_item import OrderItem
from swaadgharka.models.order_sequence import OrderSequence
from swaadgharka.models.order_status_history import OrderStatusHistory
from swaadgharka.payments.service import GatewayRegistry
from swaadgharka.services import menu_catalog
from swaadgharka.services.access_policy import AccessPolicy
from swaadgharka.services.admin_audit import log_admin_action
from swaadgharka.services.pricing import PricingConfig, price_line, price_order

logger = logging.getLogger(__name__)

# Forward transitions an admin may apply with update_status.
# cancelled and refunded are reached only through cancel_order/refund_order.
STATUS_TRANSITIONS: dict[str, frozenset[str]] = {
    "placed": frozenset({"confirmed"}),
    "confirmed": frozenset({"preparing"}),
    "preparing": frozenset({"ready"}),
    "ready": frozenset({"out-for-delivery", "picked-up"}),
    "out-for-delivery": frozenset({"delivered"}),
    "delivered": frozenset(),
    "picked-up": frozenset(),
    "cancelled": frozenset(),
    "refunded": frozenset(),
}
DELIVERY_ONLY_STATUSES = frozenset({"out-for-delivery", "delivered"})
PICKUP_ONLY_STATUSES = frozenset({"picked-up"})

MAX_CUSTOMER_PAGE_SIZE = 50
MAX_ADMIN_PAGE_SIZE = 100

_UPSERT_INSERTS = {
    "postgresql": postgresql.insert,
    "sqlite": sqlite.insert,
}


@dataclass
class OrderPage:
    orders: list[Order]
    total: int
    page: int
    limit: int
    summary: dict[str, Any] | None = None


# =========================
# State machine helpers
# =========================
def allowed_next_statuses(order: Order) -> frozenset[str]:
    allowed = STATUS_TRANSITIONS.get(order.status, frozenset())
    if order.order_type == "pickup":
        return allowed - DELIVERY_ONLY_STATUSES
    return allowed - PICKUP_ONLY_STATUSES


def ensure_transition(order: Order, new_status: str) -> None:
    if new_status not in ORDER_STATUSES:
        raise ValidationFailed(f"Unknown order status: {new_status}")
    if new_status not in allowed_next_statuses(order):
        raise InvalidTransition(f"Cannot move order from '{order.status}' to '{new_status}'")


def record_status(
    order: Order,
    new_status: str,
    *,
    actor_id: int | None,
    notes: str | None = None,
    now: datetime | None = None,
) -> OrderStatusHistory:
    """Set the status and append the matching history entry."""
    entry = OrderStatusHistory(
        status=new_status,
        timestamp=now or utcnow(),
        actor_id=actor_id,
        notes=notes,
    )
    order.status = new_status
    order.status_history.append(entry)
    return entry


def commit_order(db: Session) -> None:
    try:
        db.commit()
    except StaleDataError as exc:
        db.rollback()
        logger.warning("Concurrent order modification detected")
        raise ConcurrentModification() from exc


def lock_order(db: Session, order: Order) -> Order:
    """Reload the order row under FOR UPDATE where the database supports it."""
    return (
        db.query(Order)
        .filter(Order.id == order.id)
        .with_for_update()
        .populate_existing()
        .one()
    )


# =========================
# Order numbers
# =========================
def next_daily_sequence(db: Session, day_key: str) -> int:
    """Advance the per-day counter with a single atomic upsert."""
    dialect = db.get_bind().dialect.name
    insert = _UPSERT_INSERTS.get(dialect)
    if insert is None:
        raise RuntimeError(f"Order sequences are not supported on '{dialect}'")

    stmt = insert(OrderSequence).values(day=day_key, last_value=1)
    stmt = stmt.on_conflict_do_update(
        index_elements=[OrderSequence.day],
        set_={"last_value": OrderSequence.last_value + 1},
    )
    db.execute(stmt)
    return int(db.query(OrderSequence.last_value).filter(OrderSequence.day == day_key).scalar())


def allocate_order_number(db: Session, now: datetime | None = None) -> str:
    local_now = to_business_time(now or utcnow())
    day_key = local_now.strftime("%y%m%d")
    sequence = next_daily_sequence(db, day_key)
    return f"{ORDER_NUMBER_PREFIX}{day_key}{sequence:0{ORDER_SEQUENCE_WIDTH}d}"


def estimate_delivery_time(now: datetime, preparation_minutes: int, order_type: str) -> datetime:
    minutes = max(preparation_minutes, MIN_PREPARATION_MINUTES)
    if order_type == "delivery":
        minutes += DELIVERY_MINUTES
    return now + timedelta(minutes=minutes)


# =========================
# Lookups
# =========================
def get_order(db: Session, order_id: int) -> Order:
    order = (
        db.query(Order)
        .options(selectinload(Order.items), selectinload(Order.status_history))
        .filter(Order.id == order_id, Order.active.is_(True))
        .first()
    )
    if not order:
        raise NotFound("Order not found")
    return order


def get_order_for_actor(db: Session, order_id: int, actor: Any) -> Order:
    order = get_order(db, order_id)
    AccessPolicy.ensure_can_view(actor, order)
    return order


def list_customer_orders(
    db: Session,
    customer: Any,
    *,
    status: str | None = None,
    page: int = 1,
    limit: int = 10,
) -> OrderPage:
    if limit < 1 or limit > MAX_CUSTOMER_PAGE_SIZE:
        raise ValidationFailed(f"Limit must be between 1 and {MAX_CUSTOMER_PAGE_SIZE}")
    query = db.query(Order).filter(Order.customer_id == customer.id, Order.active.is_(True))
    if status:
        query = query.filter(Order.status == status)
    total = query.count()
    orders = (
        query.options(selectinload(Order.items))
        .order_by(Order.created_at.desc(), Order.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    return OrderPage(orders=orders, total=total, page=page, limit=limit)


def list_all_orders(
    db: Session,
    actor: Any,
    *,
    status: str | None = None,
    day: date | None = None,
    page: int = 1,
    limit: int = 20,
) -> OrderPage:
    AccessPolicy.ensure_admin(actor)
    if limit < 1 or limit > MAX_ADMIN_PAGE_SIZE:
        raise ValidationFailed(f"Limit must be between 1 and {MAX_ADMIN_PAGE_SIZE}")

    filters = [Order.active.is_(True)]
    if status:
        filters.append(Order.status == status)
    if day:
        start = datetime(day.year, day.month, day.day, tzinfo=BUSINESS_TZ).astimezone(timezone.utc)
        filters.append(Order.created_at >= start)
        filters.append(Order.created_at < start + timedelta(days=1))

    total_orders, total_revenue, avg_value = (
        db.query(func.count(Order.id), func.coalesce(func.sum(Order.total), 0), func.avg(Order.total))
        .filter(*filters)
        .one()
    )
    orders = (
        db.query(Order)
        .options(selectinload(Order.items))
        .filter(*filters)
        .order_by(Order.created_at.desc(), Order.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    summary = {
        "total_orders": int(total_orders or 0),
        "total_revenue": int(total_revenue or 0),
        "avg_order_value": round(float(avg_value), 2) if avg_value is not None else 0,
    }
    return OrderPage(orders=orders, total=int(total_orders or 0), page=page, limit=limit, summary=summary)


# =========================
# Create
# =========================
def create_order(
    db: Session,
    *,
    customer: Any,
    payload: Any,
    pricing_config: PricingConfig | None = None,
    now: datetime | None = None,
) -> Order:
    """Place an order from validated request data.

    Prices come from the live menu, never from the request. Each referenced
    item is re-checked for availability and its daily counter is advanced
    atomically in the same transaction as the insert.
    """
    now = now or utcnow()
    if payload.order_type == "delivery" and payload.delivery_address is None:
        raise ValidationFailed(
            "Delivery address is required for delivery orders",
            errors=[{"field": "delivery_address", "message": "required for delivery"}],
        )

    snapshots: list[OrderItem] = []
    priced_lines = []
    longest_preparation = 0
    for line in payload.items:
        item = menu_catalog.check_availability(db, line.menu_item_id, line.quantity, now=now)
        priced = price_line(item.price, line.quantity, line.customizations)
        priced_lines.append(priced)
        longest_preparation = max(longest_preparation, int(item.preparation_time or 0))
        snapshots.append(
            OrderItem(
                menu_item_id=item.id,
                name=item.name,
                unit_price=item.price,
                quantity=line.quantity,
                customizations_json=[
                    {"name": c.name, "option": c.option, "extra_cost": c.extra_cost} for c in line.customizations
                ],
                special_instructions=line.special_instructions,
                line_total=priced.line_total,
            )
        )

    breakdown = price_order(priced_lines, payload.order_type, pricing_config)

    for line in payload.items:
        menu_catalog.increment_daily_orders(db, line.menu_item_id, line.quantity, now=now)

    address = payload.delivery_address.model_dump() if payload.delivery_address is not None else None
    scheduled = getattr(payload, "scheduled_delivery", None)
    order = Order(
        order_number=allocate_order_number(db, now),
        customer_id=customer.id,
        order_type=payload.order_type,
        subtotal=breakdown.subtotal,
        tax=breakdown.tax,
        delivery_fee=breakdown.delivery_fee,
        packaging_fee=breakdown.packaging_fee,
        discount=breakdown.discount,
        total=breakdown.total,
        delivery_address_json=address if payload.order_type == "delivery" else None,
        contact_phone=payload.contact_info.phone,
        contact_alternate_phone=payload.contact_info.alternate_phone,
        contact_email=payload.contact_info.email,
        payment_method=payload.payment_method,
        payment_status="pending",
        is_scheduled=scheduled is not None,
        scheduled_date=scheduled.date if scheduled is not None else None,
        scheduled_time=scheduled.time if scheduled is not None else None,
        special_instructions=payload.special_instructions,
        estimated_preparation_minutes=max(longest_preparation, MIN_PREPARATION_MINUTES),
        estimated_delivery_time=estimate_delivery_time(now, longest_preparation, payload.order_type),
        created_at=now,
        items=snapshots,
    )
    record_status(order, "placed", actor_id=customer.id, notes="Order placed", now=now)
    db.add(order)

    try:
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        logger.error("Order insert failed order_number=%s", order.order_number)
        raise Conflict("Could not allocate an order number, retry") from exc

    db.refresh(order)
    logger.info(
        "Order placed order_id=%s order_number=%s total=%s",
        order.id,
        order.order_number,
        order.total,
        extra={"order_id": order.id},
    )
    return order


# =========================
# Transitions
# =========================
def update_status(
    db: Session,
    order: Order,
    *,
    actor: Any,
    new_status: str,
    notes: str | None = None,
    now: datetime | None = None,
) -> Order:
    AccessPolicy.ensure_can_mutate(actor, order, operation="status_update")
    now = now or utcnow()

    if new_status in {"cancelled", "refunded"}:
        operation = "cancel" if new_status == "cancelled" else "refund"
        raise InvalidTransition(f"Use the {operation} operation to move an order to '{new_status}'")
    ensure_transition(order, new_status)

    previous = order.status
    record_status(order, new_status, actor_id=actor.id, notes=notes, now=now)
    if new_status in FULFILLED_STATUSES:
        order.actual_delivery_time = now

    log_admin_action(
        db,
        user_id=actor.id,
        action="order.status_update",
        entity_type="order",
        entity_id=order.id,
        meta={"from": previous, "to": new_status, "notes": notes},
    )
    commit_order(db)
    db.refresh(order)
    logger.info(
        "Order status updated order_id=%s from=%s to=%s",
        order.id,
        previous,
        new_status,
        extra={"order_id": order.id},
    )
    return order


def cancel_order(
    db: Session,
    order: Order,
    *,
    actor: Any,
    reason: str,
    notes: str | None = None,
    now: datetime | None = None,
) -> Order:
    AccessPolicy.ensure_can_mutate(actor, order)
    now = now or utcnow()

    if reason not in CANCELLATION_REASONS:
        raise ValidationFailed(f"Unknown cancellation reason: {reason}")
    if not AccessPolicy.is_admin(actor) and reason not in CUSTOMER_CANCELLATION_REASONS:
        raise ValidationFailed(f"Cancellation reason '{reason}' is reserved for the restaurant")
    if not order.can_cancel:
        raise Conflict(f"Order cannot be cancelled (status '{order.status}', payment '{order.payment_status}')")

    record_status(order, "cancelled", actor_id=actor.id, notes=notes or reason, now=now)
    order.cancellation_reason = reason
    order.cancelled_by = actor.id
    order.cancelled_at = now
    order.refund_processed = False

    if AccessPolicy.is_admin(actor):
        log_admin_action(
            db,
            user_id=actor.id,
            action="order.cancel",
            entity_type="order",
            entity_id=order.id,
            meta={"reason": reason},
        )
    commit_order(db)
    db.refresh(order)
    logger.info("Order cancelled order_id=%s reason=%s", order.id, reason, extra={"order_id": order.id})
    return order


def review_order(
    db: Session,
    order: Order,
    *,
    actor: Any,
    rating_food: int,
    rating_overall: int,
    rating_delivery: int | None = None,
    review: str | None = None,
    now: datetime | None = None,
) -> Order:
    AccessPolicy.ensure_owner(actor, order)
    now = now or utcnow()

    if order.status not in FULFILLED_STATUSES:
        raise Conflict("Only delivered or picked-up orders can be reviewed")
    if order.rating_overall is not None:
        raise Conflict("Order has already been reviewed")

    order.rating_food = rating_food
    order.rating_delivery = rating_delivery
    order.rating_overall = rating_overall
    order.review = review
    order.reviewed_at = now

    for menu_item_id in sorted({item.menu_item_id for item in order.items}):
        menu_catalog.apply_rating(db, menu_item_id, rating_food)
        db.add(
            MenuItemReview(
                menu_item_id=menu_item_id,
                order_id=order.id,
                customer_id=actor.id,
                rating=rating_food,
                review=review,
                created_at=now,
            )
        )

    commit_order(db)
    db.refresh(order)
    logger.info("Order reviewed order_id=%s overall=%s", order.id, rating_overall, extra={"order_id": order.id})
    return order


def synthesize_refund_id() -> str:
    return f"REFUND_{int(time.time() * 1000)}_{uuid.uuid4().hex[:9]}"


def refund_order(
    db: Session,
    order: Order,
    *,
    actor: Any,
    amount: int,
    reason: str | None,
    registry: GatewayRegistry,
    now: datetime | None = None,
) -> Order:
    """Refund a completed payment.

    The gateway is called before any state is written, so a gateway failure
    leaves the order exactly as it was. The row is locked while the gateway
    call runs so two refund requests cannot both reach the gateway.
    """
    AccessPolicy.ensure_can_mutate(actor, order)
    now = now or utcnow()
    order = lock_order(db, order)

    if order.payment_status != "completed":
        raise Conflict(f"Only completed payments can be refunded (payment is '{order.payment_status}')")
    paid_amount = int(order.paid_amount or 0)
    if amount <= 0 or amount > paid_amount:
        raise ValidationFailed(
            "Refund amount must be greater than 0 and cannot exceed the paid amount",
            errors=[{"field": "amount", "message": f"must be between 1 and {paid_amount}"}],
        )

    if order.payment_gateway:
        gateway = registry.get(order.payment_gateway)
        result = gateway.refund(order.transaction_id, amount=amount, reason=reason)
        refund_id = result.refund_id
    else:
        refund_id = synthesize_refund_id()

    order.refund_id = refund_id
    order.refund_amount = amount
    order.refund_date = now
    order.payment_status = "refunded"
    order.refund_processed = True
    record_status(order, "refunded", actor_id=actor.id, notes=reason or "Refund processed", now=now)

    if AccessPolicy.is_admin(actor):
        log_admin_action(
            db,
            user_id=actor.id,
            action="order.refund",
            entity_type="order",
            entity_id=order.id,
            meta={"amount": amount, "refund_id": refund_id, "gateway": order.payment_gateway, "reason": reason},
        )
    commit_order(db)
    db.refresh(order)
    logger.info(
        "Order refunded order_id=%s amount=%s refund_id=%s",
        order.id,
        amount,
        refund_id,
        extra={"order_id": order.id, "gateway": order.payment_gateway},
    )
    return order
