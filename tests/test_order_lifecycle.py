from concurrent.futures import ThreadPoolExecutor
from datetime import date, datetime, timedelta, timezone
from typing import get_args

import pytest
from pydantic import ValidationError
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from swaadgharka.core.choices import CANCELLATION_REASONS, ORDER_STATUSES
from swaadgharka.core.database import Base
from swaadgharka.core.errors import (
    ConcurrentModification,
    Conflict,
    Forbidden,
    InvalidTransition,
    PaymentGatewayError,
    Unavailable,
    ValidationFailed,
)
from swaadgharka.models.admin_audit_log import AdminAuditLog
from swaadgharka.models.menu_item import MenuItem
from swaadgharka.models.menu_item_review import MenuItemReview
from swaadgharka.models.order import Order
from swaadgharka.models.user import User
from swaadgharka.payments.service import GatewayRegistry
from swaadgharka.schemas.orders import CancellationReason, OrderCreate, OrderStatus, StatusUpdate
from swaadgharka.services import order_lifecycle, payments
from tests.fixtures_data import (
    ADMIN,
    CUSTOMER,
    HYDERABADI_BIRYANI,
    MASALA_CHAI,
    OTHER_CUSTOMER,
    PANEER_TIKKA,
    FakeGateway,
    add_menu_item,
    add_user,
    build_session_factory,
    order_payload,
)

NOON_IST = datetime(2026, 10, 19, 6, 30, tzinfo=timezone.utc)

DELIVERY_PATH = ["confirmed", "preparing", "ready", "out-for-delivery", "delivered"]


@pytest.fixture
def db():
    session = build_session_factory()()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def people(db):
    return {
        "customer": add_user(db, CUSTOMER),
        "other": add_user(db, OTHER_CUSTOMER),
        "admin": add_user(db, ADMIN),
    }


@pytest.fixture
def menu(db):
    return {
        "tikka": add_menu_item(db, PANEER_TIKKA),
        "chai": add_menu_item(db, MASALA_CHAI),
        "biryani": add_menu_item(db, HYDERABADI_BIRYANI),
    }


def _place(db, customer, *lines, now=NOON_IST, **kwargs):
    payload = OrderCreate(**order_payload(*lines, **kwargs))
    return order_lifecycle.create_order(db, customer=customer, payload=payload, now=now)


def _advance(db, order, admin, statuses):
    for status in statuses:
        order = order_lifecycle.update_status(db, order, actor=admin, new_status=status, now=NOON_IST)
    return order


def _pay(db, order, customer, gateway):
    registry = GatewayRegistry([gateway])
    intent = payments.initiate(db, order, actor=customer, gateway_name=gateway.name, amount=order.total, registry=registry)
    order = payments.confirm(db, order, actor=customer, reference=intent.reference, registry=registry)
    return order, registry


def _assert_history_matches(order):
    assert order.status_history[-1].status == order.status


def test_create_order_prices_snapshots_and_numbers(db, people, menu):
    order = _place(db, people["customer"], (menu["tikka"].id, 1), (menu["chai"].id, 1))

    assert order.order_number == "SGK261019001"
    assert order.status == "placed"
    assert order.payment_status == "pending"
    assert (order.subtotal, order.tax, order.delivery_fee, order.packaging_fee, order.total) == (150, 27, 30, 10, 217)
    assert [(item.name, item.unit_price, item.line_total) for item in order.items] == [
        ("Paneer Tikka", 100, 100),
        ("Masala Chai", 50, 50),
    ]
    assert [entry.status for entry in order.status_history] == ["placed"]
    # longest prep 20 min + 30 min delivery leg
    assert order.estimated_delivery_time.replace(tzinfo=timezone.utc) == NOON_IST + timedelta(minutes=50)

    tikka = db.get(MenuItem, menu["tikka"].id)
    assert tikka.current_orders_today == 1


def test_large_delivery_order_gets_free_delivery(db, people, menu):
    order = _place(db, people["customer"], (menu["biryani"].id, 1))

    assert order.total == 423
    assert order.delivery_fee == 0


def test_order_numbers_are_sequential_per_day(db, people, menu):
    first = _place(db, people["customer"], (menu["chai"].id, 1))
    second = _place(db, people["customer"], (menu["chai"].id, 1))
    next_day = _place(db, people["customer"], (menu["chai"].id, 1), now=NOON_IST + timedelta(days=1))

    assert first.order_number == "SGK261019001"
    assert second.order_number == "SGK261019002"
    assert next_day.order_number == "SGK261020001"


def test_menu_price_change_does_not_touch_placed_orders(db, people, menu):
    order = _place(db, people["customer"], (menu["tikka"].id, 2))

    menu["tikka"].price = 999
    db.commit()
    db.refresh(order)

    assert order.items[0].unit_price == 100
    assert order.subtotal == 200


def test_delivery_requires_address_but_pickup_does_not(db, people, menu):
    payload = order_payload((menu["chai"].id, 1))
    payload.pop("delivery_address")

    with pytest.raises(ValidationFailed):
        order_lifecycle.create_order(db, customer=people["customer"], payload=OrderCreate(**payload), now=NOON_IST)

    pickup = _place(db, people["customer"], (menu["chai"].id, 1), order_type="pickup")
    assert pickup.delivery_address_json is None
    assert pickup.delivery_fee == 0


def test_unavailable_item_blocks_the_whole_order(db, people, menu):
    seasonal = add_menu_item(db, {**PANEER_TIKKA, "name": "Seasonal Thali"}, is_available=False)

    with pytest.raises(Unavailable):
        _place(db, people["customer"], (menu["chai"].id, 1), (seasonal.id, 1))

    db.rollback()
    assert db.query(Order).count() == 0
    assert db.get(MenuItem, menu["chai"].id).current_orders_today == 0


def test_daily_cap_is_enforced_at_order_time(db, people, menu):
    limited = add_menu_item(db, {**MASALA_CHAI, "name": "Filter Coffee"}, max_orders_per_day=2)

    _place(db, people["customer"], (limited.id, 2))
    with pytest.raises(Unavailable):
        _place(db, people["customer"], (limited.id, 1))


def test_admin_moves_delivery_order_through_the_table(db, people, menu):
    order = _place(db, people["customer"], (menu["chai"].id, 1))

    order = _advance(db, order, people["admin"], DELIVERY_PATH)

    assert order.status == "delivered"
    assert order.actual_delivery_time is not None
    assert [entry.status for entry in order.status_history] == ["placed"] + DELIVERY_PATH
    _assert_history_matches(order)

    audit = db.query(AdminAuditLog).filter(AdminAuditLog.action == "order.status_update").count()
    assert audit == len(DELIVERY_PATH)


def test_transitions_outside_the_table_are_rejected(db, people, menu):
    order = _place(db, people["customer"], (menu["chai"].id, 1))
    admin = people["admin"]

    with pytest.raises(InvalidTransition):
        order_lifecycle.update_status(db, order, actor=admin, new_status="ready")
    with pytest.raises(InvalidTransition):
        order_lifecycle.update_status(db, order, actor=admin, new_status="placed")
    with pytest.raises(InvalidTransition):
        order_lifecycle.update_status(db, order, actor=admin, new_status="cancelled")

    order = _advance(db, order, admin, ["confirmed", "preparing", "ready"])
    with pytest.raises(InvalidTransition):
        order_lifecycle.update_status(db, order, actor=admin, new_status="picked-up")


def test_pickup_orders_skip_delivery_states(db, people, menu):
    order = _place(db, people["customer"], (menu["chai"].id, 1), order_type="pickup")
    admin = people["admin"]
    order = _advance(db, order, admin, ["confirmed", "preparing", "ready"])

    with pytest.raises(InvalidTransition):
        order_lifecycle.update_status(db, order, actor=admin, new_status="out-for-delivery")

    order = order_lifecycle.update_status(db, order, actor=admin, new_status="picked-up")
    assert order.is_delivered is True
    _assert_history_matches(order)


def test_customers_cannot_update_status(db, people, menu):
    order = _place(db, people["customer"], (menu["chai"].id, 1))

    with pytest.raises(Forbidden):
        order_lifecycle.update_status(db, order, actor=people["customer"], new_status="confirmed")


def test_owner_cancels_a_placed_order(db, people, menu):
    order = _place(db, people["customer"], (menu["chai"].id, 1))

    order = order_lifecycle.cancel_order(db, order, actor=people["customer"], reason="customer-request")

    assert order.status == "cancelled"
    assert order.cancellation_reason == "customer-request"
    assert order.cancelled_by == people["customer"].id
    assert order.can_cancel is False
    _assert_history_matches(order)


def test_cancel_preparing_order_is_a_conflict(db, people, menu):
    order = _place(db, people["customer"], (menu["chai"].id, 1))
    order = _advance(db, order, people["admin"], ["confirmed", "preparing"])

    with pytest.raises(Conflict):
        order_lifecycle.cancel_order(db, order, actor=people["customer"], reason="customer-request")

    assert db.get(Order, order.id).status == "preparing"


def test_cancel_guards_actor_and_reason(db, people, menu):
    order = _place(db, people["customer"], (menu["chai"].id, 1))

    with pytest.raises(Forbidden):
        order_lifecycle.cancel_order(db, order, actor=people["other"], reason="customer-request")
    with pytest.raises(ValidationFailed):
        order_lifecycle.cancel_order(db, order, actor=people["customer"], reason="restaurant-unavailable")

    order = order_lifecycle.cancel_order(db, order, actor=people["admin"], reason="restaurant-unavailable")
    assert order.status == "cancelled"
    assert db.query(AdminAuditLog).filter(AdminAuditLog.action == "order.cancel").count() == 1


def test_paid_orders_cannot_be_cancelled(db, people, menu):
    order = _place(db, people["customer"], (menu["chai"].id, 1))
    order, _registry = _pay(db, order, people["customer"], FakeGateway())

    with pytest.raises(Conflict):
        order_lifecycle.cancel_order(db, order, actor=people["customer"], reason="customer-request")


def test_review_after_delivery_updates_menu_ratings_once(db, people, menu):
    order = _place(db, people["customer"], (menu["tikka"].id, 2), (menu["chai"].id, 1))

    with pytest.raises(Conflict):
        order_lifecycle.review_order(db, order, actor=people["customer"], rating_food=4, rating_overall=4)

    order = _advance(db, order, people["admin"], DELIVERY_PATH)
    order = order_lifecycle.review_order(
        db,
        order,
        actor=people["customer"],
        rating_food=4,
        rating_delivery=5,
        rating_overall=5,
        review="Tasted like home",
    )

    assert (order.rating_food, order.rating_delivery, order.rating_overall) == (4, 5, 5)
    tikka = db.get(MenuItem, menu["tikka"].id)
    assert tikka.ratings_count == 1
    assert tikka.ratings_average == pytest.approx(4.0)
    assert db.query(MenuItemReview).filter(MenuItemReview.order_id == order.id).count() == 2

    with pytest.raises(Conflict):
        order_lifecycle.review_order(db, order, actor=people["customer"], rating_food=1, rating_overall=1)
    assert db.get(MenuItem, menu["tikka"].id).ratings_count == 1


def test_only_the_owner_may_review(db, people, menu):
    order = _place(db, people["customer"], (menu["chai"].id, 1))
    order = _advance(db, order, people["admin"], DELIVERY_PATH)

    with pytest.raises(Forbidden):
        order_lifecycle.review_order(db, order, actor=people["admin"], rating_food=5, rating_overall=5)


def test_refund_above_paid_amount_leaves_order_unchanged(db, people, menu):
    order = _place(db, people["customer"], (menu["tikka"].id, 1), (menu["chai"].id, 1))
    gateway = FakeGateway()
    order, registry = _pay(db, order, people["customer"], gateway)
    assert order.paid_amount == 217

    with pytest.raises(ValidationFailed):
        order_lifecycle.refund_order(db, order, actor=people["admin"], amount=500, reason="Late", registry=registry)

    db.rollback()
    reloaded = db.get(Order, order.id)
    assert reloaded.status == "confirmed"
    assert reloaded.payment_status == "completed"
    assert reloaded.refund_id is None
    assert gateway.refunds == []


def test_refund_through_the_gateway(db, people, menu):
    order = _place(db, people["customer"], (menu["chai"].id, 1))
    gateway = FakeGateway()
    order, registry = _pay(db, order, people["customer"], gateway)

    order = order_lifecycle.refund_order(
        db, order, actor=people["admin"], amount=order.paid_amount, reason="Cold food", registry=registry
    )

    assert order.status == "refunded"
    assert order.payment_status == "refunded"
    assert order.refund_id == "fp_refund_1"
    assert order.refund_processed is True
    assert gateway.refunds == [("fp_intent_1", order.paid_amount)]
    _assert_history_matches(order)

    with pytest.raises(Conflict):
        order_lifecycle.refund_order(db, order, actor=people["admin"], amount=1, reason="again", registry=registry)


def test_gateway_refund_failure_changes_nothing(db, people, menu):
    order = _place(db, people["customer"], (menu["chai"].id, 1))
    gateway = FakeGateway(fail_refund=True)
    order, registry = _pay(db, order, people["customer"], gateway)

    with pytest.raises(PaymentGatewayError):
        order_lifecycle.refund_order(db, order, actor=people["admin"], amount=10, reason="x", registry=registry)

    db.rollback()
    reloaded = db.get(Order, order.id)
    assert reloaded.payment_status == "completed"
    assert reloaded.refund_amount is None


def test_unpaid_orders_cannot_be_refunded(db, people, menu):
    order = _place(db, people["customer"], (menu["chai"].id, 1), payment_method="cod")

    with pytest.raises(Conflict):
        order_lifecycle.refund_order(
            db, order, actor=people["admin"], amount=10, reason="x", registry=GatewayRegistry()
        )


def test_listing_orders(db, people, menu):
    _place(db, people["customer"], (menu["chai"].id, 1))
    _place(db, people["customer"], (menu["biryani"].id, 1))
    _place(db, people["other"], (menu["tikka"].id, 1), now=NOON_IST + timedelta(days=1))

    mine = order_lifecycle.list_customer_orders(db, people["customer"])
    assert mine.total == 2

    today = order_lifecycle.list_all_orders(db, people["admin"], day=date(2026, 10, 19))
    assert today.total == 2
    assert today.summary["total_revenue"] == (50 + 9 + 30 + 10) + 423

    with pytest.raises(Forbidden):
        order_lifecycle.list_all_orders(db, people["customer"])


def _file_session_factory(path):
    engine = create_engine(f"sqlite:///{path}", connect_args={"check_same_thread": False, "timeout": 30})
    Base.metadata.create_all(bind=engine)
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


def test_lost_race_raises_concurrent_modification(tmp_path):
    SessionLocal = _file_session_factory(tmp_path / "race.db")

    setup = SessionLocal()
    customer = add_user(setup, CUSTOMER)
    admin_id = add_user(setup, ADMIN).id
    chai = add_menu_item(setup, MASALA_CHAI)
    order_id = _place(setup, customer, (chai.id, 1)).id
    setup.close()

    first, second = SessionLocal(), SessionLocal()
    try:
        first_view = order_lifecycle.get_order(first, order_id)
        second_view = order_lifecycle.get_order(second, order_id)
        first_admin = first.get(User, admin_id)
        second_admin = second.get(User, admin_id)

        order_lifecycle.update_status(first, first_view, actor=first_admin, new_status="confirmed")

        with pytest.raises(ConcurrentModification):
            order_lifecycle.cancel_order(second, second_view, actor=second_admin, reason="other")
    finally:
        first.close()
        second.close()

    check = SessionLocal()
    try:
        order = order_lifecycle.get_order(check, order_id)
        assert order.status == "confirmed"
        assert [entry.status for entry in order.status_history] == ["placed", "confirmed"]
    finally:
        check.close()


def test_concurrent_same_day_orders_get_unique_numbers(tmp_path):
    SessionLocal = _file_session_factory(tmp_path / "numbers.db")

    setup = SessionLocal()
    customer_id = add_user(setup, CUSTOMER).id
    chai_id = add_menu_item(setup, MASALA_CHAI, max_orders_per_day=500).id
    setup.close()

    def place_batch(count):
        session = SessionLocal()
        try:
            customer = session.get(User, customer_id)
            return [_place(session, customer, (chai_id, 1)).order_number for _ in range(count)]
        finally:
            session.close()

    with ThreadPoolExecutor(max_workers=8) as pool:
        batches = list(pool.map(place_batch, [5] * 8))

    numbers = [number for batch in batches for number in batch]
    assert len(numbers) == 40
    assert len(set(numbers)) == 40
    assert sorted(numbers) == [f"SGK261019{sequence:03d}" for sequence in range(1, 41)]

    check = SessionLocal()
    try:
        assert check.get(MenuItem, chai_id).current_orders_today == 40
    finally:
        check.close()


def test_request_choices_follow_the_shared_tuples():
    assert get_args(OrderStatus) == ORDER_STATUSES
    assert get_args(CancellationReason) == CANCELLATION_REASONS
    assert set(order_lifecycle.STATUS_TRANSITIONS) == set(ORDER_STATUSES)

    with pytest.raises(ValidationError):
        StatusUpdate(status="lost")
