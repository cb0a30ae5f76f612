from datetime import date, datetime, timedelta, timezone

import pytest

from swaadgharka.core.errors import NotFound, Unavailable, ValidationFailed
from swaadgharka.models.menu_item import MenuItem
from swaadgharka.services import menu_catalog
from tests.fixtures_data import (
    ADMIN,
    HYDERABADI_BIRYANI,
    MASALA_CHAI,
    PANEER_TIKKA,
    add_menu_item,
    add_user,
    build_session_factory,
)

# Monday 12:00 in Asia/Kolkata
NOON_IST = datetime(2026, 10, 19, 6, 30, tzinfo=timezone.utc)
TODAY_IST = date(2026, 10, 19)


@pytest.fixture
def db():
    session = build_session_factory()()
    try:
        yield session
    finally:
        session.close()


def test_time_window_wraps_past_midnight():
    assert menu_catalog.within_time_window(23 * 60, "22:00", "02:00") is True
    assert menu_catalog.within_time_window(60, "22:00", "02:00") is True
    assert menu_catalog.within_time_window(12 * 60, "22:00", "02:00") is False
    assert menu_catalog.within_time_window(12 * 60, "11:00", "15:00") is True
    assert menu_catalog.within_time_window(12 * 60, None, None) is True


def test_discount_percentage():
    assert menu_catalog.discount_percentage(80, 100) == 20
    assert menu_catalog.discount_percentage(100, None) == 0
    assert menu_catalog.discount_percentage(100, 90) == 0


def test_availability_respects_days_window_and_daily_cap(db):
    weekend_only = add_menu_item(db, PANEER_TIKKA, available_days_json=["saturday", "sunday"])
    dinner_only = add_menu_item(db, MASALA_CHAI, available_from="18:00", available_until="23:00")
    sold_out = add_menu_item(
        db,
        HYDERABADI_BIRYANI,
        max_orders_per_day=5,
        current_orders_today=5,
        orders_counter_date=TODAY_IST,
    )

    assert menu_catalog.is_currently_available(weekend_only, NOON_IST) is False
    assert menu_catalog.is_currently_available(dinner_only, NOON_IST) is False
    assert menu_catalog.is_currently_available(sold_out, NOON_IST) is False
    # yesterday's count does not block today
    assert menu_catalog.is_currently_available(sold_out, NOON_IST + timedelta(days=1)) is True


def test_unavailable_flag_and_inactive_items_are_not_available(db):
    paused = add_menu_item(db, PANEER_TIKKA, is_available=False)
    removed = add_menu_item(db, MASALA_CHAI, active=False)

    assert menu_catalog.is_currently_available(paused, NOON_IST) is False
    assert menu_catalog.is_currently_available(removed, NOON_IST) is False
    with pytest.raises(Unavailable):
        menu_catalog.check_availability(db, paused.id, 1, now=NOON_IST)


def test_check_availability_validates_quantity_and_existence(db):
    item = add_menu_item(db, PANEER_TIKKA)

    assert menu_catalog.check_availability(db, item.id, 2, now=NOON_IST).id == item.id
    with pytest.raises(Unavailable):
        menu_catalog.check_availability(db, item.id, 11, now=NOON_IST)
    with pytest.raises(NotFound):
        menu_catalog.check_availability(db, 9999, 1, now=NOON_IST)


def test_increment_daily_orders_refuses_past_the_cap(db):
    item = add_menu_item(db, PANEER_TIKKA, max_orders_per_day=3)

    menu_catalog.increment_daily_orders(db, item.id, 2, now=NOON_IST)
    db.commit()

    with pytest.raises(Unavailable):
        menu_catalog.increment_daily_orders(db, item.id, 2, now=NOON_IST)
    db.rollback()

    refreshed = db.get(MenuItem, item.id)
    assert refreshed.current_orders_today == 2
    assert refreshed.orders_counter_date == TODAY_IST


def test_increment_rolls_over_a_stale_counter(db):
    item = add_menu_item(
        db,
        PANEER_TIKKA,
        max_orders_per_day=3,
        current_orders_today=3,
        orders_counter_date=TODAY_IST - timedelta(days=1),
    )

    menu_catalog.increment_daily_orders(db, item.id, 1, now=NOON_IST)
    db.commit()

    refreshed = db.get(MenuItem, item.id)
    assert refreshed.current_orders_today == 1
    assert refreshed.orders_counter_date == TODAY_IST


def test_reset_daily_order_counters(db):
    item = add_menu_item(
        db,
        PANEER_TIKKA,
        current_orders_today=7,
        orders_counter_date=TODAY_IST - timedelta(days=1),
    )

    rows = menu_catalog.reset_daily_order_counters(db, today=TODAY_IST)

    db.expire_all()
    assert rows == 1
    assert db.get(MenuItem, item.id).current_orders_today == 0


def test_apply_rating_keeps_a_running_average(db):
    item = add_menu_item(db, PANEER_TIKKA)

    menu_catalog.apply_rating(db, item.id, 4)
    menu_catalog.apply_rating(db, item.id, 5)
    db.commit()

    refreshed = db.get(MenuItem, item.id)
    assert refreshed.ratings_count == 2
    assert refreshed.ratings_average == pytest.approx(4.5)


def test_list_filters_sorting_and_aggregates(db):
    add_menu_item(db, PANEER_TIKKA, tags=["vegetarian", "spicy"])
    add_menu_item(db, MASALA_CHAI, tags=["vegetarian"])
    add_menu_item(db, HYDERABADI_BIRYANI, tags=["halal"])
    add_menu_item(db, {**PANEER_TIKKA, "name": "Old Tikka"}, active=False)

    everything = menu_catalog.list_menu_items(db, sort_by="price", sort_order="asc")
    assert [item.name for item in everything.items] == ["Masala Chai", "Paneer Tikka", "Hyderabadi Biryani"]
    assert everything.total == 3
    assert everything.filters == {
        "categories": ["appetizers", "beverages", "rice-biryani"],
        "cuisines": ["hyderabadi", "north-indian"],
        "min_price": 50,
        "max_price": 350,
    }

    vegetarian = menu_catalog.list_menu_items(db, tag="vegetarian", max_price=80)
    assert [item.name for item in vegetarian.items] == ["Masala Chai"]

    searched = menu_catalog.list_menu_items(db, search="TIKKA")
    assert [item.name for item in searched.items] == ["Paneer Tikka"]

    by_description = menu_catalog.list_menu_items(db, search="basmati")
    assert [item.name for item in by_description.items] == ["Hyderabadi Biryani"]


def test_list_pagination(db):
    for index in range(5):
        add_menu_item(db, {**MASALA_CHAI, "name": f"Chai {index}", "price": 40 + index})

    page = menu_catalog.list_menu_items(db, sort_by="price", sort_order="asc", page=2, limit=2)

    assert [item.price for item in page.items] == [42, 43]
    assert page.total == 5
    assert page.pages == 3


def test_list_rejects_bad_queries(db):
    with pytest.raises(ValidationFailed):
        menu_catalog.list_menu_items(db, search="a")
    with pytest.raises(ValidationFailed):
        menu_catalog.list_menu_items(db, limit=51)
    with pytest.raises(ValidationFailed):
        menu_catalog.list_menu_items(db, min_price=200, max_price=100)


def test_popular_sort_uses_rating_count_then_average(db):
    add_menu_item(db, PANEER_TIKKA, ratings_count=10, ratings_average=4.0)
    add_menu_item(db, MASALA_CHAI, ratings_count=10, ratings_average=4.8)
    add_menu_item(db, HYDERABADI_BIRYANI, ratings_count=25, ratings_average=3.9)

    page = menu_catalog.list_menu_items(db, sort_by="popular")

    assert [item.name for item in page.items] == ["Hyderabadi Biryani", "Masala Chai", "Paneer Tikka"]


def test_featured_and_specials(db):
    add_menu_item(db, PANEER_TIKKA, is_featured=True, ratings_average=4.1)
    add_menu_item(db, HYDERABADI_BIRYANI, is_featured=True, is_special=True, ratings_average=4.7)
    add_menu_item(db, MASALA_CHAI)

    assert [item.name for item in menu_catalog.featured_items(db)] == ["Hyderabadi Biryani", "Paneer Tikka"]
    assert [item.name for item in menu_catalog.special_items(db)] == ["Hyderabadi Biryani"]


def test_admin_writes_are_audited_and_soft_delete_hides_the_item(db):
    admin = add_user(db, ADMIN)
    data = dict(PANEER_TIKKA, original_price=120, tags=["vegetarian"], available_days=["monday"])

    item = menu_catalog.create_menu_item(db, actor=admin, data=data)
    assert item.tags == ["vegetarian"]
    assert item.available_days == ["monday"]
    assert item.created_by == admin.id

    updated = menu_catalog.update_menu_item(db, actor=admin, item_id=item.id, data={"price": 110, "tags": ["spicy"]})
    assert updated.price == 110
    assert updated.tags == ["spicy"]

    with pytest.raises(ValidationFailed):
        menu_catalog.update_menu_item(db, actor=admin, item_id=item.id, data={"price": 150})

    menu_catalog.soft_delete_menu_item(db, actor=admin, item_id=item.id)
    with pytest.raises(NotFound):
        menu_catalog.get_menu_item(db, item.id)

    from swaadgharka.models.admin_audit_log import AdminAuditLog

    actions = [row.action for row in db.query(AdminAuditLog).order_by(AdminAuditLog.id)]
    assert actions == ["menu_item.create", "menu_item.update", "menu_item.delete"]
