from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, Mapping

from sqlalchemy import asc, case, desc, func, or_, update
from sqlalchemy.orm import Session, selectinload
from sqlalchemy.orm.util import identity_key

from swaadgharka.core.choices import MAX_LINE_QUANTITY, WEEKDAYS
from swaadgharka.core.clock import business_today, to_business_time, utcnow
from swaadgharka.core.errors import NotFound, Unavailable, ValidationFailed
from swaadgharka.models.menu_item import MenuItem, MenuItemTag
from swaadgharka.services.admin_audit import log_admin_action

logger = logging.getLogger(__name__)

DEFAULT_PAGE_SIZE = 12
MAX_PAGE_SIZE = 50
FEATURED_LIMIT = 8
SPECIALS_LIMIT = 6
MIN_SEARCH_LENGTH = 2

_SORT_COLUMNS = {
    "price": MenuItem.price,
    "rating": MenuItem.ratings_average,
    "name": MenuItem.name,
    "createdAt": MenuItem.created_at,
}

# Payload keys that map onto JSON columns or the tag table instead of plain columns
_JSON_FIELDS = {
    "ingredients": "ingredients_json",
    "nutritional_info": "nutritional_info_json",
    "images": "images_json",
    "available_days": "available_days_json",
}


@dataclass
class MenuPage:
    items: list[MenuItem]
    total: int
    page: int
    limit: int
    filters: dict[str, Any] = field(default_factory=dict)

    @property
    def pages(self) -> int:
        return math.ceil(self.total / self.limit) if self.limit else 0


# =========================
# Derived values
# =========================
def discount_percentage(price: int, original_price: int | None) -> int:
    if not original_price or original_price <= price:
        return 0
    return int(math.floor((original_price - price) / original_price * 100 + 0.5))


def _minutes_of_day(value: str) -> int:
    hours, minutes = value.strip().split(":", 1)
    return int(hours) * 60 + int(minutes)


def within_time_window(now_minutes: int, start: str | None, end: str | None) -> bool:
    """Inclusive window check. A start after the end wraps past midnight."""
    if not start or not end:
        return True
    start_minutes = _minutes_of_day(start)
    end_minutes = _minutes_of_day(end)
    if start_minutes <= end_minutes:
        return start_minutes <= now_minutes <= end_minutes
    return now_minutes >= start_minutes or now_minutes <= end_minutes


def effective_orders_today(item: MenuItem, today: date) -> int:
    if item.orders_counter_date != today:
        return 0
    return int(item.current_orders_today or 0)


def is_currently_available(item: MenuItem, now: datetime | None = None) -> bool:
    local_now = to_business_time(now or utcnow())
    if not item.active or not item.is_available:
        return False

    days = item.available_days
    if days and WEEKDAYS[local_now.weekday()] not in days:
        return False

    if not within_time_window(local_now.hour * 60 + local_now.minute, item.available_from, item.available_until):
        return False

    return effective_orders_today(item, local_now.date()) < int(item.max_orders_per_day or 0)


# =========================
# Reads
# =========================
def _escape_like(term: str) -> str:
    return term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def _filter_aggregates(db: Session) -> dict[str, Any]:
    min_price, max_price = (
        db.query(func.min(MenuItem.price), func.max(MenuItem.price))
        .filter(MenuItem.active.is_(True))
        .one()
    )
    categories = [
        row[0]
        for row in db.query(MenuItem.category).filter(MenuItem.active.is_(True)).distinct().order_by(MenuItem.category)
    ]
    cuisines = [
        row[0]
        for row in db.query(MenuItem.cuisine).filter(MenuItem.active.is_(True)).distinct().order_by(MenuItem.cuisine)
    ]
    return {
        "categories": categories,
        "cuisines": cuisines,
        "min_price": min_price or 0,
        "max_price": max_price or 0,
    }


def list_menu_items(
    db: Session,
    *,
    category: str | None = None,
    cuisine: str | None = None,
    min_price: int | None = None,
    max_price: int | None = None,
    spice_level: str | None = None,
    tag: str | None = None,
    search: str | None = None,
    sort_by: str = "createdAt",
    sort_order: str = "desc",
    page: int = 1,
    limit: int = DEFAULT_PAGE_SIZE,
) -> MenuPage:
    if page < 1:
        raise ValidationFailed("Page must be 1 or greater")
    if limit < 1 or limit > MAX_PAGE_SIZE:
        raise ValidationFailed(f"Limit must be between 1 and {MAX_PAGE_SIZE}")
    if min_price is not None and max_price is not None and min_price > max_price:
        raise ValidationFailed("minPrice cannot be greater than maxPrice")

    query = db.query(MenuItem).filter(MenuItem.active.is_(True))
    if category:
        query = query.filter(MenuItem.category == category)
    if cuisine:
        query = query.filter(MenuItem.cuisine == cuisine)
    if min_price is not None:
        query = query.filter(MenuItem.price >= min_price)
    if max_price is not None:
        query = query.filter(MenuItem.price <= max_price)
    if spice_level:
        query = query.filter(MenuItem.spice_level == spice_level)
    if tag:
        query = query.filter(MenuItem.tag_rows.any(MenuItemTag.tag == tag))
    if search:
        term = search.strip()
        if len(term) < MIN_SEARCH_LENGTH:
            raise ValidationFailed(f"Search term must be at least {MIN_SEARCH_LENGTH} characters")
        pattern = f"%{_escape_like(term)}%"
        query = query.filter(
            or_(
                MenuItem.name.ilike(pattern, escape="\\"),
                MenuItem.description.ilike(pattern, escape="\\"),
            )
        )

    total = query.count()

    if sort_by == "popular":
        ordering = [desc(MenuItem.ratings_count), desc(MenuItem.ratings_average)]
    else:
        column = _SORT_COLUMNS.get(sort_by)
        if column is None:
            raise ValidationFailed(f"Unknown sort key: {sort_by}")
        direction = asc if sort_order == "asc" else desc
        ordering = [direction(column)]
    ordering.append(asc(MenuItem.id))

    items = query.order_by(*ordering).offset((page - 1) * limit).limit(limit).all()
    return MenuPage(items=items, total=total, page=page, limit=limit, filters=_filter_aggregates(db))


def featured_items(db: Session, *, limit: int = FEATURED_LIMIT) -> list[MenuItem]:
    return (
        db.query(MenuItem)
        .filter(MenuItem.active.is_(True), MenuItem.is_featured.is_(True))
        .order_by(desc(MenuItem.ratings_average), asc(MenuItem.id))
        .limit(limit)
        .all()
    )


def special_items(db: Session, *, limit: int = SPECIALS_LIMIT) -> list[MenuItem]:
    return (
        db.query(MenuItem)
        .filter(MenuItem.active.is_(True), MenuItem.is_special.is_(True))
        .order_by(desc(MenuItem.created_at), desc(MenuItem.id))
        .limit(limit)
        .all()
    )


def items_by_category(db: Session, category: str, *, page: int = 1, limit: int = DEFAULT_PAGE_SIZE) -> MenuPage:
    return list_menu_items(db, category=category, sort_by="rating", sort_order="desc", page=page, limit=limit)


def get_menu_item(db: Session, item_id: int, *, with_reviews: bool = False) -> MenuItem:
    query = db.query(MenuItem).filter(MenuItem.id == item_id)
    if with_reviews:
        query = query.options(selectinload(MenuItem.reviews))
    item = query.first()
    if not item or not item.active:
        raise NotFound("Menu item not found")
    return item


def check_availability(db: Session, item_id: int, quantity: int, *, now: datetime | None = None) -> MenuItem:
    item = db.query(MenuItem).filter(MenuItem.id == item_id).first()
    if not item:
        raise NotFound(f"Menu item {item_id} not found")
    if quantity < 1 or quantity > MAX_LINE_QUANTITY:
        raise Unavailable(f"Quantity for {item.name} must be between 1 and {MAX_LINE_QUANTITY}")
    if not is_currently_available(item, now):
        raise Unavailable(f"{item.name} is currently not available")
    return item


# =========================
# Counters (atomic, storage-level)
# =========================
def _expire_cached(db: Session, item_id: int, *attributes: str) -> None:
    cached = db.identity_map.get(identity_key(MenuItem, item_id))
    if cached is not None:
        db.expire(cached, list(attributes) or None)


def increment_daily_orders(db: Session, item_id: int, quantity: int, *, now: datetime | None = None) -> None:
    """Add ``quantity`` to today's counter in one conditional UPDATE.

    A counter dated before today rolls over to zero inside the same
    statement, and the row is left untouched when the cap would be exceeded.
    """
    today = business_today(now)
    effective = case((MenuItem.orders_counter_date == today, MenuItem.current_orders_today), else_=0)
    stmt = (
        update(MenuItem)
        .where(
            MenuItem.id == item_id,
            MenuItem.active.is_(True),
            effective + quantity <= MenuItem.max_orders_per_day,
        )
        .values(current_orders_today=effective + quantity, orders_counter_date=today)
        .execution_options(synchronize_session=False)
    )
    result = db.execute(stmt)
    _expire_cached(db, item_id, "current_orders_today", "orders_counter_date")
    if result.rowcount != 1:
        logger.info("Daily order cap reached menu_item_id=%s quantity=%s", item_id, quantity)
        raise Unavailable("Daily order limit reached for this item")


def reset_daily_order_counters(db: Session, *, today: date | None = None) -> int:
    today = today or business_today()
    stmt = (
        update(MenuItem)
        .where(or_(MenuItem.orders_counter_date.is_(None), MenuItem.orders_counter_date != today))
        .values(current_orders_today=0, orders_counter_date=today)
        .execution_options(synchronize_session=False)
    )
    result = db.execute(stmt)
    db.commit()
    logger.info("Daily order counters reset day=%s rows=%s", today.isoformat(), result.rowcount)
    return result.rowcount


def apply_rating(db: Session, item_id: int, rating: int) -> None:
    """newAverage = (oldAverage * oldCount + rating) / (oldCount + 1), in SQL."""
    stmt = (
        update(MenuItem)
        .where(MenuItem.id == item_id)
        .values(
            ratings_average=(MenuItem.ratings_average * MenuItem.ratings_count + rating)
            / (MenuItem.ratings_count + 1.0),
            ratings_count=MenuItem.ratings_count + 1,
        )
        .execution_options(synchronize_session=False)
    )
    db.execute(stmt)
    _expire_cached(db, item_id, "ratings_average", "ratings_count")


# =========================
# Admin writes
# =========================
def _validate_prices(price: int, original_price: int | None) -> None:
    if original_price is not None and original_price < price:
        raise ValidationFailed(
            "Original price must be greater than or equal to the price",
            errors=[{"field": "original_price", "message": "must be >= price"}],
        )


def _apply_fields(item: MenuItem, data: Mapping[str, Any]) -> None:
    for key, value in data.items():
        if key == "tags":
            item.tag_rows = [MenuItemTag(tag=tag) for tag in sorted(set(value or []))]
        elif key in _JSON_FIELDS:
            setattr(item, _JSON_FIELDS[key], value)
        else:
            setattr(item, key, value)


def create_menu_item(db: Session, *, actor: Any, data: Mapping[str, Any]) -> MenuItem:
    _validate_prices(int(data["price"]), data.get("original_price"))
    item = MenuItem(created_by=getattr(actor, "id", None))
    _apply_fields(item, data)
    db.add(item)
    db.flush()
    log_admin_action(
        db,
        user_id=actor.id,
        action="menu_item.create",
        entity_type="menu_item",
        entity_id=item.id,
        meta={"name": item.name, "price": item.price},
    )
    db.commit()
    db.refresh(item)
    logger.info("Menu item created id=%s name=%s", item.id, item.name)
    return item


def update_menu_item(db: Session, *, actor: Any, item_id: int, data: Mapping[str, Any]) -> MenuItem:
    item = db.query(MenuItem).filter(MenuItem.id == item_id).first()
    if not item or not item.active:
        raise NotFound("Menu item not found")

    price = int(data.get("price", item.price))
    original_price = data["original_price"] if "original_price" in data else item.original_price
    _validate_prices(price, original_price)

    _apply_fields(item, data)
    log_admin_action(
        db,
        user_id=actor.id,
        action="menu_item.update",
        entity_type="menu_item",
        entity_id=item.id,
        meta={"fields": sorted(data.keys())},
    )
    db.commit()
    db.refresh(item)
    return item


def soft_delete_menu_item(db: Session, *, actor: Any, item_id: int) -> MenuItem:
    item = db.query(MenuItem).filter(MenuItem.id == item_id).first()
    if not item or not item.active:
        raise NotFound("Menu item not found")
    item.active = False
    log_admin_action(
        db,
        user_id=actor.id,
        action="menu_item.delete",
        entity_type="menu_item",
        entity_id=item.id,
    )
    db.commit()
    logger.info("Menu item deactivated id=%s", item.id)
    return item
