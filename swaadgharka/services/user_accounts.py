from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from swaadgharka.core.choices import USER_STATUS_FILTERS
from swaadgharka.core.errors import Conflict, ValidationFailed
from swaadgharka.models.order import Order
from swaadgharka.models.user import User
from swaadgharka.services.access_policy import AccessPolicy

logger = logging.getLogger(__name__)

MAX_USER_PAGE_SIZE = 100
RECENT_ORDERS_LIMIT = 20


@dataclass
class UserPage:
    users: list[User]
    total: int
    page: int
    limit: int


def _merged(current: dict | None, changes: dict[str, Any]) -> dict[str, Any]:
    # Always a new dict so the JSON column is flagged dirty
    merged = dict(current or {})
    merged.update(changes)
    return merged


def update_profile(
    db: Session,
    user: User,
    *,
    name: str | None = None,
    phone: str | None = None,
    address: dict[str, Any] | None = None,
    preferences: dict[str, Any] | None = None,
) -> User:
    """Apply a partial profile update; address and preferences merge into the saved values."""
    if phone and phone != user.phone:
        taken = db.query(User.id).filter(User.phone == phone, User.id != user.id).first()
        if taken:
            raise Conflict("Phone number is already registered with another account")
        user.phone = phone
    if name:
        user.name = name
    if address:
        user.address_json = _merged(user.address_json, address)
    if preferences:
        if "dietary" in preferences and preferences["dietary"] is not None:
            preferences["dietary"] = sorted(set(preferences["dietary"]))
        user.preferences_json = _merged(user.preferences_json, preferences)

    try:
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        raise Conflict("Phone number is already registered with another account") from exc
    db.refresh(user)
    logger.info("Profile updated user_id=%s", user.id)
    return user


def recent_orders(db: Session, user: User, *, limit: int = RECENT_ORDERS_LIMIT) -> tuple[list[Order], int]:
    query = db.query(Order).filter(Order.customer_id == user.id, Order.active.is_(True))
    total = query.count()
    orders = query.order_by(Order.created_at.desc(), Order.id.desc()).limit(limit).all()
    return orders, total


def list_users(
    db: Session,
    actor: Any,
    *,
    search: str | None = None,
    status: str | None = None,
    page: int = 1,
    limit: int = 20,
) -> UserPage:
    AccessPolicy.ensure_admin(actor)
    if limit < 1 or limit > MAX_USER_PAGE_SIZE:
        raise ValidationFailed(f"Limit must be between 1 and {MAX_USER_PAGE_SIZE}")
    if status and status not in USER_STATUS_FILTERS:
        raise ValidationFailed(f"Status must be one of: {', '.join(USER_STATUS_FILTERS)}")

    query = db.query(User)
    term = (search or "").strip()
    if term:
        pattern = f"%{term}%"
        query = query.filter(or_(User.name.ilike(pattern), User.email.ilike(pattern), User.phone.ilike(pattern)))
    if status:
        query = query.filter(User.is_active.is_(status == "active"))

    total = query.count()
    users = (
        query.order_by(User.created_at.desc(), User.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    return UserPage(users=users, total=total, page=page, limit=limit)
