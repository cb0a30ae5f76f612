from __future__ import annotations

from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from swaadgharka.core.config import ACTION_RATE_WINDOW_SECONDS, ORDER_RATE_LIMIT
from swaadgharka.core.database import get_db
from swaadgharka.deps import get_current_user, get_pricing_config, rate_limit, require_admin
from swaadgharka.models.user import User
from swaadgharka.schemas.orders import (
    CancelRequest,
    OrderCreate,
    OrderStatus,
    ReviewRequest,
    StatusUpdate,
    order_to_dict,
)
from swaadgharka.services import order_lifecycle
from swaadgharka.services.order_lifecycle import OrderPage
from swaadgharka.services.pricing import PricingConfig

router = APIRouter(prefix="/api/orders", tags=["orders"])


def _pagination(page: OrderPage) -> dict:
    total_pages = -(-page.total // page.limit) if page.limit else 0
    return {
        "current_page": page.page,
        "total_pages": total_pages,
        "total_orders": page.total,
        "has_next_page": page.page < total_pages,
        "has_prev_page": page.page > 1,
    }


@router.post("", status_code=201)
def create_order(
    payload: OrderCreate,
    user: User = Depends(get_current_user),
    _limit: None = Depends(rate_limit("order_create", limit=ORDER_RATE_LIMIT, window_seconds=ACTION_RATE_WINDOW_SECONDS)),
    pricing: PricingConfig = Depends(get_pricing_config),
    db: Session = Depends(get_db),
):
    order = order_lifecycle.create_order(db, customer=user, payload=payload, pricing_config=pricing)
    return {
        "success": True,
        "message": "Order placed successfully",
        "data": {"order": order_to_dict(order)},
    }


@router.get("")
def my_orders(
    status: Optional[OrderStatus] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=order_lifecycle.MAX_CUSTOMER_PAGE_SIZE),
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    result = order_lifecycle.list_customer_orders(db, user, status=status, page=page, limit=limit)
    return {
        "success": True,
        "data": {
            "orders": [order_to_dict(order, include_history=False) for order in result.orders],
            "pagination": _pagination(result),
        },
    }


@router.get("/admin/all")
def all_orders(
    status: Optional[OrderStatus] = None,
    day: Optional[date] = Query(None, alias="date"),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=order_lifecycle.MAX_ADMIN_PAGE_SIZE),
    user: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    result = order_lifecycle.list_all_orders(db, user, status=status, day=day, page=page, limit=limit)
    return {
        "success": True,
        "data": {
            "orders": [order_to_dict(order, include_history=False) for order in result.orders],
            "pagination": _pagination(result),
            "summary": result.summary,
        },
    }


@router.get("/{order_id}")
def get_order(order_id: int, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    order = order_lifecycle.get_order_for_actor(db, order_id, user)
    return {"success": True, "data": {"order": order_to_dict(order)}}


@router.put("/{order_id}/cancel")
def cancel_order(
    order_id: int,
    payload: CancelRequest,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    order = order_lifecycle.get_order(db, order_id)
    order = order_lifecycle.cancel_order(db, order, actor=user, reason=payload.reason, notes=payload.notes)
    return {
        "success": True,
        "message": "Order cancelled successfully",
        "data": {"order": order_to_dict(order)},
    }


@router.put("/{order_id}/review")
def review_order(
    order_id: int,
    payload: ReviewRequest,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    order = order_lifecycle.get_order(db, order_id)
    order = order_lifecycle.review_order(
        db,
        order,
        actor=user,
        rating_food=payload.rating.food,
        rating_delivery=payload.rating.delivery,
        rating_overall=payload.rating.overall,
        review=payload.review,
    )
    return {
        "success": True,
        "message": "Review added successfully",
        "data": {"order": order_to_dict(order)},
    }


@router.put("/{order_id}/status")
def update_status(
    order_id: int,
    payload: StatusUpdate,
    user: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    order = order_lifecycle.get_order(db, order_id)
    order = order_lifecycle.update_status(db, order, actor=user, new_status=payload.status, notes=payload.notes)
    return {
        "success": True,
        "message": "Order status updated successfully",
        "data": {"order": order_to_dict(order)},
    }
