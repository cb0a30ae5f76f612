from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, EmailStr, Field

from swaadgharka.core.choices import (
    CANCELLATION_REASONS,
    MAX_ITEM_INSTRUCTIONS,
    MAX_LINE_QUANTITY,
    MAX_ORDER_INSTRUCTIONS,
    MAX_REVIEW_LENGTH,
    ORDER_STATUSES,
    ORDER_TYPES,
    PAYMENT_METHODS,
    PHONE_PATTERN,
    PINCODE_PATTERN,
    TIME_OF_DAY_PATTERN,
)
from swaadgharka.models.order import Order
from swaadgharka.models.order_item import OrderItem
from swaadgharka.models.order_status_history import OrderStatusHistory

OrderStatus = Literal[ORDER_STATUSES]
CancellationReason = Literal[CANCELLATION_REASONS]
OrderType = Literal[ORDER_TYPES]
PaymentMethod = Literal[PAYMENT_METHODS]


class CustomizationIn(BaseModel):
    name: str = Field(..., min_length=1, max_length=50)
    option: str = Field(..., min_length=1, max_length=50)
    extra_cost: int = Field(0, ge=0)


class OrderLineIn(BaseModel):
    menu_item_id: int = Field(..., ge=1)
    quantity: int = Field(..., ge=1, le=MAX_LINE_QUANTITY)
    customizations: List[CustomizationIn] = Field(default_factory=list)
    special_instructions: Optional[str] = Field(None, max_length=MAX_ITEM_INSTRUCTIONS)


class CoordinatesIn(BaseModel):
    latitude: float = Field(..., ge=-90, le=90)
    longitude: float = Field(..., ge=-180, le=180)


class AddressIn(BaseModel):
    street: str = Field(..., min_length=1, max_length=200)
    city: str = Field(..., min_length=1, max_length=50)
    state: str = Field(..., min_length=1, max_length=50)
    pincode: str = Field(..., pattern=PINCODE_PATTERN)
    landmark: Optional[str] = Field(None, max_length=100)
    coordinates: Optional[CoordinatesIn] = None


class ContactIn(BaseModel):
    phone: str = Field(..., pattern=PHONE_PATTERN)
    alternate_phone: Optional[str] = Field(None, pattern=PHONE_PATTERN)
    email: Optional[EmailStr] = None


class ScheduledDeliveryIn(BaseModel):
    date: datetime
    time: str = Field(..., pattern=TIME_OF_DAY_PATTERN)


class OrderCreate(BaseModel):
    """Client totals, if sent, are ignored: pricing is always recomputed."""

    items: List[OrderLineIn] = Field(..., min_length=1)
    order_type: OrderType = "delivery"
    delivery_address: Optional[AddressIn] = None
    contact_info: ContactIn
    payment_method: PaymentMethod
    special_instructions: Optional[str] = Field(None, max_length=MAX_ORDER_INSTRUCTIONS)
    scheduled_delivery: Optional[ScheduledDeliveryIn] = None


class StatusUpdate(BaseModel):
    status: OrderStatus
    notes: Optional[str] = Field(None, max_length=200)


class CancelRequest(BaseModel):
    reason: CancellationReason
    notes: Optional[str] = Field(None, max_length=200)


class RatingIn(BaseModel):
    food: int = Field(..., ge=1, le=5)
    delivery: Optional[int] = Field(None, ge=1, le=5)
    overall: int = Field(..., ge=1, le=5)


class ReviewRequest(BaseModel):
    rating: RatingIn
    review: Optional[str] = Field(None, max_length=MAX_REVIEW_LENGTH)


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


def order_item_to_dict(item: OrderItem) -> Dict[str, Any]:
    return {
        "menu_item_id": item.menu_item_id,
        "name": item.name,
        "unit_price": item.unit_price,
        "quantity": item.quantity,
        "customizations": item.customizations,
        "special_instructions": item.special_instructions,
        "line_total": item.line_total,
    }


def history_to_dict(entry: OrderStatusHistory) -> Dict[str, Any]:
    return {
        "status": entry.status,
        "timestamp": _iso(entry.timestamp),
        "actor_id": entry.actor_id,
        "notes": entry.notes,
    }


def order_to_dict(o: Order, *, include_history: bool = True) -> Dict[str, Any]:
    data: Dict[str, Any] = {
        "id": o.id,
        "order_number": o.order_number,
        "customer_id": o.customer_id,
        "order_type": o.order_type,
        "status": o.status,
        "items": [order_item_to_dict(item) for item in o.items],
        "total_items": o.total_items,
        "item_summary": o.item_summary,
        "pricing": {
            "subtotal": o.subtotal,
            "tax": o.tax,
            "delivery_fee": o.delivery_fee,
            "packaging_fee": o.packaging_fee,
            "discount": o.discount,
            "total": o.total,
        },
        "delivery_address": o.delivery_address_json,
        "full_delivery_address": o.full_delivery_address,
        "contact_info": {
            "phone": o.contact_phone,
            "alternate_phone": o.contact_alternate_phone,
            "email": o.contact_email,
        },
        "payment_info": {
            "method": o.payment_method,
            "status": o.payment_status,
            "gateway": o.payment_gateway,
            "transaction_id": o.transaction_id,
            "paid_amount": o.paid_amount,
            "payment_date": _iso(o.payment_date),
            "refund_id": o.refund_id,
            "refund_amount": o.refund_amount,
            "refund_date": _iso(o.refund_date),
        },
        "scheduled_delivery": {
            "is_scheduled": bool(o.is_scheduled),
            "date": _iso(o.scheduled_date),
            "time": o.scheduled_time,
        },
        "special_instructions": o.special_instructions,
        "estimated_preparation_minutes": o.estimated_preparation_minutes,
        "estimated_delivery_time": _iso(o.estimated_delivery_time),
        "actual_delivery_time": _iso(o.actual_delivery_time),
        "rating": None,
        "review": o.review,
        "cancellation": None,
        "can_cancel": o.can_cancel,
        "is_delivered": o.is_delivered,
        "created_at": _iso(o.created_at),
        "updated_at": _iso(o.updated_at),
    }
    if o.rating_overall is not None:
        data["rating"] = {
            "food": o.rating_food,
            "delivery": o.rating_delivery,
            "overall": o.rating_overall,
        }
    if o.cancellation_reason:
        data["cancellation"] = {
            "reason": o.cancellation_reason,
            "cancelled_by": o.cancelled_by,
            "cancelled_at": _iso(o.cancelled_at),
            "refund_processed": bool(o.refund_processed),
        }
    if include_history:
        data["status_history"] = [history_to_dict(entry) for entry in o.status_history]
    return data
