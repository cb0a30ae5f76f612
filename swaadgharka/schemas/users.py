from __future__ import annotations

from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

from swaadgharka.core.choices import (
    CUISINES,
    DIETARY_PREFERENCES,
    PHONE_PATTERN,
    PINCODE_PATTERN,
    SPICE_LEVELS,
)
from swaadgharka.models.order import Order
from swaadgharka.models.user import User


class ProfileAddressIn(BaseModel):
    """Partial address; only the fields sent replace the saved ones."""

    model_config = ConfigDict(str_strip_whitespace=True)

    street: Optional[str] = Field(None, min_length=1, max_length=200)
    city: Optional[str] = Field(None, min_length=1, max_length=50)
    state: Optional[str] = Field(None, min_length=1, max_length=50)
    pincode: Optional[str] = Field(None, pattern=PINCODE_PATTERN)
    landmark: Optional[str] = Field(None, max_length=100)


class PreferencesIn(BaseModel):
    spice_level: Optional[Literal[SPICE_LEVELS]] = None
    dietary: Optional[List[Literal[DIETARY_PREFERENCES]]] = None
    favorite_cuisines: Optional[List[Literal[CUISINES]]] = Field(None, max_length=len(CUISINES))
    order_updates_sms: Optional[bool] = None


class ProfileUpdate(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    name: Optional[str] = Field(None, min_length=2, max_length=50)
    phone: Optional[str] = Field(None, pattern=PHONE_PATTERN)
    address: Optional[ProfileAddressIn] = None
    preferences: Optional[PreferencesIn] = None


def user_to_dict(user: User) -> Dict[str, Any]:
    return {
        "id": user.id,
        "name": user.name,
        "email": user.email,
        "phone": user.phone,
        "role": user.role,
        "is_active": user.is_active,
        "address": user.address_json or {},
        "preferences": user.preferences_json or {},
        "created_at": user.created_at.isoformat() if user.created_at else None,
    }


def order_brief(order: Order) -> Dict[str, Any]:
    return {
        "id": order.id,
        "order_number": order.order_number,
        "status": order.status,
        "total": order.total,
        "created_at": order.created_at.isoformat() if order.created_at else None,
    }
