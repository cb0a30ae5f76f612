from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, Field, field_validator

from swaadgharka.core.choices import (
    CUISINES,
    MENU_CATEGORIES,
    MENU_SORT_KEYS,
    MENU_TAGS,
    SERVING_SIZES,
    SPICE_LEVELS,
    TIME_OF_DAY_PATTERN,
    WEEKDAYS,
)
from swaadgharka.core.clock import business_today
from swaadgharka.models.menu_item import MenuItem
from swaadgharka.services.menu_catalog import discount_percentage, effective_orders_today, is_currently_available

Category = Literal[MENU_CATEGORIES]
Cuisine = Literal[CUISINES]
Tag = Literal[MENU_TAGS]
SpiceLevel = Literal[SPICE_LEVELS]
ServingSize = Literal[SERVING_SIZES]
Weekday = Literal[WEEKDAYS]
SortKey = Literal[MENU_SORT_KEYS]


class ImageIn(BaseModel):
    url: str = Field(..., min_length=1)
    alt: str = Field(..., min_length=1)
    is_primary: bool = False


class NutritionalInfoIn(BaseModel):
    calories: Optional[int] = Field(None, ge=0)
    protein: Optional[float] = Field(None, ge=0)
    carbs: Optional[float] = Field(None, ge=0)
    fat: Optional[float] = Field(None, ge=0)
    fiber: Optional[float] = Field(None, ge=0)


class MenuItemCreate(BaseModel):
    name: str = Field(..., min_length=2, max_length=100)
    description: str = Field(..., min_length=10, max_length=500)
    price: int = Field(..., ge=1, le=10000)
    original_price: Optional[int] = Field(None, ge=1, le=10000)
    category: Category
    cuisine: Cuisine
    tags: List[Tag] = Field(default_factory=list)
    spice_level: SpiceLevel = "medium"
    preparation_time: int = Field(..., ge=5, le=120)
    serving_size: ServingSize = "1 person"
    ingredients: List[str] = Field(default_factory=list)
    nutritional_info: Optional[NutritionalInfoIn] = None
    images: List[ImageIn] = Field(default_factory=list)
    is_available: bool = True
    available_days: List[Weekday] = Field(default_factory=list)
    available_from: Optional[str] = Field(None, pattern=TIME_OF_DAY_PATTERN)
    available_until: Optional[str] = Field(None, pattern=TIME_OF_DAY_PATTERN)
    max_orders_per_day: int = Field(100, ge=1)
    is_special: bool = False
    is_featured: bool = False

    @field_validator("name", "description")
    @classmethod
    def _strip(cls, value: str) -> str:
        return value.strip()


class MenuItemUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=2, max_length=100)
    description: Optional[str] = Field(None, min_length=10, max_length=500)
    price: Optional[int] = Field(None, ge=1, le=10000)
    original_price: Optional[int] = Field(None, ge=1, le=10000)
    category: Optional[Category] = None
    cuisine: Optional[Cuisine] = None
    tags: Optional[List[Tag]] = None
    spice_level: Optional[SpiceLevel] = None
    preparation_time: Optional[int] = Field(None, ge=5, le=120)
    serving_size: Optional[ServingSize] = None
    ingredients: Optional[List[str]] = None
    nutritional_info: Optional[NutritionalInfoIn] = None
    images: Optional[List[ImageIn]] = None
    is_available: Optional[bool] = None
    available_days: Optional[List[Weekday]] = None
    available_from: Optional[str] = Field(None, pattern=TIME_OF_DAY_PATTERN)
    available_until: Optional[str] = Field(None, pattern=TIME_OF_DAY_PATTERN)
    max_orders_per_day: Optional[int] = Field(None, ge=1)
    is_special: Optional[bool] = None
    is_featured: Optional[bool] = None


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


def _primary_image(images: List[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    for image in images:
        if image.get("is_primary"):
            return image
    return images[0] if images else None


def menu_item_summary(item: MenuItem, now: Optional[datetime] = None) -> Dict[str, Any]:
    """List view: no ingredients, nutrition or reviews."""
    images = list(item.images_json or [])
    return {
        "id": item.id,
        "name": item.name,
        "description": item.description,
        "price": item.price,
        "original_price": item.original_price,
        "discount_percentage": discount_percentage(item.price, item.original_price),
        "category": item.category,
        "cuisine": item.cuisine,
        "tags": item.tags,
        "spice_level": item.spice_level,
        "preparation_time": item.preparation_time,
        "serving_size": item.serving_size,
        "primary_image": _primary_image(images),
        "ratings": {
            "average": round(float(item.ratings_average or 0), 1),
            "count": item.ratings_count,
        },
        "is_special": item.is_special,
        "is_featured": item.is_featured,
        "is_currently_available": is_currently_available(item, now),
        "created_at": _iso(item.created_at),
    }


def menu_item_detail(item: MenuItem, now: Optional[datetime] = None) -> Dict[str, Any]:
    data = menu_item_summary(item, now)
    data.update(
        {
            "ingredients": list(item.ingredients_json or []),
            "nutritional_info": item.nutritional_info_json,
            "images": list(item.images_json or []),
            "availability": {
                "is_available": item.is_available,
                "available_days": item.available_days,
                "available_from": item.available_from,
                "available_until": item.available_until,
                "max_orders_per_day": item.max_orders_per_day,
                "current_orders_today": effective_orders_today(item, business_today(now)),
            },
            "reviews": [
                {
                    "rating": review.rating,
                    "review": review.review,
                    "customer_name": review.customer.name if review.customer else None,
                    "created_at": _iso(review.created_at),
                }
                for review in item.reviews
            ],
            "updated_at": _iso(item.updated_at),
        }
    )
    return data
