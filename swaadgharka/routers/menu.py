from __future__ import annotations

from typing import Literal, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from swaadgharka.core.database import get_db
from swaadgharka.deps import require_admin
from swaadgharka.models.user import User
from swaadgharka.schemas.menu import (
    Category,
    Cuisine,
    MenuItemCreate,
    MenuItemUpdate,
    SortKey,
    SpiceLevel,
    Tag,
    menu_item_detail,
    menu_item_summary,
)
from swaadgharka.services import menu_catalog
from swaadgharka.services.menu_catalog import DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE, MenuPage

router = APIRouter(prefix="/api/menu", tags=["menu"])

# Keys an update may explicitly clear; every other key ignores an explicit null
_NULLABLE_FIELDS = {"original_price", "available_from", "available_until", "nutritional_info"}


def _page_to_dict(page: MenuPage) -> dict:
    return {
        "success": True,
        "data": {
            "menu_items": [menu_item_summary(item) for item in page.items],
            "pagination": {
                "current_page": page.page,
                "total_pages": page.pages,
                "total_items": page.total,
                "items_per_page": page.limit,
                "has_next_page": page.page < page.pages,
                "has_prev_page": page.page > 1,
            },
            "filters": page.filters,
        },
    }


@router.get("")
def list_menu(
    category: Optional[Category] = None,
    cuisine: Optional[Cuisine] = None,
    min_price: Optional[int] = Query(None, alias="minPrice", ge=0),
    max_price: Optional[int] = Query(None, alias="maxPrice", ge=0),
    spice_level: Optional[SpiceLevel] = Query(None, alias="spiceLevel"),
    tags: Optional[Tag] = None,
    search: Optional[str] = Query(None, max_length=100),
    sort_by: SortKey = Query("createdAt", alias="sortBy"),
    sort_order: Literal["asc", "desc"] = Query("desc", alias="sortOrder"),
    page: int = Query(1, ge=1),
    limit: int = Query(DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE),
    db: Session = Depends(get_db),
):
    result = menu_catalog.list_menu_items(
        db,
        category=category,
        cuisine=cuisine,
        min_price=min_price,
        max_price=max_price,
        spice_level=spice_level,
        tag=tags,
        search=search,
        sort_by=sort_by,
        sort_order=sort_order,
        page=page,
        limit=limit,
    )
    return _page_to_dict(result)


@router.get("/featured/items")
def featured(db: Session = Depends(get_db)):
    items = menu_catalog.featured_items(db)
    return {"success": True, "data": {"menu_items": [menu_item_summary(item) for item in items]}}


@router.get("/special/items")
def specials(db: Session = Depends(get_db)):
    items = menu_catalog.special_items(db)
    return {"success": True, "data": {"menu_items": [menu_item_summary(item) for item in items]}}


@router.get("/category/{category}")
def by_category(
    category: Category,
    page: int = Query(1, ge=1),
    limit: int = Query(DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE),
    db: Session = Depends(get_db),
):
    return _page_to_dict(menu_catalog.items_by_category(db, category, page=page, limit=limit))


@router.get("/{item_id}")
def get_item(item_id: int, db: Session = Depends(get_db)):
    item = menu_catalog.get_menu_item(db, item_id, with_reviews=True)
    return {"success": True, "data": {"menu_item": menu_item_detail(item)}}


@router.post("", status_code=201)
def create_item(
    payload: MenuItemCreate,
    user: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    item = menu_catalog.create_menu_item(db, actor=user, data=payload.model_dump())
    return {
        "success": True,
        "message": "Menu item created successfully",
        "data": {"menu_item": menu_item_detail(item)},
    }


@router.put("/{item_id}")
def update_item(
    item_id: int,
    payload: MenuItemUpdate,
    user: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    data = {
        key: value
        for key, value in payload.model_dump(exclude_unset=True).items()
        if value is not None or key in _NULLABLE_FIELDS
    }
    item = menu_catalog.update_menu_item(db, actor=user, item_id=item_id, data=data)
    return {
        "success": True,
        "message": "Menu item updated successfully",
        "data": {"menu_item": menu_item_detail(item)},
    }


@router.delete("/{item_id}")
def delete_item(
    item_id: int,
    user: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    menu_catalog.soft_delete_menu_item(db, actor=user, item_id=item_id)
    return {"success": True, "message": "Menu item deleted successfully"}
