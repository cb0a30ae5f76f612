from __future__ import annotations

from typing import Literal, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from swaadgharka.core.choices import USER_STATUS_FILTERS
from swaadgharka.core.database import get_db
from swaadgharka.deps import get_current_user, require_admin
from swaadgharka.models.user import User
from swaadgharka.schemas.users import order_brief, user_to_dict
from swaadgharka.services import user_accounts

router = APIRouter(prefix="/api/users", tags=["users"])


@router.get("/profile")
def profile(user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    orders, total_orders = user_accounts.recent_orders(db, user)
    return {
        "success": True,
        "data": {
            "user": user_to_dict(user),
            "orders": [order_brief(order) for order in orders],
            "total_orders": total_orders,
        },
    }


@router.get("")
def list_users(
    search: Optional[str] = Query(None, max_length=100),
    status: Optional[Literal[USER_STATUS_FILTERS]] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=user_accounts.MAX_USER_PAGE_SIZE),
    user: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    result = user_accounts.list_users(db, user, search=search, status=status, page=page, limit=limit)
    return {
        "success": True,
        "count": len(result.users),
        "total": result.total,
        "page": result.page,
        "pages": -(-result.total // result.limit),
        "data": {"users": [user_to_dict(item) for item in result.users]},
    }
