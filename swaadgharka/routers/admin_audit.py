from __future__ import annotations

import json
from datetime import datetime
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel
from sqlalchemy.orm import Session

from swaadgharka.core.database import get_db
from swaadgharka.deps import require_admin
from swaadgharka.models.admin_audit_log import AdminAuditLog
from swaadgharka.models.user import User

router = APIRouter(prefix="/api/admin/audit", tags=["admin-audit"])


class AdminAuditRead(BaseModel):
    id: int
    user_id: int
    user_name: Optional[str]
    user_email: Optional[str]
    action: str
    entity_type: Optional[str]
    entity_id: Optional[int]
    meta: Optional[Dict[str, Any]]
    created_at: datetime


@router.get("", response_model=List[AdminAuditRead])
def list_audit_logs(
    from_date: Optional[datetime] = Query(None, alias="from"),
    to_date: Optional[datetime] = Query(None, alias="to"),
    user_id: Optional[int] = None,
    action: Optional[str] = None,
    entity_type: Optional[str] = None,
    entity_id: Optional[int] = None,
    limit: int = Query(200, ge=1, le=500),
    _admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    query = db.query(AdminAuditLog, User).outerjoin(User, User.id == AdminAuditLog.user_id)

    if from_date:
        query = query.filter(AdminAuditLog.created_at >= from_date)
    if to_date:
        query = query.filter(AdminAuditLog.created_at <= to_date)
    if user_id:
        query = query.filter(AdminAuditLog.user_id == user_id)
    if action:
        query = query.filter(AdminAuditLog.action == action)
    if entity_type:
        query = query.filter(AdminAuditLog.entity_type == entity_type)
    if entity_id:
        query = query.filter(AdminAuditLog.entity_id == entity_id)

    rows = (
        query.order_by(AdminAuditLog.created_at.desc(), AdminAuditLog.id.desc())
        .limit(limit)
        .all()
    )

    results: List[Dict[str, Any]] = []
    for entry, actor in rows:
        meta = None
        if entry.meta_json:
            try:
                meta = json.loads(entry.meta_json)
            except json.JSONDecodeError:
                meta = {"raw": entry.meta_json}
        results.append(
            {
                "id": entry.id,
                "user_id": entry.user_id,
                "user_name": actor.name if actor else None,
                "user_email": actor.email if actor else None,
                "action": entry.action,
                "entity_type": entry.entity_type,
                "entity_id": entry.entity_id,
                "meta": meta,
                "created_at": entry.created_at,
            }
        )

    return results
