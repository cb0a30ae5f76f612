from __future__ import annotations

from fastapi import APIRouter, Depends

from swaadgharka.core.metrics import request_metrics
from swaadgharka.deps import require_admin
from swaadgharka.models.user import User

router = APIRouter(prefix="/internal/metrics", tags=["internal-metrics"])


@router.get("")
def metrics(_user: User = Depends(require_admin)):
    return {
        "endpoints": request_metrics.snapshot(),
        "status_codes": request_metrics.status_breakdown(),
    }
