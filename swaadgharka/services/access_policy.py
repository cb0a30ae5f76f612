from __future__ import annotations

import logging
from typing import Any

from swaadgharka.core.errors import Forbidden
from swaadgharka.core.request_context import get_route

logger = logging.getLogger(__name__)


class AccessPolicy:
    """Owner-or-admin checks gating every order read and mutation."""

    @staticmethod
    def normalize_role(role: str | None) -> str:
        return (role or "").strip().lower()

    @classmethod
    def is_admin(cls, actor: Any) -> bool:
        return cls.normalize_role(getattr(actor, "role", None)) == "admin"

    @staticmethod
    def is_owner(actor: Any, order: Any) -> bool:
        actor_id = getattr(actor, "id", None)
        customer_id = getattr(order, "customer_id", None)
        return actor_id is not None and customer_id is not None and int(actor_id) == int(customer_id)

    @classmethod
    def can_view(cls, actor: Any, order: Any) -> bool:
        return cls.is_admin(actor) or cls.is_owner(actor, order)

    @classmethod
    def can_mutate(cls, actor: Any, order: Any, *, operation: str = "") -> bool:
        if operation == "status_update":
            return cls.is_admin(actor)
        return cls.is_admin(actor) or cls.is_owner(actor, order)

    @classmethod
    def log_access_denied(cls, *, reason: str, actor: Any, order: Any | None = None) -> None:
        logger.warning(
            "Access denied (%s): user_id=%s user_role=%s order_id=%s route=%s",
            reason,
            getattr(actor, "id", None),
            getattr(actor, "role", None),
            getattr(order, "id", None),
            get_route(),
        )

    @classmethod
    def ensure_can_view(cls, actor: Any, order: Any) -> None:
        if not cls.can_view(actor, order):
            cls.log_access_denied(reason="not_owner", actor=actor, order=order)
            raise Forbidden("Not authorized to view this order")

    @classmethod
    def ensure_can_mutate(cls, actor: Any, order: Any, *, operation: str = "") -> None:
        if not cls.can_mutate(actor, order, operation=operation):
            reason = "role_denied" if operation == "status_update" else "not_owner"
            cls.log_access_denied(reason=reason, actor=actor, order=order)
            raise Forbidden("Not authorized to modify this order")

    @classmethod
    def ensure_owner(cls, actor: Any, order: Any) -> None:
        if not cls.is_owner(actor, order):
            cls.log_access_denied(reason="not_owner", actor=actor, order=order)
            raise Forbidden("Only the customer who placed this order can do that")

    @classmethod
    def ensure_admin(cls, actor: Any) -> None:
        if not cls.is_admin(actor):
            cls.log_access_denied(reason="role_denied", actor=actor)
            raise Forbidden("Admin access required")
