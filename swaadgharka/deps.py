from __future__ import annotations

import logging
from typing import Optional

from fastapi import Depends, Request
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy.orm import Session

from swaadgharka.core.config import TRUSTED_PROXIES
from swaadgharka.core.database import get_db
from swaadgharka.core.errors import RateLimited, Unauthenticated
from swaadgharka.core.rate_limiter import InMemoryRateLimiterService, RateLimiterService, api_rate_limiter
from swaadgharka.core.request_context import set_request_context
from swaadgharka.middleware.rate_limit import client_address
from swaadgharka.models.user import User
from swaadgharka.payments.service import GatewayRegistry, get_gateway_registry
from swaadgharka.services.access_policy import AccessPolicy
from swaadgharka.services.auth import verify_access_token
from swaadgharka.services.pricing import PricingConfig

# Swagger "Authorize" uses the form-based token endpoint
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/auth/token", auto_error=False)

logger = logging.getLogger(__name__)

# (action) -> limiter, shared across requests of this process
_action_limiters: dict[str, RateLimiterService] = {}


def get_current_user(
    request: Request,
    token: Optional[str] = Depends(oauth2_scheme),
    db: Session = Depends(get_db),
) -> User:
    """Resolve the bearer credential to an active user."""
    if not token:
        raise Unauthenticated("Access denied. No token provided")

    user_id = verify_access_token(token)
    user = db.query(User).filter(User.id == user_id).first()
    if not user:
        raise Unauthenticated("User not found")
    if not user.is_active:
        raise Unauthenticated("Account is deactivated")

    request.state.user = user
    set_request_context(user_id=str(user.id))
    return user


def get_optional_user(
    request: Request,
    token: Optional[str] = Depends(oauth2_scheme),
    db: Session = Depends(get_db),
) -> Optional[User]:
    """Like get_current_user, but anonymous callers get None instead of 401."""
    if not token:
        return None
    return get_current_user(request, token, db)


def require_admin(user: User = Depends(get_current_user)) -> User:
    AccessPolicy.ensure_admin(user)
    return user


def _limiter_for(action: str, limit: int, window_seconds: int) -> RateLimiterService:
    limiter = _action_limiters.get(action)
    if limiter is None:
        limiter = InMemoryRateLimiterService(limit=limit, window_seconds=window_seconds)
        _action_limiters[action] = limiter
    return limiter


def reset_rate_limits() -> None:
    api_rate_limiter.reset()
    for limiter in _action_limiters.values():
        if isinstance(limiter, InMemoryRateLimiterService):
            limiter.reset()


def _client_subject(request: Request) -> str:
    user = getattr(request.state, "user", None)
    if user is not None:
        return f"user:{user.id}"
    return f"ip:{client_address(request, TRUSTED_PROXIES)}"


def enforce_rate_limit(
    request: Request,
    *,
    action: str,
    limit: int,
    window_seconds: int,
    subject: Optional[str] = None,
) -> None:
    limiter = _limiter_for(action, limit, window_seconds)
    subject = subject or _client_subject(request)
    decision = limiter.check(subject=subject, action=action)
    if not decision.allowed:
        logger.warning(
            "Rate limit hit action=%s subject=%s",
            action,
            subject,
            extra={"endpoint": request.url.path, "method": request.method},
        )
        raise RateLimited(retry_after=decision.retry_after_seconds)


def rate_limit(action: str, *, limit: int, window_seconds: int):
    """Per-action limit, keyed by the authenticated user or else the client address.

    Declare it after the user dependency so the user is already resolved.
    """

    def _dependency(request: Request) -> None:
        enforce_rate_limit(request, action=action, limit=limit, window_seconds=window_seconds)

    return _dependency


def get_payment_gateways() -> GatewayRegistry:
    return get_gateway_registry()


def get_pricing_config() -> PricingConfig:
    return PricingConfig()
