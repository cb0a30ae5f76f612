from __future__ import annotations

import logging
from typing import Iterable

from fastapi import Request
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from swaadgharka.core.config import TRUSTED_PROXIES
from swaadgharka.core.errors import RateLimited
from swaadgharka.core.rate_limiter import RateLimiterService, api_rate_limiter

logger = logging.getLogger(__name__)


class ClientRateLimitMiddleware(BaseHTTPMiddleware):
    """Global request budget per client address for everything under ``path_prefix``."""

    def __init__(
        self,
        app,
        *,
        rate_limiter: RateLimiterService | None = None,
        path_prefix: str = "/api/",
        trusted_proxies: Iterable[str] | None = None,
    ) -> None:
        super().__init__(app)
        self._trusted_proxies = frozenset(TRUSTED_PROXIES if trusted_proxies is None else trusted_proxies)
        self._rate_limiter = rate_limiter or api_rate_limiter
        self._path_prefix = path_prefix

    async def dispatch(self, request: Request, call_next):
        if not request.url.path.startswith(self._path_prefix):
            return await call_next(request)

        client = client_address(request, self._trusted_proxies)
        decision = self._rate_limiter.check(subject=client, action="api")
        if not decision.allowed:
            logger.warning(
                "Client rate limit hit client=%s",
                client,
                extra={"endpoint": request.url.path, "method": request.method},
            )
            error = RateLimited(
                "Too many requests from this IP, please try again later",
                retry_after=decision.retry_after_seconds,
            )
            headers = dict(error.headers)
            headers["X-RateLimit-Limit"] = str(decision.limit)
            headers["X-RateLimit-Remaining"] = str(decision.remaining)
            return JSONResponse(status_code=error.status_code, content=error.to_dict(), headers=headers)

        response = await call_next(request)
        response.headers["X-RateLimit-Limit"] = str(decision.limit)
        response.headers["X-RateLimit-Remaining"] = str(decision.remaining)
        return response


def client_address(request: Request, trusted_proxies: frozenset[str] = frozenset()) -> str:
    """Peer address, or the nearest untrusted X-Forwarded-For hop when the peer is a trusted proxy."""
    peer = request.client.host if request.client else "unknown"
    if peer not in trusted_proxies:
        return peer

    hops = [hop.strip() for hop in request.headers.get("X-Forwarded-For", "").split(",") if hop.strip()]
    for hop in reversed(hops):
        if hop not in trusted_proxies:
            return hop
    return peer
