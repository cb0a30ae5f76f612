from __future__ import annotations

import logging
from typing import Any

import httpx

from swaadgharka.core.config import PAYMENT_GATEWAY_TIMEOUT_SECONDS
from swaadgharka.core.errors import PaymentGatewayError

logger = logging.getLogger(__name__)


class HttpGateway:
    """Shared httpx plumbing for REST gateways.

    Every call is bounded by the configured timeout. Reads are retried,
    writes are sent once so a payment or refund is never duplicated.
    """

    name = "http"
    MAX_READ_RETRIES = 2

    def __init__(
        self,
        *,
        base_url: str,
        auth: tuple[str, str],
        timeout: float = PAYMENT_GATEWAY_TIMEOUT_SECONDS,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._auth = auth
        self._timeout = timeout
        self._transport = transport

    def _client(self) -> httpx.Client:
        return httpx.Client(
            base_url=self._base_url,
            auth=self._auth,
            timeout=self._timeout,
            transport=self._transport,
        )

    def _request(self, method: str, path: str, **kwargs: Any) -> dict[str, Any]:
        attempts = self.MAX_READ_RETRIES + 1 if method == "GET" else 1
        last_error: str | None = None

        for attempt in range(1, attempts + 1):
            try:
                with self._client() as client:
                    response = client.request(method, path, **kwargs)
            except httpx.TimeoutException:
                last_error = "timeout"
                logger.warning("%s gateway timeout path=%s attempt=%s", self.name, path, attempt)
                continue
            except httpx.HTTPError as exc:
                last_error = str(exc)
                logger.warning("%s gateway transport error path=%s attempt=%s error=%s", self.name, path, attempt, exc)
                continue

            if 200 <= response.status_code < 300:
                try:
                    return response.json()
                except ValueError as exc:
                    raise PaymentGatewayError(f"{self.name} returned an unreadable response") from exc

            logger.error(
                "%s gateway error path=%s status_code=%s body=%s",
                self.name,
                path,
                response.status_code,
                response.text[:500],
            )
            if response.status_code >= 500 and attempt < attempts:
                last_error = f"HTTP {response.status_code}"
                continue
            raise PaymentGatewayError(f"{self.name} rejected the request (HTTP {response.status_code})")

        raise PaymentGatewayError(f"{self.name} is unreachable: {last_error}")
