"""Shared httpx client construction and status classification."""

from __future__ import annotations

import httpx

from hubresolve.core.config import HubConfig

TRANSIENT_STATUS_CODES = frozenset({408, 429, 500, 502, 503, 504})
AUTH_STATUS_CODES = frozenset({401, 403})


def auth_headers(config: HubConfig) -> dict[str, str]:
    headers = {"User-Agent": config.user_agent}
    if config.token:
        headers["Authorization"] = f"Bearer {config.token}"
    return headers


def create_http_client(
    config: HubConfig,
    timeout: float | None = None,
    transport: httpx.BaseTransport | None = None,
) -> httpx.Client:
    """Client with auth headers and a fixed client-level timeout."""
    return httpx.Client(
        headers=auth_headers(config),
        timeout=config.timeout if timeout is None else timeout,
        follow_redirects=True,
        transport=transport,
    )


def is_transient(exc: Exception) -> bool:
    """Network errors, timeouts, 408/429 and 5xx gateway errors are worth retrying."""
    if isinstance(exc, httpx.TransportError):
        return True
    if isinstance(exc, httpx.HTTPStatusError):
        return exc.response.status_code in TRANSIENT_STATUS_CODES
    return False
