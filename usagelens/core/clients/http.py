from __future__ import annotations

from dataclasses import dataclass

import aiohttp
from aiohttp_retry import RetryClient

from usagelens.core.config.settings import get_settings


@dataclass(slots=True)
class HttpClient:
    session: aiohttp.ClientSession
    retry_client: RetryClient


_http_client: HttpClient | None = None


async def init_http_client() -> HttpClient:
    global _http_client
    if _http_client is not None:
        return _http_client
    settings = get_settings()
    session = aiohttp.ClientSession(
        headers={"Accept": "application/json", "User-Agent": settings.user_agent},
        timeout=aiohttp.ClientTimeout(total=settings.usage_fetch_timeout_seconds),
    )
    _http_client = HttpClient(session=session, retry_client=RetryClient(client_session=session))
    return _http_client


async def close_http_client() -> None:
    global _http_client
    if _http_client is None:
        return
    client = _http_client
    _http_client = None
    await client.session.close()


def get_http_client() -> HttpClient:
    if _http_client is None:
        raise RuntimeError("HTTP client is not initialized")
    return _http_client
