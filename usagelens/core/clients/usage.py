from __future__ import annotations

import asyncio
import json
import logging

import aiohttp
from aiohttp_retry import ExponentialRetry, RetryClient
from pydantic import BaseModel, ConfigDict, ValidationError

from usagelens.core.clients.http import get_http_client
from usagelens.core.config.settings import get_settings
from usagelens.core.types import JsonObject, JsonValue
from usagelens.core.utils.request_id import get_request_id

RETRYABLE_STATUS = {408, 429, 500, 502, 503, 504}
RETRY_START_TIMEOUT = 0.5
RETRY_MAX_TIMEOUT = 2.0

logger = logging.getLogger(__name__)


class UsageErrorDetail(BaseModel):
    model_config = ConfigDict(extra="ignore")

    message: str | None = None
    error_description: str | None = None


class UsageErrorEnvelope(BaseModel):
    model_config = ConfigDict(extra="ignore")

    error: UsageErrorDetail | str | None = None
    error_description: str | None = None
    message: str | None = None
    detail: str | None = None


class UsageFetchError(Exception):
    def __init__(self, status_code: int, message: str) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.message = message


async def fetch_json(
    url: str,
    *,
    cookie: str,
    method: str = "GET",
    json_body: JsonObject | None = None,
    bearer_token: str | None = None,
    timeout_seconds: float | None = None,
    max_retries: int | None = None,
    client: RetryClient | None = None,
) -> JsonValue:
    """Issue one authenticated backend request and return its decoded JSON body.

    Raises ``UsageFetchError`` for HTTP errors (with the upstream status), for
    undecodable success bodies (502) and for network failures (status 0).
    """
    settings = get_settings()
    timeout = aiohttp.ClientTimeout(total=timeout_seconds or settings.usage_fetch_timeout_seconds)
    retries = max_retries if max_retries is not None else settings.usage_fetch_max_retries
    headers = _request_headers(cookie, bearer_token)
    retry_client = client or get_http_client().retry_client

    logger.debug("Usage request request_id=%s method=%s url=%s", get_request_id(), method, url)
    try:
        async with retry_client.request(
            method,
            url,
            headers=headers,
            json=json_body,
            timeout=timeout,
            retry_options=_retry_options(retries + 1),
        ) as resp:
            body = await resp.read()
            if resp.status >= 400:
                text = body.decode("utf-8", errors="replace")
                message = _extract_error_message(text) or f"Usage fetch failed ({resp.status})"
                logger.warning(
                    "Usage fetch failed request_id=%s status=%s url=%s message=%s",
                    get_request_id(),
                    resp.status,
                    url,
                    message,
                )
                raise UsageFetchError(resp.status, message)
            try:
                return json.loads(body)
            except ValueError as exc:  # includes UnicodeDecodeError
                logger.warning(
                    "Usage fetch invalid payload request_id=%s url=%s",
                    get_request_id(),
                    url,
                )
                raise UsageFetchError(502, "Invalid usage payload") from exc
    except (aiohttp.ClientError, asyncio.TimeoutError) as exc:
        logger.warning(
            "Usage fetch error request_id=%s url=%s error=%s",
            get_request_id(),
            url,
            exc,
        )
        raise UsageFetchError(0, f"Usage fetch failed: {exc}") from exc


def _request_headers(cookie: str, bearer_token: str | None) -> dict[str, str]:
    headers = {"Accept": "application/json", "Cookie": cookie}
    request_id = get_request_id()
    if request_id:
        headers["x-request-id"] = request_id
    if bearer_token:
        headers["Authorization"] = f"Bearer {bearer_token}"
    return headers


def _extract_error_message(text: str) -> str | None:
    try:
        payload = json.loads(text)
    except ValueError:
        stripped = text.strip()
        return stripped[:200] or None
    if not isinstance(payload, dict):
        return None
    try:
        envelope = UsageErrorEnvelope.model_validate(payload)
    except ValidationError:
        return None
    error = envelope.error
    if isinstance(error, UsageErrorDetail):
        return error.message or error.error_description
    if isinstance(error, str):
        return envelope.error_description or error
    return envelope.message or envelope.detail


def _retry_options(attempts: int) -> ExponentialRetry:
    return ExponentialRetry(
        attempts=attempts,
        start_timeout=RETRY_START_TIMEOUT,
        max_timeout=RETRY_MAX_TIMEOUT,
        factor=2.0,
        statuses=RETRYABLE_STATUS,
        exceptions={aiohttp.ClientError, asyncio.TimeoutError},
        retry_all_server_errors=False,
    )
