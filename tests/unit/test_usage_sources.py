from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

import pytest

from usagelens.core.clients.usage import UsageFetchError
from usagelens.core.config.settings import Settings
from usagelens.core.exceptions import UsageDataUnavailableError, UsageSourceNotConfiguredError
from usagelens.core.usage.types import CanonicalSlot, PlanTier
from usagelens.modules.usage.sources import ClaudeUsageSource, CodexUsageSource, build_usage_source

pytestmark = pytest.mark.unit

NOW = datetime(2025, 1, 1, 5, 0, tzinfo=timezone.utc)


class StubFetcher:
    def __init__(self, base_url: str, responses: dict[str, Any]) -> None:
        self._base_url = base_url
        self._responses = responses
        self.calls: list[dict[str, Any]] = []

    async def __call__(
        self,
        url: str,
        *,
        cookie: str,
        method: str = "GET",
        json_body: dict[str, Any] | None = None,
        bearer_token: str | None = None,
    ) -> Any:
        path = url.removeprefix(self._base_url)
        self.calls.append(
            {"path": path, "cookie": cookie, "method": method, "json_body": json_body, "bearer_token": bearer_token}
        )
        response = self._responses.get(path)
        if response is None:
            raise UsageFetchError(404, f"Not found: {path}")
        if isinstance(response, Exception):
            raise response
        return response

    def call(self, path: str) -> dict[str, Any]:
        return next(call for call in self.calls if call["path"] == path)


CLAUDE_BASE = "https://claude.example"
CODEX_BASE = "https://codex.example"
ORG = [{"uuid": "org-1", "name": "Personal", "rate_limit_tier": "default_claude_max_20x", "capabilities": ["chat"]}]


@pytest.mark.asyncio
async def test_claude_source_collects_usage_and_credits(load_fixture):
    fetcher = StubFetcher(
        CLAUDE_BASE,
        {
            "/api/organizations": ORG,
            "/api/organizations/org-1/usage": load_fixture("claude_usage.json"),
            "/api/organizations/org-1/prepaid/credits": {"amount": 1500, "currency": "USD"},
            "/api/organizations/org-1/overage_spend_limit": {
                "is_enabled": True,
                "monthly_credit_limit": 5000,
                "currency": "USD",
                "used_credits": 1250,
                "out_of_credits": False,
            },
        },
    )
    source = ClaudeUsageSource(base_url=f"{CLAUDE_BASE}/", session_key="sk-ant-sid01-abc", fetcher=fetcher)

    snapshot = await source.fetch_snapshot(now=NOW)

    assert snapshot.plan_label == "default_claude_max_20x"
    assert snapshot.plan_tier == PlanTier.MAX
    short = snapshot.get(CanonicalSlot.SHORT_WINDOW)
    assert short is not None
    assert short.utilization == 42.0
    assert snapshot.get(CanonicalSlot.BUCKET_A) is not None
    assert snapshot.get(CanonicalSlot.OVERFLOW) is None
    assert snapshot.credits is not None
    assert snapshot.credits.prepaid_remaining == 1500
    assert snapshot.credits.prepaid_total is None
    assert snapshot.credits.overage_used == 1250
    assert {call["cookie"] for call in fetcher.calls} == {"sessionKey=sk-ant-sid01-abc"}


@pytest.mark.asyncio
async def test_claude_source_uses_capabilities_when_tier_is_unrecognized():
    fetcher = StubFetcher(
        CLAUDE_BASE,
        {
            "/api/organizations": [{"uuid": "org-1", "rate_limit_tier": "default", "capabilities": ["claude_pro"]}],
            "/api/organizations/org-1/usage": {"five_hour": {"utilization": 1}},
        },
    )
    source = ClaudeUsageSource(base_url=CLAUDE_BASE, session_key="sessionKey=raw; other=1", fetcher=fetcher)

    snapshot = await source.fetch_snapshot(now=NOW)

    assert snapshot.plan_tier == PlanTier.PRO
    assert snapshot.credits is None
    assert fetcher.calls[0]["cookie"] == "sessionKey=raw; other=1"


@pytest.mark.asyncio
async def test_claude_source_without_organization_is_unavailable():
    fetcher = StubFetcher(CLAUDE_BASE, {"/api/organizations": [{"name": "no uuid"}]})
    source = ClaudeUsageSource(base_url=CLAUDE_BASE, session_key="abc", fetcher=fetcher)

    with pytest.raises(UsageDataUnavailableError):
        await source.fetch_snapshot(now=NOW)


@pytest.mark.asyncio
async def test_claude_source_returns_plan_when_usage_is_empty():
    fetcher = StubFetcher(
        CLAUDE_BASE,
        {
            "/api/organizations": ORG,
            "/api/organizations/org-1/usage": {"five_hour": None, "seven_day": None},
        },
    )
    source = ClaudeUsageSource(base_url=CLAUDE_BASE, session_key="abc", fetcher=fetcher)

    snapshot = await source.fetch_snapshot(now=NOW)

    assert snapshot.plan_label == "default_claude_max_20x"
    assert snapshot.plan_tier == PlanTier.MAX
    assert snapshot.candidates == ()
    assert all(snapshot.get(slot) is None for slot in CanonicalSlot)


@pytest.mark.asyncio
async def test_claude_source_propagates_usage_auth_failure():
    fetcher = StubFetcher(
        CLAUDE_BASE,
        {
            "/api/organizations": [{"uuid": "org-1", "capabilities": ["chat"]}],
            "/api/organizations/org-1/usage": UsageFetchError(401, "expired"),
        },
    )
    source = ClaudeUsageSource(base_url=CLAUDE_BASE, session_key="abc", fetcher=fetcher)

    with pytest.raises(UsageFetchError) as exc_info:
        await source.fetch_snapshot(now=NOW)

    assert exc_info.value.status_code == 401


@pytest.mark.asyncio
async def test_codex_source_merges_endpoints(load_fixture):
    fetcher = StubFetcher(
        CODEX_BASE,
        {
            "/api/auth/session": {"accessToken": "tok-123", "user": {"email": "dev@example.com"}},
            "/backend-api/me": {"email": "dev@example.com", "name": "Dev", "plan_type": "plus"},
            "/backend-api/wham/usage": load_fixture("codex_usage.json"),
            "/backend-api/wham/usage/credit-usage-events": load_fixture("codex_credit_events.json"),
        },
    )
    source = CodexUsageSource(base_url=CODEX_BASE, session_cookies="a=1; b=2", region_code="DE", fetcher=fetcher)

    snapshot = await source.fetch_snapshot(now=NOW)

    assert snapshot.plan_label == "plus"
    assert snapshot.plan_tier == PlanTier.PRO
    short = snapshot.get(CanonicalSlot.SHORT_WINDOW)
    long = snapshot.get(CanonicalSlot.LONG_WINDOW)
    bucket = snapshot.get(CanonicalSlot.BUCKET_A)
    assert short is not None and short.utilization == 7
    assert long is not None and long.utilization == 31
    assert bucket is not None and bucket.display_name == "Code Review"

    assert fetcher.call("/api/auth/session")["bearer_token"] is None
    assert fetcher.call("/backend-api/wham/usage")["bearer_token"] == "tok-123"
    assert fetcher.call("/backend-api/checkout_pricing_config/configs/DE")["method"] == "GET"
    sentinel = fetcher.call("/backend-api/sentinel/chat-requirements")
    assert sentinel["method"] == "POST"
    assert sentinel["json_body"]["conversation_mode_kind"] == "primary_assistant"
    assert {call["cookie"] for call in fetcher.calls} == {"a=1; b=2"}


@pytest.mark.asyncio
@pytest.mark.parametrize("session", [None, {}, {"accessToken": ""}])
async def test_codex_source_without_session_sends_no_bearer(load_fixture, session):
    responses: dict[str, Any] = {"/backend-api/wham/usage": load_fixture("codex_usage.json")}
    if session is not None:
        responses["/api/auth/session"] = session
    fetcher = StubFetcher(CODEX_BASE, responses)
    source = CodexUsageSource(base_url=CODEX_BASE, session_cookies="a=1", fetcher=fetcher)

    snapshot = await source.fetch_snapshot(now=NOW)

    assert snapshot.plan_label == "pro"
    assert fetcher.call("/backend-api/wham/usage")["bearer_token"] is None


@pytest.mark.asyncio
async def test_codex_source_all_endpoints_failing_raises_last_error():
    fetcher = StubFetcher(CODEX_BASE, {"/api/auth/session": {"accessToken": "tok"}})
    source = CodexUsageSource(base_url=CODEX_BASE, session_cookies="a=1", fetcher=fetcher)

    with pytest.raises(UsageFetchError) as exc_info:
        await source.fetch_snapshot(now=NOW)

    assert exc_info.value.status_code == 404


def test_codex_usage_endpoints_follow_region():
    source = CodexUsageSource(base_url=CODEX_BASE, session_cookies="a=1", region_code="JP")

    paths = [endpoint.path for endpoint in source.usage_endpoints()]

    assert paths[0] == "/backend-api/wham/usage"
    assert "/backend-api/checkout_pricing_config/configs/JP" in paths
    assert len(paths) == 7


def test_build_usage_source_requires_cookie():
    with pytest.raises(UsageSourceNotConfiguredError):
        build_usage_source(Settings(session_cookie=None))


def test_build_usage_source_selects_provider():
    assert isinstance(build_usage_source(Settings(provider="claude", session_cookie="abc")), ClaudeUsageSource)
    assert isinstance(build_usage_source(Settings(provider="codex", session_cookie="abc")), CodexUsageSource)
