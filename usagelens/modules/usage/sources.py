from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, replace
from datetime import datetime
from typing import Protocol, TypeVar

from pydantic import BaseModel, ValidationError

from usagelens.core.clients.usage import UsageFetchError, fetch_json
from usagelens.core.config.settings import Settings, get_settings
from usagelens.core.exceptions import UsageDataUnavailableError, UsageSourceNotConfiguredError
from usagelens.core.types import JsonObject, JsonValue
from usagelens.core.usage.credits import summarize_credits
from usagelens.core.usage.extractor import find_account_profile
from usagelens.core.usage.merge import SourceOutcome, collect, parse_document, with_plan_label
from usagelens.core.usage.models import (
    OrganizationPayload,
    OverageCreditGrantPayload,
    OverageSpendLimitPayload,
    PrepaidCreditsPayload,
    SessionPayload,
)
from usagelens.core.usage.plan import classify_capabilities
from usagelens.core.usage.slots import CLAUDE_PROFILE, CODEX_PROFILE, ProviderProfile
from usagelens.core.usage.types import PlanTier, UsageSnapshot
from usagelens.core.utils.request_id import get_request_id

logger = logging.getLogger(__name__)

_ModelT = TypeVar("_ModelT", bound=BaseModel)


class JsonFetcher(Protocol):
    async def __call__(
        self,
        url: str,
        *,
        cookie: str,
        method: str = "GET",
        json_body: JsonObject | None = None,
        bearer_token: str | None = None,
    ) -> JsonValue: ...


class UsageSource(Protocol):
    profile: ProviderProfile

    async def fetch_snapshot(self, *, now: datetime | None = None) -> UsageSnapshot: ...


@dataclass(frozen=True, slots=True)
class UsageEndpoint:
    path: str
    method: str = "GET"
    body: JsonObject | None = None
    requires_auth: bool = True


class ClaudeUsageSource:
    profile = CLAUDE_PROFILE

    def __init__(self, *, base_url: str, session_key: str, fetcher: JsonFetcher = fetch_json) -> None:
        self._base_url = base_url.rstrip("/")
        self._cookie = session_key if "=" in session_key else f"sessionKey={session_key}"
        self._fetcher = fetcher

    async def fetch_snapshot(self, *, now: datetime | None = None) -> UsageSnapshot:
        organizations = _parse_organizations(await self._get("/api/organizations"))
        organization = next((org for org in organizations if org.uuid), None)
        if organization is None:
            raise UsageDataUnavailableError("No organization found")
        org_path = f"/api/organizations/{organization.uuid}"

        usage, prepaid, grant, overage = await asyncio.gather(
            self._get(f"{org_path}/usage"),
            self._get(f"{org_path}/prepaid/credits"),
            self._get(f"{org_path}/overage_credit_grant"),
            self._get(f"{org_path}/overage_spend_limit"),
            return_exceptions=True,
        )
        credits = summarize_credits(
            _optional_model(PrepaidCreditsPayload, prepaid, "prepaid credits"),
            _optional_model(OverageCreditGrantPayload, grant, "overage credit grant"),
            _optional_model(OverageSpendLimitPayload, overage, "overage spend limit"),
        )
        # The organization tier counts as usable data on its own.
        outcomes: list[SourceOutcome] = [
            UsageSnapshot(plan_label=organization.rate_limit_tier),
            _to_outcome(usage, self.profile, now),
        ]
        if credits is not None:
            outcomes.append(UsageSnapshot(credits=credits))

        snapshot = collect(outcomes, self.profile, now=now)
        if snapshot.plan_tier == PlanTier.UNKNOWN:
            snapshot = replace(snapshot, plan_tier=classify_capabilities(organization.capabilities))
        logger.info(
            "Claude usage collected request_id=%s plan=%s candidates=%d",
            get_request_id(),
            snapshot.plan_tier.value,
            len(snapshot.candidates),
        )
        return snapshot

    async def _get(self, path: str) -> JsonValue:
        return await self._fetcher(f"{self._base_url}{path}", cookie=self._cookie)


class CodexUsageSource:
    profile = CODEX_PROFILE

    def __init__(
        self,
        *,
        base_url: str,
        session_cookies: str,
        region_code: str = "US",
        fetcher: JsonFetcher = fetch_json,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._cookie = session_cookies
        self._region_code = region_code
        self._fetcher = fetcher

    def usage_endpoints(self) -> list[UsageEndpoint]:
        sentinel_body: JsonObject = {
            "conversation_mode_kind": "primary_assistant",
            "model": "auto",
            "messages": [],
        }
        return [
            UsageEndpoint("/backend-api/wham/usage"),
            UsageEndpoint("/backend-api/wham/usage/credit-usage-events"),
            UsageEndpoint(f"/backend-api/checkout_pricing_config/configs/{self._region_code}"),
            UsageEndpoint("/backend-api/checkout_pricing_config/configs/ES"),
            UsageEndpoint("/backend-api/sentinel/chat-requirements", method="POST", body=sentinel_body),
            UsageEndpoint("/backend-api/accounts/check/v4-2023-04-27"),
            UsageEndpoint("/backend-api/accounts/check"),
        ]

    async def fetch_snapshot(self, *, now: datetime | None = None) -> UsageSnapshot:
        access_token = await self._access_token()
        endpoints = self.usage_endpoints()
        profile_doc, *documents = await asyncio.gather(
            self._request(UsageEndpoint("/backend-api/me"), access_token),
            *(self._request(endpoint, access_token) for endpoint in endpoints),
            return_exceptions=True,
        )

        outcomes: list[SourceOutcome] = []
        for endpoint, document in zip(endpoints, documents):
            outcome = _to_outcome(document, self.profile, now)
            if isinstance(outcome, BaseException):
                logger.info(
                    "Codex usage endpoint failed request_id=%s endpoint=%s error=%s",
                    get_request_id(),
                    endpoint.path,
                    outcome,
                )
            else:
                logger.debug(
                    "Codex usage endpoint parsed request_id=%s endpoint=%s candidates=%d",
                    get_request_id(),
                    endpoint.path,
                    len(outcome.candidates),
                )
            outcomes.append(outcome)

        snapshot = collect(outcomes, self.profile, now=now)
        if not isinstance(profile_doc, BaseException):
            snapshot = with_plan_label(snapshot, find_account_profile(profile_doc).plan_label, self.profile)
        logger.info(
            "Codex usage collected request_id=%s plan=%s candidates=%d",
            get_request_id(),
            snapshot.plan_tier.value,
            len(snapshot.candidates),
        )
        return snapshot

    async def _access_token(self) -> str | None:
        try:
            document = await self._request(UsageEndpoint("/api/auth/session", requires_auth=False), None)
        except UsageFetchError as exc:
            logger.info(
                "Codex session lookup failed request_id=%s status=%s",
                get_request_id(),
                exc.status_code,
            )
            return None
        if not isinstance(document, dict):
            return None
        try:
            session = SessionPayload.model_validate(document)
        except ValidationError:
            return None
        return session.access_token or None

    async def _request(self, endpoint: UsageEndpoint, access_token: str | None) -> JsonValue:
        return await self._fetcher(
            f"{self._base_url}{endpoint.path}",
            cookie=self._cookie,
            method=endpoint.method,
            json_body=endpoint.body,
            bearer_token=access_token if endpoint.requires_auth else None,
        )


def build_usage_source(settings: Settings | None = None) -> UsageSource:
    settings = settings or get_settings()
    if not settings.session_cookie:
        raise UsageSourceNotConfiguredError()
    if settings.provider == "codex":
        return CodexUsageSource(
            base_url=settings.codex_base_url,
            session_cookies=settings.session_cookie,
            region_code=settings.codex_region_code,
        )
    return ClaudeUsageSource(base_url=settings.claude_base_url, session_key=settings.session_cookie)


def _to_outcome(
    document: JsonValue | BaseException,
    profile: ProviderProfile,
    now: datetime | None,
) -> SourceOutcome:
    if isinstance(document, BaseException):
        return document
    return parse_document(document, profile, now=now)


def _parse_organizations(document: JsonValue) -> list[OrganizationPayload]:
    items = document if isinstance(document, list) else [document]
    organizations: list[OrganizationPayload] = []
    for item in items:
        if not isinstance(item, dict):
            continue
        try:
            organizations.append(OrganizationPayload.model_validate(item))
        except ValidationError:
            continue
    return organizations


def _optional_model(
    model: type[_ModelT],
    document: JsonValue | BaseException,
    label: str,
) -> _ModelT | None:
    if isinstance(document, BaseException):
        logger.debug("Claude %s not available request_id=%s error=%s", label, get_request_id(), document)
        return None
    try:
        return model.model_validate(document)
    except ValidationError:
        logger.debug("Claude %s payload invalid request_id=%s", label, get_request_id())
        return None
