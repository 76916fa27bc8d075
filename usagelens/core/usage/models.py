from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class OrganizationPayload(BaseModel):
    model_config = ConfigDict(extra="ignore")

    uuid: str | None = None
    name: str | None = None
    rate_limit_tier: str | None = None
    capabilities: list[str] | None = None


class AutoReloadSettings(BaseModel):
    model_config = ConfigDict(extra="ignore")

    enabled: bool | None = None


class PrepaidCreditsPayload(BaseModel):
    model_config = ConfigDict(extra="ignore")

    amount: int
    currency: str
    auto_reload_settings: AutoReloadSettings | None = None


class OverageCreditGrantPayload(BaseModel):
    model_config = ConfigDict(extra="ignore")

    available: bool = False
    eligible: bool = False
    granted: bool = False
    amount_minor_units: int = 0
    currency: str = ""


class OverageSpendLimitPayload(BaseModel):
    model_config = ConfigDict(extra="ignore")

    is_enabled: bool = False
    monthly_credit_limit: int = 0
    currency: str = ""
    used_credits: int = 0
    out_of_credits: bool = False
    disabled_reason: str | None = None


class SessionUser(BaseModel):
    model_config = ConfigDict(extra="ignore")

    email: str | None = None
    name: str | None = None


class SessionPayload(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    access_token: str | None = Field(default=None, alias="accessToken")
    user: SessionUser | None = None
