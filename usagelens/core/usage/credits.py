from __future__ import annotations

from dataclasses import replace

from usagelens.core.usage.models import (
    OverageCreditGrantPayload,
    OverageSpendLimitPayload,
    PrepaidCreditsPayload,
)
from usagelens.core.usage.types import CreditsSummary


def summarize_credits(
    prepaid: PrepaidCreditsPayload | None,
    grant: OverageCreditGrantPayload | None,
    overage: OverageSpendLimitPayload | None,
) -> CreditsSummary | None:
    if prepaid is None and overage is None:
        return None

    summary = CreditsSummary()
    if prepaid is not None:
        auto_reload = prepaid.auto_reload_settings
        summary = replace(
            summary,
            prepaid_remaining=prepaid.amount,
            prepaid_currency=prepaid.currency,
            prepaid_auto_reload=bool(auto_reload and auto_reload.enabled),
            # The total is only known once the grant is confirmed.
            prepaid_total=grant.amount_minor_units if grant is not None and grant.granted else None,
        )
    if overage is not None:
        summary = replace(
            summary,
            overage_monthly_limit=overage.monthly_credit_limit,
            overage_used=overage.used_credits,
            overage_currency=overage.currency,
            overage_enabled=overage.is_enabled,
            overage_out_of_credits=overage.out_of_credits,
        )
        if summary.has_monetary_overage:
            summary = replace(summary, overage_enabled=True)
    return summary
