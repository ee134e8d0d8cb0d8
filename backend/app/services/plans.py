"""
DarkMode Backend — Plan Catalog
=================================

What:  Immutable table of plan limits (free / pro / enterprise).
Why:   Limits are configuration, but the services that enforce them should
       not reach into ambient settings on every call. The catalog is built
       once at import time from `settings` and handed to UsageService and
       DocumentService through their constructors; tests build their own.
How:   Frozen dataclasses inside a MappingProxyType.

-1 means unlimited for every limit.
"""

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Iterator, Mapping, Optional, Tuple

from app.config import Settings, settings
from app.models.enums import SubscriptionStatus

UNLIMITED = -1


@dataclass(frozen=True)
class PlanLimits:
    slug: str
    name: str
    description: str
    minutes_limit: int
    max_documents: int
    max_sessions_per_day: int
    price_monthly_cents: int = 0
    price_yearly_cents: int = 0
    features: Tuple[str, ...] = field(default_factory=tuple)


def within_limit(used: int, limit: int) -> bool:
    """True while `used` is still below `limit` (always True for unlimited)."""
    return limit == UNLIMITED or used < limit


class PlanCatalog:
    """Read-only mapping of plan slug → PlanLimits."""

    DEFAULT_PLAN = "free"
    # Plan assumed for an ACTIVE subscription whose plan column is empty
    DEFAULT_PAID_PLAN = "pro"

    def __init__(self, plans: Mapping[str, PlanLimits]):
        if self.DEFAULT_PLAN not in plans:
            raise ValueError("Plan catalog must define a 'free' plan")
        self._plans = MappingProxyType(dict(plans))

    def __getitem__(self, slug: str) -> PlanLimits:
        return self._plans[slug]

    def __contains__(self, slug: object) -> bool:
        return slug in self._plans

    def __iter__(self) -> Iterator[PlanLimits]:
        return iter(self._plans.values())

    def get(self, slug: Optional[str]) -> Optional[PlanLimits]:
        if slug is None:
            return None
        return self._plans.get(slug)

    def for_account(self, status: SubscriptionStatus, plan: Optional[str]) -> PlanLimits:
        """
        Resolve the limits that apply to an account.

        Only an ACTIVE subscription earns paid limits. TRIAL, PAST_DUE,
        CANCELED and EXPIRED accounts fall back to the free plan.
        """
        if status == SubscriptionStatus.ACTIVE:
            return self.get(plan) or self._plans.get(self.DEFAULT_PAID_PLAN) or self._plans[self.DEFAULT_PLAN]
        return self._plans[self.DEFAULT_PLAN]

    @classmethod
    def from_settings(cls, config: Settings) -> "PlanCatalog":
        return cls({
            "free": PlanLimits(
                slug="free",
                name="Free",
                description="Perfect for trying out DarkMode AI",
                minutes_limit=config.free_minutes_limit,
                max_documents=config.free_max_documents,
                max_sessions_per_day=config.free_max_sessions_per_day,
                features=(
                    "60 minutes/month",
                    "3 sessions/day",
                    "5 document uploads",
                    "Basic profiles",
                    "Community support",
                ),
            ),
            "pro": PlanLimits(
                slug="pro",
                name="Pro",
                description="For professionals who need more power",
                minutes_limit=config.pro_minutes_limit,
                max_documents=config.pro_max_documents,
                max_sessions_per_day=config.pro_max_sessions_per_day,
                price_monthly_cents=1999,
                price_yearly_cents=19999,
                features=(
                    "10 hours/month",
                    "Unlimited sessions",
                    "50 document uploads",
                    "All profiles",
                    "Priority support",
                    "Analytics dashboard",
                ),
            ),
            "enterprise": PlanLimits(
                slug="enterprise",
                name="Enterprise",
                description="For teams and organizations",
                minutes_limit=config.enterprise_minutes_limit,
                max_documents=config.enterprise_max_documents,
                max_sessions_per_day=config.enterprise_max_sessions_per_day,
                price_monthly_cents=9999,
                price_yearly_cents=99999,
                features=(
                    "Unlimited usage",
                    "Unlimited documents",
                    "API access",
                    "Dedicated support",
                ),
            ),
        })


# Built once at startup
plan_catalog = PlanCatalog.from_settings(settings)
