"""Search ranking by subscription tier.

Listings are ordered by the priority of their *effective* plan: a plan whose
end date has passed counts as no plan at all, even if the billing bridge has
not cleared it yet. Python's sort is stable, so listings of equal priority keep
the order the caller's query produced and results do not shuffle between
identical searches.
"""
from datetime import datetime
from typing import Iterable, List, Optional, Protocol, TypeVar

from vendorhub.lib.timeutils import as_utc, utcnow
from vendorhub.models.listings import SubscriptionPlan


PLAN_PRIORITY = {
    SubscriptionPlan.ELITE: 3,
    SubscriptionPlan.FEATURED: 2,
    SubscriptionPlan.ESSENTIAL: 1,
    SubscriptionPlan.NONE: 0,
}


class Rankable(Protocol):
    subscription_plan: Optional[SubscriptionPlan]
    subscription_end_date: Optional[datetime]


T = TypeVar("T", bound=Rankable)


def effective_plan(listing: Rankable, now: Optional[datetime] = None) -> SubscriptionPlan:
    """Plan a listing should rank with at `now`."""
    plan = listing.subscription_plan
    if plan is None:
        return SubscriptionPlan.NONE
    plan = SubscriptionPlan(plan)
    if plan == SubscriptionPlan.NONE:
        return plan

    end_date = listing.subscription_end_date
    if end_date is None:
        return SubscriptionPlan.NONE

    if as_utc(end_date) <= as_utc(now or utcnow()):
        return SubscriptionPlan.NONE
    return plan


def priority(listing: Rankable, now: Optional[datetime] = None) -> int:
    return PLAN_PRIORITY[effective_plan(listing, now)]


def rank(candidates: Iterable[T], now: Optional[datetime] = None) -> List[T]:
    """Order listings by effective tier, highest first.

    Pure function: no I/O, input untouched. `now` is fixed once so every
    candidate is judged against the same instant.
    """
    now = now or utcnow()
    return sorted(candidates, key=lambda listing: -priority(listing, now))
