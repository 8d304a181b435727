"""
Subscription expiry sweep.

Ranking already treats a lapsed plan as 'none' at read time; this job writes
that back so stored rows satisfy the plan/end-date invariant again.
"""
from datetime import datetime
from typing import Optional

from sqlalchemy import update
from sqlalchemy.orm import Session

from vendorhub.lib.db import get_db_context
from vendorhub.lib.logging import get_logger
from vendorhub.lib.timeutils import utcnow
from vendorhub.models.listings import Listing, SubscriptionPlan

logger = get_logger(__name__)

JOB_ID = "subscription_expiry_sweep"


def expire_lapsed_subscriptions(session: Session, now: Optional[datetime] = None) -> int:
    """
    Reset every listing whose subscription ended at or before `now`.

    Returns:
        Number of listings reset
    """
    now = now or utcnow()
    stmt = (
        update(Listing)
        .where(
            Listing.subscription_end_date.is_not(None),
            Listing.subscription_end_date <= now,
        )
        .values(subscription_plan=SubscriptionPlan.NONE, subscription_end_date=None)
        .execution_options(synchronize_session=False)
    )
    result = session.execute(stmt)
    session.commit()

    expired = result.rowcount or 0
    if expired:
        logger.info(f"Expired {expired} lapsed subscriptions", extra={"job_id": JOB_ID, "count": expired})
    return expired


def run_subscription_sweep() -> int:
    """Scheduler entry point; opens its own session."""
    with get_db_context() as session:
        return expire_lapsed_subscriptions(session)
