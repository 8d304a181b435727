"""Billing bridge.

Two halves:

1. Checkout: find or create the processor customer for an email, then open a
   hosted subscription checkout session for one price.
2. Webhooks: turn subscription lifecycle events into `subscription_plan` and
   `subscription_end_date` on the supplier's listings.

Webhook delivery is at-least-once and unordered. An event id that was already
applied is skipped, and an event older than the last one applied to a listing
is ignored, so replays and late redeliveries cannot roll a listing back.
"""
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, List, Optional
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from vendorhub.lib.logging import get_logger
from vendorhub.lib.metrics import MetricsCollector, get_metrics_collector
from vendorhub.lib.settings import settings
from vendorhub.lib.timeutils import as_utc, from_unix, utcnow
from vendorhub.models.billing_events import ProcessedWebhookEvent
from vendorhub.models.listings import Listing, SubscriptionPlan
from vendorhub.services.payment_processor import (
    PaymentProcessorClient,
    PaymentProcessorError,
    construct_event,
)

logger = get_logger(__name__)

SUBSCRIPTION_UPSERT_EVENTS = frozenset({
    "customer.subscription.created",
    "customer.subscription.updated",
    "subscription_schedule.created",
})
SUBSCRIPTION_DELETED_EVENT = "customer.subscription.deleted"
CHECKOUT_COMPLETED_EVENT = "checkout.session.completed"


class CheckoutError(Exception):
    """Checkout session could not be created; `error` is the client-facing summary."""

    def __init__(self, error: str, details: str):
        self.error = error
        self.details = details
        super().__init__(f"{error}: {details}")


class WebhookPayloadError(ValueError):
    """Event envelope is missing data the bridge needs."""


@dataclass
class CheckoutSession:
    session_id: str
    url: str


@dataclass
class WebhookResult:
    event_id: Optional[str]
    event_type: str
    outcome: str  # applied, duplicate, stale, logged, ignored
    listings_updated: int = 0


def plan_for_price(price_id: str) -> SubscriptionPlan:
    """Map a processor price id to a plan by substring."""
    if "featured" in price_id:
        return SubscriptionPlan.FEATURED
    if "elite" in price_id:
        return SubscriptionPlan.ELITE
    return SubscriptionPlan.ESSENTIAL


def _require(mapping: Dict[str, Any], key: str, where: str) -> Any:
    value = mapping.get(key) if isinstance(mapping, dict) else None
    if value in (None, "", [], {}):
        raise WebhookPayloadError(f"Missing '{key}' in {where}")
    return value


class BillingService:
    """Checkout session creation and subscription webhook handling."""

    def __init__(
        self,
        session: Optional[Session] = None,
        processor: Optional[PaymentProcessorClient] = None,
        metrics: Optional[MetricsCollector] = None,
    ):
        self.session = session
        self.processor = processor
        self.metrics = metrics or get_metrics_collector()

    # ===== Checkout =====

    def create_checkout_session(self, price_id: str, user_id: str, email: str) -> CheckoutSession:
        """Open a hosted subscription checkout for `price_id`.

        Raises:
            CheckoutError: customer lookup/creation or session creation failed
        """
        processor = self.processor or PaymentProcessorClient()
        metadata = {"userId": user_id}

        try:
            customer = processor.find_customer_by_email(email)
            if customer is not None:
                if not (customer.get("metadata") or {}).get("userId"):
                    processor.update_customer(customer["id"], metadata)
            else:
                customer = processor.create_customer(email, metadata)
        except PaymentProcessorError as e:
            self.metrics.increment_checkout_sessions("customer_failed")
            logger.warning(f"Customer lookup failed: {e.message}", extra={"user_id": user_id})
            raise CheckoutError("Failed to create/retrieve customer", e.message)

        base_url = settings.app_base_url.rstrip("/")
        params = {
            "customer": customer["id"],
            "payment_method_types": ["card"],
            "line_items": [{"price": price_id, "quantity": 1}],
            "mode": "subscription",
            "success_url": f"{base_url}/dashboard?session_id={{CHECKOUT_SESSION_ID}}",
            "cancel_url": f"{base_url}/subscription",
            "metadata": metadata,
            "allow_promotion_codes": True,
            "billing_address_collection": "required",
            "customer_update": {"address": "auto"},
            "payment_method_collection": "always",
            "subscription_data": {"metadata": metadata},
        }

        try:
            session = processor.create_checkout_session(params)
        except PaymentProcessorError as e:
            self.metrics.increment_checkout_sessions("session_failed")
            logger.warning(f"Checkout session failed: {e.message}", extra={"user_id": user_id})
            raise CheckoutError("Failed to create checkout session", e.message)

        self.metrics.increment_checkout_sessions("created")
        logger.info(
            "Checkout session created",
            extra={"user_id": user_id, "price_id": price_id, "session_id": session.get("id")},
        )
        return CheckoutSession(session_id=session["id"], url=session["url"])

    # ===== Webhooks =====

    def handle_webhook(self, payload: bytes, signature_header: Optional[str]) -> WebhookResult:
        """Verify a delivery and apply it.

        Raises:
            SignatureVerificationError, PaymentProcessorError, WebhookPayloadError
        """
        event = construct_event(payload, signature_header, settings.stripe_webhook_secret)
        return self.apply_event(event)

    def apply_event(self, event: Dict[str, Any]) -> WebhookResult:
        """Apply one verified event envelope inside a single transaction."""
        if self.session is None:
            raise RuntimeError("BillingService needs a database session to apply events")

        event_type = _require(event, "type", "event")
        event_id = event.get("id")

        try:
            if event_id and self.session.get(ProcessedWebhookEvent, event_id) is not None:
                result = WebhookResult(event_id, event_type, "duplicate")
            elif event_type in SUBSCRIPTION_UPSERT_EVENTS:
                result = self._apply_subscription_upsert(event)
            elif event_type == SUBSCRIPTION_DELETED_EVENT:
                result = self._apply_subscription_deleted(event)
            elif event_type == CHECKOUT_COMPLETED_EVENT:
                checkout = (event.get("data") or {}).get("object") or {}
                logger.info(
                    "Checkout completed",
                    extra={"user_id": (checkout.get("metadata") or {}).get("userId"), "event_id": event_id},
                )
                result = WebhookResult(event_id, event_type, "logged")
            else:
                logger.debug(f"Ignoring webhook event {event_type}", extra={"event_id": event_id})
                result = WebhookResult(event_id, event_type, "ignored")

            if event_id and result.outcome != "duplicate":
                self.session.add(ProcessedWebhookEvent(id=event_id, event_type=event_type))
            self.session.commit()
        except Exception:
            self.session.rollback()
            self.metrics.increment_webhook_events(event_type, "rejected")
            raise

        self.metrics.increment_webhook_events(event_type, result.outcome)
        return result

    def _subscription_object(self, event: Dict[str, Any]) -> Dict[str, Any]:
        data = _require(event, "data", "event")
        return _require(data, "object", "event data")

    def _owner_listings(self, user_id: str) -> List[Listing]:
        stmt = select(Listing).where(Listing.owner_id == _parse_uuid(user_id)).with_for_update()
        return list(self.session.execute(stmt).scalars())

    def _event_time(self, event: Dict[str, Any]) -> datetime:
        created = event.get("created")
        return from_unix(created) if created is not None else utcnow()

    def _apply_to_listings(
        self,
        event: Dict[str, Any],
        user_id: str,
        plan: SubscriptionPlan,
        end_date: Optional[datetime],
    ) -> WebhookResult:
        event_id = event.get("id")
        event_type = event["type"]
        event_time = self._event_time(event)

        listings = self._owner_listings(user_id)
        if not listings:
            logger.warning(
                "No listing found for subscription owner",
                extra={"user_id": user_id, "event_id": event_id},
            )
            return WebhookResult(event_id, event_type, "ignored")

        updated = 0
        for listing in listings:
            last_applied = as_utc(listing.subscription_event_at)
            if last_applied is not None and event_time < last_applied:
                continue
            listing.subscription_plan = plan
            listing.subscription_end_date = end_date
            listing.subscription_event_at = event_time
            updated += 1

        if not updated:
            logger.info(
                "Skipped out-of-order subscription event",
                extra={"user_id": user_id, "event_id": event_id, "event_type": event_type},
            )
            return WebhookResult(event_id, event_type, "stale")

        logger.info(
            f"Updated subscription for user {user_id} to {plan.value} plan",
            extra={"user_id": user_id, "event_id": event_id, "plan": plan.value},
        )
        return WebhookResult(event_id, event_type, "applied", listings_updated=updated)

    def _apply_subscription_upsert(self, event: Dict[str, Any]) -> WebhookResult:
        subscription = self._subscription_object(event)
        user_id = _require(subscription.get("metadata") or {}, "userId", "subscription metadata")

        items = _require(_require(subscription, "items", "subscription"), "data", "subscription items")
        item = items[0]
        price = _require(item, "price", "subscription item")
        plan = plan_for_price(_require(price, "id", "price"))
        # Newer API versions report the period on the item, not the subscription
        period_end = subscription.get("current_period_end") or item.get("current_period_end")
        if period_end is None:
            raise WebhookPayloadError("Missing 'current_period_end' in subscription")
        end_date = from_unix(period_end)

        return self._apply_to_listings(event, user_id, plan, end_date)

    def _apply_subscription_deleted(self, event: Dict[str, Any]) -> WebhookResult:
        subscription = self._subscription_object(event)
        user_id = _require(subscription.get("metadata") or {}, "userId", "subscription metadata")
        return self._apply_to_listings(event, user_id, SubscriptionPlan.NONE, None)


def _parse_uuid(value: str) -> UUID:
    try:
        return UUID(str(value))
    except ValueError:
        raise WebhookPayloadError(f"Invalid userId '{value}' in subscription metadata")
