"""
Tests for the billing bridge: checkout session creation and webhook events.
"""
import json
from datetime import datetime, timezone
from unittest.mock import MagicMock

import pytest

from vendorhub.models.billing_events import ProcessedWebhookEvent
from vendorhub.models.listings import SubscriptionPlan
from vendorhub.services.billing_service import (
    BillingService,
    CheckoutError,
    WebhookPayloadError,
    plan_for_price,
)
from vendorhub.services.payment_processor import (
    PaymentProcessorClient,
    PaymentProcessorError,
    SignatureVerificationError,
)

PERIOD_END = 1790000000  # 2026-09-21


def subscription_event(
    event_type: str,
    user_id,
    price_id: str = "price_featured_monthly",
    event_id: str = "evt_1",
    created: int = 1780000000,
    period_end: int = PERIOD_END,
):
    return {
        "id": event_id,
        "type": event_type,
        "created": created,
        "data": {
            "object": {
                "id": "sub_123",
                "metadata": {"userId": str(user_id)},
                "current_period_end": period_end,
                "items": {"data": [{"price": {"id": price_id}}]},
            }
        },
    }


@pytest.fixture
def service(db_session, metrics):
    return BillingService(db_session, metrics=metrics)


# ===== Price mapping =====

@pytest.mark.unit
@pytest.mark.parametrize(
    "price_id,plan",
    [
        ("price_featured_monthly", SubscriptionPlan.FEATURED),
        ("price_elite_yearly", SubscriptionPlan.ELITE),
        ("price_basic", SubscriptionPlan.ESSENTIAL),
        ("price_1Nx2abc", SubscriptionPlan.ESSENTIAL),
    ],
)
def test_plan_for_price(price_id, plan):
    assert plan_for_price(price_id) == plan


# ===== Webhook events =====

@pytest.mark.unit
def test_subscription_created_sets_plan_on_all_owned_listings(service, make_listing, supplier, db_session):
    first = make_listing(supplier, name="Venue")
    second = make_listing(supplier, name="Catering")

    result = service.apply_event(
        subscription_event("customer.subscription.created", supplier.user_id, "price_elite_yearly")
    )

    assert result.outcome == "applied"
    assert result.listings_updated == 2
    for listing in (first, second):
        db_session.refresh(listing)
        assert listing.subscription_plan == SubscriptionPlan.ELITE
        assert listing.subscription_end_date.replace(tzinfo=timezone.utc) == datetime.fromtimestamp(
            PERIOD_END, tz=timezone.utc
        )


@pytest.mark.unit
def test_subscription_deleted_resets_plan(service, make_listing, supplier, db_session):
    listing = make_listing(supplier, plan=SubscriptionPlan.FEATURED)

    service.apply_event(subscription_event("customer.subscription.deleted", supplier.user_id))

    db_session.refresh(listing)
    assert listing.subscription_plan == SubscriptionPlan.NONE
    assert listing.subscription_end_date is None


@pytest.mark.unit
def test_schedule_created_is_treated_as_upsert(service, listing, supplier, db_session):
    service.apply_event(subscription_event("subscription_schedule.created", supplier.user_id, "price_x"))

    db_session.refresh(listing)
    assert listing.subscription_plan == SubscriptionPlan.ESSENTIAL


@pytest.mark.unit
def test_period_end_read_from_subscription_item(service, listing, supplier, db_session):
    event = subscription_event("customer.subscription.updated", supplier.user_id, "price_elite")
    subscription = event["data"]["object"]
    del subscription["current_period_end"]
    subscription["items"]["data"][0]["current_period_end"] = PERIOD_END

    result = service.apply_event(event)

    assert result.outcome == "applied"
    db_session.refresh(listing)
    assert listing.subscription_plan == SubscriptionPlan.ELITE
    assert listing.subscription_end_date.replace(tzinfo=timezone.utc) == datetime.fromtimestamp(
        PERIOD_END, tz=timezone.utc
    )


@pytest.mark.unit
def test_missing_period_end_is_rejected(service, listing, supplier):
    event = subscription_event("customer.subscription.updated", supplier.user_id)
    del event["data"]["object"]["current_period_end"]

    with pytest.raises(WebhookPayloadError):
        service.apply_event(event)


@pytest.mark.unit
def test_duplicate_delivery_is_applied_once(service, listing, supplier, db_session, metrics):
    event = subscription_event("customer.subscription.updated", supplier.user_id, event_id="evt_dup")

    first = service.apply_event(event)
    second = service.apply_event(event)

    assert first.outcome == "applied"
    assert second.outcome == "duplicate"
    assert db_session.query(ProcessedWebhookEvent).count() == 1
    assert metrics.get_value(
        "billing_webhook_events_total",
        event_type="customer.subscription.updated",
        outcome="duplicate",
    ) == 1


@pytest.mark.unit
def test_older_event_does_not_roll_back_newer(service, listing, supplier, db_session):
    newer = subscription_event(
        "customer.subscription.deleted", supplier.user_id, event_id="evt_new", created=1780000100
    )
    older = subscription_event(
        "customer.subscription.updated", supplier.user_id, "price_elite", event_id="evt_old", created=1780000000
    )

    service.apply_event(newer)
    result = service.apply_event(older)

    assert result.outcome == "stale"
    db_session.refresh(listing)
    assert listing.subscription_plan == SubscriptionPlan.NONE
    assert listing.subscription_end_date is None


@pytest.mark.unit
def test_plan_and_end_date_stay_consistent(service, listing, supplier, db_session):
    events = [
        subscription_event("customer.subscription.created", supplier.user_id, "price_featured", "evt_a", 100),
        subscription_event("customer.subscription.updated", supplier.user_id, "price_elite", "evt_b", 200),
        subscription_event("customer.subscription.deleted", supplier.user_id, "price_elite", "evt_c", 300),
    ]
    for event in events:
        service.apply_event(event)
        db_session.refresh(listing)
        assert (listing.subscription_plan == SubscriptionPlan.NONE) == (listing.subscription_end_date is None)


@pytest.mark.unit
def test_checkout_completed_only_logged(service, listing, supplier, db_session):
    event = {
        "id": "evt_cs",
        "type": "checkout.session.completed",
        "created": 1780000000,
        "data": {"object": {"metadata": {"userId": str(supplier.user_id)}}},
    }

    result = service.apply_event(event)

    assert result.outcome == "logged"
    db_session.refresh(listing)
    assert listing.subscription_plan == SubscriptionPlan.NONE


@pytest.mark.unit
def test_unknown_event_ignored(service):
    result = service.apply_event({"id": "evt_x", "type": "invoice.paid", "data": {"object": {}}})

    assert result.outcome == "ignored"


@pytest.mark.unit
def test_owner_without_listings_is_ignored(service, consumer):
    result = service.apply_event(subscription_event("customer.subscription.created", consumer.user_id))

    assert result.outcome == "ignored"


@pytest.mark.unit
def test_missing_user_id_is_rejected(service, db_session, metrics):
    event = subscription_event("customer.subscription.created", "x")
    event["data"]["object"]["metadata"] = {}

    with pytest.raises(WebhookPayloadError):
        service.apply_event(event)

    assert db_session.query(ProcessedWebhookEvent).count() == 0
    assert metrics.get_value(
        "billing_webhook_events_total",
        event_type="customer.subscription.created",
        outcome="rejected",
    ) == 1


@pytest.mark.unit
def test_handle_webhook_verifies_signature(service, listing, supplier, sign_webhook):
    payload = json.dumps(
        subscription_event("customer.subscription.created", supplier.user_id, "price_featured")
    ).encode()

    result = service.handle_webhook(payload, sign_webhook(payload))

    assert result.outcome == "applied"
    with pytest.raises(SignatureVerificationError):
        service.handle_webhook(payload, sign_webhook(payload, secret="whsec_other"))


# ===== Checkout =====

@pytest.fixture
def processor():
    client = MagicMock(spec=PaymentProcessorClient)
    client.find_customer_by_email.return_value = None
    client.create_customer.return_value = {"id": "cus_1", "metadata": {"userId": "user-1"}}
    client.create_checkout_session.return_value = {"id": "cs_1", "url": "https://checkout.example/cs_1"}
    return client


@pytest.mark.unit
def test_checkout_creates_customer_and_session(processor, metrics):
    service = BillingService(processor=processor, metrics=metrics)

    session = service.create_checkout_session("price_featured", "user-1", "pat@example.com")

    assert session.session_id == "cs_1"
    assert session.url == "https://checkout.example/cs_1"
    processor.create_customer.assert_called_once_with("pat@example.com", {"userId": "user-1"})

    params = processor.create_checkout_session.call_args.args[0]
    assert params["customer"] == "cus_1"
    assert params["mode"] == "subscription"
    assert params["line_items"] == [{"price": "price_featured", "quantity": 1}]
    assert params["metadata"] == {"userId": "user-1"}
    assert params["subscription_data"] == {"metadata": {"userId": "user-1"}}
    assert params["success_url"] == "https://app.example.com/dashboard?session_id={CHECKOUT_SESSION_ID}"
    assert params["cancel_url"] == "https://app.example.com/subscription"
    assert metrics.get_value("billing_checkout_sessions_total", outcome="created") == 1


@pytest.mark.unit
def test_checkout_reuses_existing_customer(processor):
    processor.find_customer_by_email.return_value = {"id": "cus_old", "metadata": {}}
    service = BillingService(processor=processor)

    service.create_checkout_session("price_elite", "user-2", "sam@example.com")

    processor.create_customer.assert_not_called()
    processor.update_customer.assert_called_once_with("cus_old", {"userId": "user-2"})
    assert processor.create_checkout_session.call_args.args[0]["customer"] == "cus_old"


@pytest.mark.unit
def test_checkout_customer_failure(processor):
    processor.find_customer_by_email.side_effect = PaymentProcessorError("Invalid API Key provided")
    service = BillingService(processor=processor)

    with pytest.raises(CheckoutError) as exc_info:
        service.create_checkout_session("price_elite", "user-2", "sam@example.com")

    assert exc_info.value.error == "Failed to create/retrieve customer"
    assert exc_info.value.details == "Invalid API Key provided"


@pytest.mark.unit
def test_checkout_session_failure(processor):
    processor.create_checkout_session.side_effect = PaymentProcessorError("No such price: 'price_nope'")
    service = BillingService(processor=processor)

    with pytest.raises(CheckoutError) as exc_info:
        service.create_checkout_session("price_nope", "user-2", "sam@example.com")

    assert exc_info.value.error == "Failed to create checkout session"
    assert "price_nope" in exc_info.value.details
