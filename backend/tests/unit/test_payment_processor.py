"""
Tests for the payment processor client and webhook signature verification.
"""
import json
import time
from unittest.mock import patch

import pytest
import stripe

from vendorhub.services.payment_processor import (
    PaymentProcessorClient,
    PaymentProcessorError,
    SignatureVerificationError,
    construct_event,
)

SECRET = "whsec_unit"


@pytest.fixture
def client():
    return PaymentProcessorClient(api_key="sk_test_unit", api_version="2023-10-16")


# ===== Client =====

@pytest.mark.unit
def test_find_customer_by_email_pins_api_version(client):
    customers = {"data": [{"id": "cus_1", "email": "pat@example.com", "metadata": {"userId": "u1"}}]}

    with patch.object(stripe.Customer, "list", return_value=customers) as list_customers:
        customer = client.find_customer_by_email("pat@example.com")

    assert customer == {"id": "cus_1", "metadata": {"userId": "u1"}}
    list_customers.assert_called_once_with(
        email="pat@example.com",
        limit=1,
        api_key="sk_test_unit",
        stripe_version="2023-10-16",
    )


@pytest.mark.unit
def test_find_customer_returns_none_when_absent(client):
    with patch.object(stripe.Customer, "list", return_value={"data": []}):
        assert client.find_customer_by_email("nobody@example.com") is None


@pytest.mark.unit
def test_create_and_update_customer(client):
    created = {"id": "cus_2", "metadata": {"userId": "u2"}}

    with patch.object(stripe.Customer, "create", return_value=created) as create, \
            patch.object(stripe.Customer, "modify", return_value=created) as modify:
        assert client.create_customer("sam@example.com", {"userId": "u2"})["id"] == "cus_2"
        client.update_customer("cus_2", {"userId": "u2"})

    assert create.call_args.kwargs["metadata"] == {"userId": "u2"}
    assert modify.call_args.args == ("cus_2",)
    assert modify.call_args.kwargs["stripe_version"] == "2023-10-16"


@pytest.mark.unit
def test_create_checkout_session_passes_params(client):
    session = {"id": "cs_1", "url": "https://checkout.test/cs_1", "status": "open"}

    with patch.object(stripe.checkout.Session, "create", return_value=session) as create:
        result = client.create_checkout_session({
            "customer": "cus_1",
            "line_items": [{"price": "price_elite", "quantity": 1}],
            "subscription_data": {"metadata": {"userId": "u1"}},
        })

    assert result == {"id": "cs_1", "url": "https://checkout.test/cs_1"}
    kwargs = create.call_args.kwargs
    assert kwargs["customer"] == "cus_1"
    assert kwargs["line_items"] == [{"price": "price_elite", "quantity": 1}]
    assert kwargs["subscription_data"] == {"metadata": {"userId": "u1"}}
    assert kwargs["api_key"] == "sk_test_unit"


@pytest.mark.unit
def test_api_error_surfaces_processor_message(client):
    error = stripe.InvalidRequestError("No such price: 'price_x'", "line_items", http_status=400)

    with patch.object(stripe.checkout.Session, "create", side_effect=error):
        with pytest.raises(PaymentProcessorError) as exc_info:
            client.create_checkout_session({"customer": "cus_1"})

    assert exc_info.value.message == "No such price: 'price_x'"
    assert exc_info.value.status_code == 400


@pytest.mark.unit
def test_connection_failure_is_retried_then_reported(client):
    error = stripe.APIConnectionError("Connection refused")

    with patch.object(stripe.Customer, "list", side_effect=error) as list_customers:
        with pytest.raises(PaymentProcessorError) as exc_info:
            client.find_customer_by_email("pat@example.com")

    assert list_customers.call_count == 3
    assert "unreachable" in exc_info.value.message


# ===== Webhook signatures =====

@pytest.mark.unit
def test_construct_event_accepts_valid_signature(sign_webhook):
    payload = json.dumps({"id": "evt_1", "type": "customer.subscription.created"}).encode()

    event = construct_event(payload, sign_webhook(payload, secret=SECRET), SECRET)

    assert event["id"] == "evt_1"


@pytest.mark.unit
def test_construct_event_accepts_any_matching_v1_signature(sign_webhook):
    payload = b'{"id": "evt_2"}'
    valid = sign_webhook(payload, secret=SECRET)
    timestamp, signature = valid.split(",")
    header = f"{timestamp},v1={'a' * 64},{signature},v0=legacy"

    assert construct_event(payload, header, SECRET)["id"] == "evt_2"


@pytest.mark.unit
@pytest.mark.parametrize(
    "header,message",
    [
        (None, "No signature header value was provided."),
        ("garbage", "Unable to extract timestamp and signatures from header"),
        ("t=1780000000", "No signatures found with expected scheme"),
        ("t=1780000000,v1=" + "0" * 64, "No signatures found matching the expected signature for payload"),
    ],
)
def test_construct_event_rejects_bad_headers(header, message):
    with pytest.raises(SignatureVerificationError) as exc_info:
        construct_event(b'{"id": "evt_1"}', header, SECRET)

    assert message in exc_info.value.message


@pytest.mark.unit
def test_construct_event_rejects_tampered_payload(sign_webhook):
    header = sign_webhook(b'{"id": "evt_1"}', secret=SECRET)

    with pytest.raises(SignatureVerificationError):
        construct_event(b'{"id": "evt_2"}', header, SECRET)


@pytest.mark.unit
def test_construct_event_rejects_old_timestamp(sign_webhook):
    payload = b'{"id": "evt_1"}'
    header = sign_webhook(payload, secret=SECRET, timestamp=int(time.time()) - 301)

    with pytest.raises(SignatureVerificationError) as exc_info:
        construct_event(payload, header, SECRET, tolerance=300)

    assert "Timestamp outside the tolerance zone" in exc_info.value.message


@pytest.mark.unit
def test_construct_event_rejects_non_json_payload(sign_webhook):
    payload = b"not json"

    with pytest.raises(PaymentProcessorError):
        construct_event(payload, sign_webhook(payload, secret=SECRET), SECRET)
