"""
Integration tests for the lead thread API.
"""
import pytest
from fastapi.testclient import TestClient

from vendorhub.api.app import app
from vendorhub.services.thread_service import TRANSITION_NOTICES
from vendorhub.models.threads import ThreadStatus


@pytest.fixture
def client():
    return TestClient(app)


@pytest.fixture
def opened(client, consumer, listing, headers_for):
    response = client.post(
        "/threads",
        json={"listing_id": str(listing.id), "content": "Are you free on June 14?"},
        headers=headers_for(consumer),
    )
    assert response.status_code == 201
    return response.json()


@pytest.mark.integration
def test_open_thread(opened, consumer, supplier):
    assert opened["thread"]["status"] == "pending"
    assert opened["thread"]["supplier_id"] == str(supplier.user_id)
    assert opened["message"]["sender_id"] == str(consumer.user_id)
    assert opened["message"]["status"] == "pending"


@pytest.mark.integration
def test_lead_lifecycle(client, opened, consumer, supplier, headers_for):
    thread_id = opened["thread"]["id"]

    accepted = client.post(
        f"/threads/{thread_id}/transition",
        json={"status": "accepted"},
        headers=headers_for(supplier),
    )
    assert accepted.status_code == 200
    assert accepted.json()["status"] == "accepted"

    reply = client.post(
        f"/threads/{thread_id}/messages",
        json={"content": "Wonderful, thank you!"},
        headers=headers_for(consumer),
    )
    assert reply.status_code == 201
    assert reply.json()["status"] == "accepted"

    closed = client.post(
        f"/threads/{thread_id}/transition",
        json={"status": "closed"},
        headers=headers_for(consumer),
    )
    assert closed.status_code == 200

    messages = client.get(f"/threads/{thread_id}/messages", headers=headers_for(supplier)).json()
    assert [m["content"] for m in messages] == [
        "Are you free on June 14?",
        TRANSITION_NOTICES[ThreadStatus.ACCEPTED],
        "Wonderful, thank you!",
        TRANSITION_NOTICES[ThreadStatus.CLOSED],
    ]
    assert all(m["status"] == "closed" for m in messages)

    blocked = client.post(
        f"/threads/{thread_id}/messages",
        json={"content": "One more thing"},
        headers=headers_for(supplier),
    )
    assert blocked.status_code == 409


@pytest.mark.integration
def test_wrong_party_transition_is_forbidden(client, opened, consumer, headers_for):
    response = client.post(
        f"/threads/{opened['thread']['id']}/transition",
        json={"status": "accepted"},
        headers=headers_for(consumer),
    )

    assert response.status_code == 403


@pytest.mark.integration
def test_unreachable_transition_conflicts(client, opened, supplier, headers_for):
    thread_id = opened["thread"]["id"]
    client.post(f"/threads/{thread_id}/transition", json={"status": "declined"}, headers=headers_for(supplier))

    response = client.post(
        f"/threads/{thread_id}/transition",
        json={"status": "accepted"},
        headers=headers_for(supplier),
    )

    assert response.status_code == 409
    assert response.json()["details"] == {"current_status": "declined", "target_status": "accepted"}


@pytest.mark.integration
def test_unknown_status_is_validation_error(client, opened, supplier, headers_for):
    response = client.post(
        f"/threads/{opened['thread']['id']}/transition",
        json={"status": "archived"},
        headers=headers_for(supplier),
    )

    assert response.status_code == 422


@pytest.mark.integration
def test_outsider_cannot_read_thread(client, opened, make_user, headers_for):
    response = client.get(f"/threads/{opened['thread']['id']}/messages", headers=headers_for(make_user()))

    assert response.status_code == 403


@pytest.mark.integration
def test_inbox(client, opened, consumer, supplier, headers_for):
    inbox = client.get("/threads", headers=headers_for(supplier)).json()

    assert len(inbox) == 1
    assert inbox[0]["counterpart_id"] == str(consumer.user_id)
    assert inbox[0]["role"] == "supplier"
    assert inbox[0]["last_message_snippet"] == "Are you free on June 14?"

    filtered = client.get("/threads", params={"status": "closed"}, headers=headers_for(supplier)).json()
    assert filtered == []
