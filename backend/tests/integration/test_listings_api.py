"""
Integration tests for listing, review, saved listing and profile routes.
"""
from datetime import datetime, timedelta, timezone

import pytest
from fastapi.testclient import TestClient

from vendorhub.api.app import app
from vendorhub.models.listings import ListingCategory, SubscriptionPlan


@pytest.fixture
def client():
    return TestClient(app)


@pytest.mark.integration
def test_search_returns_ranked_listings(client, make_listing, supplier):
    base = datetime(2026, 1, 1, tzinfo=timezone.utc)
    make_listing(supplier, name="Plain", created_at=base + timedelta(days=1))
    make_listing(supplier, name="Elite", plan=SubscriptionPlan.ELITE, created_at=base)

    response = client.get("/listings")

    assert response.status_code == 200
    body = response.json()
    assert [l["name"] for l in body] == ["Elite", "Plain"]
    assert body[0]["effective_plan"] == "elite"


@pytest.mark.integration
def test_search_by_category(client, make_listing, supplier):
    make_listing(supplier, name="Lens", category=ListingCategory.PHOTOGRAPHY)
    make_listing(supplier, name="Band", category=ListingCategory.MUSIC)

    response = client.get("/listings", params={"category": "music"})

    assert [l["name"] for l in response.json()] == ["Band"]


@pytest.mark.integration
def test_supplier_creates_and_edits_listing(client, supplier, headers_for):
    created = client.post(
        "/listings",
        json={"name": "Barn Venue", "category": "venues", "price_range": "$$$"},
        headers=headers_for(supplier),
    )
    assert created.status_code == 201
    listing = created.json()
    assert listing["subscription_plan"] == "none"

    patched = client.patch(
        f"/listings/{listing['id']}",
        json={"description": "Rustic and roomy"},
        headers=headers_for(supplier),
    )
    assert patched.status_code == 200
    assert patched.json()["description"] == "Rustic and roomy"

    rejected = client.patch(
        f"/listings/{listing['id']}",
        json={"subscription_plan": "elite"},
        headers=headers_for(supplier),
    )
    assert rejected.status_code == 422


@pytest.mark.integration
def test_consumer_cannot_create_listing(client, consumer, headers_for):
    response = client.post(
        "/listings",
        json={"name": "Nope", "category": "other"},
        headers=headers_for(consumer),
    )

    assert response.status_code == 403


@pytest.mark.integration
def test_review_flow(client, listing, consumer, supplier, headers_for):
    created = client.post(
        f"/listings/{listing.id}/reviews",
        json={"rating": 4, "content": "Beautiful photos"},
        headers=headers_for(consumer),
    )
    assert created.status_code == 201
    review_id = created.json()["id"]

    duplicate = client.post(
        f"/listings/{listing.id}/reviews",
        json={"rating": 5, "content": "Again"},
        headers=headers_for(consumer),
    )
    assert duplicate.status_code == 409

    rating = client.get(f"/listings/{listing.id}/rating").json()
    assert rating["average_rating"] == 4.0
    assert rating["review_count"] == 1

    reply = client.post(
        f"/reviews/{review_id}/response",
        json={"response": "Thank you!"},
        headers=headers_for(supplier),
    )
    assert reply.status_code == 200
    assert reply.json()["response"] == "Thank you!"

    again = client.post(
        f"/reviews/{review_id}/response",
        json={"response": "Thanks again"},
        headers=headers_for(supplier),
    )
    assert again.status_code == 409

    mine = client.get("/reviews/mine", headers=headers_for(supplier)).json()
    assert [r["id"] for r in mine] == [review_id]


@pytest.mark.integration
def test_out_of_range_rating(client, listing, consumer, headers_for):
    response = client.post(
        f"/listings/{listing.id}/reviews",
        json={"rating": 6, "content": "Off the charts"},
        headers=headers_for(consumer),
    )

    assert response.status_code == 422
    assert client.get(f"/listings/{listing.id}/reviews").json() == []


@pytest.mark.integration
def test_rating_of_unreviewed_listing(client, listing):
    response = client.get(f"/listings/{listing.id}/rating")

    assert response.json()["average_rating"] == 0.0


@pytest.mark.integration
def test_saved_listings(client, listing, consumer, headers_for):
    saved = client.post("/saved", json={"listing_id": str(listing.id)}, headers=headers_for(consumer))
    assert saved.status_code == 201

    listed = client.get("/saved", headers=headers_for(consumer)).json()
    assert listed[0]["listing"]["id"] == str(listing.id)

    removed = client.delete(f"/saved/{listing.id}", headers=headers_for(consumer))
    assert removed.status_code == 204
    assert client.get("/saved", headers=headers_for(consumer)).json() == []


@pytest.mark.integration
def test_consumer_profile(client, consumer, headers_for):
    created = client.post(
        "/consumers/profile",
        json={"primary_name": "Alex", "partner_name": "Jordan", "target_date": "2026-09-12"},
        headers=headers_for(consumer),
    )
    assert created.status_code == 201

    conflict = client.post("/consumers/profile", json={"primary_name": "Alex"}, headers=headers_for(consumer))
    assert conflict.status_code == 409

    updated = client.patch("/consumers/profile", json={"location": "Austin"}, headers=headers_for(consumer))
    assert updated.json()["location"] == "Austin"
    assert client.get("/consumers/profile", headers=headers_for(consumer)).json()["partner_name"] == "Jordan"
