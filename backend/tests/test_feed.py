"""Tests for the personalized "For You" feed endpoint and service."""
import random
from collections import Counter
from datetime import datetime, timedelta

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import Session

from sayso.core.config import settings
from sayso.models import Business, BusinessStatus, EventLog, Profile
from sayso.services import feed_service


def _add_business(db: Session, name: str, **kwargs) -> Business:
    kwargs.setdefault("average_rating", 4.0)
    kwargs.setdefault("total_reviews", 10)
    kwargs.setdefault("created_at", datetime.utcnow() - timedelta(days=5))
    business = Business(name=name, **kwargs)
    db.add(business)
    return business


@pytest.fixture
def catalog(db: Session):
    businesses = {}
    for i in range(6):
        businesses[f"cafe-{i}"] = _add_business(
            db, f"Cafe {i}", category="Cafes", interest_id="food-drink", sub_interest_id="cafes", price_range="$",
        )
    for i in range(2):
        businesses[f"museum-{i}"] = _add_business(
            db, f"Museum {i}", category="Museums", interest_id="arts-culture", sub_interest_id="museums",
            price_range="$$",
        )
    businesses["fancy"] = _add_business(
        db, "Fancy Dining", category="Fine Dining", interest_id="food-drink", sub_interest_id="fine-dining",
        price_range="$$$$", average_rating=4.9,
    )
    businesses["closed"] = _add_business(
        db, "Closed Bar", category="Bars", interest_id="food-drink", sub_interest_id="bars",
        status=BusinessStatus.INACTIVE.value,
    )
    businesses["unrated"] = _add_business(
        db, "New Spa", category="Spas", interest_id="beauty-wellness", sub_interest_id="spas",
        average_rating=None, total_reviews=0,
    )
    db.commit()
    for business in businesses.values():
        db.refresh(business)
    return businesses


def _ids(response):
    return [item["id"] for item in response.json()["items"]]


def test_feed_returns_scored_items(client: TestClient, catalog):
    response = client.get("/api/businesses/for-you")
    assert response.status_code == 200, response.text
    assert response.headers["Cache-Control"] == "no-store"

    data = response.json()
    assert data["request_id"]
    item = data["items"][0]
    assert set(item["score_breakdown"]) == {
        "interest_score", "quality_score", "freshness_score", "distance_score", "randomness_term",
    }
    assert item["diversity_rank"] >= 1
    assert isinstance(item["insights"], list)

    scores = [entry["personalization_score"] for entry in data["items"]]
    assert scores == sorted(scores, reverse=True)


def test_feed_applies_diversity_cap_and_skips_inactive(client: TestClient, catalog):
    response = client.get("/api/businesses/for-you")
    items = response.json()["items"]

    counts = Counter(item["sub_interest_id"] for item in items)
    assert counts["cafes"] == 4
    assert counts["museums"] == 2
    assert str(catalog["closed"].id) not in _ids(response)
    # 4 cafes + 2 museums + fancy + unrated spa
    assert len(items) == 8


def test_feed_respects_limit(client: TestClient, catalog):
    response = client.get("/api/businesses/for-you", params={"limit": 3})
    assert response.status_code == 200
    assert len(response.json()["items"]) == 3


@pytest.mark.parametrize("limit", [0, settings.FEED_MAX_LIMIT + 1])
def test_feed_rejects_out_of_range_limit(client: TestClient, limit):
    assert client.get("/api/businesses/for-you", params={"limit": limit}).status_code == 422


def test_feed_filters_by_price_rating_and_exclusions(client: TestClient, catalog):
    excluded = str(catalog["museum-0"].id)
    response = client.get(
        "/api/businesses/for-you",
        params=[("price_ranges", "$$"), ("price_ranges", "$$$$"), ("min_rating", 3.5), ("exclude", excluded)],
    )
    assert response.status_code == 200
    ids = _ids(response)
    assert set(ids) == {str(catalog["museum-1"].id), str(catalog["fancy"].id)}


def test_feed_min_rating_drops_unrated(client: TestClient, catalog):
    ids = _ids(client.get("/api/businesses/for-you", params={"min_rating": 0.5}))
    assert str(catalog["unrated"].id) not in ids


def test_feed_uses_profile_selections(client: TestClient, db: Session, profile: Profile, catalog):
    profile.interest_ids = ["arts-culture"]
    profile.subcategory_ids = ["museums"]
    profile.dealbreaker_ids = ["expensive"]
    db.commit()

    response = client.get("/api/businesses/for-you")
    items = response.json()["items"]

    assert str(catalog["fancy"].id) not in _ids(response)
    museums = [item for item in items if item["sub_interest_id"] == "museums"]
    assert all(item["score_breakdown"]["interest_score"] == 1.0 for item in museums)
    assert {item["sub_interest_id"] for item in items[:2]} == {"museums"}
    assert "Perfect match for your preferred Museums" in museums[0]["insights"]


def test_feed_distance_score_uses_location(client: TestClient, db: Session):
    near = _add_business(db, "Near", sub_interest_id="cafes", latitude=-33.92, longitude=18.42)
    far = _add_business(db, "Far", sub_interest_id="bars", latitude=-26.20, longitude=28.04)
    db.commit()

    response = client.get("/api/businesses/for-you", params={"lat": -33.92, "lng": 18.42})
    by_id = {item["id"]: item for item in response.json()["items"]}
    assert by_id[str(near.id)]["score_breakdown"]["distance_score"] == pytest.approx(0.2, abs=1e-4)
    assert by_id[str(far.id)]["score_breakdown"]["distance_score"] == 0.0


def test_feed_logs_impression_event(client: TestClient, db: Session, profile: Profile, catalog):
    response = client.get("/api/businesses/for-you")
    data = response.json()

    event = db.query(EventLog).filter(EventLog.event_name == "feed_impression").one()
    assert event.profile_id == profile.id
    assert event.request_id == data["request_id"]
    assert event.properties["count"] == len(data["items"])
    assert event.properties["top_business_id"] == data["items"][0]["id"]


def test_feed_with_empty_catalog(client: TestClient):
    response = client.get("/api/businesses/for-you")
    assert response.status_code == 200
    assert response.json()["items"] == []


def test_build_preferences_clamps_limit_and_reads_profile(profile: Profile):
    profile.interest_ids = ["food-drink"]
    profile.dealbreaker_ids = ["cash-only"]

    prefs = feed_service.build_preferences(profile)
    assert prefs.limit == settings.FEED_DEFAULT_LIMIT
    assert prefs.interest_ids == frozenset({"food-drink"})
    assert prefs.sub_interest_ids == frozenset()
    assert prefs.dealbreaker_ids == frozenset({"cash-only"})
    assert prefs.has_location is False

    assert feed_service.build_preferences(profile, limit=10_000).limit == settings.FEED_MAX_LIMIT
    assert feed_service.build_preferences(profile, limit=-3).limit == 0
    assert feed_service.build_preferences(None, latitude=1, longitude=2).has_location is True


def test_load_candidates_returns_active_newest_first(db: Session):
    old = _add_business(db, "Old", created_at=datetime.utcnow() - timedelta(days=30))
    new = _add_business(db, "New", created_at=datetime.utcnow())
    _add_business(db, "Gone", status=BusinessStatus.INACTIVE.value)
    db.commit()

    candidates = feed_service.load_candidates(db)
    assert [c.id for c in candidates] == [str(new.id), str(old.id)]
    assert candidates[0].source is new

    assert len(feed_service.load_candidates(db, pool_size=1)) == 1


def test_get_personalized_feed_is_reproducible_with_seed(db: Session, catalog):
    prefs = feed_service.build_preferences(None)
    first = feed_service.get_personalized_feed(db, prefs, rng=random.Random(7))
    second = feed_service.get_personalized_feed(db, prefs, rng=random.Random(7))
    assert [entry.item.id for entry in first] == [entry.item.id for entry in second]


def test_feed_survives_event_logging_failure(client: TestClient, engine, catalog):
    EventLog.__table__.drop(bind=engine)

    response = client.get("/api/businesses/for-you")
    assert response.status_code == 200, response.text
    assert len(response.json()["items"]) == 8


def test_load_candidates_keeps_best_rated_older_businesses(db: Session):
    now = datetime.utcnow()
    fresh = [_add_business(db, f"Fresh {i}", average_rating=3.0, created_at=now - timedelta(hours=i)) for i in range(3)]
    favorite = _add_business(db, "Favorite", average_rating=4.9, total_reviews=800, created_at=now - timedelta(days=400))
    db.commit()

    candidates = feed_service.load_candidates(db, pool_size=2)
    assert [c.id for c in candidates] == [str(fresh[0].id), str(favorite.id)]
