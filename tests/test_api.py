from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from config import Configuration
from main import app, get_service, history_store
from models import Place
from services.discovery import DiscoveryService
from services.repository import InMemoryPlaceRepository


@pytest.fixture
def client():
    places = [
        Place(
            id="p1",
            name="Third Wave Coffee",
            latitude=12.9716,
            longitude=77.6411,
            description="Quiet cafe",
            category="cafe",
            rating=4.4,
            weather_suitability=["rainy", "indoor"],
        )
    ]
    service = DiscoveryService.from_config(Configuration(), repository=InMemoryPlaceRepository(places))
    app.dependency_overrides[get_service] = lambda: service
    yield TestClient(app)
    app.dependency_overrides.clear()


def test_healthz(client):
    assert client.get("/healthz").json() == {"status": "ok"}


def test_search_with_bounds(client):
    body = {
        "query": "coffee",
        "bounds": {"north": 12.99, "south": 12.96, "east": 77.66, "west": 77.63},
        "weather": {"condition": "rainy", "temperature": 24, "humidity": 80},
        "time_of_day": "morning",
    }
    resp = client.post("/api/search", json=body, headers={"X-Session-Id": "s1"})
    assert resp.status_code == 200
    data = resp.json()
    assert data["interpretation"] == "Categories: coffee"
    assert [r["place"]["id"] for r in data["results"]] == ["p1"]
    assert 0.0 <= data["results"][0]["relevance_score"] <= 1.0
    assert data["enhanced_query"] == "coffee morning indoor covered"
    assert history_store.get_history("s1")[0].query == "coffee"
    history_store.reset("s1")


def test_search_ignores_unknown_filter_values(client):
    body = {
        "query": "coffee",
        "filters": {"price_range": "free", "distance_km": 0},
        "bounds": {"north": 12.99, "south": 12.96, "east": 77.66, "west": 77.63},
    }
    resp = client.post("/api/search", json=body)
    assert resp.status_code == 200
    assert [r["place"]["id"] for r in resp.json()["results"]] == ["p1"]


def test_inverted_bounds_are_rejected(client):
    body = {"bounds": {"north": 12.9, "south": 13.0, "east": 77.7, "west": 77.6}}
    assert client.post("/api/places/viewport", json=body).status_code == 400


def test_viewport_returns_internal_places(client):
    body = {"bounds": {"north": 12.99, "south": 12.96, "east": 77.66, "west": 77.63}}
    resp = client.post("/api/places/viewport", json=body)
    assert resp.status_code == 200
    assert [p["id"] for p in resp.json()] == ["p1"]


def test_suggest(client):
    resp = client.get("/api/suggest", params={"q": "romantic"})
    assert resp.status_code == 200
    assert "romantic dinner" in resp.json()
    assert len(resp.json()) <= 6


def test_place_details_and_not_found(client):
    assert client.get("/api/places/p1").json()["name"] == "Third Wave Coffee"
    assert client.get("/api/places/nope").status_code == 404


def test_live_status_skips_unknown(client):
    resp = client.post("/api/places/live-status", json={"ids": ["nope"]})
    assert resp.status_code == 200
    assert resp.json() == {}


def test_photo_unavailable_without_key(client):
    assert client.get("/api/places/photo", params={"reference": "abc"}).status_code == 404


def test_weather_falls_back(client):
    data = client.get("/api/weather").json()
    assert data["source"] == "fallback"
    assert "advice" in data


def test_journey_weather_impact(client):
    body = {
        "id": "j1",
        "name": "Lalbagh walk",
        "estimated_duration": 90,
        "outdoor_heavy": True,
        "weather": {"condition": "rainy", "temperature": 24, "humidity": 90},
    }
    data = client.post("/api/journeys/weather-impact", json=body).json()
    assert data["adaptation"]["recommend_postpone"] is True
    assert data["adaptation"]["alternative_indoor_journey"]["estimated_duration"] == 72.0
