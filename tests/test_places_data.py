from __future__ import annotations

import asyncio
import threading
from typing import List

import pytest

from config import Configuration
from models import Bounds, Place, ViewportOptions
from services.cache import DiscoveryCache
from services.places_data import PlacesDataService, map_types_to_category, viewport_radius_m
from services.repository import InMemoryPlaceRepository


BOUNDS = Bounds(north=12.98, south=12.96, east=77.65, west=77.63)


def _record(pid: str, name: str, lat: float = 12.9716, lng: float = 77.6411, **extra) -> dict:
    return {
        "place_id": pid,
        "name": name,
        "geometry": {"location": {"lat": lat, "lng": lng}},
        "types": ["cafe", "food"],
        **extra,
    }


class FakePlacesClient:
    def __init__(self, records=None, details=None, fail_types=()) -> None:
        self.records = records or []
        self.details = details or {}
        self.fail_types = set(fail_types)
        self.nearby_calls: List[tuple] = []
        self.details_calls: List[str] = []

    def nearby_search(self, lat, lng, radius_m=1500, place_type=None, keyword=None):
        self.nearby_calls.append((place_type, radius_m))
        if place_type in self.fail_types:
            raise RuntimeError("provider down")
        return [dict(r) for r in self.records]

    def place_details(self, place_id):
        self.details_calls.append(place_id)
        return self.details.get(place_id)

    def autocomplete(self, text, location=None, radius_m=None, session_token=None):
        return [{"place_id": pid} for pid in self.details]

    def photo_url(self, reference, max_width=400):
        return None


class BrokenRepository(InMemoryPlaceRepository):
    def in_bounds(self, bounds):
        raise RuntimeError("db unavailable")


def _service(client, places=(), repository=None) -> PlacesDataService:
    return PlacesDataService(
        client=client,
        repository=repository or InMemoryPlaceRepository(places),
        cache=DiscoveryCache(),
        cfg=Configuration(),
    )


def test_provider_only_place_becomes_synthetic():
    client = FakePlacesClient(records=[_record("abc", "Cafe X", rating=4.2, photos=[{"photo_reference": "r1"}])])
    svc = _service(client)

    places = asyncio.run(svc.get_viewport_places(BOUNDS))
    assert len(places) == 1
    place = places[0]
    assert place.id == "google_abc"
    assert place.name == "Cafe X"
    assert place.category == "Cafe"
    assert place.source == "google"
    assert place.photos == ["/api/places/photo?reference=r1"]


def test_internal_fields_win_on_merge():
    internal = Place(
        id="p1",
        name="Cafe X",
        latitude=12.9716,
        longitude=77.6411,
        description="Our curated write-up",
        category="cafe",
        rating=4.0,
        images=["/img/1.jpg"],
    )
    record = _record(
        "abc",
        "cafe x",
        lat=12.97165,
        lng=77.64105,
        rating=4.5,
        user_ratings_total=900,
        opening_hours={"open_now": True},
        photos=[{"photo_reference": "r1"}],
    )
    svc = _service(FakePlacesClient(records=[record]), places=[internal])

    places = asyncio.run(svc.get_viewport_places(BOUNDS))
    assert len(places) == 1
    merged = places[0]
    assert merged.id == "p1"
    assert merged.description == "Our curated write-up"
    assert merged.category == "cafe"
    assert merged.rating == 4.5
    assert merged.is_open_now is True
    assert merged.user_ratings_total == 900
    assert merged.google_place_id == "abc"
    assert merged.photos == ["/img/1.jpg", "/api/places/photo?reference=r1"]


def test_same_name_far_away_is_not_merged():
    internal = Place(id="p1", name="Cafe X", latitude=12.9716, longitude=77.6411)
    record = _record("abc", "Cafe X", lat=12.975, lng=77.6411)
    svc = _service(FakePlacesClient(records=[record]), places=[internal])
    ids = {p.id for p in asyncio.run(svc.get_viewport_places(BOUNDS))}
    assert ids == {"p1", "google_abc"}


def test_viewport_is_cached_and_deduplicated():
    client = FakePlacesClient(records=[_record("abc", "Cafe X")])
    svc = _service(client)
    options = ViewportOptions(categories=["cafe"])

    async def run():
        first = await asyncio.gather(
            svc.get_viewport_places(BOUNDS, options), svc.get_viewport_places(BOUNDS, options)
        )
        again = await svc.get_viewport_places(BOUNDS, options)
        return first, again

    first, again = asyncio.run(run())
    assert len(client.nearby_calls) == 1
    assert first[0] == first[1]
    assert again == first[0]

    svc.clear_cache()
    asyncio.run(svc.get_viewport_places(BOUNDS, options))
    assert len(client.nearby_calls) == 2


def test_one_failing_category_does_not_sink_the_rest():
    client = FakePlacesClient(records=[_record("abc", "Cafe X")], fail_types={"bar", "park"})
    svc = _service(client)
    places = asyncio.run(svc.get_viewport_places(BOUNDS))
    assert [p.id for p in places] == ["google_abc"]
    assert len(client.nearby_calls) == 5


def test_repository_failure_keeps_provider_results():
    client = FakePlacesClient(records=[_record("abc", "Cafe X")])
    svc = _service(client, repository=BrokenRepository())
    places = asyncio.run(svc.get_viewport_places(BOUNDS))
    assert [p.id for p in places] == ["google_abc"]


def test_options_filter_provider_records_and_cap_radius():
    records = [
        _record("a", "Low Rated", rating=3.0),
        _record("b", "Closed", rating=4.5, opening_hours={"open_now": False}),
        _record("c", "Good", rating=4.5, opening_hours={"open_now": True}),
    ]
    client = FakePlacesClient(records=records)
    svc = _service(client)
    wide = Bounds(north=13.2, south=12.7, east=77.9, west=77.4)
    options = ViewportOptions(categories=["restaurant"], min_rating=4.0, open_now=True)

    places = asyncio.run(svc.get_viewport_places(wide, options))
    assert [p.id for p in places] == ["google_c"]
    assert client.nearby_calls[0][1] == 2000.0


def test_max_results_truncates_provider_records():
    records = [_record(str(i), f"Spot {i}", lat=12.9716 + i * 0.01) for i in range(5)]
    svc = _service(FakePlacesClient(records=records))
    places = asyncio.run(svc.get_viewport_places(BOUNDS, ViewportOptions(categories=["cafe"], max_results=2)))
    assert len(places) == 2


def test_details_route_by_id_prefix():
    internal = Place(id="p1", name="Toit", latitude=12.97, longitude=77.64, google_place_id="g1")
    details = {
        "g1": {"name": "Toit Brewpub", "opening_hours": {"open_now": True}, "user_ratings_total": 5000},
        "g2": {
            "name": "Cafe Y",
            "geometry": {"location": {"lat": 12.96, "lng": 77.62}},
            "formatted_address": "100ft Road",
            "types": ["restaurant"],
            "rating": 4.1,
        },
    }
    client = FakePlacesClient(details=details)
    svc = _service(client, places=[internal])

    own = asyncio.run(svc.get_place_details("p1"))
    assert own.name == "Toit"
    assert own.is_open_now is True
    assert own.user_ratings_total == 5000

    external = asyncio.run(svc.get_place_details("google_g2"))
    assert external.name == "Cafe Y"
    assert external.category == "Restaurant"
    assert external.description == "100ft Road"

    assert asyncio.run(svc.get_place_details("missing")) is None
    asyncio.run(svc.get_place_details("google_g2"))
    assert client.details_calls == ["g1", "g2"]


def test_live_status_uses_hours():
    internal = Place(id="p1", name="Toit", latitude=12.97, longitude=77.64, google_place_id="g1")
    details = {"g1": {"name": "Toit", "opening_hours": {"open_now": False}}}
    svc = _service(FakePlacesClient(details=details), places=[internal])

    status = asyncio.run(svc.get_live_status(["p1", "p1", "nope"]))
    assert list(status) == ["p1"]
    assert status["p1"].is_open is False
    assert status["p1"].status_text == "Hours not available"


def test_search_places_resolves_predictions():
    details = {"g2": {"name": "Cafe Y", "geometry": {"location": {"lat": 12.96, "lng": 77.62}}}}
    svc = _service(FakePlacesClient(details=details))
    found = asyncio.run(svc.search_places("cafe y"))
    assert [p.id for p in found] == ["google_g2"]
    assert asyncio.run(svc.search_places("c")) == []


def test_type_mapping_and_radius():
    assert map_types_to_category(["point_of_interest", "cafe"]) == "Attraction"
    assert map_types_to_category(["lodging"]) == "Other"
    assert viewport_radius_m(Bounds(north=0.01, south=-0.01, east=0.0, west=0.0)) == pytest.approx(1110.0)


class BarrierPlacesClient(FakePlacesClient):
    """Every nearby call blocks until all categories are in flight at once."""

    def __init__(self, records, parties: int) -> None:
        super().__init__(records=records)
        self.barrier = threading.Barrier(parties, timeout=5)

    def nearby_search(self, lat, lng, radius_m=1500, place_type=None, keyword=None):
        self.barrier.wait()
        return super().nearby_search(lat, lng, radius_m, place_type, keyword)


def test_category_fetches_run_concurrently():
    client = BarrierPlacesClient([_record("abc", "Cafe X")], parties=5)
    svc = _service(client)
    places = asyncio.run(svc.get_viewport_places(BOUNDS))
    assert not client.barrier.broken
    assert len(client.nearby_calls) == 5
    assert [p.id for p in places] == ["google_abc"]
