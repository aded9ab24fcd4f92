from __future__ import annotations

import json

import pytest

from models import Bounds
from services.repository import InMemoryPlaceRepository, RepositoryError, place_from_record


def test_from_json_skips_inactive_and_invalid(tmp_path):
    seed = tmp_path / "places.json"
    seed.write_text(
        json.dumps(
            [
                {"id": 1, "name": "Toit", "latitude": 12.979, "longitude": 77.64, "images": [{"url": "/a.jpg"}]},
                {"id": 2, "name": "Closed", "latitude": 12.97, "longitude": 77.64, "status": "inactive"},
                {"id": 3, "name": "Broken", "latitude": 120, "longitude": 77.64},
                {"id": 4, "name": "No coords"},
            ]
        )
    )
    repo = InMemoryPlaceRepository.from_json(seed)
    assert len(repo) == 1
    place = repo.get("1")
    assert place.images == ["/a.jpg"]
    assert repo.in_bounds(Bounds(north=13.0, south=12.9, east=77.7, west=77.6)) == [place]
    assert repo.in_bounds(Bounds(north=12.0, south=11.9, east=77.7, west=77.6)) == []


def test_from_json_rejects_bad_files(tmp_path):
    with pytest.raises(RepositoryError):
        InMemoryPlaceRepository.from_json(tmp_path / "missing.json")
    not_a_list = tmp_path / "obj.json"
    not_a_list.write_text("{}")
    with pytest.raises(RepositoryError):
        InMemoryPlaceRepository.from_json(not_a_list)


def test_place_from_record_rating_range():
    assert place_from_record({"id": "x", "name": "X", "latitude": 1, "longitude": 1, "rating": 7}) is None
    assert place_from_record("not a dict") is None
