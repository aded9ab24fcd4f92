from __future__ import annotations

import json
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional

from loguru import logger

from models import Bounds, Place


class RepositoryError(RuntimeError):
    pass


class PlaceRepository(ABC):
    """Read side of the internal place store."""

    @abstractmethod
    def in_bounds(self, bounds: Bounds) -> List[Place]:
        """Active places whose coordinates fall inside ``bounds``."""

    @abstractmethod
    def get(self, place_id: str) -> Optional[Place]:
        """Place by identifier, or None."""


class InMemoryPlaceRepository(PlaceRepository):
    def __init__(self, places: Iterable[Place] = ()) -> None:
        self._places: Dict[str, Place] = {}
        for place in places:
            self._places[place.id] = place

    def __len__(self) -> int:
        return len(self._places)

    def in_bounds(self, bounds: Bounds) -> List[Place]:
        return [p for p in self._places.values() if bounds.contains(p.latitude, p.longitude)]

    def get(self, place_id: str) -> Optional[Place]:
        return self._places.get(place_id)

    @classmethod
    def from_json(cls, path: str | Path) -> "InMemoryPlaceRepository":
        """Load a list of place records, skipping invalid or inactive ones."""
        try:
            raw = json.loads(Path(path).read_text(encoding="utf-8"))
        except (OSError, ValueError) as exc:
            raise RepositoryError(f"cannot load places from {path}: {exc}")
        if not isinstance(raw, list):
            raise RepositoryError(f"{path}: expected a list of places")

        places: list[Place] = []
        for record in raw:
            place = place_from_record(record)
            if place is not None:
                places.append(place)
        logger.info("loaded {} places from {}", len(places), path)
        return cls(places)


def place_from_record(record: Dict[str, Any]) -> Optional[Place]:
    if not isinstance(record, dict) or record.get("status", "active") != "active":
        return None
    try:
        return Place(
            id=str(record["id"]),
            name=str(record["name"]),
            latitude=float(record["latitude"]),
            longitude=float(record["longitude"]),
            description=record.get("description") or "",
            category=record.get("category"),
            rating=float(record["rating"]) if record.get("rating") is not None else None,
            weather_suitability=list(record.get("weather_suitability") or []),
            best_time_to_visit=record.get("best_time_to_visit"),
            featured=bool(record.get("featured", False)),
            address=record.get("address"),
            phone=record.get("phone"),
            website=record.get("website"),
            images=[img["url"] if isinstance(img, dict) else str(img) for img in record.get("images") or []],
            google_place_id=record.get("google_place_id"),
        )
    except (KeyError, TypeError, ValueError) as exc:
        logger.warning("skipping invalid place record {}: {}", record.get("id"), exc)
        return None
