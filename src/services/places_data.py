"""Viewport, search and detail lookups merged across the internal store and Google Places."""

from __future__ import annotations

import asyncio
import math
from typing import Any, Dict, Iterable, List, Optional, Sequence

from loguru import logger

from config import Configuration
from models import GOOGLE_ID_PREFIX, Bounds, EnhancedPlace, LiveStatus, Place, ViewportOptions
from services.cache import DiscoveryCache, TTLClass
from services.google_places import GooglePlacesClient, format_opening_hours
from services.repository import PlaceRepository
from utils import canonical_key


DEFAULT_CATEGORIES = ("restaurant", "cafe", "bar", "shopping_mall", "park")
MAX_PROVIDER_RADIUS_M = 2000.0
METERS_PER_DEGREE = 111000.0
# same physical place when both coordinates agree within ~100 m
COORD_MATCH_DEG = 0.001
MERGE_PHOTO_LIMIT = 3
DETAIL_PHOTO_LIMIT = 5
SEARCH_DETAIL_LIMIT = 5

GOOGLE_TYPE_CATEGORIES = {
    "restaurant": "Restaurant",
    "cafe": "Cafe",
    "bar": "Bar",
    "night_club": "Nightlife",
    "shopping_mall": "Shopping",
    "clothing_store": "Shopping",
    "park": "Outdoor",
    "gym": "Fitness",
    "spa": "Wellness",
    "bakery": "Bakery",
    "food": "Food",
    "point_of_interest": "Attraction",
}


def map_types_to_category(types: Iterable[str]) -> str:
    for t in types or ():
        if t in GOOGLE_TYPE_CATEGORIES:
            return GOOGLE_TYPE_CATEGORIES[t]
    return "Other"


def viewport_radius_m(bounds: Bounds) -> float:
    """Half the viewport diagonal, in metres."""
    center_lat, _ = bounds.center()
    lat_m = (bounds.north - bounds.south) * METERS_PER_DEGREE
    lng_m = (bounds.east - bounds.west) * METERS_PER_DEGREE * math.cos(math.radians(center_lat))
    return math.sqrt(lat_m * lat_m + lng_m * lng_m) / 2.0


def _provider_location(record: Dict[str, Any]) -> tuple[float, float]:
    loc = record["geometry"]["location"]
    return float(loc["lat"]), float(loc["lng"])


def _passes_options(record: Dict[str, Any], options: ViewportOptions) -> bool:
    rating = record.get("rating")
    if options.min_rating and rating and rating < options.min_rating:
        return False
    hours = record.get("opening_hours")
    if options.open_now and hours and not hours.get("open_now"):
        return False
    return True


def _is_same_place(place: EnhancedPlace, record: Dict[str, Any]) -> bool:
    if place.google_place_id and place.google_place_id == record.get("place_id"):
        return True
    if place.name.lower() != str(record.get("name") or "").lower():
        return False
    lat, lng = _provider_location(record)
    return abs(place.latitude - lat) < COORD_MATCH_DEG and abs(place.longitude - lng) < COORD_MATCH_DEG


class PlacesDataService:
    def __init__(
        self,
        client: GooglePlacesClient,
        repository: PlaceRepository,
        cache: DiscoveryCache,
        cfg: Configuration,
    ) -> None:
        self.client = client
        self.repository = repository
        self.cache = cache
        self.cfg = cfg

    def photo_url(self, reference: str) -> str:
        return self.cfg.photo_url_template.format(reference=reference)

    def _photo_urls(self, record: Dict[str, Any], limit: int) -> List[str]:
        photos = record.get("photos") or []
        refs = [p.get("photo_reference") for p in photos[:limit] if isinstance(p, dict)]
        return [self.photo_url(ref) for ref in refs if ref]

    # Viewport

    async def get_viewport_places(
        self, bounds: Bounds, options: Optional[ViewportOptions] = None
    ) -> List[EnhancedPlace]:
        options = options or ViewportOptions()
        key = canonical_key("viewport", {"bounds": bounds.as_dict(), "options": options.as_dict()})
        return await self.cache.get_or_fetch(
            key, TTLClass.VIEWPORT, lambda: self._fetch_viewport_places(bounds, options)
        )

    async def _fetch_viewport_places(self, bounds: Bounds, options: ViewportOptions) -> List[EnhancedPlace]:
        center_lat, center_lng = bounds.center()
        radius = viewport_radius_m(bounds)
        provider_records, internal_places = await asyncio.gather(
            self._fetch_provider_places(center_lat, center_lng, radius, options),
            self._fetch_repository_places(bounds),
        )
        merged = self.merge_places(provider_records, internal_places)
        logger.debug(
            "viewport center={:.4f},{:.4f} radius_m={:.0f} provider={} internal={} merged={}",
            center_lat,
            center_lng,
            radius,
            len(provider_records),
            len(internal_places),
            len(merged),
        )
        return merged

    async def _fetch_provider_places(
        self, lat: float, lng: float, radius: float, options: ViewportOptions
    ) -> List[Dict[str, Any]]:
        categories: Sequence[str] = options.categories or DEFAULT_CATEGORIES
        radius = min(radius, MAX_PROVIDER_RADIUS_M)
        batches = await asyncio.gather(
            *(self._fetch_category(c, lat, lng, radius, options) for c in categories)
        )

        unique: Dict[str, Dict[str, Any]] = {}
        for batch in batches:
            for record in batch:
                unique[record["place_id"]] = record
        return list(unique.values())[: options.max_results]

    async def _fetch_category(
        self, category: str, lat: float, lng: float, radius: float, options: ViewportOptions
    ) -> List[Dict[str, Any]]:
        try:
            results = await asyncio.to_thread(
                self.client.nearby_search, lat, lng, radius, category, options.keyword
            )
        except Exception as exc:
            logger.warning("provider fetch failed for category {}: {}", category, exc)
            return []
        return [r for r in results if r.get("place_id") and _passes_options(r, options)]

    async def _fetch_repository_places(self, bounds: Bounds) -> List[Place]:
        try:
            return await asyncio.to_thread(self.repository.in_bounds, bounds)
        except Exception as exc:
            logger.warning("repository viewport query failed: {}", exc)
            return []

    def merge_places(
        self, provider_records: Iterable[Dict[str, Any]], internal_places: Iterable[Place]
    ) -> List[EnhancedPlace]:
        """Reconcile internal records with provider records.

        Internal descriptive fields always win; matched provider records only
        contribute live attributes and photos.
        """
        merged: Dict[str, EnhancedPlace] = {}
        for place in internal_places:
            merged[place.id] = EnhancedPlace.from_place(place, source="internal")

        for record in provider_records:
            try:
                existing = next((p for p in merged.values() if _is_same_place(p, record)), None)
                if existing is not None:
                    self._enhance(existing, record)
                else:
                    synthetic = self._from_nearby(record)
                    merged[synthetic.id] = synthetic
            except (KeyError, TypeError, ValueError) as exc:
                logger.warning("skipping malformed provider record {}: {}", record.get("place_id"), exc)
        return list(merged.values())

    def _enhance(self, place: EnhancedPlace, record: Dict[str, Any]) -> None:
        place.is_open_now = (record.get("opening_hours") or {}).get("open_now")
        place.rating = record.get("rating") or place.rating
        place.user_ratings_total = record.get("user_ratings_total")
        place.price_level = record.get("price_level")
        place.google_place_id = record["place_id"]
        place.photos = place.photos + self._photo_urls(record, MERGE_PHOTO_LIMIT)

    def _from_nearby(self, record: Dict[str, Any]) -> EnhancedPlace:
        lat, lng = _provider_location(record)
        vicinity = record.get("vicinity") or ""
        return EnhancedPlace(
            id=f"{GOOGLE_ID_PREFIX}{record['place_id']}",
            name=str(record["name"]),
            latitude=lat,
            longitude=lng,
            description=vicinity,
            address=vicinity or None,
            category=map_types_to_category(record.get("types") or []),
            rating=record.get("rating"),
            google_place_id=record["place_id"],
            source="google",
            is_open_now=(record.get("opening_hours") or {}).get("open_now"),
            user_ratings_total=record.get("user_ratings_total"),
            price_level=record.get("price_level"),
            photos=self._photo_urls(record, MERGE_PHOTO_LIMIT),
        )

    # Free-text search

    async def search_places(self, text: str, session_token: Optional[str] = None) -> List[EnhancedPlace]:
        if not text or len(text) < 2:
            return []
        key = canonical_key("search", {"q": text})
        places = await self.cache.get_or_fetch(key, TTLClass.SEARCH, lambda: self._fetch_search(text, session_token))
        return places or []

    async def _fetch_search(self, text: str, session_token: Optional[str]) -> Optional[List[EnhancedPlace]]:
        center = (self.cfg.default_center_lat, self.cfg.default_center_lng)
        try:
            predictions = await asyncio.to_thread(
                self.client.autocomplete, text, center, self.cfg.autocomplete_radius_m, session_token
            )
        except Exception as exc:
            logger.warning("autocomplete failed for {!r}: {}", text, exc)
            return None
        ids = [f"{GOOGLE_ID_PREFIX}{p['place_id']}" for p in predictions[:SEARCH_DETAIL_LIMIT]]
        details = await asyncio.gather(*(self.get_place_details(pid) for pid in ids))
        return [d for d in details if d is not None]

    # Details

    async def get_place_details(self, place_id: str) -> Optional[EnhancedPlace]:
        if not place_id:
            return None
        return await self.cache.get_or_fetch(
            f"details:{place_id}", TTLClass.STATIC, lambda: self._fetch_place_details(place_id)
        )

    async def _fetch_place_details(self, place_id: str) -> Optional[EnhancedPlace]:
        if place_id.startswith(GOOGLE_ID_PREFIX):
            return await self._fetch_provider_details(place_id)
        return await self._fetch_internal_details(place_id)

    async def _fetch_provider_details(self, place_id: str) -> Optional[EnhancedPlace]:
        google_id = place_id[len(GOOGLE_ID_PREFIX):]
        details = await self._provider_details(google_id)
        if details is None:
            return None
        try:
            location = (details.get("geometry") or {}).get("location") or {}
            hours = details.get("opening_hours")
            return EnhancedPlace(
                id=place_id,
                name=str(details["name"]),
                latitude=float(location.get("lat") or 0.0),
                longitude=float(location.get("lng") or 0.0),
                description=(details.get("editorial_summary") or {}).get("overview")
                or details.get("formatted_address")
                or "",
                address=details.get("formatted_address"),
                category=map_types_to_category(details.get("types") or []),
                rating=details.get("rating"),
                phone=details.get("formatted_phone_number"),
                website=details.get("website"),
                google_place_id=google_id,
                source="google",
                is_open_now=(hours or {}).get("open_now"),
                current_opening_hours=format_opening_hours(hours),
                user_ratings_total=details.get("user_ratings_total"),
                price_level=details.get("price_level"),
                photos=self._photo_urls(details, DETAIL_PHOTO_LIMIT),
            )
        except (KeyError, TypeError, ValueError) as exc:
            logger.warning("malformed details for {}: {}", place_id, exc)
            return None

    async def _fetch_internal_details(self, place_id: str) -> Optional[EnhancedPlace]:
        try:
            place = await asyncio.to_thread(self.repository.get, place_id)
        except Exception as exc:
            logger.warning("repository lookup failed for {}: {}", place_id, exc)
            return None
        if place is None:
            return None

        enhanced = EnhancedPlace.from_place(place, source="internal")
        if place.google_place_id:
            details = await self._provider_details(place.google_place_id)
            if details is not None:
                hours = details.get("opening_hours")
                enhanced.is_open_now = (hours or {}).get("open_now")
                enhanced.current_opening_hours = format_opening_hours(hours)
                enhanced.user_ratings_total = details.get("user_ratings_total")
                enhanced.price_level = details.get("price_level")
        return enhanced

    async def _provider_details(self, google_id: str) -> Optional[Dict[str, Any]]:
        try:
            return await asyncio.to_thread(self.client.place_details, google_id)
        except Exception as exc:
            logger.warning("provider details failed for {}: {}", google_id, exc)
            return None

    # Live status

    async def get_live_status(self, place_ids: Sequence[str]) -> Dict[str, LiveStatus]:
        ids = list(dict.fromkeys(pid for pid in place_ids if pid))
        lookups = await asyncio.gather(
            *(
                self.cache.get_or_fetch(f"status:{pid}", TTLClass.DYNAMIC, lambda pid=pid: self._fetch_place_details(pid))
                for pid in ids
            )
        )
        status: Dict[str, LiveStatus] = {}
        for pid, details in zip(ids, lookups):
            if details is None:
                continue
            status[pid] = LiveStatus(
                is_open=bool(details.is_open_now),
                status_text=details.current_opening_hours or "Hours not available",
            )
        return status

    def clear_cache(self) -> None:
        self.cache.clear()
