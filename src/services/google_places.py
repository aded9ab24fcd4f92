from __future__ import annotations

import time
from dataclasses import dataclass
from datetime import date
from typing import Any, Dict, List, Optional, Tuple

import requests
from loguru import logger

from config import Configuration
from utils import haversine_km


DETAIL_FIELDS = (
    "place_id",
    "name",
    "formatted_address",
    "formatted_phone_number",
    "international_phone_number",
    "website",
    "rating",
    "user_ratings_total",
    "price_level",
    "opening_hours",
    "photos",
    "reviews",
    "types",
    "business_status",
    "geometry",
    "editorial_summary",
)

_EMPTY_STATUSES = {"ZERO_RESULTS", "NOT_FOUND"}


class GooglePlacesError(RuntimeError):
    """Provider unavailable: transport failure or an error status."""


class MalformedResponseError(GooglePlacesError):
    """Provider answered with a payload of unexpected shape."""


@dataclass
class _RetryPolicy:
    retries: int = 3
    base_delay: float = 0.5


class GooglePlacesClient:
    """Thin client over the Places web service (legacy JSON endpoints).

    Blocking; async callers wrap calls in ``asyncio.to_thread``. Without an
    API key every call returns an empty result instead of raising.
    """

    def __init__(
        self,
        cfg: Configuration,
        session: Optional[requests.Session] = None,
        retry_policy: Optional[_RetryPolicy] = None,
    ) -> None:
        self.cfg = cfg
        self.base = cfg.google_places_base_url.rstrip("/")
        self.session = session or requests.Session()
        self.retry_policy = retry_policy or _RetryPolicy()
        if not self.is_configured():
            logger.warning("Google Places API key not configured, provider results will be empty")

    def is_configured(self) -> bool:
        return bool(self.cfg.google_places_api_key)

    def _get(self, path: str, params: dict) -> dict:
        url = f"{self.base}{path}"
        headers = {"Accept": "application/json"}
        params = {**params, "key": self.cfg.google_places_api_key}
        policy = self.retry_policy
        attempt = 0
        while True:
            attempt += 1
            try:
                resp = self.session.get(url, headers=headers, params=params, timeout=self.cfg.google_places_timeout)
            except requests.RequestException as exc:
                if attempt <= policy.retries:
                    time.sleep(policy.base_delay * attempt)
                    continue
                raise GooglePlacesError(f"request error: {exc}")

            if resp.status_code in (429, 500, 502, 503, 504):
                if attempt <= policy.retries:
                    time.sleep(policy.base_delay * attempt)
                    continue
                raise GooglePlacesError(f"upstream {resp.status_code}: {resp.text[:300]}")

            if not resp.ok:
                raise GooglePlacesError(f"upstream {resp.status_code}: {resp.text[:300]}")

            try:
                payload = resp.json()
            except ValueError:
                raise MalformedResponseError("invalid json response")
            if not isinstance(payload, dict):
                raise MalformedResponseError(f"expected object, got {type(payload).__name__}")
            return payload

    def _check_status(self, payload: dict, endpoint: str) -> bool:
        """True when the payload carries data, False for an empty answer."""
        status = payload.get("status")
        if status == "OK":
            return True
        if status in _EMPTY_STATUSES:
            return False
        detail = payload.get("error_message") or ""
        raise GooglePlacesError(f"{endpoint} status {status}: {detail}".strip())

    def nearby_search(
        self,
        lat: float,
        lng: float,
        radius_m: float = 1500,
        place_type: Optional[str] = None,
        keyword: Optional[str] = None,
    ) -> List[Dict[str, Any]]:
        if not self.is_configured():
            return []
        params: Dict[str, Any] = {"location": f"{lat},{lng}", "radius": int(radius_m)}
        if place_type:
            params["type"] = place_type
        if keyword:
            params["keyword"] = keyword

        payload = self._get("/nearbysearch/json", params)
        if not self._check_status(payload, "nearbysearch"):
            return []
        results = payload.get("results")
        if not isinstance(results, list):
            raise MalformedResponseError("nearbysearch results is not a list")

        parsed: list[Dict[str, Any]] = []
        for item in results:
            location = _location_of(item)
            if location is None:
                logger.debug("skipping nearby result without geometry: {}", item.get("place_id"))
                continue
            # metres from the search center, used for ordering
            distance = haversine_km(lat, lng, location[0], location[1]) * 1000.0
            parsed.append({**item, "distance": distance})
        parsed.sort(key=lambda p: p["distance"])
        return parsed

    def place_details(self, place_id: str) -> Optional[Dict[str, Any]]:
        if not self.is_configured() or not place_id:
            return None
        payload = self._get("/details/json", {"place_id": place_id, "fields": ",".join(DETAIL_FIELDS)})
        if not self._check_status(payload, "details"):
            return None
        result = payload.get("result")
        if not isinstance(result, dict):
            raise MalformedResponseError("details result is not an object")
        return result

    def autocomplete(
        self,
        text: str,
        location: Optional[Tuple[float, float]] = None,
        radius_m: Optional[int] = None,
        session_token: Optional[str] = None,
    ) -> List[Dict[str, Any]]:
        if not self.is_configured() or not text:
            return []
        params: Dict[str, Any] = {"input": text}
        if session_token:
            params["sessiontoken"] = session_token
        if location:
            params["location"] = f"{location[0]},{location[1]}"
            if radius_m:
                params["radius"] = radius_m
        if self.cfg.components_country:
            params["components"] = f"country:{self.cfg.components_country}"

        payload = self._get("/autocomplete/json", params)
        if not self._check_status(payload, "autocomplete"):
            return []
        predictions = payload.get("predictions")
        if not isinstance(predictions, list):
            raise MalformedResponseError("autocomplete predictions is not a list")
        return [p for p in predictions if isinstance(p, dict) and p.get("place_id")]

    def photo_url(self, reference: str, max_width: int = 400) -> Optional[str]:
        if not self.is_configured() or not reference:
            return None
        return (
            f"{self.base}/photo?maxwidth={max_width}"
            f"&photo_reference={reference}&key={self.cfg.google_places_api_key}"
        )


def _location_of(item: Dict[str, Any]) -> Optional[Tuple[float, float]]:
    loc = ((item.get("geometry") or {}).get("location")) or {}
    lat, lng = loc.get("lat"), loc.get("lng")
    if isinstance(lat, (int, float)) and isinstance(lng, (int, float)):
        return float(lat), float(lng)
    return None


def format_opening_hours(opening_hours: Optional[Dict[str, Any]], today: Optional[date] = None) -> str:
    """Render today's line of ``weekday_text`` with an Open/Closed prefix."""
    if not opening_hours or not opening_hours.get("weekday_text"):
        return "Hours not available"
    weekday_text = opening_hours["weekday_text"]
    # weekday_text starts on Monday, same as date.weekday()
    idx = (today or date.today()).weekday()
    today_text = weekday_text[idx] if idx < len(weekday_text) else weekday_text[-1]
    open_now = opening_hours.get("open_now")
    if open_now is not None:
        return f"{'Open' if open_now else 'Closed'} • {today_text}"
    return today_text
