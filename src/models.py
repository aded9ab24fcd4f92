"""Data models for the places discovery engine."""

from __future__ import annotations

import time
from dataclasses import dataclass, field, fields, replace
from typing import Any, Dict, List, Mapping, Optional, Tuple

from loguru import logger


PRICE_RANGES = ("any", "budget", "moderate", "premium")
TIME_REQUIREMENTS = ("any", "quick", "moderate", "leisurely")
CROWD_LEVELS = ("any", "low", "moderate", "high")
TIME_BUCKETS = ("morning", "afternoon", "evening")

HISTORY_LIMIT = 10
GOOGLE_ID_PREFIX = "google_"


def time_of_day_for(hour: int) -> str:
    if hour < 12:
        return "morning"
    if hour < 17:
        return "afternoon"
    return "evening"


@dataclass
class Coordinates:
    latitude: float
    longitude: float


@dataclass
class Place:
    id: str
    name: str
    latitude: float
    longitude: float
    description: str = ""
    category: Optional[str] = None
    rating: Optional[float] = None
    weather_suitability: list[str] = field(default_factory=list)
    best_time_to_visit: Optional[str] = None
    featured: bool = False
    address: Optional[str] = None
    phone: Optional[str] = None
    website: Optional[str] = None
    images: list[str] = field(default_factory=list)
    google_place_id: Optional[str] = None

    def __post_init__(self) -> None:
        if not -90.0 <= self.latitude <= 90.0:
            raise ValueError(f"latitude out of range: {self.latitude}")
        if not -180.0 <= self.longitude <= 180.0:
            raise ValueError(f"longitude out of range: {self.longitude}")
        if self.rating is not None and not 0.0 <= self.rating <= 5.0:
            raise ValueError(f"rating out of range: {self.rating}")

    @property
    def is_external(self) -> bool:
        return self.id.startswith(GOOGLE_ID_PREFIX)


@dataclass
class EnhancedPlace(Place):
    """A place view carrying live provider attributes."""

    source: str = "internal"
    is_open_now: Optional[bool] = None
    current_opening_hours: Optional[str] = None
    photos: list[str] = field(default_factory=list)
    user_ratings_total: Optional[int] = None
    price_level: Optional[int] = None

    @classmethod
    def from_place(cls, place: Place, **live: Any) -> "EnhancedPlace":
        base = {f.name: getattr(place, f.name) for f in fields(Place)}
        base["weather_suitability"] = list(place.weather_suitability)
        base["images"] = list(place.images)
        if isinstance(place, EnhancedPlace):
            for f in fields(EnhancedPlace):
                base.setdefault(f.name, getattr(place, f.name))
            base["photos"] = list(place.photos)
        else:
            base.setdefault("photos", list(place.images))
        base.update(live)
        return cls(**base)


@dataclass(frozen=True)
class SearchFilters:
    categories: Tuple[str, ...] = ()
    price_range: str = "any"
    time_requirement: str = "any"
    weather_suitability: Tuple[str, ...] = ()
    crowd_level: str = "any"
    accessibility_features: Tuple[str, ...] = ()
    distance_km: Optional[float] = None

    def __post_init__(self) -> None:
        # frozen: coerce through object.__setattr__
        for name in ("categories", "weather_suitability", "accessibility_features"):
            value = getattr(self, name)
            object.__setattr__(self, name, tuple(str(v).lower() for v in (value or ())))
        # unrecognised filters have no effect
        for name, allowed in (
            ("price_range", PRICE_RANGES),
            ("time_requirement", TIME_REQUIREMENTS),
            ("crowd_level", CROWD_LEVELS),
        ):
            value = getattr(self, name)
            if value not in allowed:
                logger.debug("ignoring unknown {} filter: {!r}", name, value)
                object.__setattr__(self, name, "any")
        if self.distance_km is not None and self.distance_km <= 0:
            logger.debug("ignoring non-positive distance filter: {}", self.distance_km)
            object.__setattr__(self, "distance_km", None)

    def merged(self, partial: Mapping[str, Any]) -> "SearchFilters":
        """Overlay partial values, keeping any field this instance set explicitly."""
        defaults = SearchFilters()
        updates: Dict[str, Any] = {}
        for key, value in partial.items():
            if value is None:
                continue
            if getattr(self, key) != getattr(defaults, key):
                continue
            updates[key] = value
        return replace(self, **updates) if updates else self


@dataclass
class WeatherData:
    condition: str
    temperature: float
    humidity: float
    description: str = ""
    source: Optional[str] = None
    recommendations: list[str] = field(default_factory=list)


@dataclass
class UserPreferences:
    preferred_categories: list[str] = field(default_factory=list)
    dietary_restrictions: list[str] = field(default_factory=list)
    mobility_needs: list[str] = field(default_factory=list)


@dataclass
class SearchHistoryItem:
    query: str
    timestamp: float


@dataclass
class SearchContext:
    current_weather: Optional[WeatherData] = None
    time_of_day: Optional[str] = None
    user_location: Optional[Coordinates] = None
    user_preferences: Optional[UserPreferences] = None
    search_history: list[SearchHistoryItem] = field(default_factory=list)

    def remember(self, query: str) -> None:
        """Push a query onto the most-recent-first history."""
        query = (query or "").strip()
        if not query:
            return
        self.search_history.insert(0, SearchHistoryItem(query=query, timestamp=time.time()))
        del self.search_history[HISTORY_LIMIT:]


@dataclass
class SearchResult:
    place: Place
    relevance_score: float
    distance_km: Optional[float] = None
    matching_factors: list[str] = field(default_factory=list)
    contextual_recommendations: list[str] = field(default_factory=list)


@dataclass
class ParsedQuery:
    original_query: str
    mood: Optional[str] = None
    time_preference: Optional[str] = None
    category_hints: list[str] = field(default_factory=list)
    weather_context: Optional[str] = None
    price_hints: Optional[str] = None
    crowd_preference: Optional[str] = None


@dataclass
class Bounds:
    north: float
    south: float
    east: float
    west: float

    def __post_init__(self) -> None:
        if self.north < self.south:
            raise ValueError("north must be >= south")

    def center(self) -> Tuple[float, float]:
        """Return (lat, lng)."""
        return ((self.north + self.south) / 2.0, (self.east + self.west) / 2.0)

    def contains(self, lat: float, lng: float) -> bool:
        return self.south <= lat <= self.north and self.west <= lng <= self.east

    def as_dict(self) -> Dict[str, float]:
        return {"north": self.north, "south": self.south, "east": self.east, "west": self.west}


@dataclass
class ViewportOptions:
    categories: Optional[list[str]] = None
    keyword: Optional[str] = None
    open_now: bool = False
    min_rating: Optional[float] = None
    max_results: int = 100

    def as_dict(self) -> Dict[str, Any]:
        return {
            "categories": list(self.categories) if self.categories is not None else None,
            "keyword": self.keyword,
            "open_now": self.open_now,
            "min_rating": self.min_rating,
            "max_results": self.max_results,
        }


@dataclass
class TimeWindow:
    start: str
    end: str
    description: str


@dataclass
class Journey:
    id: str
    name: str
    estimated_duration: float = 0.0  # minutes
    outdoor_heavy: bool = False
    outdoor_moderate: bool = False
    walking_intensive: bool = False
    walking_moderate: bool = False
    current_location: Optional[Coordinates] = None


@dataclass
class JourneyImpact:
    severity: str  # low | medium | high
    reasons: list[str] = field(default_factory=list)
    suggestions: list[str] = field(default_factory=list)
    indoor_alternative: Optional[dict] = None
    shelters: list[dict] = field(default_factory=list)


@dataclass
class JourneyAdaptation:
    reasoning: list[str]
    recommend_postpone: bool = False
    continue_with_caution: bool = False
    alternative_indoor_journey: Optional[dict] = None
    safe_shelter_locations: list[dict] = field(default_factory=list)
    minor_adjustments: list[str] = field(default_factory=list)
    timing_recommendations: list[str] = field(default_factory=list)


@dataclass
class WeatherRecommendation:
    place: Place
    suitability_score: float
    weather_reasoning: list[str]
    alternative_suggestions: list[Place]
    optimal_timing: TimeWindow


@dataclass
class LiveStatus:
    is_open: bool
    status_text: str
