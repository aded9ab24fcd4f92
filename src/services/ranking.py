from __future__ import annotations

import math
from typing import Iterable, List, Optional

from config import RankingWeights
from models import Coordinates, Place, SearchContext, SearchFilters, SearchResult, WeatherData
from utils import haversine_km


PROXIMITY_DECAY = 1.5
HIGHLY_RATED = 4.0
EXCEPTIONAL_RATING = 4.5

TIME_SYNONYMS = {
    "morning": ("breakfast",),
    "afternoon": ("lunch",),
    "evening": ("dinner", "night"),
}


def _tokens(query: str) -> List[str]:
    return (query or "").lower().split()


def _searchable_text(place: Place) -> str:
    parts = [
        place.name,
        place.description,
        place.category or "",
        place.best_time_to_visit or "",
        *place.weather_suitability,
    ]
    return " ".join(parts).lower()


def _distance_km(origin: Coordinates, place: Place) -> float:
    return haversine_km(origin.latitude, origin.longitude, place.latitude, place.longitude)


def score_text(place: Place, query: str) -> float:
    terms = _tokens(query)
    if not terms:
        return 0.0
    name = place.name.lower()
    category = (place.category or "").lower()
    full_text = " ".join([name, place.description.lower(), category])

    relevance = 0.0
    for term in terms:
        if term in name:
            relevance += 0.4
        elif category and term in category:
            relevance += 0.3
        elif term in full_text:
            relevance += 0.2
    return min(relevance / len(terms), 1.0)


def score_proximity(distance_km: float) -> float:
    # 1.0 at 0 km, ~0.22 at 1 km, ~0.05 at 2 km
    return max(0.0, math.exp(-distance_km * PROXIMITY_DECAY))


def score_weather(place: Place, weather: WeatherData) -> float:
    tags = place.weather_suitability
    if not tags:
        return 0.5
    condition = (weather.condition or "").lower()
    if condition in tags:
        return 1.0
    if "rain" in condition and "rainy" in tags:
        return 0.8
    if "sun" in condition and "sunny" in tags:
        return 0.8
    if "cloud" in condition and "cloudy" in tags:
        return 0.6
    return 0.3


def score_time_of_day(place: Place, time_of_day: str) -> float:
    if not place.best_time_to_visit:
        return 0.5
    best = place.best_time_to_visit.lower()
    if time_of_day in best:
        return 1.0
    if any(s in best for s in TIME_SYNONYMS.get(time_of_day, ())):
        return 0.8
    return 0.5


class RelevanceRanker:
    """Filters a candidate corpus and orders it by contextual relevance."""

    def __init__(self, weights: Optional[RankingWeights] = None) -> None:
        self.weights = weights or RankingWeights()

    def search(
        self,
        query: str,
        filters: SearchFilters,
        corpus: Iterable[Place],
        context: Optional[SearchContext] = None,
    ) -> List[SearchResult]:
        places = self._filter_by_text(query, list(corpus))
        places = self._apply_filters(places, filters, context)

        origin = context.user_location if context else None
        results: list[SearchResult] = []
        for place in places:
            distance = _distance_km(origin, place) if origin else None
            results.append(
                SearchResult(
                    place=place,
                    relevance_score=self.score(place, query, context, distance=distance),
                    distance_km=distance,
                    matching_factors=self.matching_factors(place, query, filters),
                    contextual_recommendations=self.recommendations(place, context),
                )
            )

        # list.sort is stable, ties keep corpus order
        results.sort(key=lambda r: r.relevance_score, reverse=True)
        return results

    def _filter_by_text(self, query: str, places: List[Place]) -> List[Place]:
        if not query or len(query) < 2:
            return places
        terms = _tokens(query)
        return [p for p in places if all(t in _searchable_text(p) for t in terms)]

    def _apply_filters(
        self, places: List[Place], filters: SearchFilters, context: Optional[SearchContext]
    ) -> List[Place]:
        if filters.categories:
            wanted = set(filters.categories)
            places = [p for p in places if p.category and p.category.lower() in wanted]

        if filters.weather_suitability:
            wanted_tags = set(filters.weather_suitability)
            places = [p for p in places if wanted_tags.intersection(t.lower() for t in p.weather_suitability)]

        # distance without a caller location has no effect
        if filters.distance_km and context is not None and context.user_location is not None:
            origin = context.user_location
            places = [p for p in places if _distance_km(origin, p) <= filters.distance_km]

        return places

    def score(
        self,
        place: Place,
        query: str,
        context: Optional[SearchContext] = None,
        *,
        distance: Optional[float] = None,
    ) -> float:
        w = self.weights
        score = score_text(place, query) * w.text
        score += (place.rating or 0.0) / 5.0 * w.rating

        if context is not None:
            if context.user_location is not None:
                if distance is None:
                    distance = _distance_km(context.user_location, place)
                score += score_proximity(distance) * w.proximity
            if context.current_weather is not None:
                score += score_weather(place, context.current_weather) * w.weather
            if context.time_of_day:
                score += score_time_of_day(place, context.time_of_day) * w.time_of_day

        return min(score, 1.0)

    def matching_factors(self, place: Place, query: str, filters: SearchFilters) -> List[str]:
        factors: list[str] = []
        terms = _tokens(query)
        name = place.name.lower()
        category = (place.category or "").lower()

        if any(t in name for t in terms):
            factors.append("Name match")
        if category and any(t in category for t in terms):
            factors.append("Category match")
        if category and category in filters.categories:
            factors.append(f"Category: {place.category}")
        if place.rating is not None and place.rating >= HIGHLY_RATED:
            factors.append("Highly rated")
        if place.weather_suitability:
            factors.append(f"Weather: {', '.join(place.weather_suitability)}")
        return factors

    def recommendations(self, place: Place, context: Optional[SearchContext]) -> List[str]:
        recs: list[str] = []
        category = (place.category or "").lower()
        time_of_day = context.time_of_day if context else None

        if time_of_day == "morning" and "cafe" in category:
            recs.append("Perfect for morning coffee")
        if time_of_day == "evening" and "restaurant" in category:
            recs.append("Great for dinner")
        if place.rating is not None and place.rating >= EXCEPTIONAL_RATING:
            recs.append("Exceptional reviews")

        weather = context.current_weather if context else None
        if weather is not None and "rain" in (weather.condition or "").lower() and "rainy" in place.weather_suitability:
            recs.append("Perfect for rainy weather")
        return recs
