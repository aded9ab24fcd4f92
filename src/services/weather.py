"""Weather suitability scoring, reasoning and journey impact assessment."""

from __future__ import annotations

from typing import Iterable, List, Sequence

from models import (
    Journey,
    JourneyAdaptation,
    JourneyImpact,
    Place,
    TimeWindow,
    WeatherData,
    WeatherRecommendation,
)
from utils import clamp


NEUTRAL_SCORE = 0.5
EXACT_MATCH = 1.0
COMPATIBLE_MATCH = 0.8
INDOOR_OVERRIDE = 0.9
CONFLICT_SCORE = 0.2

EXTREME_HEAT_C = 35.0
HOT_C = 32.0
JOURNEY_HEAT_C = 38.0
COLD_C = 15.0
JOURNEY_COLD_C = 10.0
MILD_SUNNY_MAX_C = 30.0
HUMID_PCT = 80.0

RECOMMEND_MIN_SCORE = 0.3
FILTER_MIN_SCORE = 0.5
MAX_ALTERNATIVES = 2

# Static until a shelter lookup exists for the journey's current location.
NEARBY_SHELTERS = (
    {"name": "Metro Station", "distance": "200m"},
    {"name": "Shopping Mall", "distance": "500m"},
)


def _condition(weather: WeatherData) -> str:
    return (weather.condition or "").lower()


def _is_rainy(weather: WeatherData) -> bool:
    return "rain" in _condition(weather)


def _is_sunny(weather: WeatherData) -> bool:
    return "sun" in _condition(weather)


def _is_hot(weather: WeatherData) -> bool:
    return _condition(weather) == "hot" or weather.temperature > HOT_C


def _any_tag(tags: Iterable[str], *needles: str) -> bool:
    return any(n in t for t in tags for n in needles)


def _has_compatible_tags(tags: Sequence[str], weather: WeatherData) -> bool:
    condition = _condition(weather)
    if "rain" in condition:
        return _any_tag(tags, "indoor", "covered", "shelter")
    if "sun" in condition:
        return _any_tag(tags, "outdoor", "garden", "patio")
    if "cloud" in condition:
        return _any_tag(tags, "outdoor", "walk")
    return False


def _needs_indoor(tags: Sequence[str], weather: WeatherData) -> bool:
    has_indoor = _any_tag(tags, "indoor", "covered", "air-conditioned")
    needs = _is_rainy(weather) or _condition(weather) == "hot" or weather.temperature > EXTREME_HEAT_C
    return has_indoor and needs


def _has_conflict(tags: Sequence[str], weather: WeatherData) -> bool:
    if _is_rainy(weather) and any("outdoor" in t and "covered" not in t for t in tags):
        return True
    if _is_sunny(weather) and weather.temperature < MILD_SUNNY_MAX_C and all("indoor" in t for t in tags):
        return True
    return False


class WeatherSuitabilityEvaluator:
    def base_score(self, place: Place, weather: WeatherData) -> float:
        """Score from the tag rules alone, before temperature and humidity."""
        tags = place.weather_suitability
        if not tags:
            return NEUTRAL_SCORE

        score = NEUTRAL_SCORE
        exact = _condition(weather) in tags
        if exact:
            score = EXACT_MATCH
        elif _has_compatible_tags(tags, weather):
            score = COMPATIBLE_MATCH
        if not exact and _needs_indoor(tags, weather):
            score = max(score, INDOOR_OVERRIDE)
        if _has_conflict(tags, weather):
            score = CONFLICT_SCORE
        return score

    def score(self, place: Place, weather: WeatherData) -> float:
        if not place.weather_suitability:
            return NEUTRAL_SCORE
        score = self.base_score(place, weather)
        score = self._adjust_for_temperature(score, place, weather)
        score = self._adjust_for_humidity(score, place, weather)
        return clamp(score)

    def _adjust_for_temperature(self, score: float, place: Place, weather: WeatherData) -> float:
        tags = place.weather_suitability
        temp = weather.temperature
        if temp > EXTREME_HEAT_C:
            if "indoor" in tags or "air-conditioned" in tags:
                return min(1.0, score + 0.2)
            if "outdoor" in tags:
                return max(0.0, score - 0.3)
        if temp < COLD_C and ("indoor" in tags or "heated" in tags):
            return min(1.0, score + 0.15)
        return score

    def _adjust_for_humidity(self, score: float, place: Place, weather: WeatherData) -> float:
        tags = place.weather_suitability
        if weather.humidity > HUMID_PCT:
            if "air-conditioned" in tags or "indoor" in tags:
                return min(1.0, score + 0.1)
            if "outdoor" in tags:
                return max(0.0, score - 0.15)
        return score

    def reason(self, place: Place, weather: WeatherData) -> List[str]:
        tags = place.weather_suitability
        condition = _condition(weather)
        temp = weather.temperature
        reasons: list[str] = []

        if condition and condition in tags:
            reasons.append(f"Perfect for {condition} weather")

        if temp > 30 and "indoor" in tags:
            reasons.append("Air-conditioned comfort during hot weather")
        elif temp > 30 and "covered" in tags:
            reasons.append("Shaded areas provide relief from heat")
        elif temp < 20 and "indoor" in tags:
            reasons.append("Warm indoor environment")

        if _is_rainy(weather):
            if "covered" in tags:
                reasons.append("Covered seating protects from rain")
            elif "indoor" in tags:
                reasons.append("Stay dry indoors while enjoying the atmosphere")

        if _is_sunny(weather) and temp < MILD_SUNNY_MAX_C:
            if "outdoor" in tags:
                reasons.append("Perfect weather for outdoor dining/activities")
            elif "garden" in tags:
                reasons.append("Beautiful outdoor spaces to enjoy")

        if weather.humidity > HUMID_PCT and "air-conditioned" in tags:
            reasons.append("Escape the humidity in comfortable air conditioning")

        if place.rating is not None and place.rating >= 4.5:
            reasons.append("Highly rated experience worth visiting regardless")

        if not reasons:
            reasons.append("Suitable for current weather conditions")
        return reasons

    def optimal_window(self, place: Place, weather: WeatherData) -> TimeWindow:
        if _is_hot(weather):
            if "outdoor" in place.weather_suitability:
                return TimeWindow("06:00", "09:00", "Early morning before heat peaks")
            return TimeWindow("10:00", "22:00", "Indoor comfort available all day")
        if _is_rainy(weather):
            return TimeWindow("10:00", "20:00", "Best during covered hours")
        if _is_sunny(weather) and 20 <= weather.temperature <= MILD_SUNNY_MAX_C:
            return TimeWindow("08:00", "20:00", "Perfect all day long")
        return TimeWindow("10:00", "18:00", "Standard visiting hours")

    def recommend(self, places: Sequence[Place], weather: WeatherData) -> List[WeatherRecommendation]:
        scores = {id(p): self.score(p, weather) for p in places}
        recs: list[WeatherRecommendation] = []
        for place in places:
            score = scores[id(place)]
            if score <= RECOMMEND_MIN_SCORE:
                continue
            alternatives = [
                p for p in places
                if p.id != place.id and p.category == place.category and scores[id(p)] > score
            ][:MAX_ALTERNATIVES]
            recs.append(
                WeatherRecommendation(
                    place=place,
                    suitability_score=score,
                    weather_reasoning=self.reason(place, weather),
                    alternative_suggestions=alternatives,
                    optimal_timing=self.optimal_window(place, weather),
                )
            )
        recs.sort(key=lambda r: r.suitability_score, reverse=True)
        return recs

    def filter_places(self, places: Iterable[Place], weather: WeatherData) -> List[Place]:
        return [p for p in places if self.score(p, weather) > FILTER_MIN_SCORE]

    # Journeys

    def assess_journey_impact(self, journey: Journey, weather: WeatherData) -> JourneyImpact:
        severity = self._severity(journey, weather)
        impact = JourneyImpact(
            severity=severity,
            reasons=self._impact_reasons(weather),
            suggestions=self._adaptation_suggestions(weather),
        )
        if severity == "high":
            impact.indoor_alternative = self._indoor_alternative(journey)
            impact.shelters = [dict(s) for s in NEARBY_SHELTERS]
        return impact

    def adapt_to_weather_change(self, journey: Journey, weather: WeatherData) -> JourneyAdaptation:
        impact = self.assess_journey_impact(journey, weather)
        if impact.severity == "high":
            return JourneyAdaptation(
                reasoning=impact.reasons,
                recommend_postpone=True,
                alternative_indoor_journey=impact.indoor_alternative,
                safe_shelter_locations=impact.shelters,
            )
        return JourneyAdaptation(
            reasoning=impact.reasons,
            continue_with_caution=True,
            minor_adjustments=impact.suggestions,
            timing_recommendations=self._timing_recommendations(weather),
        )

    def _severity(self, journey: Journey, weather: WeatherData) -> str:
        temp = weather.temperature
        if _is_rainy(weather) and journey.outdoor_heavy:
            return "high"
        if temp > JOURNEY_HEAT_C and journey.walking_intensive:
            return "high"
        if temp < JOURNEY_COLD_C and journey.outdoor_heavy:
            return "high"

        humid = _condition(weather) == "humid" or weather.humidity > HUMID_PCT
        if _is_hot(weather) and journey.outdoor_moderate:
            return "medium"
        if humid and journey.walking_moderate:
            return "medium"
        return "low"

    def _impact_reasons(self, weather: WeatherData) -> List[str]:
        reasons: list[str] = []
        if _is_rainy(weather):
            reasons.append("Heavy rain may affect outdoor portions of journey")
        if weather.temperature > EXTREME_HEAT_C:
            reasons.append("Extreme heat may cause discomfort during walking")
        if weather.humidity > 85:
            reasons.append("High humidity may make outdoor activities uncomfortable")
        return reasons

    def _adaptation_suggestions(self, weather: WeatherData) -> List[str]:
        suggestions: list[str] = []
        if _is_rainy(weather):
            suggestions.append("Bring umbrella or raincoat")
            suggestions.append("Focus on covered/indoor stops first")
        if weather.temperature > HOT_C:
            suggestions.append("Start early or postpone to evening")
            suggestions.append("Carry extra water and stay hydrated")
        return suggestions

    def _indoor_alternative(self, journey: Journey) -> dict:
        return {
            "id": f"{journey.id}-indoor-alt",
            "name": f"Indoor Alternative: {journey.name}",
            "indoor_focused": True,
            "estimated_duration": journey.estimated_duration * 0.8,
        }

    def _timing_recommendations(self, weather: WeatherData) -> List[str]:
        recs: list[str] = []
        if _is_hot(weather):
            recs.append("Visit early morning (7-9 AM) or evening (6-8 PM)")
        if _is_rainy(weather):
            recs.append("Wait for lighter rain or focus on covered areas")
        if _is_sunny(weather) and weather.temperature < MILD_SUNNY_MAX_C:
            recs.append("Perfect timing for outdoor activities")
        return recs


def weather_advice(weather: WeatherData) -> List[str]:
    temp = weather.temperature
    if _is_rainy(weather):
        return [
            "Perfect time for cozy indoor cafes and covered markets",
            "Bring an umbrella if you plan to walk between places",
        ]
    if _is_sunny(weather) and temp < MILD_SUNNY_MAX_C:
        return [
            "Ideal weather for outdoor dining and street exploration",
            "Great day for walking tours and outdoor activities",
        ]
    if temp > HOT_C:
        return [
            "Stay cool in air-conditioned venues during peak hours",
            "Plan outdoor activities for early morning or evening",
        ]
    if weather.humidity > HUMID_PCT:
        return [
            "Indoor activities recommended for comfort",
            "Stay hydrated and take breaks in cool places",
        ]
    return []
