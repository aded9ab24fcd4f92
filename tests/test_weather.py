from __future__ import annotations

import pytest

from models import Journey, Place, WeatherData
from services.weather import WeatherSuitabilityEvaluator, weather_advice


def _place(pid: str = "p1", tags=None, rating=None, category="cafe") -> Place:
    return Place(
        id=pid,
        name=f"Place {pid}",
        latitude=12.97,
        longitude=77.64,
        category=category,
        rating=rating,
        weather_suitability=list(tags or []),
    )


RAINY_HOT = WeatherData(condition="rainy", temperature=33, humidity=85)
MILD_SUN = WeatherData(condition="sunny", temperature=25, humidity=50)


def test_indoor_place_in_hot_humid_rain() -> None:
    ev = WeatherSuitabilityEvaluator()
    place = _place(tags=["indoor", "air-conditioned"], rating=4.6)

    assert ev.score(place, RAINY_HOT) == pytest.approx(1.0)
    reasons = ev.reason(place, RAINY_HOT)
    assert "Escape the humidity in comfortable air conditioning" in reasons
    assert "Highly rated experience worth visiting regardless" in reasons


def test_untagged_place_is_neutral() -> None:
    ev = WeatherSuitabilityEvaluator()
    assert ev.score(_place(tags=[]), RAINY_HOT) == 0.5
    assert ev.reason(_place(tags=[]), MILD_SUN) == ["Suitable for current weather conditions"]


def test_uncovered_outdoor_conflicts_with_rain() -> None:
    ev = WeatherSuitabilityEvaluator()
    rain = WeatherData(condition="rainy", temperature=24, humidity=60)
    assert ev.base_score(_place(tags=["outdoor", "rainy"]), rain) <= 0.2
    assert ev.score(_place(tags=["outdoor"]), rain) <= 0.2
    # "outdoor-covered" is not a conflict
    assert ev.score(_place(tags=["outdoor-covered"]), rain) > 0.2


def test_indoor_only_conflicts_with_mild_sun() -> None:
    ev = WeatherSuitabilityEvaluator()
    assert ev.score(_place(tags=["indoor"]), MILD_SUN) == pytest.approx(0.2)
    assert ev.score(_place(tags=["outdoor", "garden"]), MILD_SUN) == pytest.approx(0.8)


def test_extreme_heat_adjustments() -> None:
    ev = WeatherSuitabilityEvaluator()
    heat = WeatherData(condition="hot", temperature=37, humidity=40)
    assert ev.score(_place(tags=["indoor"]), heat) == pytest.approx(1.0)
    assert ev.score(_place(tags=["outdoor"]), heat) == pytest.approx(0.2)


@pytest.mark.parametrize(
    "weather,tags,expected",
    [
        (WeatherData("hot", 36, 40), ["outdoor"], ("06:00", "09:00")),
        (WeatherData("hot", 36, 40), ["indoor"], ("10:00", "22:00")),
        (WeatherData("rainy", 24, 90), ["indoor"], ("10:00", "20:00")),
        (WeatherData("sunny", 25, 50), ["outdoor"], ("08:00", "20:00")),
        (WeatherData("cloudy", 22, 60), ["outdoor"], ("10:00", "18:00")),
    ],
)
def test_optimal_window(weather, tags, expected) -> None:
    window = WeatherSuitabilityEvaluator().optimal_window(_place(tags=tags), weather)
    assert (window.start, window.end) == expected
    assert window.description


def test_recommend_drops_low_scores_and_lists_better_alternatives() -> None:
    ev = WeatherSuitabilityEvaluator()
    rain = WeatherData(condition="rainy", temperature=24, humidity=60)
    dry = _place("dry", tags=["rainy", "indoor"])
    covered = _place("covered", tags=["covered"])
    wet = _place("wet", tags=["outdoor"])

    recs = ev.recommend([covered, dry, wet], rain)
    assert [r.place.id for r in recs] == ["dry", "covered"]
    assert recs[1].alternative_suggestions == [dry]
    assert recs[0].alternative_suggestions == []

    assert [p.id for p in ev.filter_places([covered, dry, wet], rain)] == ["covered", "dry"]


def test_journey_rain_outdoor_heavy_is_high() -> None:
    ev = WeatherSuitabilityEvaluator()
    journey = Journey(id="j1", name="Lalbagh walk", estimated_duration=120, outdoor_heavy=True)
    impact = ev.assess_journey_impact(journey, WeatherData("rainy", 24, 90))

    assert impact.severity == "high"
    assert impact.indoor_alternative["estimated_duration"] == pytest.approx(96.0)
    assert impact.indoor_alternative["name"] == "Indoor Alternative: Lalbagh walk"
    assert len(impact.shelters) == 2
    assert "Bring umbrella or raincoat" in impact.suggestions

    adaptation = ev.adapt_to_weather_change(journey, WeatherData("rainy", 24, 90))
    assert adaptation.recommend_postpone
    assert adaptation.alternative_indoor_journey["indoor_focused"] is True


@pytest.mark.parametrize(
    "journey,weather,severity",
    [
        (Journey("j", "x", walking_intensive=True), WeatherData("hot", 39, 30), "high"),
        (Journey("j", "x", outdoor_heavy=True), WeatherData("cool", 8, 40), "high"),
        (Journey("j", "x", outdoor_moderate=True), WeatherData("hot", 33, 30), "medium"),
        (Journey("j", "x", walking_moderate=True), WeatherData("humid", 28, 85), "medium"),
        (Journey("j", "x", walking_moderate=True), WeatherData("sunny", 25, 50), "low"),
    ],
)
def test_journey_severity(journey, weather, severity) -> None:
    impact = WeatherSuitabilityEvaluator().assess_journey_impact(journey, weather)
    assert impact.severity == severity
    if severity != "high":
        assert impact.indoor_alternative is None
        assert impact.shelters == []


def test_adapt_low_severity_continues() -> None:
    ev = WeatherSuitabilityEvaluator()
    adaptation = ev.adapt_to_weather_change(Journey("j", "x"), MILD_SUN)
    assert adaptation.continue_with_caution
    assert not adaptation.recommend_postpone
    assert adaptation.timing_recommendations == ["Perfect timing for outdoor activities"]


def test_weather_advice() -> None:
    assert weather_advice(WeatherData("rainy", 24, 90))[0].startswith("Perfect time for cozy")
    assert weather_advice(WeatherData("hot", 34, 40))[0].startswith("Stay cool")
    assert weather_advice(WeatherData("cool", 22, 50)) == []
