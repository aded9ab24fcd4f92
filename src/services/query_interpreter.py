from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from types import MappingProxyType
from typing import Any, Dict, Iterator, List, Mapping, Optional, Sequence, Tuple

from models import ParsedQuery, SearchContext, time_of_day_for
from utils import dedupe


PatternTable = Mapping[str, Tuple[str, ...]]

MAX_SUGGESTIONS = 6


def _frozen(table: Dict[str, Sequence[str]]) -> PatternTable:
    return MappingProxyType({k: tuple(v) for k, v in table.items()})


MOOD_PATTERNS = _frozen({
    "rainy": ["rainy", "wet", "monsoon", "indoor", "covered", "shelter"],
    "quiet": ["quiet", "peaceful", "calm", "serene", "tranquil", "relaxing"],
    "lively": ["lively", "busy", "energetic", "vibrant", "bustling", "crowded"],
    "romantic": ["romantic", "date", "intimate", "cozy", "candlelit", "couples"],
    "casual": ["casual", "laid-back", "relaxed", "informal", "easy-going"],
    "upscale": ["upscale", "fancy", "elegant", "sophisticated", "fine", "premium"],
})

TIME_PATTERNS = _frozen({
    "morning": ["morning", "breakfast", "early", "sunrise", "dawn", "am"],
    "afternoon": ["afternoon", "lunch", "midday", "noon", "pm"],
    "evening": ["evening", "dinner", "sunset", "night", "late"],
})

CATEGORY_PATTERNS = _frozen({
    "food": ["food", "eat", "dining", "meal", "hungry"],
    "coffee": ["coffee", "cafe", "espresso", "latte", "cappuccino", "caffeine"],
    "restaurant": ["restaurant", "dine", "dinner", "lunch", "cuisine"],
    "drinks": ["drinks", "bar", "cocktail", "beer", "wine", "alcohol"],
    "shopping": ["shop", "buy", "market", "store", "purchase"],
    "activity": ["activity", "fun", "entertainment", "experience", "adventure"],
})

WEATHER_PATTERNS = _frozen({
    "rainy": ["rainy", "rain", "wet", "drizzle", "monsoon", "storm"],
    "sunny": ["sunny", "sun", "bright", "clear", "sunshine"],
    "hot": ["hot", "warm", "heat", "sweltering", "scorching"],
    "cool": ["cool", "cold", "chilly", "fresh", "crisp"],
    "cloudy": ["cloudy", "overcast", "gray", "grey", "gloomy"],
})

PRICE_PATTERNS = _frozen({
    "budget": ["cheap", "budget", "affordable", "inexpensive", "economical"],
    "moderate": ["moderate", "reasonable", "fair", "mid-range"],
    "premium": ["expensive", "premium", "upscale", "luxury", "high-end", "fancy"],
})

CROWD_PATTERNS = _frozen({
    "low": ["quiet", "peaceful", "empty", "not crowded", "less busy"],
    "moderate": ["moderate", "normal", "average", "typical"],
    "high": ["busy", "crowded", "popular", "packed", "bustling"],
})

CATEGORY_EXPANSIONS = _frozen({
    "food": ["restaurant", "street_food", "food_court"],
    "coffee": ["cafe", "coffee_shop"],
    "restaurant": ["restaurant", "fine_dining"],
    "drinks": ["bar", "pub", "lounge"],
    "shopping": ["shop", "market", "mall"],
    "activity": ["activity", "entertainment"],
})

# trigger substring -> completions offered by suggest()
SUGGESTION_TRIGGERS = _frozen({
    "quiet": ["quiet morning coffee", "peaceful reading spot", "quiet dinner place"],
    "romantic": ["romantic dinner", "intimate date spot", "cozy evening place"],
    "coffee": ["morning coffee", "coffee with wifi", "artisan coffee shop"],
    "lunch": ["quick lunch", "business lunch", "healthy lunch options"],
    "rain": ["rainy day spots", "covered seating", "indoor activities"],
})

TIME_SUGGESTIONS = _frozen({
    "morning": ["breakfast spots", "morning coffee", "early morning walk"],
    "afternoon": ["lunch places", "afternoon tea", "midday break"],
    "evening": ["dinner restaurants", "evening drinks", "night out"],
})


@dataclass(frozen=True)
class PatternTables:
    mood: PatternTable = field(default_factory=lambda: MOOD_PATTERNS)
    time: PatternTable = field(default_factory=lambda: TIME_PATTERNS)
    category: PatternTable = field(default_factory=lambda: CATEGORY_PATTERNS)
    weather: PatternTable = field(default_factory=lambda: WEATHER_PATTERNS)
    price: PatternTable = field(default_factory=lambda: PRICE_PATTERNS)
    crowd: PatternTable = field(default_factory=lambda: CROWD_PATTERNS)
    category_expansions: PatternTable = field(default_factory=lambda: CATEGORY_EXPANSIONS)
    suggestion_triggers: PatternTable = field(default_factory=lambda: SUGGESTION_TRIGGERS)
    time_suggestions: PatternTable = field(default_factory=lambda: TIME_SUGGESTIONS)


def _first_match(table: PatternTable, text: str) -> Optional[str]:
    for label, triggers in table.items():
        if any(t in text for t in triggers):
            return label
    return None


def _all_matches(table: PatternTable, text: str) -> List[str]:
    return [label for label, triggers in table.items() if any(t in text for t in triggers)]


class QueryInterpreter:
    """Turns free text into structured filter hints.

    Pure and deterministic; all lookup tables are supplied at construction.
    """

    def __init__(self, tables: Optional[PatternTables] = None) -> None:
        self.tables = tables or PatternTables()

    def parse(self, query: str) -> ParsedQuery:
        text = (query or "").lower()
        return ParsedQuery(
            original_query=query or "",
            mood=_first_match(self.tables.mood, text),
            time_preference=_first_match(self.tables.time, text),
            category_hints=_all_matches(self.tables.category, text),
            weather_context=_first_match(self.tables.weather, text),
            price_hints=_first_match(self.tables.price, text),
            crowd_preference=_first_match(self.tables.crowd, text),
        )

    def to_filters(self, parsed: ParsedQuery, context: Optional[SearchContext] = None) -> Dict[str, Any]:
        filters: Dict[str, Any] = {}

        if parsed.mood == "quiet":
            filters["crowd_level"] = "low"
        elif parsed.mood == "lively":
            filters["crowd_level"] = "high"

        live_condition = ""
        if context is not None and context.current_weather is not None:
            live_condition = (context.current_weather.condition or "").lower()
        if parsed.weather_context == "rainy" or "rain" in live_condition:
            filters["weather_suitability"] = ["rainy", "covered", "indoor"]
        elif parsed.weather_context == "sunny":
            filters["weather_suitability"] = ["sunny", "outdoor"]

        categories: List[str] = []
        for hint in parsed.category_hints:
            categories.extend(self.tables.category_expansions.get(hint, ()))
        if categories:
            filters["categories"] = dedupe(categories)

        if parsed.price_hints:
            filters["price_range"] = parsed.price_hints
        if parsed.crowd_preference:
            filters["crowd_level"] = parsed.crowd_preference

        return filters

    def suggest(self, partial_query: str, *, hour: Optional[int] = None) -> Iterator[str]:
        text = (partial_query or "").lower()
        suggestions: List[str] = []
        for trigger, completions in self.tables.suggestion_triggers.items():
            if trigger in text:
                suggestions.extend(completions)

        if hour is None:
            hour = datetime.now().hour
        suggestions.extend(self.tables.time_suggestions.get(time_of_day_for(hour), ()))

        return iter(dedupe(suggestions)[:MAX_SUGGESTIONS])

    def enhance(self, query: str, context: Optional[SearchContext] = None) -> str:
        """Append context hints (time of day, rain or sun) the query does not already carry."""
        enhanced = query or ""
        if context is None:
            return enhanced
        text = enhanced.lower()
        if context.time_of_day and _first_match(self.tables.time, text) is None:
            enhanced += f" {context.time_of_day}"
        if context.current_weather is not None and _first_match(self.tables.weather, text) is None:
            condition = (context.current_weather.condition or "").lower()
            if "rain" in condition:
                enhanced += " indoor covered"
            elif "sun" in condition:
                enhanced += " outdoor sunny"
        return enhanced

    def explain(self, parsed: ParsedQuery) -> str:
        parts: List[str] = []
        if parsed.mood:
            parts.append(f"Looking for {parsed.mood} places")
        if parsed.time_preference:
            parts.append(f"Best for {parsed.time_preference}")
        if parsed.category_hints:
            parts.append(f"Categories: {', '.join(parsed.category_hints)}")
        if parsed.weather_context:
            parts.append(f"Suitable for {parsed.weather_context} weather")
        if parsed.price_hints:
            parts.append(f"{parsed.price_hints} price range")
        if not parts:
            return "General search"
        return " • ".join(parts)
