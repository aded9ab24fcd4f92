from __future__ import annotations

import os
from typing import Any, Optional

from pydantic import BaseModel, Field, model_validator

from utils import mask_secret


class RankingWeights(BaseModel):
    """Relative weight of each relevance term.

    Every term is normalized to [0, 1] before weighting, so the weights must
    add up to exactly 1.0 for the final score to stay in range.
    """

    text: float = Field(default=0.30, ge=0.0, le=1.0)
    rating: float = Field(default=0.25, ge=0.0, le=1.0)
    proximity: float = Field(default=0.20, ge=0.0, le=1.0)
    weather: float = Field(default=0.15, ge=0.0, le=1.0)
    time_of_day: float = Field(default=0.10, ge=0.0, le=1.0)

    @model_validator(mode="after")
    def _check_total(self) -> "RankingWeights":
        if abs(self.total() - 1.0) > 1e-6:
            raise ValueError(f"ranking weights must sum to 1.0, got {self.total():.4f}")
        return self

    def total(self) -> float:
        return self.text + self.rating + self.proximity + self.weather + self.time_of_day


class Configuration(BaseModel):
    # Google Places
    google_places_api_key: Optional[str] = Field(default=None)
    google_places_base_url: str = Field(default="https://maps.googleapis.com/maps/api/place")
    google_places_timeout: int = Field(default=10)
    components_country: Optional[str] = Field(default="in")
    photo_url_template: str = Field(default="/api/places/photo?reference={reference}")

    # Weather
    openweather_api_key: Optional[str] = Field(default=None)
    openweather_base_url: str = Field(default="https://api.openweathermap.org/data/2.5")
    weatherapi_key: Optional[str] = Field(default=None)
    weatherapi_base_url: str = Field(default="https://api.weatherapi.com/v1")
    weather_timeout: int = Field(default=8)
    weather_cache_ttl: int = Field(default=30 * 60)

    # Defaults (Indiranagar, Bangalore)
    default_center_lat: float = Field(default=12.9716)
    default_center_lng: float = Field(default=77.6411)
    default_distance_km: float = Field(default=2.0)
    autocomplete_radius_m: int = Field(default=2000)
    places_seed_path: Optional[str] = Field(default=None)

    # Cache TTLs, seconds
    cache_ttl_static: int = Field(default=24 * 60 * 60, gt=0)
    cache_ttl_dynamic: int = Field(default=15 * 60, gt=0)
    cache_ttl_search: int = Field(default=5 * 60, gt=0)
    cache_ttl_viewport: int = Field(default=2 * 60, gt=0)

    # Ranking
    ranking_weights: RankingWeights = Field(default_factory=RankingWeights)
    weather_blend: float = Field(default=0.2, ge=0.0, le=1.0)

    @classmethod
    def from_env(cls, overrides: Optional[dict[str, Any]] = None) -> "Configuration":
        raw: dict[str, Any] = {}

        env_map = {
            "google_places_api_key": os.getenv("GOOGLE_PLACES_API_KEY"),
            "google_places_base_url": os.getenv("GOOGLE_PLACES_BASE_URL"),
            "google_places_timeout": os.getenv("GOOGLE_PLACES_TIMEOUT"),
            "components_country": os.getenv("COMPONENTS_COUNTRY"),
            "photo_url_template": os.getenv("PHOTO_URL_TEMPLATE"),
            "openweather_api_key": os.getenv("OPENWEATHER_API_KEY"),
            "weatherapi_key": os.getenv("WEATHERAPI_KEY"),
            "default_center_lat": os.getenv("DEFAULT_CENTER_LAT"),
            "default_center_lng": os.getenv("DEFAULT_CENTER_LNG"),
            "default_distance_km": os.getenv("DEFAULT_DISTANCE_KM"),
            "places_seed_path": os.getenv("PLACES_SEED_PATH"),
            "cache_ttl_static": os.getenv("CACHE_TTL_STATIC"),
            "cache_ttl_dynamic": os.getenv("CACHE_TTL_DYNAMIC"),
            "cache_ttl_search": os.getenv("CACHE_TTL_SEARCH"),
            "cache_ttl_viewport": os.getenv("CACHE_TTL_VIEWPORT"),
            "weather_blend": os.getenv("WEATHER_BLEND"),
        }

        for k, v in env_map.items():
            if v is None:
                continue
            raw[k] = v

        if overrides:
            raw.update({k: v for k, v in overrides.items() if v is not None})

        return cls(**raw)

    def has_google_places(self) -> bool:
        return bool(self.google_places_api_key)

    def log_summary(self) -> str:
        return (
            "google_places=%s base=%s timeout=%s api_key=%s openweather=%s weatherapi=%s center=%.4f,%.4f"
            % (
                self.has_google_places(),
                self.google_places_base_url,
                self.google_places_timeout,
                mask_secret(self.google_places_api_key),
                bool(self.openweather_api_key),
                bool(self.weatherapi_key),
                self.default_center_lat,
                self.default_center_lng,
            )
        )
