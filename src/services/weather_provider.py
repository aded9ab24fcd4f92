from __future__ import annotations

import time
from collections import OrderedDict
from datetime import date
from typing import Any, List, Optional, Tuple

import requests
from loguru import logger

from config import Configuration
from models import WeatherData


class WeatherProviderError(RuntimeError):
    pass


def determine_condition(temp: float, humidity: float, reported: str = "") -> str:
    if "rain" in reported.lower() or "drizzle" in reported.lower() or "shower" in reported.lower():
        return "rainy"
    if temp > 30:
        return "hot"
    if temp < 20:
        return "cool"
    if humidity > 80:
        return "humid"
    return "sunny"


_CONDITION_TIPS = {
    "sunny": ["Perfect weather for outdoor exploration!", "Great for walking around the neighborhood"],
    "rainy": ["Visit covered markets", "Perfect weather for cozy cafes"],
    "hot": ["Stay hydrated and seek shade", "Indoor venues recommended"],
    "cool": ["Great weather for long walks", "Perfect for outdoor dining"],
    "humid": ["Light clothing recommended", "Air-conditioned venues preferred"],
    "cloudy": ["Pleasant weather for exploration", "Good for photography"],
}


def condition_tips(condition: str) -> List[str]:
    return list(_CONDITION_TIPS.get(condition, []))


def fallback_weather(today: Optional[date] = None) -> WeatherData:
    """Seasonal defaults for Bangalore when no provider answers."""
    month = (today or date.today()).month
    if 6 <= month <= 10:
        condition, temperature = "rainy", 23.0
    elif 3 <= month <= 5:
        condition, temperature = "hot", 30.0
    else:
        condition, temperature = "cool", 22.0
    return WeatherData(
        condition=condition,
        temperature=temperature,
        humidity=65.0,
        description=f"Typical {condition} weather for Bangalore",
        source="fallback",
        recommendations=condition_tips(condition),
    )


class WeatherClient:
    def __init__(self, cfg: Configuration, session: Optional[requests.Session] = None) -> None:
        self.cfg = cfg
        self.session = session or requests.Session()
        self._cache_ttl = cfg.weather_cache_ttl
        self._cache_max = 64
        self._cache: OrderedDict[str, Tuple[float, WeatherData]] = OrderedDict()

    def _cache_get(self, key: str) -> Optional[WeatherData]:
        entry = self._cache.get(key)
        if not entry:
            return None
        ts, value = entry
        if time.time() - ts > self._cache_ttl:
            self._cache.pop(key, None)
            return None
        self._cache.move_to_end(key)
        return value

    def _cache_set(self, key: str, value: WeatherData) -> None:
        if len(self._cache) >= self._cache_max:
            self._cache.popitem(last=False)
        self._cache[key] = (time.time(), value)

    def _get_json(self, url: str, params: dict) -> dict:
        try:
            resp = self.session.get(url, params=params, timeout=self.cfg.weather_timeout)
        except requests.RequestException as exc:
            raise WeatherProviderError(f"request error: {exc}")
        if not resp.ok:
            raise WeatherProviderError(f"upstream {resp.status_code}: {resp.text[:200]}")
        try:
            return resp.json()
        except ValueError:
            raise WeatherProviderError("invalid json response")

    def current(self, lat: float, lng: float) -> WeatherData:
        """Current weather; never raises, falls back to seasonal defaults."""
        key = f"weather_{lat:.3f}_{lng:.3f}"
        cached = self._cache_get(key)
        if cached is not None:
            return cached

        for name, fetch in (("openweather", self._from_openweather), ("weatherapi", self._from_weatherapi)):
            try:
                data = fetch(lat, lng)
            except (WeatherProviderError, KeyError, IndexError, TypeError, ValueError) as exc:
                logger.warning("{} weather fetch failed: {}", name, exc)
                continue
            if data is not None:
                self._cache_set(key, data)
                return data
        return fallback_weather()

    def _from_openweather(self, lat: float, lng: float) -> Optional[WeatherData]:
        if not self.cfg.openweather_api_key:
            return None
        payload = self._get_json(
            f"{self.cfg.openweather_base_url.rstrip('/')}/weather",
            {"lat": lat, "lon": lng, "appid": self.cfg.openweather_api_key, "units": "metric"},
        )
        main = payload["main"]
        weather = (payload.get("weather") or [{}])[0]
        reported = f"{weather.get('main', '')} {weather.get('description', '')}"
        condition = determine_condition(float(main["temp"]), float(main["humidity"]), reported)
        return WeatherData(
            condition=condition,
            temperature=float(round(main["temp"])),
            humidity=float(main["humidity"]),
            description=weather.get("description") or "Weather data",
            source="openweather",
            recommendations=condition_tips(condition),
        )

    def _from_weatherapi(self, lat: float, lng: float) -> Optional[WeatherData]:
        if not self.cfg.weatherapi_key:
            return None
        payload = self._get_json(
            f"{self.cfg.weatherapi_base_url.rstrip('/')}/current.json",
            {"key": self.cfg.weatherapi_key, "q": f"{lat},{lng}", "aqi": "no"},
        )
        current: dict[str, Any] = payload["current"]
        text = (current.get("condition") or {}).get("text") or ""
        condition = determine_condition(float(current["temp_c"]), float(current["humidity"]), text)
        return WeatherData(
            condition=condition,
            temperature=float(round(current["temp_c"])),
            humidity=float(current["humidity"]),
            description=text or "Weather data",
            source="weatherapi",
            recommendations=condition_tips(condition),
        )
