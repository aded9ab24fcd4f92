"""Caller-facing query surface tying interpretation, candidates and scoring together."""

from __future__ import annotations

import asyncio
from typing import Dict, List, Optional, Sequence

from loguru import logger

from config import Configuration
from models import (
    Bounds,
    EnhancedPlace,
    LiveStatus,
    Place,
    SearchContext,
    SearchFilters,
    SearchResult,
    ViewportOptions,
    WeatherData,
)
from services.bbox_builder import bounds_around
from services.cache import DiscoveryCache
from services.google_places import GooglePlacesClient
from services.places_data import PlacesDataService
from services.query_interpreter import QueryInterpreter
from services.ranking import RelevanceRanker
from services.repository import InMemoryPlaceRepository, PlaceRepository
from services.weather import WeatherSuitabilityEvaluator
from services.weather_provider import WeatherClient
from utils import clamp


class DiscoveryService:
    def __init__(
        self,
        cfg: Configuration,
        data: PlacesDataService,
        *,
        interpreter: Optional[QueryInterpreter] = None,
        ranker: Optional[RelevanceRanker] = None,
        evaluator: Optional[WeatherSuitabilityEvaluator] = None,
        weather_client: Optional[WeatherClient] = None,
    ) -> None:
        self.cfg = cfg
        self.data = data
        self.interpreter = interpreter or QueryInterpreter()
        self.ranker = ranker or RelevanceRanker(cfg.ranking_weights)
        self.evaluator = evaluator or WeatherSuitabilityEvaluator()
        self.weather_client = weather_client or WeatherClient(cfg)

    @classmethod
    def from_config(
        cls, cfg: Configuration, repository: Optional[PlaceRepository] = None
    ) -> "DiscoveryService":
        if repository is None:
            if cfg.places_seed_path:
                repository = InMemoryPlaceRepository.from_json(cfg.places_seed_path)
            else:
                repository = InMemoryPlaceRepository()
        data = PlacesDataService(
            client=GooglePlacesClient(cfg),
            repository=repository,
            cache=DiscoveryCache.from_config(cfg),
            cfg=cfg,
        )
        return cls(cfg, data)

    async def search(
        self,
        text: str,
        filters: Optional[SearchFilters] = None,
        context: Optional[SearchContext] = None,
        bounds: Optional[Bounds] = None,
    ) -> List[SearchResult]:
        parsed = self.interpreter.parse(text)
        filters = (filters or SearchFilters()).merged(self.interpreter.to_filters(parsed, context))

        corpus = await self._candidates(text, filters, context, bounds)
        results = self.ranker.search(text, filters, corpus, context)

        if context is not None and context.current_weather is not None:
            self._blend_weather(results, context.current_weather)
        if context is not None:
            context.remember(text)

        logger.info(
            "search q={!r} interpretation={!r} candidates={} results={}",
            text,
            self.interpreter.explain(parsed),
            len(corpus),
            len(results),
        )
        return results

    async def _candidates(
        self,
        text: str,
        filters: SearchFilters,
        context: Optional[SearchContext],
        bounds: Optional[Bounds],
    ) -> List[Place]:
        if bounds is not None:
            return list(await self.data.get_viewport_places(bounds))
        location = context.user_location if context else None
        if location is not None:
            km = filters.distance_km or self.cfg.default_distance_km
            return list(await self.data.get_viewport_places(bounds_around(location.latitude, location.longitude, km)))
        return list(await self.data.search_places(text))

    def _blend_weather(self, results: List[SearchResult], weather: WeatherData) -> None:
        blend = self.cfg.weather_blend
        for result in results:
            suitability = self.evaluator.score(result.place, weather)
            result.relevance_score = clamp((1.0 - blend) * result.relevance_score + blend * suitability)
            window = self.evaluator.optimal_window(result.place, weather)
            result.contextual_recommendations.append(self.evaluator.reason(result.place, weather)[0])
            result.contextual_recommendations.append(
                f"Best visited {window.start}-{window.end}: {window.description}"
            )
        results.sort(key=lambda r: r.relevance_score, reverse=True)

    def suggest(self, partial_text: str, hour: Optional[int] = None) -> List[str]:
        return list(self.interpreter.suggest(partial_text, hour=hour))

    def explain(self, text: str) -> str:
        return self.interpreter.explain(self.interpreter.parse(text))

    def enhance_query(self, text: str, context: Optional[SearchContext] = None) -> str:
        return self.interpreter.enhance(text, context)

    async def get_viewport_places(
        self, bounds: Bounds, options: Optional[ViewportOptions] = None
    ) -> List[EnhancedPlace]:
        return await self.data.get_viewport_places(bounds, options)

    async def get_place_details(self, place_id: str) -> Optional[EnhancedPlace]:
        return await self.data.get_place_details(place_id)

    async def get_live_status(self, place_ids: Sequence[str]) -> Dict[str, LiveStatus]:
        return await self.data.get_live_status(place_ids)

    async def current_weather(self, lat: float, lng: float) -> WeatherData:
        return await asyncio.to_thread(self.weather_client.current, lat, lng)
