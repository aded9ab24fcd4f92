from __future__ import annotations

from dataclasses import asdict
from datetime import datetime
from functools import lru_cache
from typing import Dict, List, Optional

from fastapi import Depends, FastAPI, Header, HTTPException, Query
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import RedirectResponse, Response
from loguru import logger
from pydantic import BaseModel, Field

from config import Configuration
from models import (
    Bounds,
    Coordinates,
    Journey,
    Place,
    SearchContext,
    SearchFilters,
    SearchResult,
    UserPreferences,
    ViewportOptions,
    WeatherData,
    time_of_day_for,
)
from services.discovery import DiscoveryService
from services.session import SearchHistoryStore
from services.weather import weather_advice


app = FastAPI(title="Places Discovery Engine")
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

history_store = SearchHistoryStore()


@lru_cache(maxsize=1)
def get_service() -> DiscoveryService:
    cfg = Configuration.from_env()
    logger.info("cfg: {}", cfg.log_summary())
    return DiscoveryService.from_config(cfg)


class PlacePayload(BaseModel):
    id: str
    name: str
    latitude: float
    longitude: float
    description: str = ""
    category: Optional[str] = None
    rating: Optional[float] = None
    weather_suitability: List[str] = []
    best_time_to_visit: Optional[str] = None
    featured: bool = False
    address: Optional[str] = None
    phone: Optional[str] = None
    website: Optional[str] = None
    google_place_id: Optional[str] = None
    source: str = "internal"
    is_open_now: Optional[bool] = None
    current_opening_hours: Optional[str] = None
    photos: List[str] = []
    user_ratings_total: Optional[int] = None
    price_level: Optional[int] = None


class FiltersPayload(BaseModel):
    categories: List[str] = []
    price_range: str = "any"
    time_requirement: str = "any"
    weather_suitability: List[str] = []
    crowd_level: str = "any"
    accessibility_features: List[str] = []
    distance_km: Optional[float] = None


class WeatherPayload(BaseModel):
    condition: str
    temperature: float
    humidity: float
    description: str = ""


class BoundsPayload(BaseModel):
    north: float = Field(..., ge=-90, le=90)
    south: float = Field(..., ge=-90, le=90)
    east: float = Field(..., ge=-180, le=180)
    west: float = Field(..., ge=-180, le=180)


class SearchRequest(BaseModel):
    query: str = Field("", description="Free-text search")
    filters: FiltersPayload = Field(default_factory=FiltersPayload)
    user_lat: Optional[float] = Field(None, ge=-90, le=90)
    user_lng: Optional[float] = Field(None, ge=-180, le=180)
    time_of_day: Optional[str] = Field(None, description="morning | afternoon | evening")
    weather: Optional[WeatherPayload] = Field(None, description="Omit to use live weather at the user location")
    preferred_categories: List[str] = []
    bounds: Optional[BoundsPayload] = None


class SearchResultPayload(BaseModel):
    place: PlacePayload
    relevance_score: float
    distance_km: Optional[float] = None
    matching_factors: List[str] = []
    contextual_recommendations: List[str] = []


class SearchResponse(BaseModel):
    interpretation: str
    enhanced_query: str = ""
    results: List[SearchResultPayload]


class ViewportRequest(BaseModel):
    bounds: BoundsPayload
    categories: Optional[List[str]] = None
    keyword: Optional[str] = None
    open_now: bool = False
    min_rating: Optional[float] = Field(None, ge=0, le=5)
    max_results: int = Field(100, gt=0, le=500)


class LiveStatusRequest(BaseModel):
    ids: List[str]


class LiveStatusPayload(BaseModel):
    is_open: bool
    status_text: str


def to_payload(place: Place) -> PlacePayload:
    return PlacePayload(**asdict(place))


def to_result_payload(result: SearchResult) -> SearchResultPayload:
    return SearchResultPayload(
        place=to_payload(result.place),
        relevance_score=round(result.relevance_score, 4),
        distance_km=round(result.distance_km, 3) if result.distance_km is not None else None,
        matching_factors=result.matching_factors,
        contextual_recommendations=result.contextual_recommendations,
    )


@app.get("/healthz")
def healthz() -> dict:
    return {"status": "ok"}


@app.post("/api/search", response_model=SearchResponse)
async def search(
    req: SearchRequest,
    service: DiscoveryService = Depends(get_service),
    x_session_id: Optional[str] = Header(None),
) -> SearchResponse:
    try:
        filters = SearchFilters(**req.filters.model_dump())
        location = None
        if req.user_lat is not None and req.user_lng is not None:
            location = Coordinates(latitude=req.user_lat, longitude=req.user_lng)

        weather = None
        if req.weather is not None:
            weather = WeatherData(**req.weather.model_dump())
        elif location is not None:
            weather = await service.current_weather(location.latitude, location.longitude)

        context = SearchContext(
            current_weather=weather,
            time_of_day=req.time_of_day or time_of_day_for(datetime.now().hour),
            user_location=location,
            user_preferences=UserPreferences(preferred_categories=req.preferred_categories),
            search_history=history_store.get_history(x_session_id) if x_session_id else [],
        )
        enhanced = service.enhance_query(req.query, context)
        bounds = Bounds(**req.bounds.model_dump()) if req.bounds else None
        results = await service.search(req.query, filters, context, bounds=bounds)
        if x_session_id:
            history_store.save(x_session_id, context.search_history)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    except Exception as exc:
        logger.exception("search failed: {}", exc)
        raise HTTPException(status_code=500, detail="internal error")

    return SearchResponse(
        interpretation=service.explain(req.query),
        enhanced_query=enhanced,
        results=[to_result_payload(r) for r in results],
    )


@app.get("/api/suggest", response_model=List[str])
def suggest(q: str = Query("", max_length=200), service: DiscoveryService = Depends(get_service)) -> List[str]:
    return service.suggest(q)


@app.post("/api/places/viewport", response_model=List[PlacePayload])
async def viewport_places(req: ViewportRequest, service: DiscoveryService = Depends(get_service)) -> List[PlacePayload]:
    try:
        bounds = Bounds(**req.bounds.model_dump())
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    options = ViewportOptions(
        categories=req.categories,
        keyword=req.keyword,
        open_now=req.open_now,
        min_rating=req.min_rating,
        max_results=req.max_results,
    )
    places = await service.get_viewport_places(bounds, options)
    return [to_payload(p) for p in places]


@app.get("/api/places/photo")
def place_photo(
    reference: str = Query(..., min_length=1),
    maxwidth: int = Query(400, gt=0, le=1600),
    service: DiscoveryService = Depends(get_service),
) -> Response:
    url = service.data.client.photo_url(reference, max_width=maxwidth)
    if not url:
        raise HTTPException(status_code=404, detail="photo unavailable")
    return RedirectResponse(url)


@app.post("/api/places/live-status", response_model=Dict[str, LiveStatusPayload])
async def live_status(req: LiveStatusRequest, service: DiscoveryService = Depends(get_service)) -> Dict[str, LiveStatusPayload]:
    statuses = await service.get_live_status(req.ids)
    return {pid: LiveStatusPayload(**asdict(s)) for pid, s in statuses.items()}


@app.get("/api/places/{place_id}", response_model=PlacePayload)
async def place_details(place_id: str, service: DiscoveryService = Depends(get_service)) -> PlacePayload:
    place = await service.get_place_details(place_id)
    if place is None:
        raise HTTPException(status_code=404, detail="place not found")
    return to_payload(place)


@app.get("/api/weather")
async def weather(
    lat: Optional[float] = Query(None, ge=-90, le=90),
    lng: Optional[float] = Query(None, ge=-180, le=180),
    service: DiscoveryService = Depends(get_service),
) -> dict:
    if lat is None or lng is None:
        lat, lng = service.cfg.default_center_lat, service.cfg.default_center_lng
    data = await service.current_weather(lat, lng)
    return {**asdict(data), "advice": weather_advice(data)}


class JourneyImpactRequest(BaseModel):
    id: str
    name: str
    estimated_duration: float = Field(0.0, ge=0)
    outdoor_heavy: bool = False
    outdoor_moderate: bool = False
    walking_intensive: bool = False
    walking_moderate: bool = False
    weather: Optional[WeatherPayload] = None


@app.post("/api/journeys/weather-impact")
async def journey_weather_impact(req: JourneyImpactRequest, service: DiscoveryService = Depends(get_service)) -> dict:
    journey = Journey(**req.model_dump(exclude={"weather"}))
    if req.weather is not None:
        current = WeatherData(**req.weather.model_dump())
    else:
        current = await service.current_weather(service.cfg.default_center_lat, service.cfg.default_center_lng)
    adaptation = service.evaluator.adapt_to_weather_change(journey, current)
    return {"weather": asdict(current), "adaptation": asdict(adaptation)}


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("main:app", host="0.0.0.0", port=8010, reload=True)
