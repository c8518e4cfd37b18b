"""FastAPI backend for BikePath.

Provides:
  - GET    /api/routes                 — ranked route search with obstacles (cached per query)
  - POST   /api/paths                  — publish a path and score it
  - GET    /api/paths/{id}             — path details with per-street activity
  - POST   /api/paths/{id}/recompute   — rescore a path
  - POST   /api/streets/{id}/aggregate — re-aggregate a street
  - GET    /api/reports                — list reports by author or street
  - POST   /api/reports                — submit a condition report
  - PATCH  /api/reports/{id}           — edit a report and re-aggregate
  - DELETE /api/reports/{id}           — delete a report and re-aggregate
  - POST   /api/obstacles              — report an obstacle
  - PATCH  /api/obstacles/{id}         — move an obstacle through its lifecycle
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Optional

from dotenv import load_dotenv
from fastapi import FastAPI, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from bikepath.aggregation.engine import AggregationEngine
from bikepath.core.cache import TTLCache
from bikepath.core.config import BikePathConfig
from bikepath.core.models import Path, Report
from bikepath.core.exceptions import (
    BikePathError,
    InvalidQueryError,
    InvalidTransitionError,
    NotFoundError,
    StorageError,
)
from bikepath.matching.matcher import RouteQuery
from bikepath.matching.ranker import find_routes
from bikepath.storage.database import BikePathStore

logger = logging.getLogger("bikepath.web.server")


# ── Request Bodies ─────────────────────────────────────────────


class ReportBody(BaseModel):
    author_id: str
    status: str
    visit_id: Optional[str] = None
    street_id: Optional[str] = None
    rating: Optional[int] = Field(None, ge=1, le=5)
    publishable: bool = True
    lat: Optional[float] = Field(None, ge=-90, le=90)
    lon: Optional[float] = Field(None, ge=-180, le=180)


class ReportUpdateBody(BaseModel):
    status: Optional[str] = None
    rating: Optional[int] = Field(None, ge=1, le=5)
    publishable: Optional[bool] = None


class PathBody(BaseModel):
    name: str = Field(min_length=1)
    street_ids: list[str] = Field(min_length=1)
    trip_id: Optional[str] = None


class ObstacleBody(BaseModel):
    visit_id: str
    kind: str
    lat: float = Field(ge=-90, le=90)
    lon: float = Field(ge=-180, le=180)
    description: Optional[str] = None


class ObstacleUpdateBody(BaseModel):
    status: str
    description: Optional[str] = None
    lat: Optional[float] = Field(None, ge=-90, le=90)
    lon: Optional[float] = Field(None, ge=-180, le=180)


def _status_code(exc: BikePathError) -> int:
    if isinstance(exc, NotFoundError):
        return 404
    if isinstance(exc, InvalidTransitionError):
        return 409
    if isinstance(exc, StorageError):
        return 500
    return 422


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


def _path_dict(path: Path) -> dict:
    return {
        "id": path.id,
        "name": path.name,
        "trip_id": path.trip_id,
        "score": path.score,
        "status": path.status.value if path.status else None,
        "score_calculated_at": _iso(path.score_calculated_at),
        "coordinates": path.coordinates,
        "streets": [
            {
                "id": seg.street.id,
                "name": seg.street.name,
                "order_index": seg.order_index,
                "status": seg.street.status.value if seg.street.status else None,
            }
            for seg in path.segments
            if seg.street is not None
        ],
    }


def _report_dict(report: Report) -> dict:
    return {
        "id": report.id,
        "author_id": report.author_id,
        "status": report.status.value,
        "rating": report.rating,
        "publishable": report.publishable,
        "visit_id": report.visit_id,
        "street_id": report.street_id,
        "lat": report.lat,
        "lon": report.lon,
        "created_at": _iso(report.created_at),
    }


# ── App Factory ────────────────────────────────────────────────


def create_app(
    config: Optional[BikePathConfig] = None,
    store: Optional[BikePathStore] = None,
) -> FastAPI:
    """Build the API around one store, engine and search cache."""
    config = config or BikePathConfig.from_env()
    store = store or BikePathStore(config.storage.db_path)
    cache = TTLCache(max_size=config.cache.max_size, ttl_seconds=config.cache.ttl_seconds)
    engine = AggregationEngine(store, config, on_change=cache.invalidate)

    app = FastAPI(title="BikePath", version="1.0.0")
    app.state.store = store
    app.state.engine = engine
    app.state.cache = cache
    app.state.config = config

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(BikePathError)
    async def bikepath_error_handler(request: Request, exc: BikePathError):
        code = _status_code(exc)
        if code >= 500:
            logger.error("Request %s failed: %s", request.url.path, exc)
        return JSONResponse(status_code=code, content={"detail": str(exc)})

    @app.get("/health")
    async def health():
        return {"status": "ok", "service": "bikepath"}

    @app.get("/api/routes")
    async def search_routes(
        start: str = Query(..., min_length=1),
        end: str = Query(..., min_length=1),
        start_lat: Optional[float] = None,
        start_lon: Optional[float] = None,
        end_lat: Optional[float] = None,
        end_lon: Optional[float] = None,
        nearby_threshold_km: Optional[float] = Query(None, ge=0.5, le=5),
    ):
        """Ranked routes between two streets, top results only."""
        try:
            query = RouteQuery(
                start_name=start,
                end_name=end,
                start_lat=start_lat,
                start_lon=start_lon,
                end_lat=end_lat,
                end_lon=end_lon,
                nearby_threshold_km=nearby_threshold_km or config.matching.nearby_threshold_km,
            )
        except InvalidQueryError as exc:
            return {"success": False, "message": str(exc), "routes": []}

        key = cache.make_key(
            query.start_name, query.end_name, query.start_lat, query.start_lon,
            query.end_lat, query.end_lon, query.nearby_threshold_km,
        )
        routes = cache.get(key)
        if routes is None:
            ranked = find_routes(store.list_paths(), query, config.matching)
            for route in ranked:
                route.obstacles = engine.route_obstacles(route.path_id)
            routes = [r.to_dict() for r in ranked]
            cache.put(key, routes)

        if not routes:
            return {
                "success": False,
                "message": f'No routes found between "{start}" and "{end}"',
                "routes": [],
            }
        return {
            "success": True,
            "message": f"Found {len(routes)} route{'s' if len(routes) != 1 else ''}",
            "routes": routes,
        }

    @app.post("/api/paths", status_code=201)
    async def publish_path(body: PathBody):
        path = engine.publish_path(body.name, body.street_ids, trip_id=body.trip_id)
        return _path_dict(path)

    @app.get("/api/paths/{path_id}")
    async def path_details(path_id: str):
        data = _path_dict(store.get_path(path_id))
        for street, activity in zip(data["streets"], engine.street_activity(path_id)):
            street["recent_report_count"] = activity["recent_report_count"]
            street["last_report_date"] = _iso(activity["last_report_date"])
        data["obstacles"] = engine.route_obstacles(path_id)
        data["recency_bonus"] = engine.evidence_recency(path_id)
        return data

    @app.post("/api/paths/{path_id}/recompute")
    async def recompute(path_id: str):
        result = engine.recompute_path(path_id)
        return {
            "id": path_id,
            "score": result.score,
            "status": result.status.value if result.status else None,
            "score_calculated_at": result.calculated_at.isoformat(),
        }

    @app.post("/api/streets/{street_id}/aggregate")
    async def aggregate(street_id: str):
        status = engine.aggregate_street(street_id)
        return {"id": street_id, "status": status.value if status else None}

    @app.post("/api/reports", status_code=201)
    async def create_report(body: ReportBody):
        report = engine.record_report(
            body.author_id,
            body.status,
            visit_id=body.visit_id,
            street_id=body.street_id,
            rating=body.rating,
            publishable=body.publishable,
            lat=body.lat,
            lon=body.lon,
        )
        street_id = store.street_of_report(report)
        street = store.get_street(street_id)
        return {
            "id": report.id,
            "street_id": street_id,
            "street_status": street.status.value if street.status else None,
        }

    @app.get("/api/reports")
    async def list_reports(author_id: Optional[str] = None, street_id: Optional[str] = None):
        reports = store.list_reports(author_id=author_id, street_id=street_id)
        return {"count": len(reports), "reports": [_report_dict(r) for r in reports]}

    @app.patch("/api/reports/{report_id}")
    async def edit_report(report_id: str, body: ReportUpdateBody):
        report = engine.edit_report(
            report_id, status=body.status, rating=body.rating, publishable=body.publishable
        )
        return _report_dict(report)

    @app.delete("/api/reports/{report_id}")
    async def delete_report(report_id: str):
        report = engine.delete_report(report_id)
        return {"id": report.id, "deleted": True}

    @app.post("/api/obstacles", status_code=201)
    async def create_obstacle(body: ObstacleBody):
        obstacle = engine.record_obstacle(
            body.visit_id, body.kind, body.lat, body.lon, description=body.description
        )
        return {"id": obstacle.id, "status": obstacle.status.value}

    @app.patch("/api/obstacles/{obstacle_id}")
    async def update_obstacle(obstacle_id: str, body: ObstacleUpdateBody):
        obstacle = engine.update_obstacle(
            obstacle_id,
            body.status.upper(),
            description=body.description,
            lat=body.lat,
            lon=body.lon,
        )
        return {
            "id": obstacle.id,
            "status": obstacle.status.value,
            "description": obstacle.description,
            "lat": obstacle.lat,
            "lon": obstacle.lon,
            "confirmed_at": _iso(obstacle.confirmed_at),
        }

    return app


load_dotenv()
app = create_app()
