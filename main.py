# main.py
from contextlib import asynccontextmanager
from fastapi import FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
import logging
import os
from pydantic import BaseModel, Field
from typing import Dict, List, Optional, Any

from highway_index import DEFAULT_DATASET_CANDIDATES, HighwayIndex, load_first_available
from itinerary import (
    DIRECTION_WINDOW_M,
    GENERIC_CHAIN_MIN_KM,
    MIN_FRAGMENT_M,
    SAMPLE_STEP_M,
    SummaryOptions,
    summarize_route,
)
from ors_adapter import RouteParseError, place_from_mapping, route_from_ors_response
from report import ReportEntry, format_itinerary, render_report
from route_models import MovementRow, Place, Step


class StepIn(BaseModel):
    instruction: str = ""
    name: Optional[str] = ""
    distance: float = Field(0.0, description="Step length in meters")
    way_points: Optional[List[int]] = Field(None, min_length=2, max_length=2)

class OptionsIn(BaseModel):
    sample_step_m: float = Field(SAMPLE_STEP_M, gt=0)
    direction_window_m: float = Field(DIRECTION_WINDOW_M, gt=0)
    highway_tolerance_m: Optional[float] = Field(None, ge=0, description="None = mode default (chains 260 m, geometry-only 60 m)")
    generic_chain_min_km: float = Field(GENERIC_CHAIN_MIN_KM, ge=0)
    min_fragment_m: float = Field(MIN_FRAGMENT_M, ge=0)

class SummarizeRequest(BaseModel):
    geometry: List[List[float]] = Field(..., description="Route polyline as [[lon, lat], ...]")
    steps: Optional[List[StepIn]] = None
    options: OptionsIn = Field(default_factory=OptionsIn)

class ORSSummarizeRequest(BaseModel):
    response: dict = Field(..., description="Raw directions GeoJSON response")
    distance_unit: str = Field("m", description="'units' the directions request was made with")
    options: OptionsIn = Field(default_factory=OptionsIn)

class RowOut(BaseModel):
    direction: str
    name: str
    distance_km: float

class SummarizeResponse(BaseModel):
    rows: List[RowOut]
    itinerary: str
    meta: dict

class DestinationIn(BaseModel):
    label: Optional[str] = None
    place: Optional[Dict[str, Any]] = Field(None, description="{longitude, latitude, label}; its label is used when 'label' is absent")
    geometry: List[List[float]]
    steps: Optional[List[StepIn]] = None
    distance_km: Optional[float] = None
    duration_min: Optional[float] = None

class ReportRequest(BaseModel):
    origin: Optional[Dict[str, Any]] = Field(None, description="{longitude, latitude, label} shared by every destination")
    destinations: List[DestinationIn] = Field(..., min_length=1)
    options: OptionsIn = Field(default_factory=OptionsIn)

class ReportResponse(BaseModel):
    report: str
    itineraries: List[str]


@asynccontextmanager
async def lifespan(app: FastAPI):
    paths = _dataset_candidates()
    app.state.highway_index = load_first_available(paths)
    idx = app.state.highway_index
    logger.info("startup: highway dataset candidates=%s loaded=%s", paths, idx.stats() if idx is not None else None)
    yield


app = FastAPI(lifespan=lifespan)
# Allow any origin (dev / testing). Tighten in production if needed.
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Basic logging config; respect LOG_LEVEL env var (default INFO)
log_level = os.getenv("LOG_LEVEL", "INFO").upper()
logging.basicConfig(
    level=getattr(logging, log_level, logging.INFO),
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)
logger = logging.getLogger("itinerary.api")


def _dataset_candidates() -> List[str]:
    raw = os.getenv("HIGHWAY_GEOJSON_PATHS")
    if not raw:
        return list(DEFAULT_DATASET_CANDIDATES)
    return [p.strip() for p in raw.split(",") if p.strip()]

def _highway_index(request: Request) -> Optional[HighwayIndex]:
    return getattr(request.app.state, "highway_index", None)

def _options(opts: OptionsIn) -> SummaryOptions:
    try:
        return SummaryOptions(**opts.model_dump())
    except ValueError as e:
        raise HTTPException(400, f"Invalid options: {e}")

def _steps(steps: Optional[List[StepIn]]) -> Optional[List[Step]]:
    if steps is None:
        return None
    return [
        Step(
            instruction=s.instruction,
            name=s.name or "",
            distance_m=s.distance,
            way_points=tuple(s.way_points) if s.way_points else None,
        )
        for s in steps
    ]

def _rows_out(rows: List[MovementRow]) -> List[RowOut]:
    return [RowOut(**r.as_dict()) for r in rows]

def _place(data: Optional[Dict[str, Any]], what: str) -> Optional[Place]:
    if data is None:
        return None
    try:
        return place_from_mapping(data)
    except ValueError as e:
        raise HTTPException(400, f"Invalid {what}: {e}")

def _destination_label(dest: DestinationIn, index: int) -> str:
    place = _place(dest.place, f"destination {index}")
    if dest.label:
        return dest.label
    if place is None:
        raise HTTPException(400, f"Destination {index} needs a label or a place")
    return place.label


@app.post("/itinerary/summarize", response_model=SummarizeResponse)
def summarize(req: SummarizeRequest, request: Request):
    """Summarize one route (geometry + optional steps) into itinerary rows."""
    opts = _options(req.options)
    idx = _highway_index(request)
    rows = summarize_route(req.geometry, _steps(req.steps), idx, opts)
    logger.info("/itinerary/summarize: points=%d steps=%s rows=%d", len(req.geometry), len(req.steps) if req.steps is not None else None, len(rows))
    meta: dict[str, Any] = {
        "mode": "steps" if req.steps else "geometry",
        "highway_index": idx is not None,
        "points": len(req.geometry),
    }
    return SummarizeResponse(rows=_rows_out(rows), itinerary=format_itinerary(rows), meta=meta)


@app.post("/itinerary/summarize_ors", response_model=SummarizeResponse)
def summarize_ors(req: ORSSummarizeRequest, request: Request):
    """Same as /itinerary/summarize but takes the raw directions provider response."""
    opts = _options(req.options)
    try:
        route = route_from_ors_response(req.response, distance_unit=req.distance_unit)
    except RouteParseError as e:
        logger.warning("/itinerary/summarize_ors: RouteParseError: %s", e)
        raise HTTPException(422, f"Unreadable directions response: {e}")
    except ValueError as e:
        raise HTTPException(400, f"Invalid request: {e}")
    idx = _highway_index(request)
    rows = summarize_route(route.geometry, route.steps, idx, opts)
    meta: dict[str, Any] = {
        "mode": "steps" if route.steps else "geometry",
        "highway_index": idx is not None,
        "points": len(route.geometry),
        "route_distance_km": round(route.distance_m / 1000.0, 2),
        "route_duration_min": round(route.duration_s / 60.0),
    }
    return SummarizeResponse(rows=_rows_out(rows), itinerary=format_itinerary(rows), meta=meta)


@app.post("/itinerary/report", response_model=ReportResponse)
def report(req: ReportRequest, request: Request):
    """Plain-text trip report for several destinations sharing one origin."""
    opts = _options(req.options)
    idx = _highway_index(request)
    entries: List[ReportEntry] = []
    origin = _place(req.origin, "origin")
    for i, dest in enumerate(req.destinations, start=1):
        label = _destination_label(dest, i)
        rows = summarize_route(dest.geometry, _steps(dest.steps), idx, opts)
        entries.append(ReportEntry(label=label, rows=rows, distance_km=dest.distance_km, duration_min=dest.duration_min))
    logger.info("/itinerary/report: destinations=%d", len(entries))
    return ReportResponse(
        report=render_report(entries, origin=origin),
        itineraries=[format_itinerary(e.rows) for e in entries],
    )


@app.get("/debug/highways")
def debug_highways(request: Request):
    """Return basic highway index stats for debugging."""
    idx = _highway_index(request)
    if idx is None:
        return {"ok": False, "stats": None, "candidates": _dataset_candidates()}
    return {"ok": True, "stats": idx.stats(), "names": idx.names()}
