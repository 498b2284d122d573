"""OpenRouteService directions response → Route.

Only parses an already-fetched GeoJSON directions response; the HTTP client
(keys, retries, throttling) lives outside this project.

Expected shape (``/v2/directions/{profile}/geojson``):

  {"features": [{"geometry": {"coordinates": [[lon, lat], ...]},
                 "properties": {"summary": {"distance": .., "duration": ..},
                                "segments": [{"steps": [{"instruction": "...",
                                                         "name": "...",
                                                         "distance": ..,
                                                         "way_points": [i0, i1]}]}]}}]}
"""

from __future__ import annotations

import math
from typing import Any, Dict, List, Mapping, Optional, Tuple

from route_models import Place, Route, Step

DISTANCE_UNITS = {"m": 1.0, "km": 1000.0, "mi": 1609.344}


class RouteParseError(Exception):
    pass


def _as_float(value: Any, default: float = 0.0) -> float:
    try:
        out = float(value)
    except (TypeError, ValueError):
        return default
    return out if math.isfinite(out) else default


def _way_points(raw: Any) -> Optional[Tuple[int, int]]:
    if not isinstance(raw, (list, tuple)) or len(raw) != 2:
        return None
    if not all(isinstance(i, int) and not isinstance(i, bool) for i in raw):
        return None
    return (raw[0], raw[1])


def _step_from_ors(raw: Mapping[str, Any], scale: float) -> Step:
    return Step(
        instruction=str(raw.get("instruction") or ""),
        name=str(raw.get("name") or ""),
        distance_m=_as_float(raw.get("distance")) * scale,
        way_points=_way_points(raw.get("way_points")),
    )


def route_from_ors_feature(feature: Mapping[str, Any], distance_unit: str = "m") -> Route:
    """Build a Route from one directions feature.

    ``distance_unit`` is the ``units`` the request was made with; distances are
    converted to meters. Steps from all segments (one per via point) are
    concatenated in order.
    """
    if distance_unit not in DISTANCE_UNITS:
        raise ValueError(f"Unknown distance unit: {distance_unit}")
    scale = DISTANCE_UNITS[distance_unit]
    if not isinstance(feature, Mapping):
        raise RouteParseError(f"Route feature must be an object, got {type(feature).__name__}")
    geom = feature.get("geometry") or {}
    coords = geom.get("coordinates") if isinstance(geom, Mapping) else None
    if not isinstance(coords, list) or len(coords) < 2:
        raise RouteParseError("Route feature has no line geometry")
    # malformed vertices stay as NaN placeholders so way_points keep their meaning
    geometry = [
        (c[0], c[1]) if isinstance(c, (list, tuple)) and len(c) >= 2 else (math.nan, math.nan)
        for c in coords
    ]

    props = feature.get("properties")
    if not isinstance(props, Mapping):
        props = {}
    segments = props.get("segments")
    steps: List[Step] = []
    for seg in segments if isinstance(segments, list) else []:
        if not isinstance(seg, Mapping):
            continue
        raw_steps = seg.get("steps")
        for raw in raw_steps if isinstance(raw_steps, list) else []:
            if isinstance(raw, Mapping):
                steps.append(_step_from_ors(raw, scale))

    summary = props.get("summary")
    if not isinstance(summary, Mapping):
        summary = {}
    return Route(
        geometry=geometry,
        steps=steps or None,
        distance_m=_as_float(summary.get("distance")) * scale,
        duration_s=_as_float(summary.get("duration")),
    )


def route_from_ors_response(data: Mapping[str, Any], distance_unit: str = "m") -> Route:
    """First route of a directions FeatureCollection."""
    features = data.get("features") if isinstance(data, Mapping) else None
    if not isinstance(features, list) or not features:
        raise RouteParseError("Directions response contains no routes")
    return route_from_ors_feature(features[0], distance_unit=distance_unit)


def place_from_mapping(data: Dict[str, Any]) -> Place:
    """The one accepted origin/destination shape: {longitude, latitude, label}."""
    try:
        lon = float(data["longitude"])
        lat = float(data["latitude"])
    except (KeyError, TypeError, ValueError) as e:
        raise ValueError(f"Place needs numeric longitude and latitude: {e}") from e
    if not (math.isfinite(lon) and math.isfinite(lat)):
        raise ValueError("Place coordinates must be finite")
    if not (-180.0 <= lon <= 180.0 and -90.0 <= lat <= 90.0):
        raise ValueError(f"Place coordinates out of range: ({lon}, {lat})")
    label = str(data.get("label") or f"{lat:.5f}, {lon:.5f}")
    return Place(longitude=lon, latitude=lat, label=label)


__all__ = [
    "RouteParseError",
    "route_from_ors_feature",
    "route_from_ors_response",
    "place_from_mapping",
]
