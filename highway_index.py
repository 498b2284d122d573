"""Highway centerline index used to label unnamed motorway stretches.

Reads a GeoJSON FeatureCollection of highway centerlines (LineString or
MultiLineString features with a name-bearing property), flattens it into
individual polylines and keeps them in a shapely STRtree keyed by bounding
box. Queries reject candidates by an expanded bbox first and only then
measure true point-to-polyline distance.

Assumptions / Simplifications:
* Input CRS is WGS84 lon/lat.
* Tolerances are tens to low hundreds of meters, so a local meters-to-degrees
  conversion is good enough for the bbox window.
* The closest point on a segment is found in a plane scaled by cos(lat) around
  the query point (project, clamp, interpolate); the distance to it is haversine.

The index is immutable once built; build a new one when the dataset reloads.
"""

from __future__ import annotations

import json
import logging
import math
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Sequence, Tuple, Union

from shapely.geometry import LineString, Point, box
from shapely.strtree import STRtree

from geo_math import clean_coords, distance_m, meters_to_degrees
from name_resolver import normalize_name
from route_models import LonLat

logger = logging.getLogger("itinerary.highways")

# --------------------------- Config ---------------------------

NAME_PROPERTY_KEYS = (
    "name",
    "FULLNAME",
    "HWY_NAME",
    "LINEAR_NAME_FULL",
    "ROAD_NAME",
    "ref",
)

DEFAULT_DATASET_CANDIDATES = (
    "./data/highway_centreline.geojson",
    "./data/highway_centreline.json",
)

BBox = Tuple[float, float, float, float]  # (min_lon, min_lat, max_lon, max_lat)


class NoHighwayDataError(Exception):
    pass


@dataclass(frozen=True)
class HighwayRecord:
    name: str
    coords: Tuple[LonLat, ...]
    bbox: BBox


def _parse_highway_name(props: Optional[Dict]) -> str:
    """First non-empty candidate property, normalized ("Highway 401" -> "Hwy 401")."""
    if not isinstance(props, dict):
        return ""
    for key in NAME_PROPERTY_KEYS:
        value = props.get(key)
        if value:
            name = normalize_name(str(value))
            if name:
                return name
    return ""


def _feature_lines(geom: Optional[Dict]) -> List[List[LonLat]]:
    if not isinstance(geom, dict):
        return []
    gtype = geom.get("type")
    coords = geom.get("coordinates")
    if not isinstance(coords, (list, tuple)):
        return []
    if gtype == "LineString":
        parts = [coords]
    elif gtype == "MultiLineString":
        parts = [p for p in coords if isinstance(p, (list, tuple))]
    else:
        return []
    lines: List[List[LonLat]] = []
    for part in parts:
        line = clean_coords(part)
        if line:
            lines.append(line)
    return lines


def _bbox(coords: Sequence[LonLat]) -> BBox:
    xs = [c[0] for c in coords]
    ys = [c[1] for c in coords]
    return (min(xs), min(ys), max(xs), max(ys))


def _segment_distance_m(p: LonLat, a: LonLat, b: LonLat) -> float:
    k = math.cos(math.radians(p[1]))
    ax, ay = (a[0] - p[0]) * k, a[1] - p[1]
    dx, dy = (b[0] - a[0]) * k, b[1] - a[1]
    seg2 = dx * dx + dy * dy
    t = 0.0 if seg2 == 0.0 else max(0.0, min(1.0, -(ax * dx + ay * dy) / seg2))
    q = (a[0] + t * (b[0] - a[0]), a[1] + t * (b[1] - a[1]))
    return distance_m(p, q)


def point_to_polyline_m(p: LonLat, coords: Sequence[LonLat]) -> float:
    if len(coords) == 1:
        return distance_m(p, coords[0])
    return min(_segment_distance_m(p, a, b) for a, b in zip(coords[:-1], coords[1:]))


class HighwayIndex:
    """Read-only spatial index of named highway polylines."""

    def __init__(self, records: Iterable[HighwayRecord]):
        self._records: Tuple[HighwayRecord, ...] = tuple(records)
        geoms = [self._envelope(r) for r in self._records]
        self._tree: Optional[STRtree] = STRtree(geoms) if geoms else None

    @staticmethod
    def _envelope(record: HighwayRecord):
        # a diagonal of the bbox has the bbox as its envelope
        minx, miny, maxx, maxy = record.bbox
        if minx == maxx and miny == maxy:
            return Point(minx, miny)
        return LineString([(minx, miny), (maxx, maxy)])

    def __len__(self) -> int:
        return len(self._records)

    @property
    def records(self) -> Tuple[HighwayRecord, ...]:
        return self._records

    def names(self) -> List[str]:
        return sorted({r.name for r in self._records})

    def _candidates(self, point: LonLat, tolerance_m: float) -> List[int]:
        if self._tree is None:
            return []
        dlon, dlat = meters_to_degrees(point[1], tolerance_m)
        window = box(point[0] - dlon, point[1] - dlat, point[0] + dlon, point[1] + dlat)
        # STRtree compares envelopes only, which is exactly the bbox quick-reject
        return sorted(int(i) for i in self._tree.query(window))

    def nearest(self, point: LonLat, tolerance_m: float) -> Optional[Tuple[str, float]]:
        """(name, meters) of the closest polyline within tolerance, else None.

        Ties keep the first polyline in index order.
        """
        best_name = ""
        best_d = float("inf")
        for idx in self._candidates(point, tolerance_m):
            record = self._records[idx]
            d = point_to_polyline_m(point, record.coords)
            if d < best_d:
                best_name, best_d = record.name, d
        if best_d <= tolerance_m:
            return best_name, best_d
        return None

    def nearest_name(self, point: LonLat, tolerance_m: float) -> str:
        hit = self.nearest(point, tolerance_m)
        return hit[0] if hit else ""

    def label_for_path(self, samples: Iterable[LonLat], tolerance_m: float) -> str:
        """Name with the smallest distance to any sample along a path, or empty."""
        best: Optional[Tuple[str, float]] = None
        for pt in samples:
            hit = self.nearest(pt, tolerance_m)
            if hit and (best is None or hit[1] < best[1]):
                best = hit
        return best[0] if best else ""

    def stats(self) -> Dict[str, object]:
        return {"polylines": len(self._records), "names": len(self.names())}


def build_highway_index(collection: Union[Dict, Iterable[Dict]]) -> HighwayIndex:
    """Build the index from a FeatureCollection dict or an iterable of features."""
    if isinstance(collection, dict):
        features = collection.get("features") or []
    else:
        features = collection
    records: List[HighwayRecord] = []
    skipped = 0
    for feat in features:
        if not isinstance(feat, dict):
            skipped += 1
            continue
        name = _parse_highway_name(feat.get("properties"))
        lines = _feature_lines(feat.get("geometry"))
        if not name or not lines:
            skipped += 1
            continue
        for line in lines:
            records.append(HighwayRecord(name=name, coords=tuple(line), bbox=_bbox(line)))
    logger.debug("build_highway_index: polylines=%d skipped_features=%d", len(records), skipped)
    return HighwayIndex(records)


def load_highway_index(path: str) -> HighwayIndex:
    """Load & build the index from a GeoJSON file."""
    with open(path, "r", encoding="utf-8") as f:
        data = json.load(f)
    if not isinstance(data, dict) or not isinstance(data.get("features"), list):
        raise NoHighwayDataError(f"{path} is not a GeoJSON FeatureCollection")
    index = build_highway_index(data)
    if len(index) == 0:
        raise NoHighwayDataError(f"No named highway lines found in {path}")
    logger.info("Loaded highway index: %s (polylines=%d names=%d)", path, len(index), len(index.names()))
    return index


def load_first_available(paths: Sequence[str] = DEFAULT_DATASET_CANDIDATES) -> Optional[HighwayIndex]:
    """First candidate that loads wins; None when none does (lookups then stay empty)."""
    for path in paths:
        try:
            return load_highway_index(path)
        except (OSError, ValueError, TypeError, NoHighwayDataError) as e:
            logger.warning("Skipping highway dataset %s: %s", path, e)
    logger.warning("No highway dataset available; unnamed stretches will read as local road")
    return None


__all__ = [
    "NAME_PROPERTY_KEYS",
    "DEFAULT_DATASET_CANDIDATES",
    "NoHighwayDataError",
    "HighwayRecord",
    "HighwayIndex",
    "point_to_polyline_m",
    "build_highway_index",
    "load_highway_index",
    "load_first_available",
]
