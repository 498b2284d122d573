"""Spherical geometry helpers for route summarization.

All points are (lon, lat) tuples in degrees. Distances use the haversine
formula on a sphere of radius 6,371,000 m; bearings and interpolated points
come from a pyproj.Geod built on that same sphere so that both agree.

Public entry points:
  distance_m(a, b)              -> great-circle meters
  bearing_deg(a, b)             -> initial forward bearing [0, 360)
  circular_mean(bearings, w)    -> vector-sum mean angle [0, 360)
  cardinal(bearing)             -> "NB" | "EB" | "SB" | "WB"
  resample(coords, step_m)      -> lazy generator of points along a path
  stable_bearing(coords, win_m) -> trailing-window mean bearing (or None)
"""

from __future__ import annotations

import math
from typing import Iterator, List, Optional, Sequence, Tuple

from pyproj import Geod

from route_models import Cardinal, LonLat

EARTH_R_M = 6371000.0  # mean earth radius (meters)
GEOD = Geod(a=EARTH_R_M, b=EARTH_R_M)

# Local meters-per-degree; good for tolerances up to a few hundred meters
M_PER_DEG_LON_EQUATOR = 111_320.0
M_PER_DEG_LAT = 110_540.0


def distance_m(a: LonLat, b: LonLat) -> float:
    """Haversine distance in meters between two (lon, lat) points."""
    lon1, lat1, lon2, lat2 = map(math.radians, (a[0], a[1], b[0], b[1]))
    dlat = lat2 - lat1
    dlon = lon2 - lon1
    x = math.sin(dlat / 2) ** 2 + math.cos(lat1) * math.cos(lat2) * math.sin(dlon / 2) ** 2
    return 2 * EARTH_R_M * math.asin(min(1.0, math.sqrt(x)))


def bearing_deg(a: LonLat, b: LonLat) -> float:
    """Forward azimuth degrees 0-360 from a to b. Zero-length segments give 0."""
    if a[0] == b[0] and a[1] == b[1]:
        return 0.0
    az, _, _ = GEOD.inv(a[0], a[1], b[0], b[1])
    if az < 0:
        az += 360.0
    if az >= 360.0:
        az -= 360.0
    return az


def circular_mean(bearings: Sequence[float], weights: Optional[Sequence[float]] = None) -> float:
    """Mean of angles in degrees via the sum of unit vectors.

    Raises ValueError on empty input. Exactly opposing bearings cancel out and
    yield 0.0.
    """
    if not bearings:
        raise ValueError("circular_mean needs at least one bearing")
    if weights is None:
        weights = [1.0] * len(bearings)
    sum_east = 0.0
    sum_north = 0.0
    for br, w in zip(bearings, weights):
        r = math.radians(br)
        sum_east += math.sin(r) * w
        sum_north += math.cos(r) * w
    if math.hypot(sum_east, sum_north) <= 1e-12 * max(1.0, sum(abs(w) for w in weights)):
        return 0.0
    deg = math.degrees(math.atan2(sum_east, sum_north))
    deg = deg % 360.0
    # -1e-15 % 360 rounds up to 360.0
    return 0.0 if deg >= 360.0 else deg


def cardinal(bearing: float) -> Cardinal:
    d = bearing % 360.0
    if 45.0 <= d < 135.0:
        return "EB"
    if 135.0 <= d < 225.0:
        return "SB"
    if 225.0 <= d < 315.0:
        return "WB"
    return "NB"


def path_length_m(coords: Sequence[LonLat]) -> float:
    return sum(distance_m(a, b) for a, b in zip(coords[:-1], coords[1:]))


def resample(coords: Sequence[LonLat], step_m: float) -> Iterator[LonLat]:
    """Yield points every ``step_m`` meters of path length.

    The first and last input points are always included; the last one may sit
    closer than ``step_m`` to its predecessor. Zero-length segments are skipped.
    """
    if step_m <= 0:
        raise ValueError("step_m must be positive")
    if not coords:
        return
    last_yield = coords[0]
    yield last_yield
    since = 0.0  # path meters since the last yielded point
    for a, b in zip(coords[:-1], coords[1:]):
        seg = distance_m(a, b)
        if seg <= 0.0:
            continue
        az = bearing_deg(a, b)
        offset = step_m - since
        while offset < seg:
            lon, lat, _ = GEOD.fwd(a[0], a[1], az, offset)
            last_yield = (lon, lat)
            yield last_yield
            offset += step_m
        since = seg - (offset - step_m)
    end = coords[-1]
    if (end[0], end[1]) != (last_yield[0], last_yield[1]):
        yield end


def densify(coords: Sequence[LonLat], max_seg_m: float) -> List[LonLat]:
    """Insert great-circle intermediate points so consecutive vertices are <= max_seg_m apart."""
    if len(coords) < 2:
        return list(coords)
    out = [coords[0]]
    for a, b in zip(coords[:-1], coords[1:]):
        n = int(distance_m(a, b) // max_seg_m)
        if n > 0:
            # GEOD.npts excludes the endpoints; returns list of (lon,lat)
            out.extend(GEOD.npts(a[0], a[1], b[0], b[1], n))
        out.append(b)
    return out


def point_along(coords: Sequence[LonLat], fraction: float) -> LonLat:
    """Point located at ``fraction`` (0..1) of the path length."""
    if len(coords) == 1:
        return coords[0]
    target = path_length_m(coords) * max(0.0, min(1.0, fraction))
    walked = 0.0
    for a, b in zip(coords[:-1], coords[1:]):
        seg = distance_m(a, b)
        if seg > 0.0 and walked + seg >= target:
            lon, lat, _ = GEOD.fwd(a[0], a[1], bearing_deg(a, b), target - walked)
            return (lon, lat)
        walked += seg
    return coords[-1]


def stable_bearing(coords: Sequence[LonLat], window_m: float) -> Optional[float]:
    """Length-weighted circular mean of the bearings in the last ``window_m`` meters.

    Walks the path backward from its end so the result reflects where the
    segment is heading, not the wiggle at the start of a turn. Returns None
    when the path has no non-zero-length segment.
    """
    bearings: List[float] = []
    weights: List[float] = []
    remaining = window_m
    pairs = list(zip(coords[:-1], coords[1:]))
    for a, b in reversed(pairs):
        if remaining <= 0.0:
            break
        d = distance_m(a, b)
        if d <= 0.0:
            continue
        w = min(d, remaining)
        bearings.append(bearing_deg(a, b))
        weights.append(w)
        remaining -= w
    if not bearings:
        return None
    return circular_mean(bearings, weights)


def meters_to_degrees(lat_deg: float, meters: float) -> Tuple[float, float]:
    """Approx (dlon, dlat) degrees spanning ``meters`` around latitude ``lat_deg``."""
    cos_lat = max(1e-6, math.cos(math.radians(lat_deg)))
    return meters / (M_PER_DEG_LON_EQUATOR * cos_lat), meters / M_PER_DEG_LAT


def clean_coords(coords) -> List[LonLat]:
    """Keep only points with two finite numeric components, as (lon, lat) floats."""
    out: List[LonLat] = []
    for c in coords or []:
        if isinstance(c, (str, bytes)):
            continue
        try:
            lon, lat = float(c[0]), float(c[1])
        except (TypeError, ValueError, IndexError, KeyError):
            continue
        if math.isfinite(lon) and math.isfinite(lat):
            out.append((lon, lat))
    return out


__all__ = [
    "EARTH_R_M",
    "distance_m",
    "bearing_deg",
    "circular_mean",
    "cardinal",
    "path_length_m",
    "resample",
    "densify",
    "point_along",
    "stable_bearing",
    "meters_to_degrees",
    "clean_coords",
]
