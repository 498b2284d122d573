"""Typed contracts shared by the summarizer, the provider adapter and the API.

Coordinates are (lon, lat) tuples in WGS84 degrees throughout, the order used
by GeoJSON and by the directions provider.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import List, Literal, Optional, Sequence, Tuple

LonLat = Tuple[float, float]  # (lon, lat)
Cardinal = Literal["NB", "EB", "SB", "WB"]

LOCAL_ROAD = "local road"


@dataclass(frozen=True)
class Step:
    """One turn-by-turn instruction from the directions provider.

    way_points: inclusive (start, end) indices into the route geometry. The
    end index usually equals the next step's start.
    """
    instruction: str = ""
    name: str = ""
    distance_m: float = 0.0
    way_points: Optional[Tuple[int, int]] = None


@dataclass(frozen=True)
class Place:
    longitude: float
    latitude: float
    label: str = ""

    @property
    def lonlat(self) -> LonLat:
        return (self.longitude, self.latitude)


@dataclass(frozen=True)
class Route:
    geometry: List[LonLat]
    steps: Optional[List[Step]] = None
    distance_m: float = 0.0
    duration_s: float = 0.0


@dataclass
class MovementRow:
    direction: Cardinal
    name: str
    distance_km: float

    def as_dict(self):  # convenience for JSON serialization
        return {"direction": self.direction, "name": self.name, "distance_km": round(self.distance_km, 3)}


def rows_as_dicts(rows: Sequence[MovementRow]) -> List[dict]:
    return [r.as_dict() for r in rows]


__all__ = [
    "LonLat",
    "Cardinal",
    "LOCAL_ROAD",
    "Step",
    "Place",
    "Route",
    "MovementRow",
    "rows_as_dicts",
]
