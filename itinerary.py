"""Route → itinerary rows ("NB Hwy 401, EB Don Valley Pkwy, EB Gerrard St E").

Walks the provider's steps once with a two-state chain detector:

States:
  IDLE      -> no open run of unnamed steps.
  IN_CHAIN  -> accumulating consecutive steps that have no name and a
               generic instruction ("keep right", "continue", ...).

A chain closes (flush) on the next named or non-generic step, or at the end
of input. Chains at least ``generic_chain_min_km`` long are labelled from the
highway centerline index by sampling their geometry; shorter ones are emitted
step by step as "local road". Every other step becomes a row directly.

Directions come from the length-weighted circular mean of bearings over the
trailing ``direction_window_m`` of a step's geometry, which keeps the short
wiggle at the start of a turn from flipping the bound.

Adjacent rows sharing (direction, name) are merged as they are emitted and
once more after fragment dropping, so the output is run-length encoded.

Without steps the route is cut into pieces of ``sample_step_m`` and each piece
is named from the highway index at its midpoint.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from typing import List, Literal, Optional, Sequence, Tuple

from geo_math import (
    bearing_deg,
    cardinal,
    clean_coords,
    densify,
    distance_m,
    path_length_m,
    point_along,
    resample,
    stable_bearing,
)
from highway_index import HighwayIndex
from name_resolver import clean_text, extract_name, is_generic_instruction, is_highway_name, normalize_name
from route_models import LOCAL_ROAD, Cardinal, LonLat, MovementRow, Step

logger = logging.getLogger("itinerary.core")

# Parameters (tune for your data)
SAMPLE_STEP_M = 120.0          # route resampling for highway lookups / geometry pieces
DIRECTION_WINDOW_M = 300.0     # trailing window used to compute a row's bound
CHAIN_TOLERANCE_M = 260.0      # highway match radius for unnamed step chains
GEOMETRY_TOLERANCE_M = 60.0    # highway match radius when no steps are available
GENERIC_CHAIN_MIN_KM = 3.0     # shorter chains are not worth a highway lookup
MIN_FRAGMENT_M = 60.0          # drop tiny non-highway rows


@dataclass(frozen=True)
class SummaryOptions:
    sample_step_m: float = SAMPLE_STEP_M
    direction_window_m: float = DIRECTION_WINDOW_M
    highway_tolerance_m: Optional[float] = None  # None -> mode default above
    generic_chain_min_km: float = GENERIC_CHAIN_MIN_KM
    min_fragment_m: float = MIN_FRAGMENT_M

    def __post_init__(self):
        if self.sample_step_m <= 0:
            raise ValueError("sample_step_m must be positive")
        if self.direction_window_m <= 0:
            raise ValueError("direction_window_m must be positive")
        if self.highway_tolerance_m is not None and self.highway_tolerance_m < 0:
            raise ValueError("highway_tolerance_m must not be negative")


# ------------------------------ Row merging ------------------------------

def _append_km(rows: List[MovementRow], direction: Cardinal, name: str, km: float) -> None:
    name = name or LOCAL_ROAD
    prev = rows[-1] if rows else None
    if prev is not None and prev.direction == direction and prev.name == name:
        prev.distance_km += km
    else:
        rows.append(MovementRow(direction=direction, name=name, distance_km=km))


def append_row(rows: List[MovementRow], direction: Cardinal, name: str, meters: float) -> None:
    """Append a row, folding it into the previous one when (direction, name) match."""
    _append_km(rows, direction, name, max(0.0, meters) / 1000.0)


def merge_rows(rows: Sequence[MovementRow]) -> List[MovementRow]:
    """Run-length merge on (direction, name). Idempotent; input rows are not modified."""
    out: List[MovementRow] = []
    for r in rows:
        _append_km(out, r.direction, r.name, r.distance_km)
    return out


def _is_fragment(row: MovementRow, min_fragment_m: float) -> bool:
    meters = row.distance_km * 1000.0
    if meters <= 0.0:
        return True
    return meters < min_fragment_m and not is_highway_name(row.name)


def finalize_rows(rows: Sequence[MovementRow], min_fragment_m: float = MIN_FRAGMENT_M) -> List[MovementRow]:
    """Merge, drop tiny non-highway fragments, merge again.

    Fragment dropping is skipped when it would leave nothing.
    """
    merged = merge_rows(rows)
    if min_fragment_m <= 0:
        return merged
    kept = [r for r in merged if not _is_fragment(r, min_fragment_m)]
    if not kept:
        return merged
    return merge_rows(kept)


# ---------------------------- Step geometry ----------------------------

def provider_ranges(steps: Sequence[Step], n_points: int) -> Optional[List[Tuple[int, int]]]:
    """Validated way-point ranges, or None if any step's range is missing or inconsistent."""
    out: List[Tuple[int, int]] = []
    prev0, prev1 = 0, 0
    for st in steps:
        wp = st.way_points
        if wp is None or len(wp) != 2:
            return None
        i0, i1 = wp
        if not all(isinstance(i, int) and not isinstance(i, bool) for i in (i0, i1)):
            return None
        if not (0 <= i0 <= i1 < n_points):
            return None
        if i0 < prev0 or i1 < prev1:
            return None
        out.append((i0, i1))
        prev0, prev1 = i0, i1
    return out


def proportional_ranges(n_steps: int, n_points: int) -> List[Tuple[int, int]]:
    """Evenly split the geometry between steps by their position in the sequence."""
    last = n_points - 1
    bounds = [round(k * last / n_steps) for k in range(n_steps + 1)]
    return [(bounds[k], bounds[k + 1]) for k in range(n_steps)]


@dataclass
class StepSpan:
    step_index: int
    i0: int
    i1: int
    meters: float


@dataclass
class ChainState:
    status: Literal["IDLE", "IN_CHAIN"] = "IDLE"
    spans: List[StepSpan] = field(default_factory=list)
    distance_m: float = 0.0

    def as_dict(self):  # convenience for debug logging
        return {"status": self.status, "steps": len(self.spans), "distance_m": round(self.distance_m, 1)}


class ChainDetector:
    """One pass over the steps of a single route; produces unmerged-at-the-edges rows."""

    def __init__(
        self,
        geometry: Sequence[LonLat],
        ranges: Sequence[Tuple[int, int]],
        highway_index: Optional[HighwayIndex] = None,
        sample_step_m: float = SAMPLE_STEP_M,
        direction_window_m: float = DIRECTION_WINDOW_M,
        highway_tolerance_m: float = CHAIN_TOLERANCE_M,
        generic_chain_min_km: float = GENERIC_CHAIN_MIN_KM,
    ):
        self.geometry = geometry
        self.ranges = ranges
        self.highway_index = highway_index
        self.sample_step_m = sample_step_m
        self.direction_window_m = direction_window_m
        self.highway_tolerance_m = highway_tolerance_m
        self.generic_chain_min_km = generic_chain_min_km
        self.rows: List[MovementRow] = []
        self._state = ChainState()
        self._route_bearing = bearing_deg(geometry[0], geometry[-1])

    @property
    def state(self) -> ChainState:
        return self._state

    # ---------------- Geometry helpers -----------------
    def _slice(self, i0: int, i1: int) -> Sequence[LonLat]:
        return self.geometry[i0:i1 + 1]

    def _span(self, step_index: int, step: Step) -> StepSpan:
        i0, i1 = self.ranges[step_index]
        meters = path_length_m(self._slice(i0, i1))
        if meters <= 0.0:
            declared = step.distance_m or 0.0
            meters = declared if math.isfinite(declared) and declared > 0 else 0.0
        return StepSpan(step_index=step_index, i0=i0, i1=i1, meters=meters)

    def _direction(self, i0: int, i1: int) -> Cardinal:
        br = stable_bearing(self._slice(i0, i1), self.direction_window_m)
        if br is not None:
            return cardinal(br)
        if self.rows:
            return self.rows[-1].direction
        return cardinal(self._route_bearing)

    def _emit(self, name: str, i0: int, i1: int, meters: float) -> None:
        append_row(self.rows, self._direction(i0, i1), name or LOCAL_ROAD, meters)

    # ---------------- Transitions -----------------
    def feed(self, step_index: int, step: Step) -> ChainState:
        name = extract_name(step)
        span = self._span(step_index, step)
        if not name and is_generic_instruction(step.instruction):
            if self._state.status == "IDLE":
                self._state = ChainState(status="IN_CHAIN")
            self._state.spans.append(span)
            self._state.distance_m += span.meters
            return self._state
        self.flush()
        if not name:
            name = normalize_name(clean_text(step.instruction))
        self._emit(name, span.i0, span.i1, span.meters)
        return self._state

    def flush(self) -> None:
        chain = self._state
        if chain.status != "IN_CHAIN" or not chain.spans:
            self._state = ChainState()
            return
        first, last = chain.spans[0], chain.spans[-1]
        if chain.distance_m >= self.generic_chain_min_km * 1000.0:
            label = ""
            if self.highway_index is not None:
                samples = resample(self._slice(first.i0, last.i1), self.sample_step_m)
                label = self.highway_index.label_for_path(samples, self.highway_tolerance_m)
            logger.debug("chain flush: %s label=%r", chain.as_dict(), label)
            self._emit(label or LOCAL_ROAD, first.i0, last.i1, chain.distance_m)
        else:
            for span in chain.spans:
                self._emit(LOCAL_ROAD, span.i0, span.i1, span.meters)
        self._state = ChainState()

    def run(self, steps: Sequence[Step]) -> List[MovementRow]:
        for i, step in enumerate(steps):
            self.feed(i, step)
        self.flush()
        return self.rows


# ---------------------------- Geometry-only mode ----------------------------

def _pieces_by_length(coords: Sequence[LonLat], step_m: float) -> List[Tuple[int, int]]:
    pieces: List[Tuple[int, int]] = []
    start = 0
    acc = 0.0
    for i in range(1, len(coords)):
        acc += distance_m(coords[i - 1], coords[i])
        if acc >= step_m:
            pieces.append((start, i))
            start = i
            acc = 0.0
    if start < len(coords) - 1:
        pieces.append((start, len(coords) - 1))
    return pieces


def rows_from_geometry(
    geometry: Sequence[LonLat],
    highway_index: Optional[HighwayIndex] = None,
    sample_step_m: float = SAMPLE_STEP_M,
    highway_tolerance_m: float = GEOMETRY_TOLERANCE_M,
) -> List[MovementRow]:
    """Rows for a route without provider steps: own bearing per piece, name from the index."""
    coords = densify(geometry, sample_step_m)
    rows: List[MovementRow] = []
    for i0, i1 in _pieces_by_length(coords, sample_step_m):
        piece = coords[i0:i1 + 1]
        meters = path_length_m(piece)
        if meters <= 0.0:
            continue
        direction = cardinal(bearing_deg(piece[0], piece[-1]))
        name = ""
        if highway_index is not None:
            name = highway_index.nearest_name(point_along(piece, 0.5), highway_tolerance_m)
        append_row(rows, direction, name or LOCAL_ROAD, meters)
    return rows


# ------------------------------ Entry point ------------------------------

def summarize_route(
    geometry: Sequence[LonLat],
    steps: Optional[Sequence[Step]] = None,
    highway_index: Optional[HighwayIndex] = None,
    options: Optional[SummaryOptions] = None,
) -> List[MovementRow]:
    """Summarize one route into ordered movement rows.

    Never raises for malformed geometry: fewer than two finite points gives [].
    A missing highway index makes every lookup empty ("local road").
    """
    opts = options or SummaryOptions()
    raw = list(geometry or [])
    coords = clean_coords(raw)
    if len(coords) < 2:
        logger.debug("summarize_route: unusable geometry (points=%d finite=%d)", len(raw), len(coords))
        return []

    if steps:
        ranges = None
        if len(coords) == len(raw):
            ranges = provider_ranges(steps, len(coords))
        if ranges is None:
            logger.debug("summarize_route: way points unusable, slicing geometry by step position")
            ranges = proportional_ranges(len(steps), len(coords))
        detector = ChainDetector(
            coords,
            ranges,
            highway_index=highway_index,
            sample_step_m=opts.sample_step_m,
            direction_window_m=opts.direction_window_m,
            highway_tolerance_m=opts.highway_tolerance_m if opts.highway_tolerance_m is not None else CHAIN_TOLERANCE_M,
            generic_chain_min_km=opts.generic_chain_min_km,
        )
        rows = detector.run(steps)
        mode = "steps"
    else:
        rows = rows_from_geometry(
            coords,
            highway_index=highway_index,
            sample_step_m=opts.sample_step_m,
            highway_tolerance_m=opts.highway_tolerance_m if opts.highway_tolerance_m is not None else GEOMETRY_TOLERANCE_M,
        )
        mode = "geometry"

    out = finalize_rows(rows, opts.min_fragment_m)
    logger.debug(
        "summarize_route: mode=%s points=%d steps=%d rows=%d index=%s",
        mode, len(coords), len(steps or []), len(out), "yes" if highway_index is not None else "no",
    )
    return out


__all__ = [
    "SummaryOptions",
    "ChainDetector",
    "ChainState",
    "append_row",
    "merge_rows",
    "finalize_rows",
    "provider_ranges",
    "proportional_ranges",
    "rows_from_geometry",
    "summarize_route",
]
