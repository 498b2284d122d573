"""Plain-text rendering of itinerary rows.

HTML/print layout belongs to the front end; this module only produces the
one-line itinerary and a fixed-width per-destination report.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Optional, Sequence

from route_models import MovementRow, Place

REPORT_TITLE = "Trip Report: Street Assignments"
EMPTY_TABLE_TEXT = "No named streets"


@dataclass
class ReportEntry:
    label: str
    rows: List[MovementRow] = field(default_factory=list)
    distance_km: Optional[float] = None
    duration_min: Optional[float] = None


def format_itinerary(rows: Sequence[MovementRow]) -> str:
    """Join rows as "NB Hwy 401, EB Don Valley Pkwy, EB Gerrard St E"."""
    return ", ".join(f"{r.direction} {r.name}" for r in rows)


def format_rows_table(rows: Sequence[MovementRow]) -> str:
    if not rows:
        return EMPTY_TABLE_TEXT
    header = ("Bound", "Street", "Distance")
    body = [(r.direction, r.name, f"{r.distance_km:.2f} km") for r in rows]
    w0 = max(len(header[0]), *(len(b[0]) for b in body))
    w1 = max(len(header[1]), *(len(b[1]) for b in body))
    w2 = max(len(header[2]), *(len(b[2]) for b in body))
    lines = [f"{header[0]:<{w0}}  {header[1]:<{w1}}  {header[2]:>{w2}}"]
    lines += [f"{d:<{w0}}  {n:<{w1}}  {km:>{w2}}" for d, n, km in body]
    return "\n".join(lines)


def _subtitle(entry: ReportEntry) -> str:
    parts = []
    if entry.distance_km is not None:
        parts.append(f"{entry.distance_km:.1f} km")
    if entry.duration_min is not None:
        parts.append(f"{round(entry.duration_min)} min")
    return "Distance: " + " | ".join(parts) if parts else ""


def render_report(entries: Sequence[ReportEntry], title: str = REPORT_TITLE, origin: Optional[Place] = None) -> str:
    blocks = [title if origin is None else f"{title}\nFrom: {origin.label}"]
    for i, entry in enumerate(entries, start=1):
        lines = [f"{i}. {entry.label}"]
        sub = _subtitle(entry)
        if sub:
            lines.append(sub)
        if entry.rows:
            lines.append(format_itinerary(entry.rows))
        lines.append(format_rows_table(entry.rows))
        blocks.append("\n".join(lines))
    return "\n\n".join(blocks) + "\n"


__all__ = [
    "ReportEntry",
    "format_itinerary",
    "format_rows_table",
    "render_report",
]
