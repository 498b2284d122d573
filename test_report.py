#!/usr/bin/env python3
"""
Itinerary line and plain-text trip report
"""

from report import EMPTY_TABLE_TEXT, REPORT_TITLE, ReportEntry, format_itinerary, format_rows_table, render_report
from route_models import MovementRow, Place, rows_as_dicts

ROWS = [
    MovementRow("NB", "Hwy 401", 12.3456),
    MovementRow("EB", "Don Valley Pkwy", 4.0),
    MovementRow("EB", "Gerrard St E", 0.35),
]


def test_format_itinerary():
    assert format_itinerary(ROWS) == "NB Hwy 401, EB Don Valley Pkwy, EB Gerrard St E"
    assert format_itinerary([]) == ""


def test_rows_as_dicts_rounds_distance():
    assert rows_as_dicts(ROWS[:1]) == [{"direction": "NB", "name": "Hwy 401", "distance_km": 12.346}]


def test_rows_table():
    lines = format_rows_table(ROWS).splitlines()
    assert lines[0].split() == ["Bound", "Street", "Distance"]
    assert lines[1].startswith("NB")
    assert lines[1].endswith("12.35 km")
    assert lines[3].endswith(" 0.35 km")
    # distances are right-aligned
    assert len({len(line) for line in lines}) == 1


def test_rows_table_empty():
    assert format_rows_table([]) == EMPTY_TABLE_TEXT


def test_render_report():
    entries = [
        ReportEntry(label="PD 12 - Yonge & Eglinton", rows=ROWS, distance_km=14.24, duration_min=17.6),
        ReportEntry(label="PD 7", rows=[]),
    ]
    text = render_report(entries)
    blocks = text.rstrip("\n").split("\n\n")

    assert text.endswith("\n")
    assert blocks[0] == REPORT_TITLE
    first = blocks[1].splitlines()
    assert first[0] == "1. PD 12 - Yonge & Eglinton"
    assert first[1] == "Distance: 14.2 km | 18 min"
    assert first[2] == "NB Hwy 401, EB Don Valley Pkwy, EB Gerrard St E"
    assert first[3].split() == ["Bound", "Street", "Distance"]
    assert blocks[2].splitlines() == ["2. PD 7", EMPTY_TABLE_TEXT]


def test_render_report_custom_title():
    text = render_report([ReportEntry(label="Home", rows=ROWS[:1], distance_km=12.3)], title="Shift 3")
    assert text.startswith("Shift 3\n\n1. Home\nDistance: 12.3 km\n")


def test_render_report_with_origin():
    origin = Place(longitude=-79.52, latitude=43.70, label="Station 12")
    text = render_report([ReportEntry(label="PD 7", rows=[])], origin=origin)
    assert text.split("\n\n")[0] == f"{REPORT_TITLE}\nFrom: Station 12"
