#!/usr/bin/env python3
"""
Directions GeoJSON response parsing and end-to-end summarization
"""

import math

import pytest

from itinerary import summarize_route
from ors_adapter import RouteParseError, place_from_mapping, route_from_ors_feature, route_from_ors_response


def _response(unit_scale=1.0):
    return {
        "type": "FeatureCollection",
        "features": [
            {
                "type": "Feature",
                "geometry": {
                    "type": "LineString",
                    "coordinates": [[0.0, 0.0], [0.01, 0.0], [0.01, 0.01], [0.02, 0.01]],
                },
                "properties": {
                    "summary": {"distance": 3336.0 * unit_scale, "duration": 300.0},
                    "segments": [
                        {
                            "steps": [
                                {
                                    "instruction": "Head east on <b>King Street West</b>",
                                    "name": "King Street West",
                                    "distance": 1112.0 * unit_scale,
                                    "way_points": [0, 1],
                                },
                                {
                                    "instruction": "Turn left onto Bay Street",
                                    "name": "Bay Street",
                                    "distance": 1112.0 * unit_scale,
                                    "way_points": [1, 2],
                                },
                            ]
                        },
                        {
                            "steps": [
                                {
                                    "instruction": "Turn right onto Unnamed Road",
                                    "name": "-",
                                    "distance": 1112.0 * unit_scale,
                                    "way_points": [2, 3],
                                },
                                {
                                    "instruction": "Arrive at your destination, on the left",
                                    "name": "-",
                                    "distance": 0,
                                    "way_points": [3, 3],
                                },
                            ]
                        },
                    ],
                },
            }
        ],
    }


def test_route_from_response():
    route = route_from_ors_response(_response())
    assert route.geometry == [(0.0, 0.0), (0.01, 0.0), (0.01, 0.01), (0.02, 0.01)]
    assert [s.name for s in route.steps] == ["King Street West", "Bay Street", "-", "-"]
    assert route.steps[0].way_points == (0, 1)
    assert route.steps[2].distance_m == 1112.0
    assert route.distance_m == 3336.0
    assert route.duration_s == 300.0


def test_distance_unit_is_converted_to_meters():
    route = route_from_ors_response(_response(unit_scale=1 / 1000.0), distance_unit="km")
    assert route.steps[0].distance_m == pytest.approx(1112.0)
    assert route.distance_m == pytest.approx(3336.0)


def test_unknown_distance_unit():
    with pytest.raises(ValueError):
        route_from_ors_response(_response(), distance_unit="furlong")


def test_end_to_end_rows():
    route = route_from_ors_response(_response())
    rows = summarize_route(route.geometry, route.steps)
    assert [(r.direction, r.name) for r in rows] == [
        ("EB", "King St W"),
        ("NB", "Bay St"),
        ("EB", "local road"),
    ]


def test_bad_way_points_and_vertices_are_tolerated():
    feature = _response()["features"][0]
    feature["properties"]["segments"][0]["steps"][0]["way_points"] = ["0", 1]
    feature["geometry"]["coordinates"][1] = "oops"
    route = route_from_ors_feature(feature)
    assert route.steps[0].way_points is None
    assert math.isnan(route.geometry[1][0])
    # falls back to proportional slicing over the finite points
    rows = summarize_route(route.geometry, route.steps)
    assert rows and all(r.name for r in rows)


def test_steps_missing_gives_geometry_mode_route():
    feature = _response()["features"][0]
    feature["properties"] = {}
    route = route_from_ors_feature(feature)
    assert route.steps is None
    assert route.distance_m == 0.0


def test_malformed_properties_are_tolerated():
    feature = _response()["features"][0]
    first_step = feature["properties"]["segments"][0]["steps"][0]
    feature["properties"] = {"segments": ["x", {"steps": "y"}, {"steps": [None, first_step]}], "summary": 7}
    route = route_from_ors_feature(feature)
    assert [s.name for s in route.steps] == ["King Street West"]
    assert route.distance_m == 0.0
    feature["properties"] = "oops"
    assert route_from_ors_feature(feature).steps is None


@pytest.mark.parametrize(
    "data",
    [
        {},
        {"features": []},
        {"features": [{"geometry": None}]},
        {"features": [{"geometry": {"coordinates": [[0, 0]]}}]},
        {"features": ["oops"]},
        {"features": [{"geometry": "oops"}]},
        {"features": {"a": 1}},
        [],
    ],
)
def test_unreadable_response(data):
    with pytest.raises(RouteParseError):
        route_from_ors_response(data)


def test_place_from_mapping():
    place = place_from_mapping({"longitude": "-79.38", "latitude": 43.65, "label": "HQ"})
    assert place.lonlat == (-79.38, 43.65)
    assert place.label == "HQ"
    assert place_from_mapping({"longitude": 1, "latitude": 2}).label == "2.00000, 1.00000"


@pytest.mark.parametrize(
    "data",
    [
        {"latitude": 43.65},
        {"longitude": "x", "latitude": 43.65},
        {"longitude": float("nan"), "latitude": 43.65},
        {"longitude": -200.0, "latitude": 43.65},
        {"longitude": -79.0, "latitude": 91.0},
        {"lat": 43.65, "lng": -79.38},
    ],
)
def test_place_from_mapping_rejects(data):
    with pytest.raises(ValueError):
        place_from_mapping(data)
