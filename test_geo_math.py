#!/usr/bin/env python3
"""
Spherical helpers: distance, bearings, bucketing, resampling
"""

import math
import types

import pytest

from geo_math import (
    bearing_deg,
    cardinal,
    circular_mean,
    clean_coords,
    densify,
    distance_m,
    meters_to_degrees,
    path_length_m,
    point_along,
    resample,
    stable_bearing,
)


def _angle_diff(a, b):
    d = abs(a - b) % 360.0
    return min(d, 360.0 - d)


def test_distance_zero_and_symmetric():
    pts = [(0.0, 0.0), (-79.38, 43.65), (-79.3, 43.7003), (151.2, -33.87)]
    for a in pts:
        assert distance_m(a, a) == 0.0
        for b in pts:
            assert distance_m(a, b) == pytest.approx(distance_m(b, a))


def test_distance_one_degree_of_latitude():
    # 2 * pi * 6371 km / 360
    assert distance_m((0.0, 0.0), (0.0, 1.0)) == pytest.approx(111194.93, rel=1e-6)


def test_bearing_main_directions():
    assert _angle_diff(bearing_deg((0, 0), (0, 1)), 0.0) < 1e-6
    assert bearing_deg((0, 0), (1, 0)) == pytest.approx(90.0, abs=1e-6)
    assert bearing_deg((0, 1), (0, 0)) == pytest.approx(180.0, abs=1e-6)
    assert bearing_deg((1, 0), (0, 0)) == pytest.approx(270.0, abs=1e-6)


def test_bearing_identical_points_is_zero():
    assert bearing_deg((-79.4, 43.7), (-79.4, 43.7)) == 0.0


def test_bearing_range():
    for b in [(1, 1), (-1, 1), (-1, -1), (1, -1), (0, -1), (-1, 0)]:
        br = bearing_deg((0, 0), b)
        assert 0.0 <= br < 360.0


@pytest.mark.parametrize(
    "bearing,expected",
    [
        (0.0, "NB"),
        (44.999, "NB"),
        (45.0, "EB"),
        (90.0, "EB"),
        (134.999, "EB"),
        (135.0, "SB"),
        (180.0, "SB"),
        (224.999, "SB"),
        (225.0, "WB"),
        (270.0, "WB"),
        (314.999, "WB"),
        (315.0, "NB"),
        (359.999, "NB"),
        (360.0, "NB"),
        (-90.0, "WB"),
    ],
)
def test_cardinal_boundaries(bearing, expected):
    assert cardinal(bearing) == expected


def test_cardinal_buckets_partition_the_circle():
    counts = {"NB": 0, "EB": 0, "SB": 0, "WB": 0}
    for tenth in range(3600):
        counts[cardinal(tenth / 10.0)] += 1
    assert counts == {"NB": 900, "EB": 900, "SB": 900, "WB": 900}


def test_circular_mean_wraps_around_north():
    assert _angle_diff(circular_mean([350.0, 10.0]), 0.0) < 1e-9


def test_circular_mean_weighted():
    assert circular_mean([90.0]) == pytest.approx(90.0)
    assert circular_mean([0.0, 90.0]) == pytest.approx(45.0)
    assert circular_mean([0.0, 90.0], [3.0, 1.0]) == pytest.approx(math.degrees(math.atan2(1, 3)))


def test_circular_mean_opposites_cancel_to_zero():
    assert circular_mean([90.0, 270.0]) == 0.0
    assert circular_mean([0.0, 180.0], [2.0, 2.0]) == 0.0


def test_circular_mean_empty_raises():
    with pytest.raises(ValueError):
        circular_mean([])


def test_resample_is_lazy_and_keeps_endpoints():
    line = [(0.0, 0.0), (0.0, 0.01)]  # ~1112 m north
    gen = resample(line, 100.0)
    assert isinstance(gen, types.GeneratorType)

    pts = list(gen)
    assert list(gen) == []  # exhausted
    assert pts[0] == line[0]
    assert pts[-1] == line[-1]
    assert len(pts) == 13

    gaps = [distance_m(a, b) for a, b in zip(pts[:-1], pts[1:])]
    for g in gaps[:-1]:
        assert g == pytest.approx(100.0, abs=0.01)
    assert 0.0 < gaps[-1] <= 100.0


def test_resample_carries_spacing_across_vertices():
    line = [(0.0, 0.0), (0.0, 0.0005), (0.0, 0.0015), (0.0, 0.003)]
    pts = list(resample(line, 100.0))
    gaps = [distance_m(a, b) for a, b in zip(pts[:-1], pts[1:])]
    for g in gaps[:-1]:
        assert g == pytest.approx(100.0, abs=0.01)
    assert pts[-1] == line[-1]


def test_resample_rejects_non_positive_step():
    with pytest.raises(ValueError):
        list(resample([(0, 0), (0, 1)], 0))


def test_densify_bounds_segment_length():
    line = [(0.0, 0.0), (0.0, 0.01), (0.01, 0.01)]
    dense = densify(line, 100.0)
    assert dense[0] == line[0] and dense[-1] == line[-1]
    assert len(dense) > len(line)
    for a, b in zip(dense[:-1], dense[1:]):
        assert distance_m(a, b) <= 100.0 + 1e-6
    assert path_length_m(dense) == pytest.approx(path_length_m(line), rel=1e-6)


def test_point_along_midpoint():
    lon, lat = point_along([(0.0, 0.0), (0.0, 1.0)], 0.5)
    assert lon == pytest.approx(0.0, abs=1e-9)
    assert lat == pytest.approx(0.5, abs=1e-6)


def test_stable_bearing_uses_trailing_window():
    # ~1000 m east, then ~400 m north
    path = [(0.0, 0.0), (0.009, 0.0), (0.009, 0.0036)]
    assert cardinal(stable_bearing(path, 300.0)) == "NB"
    # a window covering both legs is dominated by the longer east leg
    assert cardinal(stable_bearing(path, 2000.0)) == "EB"


def test_stable_bearing_ignores_wiggle_at_start():
    path = [(0.0, 0.0), (-0.00027, 0.0), (-0.00027, 0.009)]
    assert cardinal(bearing_deg(path[0], path[1])) == "WB"
    assert cardinal(stable_bearing(path, 300.0)) == "NB"


def test_stable_bearing_none_for_zero_length():
    assert stable_bearing([(1.0, 1.0), (1.0, 1.0)], 300.0) is None
    assert stable_bearing([(1.0, 1.0)], 300.0) is None


def test_meters_to_degrees():
    dlon, dlat = meters_to_degrees(0.0, 111320.0)
    assert dlon == pytest.approx(1.0)
    assert dlat == pytest.approx(111320.0 / 110540.0)
    dlon60, _ = meters_to_degrees(60.0, 111320.0)
    assert dlon60 == pytest.approx(2.0)


def test_clean_coords_drops_bad_points():
    raw = [
        (0, 0),
        (math.nan, 1.0),
        [1.0, math.inf],
        ("a", 2.0),
        (3.0,),
        None,
        ["4.5", "5"],
        "12",
        {"lon": 1.0, "lat": 2.0},
        (6.0, 7.0, 100.0),
    ]
    assert clean_coords(raw) == [(0.0, 0.0), (4.5, 5.0), (6.0, 7.0)]
