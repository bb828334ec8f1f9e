from datetime import datetime, timedelta
from math import pi
from types import SimpleNamespace

import pytest

from nearby.core.geo import (
    EARTH_RADIUS_METERS,
    bounding_box,
    haversine_meters,
    offset_point,
    rank_by_distance,
    to_wkt_point,
    validate_coordinates,
)

HANOI = (21.0285, 105.8542)


@pytest.mark.parametrize("point", [(0.0, 0.0), HANOI, (-90.0, 180.0), (90.0, -180.0), (-33.86, 151.21)])
def test_distance_to_self_is_zero(point):
    assert haversine_meters(point[0], point[1], point[0], point[1]) == 0.0


def test_distance_is_symmetric():
    sydney = (-33.8688, 151.2093)
    assert haversine_meters(*HANOI, *sydney) == haversine_meters(*sydney, *HANOI)


def test_one_degree_of_latitude():
    expected = EARTH_RADIUS_METERS * pi / 180
    assert haversine_meters(0.0, 0.0, 1.0, 0.0) == pytest.approx(expected, rel=1e-12)


@pytest.mark.parametrize("bearing", [0, 45, 90, 135, 180, 225, 270, 315])
def test_offset_point_lands_at_requested_distance(bearing):
    lat, lon = offset_point(*HANOI, 1500, bearing)
    assert haversine_meters(*HANOI, lat, lon) == pytest.approx(1500, abs=1e-3)


@pytest.mark.parametrize("bearing", [0, 30, 90, 150, 180, 240, 270, 330])
def test_bounding_box_contains_cap_edge(bearing):
    box = bounding_box(*HANOI, 2000)
    lat, lon = offset_point(*HANOI, 2000, bearing)
    assert box.min_lat <= lat <= box.max_lat
    assert box.bounds_longitude
    assert box.min_lon <= lon <= box.max_lon


def test_bounding_box_drops_longitude_near_pole():
    box = bounding_box(89.99, 10.0, 5000)
    assert not box.bounds_longitude
    assert box.max_lat == 90.0


def test_bounding_box_drops_longitude_across_antimeridian():
    box = bounding_box(10.0, 179.99, 5000)
    assert not box.bounds_longitude


def test_wkt_point_is_longitude_first():
    assert to_wkt_point(21.5, 105.25) == "POINT(105.25 21.5)"


def test_validate_coordinates():
    assert validate_coordinates(90, 180)
    assert validate_coordinates(-90, -180)
    assert not validate_coordinates(90.0001, 0)
    assert not validate_coordinates(0, -180.5)


def test_rank_by_distance_filters_and_orders():
    near = SimpleNamespace(id="b", latitude=HANOI[0] + 0.001, longitude=HANOI[1], created_at=None)
    mid_lat, mid_lon = offset_point(*HANOI, 800, 90)
    mid = SimpleNamespace(id="a", latitude=mid_lat, longitude=mid_lon, created_at=None)
    far_lat, far_lon = offset_point(*HANOI, 1500, 0)
    far = SimpleNamespace(id="c", latitude=far_lat, longitude=far_lon, created_at=None)

    ranked = rank_by_distance([far, mid, near], *HANOI, 1000)

    assert [row.id for row, _ in ranked] == ["b", "a"]
    assert ranked[0][1] <= ranked[1][1]


def test_rank_by_distance_breaks_ties_by_creation_then_id():
    created = datetime(2024, 1, 1)
    rows = [
        SimpleNamespace(id="z", latitude=HANOI[0], longitude=HANOI[1], created_at=created + timedelta(seconds=1)),
        SimpleNamespace(id="y", latitude=HANOI[0], longitude=HANOI[1], created_at=created),
        SimpleNamespace(id="x", latitude=HANOI[0], longitude=HANOI[1], created_at=created),
    ]

    ranked = rank_by_distance(rows, *HANOI, 10, limit=2)

    assert [row.id for row, _ in ranked] == ["x", "y"]
