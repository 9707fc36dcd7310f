import math

import pytest

from src.classroom_attendance.classroom_attendance.core.exceptions import InvalidInput
from src.classroom_attendance.classroom_attendance.geo.distance import (
    Coordinates,
    distance_meters,
    validate_coordinates,
    within_geofence,
)


def test_distance_to_self_is_zero():
    assert distance_meters(21.0285, 105.8542, 21.0285, 105.8542) == 0.0


def test_distance_is_symmetric():
    a = (48.8584, 2.2945)
    b = (48.8606, 2.3376)
    assert math.isclose(distance_meters(*a, *b), distance_meters(*b, *a), rel_tol=1e-12)


def test_one_degree_of_longitude_on_equator():
    assert distance_meters(0, 0, 0, 1) == pytest.approx(111_195, abs=50)


def test_triangle_inequality():
    a, b, c = (10.0, 10.0), (10.5, 10.2), (11.0, 10.0)
    assert distance_meters(*a, *c) <= distance_meters(*a, *b) + distance_meters(*b, *c) + 1e-6


def test_within_geofence_boundary_is_inclusive():
    center = Coordinates(0.0, 0.0)
    point = Coordinates(0.0, 0.0009)
    d = distance_meters(0.0, 0.0009, 0.0, 0.0)
    assert within_geofence(point, center, d)
    assert not within_geofence(point, center, d - 0.01)


@pytest.mark.parametrize(
    "point",
    [None, Coordinates(None, 105.0), Coordinates(21.0, None)],
)
def test_missing_coordinates_are_outside_not_errors(point):
    assert within_geofence(point, Coordinates(21.0, 105.0), 1000) is False


def test_validate_coordinates_coerces_strings():
    assert validate_coordinates("21.5", "105.25") == Coordinates(21.5, 105.25)


@pytest.mark.parametrize("lat, lon", [(91, 0), (-90.5, 0), (0, 180.1), ("abc", 1), (float("nan"), 0)])
def test_validate_coordinates_rejects_bad_values(lat, lon):
    with pytest.raises(InvalidInput):
        validate_coordinates(lat, lon)
