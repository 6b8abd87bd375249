"""Unit tests for distance and rounding helpers"""

from matchmaking_gateway.utils.geo import haversine_distance_km
from matchmaking_gateway.utils.math_utils import ceil_div, round_half_up


def test_bangalore_to_chennai():
    distance = haversine_distance_km(12.9716, 77.5946, 13.0827, 80.2707)
    assert abs(distance - 290) <= 5


def test_distance_is_symmetric():
    there = haversine_distance_km(12.9716, 77.5946, 19.0760, 72.8777)
    back = haversine_distance_km(19.0760, 72.8777, 12.9716, 77.5946)
    assert there == back


def test_same_point_is_zero():
    assert haversine_distance_km(12.9716, 77.5946, 12.9716, 77.5946) == 0


def test_round_half_up():
    assert round_half_up(2.5) == 3
    assert round_half_up(0.5) == 1
    assert round_half_up(2.49) == 2


def test_ceil_div():
    assert ceil_div(125, 60) == 3
    assert ceil_div(120, 60) == 2
    assert ceil_div(0, 60) == 0
    assert ceil_div(3, 2) == 2


def test_antipodal_points_are_half_the_circumference():
    """Opposite sides of the globe must not blow up on float error"""
    for lat in [0.0, 2.5, 12.9716, 45.0, 89.9]:
        for lon in [-180.0, -172.7, 0.0, 77.5946]:
            opposite_lon = lon + 180 if lon <= 0 else lon - 180
            assert haversine_distance_km(lat, lon, -lat, opposite_lon) == 20015
