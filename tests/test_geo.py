from datetime import datetime, timedelta

import pytest

from roktodan.utils.geo import (
    distance_km, approximate_distance_m, has_arrived, nearest_point_on_line,
    check_route_deviation, calculate_remaining_route, calculate_eta, line_length_m
)

# North-to-south segment through central Dhaka, GeoJSON order
LINE = [[90.40, 23.80], [90.40, 23.75]]


def test_distance_km_dhaka_to_chattogram():
    assert distance_km(23.8103, 90.4125, 22.3569, 91.7832) == pytest.approx(214, abs=5)


def test_approximate_distance_matches_great_circle_at_city_scale():
    exact = distance_km(23.80, 90.40, 23.81, 90.41) * 1000
    assert approximate_distance_m(23.80, 90.40, 23.81, 90.41) == pytest.approx(exact, rel=0.01)


def test_has_arrived():
    destination = {'latitude': 23.75, 'longitude': 90.40}
    assert has_arrived(23.7502, 90.40, destination)
    assert not has_arrived(23.7510, 90.40, destination)


def test_nearest_point_on_line_fraction():
    distance, index, fraction = nearest_point_on_line(23.78, 90.40, LINE)
    assert distance == pytest.approx(0, abs=0.5)
    assert index == 0
    assert fraction == pytest.approx(0.4, abs=1e-6)


def test_nearest_point_clamps_past_the_end():
    _, _, fraction = nearest_point_on_line(23.70, 90.40, LINE)
    assert fraction == 1.0


def test_nearest_point_requires_geometry():
    with pytest.raises(ValueError):
        nearest_point_on_line(23.78, 90.40, [])


def test_route_deviation_thresholds():
    on_route = check_route_deviation(23.78, 90.4003, LINE)
    assert on_route['isOnRoute'] is True
    assert on_route['shouldReroute'] is False

    drifting = check_route_deviation(23.78, 90.4007, LINE)
    assert drifting['isOnRoute'] is False
    assert drifting['shouldReroute'] is False

    lost = check_route_deviation(23.78, 90.41, LINE)
    assert lost['shouldReroute'] is True
    assert lost['distanceFromRoute'] == pytest.approx(1015, abs=10)


def test_remaining_route_progress():
    total = line_length_m(LINE)
    remaining = calculate_remaining_route(23.78, 90.40, LINE, total, 800)
    assert remaining['progress'] == pytest.approx(0.4, abs=1e-3)
    assert remaining['remainingDistance'] == pytest.approx(total * 0.6, rel=1e-3)
    assert remaining['remainingDuration'] == pytest.approx(480, abs=1)


def test_remaining_route_uses_reliable_speed():
    total = line_length_m(LINE)
    remaining = calculate_remaining_route(23.78, 90.40, LINE, total, 800, speed_mps=10)
    assert remaining['remainingDuration'] == pytest.approx(remaining['remainingDistance'] / 10, abs=0.2)

    crawling = calculate_remaining_route(23.78, 90.40, LINE, total, 800, speed_mps=0.2)
    assert crawling['remainingDuration'] == pytest.approx(480, abs=1)


def test_remaining_route_without_geometry():
    remaining = calculate_remaining_route(23.78, 90.40, [[90.40, 23.80]], 5000, 600)
    assert remaining == {'remainingDistance': 5000, 'remainingDuration': 600, 'progress': 0.0}


def test_calculate_eta_never_in_the_past():
    now = datetime(2026, 5, 1, 8, 0)
    assert calculate_eta(90, now) == now + timedelta(seconds=90)
    assert calculate_eta(-30, now) == now
    assert calculate_eta(None, now) == now
