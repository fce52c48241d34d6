import math
from datetime import timedelta

import pytest

from fieldtrack.services.geospatial import (
    EARTH_RADIUS_KM,
    elapsed_minutes,
    haversine_distance_km,
    speed_kmh,
)

from factories import BASE


def test_distance_between_identical_points_is_zero() -> None:
    assert haversine_distance_km(24.7136, 46.6753, 24.7136, 46.6753) == 0.0


def test_distance_is_symmetric() -> None:
    forward = haversine_distance_km(33.3152, 44.3661, 21.4858, 39.1925)
    backward = haversine_distance_km(21.4858, 39.1925, 33.3152, 44.3661)
    assert forward == pytest.approx(backward)


def test_short_urban_hop() -> None:
    distance = haversine_distance_km(33.3152, 44.3661, 33.3200, 44.3700)
    assert distance == pytest.approx(0.645, abs=0.005)
    assert speed_kmh(distance, 10) == pytest.approx(3.87, abs=0.03)


def test_antipodal_points_stay_finite() -> None:
    distance = haversine_distance_km(0.0, 0.0, 0.0, 180.0)
    assert distance == pytest.approx(math.pi * EARTH_RADIUS_KM)


def test_distance_obeys_triangle_inequality() -> None:
    baghdad = (33.3152, 44.3661)
    basra = (30.5085, 47.7804)
    mosul = (36.3350, 43.1189)

    direct = haversine_distance_km(*baghdad, *basra)
    via_mosul = haversine_distance_km(*baghdad, *mosul) + haversine_distance_km(*mosul, *basra)
    assert direct <= via_mosul + 1e-9

    nearby = (33.3200, 44.3700)
    hop = haversine_distance_km(*baghdad, *nearby) + haversine_distance_km(*nearby, *basra)
    assert direct <= hop + 1e-9


def test_elapsed_minutes_ignores_order() -> None:
    later = BASE + timedelta(minutes=25)
    assert elapsed_minutes(BASE, later) == 25.0
    assert elapsed_minutes(later, BASE) == 25.0


def test_zero_elapsed_time_gives_zero_speed() -> None:
    assert speed_kmh(3.0, 0) == 0.0
