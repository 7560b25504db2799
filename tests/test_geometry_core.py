from __future__ import annotations

import math

import pytest

from aim_trainer.aim_core import FORWARD, Vec2, Vec3, mean, median, normalize_or_zero
from aim_trainer.geometry import (
    CameraBasis,
    angle_between_deg,
    angular_error_deg,
    heading_deg,
    heading_difference_deg,
    ray_sphere_intersection,
)


def test_ray_sphere_hit_and_miss() -> None:
    origin = Vec3(0.0, 0.0, 0.0)
    direction = Vec3(0.0, 0.0, -1.0)

    assert ray_sphere_intersection(origin, direction, Vec3(0.0, 0.0, -10.0), 0.5) is True
    assert ray_sphere_intersection(origin, direction, Vec3(5.0, 0.0, -10.0), 0.5) is False


def test_ray_sphere_grazing_counts_as_hit() -> None:
    # Tangent line: discriminant is exactly zero.
    assert ray_sphere_intersection(Vec3(), Vec3(0.0, 0.0, -1.0), Vec3(0.5, 0.0, -10.0), 0.5) is True


def test_default_basis_matches_world_axes() -> None:
    b = CameraBasis.from_forward(FORWARD)
    assert b.right == Vec3(1.0, 0.0, 0.0)
    assert b.up == Vec3(0.0, 1.0, 0.0)
    assert b.forward == Vec3(0.0, 0.0, -1.0)
    assert b.is_degenerate is False


def test_basis_round_trip_for_rotated_forward() -> None:
    b = CameraBasis.from_forward(Vec3(1.0, 0.3, -1.0))
    local = Vec3(2.5, -1.25, 12.0)
    back = b.to_local(b.to_world(local))
    assert back.x == pytest.approx(local.x)
    assert back.y == pytest.approx(local.y)
    assert back.z == pytest.approx(local.z)


def test_zero_forward_degrades_to_zero_basis() -> None:
    b = CameraBasis.from_forward(Vec3())
    assert b.is_degenerate is True
    assert b.to_world(Vec3(3.0, 2.0, 10.0)) == Vec3()
    assert b.local_xy(Vec3(1.0, 1.0, 1.0)) == Vec2()


def test_straight_up_forward_has_no_right_axis() -> None:
    b = CameraBasis.from_forward(Vec3(0.0, 1.0, 0.0))
    assert b.right == Vec3()
    assert b.is_degenerate is True


def test_angle_between_uses_clamped_acos() -> None:
    assert angle_between_deg(Vec2(1.0, 0.0), Vec2(0.0, 1.0)) == pytest.approx(90.0)
    assert angle_between_deg(Vec2(1.0, 0.0), Vec2(2.0, 0.0)) == pytest.approx(0.0)
    assert angle_between_deg(Vec3(1.0, 0.0, 0.0), Vec3(-3.0, 0.0, 0.0)) == pytest.approx(180.0)


def test_angular_error_is_relative_to_camera() -> None:
    err = angular_error_deg(Vec3(1.0, 0.0, 0.0), Vec3(0.0, 0.0, 1.0), Vec3(0.0, 0.0, -1.0))
    assert err == pytest.approx(45.0)


def test_heading_and_circular_difference() -> None:
    assert heading_deg(Vec2(0.0, 2.0)) == pytest.approx(90.0)
    assert heading_deg(Vec2(0.001, 0.0)) == 0.0
    assert heading_deg(Vec2(0.0, -3.0)) == pytest.approx(-90.0)
    assert heading_difference_deg(350.0, 10.0) == pytest.approx(20.0)
    assert heading_difference_deg(0.0, 315.0) == pytest.approx(45.0)


def test_mean_and_median() -> None:
    assert mean([100.0, 150.0, 200.0]) == pytest.approx(150.0)
    assert median([200.0, 100.0, 150.0]) == pytest.approx(150.0)
    assert median([100.0, 150.0]) == pytest.approx(125.0)
    assert mean([]) == 0.0
    assert median([]) == 0.0


def test_normalize_or_zero() -> None:
    assert normalize_or_zero(Vec3()) == Vec3()
    assert normalize_or_zero(Vec2()) == Vec2()
    assert normalize_or_zero(Vec3(float("inf"), 0.0, 0.0)) == Vec3()
    n = normalize_or_zero(Vec3(0.0, 3.0, 4.0))
    assert n.length() == pytest.approx(1.0)
    assert math.isclose(normalize_or_zero(Vec2(3.0, 4.0)).x, 0.6)
