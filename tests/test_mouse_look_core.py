from __future__ import annotations

import math

import pytest

from aim_trainer.mouse_look import (
    LookSettings,
    MouseLook,
    look_direction,
    mouse_sensitivity,
    vertical_fov_rad,
)


def test_sensitivity_from_dpi_and_cm_per_360() -> None:
    s = LookSettings(dpi=800.0, cm_360=2.54 * 10.0)
    # 10 inches at 800 dpi = 8000 counts per full turn.
    assert mouse_sensitivity(s) == pytest.approx(2.0 * math.pi / 8000.0)


def test_default_settings() -> None:
    s = LookSettings()
    assert (s.dpi, s.cm_360, s.fov_deg) == (1600.0, 38.0, 103.0)


def test_neutral_look_is_negative_z() -> None:
    d = look_direction(0.0, 0.0)
    assert (d.x, d.y, d.z) == pytest.approx((0.0, 0.0, -1.0))


def test_moving_right_turns_right() -> None:
    look = MouseLook(LookSettings(dpi=800.0, cm_360=2.54 * 10.0))
    d = look.apply_motion(2000.0, 0.0)  # quarter turn
    assert d.x == pytest.approx(1.0)
    assert d.y == pytest.approx(0.0, abs=1e-12)
    assert d.z == pytest.approx(0.0, abs=1e-12)
    assert look.yaw == pytest.approx(-math.pi / 2.0)


def test_moving_up_raises_aim_and_pitch_is_clamped() -> None:
    look = MouseLook(LookSettings(dpi=800.0, cm_360=2.54 * 10.0))
    d = look.apply_motion(0.0, -1000.0)
    assert d.y > 0.0

    d = look.apply_motion(0.0, -100000.0)
    assert look.pitch == pytest.approx(math.pi / 2.0)
    assert d.y == pytest.approx(1.0)
    assert d.length() == pytest.approx(1.0)


def test_zero_motion_keeps_direction_and_reset_recenters() -> None:
    look = MouseLook()
    before = look.apply_motion(150.0, 40.0)
    assert look.apply_motion(0.0, 0.0) == before

    look.reset()
    assert look.yaw == 0.0 and look.pitch == 0.0
    assert look.direction() == look_direction(0.0, 0.0)


def test_vertical_fov_from_horizontal() -> None:
    assert math.degrees(vertical_fov_rad(90.0, 1.0)) == pytest.approx(90.0)
    assert vertical_fov_rad(103.0, 1200.0 / 800.0) < math.radians(103.0)


@pytest.mark.parametrize(
    "kwargs",
    [
        {"dpi": 0.0},
        {"cm_360": -1.0},
        {"fov_deg": 0.0},
        {"fov_deg": 180.0},
    ],
)
def test_invalid_settings_are_rejected(kwargs: dict[str, float]) -> None:
    with pytest.raises(ValueError):
        LookSettings(**kwargs)
