"""
Tests for pointer picking and the explicit pointer state.
"""

import pytest
import numpy as np

from wavecal.core.pointer import Camera, PointerForcer, PointerState, INACTIVE, intersect_plane


WIDTH, HEIGHT = 800, 600


def test_camera_center_ray_hits_target():
    camera = Camera()
    origin, direction = camera.ray(WIDTH / 2, HEIGHT / 2, WIDTH, HEIGHT)

    assert np.linalg.norm(direction) == pytest.approx(1.0)
    hit = intersect_plane(origin, direction)
    assert hit == pytest.approx((0.0, 0.0), abs=1e-6)


def test_camera_rejects_empty_viewport():
    with pytest.raises(ValueError):
        Camera().ray(0, 0, 0, HEIGHT)


def test_ray_pointing_away_misses_plane():
    origin = np.array([0.0, 5.0, 0.0])
    assert intersect_plane(origin, np.array([0.0, 1.0, 0.0])) is None
    assert intersect_plane(origin, np.array([1.0, 0.0, 0.0])) is None


def test_pointer_inactive_by_default():
    forcer = PointerForcer()
    assert forcer.state == INACTIVE
    assert not forcer.state.active
    assert not forcer.hovered


def test_hover_without_press_is_inactive():
    forcer = PointerForcer()
    forcer.on_pointer_move(WIDTH / 2, HEIGHT / 2, WIDTH, HEIGHT)

    assert forcer.hovered
    assert not forcer.state.active


def test_press_over_surface_activates():
    forcer = PointerForcer()
    forcer.on_pointer_move(WIDTH / 2, HEIGHT / 2, WIDTH, HEIGHT)
    state = forcer.on_pointer_down()

    assert state.active
    assert state.position == pytest.approx((0.0, 0.0), abs=1e-6)


def test_drag_tracks_position():
    forcer = PointerForcer()
    forcer.on_pointer_down()
    forcer.on_pointer_move(WIDTH / 2, HEIGHT / 2, WIDTH, HEIGHT)
    first = forcer.state.position
    forcer.on_pointer_move(WIDTH / 2 + 100, HEIGHT / 2, WIDTH, HEIGHT)
    second = forcer.state.position

    assert forcer.state.active
    assert second[0] > first[0]


def test_release_clears_state():
    forcer = PointerForcer()
    forcer.on_pointer_move(WIDTH / 2, HEIGHT / 2, WIDTH, HEIGHT)
    forcer.on_pointer_down()
    state = forcer.on_pointer_up()

    assert state == PointerState()
    assert forcer.hovered


def test_moving_off_surface_deactivates():
    forcer = PointerForcer()
    forcer.on_pointer_move(WIDTH / 2, HEIGHT / 2, WIDTH, HEIGHT)
    forcer.on_pointer_down()

    # Top edge of the viewport looks past the far edge of the plane
    state = forcer.on_pointer_move(WIDTH / 2, 0, WIDTH, HEIGHT)

    assert not state.active
    assert not forcer.hovered
    assert forcer.is_down


def test_leave_resets_everything():
    forcer = PointerForcer()
    forcer.on_pointer_move(WIDTH / 2, HEIGHT / 2, WIDTH, HEIGHT)
    forcer.on_pointer_down()
    forcer.on_pointer_leave()

    assert not forcer.is_down
    assert not forcer.hovered
    assert forcer.state == INACTIVE
