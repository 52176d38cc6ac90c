"""
Tests for surface normals, positions and shading.
"""

import pytest
import jax.numpy as jnp
import numpy as np

from wavecal.config.config_schema import SimulationConfig, RenderConfig
from wavecal.config.defaults import hex_to_rgb
from wavecal.core.grid_state import GridState
from wavecal.core.surface import SurfaceRenderer, surface_normals, smoothstep


def _renderer(grid_size=16, theme='dark'):
    return SurfaceRenderer(SimulationConfig(grid_size=grid_size), RenderConfig(theme=theme))


def test_flat_field_normals_point_up():
    normals = surface_normals(jnp.zeros((8, 8)), 0.2)
    np.testing.assert_allclose(np.asarray(normals), np.broadcast_to([0.0, 1.0, 0.0], (8, 8, 3)), atol=1e-6)


def test_normals_are_unit_length():
    height = jnp.asarray(np.random.default_rng(0).normal(size=(12, 12)), dtype=jnp.float32)
    normals = surface_normals(height, 0.2)
    np.testing.assert_allclose(np.linalg.norm(np.asarray(normals), axis=-1), 1.0, rtol=1e-5)


def test_slope_tilts_normal_downhill():
    # Height rises along columns (x); the normal leans toward -x
    ramp = jnp.tile(jnp.arange(8, dtype=jnp.float32) * 0.1, (8, 1))
    normals = np.asarray(surface_normals(ramp, 0.2))

    assert normals[4, 4, 0] < 0.0
    assert normals[4, 4, 2] == pytest.approx(0.0, abs=1e-6)


def test_smoothstep_limits():
    values = smoothstep(-0.3, 0.3, jnp.array([-1.0, 0.0, 1.0]))
    assert np.asarray(values) == pytest.approx([0.0, 0.5, 1.0])


def test_derive_positions_follow_height():
    renderer = _renderer()
    grid = GridState.allocate(16)
    field = jnp.zeros((16, 16), dtype=jnp.float32).at[3, 5].set(0.4)
    grid.load(field)

    frame = renderer.derive(grid)

    assert frame.positions.shape == (16, 16, 3)
    assert float(frame.positions[3, 5, 1]) == pytest.approx(0.4)
    assert float(frame.positions[0, 0, 0]) == pytest.approx(-7.0 + 14.0 / 32)


def test_colors_in_unit_range():
    renderer = _renderer()
    grid = GridState.allocate(16)
    grid.load(jnp.asarray(np.random.default_rng(1).normal(scale=0.5, size=(16, 16)), dtype=jnp.float32))

    colors = np.asarray(renderer.derive(grid).colors)
    assert colors.shape == (16, 16, 3)
    assert colors.min() >= 0.0 and colors.max() <= 1.0


def test_crests_brighter_than_troughs():
    renderer = _renderer()
    high = renderer.derive_height(jnp.full((16, 16), 0.5, dtype=jnp.float32))
    low = renderer.derive_height(jnp.full((16, 16), -0.5, dtype=jnp.float32))

    assert float(high.colors.sum()) > float(low.colors.sum())


def test_light_theme_brighter_than_dark():
    dark = _renderer(theme='dark').static_surface()
    light = _renderer(theme='light').static_surface()
    assert float(light.colors.mean()) > float(dark.colors.mean())


def test_unknown_theme_rejected():
    with pytest.raises(ValueError):
        _renderer().set_theme('sepia')


def test_static_surface_is_flat():
    frame = _renderer(grid_size=8).static_surface()
    np.testing.assert_allclose(np.asarray(frame.positions[..., 1]), 0.0)


@pytest.mark.parametrize("theme", ["dark", "light"])
def test_static_surface_matches_flat_field(theme):
    renderer = _renderer(grid_size=8, theme=theme)
    static = renderer.static_surface()
    derived = renderer.derive_height(jnp.zeros((8, 8), dtype=jnp.float32))

    assert isinstance(static.colors, np.ndarray)
    np.testing.assert_allclose(static.positions, np.asarray(derived.positions), atol=1e-5)
    np.testing.assert_allclose(static.normals, np.asarray(derived.normals), atol=1e-6)
    np.testing.assert_allclose(static.colors, np.asarray(derived.colors), atol=1e-4)


def test_hex_to_rgb():
    assert hex_to_rgb('#ffffff') == pytest.approx((1.0, 1.0, 1.0))
    assert hex_to_rgb('#3b82f6') == pytest.approx((59 / 255, 130 / 255, 246 / 255))
    with pytest.raises(ValueError):
        hex_to_rgb('#fff')
