"""
Tests for the leapfrog ripple kernel: decay, forcing sign and locality,
boundary handling and determinism.
"""

import pytest
import jax.numpy as jnp
import numpy as np

from wavecal.core.wave_pde import (
    ImpulseBatch,
    empty_impulse_batch,
    neighbor_sum,
    grid_coordinates,
    cosine_falloff,
    pointer_forcing,
    wave_step,
    initialize_gaussian_pulse,
)
from wavecal.core.grid_state import field_energy


BOUNDS = 14.0
GRID = 32

_NO_POINTER = (jnp.float32(0.0), jnp.zeros(2, dtype=jnp.float32))


def _step(height, prev, impulses=None, viscosity=0.985, boundary='clamp', pointer=_NO_POINTER):
    if impulses is None:
        impulses = empty_impulse_batch(4)
    return wave_step(
        height, prev, pointer[0], pointer[1], impulses,
        viscosity, BOUNDS, 0.6, 0.02, 1.0, 0.1, boundary=boundary,
    )


def _single_impulse(x, z, intensity=1.0, elapsed=0.0, duration=0.1):
    return ImpulseBatch(
        positions=jnp.array([[x, z]], dtype=jnp.float32),
        intensities=jnp.array([intensity], dtype=jnp.float32),
        elapsed=jnp.array([elapsed], dtype=jnp.float32),
        durations=jnp.array([duration], dtype=jnp.float32),
    )


# ============================================================================
# Neighbor sum
# ============================================================================

def test_neighbor_sum_constant_field_clamp():
    field = jnp.ones((6, 6))
    assert jnp.allclose(neighbor_sum(field, 'clamp'), 4.0)


def test_neighbor_sum_wrap_reads_opposite_edge():
    field = jnp.zeros((5, 5)).at[0, 2].set(1.0)
    total = neighbor_sum(field, 'wrap')

    # Under wrap, row 0 is the southern neighbor of row 4
    assert float(total[4, 2]) == pytest.approx(1.0)
    assert float(neighbor_sum(field, 'clamp')[4, 2]) == 0.0


def test_neighbor_sum_clamp_reflects_edge():
    field = jnp.zeros((5, 5)).at[0, 2].set(1.0)
    total = neighbor_sum(field, 'clamp')

    # Out-of-range north neighbor of (0, 2) is the cell itself
    assert float(total[0, 2]) == pytest.approx(1.0)
    assert float(total[1, 2]) == pytest.approx(1.0)


# ============================================================================
# Decay
# ============================================================================

@pytest.mark.parametrize("viscosity", [0.5, 0.9, 0.985])
@pytest.mark.parametrize("boundary", ['clamp', 'wrap'])
def test_energy_decays_without_forcing(viscosity, boundary):
    height = initialize_gaussian_pulse(GRID, GRID / 2, GRID / 2, sigma=3.0)
    prev = height
    initial = field_energy(height)

    for _ in range(300):
        height, prev = _step(height, prev, viscosity=viscosity, boundary=boundary)

    assert field_energy(height) < initial
    assert bool(jnp.all(jnp.isfinite(height)))


def test_energy_decay_rate_bounded_by_viscosity():
    height = initialize_gaussian_pulse(GRID, GRID / 2, GRID / 2, sigma=3.0)
    prev = height
    initial = field_energy(height)

    for _ in range(200):
        height, prev = _step(height, prev, viscosity=0.9)

    # Every mode shrinks by sqrt(viscosity) per step
    assert field_energy(height) < initial * 1e-3


def test_zero_field_stays_zero():
    height = jnp.zeros((GRID, GRID), dtype=jnp.float32)
    new_height, new_prev = _step(height, height)

    assert float(jnp.abs(new_height).sum()) == 0.0
    assert new_prev.shape == height.shape


# ============================================================================
# Forcing
# ============================================================================

def test_cosine_falloff_shape():
    d = jnp.array([0.0, 0.5, 1.0, 2.0])
    values = cosine_falloff(d, 1.0)

    assert float(values[0]) == pytest.approx(2.0)
    assert float(values[1]) == pytest.approx(1.0, abs=1e-6)
    assert float(values[2]) == pytest.approx(0.0, abs=1e-6)
    assert float(values[3]) == pytest.approx(0.0, abs=1e-6)


def test_inactive_pointer_applies_no_force():
    xx, zz = grid_coordinates(GRID, BOUNDS)
    force = pointer_forcing(xx, zz, jnp.float32(0.0), jnp.zeros(2), 0.6, 0.02)
    assert float(jnp.abs(force).sum()) == 0.0


def test_active_pointer_indents_surface():
    zero = jnp.zeros((GRID, GRID), dtype=jnp.float32)
    pointer = (jnp.float32(1.0), jnp.array([0.0, 0.0], dtype=jnp.float32))

    new_height, _ = _step(zero, zero, pointer=pointer)

    center = GRID // 2
    assert float(new_height[center, center]) < 0.0
    assert float(new_height[0, 0]) == 0.0


def test_impulse_sign_and_locality():
    zero = jnp.zeros((GRID, GRID), dtype=jnp.float32)
    impulses = _single_impulse(0.0, 0.0, intensity=1.0)

    new_height, _ = _step(zero, zero, impulses=impulses)

    xx, zz = grid_coordinates(GRID, BOUNDS)
    distance = np.asarray(jnp.sqrt(xx ** 2 + zz ** 2))
    heights = np.asarray(new_height)

    center = GRID // 2
    assert heights[center, center] < 0.0
    np.testing.assert_allclose(heights[distance > 1.0], 0.0, atol=1e-7)
    assert np.all(heights <= 0.0)


def test_impulse_inactive_outside_window():
    zero = jnp.zeros((GRID, GRID), dtype=jnp.float32)
    before, _ = _step(zero, zero, impulses=_single_impulse(0.0, 0.0, elapsed=-0.5))
    after, _ = _step(zero, zero, impulses=_single_impulse(0.0, 0.0, elapsed=0.2))

    assert float(jnp.abs(before).sum()) == 0.0
    assert float(jnp.abs(after).sum()) == 0.0


def test_impulse_ramps_down_over_window():
    zero = jnp.zeros((GRID, GRID), dtype=jnp.float32)
    center = GRID // 2

    early, _ = _step(zero, zero, impulses=_single_impulse(0.0, 0.0, elapsed=0.0))
    late, _ = _step(zero, zero, impulses=_single_impulse(0.0, 0.0, elapsed=0.08))

    assert float(early[center, center]) < float(late[center, center]) < 0.0


# ============================================================================
# Determinism
# ============================================================================

def test_runs_are_deterministic():
    pointer = (jnp.float32(1.0), jnp.array([-1.5, 0.5], dtype=jnp.float32))

    def run():
        height = jnp.zeros((GRID, GRID), dtype=jnp.float32)
        prev = height
        for i in range(40):
            impulses = _single_impulse(1.0, -2.0, intensity=0.7, elapsed=i / 60.0)
            height, prev = _step(height, prev, impulses=impulses, pointer=pointer)
        return np.asarray(height)

    np.testing.assert_array_equal(run(), run())
