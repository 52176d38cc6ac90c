"""
Leapfrog solver for the damped 2D wave equation on the calendar surface.

Implements the classic ripple-tank update

    h_{t+1} = (0.5 * (N + S + E + W) - h_{t-1}) * viscosity - forcing

on a fixed N x N grid, with a cosine-falloff pointer indentation and
amount-weighted event impulses as forcing terms. Every cell reads only the
current buffer, so all cells update independently.
"""

import functools
from typing import NamedTuple, Tuple

import jax
import jax.numpy as jnp
import numpy as np


BOUNDARY_MODES = {
    'clamp': 'edge',  # reflective: out-of-domain reads return the edge cell
    'wrap': 'wrap',   # periodic
}


class ImpulseBatch(NamedTuple):
    """
    Fixed-size, padded impulse arrays consumed by the kernel.

    Unused slots carry zero intensity.

    Attributes:
        positions: (K, 2) physical [x, z] centers
        intensities: (K,) non-negative intensities
        elapsed: (K,) seconds since each onset (negative before it)
        durations: (K,) active window lengths (seconds)
    """
    positions: jnp.ndarray
    intensities: jnp.ndarray
    elapsed: jnp.ndarray
    durations: jnp.ndarray


def empty_impulse_batch(slots: int) -> ImpulseBatch:
    """Batch with every slot unused."""
    return ImpulseBatch(
        positions=jnp.zeros((slots, 2), dtype=jnp.float32),
        intensities=jnp.zeros((slots,), dtype=jnp.float32),
        elapsed=jnp.full((slots,), -1.0, dtype=jnp.float32),
        durations=jnp.ones((slots,), dtype=jnp.float32),
    )


@functools.partial(jax.jit, static_argnames=('boundary',))
def neighbor_sum(field: jnp.ndarray, boundary: str = 'clamp') -> jnp.ndarray:
    """
    Sum of the four 4-connected neighbors of every cell.

    Args:
        field: (N, N) array
        boundary: 'clamp' (edge cells reflect) or 'wrap' (periodic)

    Returns:
        (N, N) array of north + south + east + west
    """
    padded = jnp.pad(field, 1, mode=BOUNDARY_MODES[boundary])
    north = padded[:-2, 1:-1]
    south = padded[2:, 1:-1]
    west = padded[1:-1, :-2]
    east = padded[1:-1, 2:]
    return north + south + east + west


def grid_coordinates(grid_size: int, bounds: float) -> Tuple[jnp.ndarray, jnp.ndarray]:
    """
    Physical x and z of every cell center.

    Returns:
        (xx, zz) pair of (N, N) arrays; rows run along z, columns along x
    """
    spacing = bounds / grid_size
    centers = (jnp.arange(grid_size, dtype=jnp.float32) + 0.5) * spacing - bounds / 2.0
    zz, xx = jnp.meshgrid(centers, centers, indexing='ij')
    return xx, zz


def cosine_falloff(distance: jnp.ndarray, radius: float) -> jnp.ndarray:
    """
    Smooth bump in [0, 2] that reaches 0 at `radius`.

    (cos(phase) + 1) with phase = clamp(distance * pi / radius, 0, pi)
    """
    phase = jnp.clip(distance * jnp.pi / radius, 0.0, jnp.pi)
    return jnp.cos(phase) + 1.0


def pointer_forcing(
    xx: jnp.ndarray,
    zz: jnp.ndarray,
    pointer_active: jnp.ndarray,
    pointer_pos: jnp.ndarray,
    radius: float,
    depth: float,
) -> jnp.ndarray:
    """
    Indentation under the pointer; zero everywhere while inactive.

    Args:
        xx, zz: (N, N) cell center coordinates
        pointer_active: scalar 1.0 (active) or 0.0 (inactive)
        pointer_pos: (2,) physical [x, z]
        radius: influence radius
        depth: peak depth / 2

    Returns:
        (N, N) non-negative forcing to subtract from the field
    """
    distance = jnp.sqrt((xx - pointer_pos[0]) ** 2 + (zz - pointer_pos[1]) ** 2)
    return pointer_active * cosine_falloff(distance, radius) * depth


def impulse_forcing(
    xx: jnp.ndarray,
    zz: jnp.ndarray,
    impulses: ImpulseBatch,
    radius: float,
    depth: float,
) -> jnp.ndarray:
    """
    Sum of all live impulses.

    An impulse is live for 0 <= elapsed < duration. Its strength
    ramps linearly from intensity down to zero across that window.

    Returns:
        (N, N) non-negative forcing to subtract from the field
    """
    elapsed = impulses.elapsed
    live = (elapsed >= 0.0) & (elapsed < impulses.durations)
    ramp = jnp.where(live, 1.0 - elapsed / impulses.durations, 0.0)
    weights = impulses.intensities * ramp * depth  # (K,)

    dx = xx[None, :, :] - impulses.positions[:, 0, None, None]
    dz = zz[None, :, :] - impulses.positions[:, 1, None, None]
    distance = jnp.sqrt(dx ** 2 + dz ** 2)  # (K, N, N)

    return jnp.sum(weights[:, None, None] * cosine_falloff(distance, radius), axis=0)


@functools.partial(jax.jit, static_argnames=('boundary',))
def wave_step(
    height: jnp.ndarray,
    prev_height: jnp.ndarray,
    pointer_active: jnp.ndarray,
    pointer_pos: jnp.ndarray,
    impulses: ImpulseBatch,
    viscosity: float,
    bounds: float,
    pointer_radius: float,
    pointer_depth: float,
    impulse_radius: float,
    impulse_depth: float,
    boundary: str = 'clamp',
) -> Tuple[jnp.ndarray, jnp.ndarray]:
    """
    Advance the field by exactly one frame.

    Args:
        height: (N, N) current heights
        prev_height: (N, N) heights one step back
        pointer_active: scalar 1.0/0.0
        pointer_pos: (2,) pointer [x, z] (ignored while inactive)
        impulses: padded ImpulseBatch, timed relative to this step
        viscosity: damping coefficient in (0, 1)
        bounds: physical side length
        pointer_radius, pointer_depth: pointer forcing shape
        impulse_radius, impulse_depth: impulse forcing shape
        boundary: 'clamp' or 'wrap'

    Returns:
        (new_height, new_prev_height) where new_prev_height is `height`
    """
    grid_size = height.shape[0]
    xx, zz = grid_coordinates(grid_size, bounds)

    laplacian_term = 0.5 * neighbor_sum(height, boundary)
    new_height = (laplacian_term - prev_height) * viscosity

    new_height = new_height - pointer_forcing(
        xx, zz, pointer_active, pointer_pos, pointer_radius, pointer_depth
    )
    new_height = new_height - impulse_forcing(
        xx, zz, impulses, impulse_radius, impulse_depth
    )

    return new_height.astype(height.dtype), height


def initialize_gaussian_pulse(
    grid_size: int,
    center_row: float,
    center_col: float,
    sigma: float = 5.0,
    amplitude: float = 1.0
) -> jnp.ndarray:
    """
    Create an initial Gaussian bump, in grid units.

    Args:
        grid_size: Cells per side
        center_row, center_col: Pulse center
        sigma: Pulse width
        amplitude: Peak value

    Returns:
        (grid_size, grid_size) field
    """
    idx = np.arange(grid_size, dtype=np.float32)
    rr, cc = np.meshgrid(idx, idx, indexing='ij')

    r_sq = (rr - center_row) ** 2 + (cc - center_col) ** 2
    pulse = amplitude * np.exp(-r_sq / (2 * sigma ** 2))

    return jnp.asarray(pulse, dtype=jnp.float32)
