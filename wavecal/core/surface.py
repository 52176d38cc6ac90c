"""
Surface derivation and shading.

Turns the current height field into a renderable surface: per-vertex
positions (x, height, z), unit normals from central differences, and
per-vertex colors from the theme's base/crest mix plus a simple
Phong + Fresnel lighting model.
"""

import functools
from dataclasses import dataclass
from typing import Optional

import jax
import jax.numpy as jnp
import numpy as np

from wavecal.config.config_schema import SimulationConfig, RenderConfig
from wavecal.config.defaults import THEMES, hex_to_rgb
from .grid_state import GridState
from .wave_pde import grid_coordinates


# ============================================================================
# Geometry
# ============================================================================

@jax.jit
def surface_normals(height: jnp.ndarray, normal_scale: float) -> jnp.ndarray:
    """
    Unit normals from central differences of the height field.

    normal = normalize(h_left - h_right, k, h_down - h_up), with edge cells
    reading their own height for missing neighbors.

    Args:
        height: (N, N) field
        normal_scale: k, the y component before normalization

    Returns:
        (N, N, 3) unit vectors
    """
    padded = jnp.pad(height, 1, mode='edge')
    left = padded[1:-1, :-2]
    right = padded[1:-1, 2:]
    down = padded[:-2, 1:-1]
    up = padded[2:, 1:-1]

    nx = left - right
    ny = jnp.full_like(height, normal_scale)
    nz = down - up
    normals = jnp.stack([nx, ny, nz], axis=-1)
    return normals / jnp.linalg.norm(normals, axis=-1, keepdims=True)


@functools.partial(jax.jit, static_argnames=('bounds',))
def surface_positions(height: jnp.ndarray, bounds: float) -> jnp.ndarray:
    """(N, N, 3) vertex positions (x, height, z)."""
    xx, zz = grid_coordinates(height.shape[0], bounds)
    return jnp.stack([xx, height, zz], axis=-1)


# ============================================================================
# Shading
# ============================================================================

def smoothstep(edge0: float, edge1: float, x: jnp.ndarray) -> jnp.ndarray:
    t = jnp.clip((x - edge0) / (edge1 - edge0), 0.0, 1.0)
    return t * t * (3.0 - 2.0 * t)


def _normalize(v: jnp.ndarray) -> jnp.ndarray:
    return v / jnp.linalg.norm(v, axis=-1, keepdims=True)


@jax.jit
def shade_surface(
    height: jnp.ndarray,
    normals: jnp.ndarray,
    positions: jnp.ndarray,
    camera_pos: jnp.ndarray,
    base: jnp.ndarray,
    crest: jnp.ndarray,
    ambient: float,
    light_dir: jnp.ndarray,
    specular_power: float,
) -> jnp.ndarray:
    """
    Per-vertex color.

    mix = smoothstep(-0.3, 0.3, h) * 0.5 + 0.2 blends base toward crest;
    lighting adds ambient + 0.6 * diffuse, 0.3 * specular and a
    0.2 * fresnel rim in the crest color.

    Returns:
        (N, N, 3) RGB in [0, 1]
    """
    mix = smoothstep(-0.3, 0.3, height)[..., None] * 0.5 + 0.2
    color = base * (1.0 - mix) + crest * mix

    light = light_dir / jnp.linalg.norm(light_dir)
    view = _normalize(camera_pos - positions)

    diffuse = jnp.maximum(jnp.sum(normals * light, axis=-1), 0.0)[..., None]
    reflected = 2.0 * jnp.sum(normals * light, axis=-1, keepdims=True) * normals - light
    specular = jnp.maximum(jnp.sum(reflected * view, axis=-1), 0.0) ** specular_power

    up = jnp.array([0.0, 1.0, 0.0], dtype=view.dtype)
    fresnel = (1.0 - jnp.maximum(jnp.sum(view * up, axis=-1), 0.0)) ** 2

    lit = color * (ambient + 0.6 * diffuse) + 0.3 * specular[..., None]
    lit = lit + 0.2 * fresnel[..., None] * crest
    return jnp.clip(lit, 0.0, 1.0)


# ============================================================================
# Renderer
# ============================================================================

@dataclass
class SurfaceFrame:
    """
    Renderable surface for one frame.

    Attributes:
        positions: (N, N, 3) vertex positions (x, height, z)
        normals: (N, N, 3) unit normals
        colors: (N, N, 3) RGB in [0, 1]
    """
    positions: jnp.ndarray
    normals: jnp.ndarray
    colors: jnp.ndarray


class SurfaceRenderer:
    """Derives a SurfaceFrame from the current buffer of a GridState."""

    def __init__(self, sim_config: Optional[SimulationConfig] = None,
                 render_config: Optional[RenderConfig] = None):
        self.sim_config = sim_config or SimulationConfig()
        self.render_config = render_config or RenderConfig()
        self.set_theme(self.render_config.theme)

    @property
    def normal_scale(self) -> float:
        cfg = self.sim_config
        return cfg.normal_scale if cfg.normal_scale is not None else 2.0 * cfg.cell_spacing

    def set_theme(self, theme: str):
        if theme not in THEMES:
            raise ValueError(f"Unknown theme {theme!r}, expected one of {sorted(THEMES)}")
        palette = THEMES[theme]
        self.theme = theme
        self._base = np.asarray(hex_to_rgb(palette['base']), dtype=np.float32)
        self._crest = np.asarray(hex_to_rgb(palette['crest']), dtype=np.float32)
        self._ambient = float(palette['ambient'])

    def derive_height(self, height: jnp.ndarray) -> SurfaceFrame:
        rc = self.render_config
        positions = surface_positions(height, float(self.sim_config.bounds))
        normals = surface_normals(height, self.normal_scale)
        colors = shade_surface(
            height,
            normals,
            positions,
            jnp.asarray(rc.camera_position, dtype=jnp.float32),
            self._base,
            self._crest,
            self._ambient,
            jnp.asarray(rc.light_direction, dtype=jnp.float32),
            rc.specular_power,
        )
        return SurfaceFrame(positions=positions, normals=normals, colors=colors)

    def derive(self, grid: GridState) -> SurfaceFrame:
        """Surface of the grid's current buffer."""
        return self.derive_height(grid.current.height)

    def static_surface(self) -> SurfaceFrame:
        """
        Flat, unanimated surface used when the simulator is unavailable.

        Computed on the host with numpy so it does not need a working JAX
        backend. Matches `derive_height` of an all-zero field.
        """
        cfg = self.sim_config
        rc = self.render_config
        n = cfg.grid_size

        centers = (np.arange(n, dtype=np.float64) + 0.5) * cfg.cell_spacing - cfg.bounds / 2.0
        zz, xx = np.meshgrid(centers, centers, indexing='ij')
        positions = np.stack([xx, np.zeros_like(xx), zz], axis=-1)

        up = np.array([0.0, 1.0, 0.0])
        normals = np.broadcast_to(up, (n, n, 3))

        # smoothstep(-0.3, 0.3, 0) = 0.5
        mix = 0.5 * 0.5 + 0.2
        color = self._base * (1.0 - mix) + self._crest * mix

        light = np.asarray(rc.light_direction, dtype=np.float64)
        light = light / np.linalg.norm(light)
        view = np.asarray(rc.camera_position, dtype=np.float64) - positions
        view = view / np.linalg.norm(view, axis=-1, keepdims=True)

        diffuse = max(light[1], 0.0)
        reflected = 2.0 * light[1] * up - light
        specular = np.maximum(view @ reflected, 0.0) ** rc.specular_power
        fresnel = (1.0 - np.maximum(view[..., 1], 0.0)) ** 2

        lit = color * (self._ambient + 0.6 * diffuse) + 0.3 * specular[..., None]
        lit = lit + 0.2 * fresnel[..., None] * self._crest

        return SurfaceFrame(
            positions=positions.astype(np.float32),
            normals=normals.astype(np.float32),
            colors=np.clip(lit, 0.0, 1.0).astype(np.float32),
        )
