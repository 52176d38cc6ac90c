"""
Per-frame integration of the wave field.

Binds a SimulationConfig to the jitted `wave_step` kernel and moves data
between GridState and the kernel.
"""

import jax.numpy as jnp

from wavecal.config.config_schema import SimulationConfig
from .grid_state import GridState
from .pointer import PointerState
from .wave_pde import ImpulseBatch, wave_step


class WaveIntegrator:
    """
    Advances a GridState by exactly one time step per call.

    Reads the current buffer, writes the next one; the caller swaps.
    Deterministic given the grid, the pointer state and the impulse batch.
    """

    def __init__(self, config: SimulationConfig):
        self.config = config

    def step(self, grid: GridState, pointer: PointerState, impulses: ImpulseBatch):
        """
        Integrate one frame into `grid.next`.

        Args:
            grid: Double-buffered field
            pointer: Pointer forcing state for this frame
            impulses: Padded impulse batch, packed for this frame's time
        """
        cfg = self.config
        cur = grid.current

        new_height, new_prev = wave_step(
            cur.height,
            cur.prev_height,
            jnp.float32(1.0 if pointer.active else 0.0),
            jnp.asarray(pointer.position, dtype=jnp.float32),
            impulses,
            cfg.viscosity,
            cfg.bounds,
            cfg.pointer_radius,
            cfg.pointer_depth,
            cfg.impulse_radius,
            cfg.impulse_depth,
            boundary=cfg.boundary,
        )
        grid.write_next(new_height, new_prev)
        return new_height
