"""
Double-buffered height field for the wave simulator.

Two buffers are allocated once. Each holds the height of every cell and the
height one step earlier. Exactly one buffer is "current" (read by the
renderer and by the next integration step); the other is "next", the write
target of the integration step. `swap()` exchanges the roles by flipping an
index, never by copying.
"""

from typing import NamedTuple, Optional, Tuple
import jax.numpy as jnp

from wavecal.wavecal_logging import get_logger

logger = get_logger(__name__)


class GridBuffer(NamedTuple):
    """
    One full copy of the field.

    Attributes:
        height: (N, N) height per cell
        prev_height: (N, N) height one step back
    """
    height: jnp.ndarray
    prev_height: jnp.ndarray


class GridState:
    """
    Ping-pong pair of GridBuffers.

    Out-of-range cell coordinates and use after release are programming
    errors and raise immediately.
    """

    def __init__(self, buffers: Tuple[GridBuffer, GridBuffer]):
        self._buffers = list(buffers)
        self._current = 0
        self._released = False
        self.swaps = 0

    @classmethod
    def allocate(cls, grid_size: int, dtype=jnp.float32) -> "GridState":
        """
        Zero-initialize both buffers.

        Args:
            grid_size: Cells per side
            dtype: Element type (float32 by default)
        """
        if grid_size <= 2:
            raise ValueError(f"grid_size must be > 2, got {grid_size}")

        buffers = tuple(
            GridBuffer(
                height=jnp.zeros((grid_size, grid_size), dtype=dtype),
                prev_height=jnp.zeros((grid_size, grid_size), dtype=dtype),
            )
            for _ in range(2)
        )
        logger.debug(f"Allocated {grid_size}x{grid_size} double-buffered grid")
        return cls(buffers)

    # ------------------------------------------------------------------
    # Buffer roles
    # ------------------------------------------------------------------

    @property
    def size(self) -> int:
        self._check_alive()
        return self._buffers[0].height.shape[0]

    @property
    def current_index(self) -> int:
        return self._current

    @property
    def current(self) -> GridBuffer:
        """Readable buffer: input of the next step and of the renderer."""
        self._check_alive()
        return self._buffers[self._current]

    @property
    def next(self) -> GridBuffer:
        """Write target of the integration step."""
        self._check_alive()
        return self._buffers[1 - self._current]

    def swap(self):
        """Exchange buffer roles in O(1)."""
        self._check_alive()
        self._current = 1 - self._current
        self.swaps += 1

    # ------------------------------------------------------------------
    # Cell access
    # ------------------------------------------------------------------

    def read(self, row: int, col: int) -> Tuple[float, float]:
        """
        (height, prev_height) of one cell in the current buffer.

        This is what the renderer and the next step see; use `read_next`
        for the cell a `write` has just touched.
        """
        self._check_cell(row, col)
        buf = self.current
        return float(buf.height[row, col]), float(buf.prev_height[row, col])

    def read_next(self, row: int, col: int) -> Tuple[float, float]:
        """(height, prev_height) of one cell in the next buffer."""
        self._check_cell(row, col)
        buf = self.next
        return float(buf.height[row, col]), float(buf.prev_height[row, col])

    def write(self, row: int, col: int, height: float):
        """
        Write one cell of the next buffer.

        The cell's previous height becomes the current buffer's height, as
        an integration step would record it.
        """
        self._check_cell(row, col)
        cur = self.current
        nxt = self.next
        self._buffers[1 - self._current] = GridBuffer(
            height=nxt.height.at[row, col].set(height),
            prev_height=nxt.prev_height.at[row, col].set(cur.height[row, col]),
        )

    def write_next(self, height: jnp.ndarray, prev_height: jnp.ndarray):
        """Replace the whole next buffer with the result of a step."""
        self._check_alive()
        expected = self._buffers[0].height.shape
        if height.shape != expected or prev_height.shape != expected:
            raise ValueError(f"Expected fields of shape {expected}, got {height.shape}/{prev_height.shape}")
        self._buffers[1 - self._current] = GridBuffer(height=height, prev_height=prev_height)

    def load(self, height: jnp.ndarray, prev_height: Optional[jnp.ndarray] = None):
        """
        Seed the current buffer, e.g. with an initial disturbance.

        Args:
            height: (N, N) heights
            prev_height: (N, N) heights one step back (defaults to height,
                i.e. the field starts at rest)
        """
        self._check_alive()
        dtype = self._buffers[0].height.dtype
        height = jnp.asarray(height, dtype=dtype)
        prev_height = height if prev_height is None else jnp.asarray(prev_height, dtype=dtype)
        if height.shape != self._buffers[0].height.shape:
            raise ValueError(f"Expected field of shape {self._buffers[0].height.shape}, got {height.shape}")
        self._buffers[self._current] = GridBuffer(height=height, prev_height=prev_height)

    # ------------------------------------------------------------------
    # Teardown
    # ------------------------------------------------------------------

    @property
    def released(self) -> bool:
        return self._released

    def release(self):
        """Free both buffers' device memory. Safe to call twice."""
        if self._released:
            return
        for buf in self._buffers:
            for array in buf:
                if hasattr(array, 'delete') and not array.is_deleted():
                    array.delete()
        self._buffers = []
        self._released = True
        logger.debug("Released grid buffers")

    def _check_alive(self):
        if self._released:
            raise RuntimeError("GridState used after release()")

    def _check_cell(self, row: int, col: int):
        n = self.size
        if not (0 <= row < n and 0 <= col < n):
            raise IndexError(f"Cell ({row}, {col}) outside {n}x{n} grid")


def validate_grid(grid: GridState) -> bool:
    """
    Check the current buffer for NaN/Inf values.

    Returns:
        True if every value is finite
    """
    buf = grid.current
    return bool(jnp.all(jnp.isfinite(buf.height)) and jnp.all(jnp.isfinite(buf.prev_height)))


def field_energy(height: jnp.ndarray) -> float:
    """Total field energy, sum of squared heights."""
    return float(jnp.sum(jnp.square(height)))
