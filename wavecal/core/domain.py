"""
Fixed coordinate mappings between the calendar, the field and physical space.

Three coordinate systems are involved:
    - calendar cells (row, col) in [0, 6) x [0, 7), weeks x weekdays
    - normalized field coordinates (u, v) in [0, 1)^2, u along columns (x)
      and v along rows (z)
    - physical coordinates (x, z) in [-B/2, B/2]^2 on the flat simulation plane

None of the mappings depend on simulation state.
"""

from dataclasses import dataclass
from typing import Tuple

import numpy as np

from wavecal.config.defaults import CALENDAR_ROWS, CALENDAR_COLS, DEFAULT_BOUNDS


@dataclass(frozen=True)
class DomainMapping:
    """
    Affine map between calendar cells, field coordinates and physical space.

    Attributes:
        rows: Calendar weeks
        cols: Calendar weekdays
        bounds: Physical side length B of the simulation plane
    """
    rows: int = CALENDAR_ROWS
    cols: int = CALENDAR_COLS
    bounds: float = DEFAULT_BOUNDS

    # --- calendar <-> field ---

    def cell_to_uv(self, row: int, col: int) -> Tuple[float, float]:
        """Center of a calendar cell in field coordinates."""
        if not (0 <= row < self.rows and 0 <= col < self.cols):
            raise IndexError(f"Calendar cell ({row}, {col}) outside {self.rows}x{self.cols}")
        return (col + 0.5) / self.cols, (row + 0.5) / self.rows

    def uv_to_cell(self, u: float, v: float) -> Tuple[int, int]:
        """Calendar cell containing a field coordinate."""
        if not (0.0 <= u < 1.0 and 0.0 <= v < 1.0):
            raise IndexError(f"Field coordinate ({u}, {v}) outside [0, 1)^2")
        return int(v * self.rows), int(u * self.cols)

    # --- field <-> physical ---

    def uv_to_physical(self, u: float, v: float) -> Tuple[float, float]:
        half = self.bounds / 2.0
        return u * self.bounds - half, v * self.bounds - half

    def physical_to_uv(self, x: float, z: float) -> Tuple[float, float]:
        half = self.bounds / 2.0
        return (x + half) / self.bounds, (z + half) / self.bounds

    def contains_physical(self, x: float, z: float) -> bool:
        half = self.bounds / 2.0
        return -half <= x <= half and -half <= z <= half

    def cell_to_physical(self, row: int, col: int) -> Tuple[float, float]:
        return self.uv_to_physical(*self.cell_to_uv(row, col))

    # --- field <-> simulation grid ---

    def uv_to_grid(self, u: float, v: float, grid_size: int) -> Tuple[int, int]:
        """Simulation grid cell (row, col) containing a field coordinate."""
        row = min(max(int(v * grid_size), 0), grid_size - 1)
        col = min(max(int(u * grid_size), 0), grid_size - 1)
        return row, col


def cell_centers(grid_size: int, bounds: float) -> np.ndarray:
    """
    Physical coordinates of simulation grid cell centers along one axis.

    Args:
        grid_size: Cells per side
        bounds: Physical side length

    Returns:
        (grid_size,) array of coordinates in (-bounds/2, bounds/2)
    """
    spacing = bounds / grid_size
    return (np.arange(grid_size, dtype=np.float32) + 0.5) * spacing - bounds / 2.0
