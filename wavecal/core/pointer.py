"""
Pointer forcing: screen-space pointer input projected onto the simulation plane.

The pointer is an explicit tagged state. While inactive it contributes no
force at all; there is no "far away" sentinel coordinate.
"""

import math
import threading
from dataclasses import dataclass
from typing import Optional, Tuple

import numpy as np

from wavecal.config.defaults import CAMERA_POSITION, CAMERA_FOV
from .domain import DomainMapping


@dataclass(frozen=True)
class PointerState:
    """
    Pointer forcing state for one frame.

    Attributes:
        active: Whether the pointer is pressed over the surface
        position: Physical (x, z); meaningful only while active
    """
    active: bool = False
    position: Tuple[float, float] = (0.0, 0.0)


INACTIVE = PointerState()


@dataclass(frozen=True)
class Camera:
    """
    Pinhole camera looking at the simulation plane (y = 0).

    Attributes:
        position: Eye position (x, y, z)
        target: Look-at point
        fov: Vertical field of view in degrees
        up: World up vector
    """
    position: Tuple[float, float, float] = CAMERA_POSITION
    target: Tuple[float, float, float] = (0.0, 0.0, 0.0)
    fov: float = CAMERA_FOV
    up: Tuple[float, float, float] = (0.0, 1.0, 0.0)

    def ray(self, screen_x: float, screen_y: float, width: float, height: float) -> Tuple[np.ndarray, np.ndarray]:
        """
        World-space ray through a screen pixel.

        Args:
            screen_x, screen_y: Pixel coordinates, origin top-left
            width, height: Viewport size in pixels

        Returns:
            (origin, unit direction)
        """
        if width <= 0 or height <= 0:
            raise ValueError(f"Viewport must be positive, got {width}x{height}")

        ndc_x = 2.0 * screen_x / width - 1.0
        ndc_y = 1.0 - 2.0 * screen_y / height

        eye = np.asarray(self.position, dtype=np.float64)
        forward = np.asarray(self.target, dtype=np.float64) - eye
        forward /= np.linalg.norm(forward)
        right = np.cross(forward, np.asarray(self.up, dtype=np.float64))
        right /= np.linalg.norm(right)
        true_up = np.cross(right, forward)

        tan_half = math.tan(math.radians(self.fov) / 2.0)
        aspect = width / height
        direction = forward + ndc_x * tan_half * aspect * right + ndc_y * tan_half * true_up
        return eye, direction / np.linalg.norm(direction)


def intersect_plane(origin: np.ndarray, direction: np.ndarray, plane_y: float = 0.0) -> Optional[Tuple[float, float]]:
    """
    Intersect a ray with the horizontal plane y = plane_y.

    Returns:
        (x, z) of the hit, or None if the ray is parallel or points away
    """
    if abs(direction[1]) < 1e-9:
        return None
    t = (plane_y - origin[1]) / direction[1]
    if t <= 0.0:
        return None
    hit = origin + t * direction
    return float(hit[0]), float(hit[2])


class PointerForcer:
    """
    Turns pointer events into a PointerState.

    While the button is down and the pointer is over the surface, the
    state is active at the picked position. Releasing the button, moving
    off the surface or leaving the element makes it inactive.
    """

    def __init__(self, mapping: Optional[DomainMapping] = None, camera: Optional[Camera] = None):
        self.mapping = mapping or DomainMapping()
        self.camera = camera or Camera()
        self._lock = threading.Lock()
        self._down = False
        self._hover: Optional[Tuple[float, float]] = None

    @property
    def state(self) -> PointerState:
        with self._lock:
            if self._down and self._hover is not None:
                return PointerState(active=True, position=self._hover)
            return INACTIVE

    @property
    def hovered(self) -> bool:
        """Whether the pointer is currently over the surface (cursor feedback)."""
        with self._lock:
            return self._hover is not None

    @property
    def is_down(self) -> bool:
        with self._lock:
            return self._down

    def pick(self, screen_x: float, screen_y: float, width: float, height: float) -> Optional[Tuple[float, float]]:
        """Physical (x, z) under a screen pixel, or None off the surface."""
        origin, direction = self.camera.ray(screen_x, screen_y, width, height)
        hit = intersect_plane(origin, direction)
        if hit is None or not self.mapping.contains_physical(*hit):
            return None
        return hit

    def on_pointer_move(self, screen_x: float, screen_y: float, width: float, height: float) -> PointerState:
        hit = self.pick(screen_x, screen_y, width, height)
        with self._lock:
            self._hover = hit
        return self.state

    def on_pointer_down(self) -> PointerState:
        with self._lock:
            self._down = True
        return self.state

    def on_pointer_up(self) -> PointerState:
        with self._lock:
            self._down = False
        return self.state

    def on_pointer_leave(self) -> PointerState:
        """Pointer left the interactive element entirely."""
        with self._lock:
            self._down = False
            self._hover = None
        return self.state

    def reset(self):
        self.on_pointer_leave()
