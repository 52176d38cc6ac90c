"""
Frame loop: the per-frame state machine driving the wave simulator.

Idle -> Running on `start()` (grid allocation, empty impulse list).
While Running each `tick()` is one atomic unit:

    sample pointer + impulses -> integrate -> barrier -> swap -> derive

Running -> Idle on `teardown()`, which releases the grid buffers. When the
JAX backend cannot host the simulation (allocation or the first kernel
compile fails), `start()` degrades to a static surface instead of raising.
"""

import threading
from collections import deque
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional, Tuple

import jax
import jax.numpy as jnp
import numpy as np

from wavecal.config.config_schema import WaveCalConfig
from wavecal.monitoring import FrameMetrics
from wavecal.recovery import RecoveryManager, SimulatorInitError, SimulatorNotRunning
from wavecal.wavecal_logging import get_logger, LogContext
from .domain import DomainMapping
from .events import EventImpulse, EventLike, EventScheduler, MonthGeometry, pack_impulses
from .grid_state import GridState, validate_grid
from .integrator import WaveIntegrator
from .pointer import INACTIVE, Camera, PointerForcer
from .surface import SurfaceFrame, SurfaceRenderer

logger = get_logger(__name__)


class LoopState(str, Enum):
    IDLE = 'idle'
    RUNNING = 'running'
    STATIC = 'static'  # init failed, flat surface only


@dataclass
class Marker:
    """Impact marker for one scheduled impulse."""
    x: float
    z: float
    intensity: float
    color: str
    cell: Tuple[int, int]

    def to_dict(self) -> Dict[str, Any]:
        return {
            'x': self.x,
            'z': self.z,
            'intensity': self.intensity,
            'color': self.color,
            'cell': list(self.cell),
        }


@dataclass
class Frame:
    """
    Everything the presentation layer needs for one frame.

    Attributes:
        step: Frames integrated so far
        time: Simulated time at the end of the frame
        height: (N, N) current heights
        surface: Positions, normals and colors
        pointer_active: Pointer forcing was applied this frame
        hovered: Pointer is over the surface (cursor feedback)
        markers: Impact markers of the scheduled impulses
        static: Frame comes from the static fallback surface
    """
    step: int
    time: float
    height: jnp.ndarray
    surface: SurfaceFrame
    pointer_active: bool = False
    hovered: bool = False
    markers: List[Marker] = field(default_factory=list)
    static: bool = False


class FrameLoop:
    """
    Owns the grid, the scheduler, the pointer and the renderer.

    All public methods are thread-safe; a tick never observes a partially
    replaced impulse set.
    """

    def __init__(self, config: Optional[WaveCalConfig] = None, camera: Optional[Camera] = None):
        self.config = config or WaveCalConfig()
        sim = self.config.simulation

        self.mapping = DomainMapping(bounds=sim.bounds)
        if camera is None:
            rc = self.config.render
            camera = Camera(position=tuple(rc.camera_position), fov=rc.camera_fov)
        self.pointer = PointerForcer(self.mapping, camera)
        self.scheduler = EventScheduler(self.config.scheduler, self.mapping)
        self.integrator = WaveIntegrator(sim)
        self.renderer = SurfaceRenderer(sim, self.config.render)
        self.recovery = RecoveryManager()
        self.metrics = FrameMetrics(budget=sim.dt)

        self.slots = self.config.scheduler.capacity + self.config.scheduler.drop_capacity
        self.state = LoopState.IDLE
        self.backend = 'none'
        self.grid: Optional[GridState] = None
        self.time = 0.0
        self.step = 0
        self.latest_frame: Optional[Frame] = None

        self._impulses: Tuple[EventImpulse, ...] = ()
        self._drops: deque = deque(maxlen=max(self.config.scheduler.drop_capacity, 1))
        self._lock = threading.RLock()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    @property
    def running(self) -> bool:
        return self.state == LoopState.RUNNING

    def start(self) -> LoopState:
        """
        Allocate the grid and enter Running.

        On an unusable backend the loop enters STATIC and serves a flat
        surface; the failure is logged once by the fallback strategy.
        """
        with self._lock:
            if self.state != LoopState.IDLE:
                return self.state

            grid_size = self.config.simulation.grid_size
            try:
                self.grid = self._allocate(grid_size)
            except SimulatorInitError as e:
                result = self.recovery.attempt_recovery(e, {'grid_size': grid_size})
                if result is None:
                    raise
                self.state = LoopState.STATIC
                self.backend = 'none'
                self.latest_frame = self._static_frame(result['height'])
                return self.state

            self.backend = jax.default_backend()
            self.time = 0.0
            self.step = 0
            self._impulses = ()
            self._drops.clear()
            self.state = LoopState.RUNNING
            logger.info(f"Frame loop running on {self.backend} ({grid_size}x{grid_size})")
            return self.state

    def _allocate(self, grid_size: int) -> GridState:
        """
        Allocate the buffers and compile the per-frame kernels once.

        The warm-up step integrates a resting field with no forcing, so the
        buffers stay zero.
        """
        grid = None
        try:
            grid = GridState.allocate(grid_size, dtype=jnp.float32)
            grid.current.height.block_until_ready()

            batch = pack_impulses((), self.slots, self.mapping)
            self.integrator.step(grid, INACTIVE, batch).block_until_ready()
            self.renderer.derive(grid).colors.block_until_ready()
        except (RuntimeError, MemoryError, TypeError) as e:
            if grid is not None:
                grid.release()
            raise SimulatorInitError(f"Cannot run {grid_size}x{grid_size} float32 simulation: {e}") from e
        return grid

    def teardown(self):
        """Release the grid and return to Idle. Safe between any two frames."""
        with self._lock:
            if self.grid is not None:
                self.grid.release()
                self.grid = None
            if self.state != LoopState.IDLE:
                logger.info(f"Frame loop stopped after {self.step} steps")
            self.state = LoopState.IDLE
            self.latest_frame = None
            self._impulses = ()
            self._drops.clear()

    # ------------------------------------------------------------------
    # Inputs
    # ------------------------------------------------------------------

    @property
    def impulses(self) -> Tuple[EventImpulse, ...]:
        return self._impulses

    def set_events(self, events: Iterable[EventLike], geometry: MonthGeometry) -> int:
        """
        Replace the impulse set for the displayed month.

        Onsets start at the current simulated time. Returns the number of
        scheduled impulses.
        """
        with self._lock:
            self._require_started()
            self._impulses = self.scheduler.recompute(events, geometry, base_time=self.time)
            return len(self._impulses)

    def drop(self, row: int, col: int) -> EventImpulse:
        """Inject a transient drop at a calendar cell, starting now."""
        with self._lock:
            self._require_started()
            impulse = self.scheduler.drop(row, col, self.time)
            if self.config.scheduler.drop_capacity > 0:
                self._drops.append(impulse)
            return impulse

    def _require_started(self):
        if self.state == LoopState.IDLE:
            raise SimulatorNotRunning("Frame loop is idle; call start() first")

    # ------------------------------------------------------------------
    # Frame
    # ------------------------------------------------------------------

    def tick(self) -> Frame:
        """
        Advance exactly one frame.

        Raises:
            SimulatorNotRunning: if the loop is idle
        """
        with self._lock:
            if self.state == LoopState.IDLE:
                raise SimulatorNotRunning("tick() on an idle frame loop")
            if self.state == LoopState.STATIC:
                return self.latest_frame

            now = self.time
            with LogContext.bind(step=self.step + 1, sim_time=now):
                with logger.timer('frame') as frame_timing:
                    pointer = self.pointer.state
                    batch = pack_impulses(
                        self._impulses + tuple(self._drops), self.slots, self.mapping, now
                    )

                    with logger.timer('integrate') as timing:
                        new_height = self.integrator.step(self.grid, pointer, batch)
                        new_height.block_until_ready()
                    self.metrics.record('integrate', timing['duration'])

                    self.grid.swap()

                    with logger.timer('derive') as timing:
                        surface = self.renderer.derive(self.grid)
                    self.metrics.record('derive', timing['duration'])

                    self.step += 1
                    self.time = self.step * self.config.simulation.dt
                    self._prune_drops()

                    self.latest_frame = Frame(
                        step=self.step,
                        time=self.time,
                        height=self.grid.current.height,
                        surface=surface,
                        pointer_active=pointer.active,
                        hovered=self.pointer.hovered,
                        markers=self.markers(),
                    )

                if self.metrics.record_frame(frame_timing['duration']):
                    logger.log_metric('frame_over_budget', frame_timing['duration'], budget=self.metrics.budget)
            return self.latest_frame

    def run(self, steps: int) -> Frame:
        """Tick `steps` times and return the last frame."""
        frame = self.latest_frame
        for _ in range(steps):
            frame = self.tick()
        return frame

    def _prune_drops(self):
        while self._drops and self._drops[0].is_expired(self.time):
            self._drops.popleft()

    def markers(self) -> List[Marker]:
        result = []
        for impulse in self._impulses:
            x, z = self.mapping.uv_to_physical(*impulse.cell_uv)
            result.append(Marker(x=x, z=z, intensity=impulse.intensity, color=impulse.color, cell=impulse.cell))
        return result

    def _static_frame(self, height: np.ndarray) -> Frame:
        return Frame(
            step=0,
            time=0.0,
            height=height,
            surface=self.renderer.static_surface(),
            static=True,
        )

    # ------------------------------------------------------------------
    # Diagnostics
    # ------------------------------------------------------------------

    def is_healthy(self) -> bool:
        with self._lock:
            if self.state != LoopState.RUNNING:
                return self.state == LoopState.STATIC
            return validate_grid(self.grid)

    def get_status(self) -> Dict[str, Any]:
        with self._lock:
            return {
                'state': self.state.value,
                'step': self.step,
                'time': self.time,
                'grid_size': self.config.simulation.grid_size,
                'impulses': len(self._impulses),
                'drops': len(self._drops),
                'pointer_active': self.pointer.state.active,
                'hovered': self.pointer.hovered,
                'backend': self.backend,
            }
