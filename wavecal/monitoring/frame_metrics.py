"""
Frame timing metrics for the wave simulator.

Keeps a sliding window of per-phase durations and counts frames that ran
over the frame budget.
"""

import time
import threading
import statistics
from collections import deque, defaultdict
from dataclasses import dataclass, field
from typing import Dict, Any, Optional


@dataclass
class PhaseMetrics:
    """Timing statistics for one phase of the frame (integrate, derive, ...)."""
    name: str
    count: int = 0
    total_time: float = 0.0
    min_time: float = float('inf')
    max_time: float = 0.0
    mean_time: float = 0.0
    median_time: float = 0.0
    p95_time: float = 0.0
    last_updated: float = field(default_factory=time.time)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "count": self.count,
            "total_time_s": self.total_time,
            "min_time_s": self.min_time if self.min_time != float('inf') else 0.0,
            "max_time_s": self.max_time,
            "mean_time_s": self.mean_time,
            "median_time_s": self.median_time,
            "p95_time_s": self.p95_time,
            "last_updated": self.last_updated,
        }


class FrameMetrics:
    """
    Tracks per-phase frame timings against a fixed budget.
    """

    def __init__(self, budget: float, window_size: int = 600):
        """
        Args:
            budget: Frame budget in seconds (normally the time step)
            window_size: Number of recent samples kept per phase
        """
        self.budget = budget
        self.window_size = window_size
        self.frames = 0
        self.over_budget = 0
        self._phases: Dict[str, PhaseMetrics] = {}
        self._recent: Dict[str, deque] = defaultdict(lambda: deque(maxlen=window_size))
        self._lock = threading.Lock()

    def record(self, name: str, duration: float):
        """Record one phase duration."""
        with self._lock:
            metrics = self._phases.get(name)
            if metrics is None:
                metrics = self._phases[name] = PhaseMetrics(name=name)

            metrics.count += 1
            metrics.total_time += duration
            metrics.min_time = min(metrics.min_time, duration)
            metrics.max_time = max(metrics.max_time, duration)

            recent = self._recent[name]
            recent.append(duration)
            times = list(recent)
            metrics.mean_time = statistics.mean(times)
            metrics.median_time = statistics.median(times)
            if len(times) >= 20:
                metrics.p95_time = sorted(times)[int(len(times) * 0.95)]
            metrics.last_updated = time.time()

    def record_frame(self, duration: float) -> bool:
        """
        Record a whole-frame duration.

        Returns:
            True if the frame exceeded the budget
        """
        self.record('frame', duration)
        with self._lock:
            self.frames += 1
            exceeded = duration > self.budget
            if exceeded:
                self.over_budget += 1
        return exceeded

    def get(self, name: str) -> Optional[PhaseMetrics]:
        with self._lock:
            return self._phases.get(name)

    def clear(self):
        with self._lock:
            self._phases.clear()
            self._recent.clear()
            self.frames = 0
            self.over_budget = 0

    def to_dict(self) -> Dict[str, Any]:
        with self._lock:
            return {
                "budget_s": self.budget,
                "frames": self.frames,
                "over_budget": self.over_budget,
                "phases": {name: m.to_dict() for name, m in self._phases.items()},
            }
