"""
Frame timing metrics for the wave simulator.
"""

from .frame_metrics import FrameMetrics, PhaseMetrics

__all__ = [
    "FrameMetrics",
    "PhaseMetrics",
]
