"""
Error types and graceful degradation for the wave simulator.
"""

from .fallback import (
    WaveCalError,
    SimulatorInitError,
    SimulatorNotRunning,
    RecoveryStrategy,
    StaticSurfaceFallback,
    RecoveryManager,
)

__all__ = [
    'WaveCalError',
    'SimulatorInitError',
    'SimulatorNotRunning',
    'RecoveryStrategy',
    'StaticSurfaceFallback',
    'RecoveryManager',
]
