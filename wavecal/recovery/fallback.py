"""
Failure types and graceful-degradation strategies for the wave simulator.

Initialization failures are fatal to the simulator only: the surrounding
application keeps running on a static, non-animated surface. The fallback
field lives in host memory, so it survives an unusable JAX backend.
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

import numpy as np

from wavecal.wavecal_logging import get_logger

logger = get_logger(__name__)


# ============================================================================
# Errors
# ============================================================================

class WaveCalError(Exception):
    """Base class for wave calendar errors."""


class SimulatorInitError(WaveCalError):
    """The execution environment cannot host the simulation buffers."""


class SimulatorNotRunning(WaveCalError):
    """A frame or input was issued while the frame loop is idle."""


# ============================================================================
# Recovery Strategy Base
# ============================================================================

class RecoveryStrategy(ABC):
    """Base class for recovery strategies."""

    @abstractmethod
    def can_recover(self, error: Exception, context: Dict[str, Any]) -> bool:
        """Check if this strategy can handle the error."""

    @abstractmethod
    def recover(self, error: Exception, context: Dict[str, Any]) -> Dict[str, Any]:
        """Attempt recovery and return new context."""


# ============================================================================
# Static Surface Fallback
# ============================================================================

class StaticSurfaceFallback(RecoveryStrategy):
    """
    Replace the animated surface with a flat one after an init failure.

    The failure is reported once per strategy instance; later failures
    are handled silently.
    """

    def __init__(self):
        self.reported = False
        self.failures = 0

    def can_recover(self, error: Exception, context: Dict[str, Any]) -> bool:
        return isinstance(error, SimulatorInitError) and 'grid_size' in context

    def recover(self, error: Exception, context: Dict[str, Any]) -> Dict[str, Any]:
        grid_size = int(context['grid_size'])
        self.failures += 1

        if not self.reported:
            logger.error(f"Wave simulator unavailable, using static surface: {error}")
            self.reported = True

        return {
            'action': 'static_surface',
            'height': np.zeros((grid_size, grid_size), dtype=np.float32),
            'failures': self.failures,
        }


# ============================================================================
# Recovery Manager
# ============================================================================

class RecoveryManager:
    """
    Runs the first strategy that accepts an error.
    """

    def __init__(self, strategies: Optional[List[RecoveryStrategy]] = None):
        self.strategies: List[RecoveryStrategy] = strategies or [StaticSurfaceFallback()]
        self.recovery_stats = {
            'total_recoveries': 0,
            'unhandled': 0,
        }

    def add_strategy(self, strategy: RecoveryStrategy):
        """Add custom recovery strategy with highest priority."""
        self.strategies.insert(0, strategy)

    def attempt_recovery(
        self,
        error: Exception,
        context: Dict[str, Any]
    ) -> Optional[Dict[str, Any]]:
        """
        Attempt recovery using available strategies.

        Returns:
            Recovery result or None if no strategy accepts the error
        """
        for strategy in self.strategies:
            if strategy.can_recover(error, context):
                result = strategy.recover(error, context)
                self.recovery_stats['total_recoveries'] += 1
                return result

        self.recovery_stats['unhandled'] += 1
        return None

    def get_stats(self) -> Dict[str, Any]:
        return {
            **self.recovery_stats,
            'strategies_count': len(self.strategies)
        }
