"""
Event scheduling: calendar events for the displayed month become impulses.

Each qualifying event is placed on the 6x7 month grid, weighted by its
amount and category, and given a staggered onset so concurrent events do
not all start on the same tick.
"""

import calendar
import datetime as dt
from dataclasses import dataclass
from typing import Any, Iterable, List, Mapping, Optional, Sequence, Tuple, Union

import jax.numpy as jnp
import numpy as np

from wavecal.config.config_schema import SchedulerConfig
from wavecal.config.defaults import compute_intensity, category_color, DEFAULT_EVENT_COLOR
from wavecal.wavecal_logging import get_logger
from .domain import DomainMapping
from .wave_pde import ImpulseBatch

logger = get_logger(__name__)


# ============================================================================
# Inputs
# ============================================================================

@dataclass(frozen=True)
class CalendarEvent:
    """
    One event record from the calendar.

    Attributes:
        date: Day of the event
        category: One of the category keys (anything else weighs 1.0)
        amount: Non-negative amount; None when missing
    """
    date: dt.date
    category: Optional[str] = None
    amount: Optional[float] = None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "CalendarEvent":
        """
        Build an event from a loosely-typed record.

        Accepts 'type' as an alias for 'category' and ISO date strings.
        A missing or non-numeric amount becomes None.

        Raises:
            KeyError: no date
            ValueError: date is not an ISO date
            TypeError: date is neither a string nor a date
        """
        date = data['date']
        if isinstance(date, str):
            date = dt.date.fromisoformat(date[:10])
        elif isinstance(date, dt.datetime):
            date = date.date()
        elif not isinstance(date, dt.date):
            raise TypeError(f"Unsupported date {date!r}")

        amount = data.get('amount')
        try:
            amount = float(amount) if amount is not None else None
        except (TypeError, ValueError):
            amount = None

        return cls(date=date, category=data.get('category', data.get('type')), amount=amount)


@dataclass(frozen=True)
class MonthGeometry:
    """
    Placement of a month on the 6x7 grid.

    Attributes:
        year, month: Displayed month
        leading_offset: Weekday of day 1, Monday = 0
        day_count: Days in the month
    """
    year: int
    month: int
    leading_offset: int
    day_count: int

    @classmethod
    def from_month(cls, year: int, month: int) -> "MonthGeometry":
        first_weekday, day_count = calendar.monthrange(year, month)
        return cls(year=year, month=month, leading_offset=first_weekday, day_count=day_count)

    def contains(self, date: dt.date) -> bool:
        return date.year == self.year and date.month == self.month and 1 <= date.day <= self.day_count

    def cell_for_day(self, day: int) -> Tuple[int, int]:
        """(row, col) of a day of the month."""
        if not (1 <= day <= self.day_count):
            raise ValueError(f"Day {day} outside 1..{self.day_count}")
        day_index = day - 1 + self.leading_offset
        return day_index // 7, day_index % 7


# ============================================================================
# Outputs
# ============================================================================

@dataclass(frozen=True)
class EventImpulse:
    """
    Localized, time-bounded negative perturbation for one event.

    Attributes:
        cell_uv: Field coordinates of the calendar cell center
        intensity: Non-negative strength
        onset_time: Simulated time the impulse starts
        duration: Active window length in seconds
        cell: Calendar (row, col)
        category: Source event category (None for drops)
        color: Marker color
    """
    cell_uv: Tuple[float, float]
    intensity: float
    onset_time: float
    duration: float
    cell: Tuple[int, int] = (0, 0)
    category: Optional[str] = None
    color: str = DEFAULT_EVENT_COLOR

    def is_live(self, now: float) -> bool:
        return self.onset_time <= now < self.onset_time + self.duration

    def is_expired(self, now: float) -> bool:
        return now >= self.onset_time + self.duration


# ============================================================================
# Scheduler
# ============================================================================

EventLike = Union[CalendarEvent, Mapping[str, Any]]


class EventScheduler:
    """
    Maps a month's events to an impulse list.

    `recompute` is a pure function of its arguments; the scheduler itself
    only holds configuration.
    """

    def __init__(self, config: Optional[SchedulerConfig] = None, mapping: Optional[DomainMapping] = None):
        self.config = config or SchedulerConfig()
        self.mapping = mapping or DomainMapping()

    def recompute(
        self,
        events: Iterable[EventLike],
        geometry: MonthGeometry,
        base_time: float = 0.0,
    ) -> Tuple[EventImpulse, ...]:
        """
        Build the impulse list for the displayed month.

        Events outside the month and records without a usable date are
        skipped. At most `capacity` impulses are produced, taken in input
        order; the rest are dropped.

        Args:
            events: CalendarEvent records (or dicts accepted by from_dict)
            geometry: Month placement
            base_time: Onset of the first impulse

        Returns:
            Tuple of impulses, onset staggered by index
        """
        cfg = self.config
        impulses: List[EventImpulse] = []
        skipped = 0

        for raw in events:
            if isinstance(raw, CalendarEvent):
                event = raw
            else:
                try:
                    event = CalendarEvent.from_dict(raw)
                except (KeyError, TypeError, ValueError) as e:
                    logger.debug(f"Skipping malformed event {raw!r}: {e}")
                    continue
            if not geometry.contains(event.date):
                continue
            if len(impulses) >= cfg.capacity:
                skipped += 1
                continue

            row, col = geometry.cell_for_day(event.date.day)
            index = len(impulses)
            impulses.append(EventImpulse(
                cell_uv=self.mapping.cell_to_uv(row, col),
                intensity=compute_intensity(event.amount, event.category, cfg.scale_constant),
                onset_time=base_time + index * cfg.stagger,
                duration=cfg.impulse_duration,
                cell=(row, col),
                category=event.category,
                color=category_color(event.category),
            ))

        if skipped:
            logger.debug(f"Dropped {skipped} events beyond capacity {cfg.capacity}")
        logger.debug(f"Scheduled {len(impulses)} impulses for {geometry.year}-{geometry.month:02d}")
        return tuple(impulses)

    def drop(self, row: int, col: int, now: float) -> EventImpulse:
        """Transient impulse for a click on a calendar cell."""
        return EventImpulse(
            cell_uv=self.mapping.cell_to_uv(row, col),
            intensity=self.config.drop_intensity,
            onset_time=now,
            duration=self.config.impulse_duration,
            cell=(row, col),
        )


def pack_impulses(
    impulses: Sequence[EventImpulse],
    slots: int,
    mapping: DomainMapping,
    now: float = 0.0,
) -> ImpulseBatch:
    """
    Pack impulses into fixed-size kernel arrays.

    Elapsed time is taken on the host in double precision, so the kernel
    only sees small offsets however long the loop has been running.

    Args:
        impulses: At most `slots` impulses
        slots: Batch size (fixed so the kernel is compiled once)
        mapping: Field-to-physical mapping
        now: Simulated time of the step being integrated

    Returns:
        ImpulseBatch with unused slots at zero intensity
    """
    if len(impulses) > slots:
        raise ValueError(f"{len(impulses)} impulses exceed {slots} slots")

    positions = np.zeros((slots, 2), dtype=np.float32)
    intensities = np.zeros((slots,), dtype=np.float32)
    elapsed = np.full((slots,), -1.0, dtype=np.float32)
    durations = np.ones((slots,), dtype=np.float32)

    for i, impulse in enumerate(impulses):
        positions[i] = mapping.uv_to_physical(*impulse.cell_uv)
        intensities[i] = impulse.intensity
        elapsed[i] = now - impulse.onset_time
        durations[i] = impulse.duration

    return ImpulseBatch(
        positions=jnp.asarray(positions),
        intensities=jnp.asarray(intensities),
        elapsed=jnp.asarray(elapsed),
        durations=jnp.asarray(durations),
    )
