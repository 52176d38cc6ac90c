"""
Tests for event scheduling: placement, weighting, staggering and capacity.
"""

import datetime as dt
import logging
import math

import pytest
import numpy as np

from wavecal.config.config_schema import SchedulerConfig
from wavecal.config.defaults import category_multiplier, compute_intensity, SCALE_CONSTANT
from wavecal.core.domain import DomainMapping
from wavecal.core.events import (
    CalendarEvent,
    MonthGeometry,
    EventScheduler,
    pack_impulses,
)


JANUARY_2025 = MonthGeometry.from_month(2025, 1)


def _events(n, month=1, category='altro', amount=100.0):
    return [
        CalendarEvent(date=dt.date(2025, month, (i % 28) + 1), category=category, amount=amount + i)
        for i in range(n)
    ]


# ============================================================================
# Month geometry
# ============================================================================

def test_month_geometry_monday_first():
    # 1 January 2025 is a Wednesday
    assert JANUARY_2025.leading_offset == 2
    assert JANUARY_2025.day_count == 31

    # 1 September 2025 is a Monday
    assert MonthGeometry.from_month(2025, 9).leading_offset == 0


def test_cell_for_day():
    assert JANUARY_2025.cell_for_day(1) == (0, 2)
    assert JANUARY_2025.cell_for_day(6) == (1, 0)
    assert JANUARY_2025.cell_for_day(31) == (4, 4)

    with pytest.raises(ValueError):
        JANUARY_2025.cell_for_day(32)


def test_longest_month_fits_six_weeks():
    # March 2025 starts on a Saturday and spans six weeks
    march = MonthGeometry.from_month(2025, 3)
    assert march.cell_for_day(31) == (5, 0)


# ============================================================================
# Scenario
# ============================================================================

def test_single_event_scenario():
    scheduler = EventScheduler()
    event = CalendarEvent(date=dt.date(2025, 1, 16), category='mutui', amount=45000)

    impulses = scheduler.recompute([event], JANUARY_2025)

    assert len(impulses) == 1
    impulse = impulses[0]
    assert impulse.cell == (2, 3)
    assert impulse.intensity == pytest.approx(math.log10(45001) * 1.20 * SCALE_CONSTANT)
    assert impulse.cell_uv == pytest.approx((3.5 / 7, 2.5 / 6))
    assert impulse.onset_time == 0.0
    assert impulse.duration == pytest.approx(0.1)
    assert impulse.color == '#dc2626'


# ============================================================================
# Capacity and staggering
# ============================================================================

def test_capacity_clamp_first_seen_wins():
    scheduler = EventScheduler()
    events = _events(50)

    impulses = scheduler.recompute(events, JANUARY_2025)

    assert len(impulses) == 42
    expected = [compute_intensity(e.amount, e.category) for e in events[:42]]
    assert [i.intensity for i in impulses] == pytest.approx(expected)


def test_truncation_logged_at_debug(caplog):
    scheduler = EventScheduler()
    with caplog.at_level(logging.DEBUG, logger='wavecal'):
        scheduler.recompute(_events(45), JANUARY_2025)

    assert any('beyond capacity' in r.getMessage() for r in caplog.records)
    assert not any(r.levelno >= logging.WARNING for r in caplog.records)


def test_configured_capacity():
    scheduler = EventScheduler(SchedulerConfig(capacity=5))
    assert len(scheduler.recompute(_events(10), JANUARY_2025)) == 5


def test_onsets_staggered():
    scheduler = EventScheduler()
    impulses = scheduler.recompute(_events(4), JANUARY_2025, base_time=10.0)

    assert [i.onset_time for i in impulses] == pytest.approx([10.0, 10.5, 11.0, 11.5])


def test_recompute_is_pure():
    scheduler = EventScheduler()
    events = _events(12)

    assert scheduler.recompute(events, JANUARY_2025) == scheduler.recompute(events, JANUARY_2025)


# ============================================================================
# Malformed and out-of-month input
# ============================================================================

def test_unknown_category_uses_default_multiplier():
    assert category_multiplier('sconosciuto') == 1.0
    assert category_multiplier(None) == 1.0

    scheduler = EventScheduler()
    impulses = scheduler.recompute(
        [CalendarEvent(date=dt.date(2025, 1, 3), category='sconosciuto', amount=999)],
        JANUARY_2025,
    )
    assert impulses[0].intensity == pytest.approx(3.0 * SCALE_CONSTANT)
    assert impulses[0].color == '#3b82f6'


def test_missing_amount_counts_as_zero():
    scheduler = EventScheduler()
    impulses = scheduler.recompute([{'date': '2025-01-10', 'category': 'imposte'}], JANUARY_2025)

    assert len(impulses) == 1
    assert impulses[0].intensity == 0.0


def test_from_dict_accepts_loose_records():
    event = CalendarEvent.from_dict({'date': '2025-01-10T09:30:00', 'type': 'stipendi', 'amount': 'n/a'})

    assert event.date == dt.date(2025, 1, 10)
    assert event.category == 'stipendi'
    assert event.amount is None


def test_malformed_records_skipped(caplog):
    scheduler = EventScheduler()
    records = [
        {'category': 'altro', 'amount': 10},
        {'date': 'not-a-date', 'amount': 10},
        {'date': 20250110},
        {'date': '2025-01-10', 'category': 'imposte', 'amount': 10},
    ]
    with caplog.at_level(logging.DEBUG, logger='wavecal'):
        impulses = scheduler.recompute(records, JANUARY_2025)

    assert [i.cell for i in impulses] == [JANUARY_2025.cell_for_day(10)]
    assert impulses[0].onset_time == 0.0
    assert len([r for r in caplog.records if 'malformed' in r.getMessage()]) == 3


def test_events_outside_month_ignored():
    scheduler = EventScheduler()
    events = [
        CalendarEvent(date=dt.date(2024, 12, 31), category='altro', amount=10),
        CalendarEvent(date=dt.date(2025, 1, 1), category='altro', amount=10),
        CalendarEvent(date=dt.date(2025, 2, 1), category='altro', amount=10),
    ]

    impulses = scheduler.recompute(events, JANUARY_2025)
    assert [i.cell for i in impulses] == [(0, 2)]


def test_out_of_month_events_do_not_use_capacity():
    scheduler = EventScheduler(SchedulerConfig(capacity=2))
    events = _events(5, month=2) + _events(2, month=1)

    assert len(scheduler.recompute(events, JANUARY_2025)) == 2


# ============================================================================
# Drops and packing
# ============================================================================

def test_drop_impulse():
    scheduler = EventScheduler()
    impulse = scheduler.drop(5, 6, now=3.0)

    assert impulse.cell == (5, 6)
    assert impulse.intensity == pytest.approx(0.5)
    assert impulse.is_live(3.05)
    assert impulse.is_expired(3.2)


def test_pack_impulses_pads_unused_slots():
    mapping = DomainMapping()
    scheduler = EventScheduler(mapping=mapping)
    impulses = scheduler.recompute(_events(3), JANUARY_2025)

    batch = pack_impulses(impulses, 10, mapping)

    assert batch.positions.shape == (10, 2)
    np.testing.assert_allclose(np.asarray(batch.intensities[3:]), 0.0)
    np.testing.assert_allclose(
        np.asarray(batch.positions[0]),
        mapping.cell_to_physical(*impulses[0].cell),
        rtol=1e-6,
    )


def test_pack_impulses_rejects_overflow():
    impulses = EventScheduler().recompute(_events(5), JANUARY_2025)
    with pytest.raises(ValueError):
        pack_impulses(impulses, 4, DomainMapping())


def test_pack_impulses_times_relative_to_now():
    mapping = DomainMapping()
    scheduler = EventScheduler(mapping=mapping)
    base = 3.0e6
    impulses = scheduler.recompute(_events(2), JANUARY_2025, base_time=base)

    batch = pack_impulses(impulses, 4, mapping, now=base + 0.05)

    elapsed = np.asarray(batch.elapsed)
    assert elapsed[0] == pytest.approx(0.05, abs=1e-6)
    assert elapsed[1] == pytest.approx(-0.45, abs=1e-6)
    # Unused slots never become live
    assert np.all(elapsed[2:] < 0.0)
