# test/test_ledger.py
import os
import sys
from datetime import datetime, timedelta, timezone

import pytest

ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), '..'))
if os.path.join(ROOT, 'src') not in sys.path:
    sys.path.insert(0, os.path.join(ROOT, 'src'))

from dryroom.ledger import DegreeDayLedger, threshold_schedule
from dryroom.messages import Sample
from dryroom.texts import TEXTS

T0 = datetime(2026, 3, 1, 8, 0, tzinfo=timezone.utc)
DAY = 86400.0


def sample(temp, at):
    return Sample(temperature=temp, humidity=50.0, captured_at=at)


def test_schedule_is_four_points_around_target():
    assert [t.value for t in threshold_schedule(40.0)] == [39.0, 39.5, 40.0, 40.5]
    assert [t.label for t in threshold_schedule(40.0)] == ["early", "warning", "reached", "overdue"]


def test_schedule_drops_negative_points():
    assert [t.value for t in threshold_schedule(0.6)] == pytest.approx([0.1, 0.6, 1.1])
    assert [t.value for t in threshold_schedule(0.5)] == [0.0, 0.5, 1.0]


def test_create_without_thresholds_is_refused():
    ledger = DegreeDayLedger()
    assert ledger.create_tracker(-1.0, T0) is None
    assert len(ledger) == 0


def test_first_sample_only_records_instant():
    ledger = DegreeDayLedger(gap_s=None)
    ledger.create_tracker(40.0, T0)
    assert ledger.integrate(sample(25.0, 100.0), T0) == []
    assert ledger.trackers[0].accumulated == 0.0


def test_constant_temperature_integrates_to_degree_days():
    ledger = DegreeDayLedger(gap_s=None)
    ledger.create_tracker(40.0, T0)
    ledger.integrate(sample(20.0, 0.0), T0)
    ledger.integrate(sample(20.0, 3600.0), T0 + timedelta(hours=1))
    assert ledger.trackers[0].accumulated == pytest.approx(20.0 * 3600 / DAY)


def test_many_small_steps_add_up():
    ledger = DegreeDayLedger()
    ledger.create_tracker(40.0, T0)
    for i in range(11):
        ledger.integrate(sample(18.0, i * 60.0), T0 + timedelta(minutes=i))
    assert ledger.trackers[0].accumulated == pytest.approx(18.0 * 600 / DAY)


def test_gap_restarts_integration():
    ledger = DegreeDayLedger(gap_s=300.0)
    ledger.create_tracker(40.0, T0)
    ledger.integrate(sample(20.0, 0.0), T0)
    ledger.integrate(sample(20.0, 301.0), T0)
    assert ledger.trackers[0].accumulated == 0.0
    ledger.integrate(sample(20.0, 361.0), T0)
    assert ledger.trackers[0].accumulated == pytest.approx(20.0 * 60 / DAY)


def test_accumulation_never_decreases_for_non_negative_temperature():
    ledger = DegreeDayLedger()
    ledger.create_tracker(40.0, T0)
    seen = []
    for i, temp in enumerate([20.0, 0.0, 5.0, 0.0, 30.0]):
        ledger.integrate(sample(temp, i * 10.0), T0)
        seen.append(ledger.trackers[0].accumulated)
    assert seen == sorted(seen)


def test_crossing_two_thresholds_emits_two_notices():
    ledger = DegreeDayLedger(gap_s=None)
    tid = ledger.create_tracker(40.0, T0)
    ledger.integrate(sample(39.6, 0.0), T0)
    notices = ledger.integrate(sample(39.6, DAY), T0 + timedelta(days=1))

    assert [n.threshold for n in notices] == [39.0, 39.5]
    assert all(n.tracker_id == tid for n in notices)
    assert notices[0].accumulated == pytest.approx(39.6)
    assert [t.value for t in ledger.trackers[0].pending] == [40.0, 40.5]


def test_projection_uses_average_daily_rate():
    ledger = DegreeDayLedger(gap_s=None)
    ledger.create_tracker(40.0, T0)
    ledger.integrate(sample(39.6, 0.0), T0)
    notices = ledger.integrate(sample(39.6, DAY), T0 + timedelta(days=1))

    expected = T0 + timedelta(days=40.0 / 39.6)
    etc = ledger.trackers[0].projected_completion
    assert abs((etc - expected).total_seconds()) < 1e-3
    assert notices[-1].projected_completion == etc


def test_no_projection_before_anything_accumulated():
    ledger = DegreeDayLedger()
    ledger.create_tracker(40.0, T0)
    ledger.integrate(sample(0.0, 0.0), T0)
    ledger.integrate(sample(0.0, 10.0), T0 + timedelta(seconds=10))
    assert ledger.trackers[0].projected_completion is None


def test_tracker_retires_after_last_threshold_only():
    ledger = DegreeDayLedger(gap_s=None)
    ledger.create_tracker(40.0, T0)
    ledger.integrate(sample(40.4, 0.0), T0)
    notices = ledger.integrate(sample(40.4, DAY), T0 + timedelta(days=1))
    assert [n.threshold for n in notices] == [39.0, 39.5, 40.0]
    assert len(ledger) == 1

    notices = ledger.integrate(sample(48.0, DAY + 360.0), T0 + timedelta(days=1, seconds=360))
    assert [n.threshold for n in notices] == [40.5]
    assert len(ledger) == 0

    # retired: nothing more to report
    assert ledger.integrate(sample(48.0, DAY + 720.0), T0 + timedelta(days=1, seconds=720)) == []


def test_notices_follow_tracker_order_then_threshold_order():
    ledger = DegreeDayLedger(gap_s=None)
    first = ledger.create_tracker(2.0, T0)
    second = ledger.create_tracker(1.0, T0)
    ledger.integrate(sample(1.2, 0.0), T0)
    notices = ledger.integrate(sample(1.2, DAY), T0 + timedelta(days=1))

    assert [(n.tracker_id, n.threshold) for n in notices] == [
        (first, 1.0),
        (second, 0.0), (second, 0.5), (second, 1.0),
    ]


def test_discard_newest_and_oldest():
    ledger = DegreeDayLedger()
    assert ledger.discard_newest() is None
    assert ledger.discard_oldest() is None

    a = ledger.create_tracker(40.0, T0)
    b = ledger.create_tracker(40.0, T0)
    c = ledger.create_tracker(40.0, T0)
    assert ledger.discard_newest().id == c
    assert ledger.discard_oldest().id == a
    assert [t.id for t in ledger.trackers] == [b]


def test_summary_render():
    ledger = DegreeDayLedger(gap_s=None)
    assert ledger.summarize().render(TEXTS["en"]) == "No active trackers."
    assert ledger.summarize().render(TEXTS["da"]) == "Ingen aktiv."

    ledger.create_tracker(40.0, T0)
    ledger.create_tracker(40.0, T0 + timedelta(hours=12))
    ledger.integrate(sample(20.0, 0.0), T0 + timedelta(days=1))
    ledger.integrate(sample(20.0, DAY), T0 + timedelta(days=2))

    summary = ledger.summarize()
    assert summary.count == 2
    assert summary.accumulated == pytest.approx((20.0, 20.0))
    etcs = [t.projected_completion for t in ledger.trackers]
    assert summary.top_completion == min(etcs)

    text = summary.render(TEXTS["en"])
    assert text.startswith("2 : 20.00, 20.00\nETC: ")


def test_summary_is_read_only():
    ledger = DegreeDayLedger()
    ledger.create_tracker(40.0, T0)
    before = ledger.to_records()
    ledger.summarize()
    assert ledger.to_records() == before


def test_load_records_skips_malformed_and_sorts_pending():
    ledger = DegreeDayLedger()
    ledger.load_records([
        {"id": 7, "started": T0.isoformat(), "accumulated": 1.5, "target": 3.0,
         "pending": [[3.5, "overdue"], [2.5, "warning"], [3.0, "reached"]]},
        {"started": "not a date", "target": 3.0, "pending": []},
        {"id": 9, "started": T0.isoformat(), "target": 3.0, "pending": []},
    ])
    assert [t.id for t in ledger.trackers] == [7]
    assert [p.value for p in ledger.trackers[0].pending] == [2.5, 3.0, 3.5]
    assert ledger.create_tracker(40.0, T0) == 8


def test_zero_or_negative_elapsed_adds_nothing():
    ledger = DegreeDayLedger()
    ledger.create_tracker(40.0, T0)
    ledger.integrate(sample(20.0, 100.0), T0)
    assert ledger.integrate(sample(20.0, 100.0), T0) == []
    assert ledger.trackers[0].accumulated == 0.0

    # a step back in time only moves the anchor
    assert ledger.integrate(sample(20.0, 50.0), T0) == []
    assert ledger.trackers[0].accumulated == 0.0
    ledger.integrate(sample(20.0, 110.0), T0 + timedelta(seconds=60))
    assert ledger.trackers[0].accumulated == pytest.approx(20.0 * 60 / DAY)
