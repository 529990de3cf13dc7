# ===============================================================
#  Degree-day ledger
#
#  Owns the active exposure trackers. Each sample integrates
#  temperature over the time since the previous sample into every
#  tracker, refreshes the projected completion (ETC) and pops the
#  warning thresholds that have been crossed. A tracker leaves the
#  ledger once its last threshold is gone.
# ===============================================================

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Optional

from . import config
from .messages import Notice, Sample
from .texts import fmt_time

log = logging.getLogger(__name__)

SECONDS_PER_DAY = 86400.0


@dataclass(frozen=True)
class Threshold:
    value: float
    label: str


@dataclass
class Tracker:
    """Exposure accumulated by one stored item."""

    id: int
    started: datetime
    target: float
    accumulated: float = 0.0
    pending: list[Threshold] = field(default_factory=list)
    projected_completion: Optional[datetime] = None

    def as_record(self) -> dict:
        return {
            "id": self.id,
            "started": self.started.isoformat(),
            "accumulated": self.accumulated,
            "target": self.target,
            "pending": [[t.value, t.label] for t in self.pending],
        }

    @classmethod
    def from_record(cls, data: dict, fallback_id: int) -> "Tracker":
        """Rebuild a tracker from its saved record.

        Raises:
            KeyError, TypeError, ValueError: If the record is malformed.
        """
        started = datetime.fromisoformat(data["started"])
        if started.tzinfo is None:
            started = started.astimezone()
        pending = sorted(
            (Threshold(float(value), str(label)) for value, label in data["pending"]),
            key=lambda t: t.value,
        )
        return cls(
            id=int(data.get("id", fallback_id)),
            started=started,
            target=float(data["target"]),
            accumulated=float(data.get("accumulated", 0.0)),
            pending=pending,
        )


def threshold_schedule(target: float) -> list[Threshold]:
    """Warning points around ``target``; points below zero are dropped."""
    points = [Threshold(target + offset, label) for offset, label in config.THRESHOLD_OFFSETS]
    return sorted((t for t in points if t.value >= 0), key=lambda t: t.value)


@dataclass(frozen=True)
class LedgerSummary:
    count: int
    accumulated: tuple
    top_completion: Optional[datetime]

    def render(self, texts: dict) -> str:
        if self.count == 0:
            return texts["summary_empty"]
        text = f"{self.count} : " + ", ".join(f"{a:.2f}" for a in self.accumulated)
        if self.top_completion is not None:
            text += "\n" + texts["summary_etc"].format(etc=fmt_time(self.top_completion))
        return text


class DegreeDayLedger:
    """Active trackers plus the instant of the previous sample."""

    def __init__(self, gap_s: Optional[float] = config.SAMPLE_GAP_S) -> None:
        self.gap_s = gap_s
        self._trackers: list[Tracker] = []
        self._last_captured_at: Optional[float] = None
        self._next_id = 1

    def __len__(self) -> int:
        return len(self._trackers)

    @property
    def trackers(self) -> tuple:
        return tuple(self._trackers)

    # ---- Integration ----
    def integrate(self, sample: Sample, now: datetime) -> list[Notice]:
        """Credit the interval since the previous sample to every tracker.

        Args:
            sample: The new reading; only ``temperature`` and ``captured_at`` are used.
            now: Current wall-clock time, for the ETC projection.

        Returns:
            Every threshold crossing of this step, in tracker then threshold order.
        """
        previous = self._last_captured_at
        self._last_captured_at = sample.captured_at
        if previous is None:
            return []

        elapsed = sample.captured_at - previous
        if elapsed <= 0:
            return []
        if self.gap_s is not None and elapsed > self.gap_s:
            log.info("LEDGER    | %.0fs since last sample; restarting integration", elapsed)
            return []
        if not self._trackers:
            return []

        delta_days = sample.temperature * elapsed / SECONDS_PER_DAY
        notices: list[Notice] = []
        for tracker in self._trackers:
            tracker.accumulated += delta_days
            tracker.projected_completion = self._project(tracker, now)
            while tracker.pending and tracker.pending[0].value <= tracker.accumulated:
                threshold = tracker.pending.pop(0)
                log.info(
                    "NOTICE    | tracker #%d passed %g (%s) at %.3f",
                    tracker.id, threshold.value, threshold.label, tracker.accumulated,
                )
                notices.append(Notice(
                    tracker_id=tracker.id,
                    threshold=threshold.value,
                    label=threshold.label,
                    accumulated=tracker.accumulated,
                    started=tracker.started,
                    projected_completion=tracker.projected_completion,
                ))

        finished = [t.id for t in self._trackers if not t.pending]
        if finished:
            self._trackers = [t for t in self._trackers if t.pending]
            log.info("LEDGER    | retired tracker(s) %s; %d active", finished, len(self._trackers))
        return notices

    @staticmethod
    def _project(tracker: Tracker, now: datetime) -> Optional[datetime]:
        """ETC at the average rate so far, in degree-days per day."""
        elapsed_days = (now - tracker.started).total_seconds() / SECONDS_PER_DAY
        if tracker.accumulated <= 0 or elapsed_days <= 0:
            return tracker.projected_completion
        rate = tracker.accumulated / elapsed_days
        try:
            return tracker.started + timedelta(days=tracker.target / rate)
        except OverflowError:
            return None

    # ---- Tracker list ----
    def create_tracker(self, target: float, now: datetime) -> Optional[int]:
        """Start a tracker towards ``target`` degree-days; returns its id."""
        pending = threshold_schedule(target)
        if not pending:
            log.warning("LEDGER    | target %g leaves no thresholds; tracker not created", target)
            return None
        tracker = Tracker(id=self._next_id, started=now, target=target, pending=pending)
        self._next_id += 1
        self._trackers.append(tracker)
        log.info("LEDGER    | push tracker #%d (target=%g); %d active", tracker.id, target, len(self._trackers))
        return tracker.id

    def discard_newest(self) -> Optional[Tracker]:
        if not self._trackers:
            return None
        tracker = self._trackers.pop()
        log.info("LEDGER    | pop tracker #%d; %d active", tracker.id, len(self._trackers))
        return tracker

    def discard_oldest(self) -> Optional[Tracker]:
        if not self._trackers:
            return None
        tracker = self._trackers.pop(0)
        log.info("LEDGER    | shift tracker #%d; %d active", tracker.id, len(self._trackers))
        return tracker

    def summarize(self) -> LedgerSummary:
        completions = [t.projected_completion for t in self._trackers if t.projected_completion is not None]
        return LedgerSummary(
            count=len(self._trackers),
            accumulated=tuple(t.accumulated for t in self._trackers),
            top_completion=min(completions) if completions else None,
        )

    def describe(self) -> str:
        """One log line per tracker, for debugging."""
        return "; ".join(
            f"#{t.id} {t.accumulated:.4f}/{t.target:g} ETC {fmt_time(t.projected_completion)}"
            for t in self._trackers
        ) or "-"

    # ---- Persistence ----
    def to_records(self) -> list[dict]:
        return [t.as_record() for t in self._trackers]

    def load_records(self, records: list) -> None:
        """Replace the tracker list with saved records, skipping bad ones."""
        trackers: list[Tracker] = []
        for i, data in enumerate(records):
            try:
                tracker = Tracker.from_record(data, fallback_id=i + 1)
            except (KeyError, TypeError, ValueError) as ex:
                log.warning("LEDGER    | skipping malformed tracker record %r: %s", data, ex)
                continue
            if not tracker.pending:
                continue
            trackers.append(tracker)
        self._trackers = trackers
        self._next_id = max((t.id for t in trackers), default=0) + 1
        self._last_captured_at = None
