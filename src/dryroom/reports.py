"""
Outbound reports

Each non-empty notice batch becomes one Report. Reports wait in the
outbox until the sink accepts them; a failed delivery keeps the report
(and everything queued after it) for the next flush.
"""

from __future__ import annotations

import logging
from collections import deque
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Sequence

from .errors import DeliveryError
from .messages import Notice
from .texts import fmt_time

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class Report:
    subject: str
    body: str
    notices: tuple
    created_at: datetime


def render_notice(notice: Notice, texts: dict) -> str:
    etc = notice.projected_completion
    return texts["notice"].format(
        threshold=notice.threshold,
        label=notice.label,
        accumulated=notice.accumulated,
        started=fmt_time(notice.started),
        etc=fmt_time(etc) if etc is not None else texts["etc_unknown"],
    )


def build_report(notices: Sequence[Notice], summary: str, texts: dict, now: datetime) -> Report:
    """One report for a whole batch: every notice, then the summary."""
    body = "\n".join(render_notice(n, texts) for n in notices) + "\n\n" + summary
    return Report(subject=texts["subject"], body=body, notices=tuple(notices), created_at=now)


class ReportOutbox:
    def __init__(self) -> None:
        self._pending: deque[Report] = deque()

    def __len__(self) -> int:
        return len(self._pending)

    @property
    def pending(self) -> tuple:
        return tuple(self._pending)

    def queue(self, report: Report) -> None:
        self._pending.append(report)
        log.info("REPORT    | queued (%d notice(s)); %d pending", len(report.notices), len(self._pending))

    def flush(self, sink: Callable[[Report], None]) -> int:
        """Deliver pending reports oldest first; returns how many went out."""
        sent = 0
        while self._pending:
            report = self._pending[0]
            try:
                sink(report)
            except DeliveryError as ex:
                log.warning("REPORT    | delivery failed (%s); %d kept for retry", ex, len(self._pending))
                break
            self._pending.popleft()
            sent += 1
        return sent
