# ===============================================================
#  Process state machine (pure, no GPIO calls)
#
#  ready/done are idle. While running, the control tick moves
#  between heating and pause from the latest sample; once the
#  humidity target has held through the pause grace the process
#  is done. Start/stop commands override the automatic rules.
# ===============================================================

from __future__ import annotations

import logging
import time
from typing import Callable, Optional

from . import config
from .config import Settings
from .messages import RelayIntent, Sample, Stage

log = logging.getLogger(__name__)

IDLE_STAGES = frozenset({Stage.READY, Stage.DONE})


class ProcessFSM:
    """Encapsulates drying policy (deterministic, testable)."""

    def __init__(
        self,
        pause_grace_s: float = config.PAUSE_GRACE_S,
        clock: Callable[[], float] = time.monotonic,
        on_change: Optional[Callable[[Stage, Stage], None]] = None,
    ) -> None:
        self.pause_grace_s = pause_grace_s
        self.on_change = on_change
        # Start in DONE so a restart never resumes heating on its own.
        self.stage: Stage = Stage.DONE
        self.changed_at: float = clock()

    # ---- Queries ----
    @property
    def is_idle(self) -> bool:
        return self.stage in IDLE_STAGES

    @property
    def outputs(self) -> RelayIntent:
        return RelayIntent(
            heat_on=(self.stage == Stage.HEATING),
            fan_on=(self.stage == Stage.COOL),
        )

    @property
    def indicators(self) -> dict:
        return {s.value: (s == self.stage) for s in Stage}

    def time_in_stage(self, now: float) -> float:
        return now - self.changed_at

    # ---- Inputs ----
    def evaluate(self, sample: Optional[Sample], settings: Settings, now: float) -> Stage:
        """Control tick: derive the next stage from the latest sample."""
        if sample is None or self.is_idle:
            return self.stage

        if sample.humidity <= settings.target_humidity:
            if self.stage == Stage.PAUSE and self.time_in_stage(now) > self.pause_grace_s:
                log.info("STATE     | humidity %.1f%% held <= %.1f%% for %.0fs",
                         sample.humidity, settings.target_humidity, self.time_in_stage(now))
                self.set_stage(Stage.DONE, now)
            elif self.stage == Stage.HEATING:
                log.info("STATE     | requested humidity %.1f%% reached: %.1f%%",
                         settings.target_humidity, sample.humidity)
                self.set_stage(Stage.PAUSE, now)
        elif sample.temperature < settings.max_temperature:
            self.set_stage(Stage.HEATING, now)
        else:
            self.set_stage(Stage.PAUSE, now)
        return self.stage

    def start(self, now: float) -> bool:
        """Manual start; wins over the automatic rules for this tick."""
        return self.set_stage(Stage.HEATING, now)

    def stop(self, now: float) -> bool:
        return self.set_stage(Stage.READY, now)

    def set_stage(self, stage: Stage, now: float) -> bool:
        """Enter ``stage``; returns False when it is already current."""
        if stage == self.stage:
            return False
        prev = self.stage
        self.stage = stage
        self.changed_at = now
        log.info("STATE     | %s  →  %s", prev.value, stage.value)
        if self.on_change is not None:
            self.on_change(prev, stage)
        return True
