# ===============================================================
#  Dryer engine
#
#  The one object that owns settings, stage, trackers, pending
#  reports and deferred actions. The app feeds it samples, ticks
#  and commands from a single thread; everything it decides goes
#  out through an Outputs object.
# ===============================================================

from __future__ import annotations

import logging
import time
from dataclasses import replace
from datetime import datetime, timezone
from typing import Callable, Optional

from . import config
from .config import Settings
from .deferred import DeferredQueue, PulseTrain
from .errors import DeliveryError
from .fsm import ProcessFSM
from .ledger import DegreeDayLedger
from .messages import (
    SET_COMMANDS, Command, CommandKind, RelayIntent, Sample, SensorError, Stage, StatusSnapshot,
)
from .persistence import PersistedState
from .reports import Report, build_report, ReportOutbox
from .texts import get_texts

log = logging.getLogger(__name__)

SETTING_FOR = {
    CommandKind.SET_TARGET_HUMIDITY: "target_humidity",
    CommandKind.SET_TARGET_EXPOSURE: "target_exposure",
    CommandKind.SET_MAX_TEMPERATURE: "max_temperature",
}


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class Outputs:
    """Where the engine's decisions go. The defaults do nothing."""

    def drive_relays(self, intent: RelayIntent) -> None:
        pass

    def drive_click(self, on: bool) -> None:
        pass

    def show_stage(self, stage: Stage, indicators: dict) -> None:
        pass

    def show_values(self, temperature: str, humidity: str) -> None:
        pass

    def show_summary(self, summary: str, trackers_active: bool) -> None:
        pass

    def send_report(self, report: Report) -> None:
        raise DeliveryError("no report channel")


class DryerEngine:
    def __init__(
        self,
        settings: Optional[Settings] = None,
        outputs: Optional[Outputs] = None,
        lang: str = "en",
        clock: Callable[[], float] = time.monotonic,
        wall_clock: Callable[[], datetime] = utc_now,
        pause_grace_s: float = config.PAUSE_GRACE_S,
        done_settle_s: float = config.DONE_SETTLE_S,
        gap_s: Optional[float] = config.SAMPLE_GAP_S,
    ) -> None:
        self.settings = settings if settings is not None else Settings()
        self.outputs = outputs if outputs is not None else Outputs()
        self.texts = get_texts(lang)
        self.done_settle_s = done_settle_s
        self._clock = clock
        self._wall_clock = wall_clock

        self.deferred = DeferredQueue()
        self.pulses = PulseTrain(self.deferred, self.outputs.drive_click,
                                 on_s=config.PULSE_ON_S, off_s=config.PULSE_OFF_S)
        self.fsm = ProcessFSM(pause_grace_s=pause_grace_s, clock=clock, on_change=self._on_stage_change)
        self.ledger = DegreeDayLedger(gap_s=gap_s)
        self.outbox = ReportOutbox()
        self.sample: Optional[Sample] = None

    # ---- Lifecycle ----
    def start(self) -> None:
        """Push the initial outputs; the stage starts as DONE."""
        self.outputs.drive_relays(self.fsm.outputs)
        self.outputs.show_stage(self.fsm.stage, self.fsm.indicators)
        self._show_summary()

    def shutdown(self) -> None:
        self.pulses.cancel()
        self.outputs.drive_relays(RelayIntent(heat_on=False, fan_on=False))
        if self.outbox:
            log.warning("REPORT    | %d undelivered report(s) dropped at shutdown", len(self.outbox))
        log.info("ENGINE    | outputs off (stage was %s)", self.fsm.stage.value)

    def snapshot_state(self) -> PersistedState:
        return PersistedState(settings=replace(self.settings), trackers=self.ledger.to_records())

    def restore_state(self, state: PersistedState) -> None:
        self.settings = replace(state.settings)
        self.ledger.load_records(state.trackers)
        log.info("ENGINE    | restored %s; %d tracker(s)", self.settings, len(self.ledger))

    # ---- Samples & ticks ----
    def on_sample(self, sample: Sample) -> bool:
        """Consume one reading; returns False when it was discarded."""
        if sample.is_blank:
            log.warning("SENSOR    | blank reading (0.0/0.0) discarded")
            return False

        self.sample = sample
        log.debug("SENSOR    | T=%5.2f C  RH=%5.2f %%", sample.temperature, sample.humidity)
        self.fsm.evaluate(sample, self.settings, sample.captured_at)

        notices = self.ledger.integrate(sample, self._wall_clock())
        self.outputs.show_values(f"{sample.temperature:.2f}C", f"{sample.humidity:.2f}%")
        if notices:
            report = build_report(notices, self.summary_text(), self.texts, self._wall_clock())
            self.outbox.queue(report)
            self.pulses.pulse(config.CLICKS_NOTICE, sample.captured_at)
        self.flush_reports()
        self._show_summary()
        return True

    def on_sensor_error(self, err: SensorError) -> None:
        log.error("SENSORERR | %s", err.message)

    def control_tick(self, now: Optional[float] = None) -> Stage:
        now = self._clock() if now is None else now
        self.fsm.evaluate(self.sample, self.settings, now)
        self.deferred.run_due(now)
        return self.fsm.stage

    # ---- Commands ----
    def apply(self, command: Command, now: Optional[float] = None) -> None:
        now = self._clock() if now is None else now
        kind = command.kind
        log.info("CMD       | %s%s (%s)", kind.value,
                 "" if command.value is None else f"={command.value:g}", command.source)

        if kind == CommandKind.START:
            self.fsm.start(now)
        elif kind == CommandKind.STOP:
            self.fsm.stop(now)
        elif kind == CommandKind.PUSH_TRACKER:
            if self.ledger.create_tracker(self.settings.target_exposure, self._wall_clock()) is not None:
                self.pulses.pulse(config.CLICKS_PUSH, now)
            self._show_summary()
        elif kind in (CommandKind.POP_NEWEST, CommandKind.SHIFT_OLDEST):
            if kind == CommandKind.POP_NEWEST:
                removed = self.ledger.discard_newest()
            else:
                removed = self.ledger.discard_oldest()
            if removed is not None:
                self.pulses.pulse(config.CLICKS_REMOVE, now)
            self._show_summary()
        elif kind in SET_COMMANDS:
            self._set(SETTING_FOR[kind], command.value)

    def _set(self, name: str, value: Optional[float]) -> None:
        if value is None:
            return
        old = getattr(self.settings, name)
        setattr(self.settings, name, float(value))
        log.info("SETPOINT  | %s %g → %g", name, old, value)

    def on_remote_connected(self) -> None:
        """Arm a finished controller and resend everything to the panel."""
        changed = self.fsm.stage == Stage.DONE and self.fsm.set_stage(Stage.READY, self._clock())
        if not changed:
            self.outputs.show_stage(self.fsm.stage, self.fsm.indicators)
        if self.sample is not None:
            self.outputs.show_values(f"{self.sample.temperature:.2f}C", f"{self.sample.humidity:.2f}%")
        self._show_summary()
        self.flush_reports()

    # ---- Outputs ----
    def flush_reports(self) -> int:
        if not self.outbox:
            return 0
        return self.outbox.flush(self.outputs.send_report)

    def summary_text(self) -> str:
        return self.ledger.summarize().render(self.texts)

    def status(self) -> StatusSnapshot:
        s = self.sample
        return StatusSnapshot(
            stage=self.fsm.stage,
            indicators=self.fsm.indicators,
            temperature=f"{s.temperature:.2f}C" if s else None,
            humidity=f"{s.humidity:.2f}%" if s else None,
            summary=self.summary_text(),
            trackers_active=len(self.ledger) > 0,
        )

    def _show_summary(self) -> None:
        self.outputs.show_summary(self.summary_text(), len(self.ledger) > 0)

    def _on_stage_change(self, prev: Stage, new: Stage) -> None:
        self.outputs.drive_relays(self.fsm.outputs)
        self.outputs.show_stage(new, self.fsm.indicators)
        if new == Stage.DONE:
            entered_at = self.fsm.changed_at
            self.deferred.schedule(
                entered_at + self.done_settle_s,
                lambda: self.fsm.set_stage(Stage.READY, entered_at + self.done_settle_s),
                guard=lambda: self.fsm.stage == Stage.DONE and self.fsm.changed_at == entered_at,
                name="done→ready",
            )
