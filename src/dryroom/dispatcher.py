# ===============================================================
#  Command dispatcher
#
#  Turns button edges and remote writes into Command values.
#  Buttons: press length decides noise / primary / secondary.
#  Remote: already discrete (0/1) or a numeric setpoint.
# ===============================================================

from __future__ import annotations

import logging
import math
from enum import Enum
from typing import Optional

from . import config
from .messages import ButtonEdge, Command, CommandKind, RemoteWrite, Stage

log = logging.getLogger(__name__)


class PressKind(str, Enum):
    NOISE = "noise"
    PRIMARY = "primary"
    SECONDARY = "secondary"


# channel -> (primary, secondary)
BUTTON_ACTIONS = {
    "start":   (CommandKind.START, CommandKind.STOP),
    "tracker": (CommandKind.PUSH_TRACKER, CommandKind.POP_NEWEST),
}

# remote name -> (action on 1, action on 0)
REMOTE_SWITCHES = {
    "start_stop": (CommandKind.START, CommandKind.STOP),
    "push":       (CommandKind.PUSH_TRACKER, None),
    "pop":        (CommandKind.POP_NEWEST, None),
    "shift":      (CommandKind.SHIFT_OLDEST, None),
}

REMOTE_SETPOINTS = {
    "target_humidity": CommandKind.SET_TARGET_HUMIDITY,
    "target_exposure": CommandKind.SET_TARGET_EXPOSURE,
    "max_temperature": CommandKind.SET_MAX_TEMPERATURE,
}


def classify_press(duration_s: float,
                   bounce_s: float = config.BOUNCE_S,
                   long_press_s: float = config.LONG_PRESS_S) -> PressKind:
    if duration_s < bounce_s:
        return PressKind.NOISE
    if duration_s < long_press_s:
        return PressKind.PRIMARY
    return PressKind.SECONDARY


def parse_number(payload: Optional[str]) -> Optional[float]:
    """Numeric payload or None for null/empty/garbage."""
    if payload is None:
        return None
    text = str(payload).strip()
    if not text or text.lower() in ("null", "none"):
        return None
    try:
        value = float(text)
    except ValueError:
        return None
    return value if math.isfinite(value) else None


class CommandDispatcher:
    """Normalizes button and remote input into Commands."""

    def __init__(self,
                 bounce_s: float = config.BOUNCE_S,
                 long_press_s: float = config.LONG_PRESS_S,
                 heat_guard_s: float = config.HEAT_GUARD_S) -> None:
        self.bounce_s = bounce_s
        self.long_press_s = long_press_s
        self.heat_guard_s = heat_guard_s
        self._pressed_at: dict[str, float] = {}

    def on_edge(self, edge: ButtonEdge, stage: Stage, changed_at: float) -> Optional[Command]:
        """Consume one button edge; a completed press may yield a Command.

        Args:
            edge: Raw edge from the button driver.
            stage: Current process stage.
            changed_at: Monotonic instant of the last stage change.
        """
        if edge.channel not in BUTTON_ACTIONS:
            log.warning("CMD       | edge on unknown channel %r", edge.channel)
            return None

        # Energizing the heater couples noise into the button lines.
        if stage == Stage.HEATING and edge.ts - changed_at < self.heat_guard_s:
            log.debug("CMD       | %s edge %.3fs after heating on; ignored", edge.channel, edge.ts - changed_at)
            self._pressed_at.clear()
            return None

        if edge.pressed:
            self._pressed_at[edge.channel] = edge.ts
            return None

        started = self._pressed_at.pop(edge.channel, None)
        if started is None:
            return None

        duration = edge.ts - started
        kind = classify_press(duration, self.bounce_s, self.long_press_s)
        log.info("CMD       | button %-7s press_time=%dms (%s)", edge.channel, duration * 1000, kind.value)
        if kind == PressKind.NOISE:
            return None
        primary, secondary = BUTTON_ACTIONS[edge.channel]
        return Command(primary if kind == PressKind.PRIMARY else secondary, source="button")

    def on_remote(self, write: RemoteWrite) -> Optional[Command]:
        """Map one remote write; null or unparseable values yield None."""
        value = parse_number(write.payload)

        if write.name in REMOTE_SETPOINTS:
            if value is None:
                log.debug("CMD       | %s without a value; ignored", write.name)
                return None
            return Command(REMOTE_SETPOINTS[write.name], value=value, source="remote")

        if write.name in REMOTE_SWITCHES:
            on_action, off_action = REMOTE_SWITCHES[write.name]
            if value == 1:
                return Command(on_action, source="remote")
            if value == 0:
                return Command(off_action, source="remote") if off_action else None
            log.debug("CMD       | %s=%r is not a switch value; ignored", write.name, write.payload)
            return None

        log.warning("CMD       | unknown remote command %r", write.name)
        return None
