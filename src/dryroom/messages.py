# ===============================================================
#  Typed messages & enums shared by the core and the drivers
# ===============================================================

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Optional


class Stage(str, Enum):
    READY = "ready"
    HEATING = "heating"
    PAUSE = "pause"
    COOL = "cool"
    DONE = "done"


class CommandKind(str, Enum):
    START = "start"
    STOP = "stop"
    PUSH_TRACKER = "push_tracker"
    POP_NEWEST = "pop_newest"
    SHIFT_OLDEST = "shift_oldest"
    SET_TARGET_HUMIDITY = "set_target_humidity"
    SET_TARGET_EXPOSURE = "set_target_exposure"
    SET_MAX_TEMPERATURE = "set_max_temperature"


SET_COMMANDS = frozenset({
    CommandKind.SET_TARGET_HUMIDITY,
    CommandKind.SET_TARGET_EXPOSURE,
    CommandKind.SET_MAX_TEMPERATURE,
})


@dataclass(frozen=True)
class Sample:
    temperature: float
    humidity: float
    captured_at: float  # monotonic seconds

    @property
    def is_blank(self) -> bool:
        """Both fields exactly zero: the sensor's way of failing silently."""
        return self.temperature == 0.0 and self.humidity == 0.0


@dataclass(frozen=True)
class SensorError:
    message: str
    ts: float


@dataclass(frozen=True)
class Command:
    kind: CommandKind
    value: Optional[float] = None
    source: str = "local"


@dataclass(frozen=True)
class ButtonEdge:
    channel: str   # "start" | "tracker"
    pressed: bool
    ts: float


@dataclass(frozen=True)
class RemoteWrite:
    name: str
    payload: Optional[str]
    ts: float


@dataclass(frozen=True)
class RelayIntent:
    heat_on: bool
    fan_on: bool


@dataclass(frozen=True)
class Notice:
    tracker_id: int
    threshold: float
    label: str
    accumulated: float
    started: datetime
    projected_completion: Optional[datetime]


@dataclass(frozen=True)
class StatusSnapshot:
    stage: Stage
    indicators: dict
    temperature: Optional[str]
    humidity: Optional[str]
    summary: str
    trackers_active: bool

    def as_dict(self) -> dict:
        return {
            "stage": self.stage.value,
            **{name: int(on) for name, on in self.indicators.items()},
            "temperature": self.temperature,
            "humidity": self.humidity,
            "summary": self.summary,
            "trackers_active": int(self.trackers_active),
        }


@dataclass(frozen=True)
class RemoteConnected:
    ts: float
