"""
State file

Setpoints and the tracker list, read once at startup and written once at
shutdown. Anything missing or unreadable falls back to the defaults, one
field at a time.
"""

from __future__ import annotations

import json
import logging
import math
import os
from dataclasses import dataclass, field

from .config import Settings

log = logging.getLogger(__name__)

SETTING_FIELDS = ("target_exposure", "target_humidity", "max_temperature")


@dataclass
class PersistedState:
    settings: Settings = field(default_factory=Settings)
    trackers: list = field(default_factory=list)

    def as_dict(self) -> dict:
        data = {name: getattr(self.settings, name) for name in SETTING_FIELDS}
        data["trackers"] = list(self.trackers)
        return data

    @classmethod
    def from_dict(cls, data: dict) -> "PersistedState":
        settings = Settings()
        for name in SETTING_FIELDS:
            value = data.get(name)
            if value is None:
                continue
            try:
                value = float(value)
            except (TypeError, ValueError):
                log.warning("STATE     | ignoring saved %s=%r", name, value)
                continue
            if math.isfinite(value):
                setattr(settings, name, value)

        trackers = data.get("trackers")
        if not isinstance(trackers, list):
            if trackers is not None:
                log.warning("STATE     | saved trackers is not a list; starting empty")
            trackers = []
        return cls(settings=settings, trackers=trackers)


class StateStore:
    """JSON file holding a PersistedState."""

    def __init__(self, path: str) -> None:
        self.path = path

    def load(self) -> PersistedState:
        try:
            with open(self.path, encoding="utf-8") as f:
                data = json.load(f)
        except FileNotFoundError:
            log.info("STATE     | no state file at %s; using defaults", self.path)
            return PersistedState()
        except (OSError, ValueError) as ex:
            log.warning("STATE     | cannot read %s (%s); using defaults", self.path, ex)
            return PersistedState()

        if not isinstance(data, dict):
            log.warning("STATE     | %s does not hold an object; using defaults", self.path)
            return PersistedState()

        state = PersistedState.from_dict(data)
        log.info("STATE     | loaded %s (%d tracker(s))", self.path, len(state.trackers))
        return state

    def save(self, state: PersistedState) -> None:
        """Write atomically; safe to call more than once."""
        tmp = self.path + ".tmp"
        with open(tmp, "w", encoding="utf-8") as f:
            json.dump(state.as_dict(), f, indent=2)
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp, self.path)
        log.info("STATE     | saved %s (%d tracker(s))", self.path, len(state.trackers))
