# ===============================================================
#  Configuration constants and runtime options
#
#  Every constant can be overridden from the environment, the same
#  way LOG_LEVEL is read. Deployment values (broker, device id)
#  are required and collected by RuntimeOptions.from_env().
# ===============================================================

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Optional

from .errors import ConfigurationError

# Bad overrides found while the constants below are evaluated. Import
# must not fail; RuntimeOptions.from_env() reports them at startup.
ENV_ERRORS: list = []


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError:
        ENV_ERRORS.append(f"{name} must be a number, got {raw!r}")
        return default


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        ENV_ERRORS.append(f"{name} must be an integer, got {raw!r}")
        return default


# =========================
# Hardware pins (BCM)
# =========================
PIN_BTN_START   = _env_int("DRYROOM_PIN_BTN_START", 23)    # start/stop heat
PIN_BTN_TRACKER = _env_int("DRYROOM_PIN_BTN_TRACKER", 17)  # push/pop tracker

PIN_RELAY_HEAT  = _env_int("DRYROOM_PIN_RELAY_HEAT", 18)   # relay 1
PIN_RELAY_FAN   = _env_int("DRYROOM_PIN_RELAY_FAN", 24)    # relay 2
PIN_RELAY_CLICK = _env_int("DRYROOM_PIN_RELAY_CLICK", 27)  # relay 3, feedback pulses

# =========================
# Cadence
# =========================
SAMPLE_PERIOD_S  = _env_float("DRYROOM_SAMPLE_PERIOD_S", 2.0)
CONTROL_PERIOD_S = _env_float("DRYROOM_CONTROL_PERIOD_S", 1.0)
STATUS_PERIOD_S  = _env_float("DRYROOM_STATUS_PERIOD_S", 30.0)
LOOP_PERIOD_S    = 0.02

# A gap this long between samples restarts integration instead of
# crediting the whole interval at the latest temperature.
SAMPLE_GAP_S     = _env_float("DRYROOM_SAMPLE_GAP_S", 300.0)

# =========================
# Stage timing
# =========================
PAUSE_GRACE_S    = _env_float("DRYROOM_PAUSE_GRACE_S", 60.0)
DONE_SETTLE_S    = _env_float("DRYROOM_DONE_SETTLE_S", 2.0)

# =========================
# Buttons
# =========================
BOUNCE_S         = _env_float("DRYROOM_BOUNCE_S", 0.015)      # shorter = noise
LONG_PRESS_S     = _env_float("DRYROOM_LONG_PRESS_S", 1.0)    # longer = secondary
HEAT_GUARD_S     = _env_float("DRYROOM_HEAT_GUARD_S", 0.1)    # relay surge window
BOUNCETIME_MS    = 5

# =========================
# Feedback pulses
# =========================
PULSE_ON_S       = 0.15
PULSE_OFF_S      = 0.15
CLICKS_PUSH      = 1
CLICKS_REMOVE    = 2
CLICKS_NOTICE    = 3

# =========================
# Process defaults
# =========================
DEFAULT_TARGET_HUMIDITY = 10.0   # %
DEFAULT_TARGET_EXPOSURE = 40.0   # degree-days
DEFAULT_MAX_TEMPERATURE = 30.0   # °C

# Warning points around a tracker's target, ascending.
THRESHOLD_OFFSETS = (
    (-1.0, "early"),
    (-0.5, "warning"),
    (0.0,  "reached"),
    (0.5,  "overdue"),
)

MQTT_TOPIC_ROOT = "dryroom"


@dataclass
class Settings:
    """Process-wide setpoints. Persisted; mutated only by set commands."""

    target_humidity: float = DEFAULT_TARGET_HUMIDITY
    target_exposure: float = DEFAULT_TARGET_EXPOSURE
    max_temperature: float = DEFAULT_MAX_TEMPERATURE


@dataclass(frozen=True)
class RuntimeOptions:
    """Deployment values read once at startup."""

    broker: str
    device_id: str
    broker_port: int = 1883
    report_to: Optional[str] = None
    state_file: str = "dryroom_state.json"
    lang: str = "en"
    serial_port: str = "/dev/serial0"

    @classmethod
    def from_env(cls) -> "RuntimeOptions":
        """Collect options from DRYROOM_* variables.

        Raises:
            ConfigurationError: If the broker or device id is missing, or
                a numeric override could not be parsed.
        """
        broker = os.getenv("DRYROOM_BROKER", "").strip()
        device_id = os.getenv("DRYROOM_DEVICE_ID", "").strip()
        missing = [
            name for name, value in (
                ("DRYROOM_BROKER", broker),
                ("DRYROOM_DEVICE_ID", device_id),
            ) if not value
        ]
        if missing:
            raise ConfigurationError("Missing required setting(s): " + ", ".join(missing))
        if "/" in device_id or "+" in device_id or "#" in device_id:
            raise ConfigurationError(f"DRYROOM_DEVICE_ID may not contain MQTT wildcards or '/': {device_id!r}")

        broker_port = _env_int("DRYROOM_BROKER_PORT", 1883)
        if ENV_ERRORS:
            raise ConfigurationError("; ".join(ENV_ERRORS))

        return cls(
            broker=broker,
            device_id=device_id,
            broker_port=broker_port,
            report_to=os.getenv("DRYROOM_REPORT_TO") or None,
            state_file=os.getenv("DRYROOM_STATE_FILE", "dryroom_state.json"),
            lang=os.getenv("DRYROOM_LANG", "en"),
            serial_port=os.getenv("DRYROOM_SERIAL", "/dev/serial0"),
        )
