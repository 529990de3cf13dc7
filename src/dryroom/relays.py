# src/dryroom/relays.py
import logging

import RPi.GPIO as GPIO

from .messages import RelayIntent

log = logging.getLogger(__name__)


class RelayOutput:
    """One relay channel. Remembers its level so repeats are free."""

    def __init__(self, pin: int, name: str, active_low: bool = False) -> None:
        self.pin = pin
        self.name = name
        self._on_level = GPIO.LOW if active_low else GPIO.HIGH
        self._off_level = GPIO.HIGH if active_low else GPIO.LOW
        GPIO.setup(pin, GPIO.OUT, initial=self._off_level)
        self.on = False

    def set(self, on: bool) -> None:
        if on == self.on:
            return
        GPIO.output(self.pin, self._on_level if on else self._off_level)
        self.on = on
        log.debug("RELAY     | %-5s %s", self.name, "ON" if on else "off")


class RelayBoard:
    """Heater, fan and the feedback click relay.

    Caller expresses intent; this driver renders it.
    """

    def __init__(self, heat_pin: int, fan_pin: int, click_pin: int, active_low: bool = False) -> None:
        self.heat = RelayOutput(heat_pin, "heat", active_low)
        self.fan = RelayOutput(fan_pin, "fan", active_low)
        self.click = RelayOutput(click_pin, "click", active_low)

    def apply(self, intent: RelayIntent) -> None:
        # Drop before raise so heat and fan never overlap.
        if not intent.heat_on:
            self.heat.set(False)
        if not intent.fan_on:
            self.fan.set(False)
        self.heat.set(intent.heat_on)
        self.fan.set(intent.fan_on)
        log.info("RELAY     | heat=%s fan=%s", int(intent.heat_on), int(intent.fan_on))

    def all_off(self) -> None:
        for relay in (self.heat, self.fan, self.click):
            relay.set(False)

    def cleanup(self) -> None:
        self.all_off()
        for relay in (self.heat, self.fan, self.click):
            GPIO.cleanup(relay.pin)
