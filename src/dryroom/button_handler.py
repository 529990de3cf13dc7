# src/dryroom/button_handler.py
import time
from typing import Callable

import RPi.GPIO as GPIO

from .messages import ButtonEdge


class ButtonHandler:
    """Posts a ButtonEdge for every press and release.

    The callback runs on the GPIO event thread; it must only hand the
    edge over (e.g. put it on a queue). Press length is measured by
    whoever consumes the edges.
    """

    def __init__(self, button_pin: int, channel: str,
                 callback: Callable[[ButtonEdge], None],
                 bouncetime_ms: int = 5):
        self.button_pin = button_pin
        self.channel = channel
        self.callback = callback

        GPIO.setup(self.button_pin, GPIO.IN, pull_up_down=GPIO.PUD_UP)

        try:
            GPIO.remove_event_detect(self.button_pin)
        except RuntimeError:
            pass

        GPIO.add_event_detect(
            self.button_pin,
            GPIO.BOTH,                    # press pulls to GND, release back up
            callback=self._internal_callback,
            bouncetime=bouncetime_ms
        )

    def _internal_callback(self, channel):
        now = time.monotonic()
        pressed = GPIO.input(self.button_pin) == 0
        self.callback(ButtonEdge(channel=self.channel, pressed=pressed, ts=now))

    def cleanup(self):
        try:
            GPIO.remove_event_detect(self.button_pin)
        except RuntimeError:
            pass
        GPIO.cleanup(self.button_pin)
