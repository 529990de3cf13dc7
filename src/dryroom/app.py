# ===============================================================
#  Application wiring
#
#  Owns the drivers, the engine and the cooperative main loop.
#  Driver threads (GPIO edges, MQTT) only put events on a queue;
#  the loop drains it between the sample and control ticks so all
#  engine state is touched from one thread.
# ===============================================================

from __future__ import annotations

import logging
import os
import queue
import signal
import time

import RPi.GPIO as GPIO

from . import config
from .aht20_sensor import AHT20InitError, AHT20Sensor
from .button_handler import ButtonHandler
from .config import RuntimeOptions
from .dispatcher import CommandDispatcher
from .engine import DryerEngine
from .errors import ConfigurationError, SensorReadError
from .messages import ButtonEdge, RemoteConnected, RemoteWrite, SensorError
from .persistence import StateStore
from .relays import RelayBoard
from .remote import RemoteChannel, RemoteOutputs
from .uart_sink import UartSink

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

log = logging.getLogger(__name__)


class App:
    """Owns drivers, engine, and the cooperative main loop."""

    def __init__(self, options: RuntimeOptions) -> None:
        self.options = options
        self.events: "queue.Queue[object]" = queue.Queue()
        self.store = StateStore(options.state_file)
        self.dispatcher = CommandDispatcher()
        self._running = False

        log.info("Init GPIO & drivers…")
        GPIO.setmode(GPIO.BCM)
        GPIO.setwarnings(False)

        self.relays = RelayBoard(config.PIN_RELAY_HEAT, config.PIN_RELAY_FAN, config.PIN_RELAY_CLICK)
        try:
            self.sensor = AHT20Sensor(settle_s=0.2)
        except AHT20InitError as ex:
            log.exception("AHT20 init failed: %s", ex)
            self.relays.cleanup()
            GPIO.cleanup()
            raise SystemExit(1)

        self.remote = RemoteChannel(options, self.events.put)
        self.uart = UartSink(options.serial_port)

        self.engine = DryerEngine(outputs=RemoteOutputs(self.relays, self.remote), lang=options.lang)
        self.engine.restore_state(self.store.load())

        self.buttons = [
            ButtonHandler(config.PIN_BTN_START, "start", self.events.put, bouncetime_ms=config.BOUNCETIME_MS),
            ButtonHandler(config.PIN_BTN_TRACKER, "tracker", self.events.put, bouncetime_ms=config.BOUNCETIME_MS),
        ]

    # ---------- Main loop ----------
    def run(self) -> None:
        log.info("Dryer running (log level: %s)…", LOG_LEVEL)
        signal.signal(signal.SIGTERM, self._on_sigterm)
        self.engine.start()
        self.remote.start()

        now = time.monotonic()
        next_sample = now
        next_control = now + config.CONTROL_PERIOD_S
        next_status = now + config.STATUS_PERIOD_S
        self._running = True
        try:
            while self._running:
                # 1) Events from ISR / network threads
                self._drain_events()

                now = time.monotonic()
                # 2) Sample at fixed cadence
                if now >= next_sample:
                    next_sample = now + config.SAMPLE_PERIOD_S
                    try:
                        self.engine.on_sample(self.sensor.read())
                    except SensorReadError as ex:
                        self.engine.on_sensor_error(SensorError(str(ex), now))

                # 3) Control tick + deferred actions
                if now >= next_control:
                    next_control = now + config.CONTROL_PERIOD_S
                    self.engine.control_tick(now)
                else:
                    self.engine.deferred.run_due(now)

                # 4) Periodic status snapshot
                if now >= next_status:
                    next_status = now + config.STATUS_PERIOD_S
                    snap = self.engine.status()
                    self.uart.write_snapshot(snap)
                    self.remote.publish_status(snap)
                    log.debug("LEDGER    | %s", self.engine.ledger.describe())

                time.sleep(config.LOOP_PERIOD_S)
        except KeyboardInterrupt:
            log.info("KeyboardInterrupt: exiting")
        finally:
            self.cleanup()

    def _drain_events(self) -> None:
        while True:
            try:
                event = self.events.get_nowait()
            except queue.Empty:
                return
            if isinstance(event, ButtonEdge):
                command = self.dispatcher.on_edge(event, self.engine.fsm.stage, self.engine.fsm.changed_at)
            elif isinstance(event, RemoteWrite):
                command = self.dispatcher.on_remote(event)
            elif isinstance(event, RemoteConnected):
                self.engine.on_remote_connected()
                continue
            else:
                log.warning("Unknown event %r", event)
                continue
            if command is not None:
                self.engine.apply(command)

    def _on_sigterm(self, signum, frame) -> None:
        log.info("SIGTERM: exiting")
        self._running = False

    # ---------- Cleanup ----------
    def cleanup(self) -> None:
        """Save state, drop every relay, release GPIO."""
        log.info("Cleaning up…")
        self.engine.shutdown()
        try:
            self.store.save(self.engine.snapshot_state())
        except OSError as ex:
            log.error("Saving state to %s failed: %s", self.store.path, ex)
        for button in self.buttons:
            button.cleanup()
        self.remote.stop()
        self.uart.close()
        self.relays.cleanup()
        GPIO.cleanup()
        log.info("GPIO cleaned up")


def setup_logging() -> None:
    logging.basicConfig(
        level=getattr(logging, LOG_LEVEL, logging.INFO),
        format="%(asctime)s.%(msecs)03d | %(levelname)-5s | %(message)s",
        datefmt="%H:%M:%S",
    )


def main() -> None:
    setup_logging()
    # Check deployment settings before any pin is touched.
    try:
        options = RuntimeOptions.from_env()
    except ConfigurationError as ex:
        raise SystemExit(f"dryroom: {ex}")
    App(options).run()
