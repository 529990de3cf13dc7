# ===============================================================
#  Remote control / telemetry channel over MQTT
#
#  Topics under dryroom/<device>/:
#    cmd/<name>         in   start_stop, push, pop, shift (0/1),
#                            target_humidity, target_exposure,
#                            max_temperature (number)
#    stage, stage/<s>   out  current stage, one 0/1 flag per stage
#    temperature, humidity, summary, trackers_active   out
#    status             out  full JSON snapshot
#    report             out  threshold reports (JSON, qos 1)
#    online             out  1 / 0 (last will)
#
#  Retained cmd/ messages are ignored so a restart never replays
#  a start. paho runs its own network thread; incoming traffic is only
#  posted to the main loop, never applied here.
# ===============================================================

from __future__ import annotations

import json
import logging
import threading
import time
from typing import Callable

import paho.mqtt.client as mqtt

from . import config
from .config import RuntimeOptions
from .engine import Outputs
from .errors import DeliveryError
from .messages import RelayIntent, RemoteConnected, RemoteWrite, Stage, StatusSnapshot
from .reports import Report

log = logging.getLogger(__name__)


class RemoteChannel:
    def __init__(self, options: RuntimeOptions, post: Callable[[object], None]) -> None:
        self.options = options
        self.base = f"{config.MQTT_TOPIC_ROOT}/{options.device_id}"
        self._post = post
        self._connected = threading.Event()

        self._client = mqtt.Client(mqtt.CallbackAPIVersion.VERSION2, client_id=f"dryroom-{options.device_id}")
        self._client.will_set(f"{self.base}/online", "0", qos=1, retain=True)
        self._client.on_connect = self._on_connect
        self._client.on_disconnect = self._on_disconnect
        self._client.on_message = self._on_message

    @property
    def connected(self) -> bool:
        return self._connected.is_set()

    def start(self) -> None:
        log.info("REMOTE    | connecting to %s:%d as %s", self.options.broker, self.options.broker_port, self.base)
        self._client.connect_async(self.options.broker, self.options.broker_port, keepalive=60)
        self._client.loop_start()

    def stop(self) -> None:
        if self.connected:
            self._client.publish(f"{self.base}/online", "0", qos=1, retain=True)
        self._client.disconnect()
        self._client.loop_stop()
        log.info("REMOTE    | disconnected")

    # ---- paho callbacks (network thread) ----
    def _on_connect(self, client, userdata, flags, reason_code, properties) -> None:
        if reason_code.is_failure:
            log.warning("REMOTE    | connect refused: %s", reason_code)
            return
        self._connected.set()
        client.subscribe(f"{self.base}/cmd/+", qos=1)
        client.publish(f"{self.base}/online", "1", qos=1, retain=True)
        log.info("REMOTE    | ready")
        self._post(RemoteConnected(ts=time.monotonic()))

    def _on_disconnect(self, client, userdata, disconnect_flags, reason_code, properties) -> None:
        self._connected.clear()
        log.warning("REMOTE    | disconnected (%s)", reason_code)

    def _on_message(self, client, userdata, msg) -> None:
        name = msg.topic.rsplit("/", 1)[-1]
        payload = msg.payload.decode("utf-8", errors="replace") if msg.payload else None
        # The broker replays retained commands on every subscribe; only live writes count.
        if msg.retain:
            log.debug("REMOTE    | retained %s <- %r dropped", name, payload)
            return
        log.debug("REMOTE    | %s <- %r", name, payload)
        self._post(RemoteWrite(name=name, payload=payload, ts=time.monotonic()))

    # ---- Outbound ----
    def publish(self, suffix: str, payload, retain: bool = True) -> None:
        """Best-effort live value push; dropped while offline."""
        if not self.connected:
            return
        self._client.publish(f"{self.base}/{suffix}", payload, qos=0, retain=retain)

    def publish_status(self, snapshot: StatusSnapshot) -> None:
        self.publish("status", json.dumps(snapshot.as_dict()))

    def send_report(self, report: Report) -> None:
        """Hand a report to the broker.

        Raises:
            DeliveryError: If offline or the client refuses the message.
        """
        if not self.connected:
            raise DeliveryError("remote channel offline")
        payload = json.dumps({
            "to": self.options.report_to,
            "subject": report.subject,
            "body": report.body,
            "created_at": report.created_at.isoformat(),
        })
        info = self._client.publish(f"{self.base}/report", payload, qos=1, retain=False)
        if info.rc != mqtt.MQTT_ERR_SUCCESS:
            raise DeliveryError(mqtt.error_string(info.rc))
        log.info("REPORT    | sent to %s (%d bytes)", self.options.report_to or f"{self.base}/report", len(payload))


class RemoteOutputs(Outputs):
    """Engine outputs fanned out to the relays and the remote panel."""

    def __init__(self, relays, remote: RemoteChannel) -> None:
        self.relays = relays
        self.remote = remote

    def drive_relays(self, intent: RelayIntent) -> None:
        self.relays.apply(intent)

    def drive_click(self, on: bool) -> None:
        self.relays.click.set(on)

    def show_stage(self, stage: Stage, indicators: dict) -> None:
        self.remote.publish("stage", stage.value)
        for name, on in indicators.items():
            self.remote.publish(f"stage/{name}", "1" if on else "0")

    def show_values(self, temperature: str, humidity: str) -> None:
        self.remote.publish("temperature", temperature, retain=False)
        self.remote.publish("humidity", humidity, retain=False)

    def show_summary(self, summary: str, trackers_active: bool) -> None:
        self.remote.publish("summary", summary)
        self.remote.publish("trackers_active", "1" if trackers_active else "0")

    def send_report(self, report: Report) -> None:
        self.remote.send_report(report)
