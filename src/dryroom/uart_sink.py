# src/dryroom/uart_sink.py
import logging

import serial  # pyserial

from .messages import StatusSnapshot

log = logging.getLogger(__name__)


class UartSink:
    """Write status CSV lines to the serial port or log to console.

    Columns: stage,heat,fan,temperature,humidity,trackers
    """

    def __init__(self, port: str = "/dev/serial0", baudrate: int = 115200) -> None:
        self._ser = None
        try:
            self._ser = serial.Serial(port, baudrate, timeout=0)
            log.info("UART ready at %s %d 8N1", port, baudrate)
        except (serial.SerialException, OSError) as ex:
            log.warning("UART unavailable (%s); logging to console", ex)

    @staticmethod
    def to_csv(s: StatusSnapshot) -> str:
        return (
            f"{s.stage.value},"
            f"{int(s.indicators.get('heating', False))},"
            f"{int(s.indicators.get('cool', False))},"
            f"{s.temperature or 'nan'},"
            f"{s.humidity or 'nan'},"
            f"\"{s.summary.splitlines()[0]}\"\n"
        )

    def write_snapshot(self, s: StatusSnapshot) -> None:
        csv = self.to_csv(s)
        if self._ser:
            try:
                self._ser.write(csv.encode("utf-8"))
                return
            except serial.SerialException as ex:
                log.warning("UART write failed: %s", ex)
        log.info("UART CSV  | %s", csv.strip())

    def close(self) -> None:
        if self._ser:
            self._ser.close()
            self._ser = None
