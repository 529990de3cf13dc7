# src/dryroom/aht20_sensor.py
from __future__ import annotations
import threading
import time
from typing import Optional

from .errors import SensorReadError
from .messages import Sample

try:
    import board
    import busio
    import adafruit_ahtx0
except ImportError as e:
    # Helpful message if the driver is missing
    raise ImportError(
        "Missing dependency. Install with: pip install adafruit-circuitpython-ahtx0"
    ) from e


class AHT20InitError(RuntimeError):
    pass


class AHT20Sensor:
    """
    AHT20 temperature/humidity reader producing Samples.
    - Uses I2C address 0x38 by default.
    - Reads are serialized; averaged reads smooth DHT-style jitter.
    """

    def __init__(
        self,
        address: int = 0x38,
        frequency: int = 100_000,
        settle_s: float = 0.0,
        i2c: Optional[busio.I2C] = None,
    ) -> None:
        self._lock = threading.Lock()
        try:
            self._i2c = i2c or busio.I2C(board.SCL, board.SDA, frequency=frequency)
            # Wait until the bus is ready
            t0 = time.time()
            while not self._i2c.try_lock():
                if time.time() - t0 > 1.0:
                    raise AHT20InitError("Timed out acquiring I2C bus lock")
                time.sleep(0.01)
            self._i2c.unlock()

            self._sensor = adafruit_ahtx0.AHTx0(self._i2c, address=address)
        except Exception as ex:
            raise AHT20InitError(f"Failed to init AHT20 at 0x{address:02X}: {ex}") from ex

        if settle_s > 0:
            time.sleep(settle_s)

    def read(self, samples: int = 3, interval_s: float = 0.12) -> Sample:
        """
        Averaged reading in Celsius and percent RH.
        Raises SensorReadError when the bus or the chip fails.
        """
        assert samples >= 1
        t_sum = 0.0
        h_sum = 0.0
        with self._lock:
            try:
                for i in range(samples):
                    t_sum += float(self._sensor.temperature)
                    h_sum += float(self._sensor.relative_humidity)
                    if i != samples - 1:
                        time.sleep(interval_s)
            except (OSError, RuntimeError, ValueError) as ex:
                raise SensorReadError(f"AHT20 read failed: {ex}") from ex
        return Sample(
            temperature=round(t_sum / samples, 5),
            humidity=h_sum / samples,
            captured_at=time.monotonic(),
        )
