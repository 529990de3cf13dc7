# ===============================================================
#  Dryer – heat-dry stored items, count their degree-days
#  HW: AHT20 (I2C), Buttons (START, TRACKER), Relays (HEAT/FAN/CLICK)
#  FSM: READY, HEATING, PAUSE, COOL, DONE
#  Behavior:
#    - START short press → HEATING, long press → READY
#    - TRACKER short press → new degree-day tracker, long press → drop newest
#    - HEATING until RH <= target; over max temp → PAUSE
#    - RH held at target for the pause grace → DONE → READY after 2 s
#    - Each tracker warns at target-1, -0.5, target, +0.5 degree-days
#    - Remote control, live values and reports over MQTT
#    - Status CSV every 30 s to /dev/serial0 (falls back to console)
#
#  Required environment: DRYROOM_BROKER, DRYROOM_DEVICE_ID
# ===============================================================

import os
import sys

# --------- Make ./src importable when run from a checkout ----------
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "src")))

from dryroom.app import main  # noqa: E402

if __name__ == "__main__":
    main()
