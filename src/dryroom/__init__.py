"""Heat-drying controller with per-item degree-day tracking."""

__all__ = [
    "DryerEngine",
    "DegreeDayLedger",
    "ProcessFSM",
    "CommandDispatcher",
    "Settings",
    "Stage",
]

from .config import Settings
from .messages import Stage
from .ledger import DegreeDayLedger
from .fsm import ProcessFSM
from .dispatcher import CommandDispatcher
from .engine import DryerEngine
