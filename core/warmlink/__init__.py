"""Warmlink heater-controller client package."""

# Define public API
__all__ = [
    "DeviceSettings",
    "load_settings",
    "DeviceStatus",
    "CalibrationSession",
    "CalibrationRecord",
    "CalibrationState",
    "ReadyBySchedule",
    "CommandResult",
    "DeviceClient",
    "ConnectionManager",
    "ClockSyncCoordinator",
    "StatusReconciler",
    "CommandDispatcher",
    "ToggleKind",
    "CalibrationSessionController",
    "KFactorTool",
    "ReadyByScheduler",
    "LogFeed",
    "DeviceSession",
]

# Import settings
from .settings import DeviceSettings, load_settings

# Import models
from .models import (
    CalibrationRecord,
    CalibrationSession,
    CalibrationState,
    CommandResult,
    DeviceStatus,
    ReadyBySchedule,
)

# Import device client and protocol components
from .device_client import DeviceClient
from .connection import ConnectionManager
from .clock_sync import ClockSyncCoordinator
from .status import StatusReconciler
from .commands import CommandDispatcher, ToggleKind
from .calibration import CalibrationSessionController
from .kfactor import KFactorTool
from .ready_by import ReadyByScheduler
from .logs import LogFeed
from .session import DeviceSession
