"""
Warmlink Data Models

Canonical snapshots of device state. Snapshots are replaced wholesale by
pull responses and merged field by field with push updates (see messages.py
for the all-optional update structures).
"""

import math
from dataclasses import dataclass, field, fields, replace
from enum import Enum
from typing import Any, Optional


class CalibrationState(str, Enum):
    """Calibration lifecycle as reported by the device."""

    IDLE = "idle"
    SCHEDULED = "scheduled"
    RUNNING = "running"
    CANCELLED = "cancelled"
    COMPLETED = "completed"

    @property
    def is_active(self) -> bool:
        return self in (CalibrationState.SCHEDULED, CalibrationState.RUNNING)


def merge_update(snapshot, update):
    """Copy of ``snapshot`` with every non-None field of ``update`` applied.

    Fields of the update that the snapshot does not have are ignored.
    """
    names = {f.name for f in fields(snapshot)}
    changes = {
        f.name: getattr(update, f.name)
        for f in fields(update)
        if f.name in names and getattr(update, f.name) is not None
    }
    return replace(snapshot, **changes) if changes else snapshot


@dataclass(frozen=True)
class DeviceStatus:
    """Heater, deadzone and clock state of the device."""

    temp: float = math.nan
    heater_on: bool = False
    deadzone_enabled: bool = False
    in_deadzone: bool = False
    heater_task_enabled: bool = False
    wifi_ssid: str = ""
    current_time_label: str = ""
    time_synced: bool = False  # Advisory, reported by the device
    target_temp: float = math.nan
    hysteresis: float = math.nan
    task_delay: float = math.nan
    deadzone_start: Optional[str] = None  # "HH:MM"
    deadzone_end: Optional[str] = None

    def merge(self, update) -> "DeviceStatus":
        return merge_update(self, update)


@dataclass(frozen=True)
class CalibrationRecord:
    """One completed calibration run. epoch_utc is its only identity."""

    epoch_utc: Optional[int]
    k: float
    ambient_c: float
    target_c: float
    warmup_seconds: float


@dataclass(frozen=True)
class CalibrationSession:
    """Device-side k-factor calibration session plus its history."""

    state: CalibrationState = CalibrationState.IDLE
    current_k: float = math.nan
    ambient_start_c: Optional[float] = None
    target_temp_c: Optional[float] = None
    start_epoch_utc: Optional[int] = None
    current_temp_c: Optional[float] = None
    suggested_k: Optional[float] = None
    elapsed_seconds: float = 0.0
    time_synced: bool = False
    records: tuple[CalibrationRecord, ...] = ()  # Server order
    auto_enabled: bool = False
    auto_start_minute_of_day: int = 0
    auto_end_minute_of_day: int = 0
    auto_target_cap_c: float = math.nan

    def merge(self, update) -> "CalibrationSession":
        return merge_update(self, update)

    def find_record(self, epoch_utc: int) -> Optional[CalibrationRecord]:
        return next((r for r in self.records if r.epoch_utc == epoch_utc), None)


@dataclass(frozen=True)
class ReadyBySchedule:
    """Scheduled warm-up reported by the device."""

    scheduled: bool = False
    start_epoch_utc: Optional[int] = None
    target_epoch_utc: Optional[int] = None
    target_temp_c: Optional[float] = None
    warmup_seconds: Optional[float] = None
    current_temp: Optional[float] = None
    now_epoch_utc: Optional[int] = None
    ambient_temp_c: Optional[float] = None
    time_synced: bool = False

    def merge(self, update) -> "ReadyBySchedule":
        merged = merge_update(self, update)
        if update.scheduled is False:
            # The device omits schedule details once nothing is scheduled
            merged = replace(
                merged,
                start_epoch_utc=None,
                target_epoch_utc=None,
                target_temp_c=None,
                warmup_seconds=None,
                now_epoch_utc=None,
                ambient_temp_c=None,
            )
        return merged


@dataclass(frozen=True)
class KFactorStatus:
    """Current k-factor and the ideal (k=1) heating rate."""

    current_k: Optional[float] = None
    ideal_seconds_per_deg: Optional[float] = None


@dataclass(frozen=True)
class KFactorSuggestion:
    """k-factor derived by the device from an observed warm-up."""

    suggested_k: float
    warmup_seconds: float
    delta_t_c: float


@dataclass(frozen=True)
class LogSnapshot:
    """Device log lines, newest first."""

    lines: tuple[str, ...] = ()
    time_synced: bool = False


@dataclass
class CommandResult:
    """Outcome of a user-initiated operation.

    Failures are reported here instead of raised so that no failure is fatal
    to the caller.
    """

    ok: bool
    error: Optional[str] = None
    data: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def success(cls, **data) -> "CommandResult":
        return cls(ok=True, data=data)

    @classmethod
    def failure(cls, error: str) -> "CommandResult":
        return cls(ok=False, error=error)
