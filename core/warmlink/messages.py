"""
Push messages from the device socket.

Every frame is a JSON object tagged by "type". Each tag maps to a structure
whose fields are all optional: a field is set only when it was present in the
payload with the expected type. Snapshots merge these structures field by
field, so a missing or wrong-typed value never overwrites a known one.

Pull responses carry the same field names and are parsed with the same
structures.
"""

import json
import logging
import math
from dataclasses import dataclass, field
from typing import Any, ClassVar, Optional, Union

from .exceptions import MalformedMessageError
from .models import CalibrationRecord, CalibrationState

logger = logging.getLogger(__name__)


# Typed field extraction -----------------------------------------------------


def _number(payload: dict, key: str) -> Optional[float]:
    value = payload.get(key)
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    if not math.isfinite(value):
        return None
    return float(value)


def _number_or(payload: dict, key: str, default: float) -> float:
    value = _number(payload, key)
    return default if value is None else value


def _integer(payload: dict, key: str) -> Optional[int]:
    value = _number(payload, key)
    if value is None or not value.is_integer():
        return None
    return int(value)


def _boolean(payload: dict, key: str) -> Optional[bool]:
    value = payload.get(key)
    return value if isinstance(value, bool) else None


def _string(payload: dict, key: str) -> Optional[str]:
    value = payload.get(key)
    return value if isinstance(value, str) else None


# Tagged union ---------------------------------------------------------------


@dataclass(frozen=True)
class StatusUpdate:
    """temp_update frame, also the shape of GET /api/status."""

    TYPE: ClassVar[str] = "temp_update"

    temp: Optional[float] = None
    heater_on: Optional[bool] = None
    deadzone_enabled: Optional[bool] = None
    in_deadzone: Optional[bool] = None
    heater_task_enabled: Optional[bool] = None
    wifi_ssid: Optional[str] = None
    current_time_label: Optional[str] = None
    time_synced: Optional[bool] = None
    target_temp: Optional[float] = None
    hysteresis: Optional[float] = None
    task_delay: Optional[float] = None
    deadzone_start: Optional[str] = None
    deadzone_end: Optional[str] = None

    @classmethod
    def from_payload(cls, payload: dict) -> "StatusUpdate":
        return cls(
            temp=_number(payload, "temp"),
            heater_on=_boolean(payload, "is_on"),
            deadzone_enabled=_boolean(payload, "dz_enabled"),
            in_deadzone=_boolean(payload, "in_deadzone"),
            heater_task_enabled=_boolean(payload, "heater_task_enabled"),
            wifi_ssid=_string(payload, "wifi_ssid"),
            current_time_label=_string(payload, "current_time"),
            time_synced=_boolean(payload, "time_synced"),
            target_temp=_number(payload, "target_temp"),
            hysteresis=_number(payload, "hyst"),
            task_delay=_number(payload, "task_delay"),
            deadzone_start=_string(payload, "dz_start"),
            deadzone_end=_string(payload, "dz_end"),
        )


def _records(payload: dict) -> Optional[tuple[CalibrationRecord, ...]]:
    raw = payload.get("records")
    if not isinstance(raw, list):
        return None
    records = []
    for item in raw:
        if not isinstance(item, dict):
            logger.debug(f"Skipping non-object calibration record: {item!r}")
            continue
        records.append(
            CalibrationRecord(
                epoch_utc=_integer(item, "epoch_utc"),
                k=_number_or(item, "k", math.nan),
                ambient_c=_number_or(item, "ambient_c", math.nan),
                target_c=_number_or(item, "target_c", math.nan),
                warmup_seconds=_number_or(item, "warmup_seconds", 0.0),
            )
        )
    return tuple(records)


def _calibration_state(payload: dict) -> Optional[CalibrationState]:
    value = _string(payload, "state")
    if value is None:
        return None
    try:
        return CalibrationState(value.lower())
    except ValueError:
        logger.debug(f"Ignoring unknown calibration state: {value!r}")
        return None


def _minute_of_day(payload: dict, key: str) -> Optional[int]:
    value = _integer(payload, key)
    if value is None or not 0 <= value < 1440:
        return None
    return value


@dataclass(frozen=True)
class CalibrationUpdate:
    """calibration_update frame, also the shape of GET /api/calibration."""

    TYPE: ClassVar[str] = "calibration_update"

    state: Optional[CalibrationState] = None
    current_k: Optional[float] = None
    ambient_start_c: Optional[float] = None
    target_temp_c: Optional[float] = None
    start_epoch_utc: Optional[int] = None
    current_temp_c: Optional[float] = None
    suggested_k: Optional[float] = None
    elapsed_seconds: Optional[float] = None
    time_synced: Optional[bool] = None
    records: Optional[tuple[CalibrationRecord, ...]] = None
    auto_enabled: Optional[bool] = None
    auto_start_minute_of_day: Optional[int] = None
    auto_end_minute_of_day: Optional[int] = None
    auto_target_cap_c: Optional[float] = None

    @classmethod
    def from_payload(cls, payload: dict) -> "CalibrationUpdate":
        return cls(
            state=_calibration_state(payload),
            current_k=_number(payload, "current_k"),
            ambient_start_c=_number(payload, "ambient_start_c"),
            target_temp_c=_number(payload, "target_temp_c"),
            start_epoch_utc=_integer(payload, "start_epoch_utc"),
            current_temp_c=_number(payload, "current_temp_c"),
            suggested_k=_number(payload, "suggested_k"),
            elapsed_seconds=_number(payload, "elapsed_seconds"),
            time_synced=_boolean(payload, "time_synced"),
            records=_records(payload),
            auto_enabled=_boolean(payload, "auto_enabled"),
            auto_start_minute_of_day=_minute_of_day(payload, "auto_start_min"),
            auto_end_minute_of_day=_minute_of_day(payload, "auto_end_min"),
            auto_target_cap_c=_number(payload, "auto_target_cap_c"),
        )


@dataclass(frozen=True)
class ReadyByUpdate:
    """ready_by_update frame, also the shape of GET /api/ready-by."""

    TYPE: ClassVar[str] = "ready_by_update"

    scheduled: Optional[bool] = None
    start_epoch_utc: Optional[int] = None
    target_epoch_utc: Optional[int] = None
    target_temp_c: Optional[float] = None
    warmup_seconds: Optional[float] = None
    current_temp: Optional[float] = None
    now_epoch_utc: Optional[int] = None
    ambient_temp_c: Optional[float] = None
    time_synced: Optional[bool] = None

    @classmethod
    def from_payload(cls, payload: dict) -> "ReadyByUpdate":
        return cls(
            scheduled=_boolean(payload, "scheduled"),
            start_epoch_utc=_integer(payload, "start_epoch_utc"),
            target_epoch_utc=_integer(payload, "target_epoch_utc"),
            target_temp_c=_number(payload, "target_temp_c"),
            warmup_seconds=_number(payload, "warmup_seconds"),
            current_temp=_number(payload, "current_temp"),
            now_epoch_utc=_integer(payload, "now_epoch_utc"),
            ambient_temp_c=_number(payload, "ambient_temp_c"),
            time_synced=_boolean(payload, "time_synced"),
        )


@dataclass(frozen=True)
class TimeSync:
    """time_sync frame: the device's clock-validity flag."""

    TYPE: ClassVar[str] = "time_sync"

    time_synced: Optional[bool] = None

    @classmethod
    def from_payload(cls, payload: dict) -> "TimeSync":
        return cls(time_synced=_boolean(payload, "time_synced"))


@dataclass(frozen=True)
class LogAppend:
    """log_append frame: one new device log line."""

    TYPE: ClassVar[str] = "log_append"

    line: Optional[str] = None

    @classmethod
    def from_payload(cls, payload: dict) -> "LogAppend":
        return cls(line=_string(payload, "line"))


@dataclass(frozen=True)
class UnknownMessage:
    """Frame with a tag this client does not know. Ignored by dispatch."""

    type: str
    payload: dict[str, Any] = field(default_factory=dict)


PushMessage = Union[StatusUpdate, CalibrationUpdate, ReadyByUpdate, TimeSync, LogAppend, UnknownMessage]

MESSAGE_TYPES = {
    cls.TYPE: cls
    for cls in (StatusUpdate, CalibrationUpdate, ReadyByUpdate, TimeSync, LogAppend)
}


def message_type(message: PushMessage) -> str:
    """Tag of a parsed message."""
    if isinstance(message, UnknownMessage):
        return message.type
    return message.TYPE


def parse_message(raw: Union[str, bytes]) -> PushMessage:
    """Parse one socket frame.

    Raises:
        MalformedMessageError: If the frame is not a JSON object with a string "type"
    """
    try:
        payload = json.loads(raw)
    except (TypeError, ValueError) as e:
        raise MalformedMessageError(f"Invalid JSON frame: {e}") from e

    if not isinstance(payload, dict):
        raise MalformedMessageError(f"Frame is not an object: {type(payload).__name__}")

    tag = payload.get("type")
    if not isinstance(tag, str):
        raise MalformedMessageError("Frame has no string 'type'")

    cls = MESSAGE_TYPES.get(tag)
    if cls is None:
        return UnknownMessage(type=tag, payload=payload)
    return cls.from_payload(payload)
