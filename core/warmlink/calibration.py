"""
Calibration Session Controller

Client-side mirror of the device's k-factor calibration lifecycle:

    idle -> scheduled -> running -> idle | cancelled | completed

State transitions belong to the device. The client only tracks whether one of
its own commands is in flight so controls can be disabled meanwhile. Every
mutating command is followed by a pull so the view reflects the device's
post-command state.
"""

import asyncio
import logging
import math
from dataclasses import dataclass
from datetime import tzinfo
from typing import Callable, Optional, Union

from .clock_sync import ClockSyncCoordinator
from .device_client import DeviceClient
from .exceptions import DeviceCommandError, DeviceConnectionError, DeviceResponseError, ValidationError
from .formatting import (
    PLACEHOLDER,
    format_elapsed,
    format_epoch_local,
    format_minute_of_day,
    format_temp,
    parse_minute_of_day,
)
from .messages import CalibrationUpdate
from .models import CalibrationRecord, CalibrationSession, CalibrationState, CommandResult

logger = logging.getLogger(__name__)

DEVICE_ERROR_MESSAGE = "Error talking to device"

ConfirmCallback = Callable[[str], bool]


@dataclass(frozen=True)
class CalibrationControls:
    start_enabled: bool
    cancel_enabled: bool


def calibration_controls(session: CalibrationSession, in_flight: bool = False) -> CalibrationControls:
    """Start needs an inactive session and a synced clock; cancel needs an active session."""
    active = session.state.is_active
    return CalibrationControls(
        start_enabled=not active and session.time_synced and not in_flight,
        cancel_enabled=active and not in_flight,
    )


@dataclass(frozen=True)
class CalibrationRecordView:
    epoch_utc: Optional[int]
    when: str
    k: str
    ambient: str
    target: str
    warmup: str


@dataclass(frozen=True)
class CalibrationView:
    state: str
    current_k: str
    ambient_start: str
    target_temp: str
    current_temp: str
    elapsed: str
    time_synced: bool
    auto_enabled: bool
    auto_start: str
    auto_end: str
    auto_target_cap: str
    start_enabled: bool
    cancel_enabled: bool
    records: tuple[CalibrationRecordView, ...]


def _format_k(value) -> str:
    if value is None or not math.isfinite(value):
        return PLACEHOLDER
    return f"{value:.2f}"


def describe_record(record: CalibrationRecord, tz: Optional[tzinfo] = None) -> str:
    """Confirmation text for deleting a record."""
    return (
        f"Delete calibration from {format_epoch_local(record.epoch_utc, tz)}? "
        f"k={_format_k(record.k)}, ambient {format_temp(record.ambient_c)}°C, "
        f"target {format_temp(record.target_c)}°C"
    )


def present_calibration(
    session: CalibrationSession, in_flight: bool = False, tz: Optional[tzinfo] = None
) -> CalibrationView:
    controls = calibration_controls(session, in_flight)
    return CalibrationView(
        state=session.state.value,
        current_k=_format_k(session.current_k),
        ambient_start=format_temp(session.ambient_start_c),
        target_temp=format_temp(session.target_temp_c),
        current_temp=format_temp(session.current_temp_c),
        elapsed=format_elapsed(session.elapsed_seconds),
        time_synced=session.time_synced,
        auto_enabled=session.auto_enabled,
        auto_start=format_minute_of_day(session.auto_start_minute_of_day),
        auto_end=format_minute_of_day(session.auto_end_minute_of_day),
        auto_target_cap=format_temp(session.auto_target_cap_c),
        start_enabled=controls.start_enabled,
        cancel_enabled=controls.cancel_enabled,
        records=tuple(
            CalibrationRecordView(
                epoch_utc=r.epoch_utc,
                when=format_epoch_local(r.epoch_utc, tz),
                k=_format_k(r.k),
                ambient=format_temp(r.ambient_c),
                target=format_temp(r.target_c),
                warmup=format_elapsed(r.warmup_seconds),
            )
            for r in session.records
        ),
    )


def _is_finite_number(value) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool) and math.isfinite(value)


class CalibrationSessionController:
    """Mirrors the device's calibration session and sends calibration commands."""

    def __init__(
        self,
        client: DeviceClient,
        clock_sync: Optional[ClockSyncCoordinator] = None,
        tz: Optional[tzinfo] = None,
    ):
        self.client = client
        self.clock_sync = clock_sync
        self.tz = tz
        self.session = CalibrationSession()
        self.has_snapshot = False
        self.in_flight = False
        self.last_error: Optional[str] = None

    @property
    def controls(self) -> CalibrationControls:
        return calibration_controls(self.session, self.in_flight)

    @property
    def view(self) -> CalibrationView:
        return present_calibration(self.session, self.in_flight, self.tz)

    # ------------------------------------------------------------------
    # Observation
    # ------------------------------------------------------------------

    async def refresh_from_pull(self) -> bool:
        try:
            data = await asyncio.to_thread(self.client.get_calibration)
        except (DeviceConnectionError, DeviceResponseError) as e:
            logger.error(f"Failed to load calibration status: {e}")
            self.last_error = str(e)
            return False

        update = CalibrationUpdate.from_payload(data)
        self.session = CalibrationSession().merge(update)
        self.has_snapshot = True
        self.last_error = None
        await self._observed(update.time_synced)
        return True

    async def apply_push_update(self, msg: Union[CalibrationUpdate, dict]) -> CalibrationSession:
        update = msg if isinstance(msg, CalibrationUpdate) else CalibrationUpdate.from_payload(msg)
        self.session = self.session.merge(update)
        await self._observed(update.time_synced)
        return self.session

    async def _observed(self, time_synced: Optional[bool]):
        if self.clock_sync is not None:
            await self.clock_sync.observe(time_synced, self.refresh_from_pull)

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    async def start(self, target_temp_c, start_epoch_utc: Optional[int] = None) -> CommandResult:
        """Start a calibration run now (no/zero start) or at a UTC instant."""
        if not _is_finite_number(target_temp_c):
            return CommandResult.failure("Please enter a target temperature")
        if start_epoch_utc is None:
            start_epoch_utc = 0
        if not isinstance(start_epoch_utc, int) or isinstance(start_epoch_utc, bool) or start_epoch_utc < 0:
            return CommandResult.failure("Invalid start time")

        if start_epoch_utc:
            logger.info(f"Scheduling calibration to {target_temp_c}°C at {start_epoch_utc}")
        else:
            logger.info(f"Starting calibration to {target_temp_c}°C now")
        return await self._run_command(self.client.calibration_start, float(target_temp_c), start_epoch_utc)

    async def cancel(self) -> CommandResult:
        logger.info("Cancelling calibration")
        return await self._run_command(self.client.calibration_cancel)

    async def delete_record(self, epoch_utc, confirm: Optional[ConfirmCallback] = None) -> CommandResult:
        """Delete a record by its epoch_utc identity.

        Args:
            epoch_utc: Record identity
            confirm: Receives a description of the record; returning False aborts
        """
        if epoch_utc is None or epoch_utc == "":
            return CommandResult.failure("Missing record identifier")
        try:
            epoch_utc = int(epoch_utc)
        except (TypeError, ValueError):
            return CommandResult.failure(f"Invalid record identifier: {epoch_utc!r}")

        if confirm is not None:
            record = self.session.find_record(epoch_utc)
            if record is None:
                record = CalibrationRecord(epoch_utc, math.nan, math.nan, math.nan, 0.0)
            if not confirm(describe_record(record, self.tz)):
                return CommandResult.failure("Cancelled")

        logger.info(f"Deleting calibration record {epoch_utc}")
        return await self._run_command(self.client.calibration_delete, epoch_utc)

    async def save_automation_settings(
        self,
        enabled: bool,
        start: Optional[str] = None,
        end: Optional[str] = None,
        target_cap_c: Optional[float] = None,
    ) -> CommandResult:
        """Update automatic calibration settings.

        Args:
            enabled: Whether automatic calibration runs
            start: Window start as local "HH:MM"
            end: Window end as local "HH:MM"
            target_cap_c: Highest target temperature an automatic run may use

        Omitted values are not sent and keep their device-side value.
        """
        data = {"auto_enabled": "1" if enabled else "0"}
        try:
            if start is not None:
                data["auto_start_min"] = str(parse_minute_of_day(start))
            if end is not None:
                data["auto_end_min"] = str(parse_minute_of_day(end))
        except ValidationError as e:
            return CommandResult.failure(str(e))
        if target_cap_c is not None:
            if not _is_finite_number(target_cap_c):
                return CommandResult.failure("Target cap must be a number")
            data["auto_target_cap_c"] = str(target_cap_c)

        return await self._run_command(self.client.calibration_settings, data)

    async def _run_command(self, func, *args) -> CommandResult:
        self.in_flight = True
        try:
            body = await asyncio.to_thread(func, *args)
        except DeviceCommandError as e:
            logger.warning(f"Device rejected calibration command: {e.message}")
            self.last_error = e.message
            return CommandResult.failure(e.message)
        except (DeviceConnectionError, DeviceResponseError) as e:
            logger.error(f"Calibration command failed: {e}")
            self.last_error = str(e)
            return CommandResult.failure(DEVICE_ERROR_MESSAGE)
        finally:
            self.in_flight = False

        self.last_error = None
        await self.refresh_from_pull()
        return CommandResult.success(**body)
