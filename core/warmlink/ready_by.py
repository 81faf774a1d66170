"""
Ready-By Scheduler

Schedules a warm-up so the target temperature is reached by a local
wall-clock time. The user picks a local date and time; the device works in
UTC epoch seconds. Conversions use the configured timezone, or the system
local timezone when none is configured.
"""

import asyncio
import logging
import math
from dataclasses import dataclass
from datetime import datetime, timedelta, tzinfo
from typing import Callable, Optional, Union

from .clock_sync import ClockSyncCoordinator
from .device_client import DeviceClient
from .exceptions import DeviceCommandError, DeviceConnectionError, DeviceResponseError, ValidationError
from .formatting import (
    PLACEHOLDER,
    epoch_to_local,
    format_epoch_local,
    format_local_date,
    format_local_hm,
    format_temp,
    format_warmup,
    local_to_epoch,
    parse_hhmm,
    parse_local_date,
)
from .messages import ReadyByUpdate
from .models import CommandResult, ReadyBySchedule

logger = logging.getLogger(__name__)

DEFAULT_READY_TIME = "07:30"


@dataclass(frozen=True)
class ReadyByForm:
    """Editable inputs: local date, local time and target temperature."""

    date: str
    time: str
    target_temp_c: Optional[float] = None


@dataclass(frozen=True)
class ReadyByView:
    status: str
    warmup: str
    start: str
    target: str
    current_temp: str
    form: ReadyByForm
    form_visible: bool  # Inputs and "Schedule" are hidden while a schedule is active
    clear_visible: bool
    time_synced: bool


class ReadyByScheduler:
    """Mirrors the device's ready-by schedule and submits schedule/clear commands."""

    def __init__(
        self,
        client: DeviceClient,
        clock_sync: Optional[ClockSyncCoordinator] = None,
        tz: Optional[tzinfo] = None,
        now: Optional[Callable[[], datetime]] = None,
    ):
        self.client = client
        self.clock_sync = clock_sync
        self.tz = tz
        self._now = now or (lambda: datetime.now(self.tz))
        self.schedule_state = ReadyBySchedule()
        self.form = self.default_form()
        self.last_error: Optional[str] = None

    def default_form(self, target_temp_c: Optional[float] = None) -> ReadyByForm:
        """Tomorrow at 07:30."""
        tomorrow = self._now() + timedelta(days=1)
        return ReadyByForm(date=format_local_date(tomorrow), time=DEFAULT_READY_TIME, target_temp_c=target_temp_c)

    @property
    def view(self) -> ReadyByView:
        s = self.schedule_state
        if s.scheduled:
            start = format_epoch_local(s.start_epoch_utc, self.tz)
            target = format_epoch_local(s.target_epoch_utc, self.tz)
            warmup = format_warmup(s.warmup_seconds)
        else:
            start = PLACEHOLDER
            target = f"{self.form.date} {self.form.time}" if self.form.date and self.form.time else PLACEHOLDER
            warmup = PLACEHOLDER

        return ReadyByView(
            status="Scheduled" if s.scheduled else "Not scheduled",
            warmup=warmup,
            start=start,
            target=target,
            current_temp=format_temp(s.current_temp),
            form=self.form,
            form_visible=not s.scheduled,
            clear_visible=s.scheduled,
            time_synced=s.time_synced,
        )

    # ------------------------------------------------------------------
    # Observation
    # ------------------------------------------------------------------

    async def refresh_from_pull(self) -> bool:
        try:
            data = await asyncio.to_thread(self.client.get_ready_by)
        except (DeviceConnectionError, DeviceResponseError) as e:
            logger.error(f"[ReadyBy] Failed to load status: {e}")
            self.last_error = str(e)
            return False

        logger.debug(f"[ReadyBy] /api/ready-by response {data}")
        self.last_error = None
        await self._apply(ReadyBySchedule(), ReadyByUpdate.from_payload(data))
        return True

    async def apply_push_update(self, msg: Union[ReadyByUpdate, dict]) -> ReadyBySchedule:
        update = msg if isinstance(msg, ReadyByUpdate) else ReadyByUpdate.from_payload(msg)
        await self._apply(self.schedule_state, update)
        return self.schedule_state

    async def _apply(self, base: ReadyBySchedule, update: ReadyByUpdate):
        self.schedule_state = base.merge(update)

        s = self.schedule_state
        local = None
        if s.scheduled and s.target_epoch_utc is not None:
            try:
                local = epoch_to_local(s.target_epoch_utc, self.tz)
            except (OverflowError, OSError, ValueError):
                logger.warning(f"[ReadyBy] Target epoch out of range: {s.target_epoch_utc}")

        if local is not None:
            # Keep the inputs in sync with the active schedule
            self.form = ReadyByForm(
                date=format_local_date(local),
                time=format_local_hm(local),
                target_temp_c=s.target_temp_c if s.target_temp_c is not None else self.form.target_temp_c,
            )

        if self.clock_sync is not None:
            await self.clock_sync.observe(update.time_synced, self.refresh_from_pull)

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    async def schedule(self, local_date, local_time, target_temp_c) -> CommandResult:
        """Schedule a warm-up so ``target_temp_c`` is reached at the local date/time."""
        if (
            not local_date
            or not local_time
            or isinstance(target_temp_c, bool)
            or not isinstance(target_temp_c, (int, float))
            or not math.isfinite(target_temp_c)
        ):
            return CommandResult.failure("Please fill date, time and target temperature")

        try:
            d = parse_local_date(local_date)
            t = parse_hhmm(local_time) if isinstance(local_time, str) else local_time
            target_epoch = local_to_epoch(d, t, self.tz)
        except ValidationError as e:
            return CommandResult.failure(str(e))

        self.form = ReadyByForm(date=d.isoformat(), time=f"{t.hour:02d}:{t.minute:02d}", target_temp_c=float(target_temp_c))

        try:
            body = await asyncio.to_thread(self.client.ready_by_schedule, target_epoch, float(target_temp_c))
        except DeviceCommandError as e:
            logger.warning(f"[ReadyBy] schedule rejected: {e.message}")
            return CommandResult.failure(e.message)
        except (DeviceConnectionError, DeviceResponseError) as e:
            logger.error(f"[ReadyBy] schedule error: {e}")
            return CommandResult.failure("Error talking to device")

        logger.info(f"[ReadyBy] scheduled {target_temp_c}°C by {self.form.date} {self.form.time} ({target_epoch})")
        await self._apply(self.schedule_state, ReadyByUpdate.from_payload(body))
        await self.refresh_from_pull()
        return CommandResult.success(target_epoch_utc=target_epoch)

    async def clear(self) -> CommandResult:
        """Cancel any schedule and restore the default inputs."""
        try:
            await asyncio.to_thread(self.client.ready_by_clear)
        except DeviceCommandError as e:
            logger.warning(f"[ReadyBy] clear rejected: {e.message}")
            return CommandResult.failure(e.message)
        except (DeviceConnectionError, DeviceResponseError) as e:
            logger.error(f"[ReadyBy] clear error: {e}")
            return CommandResult.failure("Failed to clear Ready By schedule")

        self.schedule_state = self.schedule_state.merge(ReadyByUpdate(scheduled=False))
        self.form = self.default_form(self.form.target_temp_c)
        logger.info("[ReadyBy] schedule cleared")
        return CommandResult.success()
