"""
Status Reconciler

Merges the two observation sources for heater/deadzone/clock state into one
canonical DeviceStatus:

- pull (GET /api/status): authoritative and complete, replaces the snapshot
- push (temp_update): partial, merged field by field with type checks

Labels and button styling are never stored; present_status() derives them
from the canonical fields on every call.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Callable, Optional, Union

from .clock_sync import ClockSyncCoordinator
from .device_client import DeviceClient
from .exceptions import DeviceConnectionError, DeviceResponseError
from .formatting import format_temp
from .messages import StatusUpdate
from .models import DeviceStatus

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StatusView:
    """Display-ready status derived from a DeviceStatus."""

    temp: str
    heater_state: str
    heater_button_label: str
    heater_button_class: str
    deadzone_state: str
    deadzone_button_label: str
    deadzone_button_class: str
    heater_task_state: str
    heater_task_button_label: str
    heater_task_button_class: str
    current_time: str
    wifi_ssid: str
    target_temp: str
    hysteresis: str
    task_delay: str
    deadzone_start: str
    deadzone_end: str
    time_synced: bool


def present_status(status: DeviceStatus) -> StatusView:
    """Pure derivation of the status view. Buttons offer the opposite action."""
    if status.deadzone_enabled:
        deadzone_state = "Yes" if status.in_deadzone else "No"
    else:
        deadzone_state = "Disabled"

    return StatusView(
        temp=format_temp(status.temp),
        heater_state="ON" if status.heater_on else "OFF",
        heater_button_label="Heater OFF" if status.heater_on else "Heater ON",
        heater_button_class="off" if status.heater_on else "on",
        deadzone_state=deadzone_state,
        deadzone_button_label="Disable Deadzone" if status.deadzone_enabled else "Enable Deadzone",
        deadzone_button_class="off" if status.deadzone_enabled else "on",
        heater_task_state="Enabled" if status.heater_task_enabled else "Disabled",
        heater_task_button_label=(
            "Disable Heater Task" if status.heater_task_enabled else "Enable Heater Task"
        ),
        heater_task_button_class="off" if status.heater_task_enabled else "on",
        current_time=status.current_time_label or "",
        wifi_ssid=status.wifi_ssid or "",
        target_temp=format_temp(status.target_temp),
        hysteresis=format_temp(status.hysteresis),
        task_delay=format_temp(status.task_delay),
        deadzone_start=status.deadzone_start or "",
        deadzone_end=status.deadzone_end or "",
        time_synced=status.time_synced,
    )


StatusListener = Callable[[DeviceStatus, StatusView], None]


class StatusReconciler:
    """Keeps the canonical DeviceStatus and notifies listeners on every observation."""

    def __init__(self, client: DeviceClient, clock_sync: Optional[ClockSyncCoordinator] = None):
        self.client = client
        self.clock_sync = clock_sync
        self.status = DeviceStatus()
        self.has_snapshot = False
        self.last_error: Optional[str] = None
        self._listeners: list[StatusListener] = []

    @property
    def view(self) -> StatusView:
        return present_status(self.status)

    def add_listener(self, listener: StatusListener) -> None:
        self._listeners.append(listener)

    async def refresh_from_pull(self) -> bool:
        """Fetch a full snapshot and replace the current one.

        Returns:
            True if a snapshot was applied
        """
        try:
            data = await asyncio.to_thread(self.client.get_status)
        except (DeviceConnectionError, DeviceResponseError) as e:
            logger.error(f"Failed to load status: {e}")
            self.last_error = str(e)
            return False

        update = StatusUpdate.from_payload(data)
        if update.temp is None or update.heater_on is None:
            logger.error(f"Status snapshot missing temp/is_on, ignored: {data}")
            self.last_error = "Incomplete status snapshot"
            return False

        self.status = DeviceStatus().merge(update)
        self.has_snapshot = True
        self.last_error = None
        await self._observed(self.status.time_synced)
        return True

    async def apply_push_update(self, msg: Union[StatusUpdate, dict]) -> DeviceStatus:
        """Merge a partial push payload into the live snapshot."""
        update = msg if isinstance(msg, StatusUpdate) else StatusUpdate.from_payload(msg)
        self.status = self.status.merge(update)
        await self._observed(update.time_synced)
        return self.status

    async def _observed(self, time_synced: Optional[bool]):
        view = self.view
        for listener in list(self._listeners):
            try:
                listener(self.status, view)
            except Exception as e:
                logger.error(f"Status listener failed: {e}", exc_info=True)

        if self.clock_sync is not None:
            await self.clock_sync.observe(time_synced, self.refresh_from_pull)
