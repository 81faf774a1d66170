"""
Command Dispatcher

Relays user-initiated toggles to the device. The persistent socket is
preferred; when it is not open the matching legacy form endpoint is used.
Either way a status refresh follows so the view converges quickly.

Toggles flip state on the device. Nothing here predicts or caches the
resulting state, and a double-fired toggle flips twice.
"""

import asyncio
import logging
import math
from enum import Enum
from typing import Optional

from .connection import ConnectionManager
from .device_client import DeviceClient
from .exceptions import DeviceConnectionError, ValidationError
from .formatting import format_minute_of_day, parse_minute_of_day
from .models import CommandResult
from .status import StatusReconciler

logger = logging.getLogger(__name__)

DEVICE_ERROR_MESSAGE = "Error talking to device"

_LEGACY_PATHS = {
    "heater": "/toggle",
    "deadzone": "/toggle-deadzone",
    "heater_task": "/toggle-heater-task",
}


class ToggleKind(str, Enum):
    HEATER = "heater"
    DEADZONE = "deadzone"
    HEATER_TASK = "heater_task"

    @property
    def command(self) -> str:
        """Bare socket command, e.g. "toggle_heater_task"."""
        return f"toggle_{self.value}"

    @property
    def legacy_path(self) -> str:
        return _LEGACY_PATHS[self.value]


class CommandDispatcher:
    """Sends toggles and heater configuration changes."""

    def __init__(self, client: DeviceClient, connection: ConnectionManager, reconciler: StatusReconciler):
        self.client = client
        self.connection = connection
        self.reconciler = reconciler

    async def toggle(self, kind) -> CommandResult:
        """Toggle heater, deadzone or heater task."""
        try:
            kind = ToggleKind(kind)
        except ValueError:
            return CommandResult.failure(f"Unknown toggle: {kind!r}")

        if self.connection.is_open():
            logger.info(f"[UI] Sending {kind.command} over WebSocket")
            if await self.connection.send(kind.command):
                await self.reconciler.refresh_from_pull()
                return CommandResult.success(via="socket", command=kind.command)

        logger.info(f"[UI] WS not ready, using HTTP {kind.legacy_path}")
        try:
            await asyncio.to_thread(self.client.legacy_toggle, kind.legacy_path)
        except DeviceConnectionError as e:
            logger.error(f"Toggle {kind.value} failed: {e}")
            return CommandResult.failure(DEVICE_ERROR_MESSAGE)

        # The redirect target of the legacy form is the status page: re-pull it
        await self.reconciler.refresh_from_pull()
        return CommandResult.success(via="http", path=kind.legacy_path)

    async def request_status(self) -> bool:
        """Ask for a fresh status: a push over the socket if open, otherwise a pull."""
        if self.connection.is_open():
            return await self.connection.send("request_status")
        return await self.reconciler.refresh_from_pull()

    async def update_config(
        self,
        target: Optional[float] = None,
        hysteresis: Optional[float] = None,
        task_delay: Optional[float] = None,
        deadzone_start: Optional[str] = None,
        deadzone_end: Optional[str] = None,
    ) -> CommandResult:
        """Partial heater configuration update. Omitted fields keep device values."""
        data: dict[str, str] = {}
        try:
            for key, value in (("target", target), ("hyst", hysteresis), ("taskdelay", task_delay)):
                if value is None:
                    continue
                if not isinstance(value, (int, float)) or isinstance(value, bool) or not math.isfinite(value):
                    raise ValidationError(f"{key} must be a number")
                data[key] = str(value)
            for key, value in (("dzstart", deadzone_start), ("dzend", deadzone_end)):
                if value is not None:
                    data[key] = format_minute_of_day(parse_minute_of_day(value))
        except ValidationError as e:
            return CommandResult.failure(str(e))

        if not data:
            return CommandResult.failure("Nothing to update")

        try:
            await asyncio.to_thread(self.client.set_config, data)
        except DeviceConnectionError as e:
            logger.error(f"Config update failed: {e}")
            return CommandResult.failure(DEVICE_ERROR_MESSAGE)

        logger.info(f"Config updated: {data}")
        await self.reconciler.refresh_from_pull()
        return CommandResult.success(sent=data)

    async def reboot(self) -> CommandResult:
        """Fire-and-forget device restart."""
        try:
            await asyncio.to_thread(self.client.reboot)
        except DeviceConnectionError as e:
            logger.error(f"Failed to send reboot command: {e}")
            return CommandResult.failure(DEVICE_ERROR_MESSAGE)
        return CommandResult.success()
