"""
Device Session

Wires the connection, clock sync and the per-workflow controllers for one
device, and routes push messages to them by tag.
"""

import asyncio
import logging
from datetime import datetime
from typing import Awaitable, Callable, Optional

from .calibration import CalibrationSessionController
from .clock_sync import ClockSyncCoordinator
from .commands import CommandDispatcher
from .connection import ConnectionManager
from .device_client import DeviceClient
from .kfactor import KFactorTool
from .logs import LogFeed
from .messages import CalibrationUpdate, LogAppend, ReadyByUpdate, StatusUpdate, TimeSync
from .ready_by import ReadyByScheduler
from .settings import DeviceSettings
from .status import StatusReconciler

logger = logging.getLogger(__name__)


class DeviceSession:
    """All client-side state for one device, for the lifetime of the process."""

    def __init__(
        self,
        settings: DeviceSettings,
        client: Optional[DeviceClient] = None,
        connect: Optional[Callable[[str], Awaitable]] = None,
        sleep: Optional[Callable[[float], Awaitable]] = None,
        now: Optional[Callable[[], datetime]] = None,
    ):
        tz = settings.tzinfo()

        self.settings = settings
        self.client = client or DeviceClient(settings.base_url, timeout=settings.request_timeout)
        self.connection = ConnectionManager(
            settings.ws_url,
            reconnect_delay_s=settings.reconnect_delay_s,
            connect=connect,
            sleep=sleep,
        )
        self.clock_sync = ClockSyncCoordinator(self.client, now=now)
        self.status = StatusReconciler(self.client, self.clock_sync)
        self.commands = CommandDispatcher(self.client, self.connection, self.status)
        self.calibration = CalibrationSessionController(self.client, self.clock_sync, tz=tz)
        self.kfactor = KFactorTool(self.client)
        self.ready_by = ReadyByScheduler(self.client, self.clock_sync, tz=tz)
        self.logs = LogFeed(self.client, self.clock_sync)

        self._running = False
        self._register_handlers()

    @property
    def running(self) -> bool:
        return self._running

    def _register_handlers(self):
        self.connection.on_message(StatusUpdate.TYPE, self.status.apply_push_update)
        self.connection.on_message(CalibrationUpdate.TYPE, self.calibration.apply_push_update)
        self.connection.on_message(ReadyByUpdate.TYPE, self.ready_by.apply_push_update)
        self.connection.on_message(LogAppend.TYPE, self.logs.apply_push_update)
        self.connection.on_message(TimeSync.TYPE, self._on_time_sync)

    async def _on_time_sync(self, msg: TimeSync):
        await self.clock_sync.observe(msg.time_synced, self.commands.request_status)

    async def start(self):
        """Initial clock handshake, initial pulls, then the push channel."""
        if self._running:
            logger.warning("Device session already running")
            return

        self._running = True
        logger.info(f"🔥 Device session starting for {self.settings.base_url}")

        if self.settings.sync_time_on_start:
            await self.clock_sync.sync_time()

        # One request at a time on the shared requests session
        for refresh in (
            self.status.refresh_from_pull,
            self.calibration.refresh_from_pull,
            self.ready_by.refresh_from_pull,
            self.logs.refresh_from_pull,
        ):
            await refresh()

        await self.connection.start()

    async def stop(self):
        if not self._running:
            return

        self._running = False
        await self.connection.stop()
        await asyncio.to_thread(self.client.close)
        logger.info("🔥 Device session stopped")
