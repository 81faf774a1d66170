"""
Clock Sync Coordinator

Pushes the client's clock to the device whenever the device reports that its
clock is not synced. There is no acknowledgment: after a sync attempt the
triggering component re-requests its own state and the next observation shows
whether the flag cleared.
"""

import asyncio
import logging
from datetime import datetime, timedelta
from typing import Awaitable, Callable, Optional

from .device_client import DeviceClient
from .exceptions import DeviceConnectionError

logger = logging.getLogger(__name__)

Refresh = Callable[[], Awaitable[object]]


class ClockSyncCoordinator:
    """One-shot time correction handshake with the device."""

    def __init__(self, client: DeviceClient, now: Optional[Callable[[], datetime]] = None):
        """
        Args:
            client: Device HTTP client
            now: Clock returning the current (preferably aware) local time
        """
        self.client = client
        self._now = now or (lambda: datetime.now().astimezone())
        self._in_flight = False
        self.attempts = 0

    @property
    def in_flight(self) -> bool:
        return self._in_flight

    def current_clock(self) -> tuple[int, int]:
        """Current epoch seconds and timezone offset in minutes (east positive)."""
        now = self._now()
        if now.tzinfo is None:
            now = now.astimezone()
        offset = now.utcoffset() or timedelta(0)
        return int(now.timestamp()), int(offset.total_seconds() // 60)

    async def sync_time(self) -> bool:
        """Submit the current clock. Fire-and-forget: never raises.

        Returns:
            True if the device answered with 2xx or a redirect
        """
        epoch, tz_offset_min = self.current_clock()
        self.attempts += 1
        try:
            status = await asyncio.to_thread(self.client.sync_time, epoch, tz_offset_min)
        except DeviceConnectionError as e:
            logger.error(f"Failed to sync time: {e}")
            return False

        if not 200 <= status < 400:
            logger.warning(f"Time sync returned HTTP {status}")
            return False
        return True

    async def observe(self, time_synced: Optional[bool], refresh: Optional[Refresh] = None) -> bool:
        """React to a time_synced flag seen in any snapshot.

        Only an explicit False triggers a sync. Observations made while a sync
        cycle is already running (including the one made by ``refresh``) are
        ignored.

        Returns:
            True if a sync cycle was run
        """
        if time_synced is not False:
            return False
        if self._in_flight:
            logger.debug("Time sync already in flight, skipping")
            return False

        self._in_flight = True
        try:
            logger.info("⏰ Device clock not synced, sending correction")
            await self.sync_time()
            if refresh is not None:
                await refresh()
        finally:
            self._in_flight = False
        return True
