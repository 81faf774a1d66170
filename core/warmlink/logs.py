"""
Device log feed: a pulled snapshot plus log_append push lines, newest first.
"""

import asyncio
import logging
from typing import Optional, Union

from .clock_sync import ClockSyncCoordinator
from .device_client import DeviceClient
from .exceptions import DeviceConnectionError, DeviceResponseError
from .messages import LogAppend
from .models import CommandResult, LogSnapshot

logger = logging.getLogger(__name__)

MAX_LINES = 500


class LogFeed:
    """Mirrors the device log."""

    def __init__(
        self,
        client: DeviceClient,
        clock_sync: Optional[ClockSyncCoordinator] = None,
        max_lines: int = MAX_LINES,
    ):
        self.client = client
        self.clock_sync = clock_sync
        self.max_lines = max_lines
        self.snapshot = LogSnapshot()
        self.last_error: Optional[str] = None

    async def refresh_from_pull(self) -> bool:
        try:
            data = await asyncio.to_thread(self.client.get_logs)
        except (DeviceConnectionError, DeviceResponseError) as e:
            logger.error(f"Failed to load logs: {e}")
            self.last_error = "Failed to load logs."
            return False

        text = data.get("logs")
        lines = [line for line in text.split("\n") if line.strip()] if isinstance(text, str) else []
        time_synced = data.get("time_synced")
        self.snapshot = LogSnapshot(
            lines=tuple(lines[: self.max_lines]),
            time_synced=time_synced if isinstance(time_synced, bool) else self.snapshot.time_synced,
        )
        self.last_error = None

        if self.clock_sync is not None and isinstance(time_synced, bool):
            await self.clock_sync.observe(time_synced, self.refresh_from_pull)
        return True

    async def apply_push_update(self, msg: Union[LogAppend, dict]) -> LogSnapshot:
        """Prepend one pushed line. Frames without a line are ignored."""
        append = msg if isinstance(msg, LogAppend) else LogAppend.from_payload(msg)
        if append.line:
            lines = (append.line,) + self.snapshot.lines
            self.snapshot = LogSnapshot(lines=lines[: self.max_lines], time_synced=self.snapshot.time_synced)
        return self.snapshot

    async def clear(self) -> CommandResult:
        try:
            await asyncio.to_thread(self.client.clear_logs)
        except DeviceConnectionError as e:
            logger.error(f"Failed to clear logs: {e}")
            return CommandResult.failure("Error talking to device")

        self.snapshot = LogSnapshot(time_synced=self.snapshot.time_synced)
        return CommandResult.success()
