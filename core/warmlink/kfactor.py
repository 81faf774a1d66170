"""
k-factor tool

Reads the device's current k-factor, asks the device to derive a k-factor
from one observed warm-up, and applies a chosen value. The derivation itself
runs on the device.
"""

import asyncio
import logging
import math
from typing import Optional

from .device_client import DeviceClient
from .exceptions import DeviceCommandError, DeviceConnectionError, DeviceResponseError
from .models import CommandResult, KFactorStatus, KFactorSuggestion

logger = logging.getLogger(__name__)


def _number(value) -> Optional[float]:
    if isinstance(value, bool) or not isinstance(value, (int, float)) or not math.isfinite(value):
        return None
    return float(value)


class KFactorTool:
    """Manual k-factor calibration helper."""

    def __init__(self, client: DeviceClient):
        self.client = client
        self.status = KFactorStatus()

    async def fetch_status(self) -> CommandResult:
        try:
            data = await asyncio.to_thread(self.client.get_kfactor_status)
        except (DeviceConnectionError, DeviceResponseError) as e:
            logger.error(f"Failed to load current kFactor: {e}")
            return CommandResult.failure("Failed to load current kFactor")

        self.status = KFactorStatus(
            current_k=_number(data.get("current_k")),
            ideal_seconds_per_deg=_number(data.get("ideal_seconds_per_deg")),
        )
        return CommandResult.success(status=self.status)

    async def suggest(self, ambient, target, warmup_min) -> CommandResult:
        """Ask the device for the k-factor matching an observed warm-up.

        On success ``data`` holds the suggestion and a one-line summary.
        """
        if any(_number(v) is None for v in (ambient, target, warmup_min)):
            return CommandResult.failure("Please fill all numbers")

        try:
            body = await asyncio.to_thread(self.client.kfactor_suggest, ambient, target, warmup_min)
        except DeviceCommandError as e:
            return CommandResult.failure(e.message)
        except (DeviceConnectionError, DeviceResponseError) as e:
            logger.error(f"kFactor suggestion failed: {e}")
            return CommandResult.failure("Suggestion failed")

        values = [_number(body.get(k)) for k in ("suggested_k", "warmup_seconds", "delta_t_c")]
        if any(v is None for v in values):
            logger.error(f"Incomplete kFactor suggestion: {body}")
            return CommandResult.failure("Suggestion failed")

        suggestion = KFactorSuggestion(*values)
        summary = (
            f"Suggested kFactor: {suggestion.suggested_k:.2f} "
            f"(observed {suggestion.warmup_seconds:.0f}s over Δ{suggestion.delta_t_c:.1f}°C)"
        )
        return CommandResult.success(suggestion=suggestion, summary=summary)

    async def apply(self, k) -> CommandResult:
        k = _number(k)
        if k is None or k <= 0:
            return CommandResult.failure("Enter a valid kFactor first.")

        try:
            await asyncio.to_thread(self.client.kfactor_apply, k)
        except DeviceCommandError as e:
            return CommandResult.failure(e.message)
        except (DeviceConnectionError, DeviceResponseError) as e:
            logger.error(f"kFactor apply failed: {e}")
            return CommandResult.failure("Save failed")

        logger.info(f"Saved kFactor = {k:.2f}")
        self.status = KFactorStatus(current_k=k, ideal_seconds_per_deg=self.status.ideal_seconds_per_deg)
        return CommandResult.success(current_k=k)
