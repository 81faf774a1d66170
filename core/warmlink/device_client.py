"""
Simple Device HTTP Client for Warmlink

Minimal client for pulling snapshots from the heater controller and posting
form-encoded commands to it. Calls are blocking; async code runs them through
asyncio.to_thread.
"""

import logging
from typing import Any, Optional

import requests

from .exceptions import DeviceCommandError, DeviceConnectionError, DeviceResponseError

logger = logging.getLogger(__name__)

FORM_HEADERS = {"Content-Type": "application/x-www-form-urlencoded"}


class DeviceClient:
    """HTTP client for the heater controller's pull and command endpoints."""

    def __init__(self, base_url: str, timeout: Optional[float] = None):
        """Initialize device client.

        Args:
            base_url: Device origin (e.g., "http://192.168.4.1")
            timeout: Per-request timeout in seconds, None to wait indefinitely
        """
        self.base_url = base_url.rstrip("/")
        # Create a session for connection pooling
        self.session = requests.Session()
        self.timeout = timeout

    def close(self) -> None:
        self.session.close()

    # ------------------------------------------------------------------
    # Low-level helpers
    # ------------------------------------------------------------------

    def _get_json(self, path: str) -> dict[str, Any]:
        """GET a JSON object.

        Raises:
            DeviceConnectionError: If the request fails or returns an error status
            DeviceResponseError: If the body is not a JSON object
        """
        url = f"{self.base_url}{path}"
        try:
            response = self.session.get(url, timeout=self.timeout)
            response.raise_for_status()
        except requests.exceptions.RequestException as e:
            raise DeviceConnectionError(f"GET {path} failed: {e}") from e

        try:
            data = response.json()
        except ValueError as e:
            raise DeviceResponseError(f"GET {path} returned invalid JSON: {e}") from e
        if not isinstance(data, dict):
            raise DeviceResponseError(f"GET {path} returned {type(data).__name__}, expected object")
        return data

    def _post_command(self, path: str, data: Optional[dict] = None) -> dict[str, Any]:
        """POST a form-encoded command that answers with {ok, error?, ...}.

        Raises:
            DeviceConnectionError: If the request cannot be completed
            DeviceCommandError: If the device answers ok=false or an error status
        """
        url = f"{self.base_url}{path}"
        try:
            logger.debug(f"Calling {url} with data: {data}")
            response = self.session.post(url, data=data or {}, headers=FORM_HEADERS, timeout=self.timeout)
        except requests.exceptions.RequestException as e:
            raise DeviceConnectionError(f"POST {path} failed: {e}") from e

        try:
            body = response.json()
        except ValueError:
            body = None

        if not isinstance(body, dict):
            if not response.ok:
                raise DeviceCommandError(f"HTTP {response.status_code}", response.status_code)
            raise DeviceResponseError(f"POST {path} returned a non-JSON body")

        if not response.ok or body.get("ok") is False:
            error = body.get("error")
            if not isinstance(error, str) or not error:
                error = f"HTTP {response.status_code}" if not response.ok else "Command failed"
            raise DeviceCommandError(error, response.status_code)

        logger.debug(f"Response body: {body}")
        return body

    def _post_form(self, path: str, data: Optional[dict] = None) -> int:
        """POST to a form endpoint that answers with a redirect or plain text.

        Redirects are followed. Returns the final status code.

        Raises:
            DeviceConnectionError: If the request fails or ends in an error status
        """
        url = f"{self.base_url}{path}"
        try:
            response = self.session.post(url, data=data or {}, headers=FORM_HEADERS, timeout=self.timeout)
            response.raise_for_status()
        except requests.exceptions.RequestException as e:
            raise DeviceConnectionError(f"POST {path} failed: {e}") from e
        return response.status_code

    # ------------------------------------------------------------------
    # Pull endpoints
    # ------------------------------------------------------------------

    def get_status(self) -> dict[str, Any]:
        """Heater/deadzone/clock snapshot."""
        return self._get_json("/api/status")

    def get_calibration(self) -> dict[str, Any]:
        """Calibration session snapshot including records and automation settings."""
        return self._get_json("/api/calibration")

    def get_ready_by(self) -> dict[str, Any]:
        """Ready-by schedule snapshot."""
        return self._get_json("/api/ready-by")

    def get_logs(self) -> dict[str, Any]:
        """Log text ({logs: newline-delimited, time_synced})."""
        return self._get_json("/api/logs")

    def get_kfactor_status(self) -> dict[str, Any]:
        """Current k-factor ({current_k, ideal_seconds_per_deg})."""
        return self._get_json("/api/kfactor/status")

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    def sync_time(self, epoch: int, tz_offset_min: int) -> int:
        """Submit the caller's clock to the device.

        Redirects are not followed so that a 302 counts as an answer.

        Args:
            epoch: Current UTC epoch seconds
            tz_offset_min: Signed timezone offset in minutes, east of UTC positive

        Returns:
            HTTP status code of the device's answer

        Raises:
            DeviceConnectionError: If the request cannot be completed
        """
        url = f"{self.base_url}/sync-time"
        data = {"epoch": str(int(epoch)), "tz": str(int(tz_offset_min))}
        try:
            response = self.session.post(
                url, data=data, headers=FORM_HEADERS, timeout=self.timeout, allow_redirects=False
            )
        except requests.exceptions.RequestException as e:
            raise DeviceConnectionError(f"Time sync failed: {e}") from e
        logger.info(f"Sent time sync (epoch={data['epoch']}, tz={data['tz']}) - Response: {response.status_code}")
        return response.status_code

    def legacy_toggle(self, path: str) -> int:
        """Un-parameterized POST to a legacy toggle endpoint."""
        status = self._post_form(path)
        logger.info(f"Legacy toggle {path} - Response: {status}")
        return status

    def set_config(self, data: dict[str, str]) -> int:
        """Partial heater configuration update (/set-config form)."""
        return self._post_form("/set-config", data)

    def clear_logs(self) -> int:
        return self._post_form("/logs/clear")

    def reboot(self) -> None:
        """Ask the device to restart. The device answers in plain text."""
        self._post_form("/api/reboot")
        logger.info("Reboot command sent")

    def calibration_start(self, target_c: float, start_epoch_utc: int = 0) -> dict[str, Any]:
        return self._post_command(
            "/api/calibration/start",
            {"target": str(target_c), "start_epoch_utc": str(int(start_epoch_utc))},
        )

    def calibration_cancel(self) -> dict[str, Any]:
        return self._post_command("/api/calibration/cancel")

    def calibration_delete(self, epoch_utc: int) -> dict[str, Any]:
        return self._post_command("/api/calibration/delete", {"epoch_utc": str(int(epoch_utc))})

    def calibration_settings(self, data: dict[str, str]) -> dict[str, Any]:
        """Partial automation settings update; absent keys keep device values."""
        return self._post_command("/api/calibration/settings", data)

    def kfactor_suggest(self, ambient: float, target: float, warmup_min: float) -> dict[str, Any]:
        return self._post_command(
            "/api/kfactor/suggest",
            {"ambient": str(ambient), "target": str(target), "warmup_min": str(warmup_min)},
        )

    def kfactor_apply(self, k: float) -> dict[str, Any]:
        return self._post_command("/api/kfactor/apply", {"k": str(k)})

    def ready_by_schedule(self, target_epoch_utc: int, target_temp_c: float) -> dict[str, Any]:
        return self._post_command(
            "/api/ready-by",
            {"target_epoch_utc": str(int(target_epoch_utc)), "target_temp_c": str(target_temp_c)},
        )

    def ready_by_clear(self) -> dict[str, Any]:
        return self._post_command("/api/ready-by/clear")
