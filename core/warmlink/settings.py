"""
Warmlink Configuration Settings

Connection settings for a single heater-controller device.
User-facing settings are loaded from options.json (add-on), config.yaml
(development) or the environment, in that order.
"""

import json
import logging
import os
import re
from dataclasses import dataclass
from datetime import tzinfo
from urllib.parse import urlsplit
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import yaml
from dotenv import load_dotenv

from .connection import ws_url_from_origin
from .exceptions import ConfigurationError

logger = logging.getLogger(__name__)

OPTIONS_PATH = "/data/options.json"
CONFIG_YAML_PATH = os.path.join(os.path.dirname(__file__), "..", "..", "config.yaml")


def _camel_to_snake(name: str) -> str:
    """Convert camelCase to snake_case."""
    s1 = re.sub("(.)([A-Z][a-z]+)", r"\1_\2", name)
    return re.sub("([a-z0-9])([A-Z])", r"\1_\2", s1).lower()


@dataclass
class DeviceSettings:
    """Configuration for the connection to one device."""

    base_url: str  # Device origin, e.g. "http://192.168.4.1"
    ws_path: str = "/ws"
    reconnect_delay_s: float = 3.0  # Fixed delay, no backoff
    request_timeout: float | None = None  # None = wait forever, like the browser client
    sync_time_on_start: bool = True
    timezone: str | None = None  # IANA name; None = system local time

    def __post_init__(self):
        parts = urlsplit(self.base_url or "")
        if parts.scheme not in ("http", "https") or not parts.netloc:
            raise ConfigurationError(f"base_url must be an http(s) origin: {self.base_url!r}")
        self.base_url = self.base_url.rstrip("/")
        if not self.ws_path.startswith("/"):
            self.ws_path = "/" + self.ws_path
        if self.reconnect_delay_s <= 0:
            raise ConfigurationError("reconnect_delay_s must be positive")
        if self.request_timeout is not None and self.request_timeout <= 0:
            raise ConfigurationError("request_timeout must be positive or None")
        if self.timezone:
            # Fail early on typos
            self.tzinfo()

    @property
    def ws_url(self) -> str:
        """Socket endpoint derived from the device origin."""
        return ws_url_from_origin(self.base_url, self.ws_path)

    def tzinfo(self) -> tzinfo | None:
        """Timezone used for local wall-clock conversions (None = system local)."""
        if not self.timezone:
            return None
        try:
            return ZoneInfo(self.timezone)
        except (ZoneInfoNotFoundError, ValueError) as e:
            raise ConfigurationError(f"Unknown timezone {self.timezone!r}: {e}") from e

    @classmethod
    def from_dict(cls, data: dict) -> "DeviceSettings":
        """Create from dictionary."""
        converted = {_camel_to_snake(k): v for k, v in data.items()}

        # Accept the short "url" key used by older config files
        if "url" in converted:
            converted["base_url"] = converted.pop("url")

        known = set(cls.__dataclass_fields__)
        unknown = set(converted) - known
        if unknown:
            raise ConfigurationError(f"Unknown device settings: {sorted(unknown)}")
        if "base_url" not in converted:
            raise ConfigurationError("Device settings need a base_url")

        return cls(**converted)


def load_settings() -> DeviceSettings:
    """Load device settings.

    Tries the add-on options.json first (production), then config.yaml
    (development), then WARMLINK_* environment variables (.env supported).

    Raises:
        ConfigurationError: If no source provides a usable configuration
    """
    if os.path.exists(OPTIONS_PATH):
        with open(OPTIONS_PATH) as f:
            options = json.load(f)
        device = options.get("device")
        if device:
            logger.info("Loaded device settings from options.json")
            return DeviceSettings.from_dict(device)

    if os.path.exists(CONFIG_YAML_PATH):
        with open(CONFIG_YAML_PATH) as f:
            config = yaml.safe_load(f) or {}
        device = config.get("options", {}).get("device")
        if device:
            logger.info("Loaded device settings from config.yaml")
            return DeviceSettings.from_dict(device)

    load_dotenv()
    url = os.getenv("WARMLINK_DEVICE_URL", "")
    if not url:
        raise ConfigurationError(
            "No device configured (options.json, config.yaml or WARMLINK_DEVICE_URL)"
        )

    data = {"base_url": url}
    if os.getenv("WARMLINK_TIMEZONE"):
        data["timezone"] = os.getenv("WARMLINK_TIMEZONE")
    if os.getenv("WARMLINK_RECONNECT_DELAY_S"):
        try:
            data["reconnect_delay_s"] = float(os.getenv("WARMLINK_RECONNECT_DELAY_S"))
        except ValueError as e:
            raise ConfigurationError(f"Invalid WARMLINK_RECONNECT_DELAY_S: {e}") from e

    logger.debug("Loaded device settings from environment")
    return DeviceSettings.from_dict(data)
