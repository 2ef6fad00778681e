"""
Configuration schema.

`Settings` is the flat, read-only snapshot the scheduler hands to every
telemetry source each cycle. The dataclasses below are typed views over
it for the parts read once at startup (output, MQTT, logging).
"""

import math
from collections.abc import Iterator, Mapping
from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Any

from ..const import (
    DEFAULT_MQTT_KEEPALIVE,
    DEFAULT_MQTT_PORT,
    DEFAULT_TOPIC_PREFIX,
    DEFAULT_UPDATE_INTERVAL_MS,
)
from .parser import ConfigDocument


class TemperatureUnit(Enum):
    """Temperature display unit."""
    CELSIUS = "°C"
    FAHRENHEIT = "°F"

    @classmethod
    def parse(cls, value: Any) -> "TemperatureUnit | None":
        aliases = {
            "°c": cls.CELSIUS,
            "c": cls.CELSIUS,
            "celsius": cls.CELSIUS,
            "°f": cls.FAHRENHEIT,
            "f": cls.FAHRENHEIT,
            "fahrenheit": cls.FAHRENHEIT,
        }
        return aliases.get(str(value).strip().lower())


class MemoryUnit(Enum):
    """Memory display unit."""
    GIB = "GiB"
    MIB = "MiB"

    @classmethod
    def parse(cls, value: Any) -> "MemoryUnit | None":
        aliases = {"gib": cls.GIB, "gb": cls.GIB, "mib": cls.MIB, "mb": cls.MIB}
        return aliases.get(str(value).strip().lower())


class Alignment(Enum):
    """Horizontal placement of the status surface."""
    LEFT = "left"
    RIGHT = "right"

    @classmethod
    def parse(cls, value: Any) -> "Alignment | None":
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            return None


class OutputMode(Enum):
    """Where the status line is published."""
    CONSOLE = "console"  # Terminal status line on stdout
    MQTT = "mqtt"        # JSON payload on an MQTT topic


class RetainMode(Enum):
    """MQTT retain message modes."""
    OFF = "off"          # Don't retain any messages
    ONLINE = "online"    # Only retain availability (LWT) status
    FULL = "full"        # Retain all messages (default)


def parse_interval(raw: Any) -> int | None:
    """
    Interpret an interval value in milliseconds.

    Fractional values round half up. Returns None for booleans,
    non-numbers and values that are not positive after rounding.
    """
    if isinstance(raw, bool):
        return None
    try:
        interval = math.floor(float(raw) + 0.5)
    except (TypeError, ValueError, OverflowError):
        return None
    return interval if interval > 0 else None


class Settings(Mapping[str, Any]):
    """
    Immutable snapshot of configuration values keyed by dotted name.

    Lookups of missing keys fall back to the caller's default; typed
    properties fall back to documented defaults on missing or invalid
    values, so reading settings never fails.
    """

    def __init__(self, values: Mapping[str, Any] | None = None):
        self._values = MappingProxyType(dict(values or {}))

    @classmethod
    def from_document(cls, document: ConfigDocument) -> "Settings":
        return cls(document.flatten())

    def __getitem__(self, key: str) -> Any:
        return self._values[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._values)

    def __len__(self) -> int:
        return len(self._values)

    def __repr__(self) -> str:
        return f"Settings({dict(self._values)!r})"

    @property
    def temperature_unit(self) -> TemperatureUnit:
        return TemperatureUnit.parse(self.get("temperature_unit", "°C")) or TemperatureUnit.CELSIUS

    @property
    def memory_unit(self) -> MemoryUnit:
        return MemoryUnit.parse(self.get("memory_unit", "GiB")) or MemoryUnit.GIB

    @property
    def alignment(self) -> Alignment:
        return Alignment.parse(self.get("alignment", "left")) or Alignment.LEFT

    @property
    def update_interval(self) -> int:
        """Update interval in milliseconds."""
        raw = self.get("update_interval", self.get("updateInterval", DEFAULT_UPDATE_INTERVAL_MS))
        interval = parse_interval(raw)
        return DEFAULT_UPDATE_INTERVAL_MS if interval is None else interval


@dataclass
class MQTTConfig:
    """MQTT connection configuration."""
    host: str = "localhost"
    port: int = DEFAULT_MQTT_PORT
    username: str | None = None
    password: str | None = None
    client_id: str | None = None
    topic_prefix: str = DEFAULT_TOPIC_PREFIX
    qos: int = 1
    retain: RetainMode = RetainMode.FULL
    keepalive: int = DEFAULT_MQTT_KEEPALIVE

    @classmethod
    def from_settings(cls, settings: Settings) -> "MQTTConfig":
        """Create MQTTConfig from the 'mqtt' keys."""
        retain_val = settings.get("mqtt.retain", "full")
        if isinstance(retain_val, bool):
            retain_mode = RetainMode.FULL if retain_val else RetainMode.OFF
        else:
            try:
                retain_mode = RetainMode(str(retain_val).lower())
            except ValueError:
                retain_mode = RetainMode.FULL

        return cls(
            host=str(settings.get("mqtt.host", "localhost")),
            port=int(settings.get("mqtt.port", DEFAULT_MQTT_PORT)),
            username=settings.get("mqtt.username"),
            password=settings.get("mqtt.password"),
            client_id=settings.get("mqtt.client_id"),
            topic_prefix=str(settings.get("mqtt.topic_prefix", DEFAULT_TOPIC_PREFIX)),
            qos=int(settings.get("mqtt.qos", 1)),
            retain=retain_mode,
            keepalive=int(settings.get("mqtt.keepalive", DEFAULT_MQTT_KEEPALIVE)),
        )

    def should_retain_data(self) -> bool:
        """Check if data messages should be retained."""
        return self.retain == RetainMode.FULL

    def should_retain_status(self) -> bool:
        """Check if status/availability messages should be retained."""
        return self.retain in (RetainMode.FULL, RetainMode.ONLINE)


@dataclass
class LoggingConfig:
    """Logging configuration."""
    level: str = "warning"
    file: str | None = None
    file_level: str = "debug"
    file_max_size: int = 5  # MB
    file_keep: int = 3
    colors: bool = True

    @classmethod
    def from_settings(cls, settings: Settings) -> "LoggingConfig":
        """Create LoggingConfig from the 'logging' keys."""
        return cls(
            level=str(settings.get("logging.level", "warning")),
            file=settings.get("logging.file"),
            file_level=str(settings.get("logging.file_level", "debug")),
            file_max_size=int(settings.get("logging.file_max_size", 5)),
            file_keep=int(settings.get("logging.file_keep", 3)),
            colors=bool(settings.get("logging.colors", True)),
        )


@dataclass
class AppConfig:
    """Startup configuration: where to publish and how to log."""
    output: OutputMode = OutputMode.CONSOLE
    mqtt: MQTTConfig = field(default_factory=MQTTConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    @classmethod
    def from_settings(cls, settings: Settings) -> "AppConfig":
        try:
            output = OutputMode(str(settings.get("output", "console")).lower())
        except ValueError:
            output = OutputMode.CONSOLE

        return cls(
            output=output,
            mqtt=MQTTConfig.from_settings(settings),
            logging=LoggingConfig.from_settings(settings),
        )
