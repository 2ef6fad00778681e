"""
Configuration loading, validation and live reloading.
"""

from abc import ABC, abstractmethod
from pathlib import Path

from ..logging import get_logger
from .lexer import LexerError
from .parser import ParseError, parse_config, parse_config_file
from .schema import (
    Alignment,
    MemoryUnit,
    OutputMode,
    RetainMode,
    Settings,
    TemperatureUnit,
    parse_interval,
)


logger = get_logger("config.loader")


class ConfigError(Exception):
    """Exception raised for configuration errors."""

    pass


class ConfigLoader:
    """
    Loads and validates configuration from files or strings.

    Usage:
        loader = ConfigLoader()
        settings = loader.load_file("~/.config/nvidia-monitor/config.conf")
        for warning in loader.validate(settings):
            print(warning)
    """

    # Keys understood outside of 'show', 'mqtt' and 'logging'
    KNOWN_KEYS = {
        "temperature_unit",
        "memory_unit",
        "alignment",
        "update_interval",
        "updateInterval",
        "output",
    }

    KNOWN_SECTIONS = {
        "mqtt": {
            "host",
            "port",
            "username",
            "password",
            "client_id",
            "topic_prefix",
            "qos",
            "retain",
            "keepalive",
        },
        "logging": {
            "level",
            "file",
            "file_level",
            "file_max_size",
            "file_keep",
            "colors",
        },
    }

    def load_file(self, path: str | Path) -> Settings:
        """
        Load configuration from a file.

        Raises:
            ConfigError: If file cannot be read or parsed
        """
        path = Path(path).expanduser()

        if not path.exists():
            raise ConfigError(f"Configuration file not found: {path}")

        if not path.is_file():
            raise ConfigError(f"Not a file: {path}")

        try:
            return Settings.from_document(parse_config_file(path))
        except (LexerError, ParseError) as e:
            raise ConfigError(f"Failed to parse configuration: {e}") from e
        except (OSError, UnicodeDecodeError) as e:
            raise ConfigError(f"Failed to read configuration: {e}") from e

    def load_string(self, source: str, filename: str = "<string>") -> Settings:
        """
        Load configuration from a string.

        Raises:
            ConfigError: If configuration cannot be parsed
        """
        try:
            return Settings.from_document(parse_config(source, filename))
        except (LexerError, ParseError) as e:
            raise ConfigError(f"Failed to parse configuration: {e}") from e

    def validate(self, settings: Settings) -> list[str]:
        """
        Check settings for unknown keys and invalid values.

        Invalid values are not fatal: they fall back to defaults at read
        time. The returned warnings tell the user which ones.
        """
        warnings: list[str] = []

        for key, value in settings.items():
            section, _, name = key.partition(".")
            if section == "show":
                if not name or not isinstance(value, bool):
                    warnings.append(f"'{key}' should be a boolean (on/off)")
            elif section in self.KNOWN_SECTIONS and name:
                if name not in self.KNOWN_SECTIONS[section]:
                    warnings.append(f"Unknown directive '{name}' in '{section}' block")
            elif key not in self.KNOWN_KEYS:
                warnings.append(f"Unknown directive '{key}'")

        checks = [
            ("temperature_unit", TemperatureUnit.parse, "°C"),
            ("memory_unit", MemoryUnit.parse, "GiB"),
            ("alignment", Alignment.parse, "left"),
        ]
        for key, parse, default in checks:
            if key in settings and parse(settings[key]) is None:
                warnings.append(f"Invalid {key} {settings[key]!r}, using {default}")

        for key in ("update_interval", "updateInterval"):
            if key in settings:
                value = settings[key]
                if parse_interval(value) is None:
                    warnings.append(f"{key} must be a positive number of milliseconds, got {value!r}")

        if "output" in settings and str(settings["output"]).lower() not in {m.value for m in OutputMode}:
            warnings.append(f"Invalid output {settings['output']!r}, using console")

        if "mqtt.retain" in settings and not isinstance(settings["mqtt.retain"], bool):
            if str(settings["mqtt.retain"]).lower() not in {m.value for m in RetainMode}:
                warnings.append(f"Invalid mqtt retain mode {settings['mqtt.retain']!r}, using full")

        return warnings


class ConfigProvider(ABC):
    """Source of the settings snapshot read at the start of every cycle."""

    @abstractmethod
    def get_settings(self) -> Settings:
        """Return the current settings snapshot."""
        pass


class StaticConfigProvider(ConfigProvider):
    """Provider serving a fixed snapshot (no config file)."""

    def __init__(self, settings: Settings | None = None):
        self.settings = settings or Settings()

    def get_settings(self) -> Settings:
        return self.settings


class FileConfigProvider(ConfigProvider):
    """
    Provider backed by a configuration file.

    The file is parsed again whenever its modification time changes.
    If it disappears or stops parsing, the last good snapshot is kept
    and a warning is logged once per change.
    """

    def __init__(self, path: str | Path, loader: ConfigLoader | None = None):
        self.path = Path(path).expanduser()
        self.loader = loader or ConfigLoader()
        self._settings = Settings()
        self._mtime_ns: int | None = None
        self._failed_mtime_ns: int | None = None

    def get_settings(self) -> Settings:
        try:
            mtime_ns = self.path.stat().st_mtime_ns
        except OSError as e:
            if self._failed_mtime_ns != -1:
                logger.warning(f"Cannot read {self.path}, keeping previous settings: {e}")
                self._failed_mtime_ns = -1
            return self._settings

        if mtime_ns == self._mtime_ns or mtime_ns == self._failed_mtime_ns:
            return self._settings

        try:
            settings = self.loader.load_file(self.path)
        except ConfigError as e:
            logger.warning(f"Keeping previous settings: {e}")
            self._failed_mtime_ns = mtime_ns
            return self._settings

        for warning in self.loader.validate(settings):
            logger.warning(f"Config warning: {warning}")

        if self._mtime_ns is not None:
            logger.info(f"Reloaded configuration from {self.path}")

        self._settings = settings
        self._mtime_ns = mtime_ns
        self._failed_mtime_ns = None
        return settings
