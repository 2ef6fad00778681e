"""
Logging configuration for NVIDIA Monitor.

Log records go to stderr so stdout carries nothing but the status line.
With a log file configured, records are also written to a rotating file
without colors.
"""

import logging
import logging.handlers
import sys
from dataclasses import dataclass
from pathlib import Path


RESET = "\033[0m"

LEVEL_STYLES = {
    logging.DEBUG: "\033[2;36m",
    logging.INFO: "\033[32m",
    logging.WARNING: "\033[33m",
    logging.ERROR: "\033[31m",
    logging.CRITICAL: "\033[1;91m",
}

# First dotted part after 'nvidia_monitor.' -> color
COMPONENT_STYLES = {
    "config": "\033[35m",
    "mqtt": "\033[34m",
    "display": "\033[34m",
    "sources": "\033[36m",
    "monitor": "\033[32m",
    "app": "\033[32m",
}

LEVEL_NAMES = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warning": logging.WARNING,
    "warn": logging.WARNING,
    "error": logging.ERROR,
    "critical": logging.CRITICAL,
}


def _paint(text: str, style: str) -> str:
    return f"{style}{text}{RESET}" if style else text


class ConsoleFormatter(logging.Formatter):
    """
    Formatter for the stderr handler.

    With colors on, the level and component are colored and warnings
    and errors are highlighted in full. The record is restored after
    formatting so other handlers see it unchanged.
    """

    def __init__(self, fmt: str, datefmt: str, colors: bool = True):
        super().__init__(fmt, datefmt)
        self.colors = colors

    def format(self, record: logging.LogRecord) -> str:
        saved = (record.levelname, record.name, record.msg)
        record.levelname = f"{record.levelname:8}"

        if self.colors:
            style = LEVEL_STYLES.get(record.levelno, "")
            component = record.name.removeprefix("nvidia_monitor.").split(".")[0]
            record.levelname = _paint(record.levelname, style)
            record.name = _paint(record.name, COMPONENT_STYLES.get(component, ""))
            if record.levelno >= logging.WARNING:
                record.msg = _paint(str(record.msg), style)

        try:
            return super().format(record)
        finally:
            record.levelname, record.name, record.msg = saved


@dataclass
class LogConfig:
    """Effective logging settings, from the config file or the command line."""

    console_level: str = "WARNING"
    console_colors: bool = True

    file_enabled: bool = False
    file_path: str = "/var/log/nvidia-monitor/nvidia-monitor.log"
    file_level: str = "DEBUG"
    file_max_bytes: int = 5 * 1024 * 1024
    file_backup_count: int = 3

    format: str = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
    date_format: str = "%Y-%m-%d %H:%M:%S"


def get_log_level(name: str) -> int:
    """Map a level name such as 'warning' to its logging constant (INFO if unknown)."""
    return LEVEL_NAMES.get(str(name).lower(), logging.INFO)


def _console_handler(config: LogConfig) -> logging.Handler:
    handler = logging.StreamHandler(sys.stderr)
    handler.setLevel(get_log_level(config.console_level))
    colors = config.console_colors and sys.stderr.isatty()
    handler.setFormatter(ConsoleFormatter(config.format, config.date_format, colors=colors))
    return handler


def _file_handler(config: LogConfig) -> logging.Handler:
    path = Path(config.file_path).expanduser()
    path.parent.mkdir(parents=True, exist_ok=True)

    handler = logging.handlers.RotatingFileHandler(
        path,
        maxBytes=config.file_max_bytes,
        backupCount=config.file_backup_count,
        encoding="utf-8",
    )
    handler.setLevel(get_log_level(config.file_level))
    handler.setFormatter(ConsoleFormatter(config.format, config.date_format, colors=False))
    return handler


def setup_logging(config: LogConfig | None = None) -> None:
    """
    (Re)configure the 'nvidia_monitor' logger tree.

    Safe to call more than once: handlers from a previous call are
    replaced, which is how the config file's logging block takes over
    from the command line defaults after loading.
    """
    config = config or LogConfig()

    package_logger = logging.getLogger("nvidia_monitor")
    package_logger.setLevel(logging.DEBUG)
    for handler in list(package_logger.handlers):
        package_logger.removeHandler(handler)
        handler.close()

    package_logger.addHandler(_console_handler(config))
    if config.file_enabled:
        package_logger.addHandler(_file_handler(config))

    for noisy in ("aiomqtt", "paho"):
        logging.getLogger(noisy).setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    """Logger for a component, e.g. get_logger("sources.gpu") -> 'nvidia_monitor.sources.gpu'."""
    if name == "nvidia_monitor" or name.startswith("nvidia_monitor."):
        return logging.getLogger(name)
    return logging.getLogger(f"nvidia_monitor.{name}")
