"""
Main application orchestrator.

Handles:
- Output selection (console or MQTT)
- Scheduler lifecycle
- Graceful shutdown
"""

import asyncio
import io
import signal
from pathlib import Path

from .config.loader import ConfigLoader, ConfigProvider, FileConfigProvider, StaticConfigProvider
from .config.schema import Alignment, AppConfig, OutputMode, Settings
from .const import APP_NAME
from .display.base import StatusSurface
from .display.console import ConsoleStatusSurface
from .display.mqtt import MQTTStatusSurface
from .logging import LogConfig, get_logger, setup_logging
from .monitor import MonitorScheduler
from .mqtt.client import MQTTClient


logger = get_logger("app")


class Application:
    """
    Main application class.

    Owns one MonitorScheduler for the lifetime of the process and, for
    MQTT output, the MQTT client it publishes through.
    """

    def __init__(self, config: AppConfig, config_provider: ConfigProvider):
        """
        Initialize application.

        Args:
            config: Startup configuration
            config_provider: Per-cycle settings provider
        """
        self.config = config
        self.config_provider = config_provider

        self.mqtt: MQTTClient | None = None
        if config.output == OutputMode.MQTT:
            self.mqtt = MQTTClient(
                config.mqtt,
                availability_topic=f"{config.mqtt.topic_prefix}/status",
            )

        self.scheduler: MonitorScheduler | None = None
        self._shutdown_event = asyncio.Event()

    def create_surface(self, alignment: Alignment, priority: int) -> StatusSurface:
        """Surface factory handed to the scheduler."""
        if self.mqtt is not None:
            return MQTTStatusSurface(self.mqtt, alignment, priority)
        return ConsoleStatusSurface(alignment, priority)

    def _setup_signal_handlers(self) -> None:
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGTERM, signal.SIGINT):
            loop.add_signal_handler(sig, self._signal_handler)

    def _signal_handler(self) -> None:
        logger.info("Received shutdown signal")
        self._shutdown_event.set()

    async def start(self) -> None:
        """Start monitoring and run until a shutdown signal."""
        logger.info(f"Starting {APP_NAME}")

        if self.mqtt is not None:
            await self.mqtt.start()
            if not await self.mqtt.wait_connected(timeout=30.0):
                logger.warning("MQTT broker not reachable yet, will keep retrying")

        self.scheduler = MonitorScheduler(self.config_provider, self.create_surface)
        self._setup_signal_handlers()
        self.scheduler.start()

        await self._shutdown_event.wait()
        await self.stop()

    async def stop(self) -> None:
        """Dispose the scheduler and stop the MQTT client."""
        logger.info(f"Stopping {APP_NAME}")

        if self.scheduler is not None:
            await self.scheduler.dispose()
            self.scheduler = None

        if self.mqtt is not None:
            await self.mqtt.stop()

        logger.info(f"{APP_NAME} stopped")

    async def run_once(self) -> str:
        """Render a single status line without starting the loop."""
        buffer = io.StringIO()
        self.scheduler = MonitorScheduler(
            self.config_provider,
            lambda alignment, priority: ConsoleStatusSurface(alignment, priority, stream=buffer),
        )
        try:
            await self.scheduler.update()
            return self.scheduler.last_line
        finally:
            await self.scheduler.dispose()
            self.scheduler = None


def load_settings(config_path: str | None) -> tuple[Settings, ConfigProvider]:
    """
    Load startup settings and build the matching provider.

    Raises:
        ConfigError: If the config file cannot be loaded
    """
    if config_path is None:
        provider: ConfigProvider = StaticConfigProvider()
        return provider.get_settings(), provider

    settings = ConfigLoader().load_file(config_path)
    return settings, FileConfigProvider(Path(config_path))


def log_config_from(config: AppConfig, cli_log_config: LogConfig | None) -> LogConfig:
    """Merge file logging settings with command line overrides."""
    file_logging = config.logging
    if cli_log_config is not None:
        log_config = cli_log_config
    else:
        log_config = LogConfig(
            console_level=file_logging.level,
            console_colors=file_logging.colors,
        )

    if not log_config.file_enabled and file_logging.file:
        log_config.file_enabled = True
        log_config.file_path = file_logging.file
        log_config.file_level = file_logging.file_level
        log_config.file_max_bytes = file_logging.file_max_size * 1024 * 1024
        log_config.file_backup_count = file_logging.file_keep

    return log_config


async def run_app(config_path: str | None, cli_log_config: LogConfig | None = None) -> None:
    """
    Load configuration and run the application until shutdown.

    Args:
        config_path: Path to configuration file (None for defaults)
        cli_log_config: Logging config from CLI args (overrides file config)
    """
    settings, provider = load_settings(config_path)
    config = AppConfig.from_settings(settings)
    setup_logging(log_config_from(config, cli_log_config))

    if config_path:
        # Validation warnings are logged by the provider on first read
        logger.info(f"Loaded configuration from {config_path}")

    app = Application(config, provider)
    await app.start()


async def render_once(config_path: str | None) -> str:
    """Load configuration and render one status line."""
    _, provider = load_settings(config_path)
    app = Application(AppConfig(), provider)
    return await app.run_once()
