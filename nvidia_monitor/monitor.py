"""
Polling scheduler for the status line.

Each cycle re-reads the settings, samples every telemetry source
concurrently, joins the visible results and writes them to the status
surface. The next cycle is scheduled only after the current one has
finished, so cycles never overlap.
"""

import asyncio

from .config.loader import ConfigProvider
from .config.schema import Settings
from .const import DEFAULT_STATUS_PRIORITY, DEFAULT_UPDATE_INTERVAL_MS
from .display.base import StatusSurface, SurfaceFactory
from .logging import get_logger
from .sources import TelemetrySource, create_default_sources


logger = get_logger("monitor")


class MonitorScheduler:
    """
    Drives periodic sampling of telemetry sources into a status surface.
    """

    DELIMITER = "  "

    def __init__(
        self,
        config_provider: ConfigProvider,
        surface_factory: SurfaceFactory,
        sources: list[TelemetrySource] | None = None,
        priority: int = DEFAULT_STATUS_PRIORITY,
    ):
        """
        Initialize scheduler.

        Args:
            config_provider: Source of the per-cycle settings snapshot
            surface_factory: Creates a surface for (alignment, priority)
            sources: Telemetry sources in display order (defaults to GPU, CPU, memory)
            priority: Surface priority passed to the factory
        """
        self.config_provider = config_provider
        self.surface_factory = surface_factory
        self.priority = priority

        self.settings: Settings = config_provider.get_settings()
        self.sources = sources if sources is not None else create_default_sources(self.settings)

        self.surface: StatusSurface = surface_factory(self.settings.alignment, priority)
        self.surface.show()

        self.last_line: str = ""
        self._running = False
        self._task: asyncio.Task | None = None
        self._wakeup = asyncio.Event()

    @property
    def running(self) -> bool:
        return self._running

    def start(self) -> None:
        """Start the update loop. Does nothing if already running."""
        if self._running:
            return

        self._running = True
        self._wakeup.clear()
        # A loop still finishing its last cycle after stop() just carries on
        if self._task is None or self._task.done():
            self._task = asyncio.create_task(self._run())
        logger.info(f"Monitoring {len(self.sources)} sources")

    def stop(self) -> None:
        """Stop scheduling new cycles. An in-flight cycle still completes."""
        self._running = False
        self._wakeup.set()

    async def dispose(self) -> None:
        """Stop, wait for the in-flight cycle, and release the surface."""
        self.stop()
        if self._task is not None:
            await self._task
            self._task = None
        await self.surface.dispose()

    async def _run(self) -> None:
        """Update loop: one cycle, then wait for the configured interval."""
        while self._running:
            try:
                delay = await self.update()
            except Exception as e:
                logger.exception(f"Update cycle failed: {e}")
                delay = DEFAULT_UPDATE_INTERVAL_MS / 1000

            if not self._running:
                break

            try:
                await asyncio.wait_for(self._wakeup.wait(), timeout=delay)
            except TimeoutError:
                pass

    async def _apply_alignment(self) -> None:
        """Recreate the surface if the configured alignment changed."""
        alignment = self.settings.alignment
        if alignment == self.surface.alignment:
            return

        logger.debug(f"Alignment changed to {alignment.value}, recreating status surface")
        await self.surface.dispose()
        self.surface = self.surface_factory(alignment, self.priority)
        self.surface.show()

    async def update(self) -> float:
        """
        Run one cycle.

        Returns:
            Seconds to wait before the next cycle
        """
        self.settings = self.config_provider.get_settings()
        for source in self.sources:
            source.settings = self.settings

        await self._apply_alignment()

        results = await asyncio.gather(
            *(source.render_display() for source in self.sources),
            return_exceptions=True,
        )

        parts: list[str] = []
        for source, result in zip(self.sources, results):
            if isinstance(result, Exception):
                logger.error(f"Source {source.key!r} failed: {result}")
                continue
            if isinstance(result, BaseException):
                raise result
            if result is not None:
                parts.append(result)

        self.last_line = self.DELIMITER.join(parts)
        await self.surface.set_text(self.last_line)

        return self.settings.update_interval / 1000
