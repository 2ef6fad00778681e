"""
Host CPU and memory telemetry sources.

Both are hidden unless enabled with 'show.cpu on;' or 'show.memory on;'.
"""

import psutil

from ..config.schema import Settings
from ..logging import get_logger
from .base import TelemetrySource
from .gpu import format_memory


logger = get_logger("sources.system")


class CPUTelemetrySource(TelemetrySource):
    """Overall CPU utilization."""

    def __init__(self, settings: Settings):
        super().__init__(settings, key="cpu", shown_by_default=False, max_width=12)

        # First call primes psutil's counters and always returns 0.0
        psutil.cpu_percent(interval=None)

    async def sample(self) -> str:
        try:
            percent = psutil.cpu_percent(interval=None)
        except (psutil.Error, OSError) as e:
            logger.error(f"Error reading CPU usage: {e}")
            return "cpu error"

        return f"CPU: {round(percent):>3}%"


class MemoryTelemetrySource(TelemetrySource):
    """System RAM usage in the configured memory unit."""

    def __init__(self, settings: Settings):
        super().__init__(settings, key="memory", shown_by_default=False, max_width=20)

    async def sample(self) -> str:
        try:
            mem = psutil.virtual_memory()
        except (psutil.Error, OSError) as e:
            logger.error(f"Error reading memory usage: {e}")
            return "memory error"

        unit = self.settings.memory_unit
        used = format_memory(mem.used / (1024 * 1024), unit)
        total = format_memory(mem.total / (1024 * 1024), unit)
        return f"RAM: {used}/{total}{unit.value}"
