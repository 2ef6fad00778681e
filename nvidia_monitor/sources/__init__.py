"""
Telemetry sources rendered into the status line.
"""

from ..config.schema import Settings
from .base import MalformedTelemetryError, SamplingError, TelemetrySource
from .gpu import GPUTelemetrySource
from .system import CPUTelemetrySource, MemoryTelemetrySource


def create_default_sources(settings: Settings) -> list[TelemetrySource]:
    """Create the sources shown in the status line, in display order."""
    return [
        GPUTelemetrySource(settings),
        CPUTelemetrySource(settings),
        MemoryTelemetrySource(settings),
    ]


__all__ = [
    "TelemetrySource",
    "SamplingError",
    "MalformedTelemetryError",
    "GPUTelemetrySource",
    "CPUTelemetrySource",
    "MemoryTelemetrySource",
    "create_default_sources",
]
