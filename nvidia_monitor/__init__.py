"""
NVIDIA Monitor - GPU telemetry status line.

Samples nvidia-smi on a fixed interval and renders a compact,
fixed-width summary for a terminal status line or an MQTT topic.
"""

from .const import APP_VERSION

__version__ = APP_VERSION
