"""
Status surfaces the rendered line is written to.
"""

from .base import StatusSurface, SurfaceFactory
from .console import ConsoleStatusSurface
from .mqtt import MQTTStatusSurface

__all__ = [
    "StatusSurface",
    "SurfaceFactory",
    "ConsoleStatusSurface",
    "MQTTStatusSurface",
]
