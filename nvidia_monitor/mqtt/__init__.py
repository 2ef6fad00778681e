"""
MQTT client for publishing the status line.
"""

from .client import MQTTClient

__all__ = [
    "MQTTClient",
]
