"""
MQTT status surface.

Publishes the status line as JSON to '<prefix>/status_bar':

    {"text": "⚡️G0:  12% ・ ...", "alignment": "left", "priority": 100}

Disposing the surface publishes an empty text so subscribers clear it.
"""

from typing import Any

from ..config.schema import Alignment
from ..const import DEFAULT_STATUS_PRIORITY
from ..mqtt.client import MQTTClient
from .base import StatusSurface


class MQTTStatusSurface(StatusSurface):
    """Status surface publishing to an MQTT topic."""

    def __init__(
        self,
        client: MQTTClient,
        alignment: Alignment,
        priority: int = DEFAULT_STATUS_PRIORITY,
        topic: str | None = None,
    ):
        super().__init__(alignment, priority)
        self.client = client
        self.topic = topic or f"{client.topic_prefix}/status_bar"

    def payload(self) -> dict[str, Any]:
        return {
            "text": self.text,
            "alignment": self.alignment.value,
            "priority": self.priority,
        }

    async def render(self) -> None:
        await self.client.publish(self.topic, self.payload())

    async def dispose(self) -> None:
        if self.visible:
            self.text = ""
            await self.render()
        await super().dispose()
