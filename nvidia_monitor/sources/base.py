"""
Base telemetry source interface.

A telemetry source decides whether it is visible and renders one
status string per cycle. Subclasses implement sample().
"""

from abc import ABC, abstractmethod

from ..config.schema import Settings


class SamplingError(Exception):
    """Sampling tool missing, failing or timing out."""

    pass


class MalformedTelemetryError(SamplingError):
    """Sampling output does not have the expected structure."""

    pass


class TelemetrySource(ABC):
    """
    Abstract base class for telemetry sources.

    Each source owns a minimum render width that only ever shrinks.
    Rendered strings are right-padded to the width recorded before the
    current cycle, so the status line tightens one cycle after a
    shorter sample and never jitters wider and narrower between ticks.
    """

    def __init__(
        self,
        settings: Settings,
        key: str,
        shown_by_default: bool = True,
        max_width: int = 30,
    ):
        """
        Initialize telemetry source.

        Args:
            settings: Settings snapshot (replaced by the scheduler every cycle)
            key: Stable identifier, also used for the 'show.<key>' setting
            shown_by_default: Visibility when 'show.<key>' is not set
            max_width: Initial ceiling for the minimum width ratchet
        """
        self.settings = settings
        self.key = key
        self.shown_by_default = shown_by_default
        self._min_width = max_width

    @property
    def min_width(self) -> int:
        """Current minimum render width."""
        return self._min_width

    def is_visible(self) -> bool:
        """Check the 'show.<key>' setting."""
        return bool(self.settings.get(f"show.{self.key}", self.shown_by_default))

    async def render_display(self) -> str | None:
        """
        Render this source's status string for the current cycle.

        Returns:
            Padded display string, or None when the source is hidden
        """
        if not self.is_visible():
            return None

        display = await self.sample()
        width = self._min_width
        self._min_width = min(width, len(display))
        return display.ljust(width)

    @abstractmethod
    async def sample(self) -> str:
        """
        Sample and format the telemetry.

        Must not raise: failures are rendered as a sentinel string.
        """
        pass

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.key!r}, min_width={self._min_width})"
