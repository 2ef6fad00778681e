"""
Status surface interface.

A surface shows one line of text at a fixed alignment. Alignment cannot
change in place: the scheduler disposes the surface and creates a new one.
"""

from abc import ABC, abstractmethod
from collections.abc import Callable

from ..config.schema import Alignment
from ..const import DEFAULT_STATUS_PRIORITY


class StatusSurface(ABC):
    """Abstract base class for status line outputs."""

    def __init__(self, alignment: Alignment, priority: int = DEFAULT_STATUS_PRIORITY):
        self.alignment = alignment
        self.priority = priority
        self.text = ""
        self.visible = False
        self.disposed = False

    def show(self) -> None:
        """Make the surface visible; text set from now on is rendered."""
        self.visible = True

    async def set_text(self, text: str) -> None:
        """Replace the surface's full text content."""
        self.text = text
        if self.visible and not self.disposed:
            await self.render()

    @abstractmethod
    async def render(self) -> None:
        """Output the current text."""
        pass

    async def dispose(self) -> None:
        """Release the surface. It cannot be shown again."""
        self.visible = False
        self.disposed = True

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.alignment.value}, priority={self.priority})"


SurfaceFactory = Callable[[Alignment, int], StatusSurface]
