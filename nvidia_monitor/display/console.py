"""
Terminal status line.

On a TTY the line is redrawn in place, flush left or right against the
terminal width. When stdout is a pipe every update is written as its own
line, which suits status bars that read a command's output.
"""

import shutil
import sys
from typing import TextIO

from ..config.schema import Alignment
from ..const import DEFAULT_STATUS_PRIORITY
from .base import StatusSurface


CLEAR_LINE = "\r\033[2K"


class ConsoleStatusSurface(StatusSurface):
    """Status surface writing to a text stream."""

    def __init__(
        self,
        alignment: Alignment,
        priority: int = DEFAULT_STATUS_PRIORITY,
        stream: TextIO | None = None,
    ):
        super().__init__(alignment, priority)
        self.stream = stream or sys.stdout
        self._interactive = hasattr(self.stream, "isatty") and self.stream.isatty()

    def format_line(self, width: int | None = None) -> str:
        """Apply the alignment to the current text."""
        if self.alignment == Alignment.RIGHT and width:
            return self.text.rjust(width - 1)
        return self.text

    async def render(self) -> None:
        if self._interactive:
            width = shutil.get_terminal_size().columns
            self.stream.write(CLEAR_LINE + self.format_line(width))
        else:
            self.stream.write(self.text + "\n")
        self.stream.flush()

    async def dispose(self) -> None:
        if self._interactive and self.visible:
            self.stream.write(CLEAR_LINE)
            self.stream.flush()
        await super().dispose()
