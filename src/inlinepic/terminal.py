import os
import sys
from dataclasses import dataclass
from typing import TextIO

# Assumed character cell size in pixels when the terminal can't tell us
CELL_WIDTH = 8
CELL_HEIGHT = 16


@dataclass(frozen=True)
class TerminalGeometry:
    columns: int
    rows: int
    cell_width: int = CELL_WIDTH
    cell_height: int = CELL_HEIGHT

    @property
    def pixel_width(self) -> int:
        return self.columns * self.cell_width

    @property
    def pixel_height(self) -> int:
        return self.rows * self.cell_height


def get_terminal_size() -> tuple[int, int]:
    """Return (columns, rows) of the terminal, or (80, 24) if not a tty."""
    if not sys.stdout.isatty():
        return (80, 24)
    size = os.get_terminal_size()
    return (size.columns, size.lines)


def query_geometry(
    stream: TextIO | None = None,
    cell_width: int = CELL_WIDTH,
    cell_height: int = CELL_HEIGHT,
) -> TerminalGeometry | None:
    """Return the geometry of the terminal behind `stream`, or None if it can't be determined."""
    stream = sys.stdout if stream is None else stream
    try:
        if not stream.isatty():
            return None
        size = os.get_terminal_size(stream.fileno())
    except (OSError, ValueError):
        return None
    if size.columns <= 0 or size.lines <= 0:
        return None
    return TerminalGeometry(size.columns, size.lines, cell_width, cell_height)
