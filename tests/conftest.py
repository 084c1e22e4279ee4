import io

import pytest
from PIL import Image

from inlinepic.image import RasterImage

_DETECTION_VARS = [
    "TERM",
    "TERM_PROGRAM",
    "ITERM_SESSION_ID",
    "KITTY_WINDOW_ID",
    "KITTY_PID",
    "WT_SESSION",
    "WT_PROFILE_ID",
    "FORCE_SIXEL",
    "INLINEPIC_PROTOCOL",
    "INLINEPIC_IMAGE_DEBUG",
]


class RecordingSink:
    """Stands in for stdout; remembers what was written and how often it was flushed."""

    def __init__(self):
        self.buffer = io.StringIO()
        self.flushes = 0

    def write(self, data):
        return self.buffer.write(data)

    def flush(self):
        self.flushes += 1

    @property
    def text(self):
        return self.buffer.getvalue()


def solid(width, height, colour=(255, 0, 0, 255)):
    return RasterImage.from_pil(Image.new("RGBA", (width, height), colour))


@pytest.fixture
def make_image():
    """Build a solid-colour RasterImage."""
    return solid


@pytest.fixture
def sink():
    return RecordingSink()


@pytest.fixture
def clean_env(monkeypatch):
    """Remove every environment variable detection looks at."""
    for name in _DETECTION_VARS:
        monkeypatch.delenv(name, raising=False)
    return monkeypatch
