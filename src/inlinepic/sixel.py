"""Sixel encoder backed by term-image.

term-image sizes images in character cells and pads its render out to fill
them; only the DCS ... ST sequence itself is kept here.
"""

import math

from term_image.exceptions import TermImageError
from term_image.image import SixelImage

from inlinepic.detect import ProtocolKind
from inlinepic.encoder import ESC, ST, EncodedPayload, EncodingError
from inlinepic.image import RasterImage
from inlinepic.terminal import CELL_HEIGHT, CELL_WIDTH

DCS = ESC + "P"


def cell_size(image: RasterImage, cell_width: int = CELL_WIDTH, cell_height: int = CELL_HEIGHT) -> tuple[int, int]:
    """Smallest (columns, lines) that holds the image's pixels."""
    return (max(1, math.ceil(image.width / cell_width)), max(1, math.ceil(image.height / cell_height)))


def extract_sequence(rendered: str) -> str:
    start = rendered.find(DCS)
    end = rendered.rfind(ST)
    if start == -1 or end < start:
        raise EncodingError("sixel encoding error: no sixel data in rendered output")
    return rendered[start : end + len(ST)]


class SixelEncoder:
    protocol = ProtocolKind.SIXEL

    def __init__(self, cell_width: int = CELL_WIDTH, cell_height: int = CELL_HEIGHT):
        if cell_width <= 0 or cell_height <= 0:
            raise ValueError(f"cell size must be positive, got {cell_width}x{cell_height}")
        self.cell_width = cell_width
        self.cell_height = cell_height

    def encode(self, image: RasterImage) -> EncodedPayload:
        if image.is_empty:
            raise EncodingError("cannot encode an empty image as sixel")
        columns, lines = cell_size(image, self.cell_width, self.cell_height)
        try:
            sixel = SixelImage(image.to_pil(), width=columns, height=lines)
            sixel.set_render_method("whole")
            rendered = str(sixel)
        except (TermImageError, ValueError, OSError) as e:
            raise EncodingError(f"sixel encoding error: {e}") from e
        return EncodedPayload(self.protocol, (extract_sequence(rendered),))
