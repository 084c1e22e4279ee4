import io
from dataclasses import dataclass
from pathlib import Path

from PIL import Image, UnidentifiedImageError

BYTES_PER_PIXEL = 4


class ImageLoadError(ValueError):
    """The source asset could not be decoded into an image."""


@dataclass(frozen=True)
class RasterImage:
    width: int
    height: int
    pixels: bytes  # row-major RGBA, one byte per channel

    def __post_init__(self):
        if self.width < 0 or self.height < 0:
            raise ValueError(f"Negative image size: {self.width}x{self.height}")
        expected = self.width * self.height * BYTES_PER_PIXEL
        if len(self.pixels) != expected:
            raise ValueError(f"Expected {expected} bytes of RGBA data, got {len(self.pixels)}")

    @property
    def size(self) -> tuple[int, int]:
        return (self.width, self.height)

    @property
    def is_empty(self) -> bool:
        return self.width == 0 or self.height == 0

    @classmethod
    def from_pil(cls, image: Image.Image) -> "RasterImage":
        if image.mode != "RGBA":
            image = image.convert("RGBA")
        return cls(width=image.width, height=image.height, pixels=image.tobytes())

    def to_pil(self) -> Image.Image:
        return Image.frombytes("RGBA", self.size, self.pixels)


def load_image(source: str | Path | bytes) -> RasterImage:
    """Decode an image file (or its raw bytes) into an RGBA raster."""
    try:
        if isinstance(source, bytes):
            if not source:
                raise ImageLoadError("Image data is empty")
            image = Image.open(io.BytesIO(source))
        else:
            image = Image.open(Path(source))
        image.load()
    except (UnidentifiedImageError, Image.DecompressionBombError, OSError) as e:
        raise ImageLoadError(f"Cannot decode image: {e}") from e
    return RasterImage.from_pil(image)
