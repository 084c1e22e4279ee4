import numpy as np
from PIL import Image

from inlinepic.image import RasterImage
from inlinepic.terminal import CELL_HEIGHT, CELL_WIDTH

# Dark to bright
RAMP = " .,:;!-+=*x#%@"


def _cells(arr: np.ndarray, cell_width: int, cell_height: int) -> np.ndarray:
    """Split an (H, W, ...) array into (rows, cols, cell_h, cell_w, ...) cells, dropping the remainder."""
    rows = arr.shape[0] // cell_height
    cols = arr.shape[1] // cell_width
    trimmed = arr[: rows * cell_height, : cols * cell_width]
    cells = trimmed.reshape(rows, cell_height, cols, cell_width, *arr.shape[2:])
    return cells.swapaxes(1, 2)


def sample_brightness(image: Image.Image, cell_width: int, cell_height: int) -> np.ndarray:
    """Mean brightness (0-1) of each cell. Returns array of shape (rows, cols)."""
    arr = np.asarray(image.convert("L"), dtype=np.float64) / 255.0
    return _cells(arr, cell_width, cell_height).mean(axis=(2, 3))


def sample_colours(image: Image.Image, cell_width: int, cell_height: int) -> np.ndarray:
    """Mean RGB colour of each cell. Returns uint8 array of shape (rows, cols, 3)."""
    arr = np.asarray(image.convert("RGB"), dtype=np.float64)
    means = _cells(arr, cell_width, cell_height).mean(axis=(2, 3))
    return np.clip(means, 0, 255).astype(np.uint8)


def _format_colour(lines: list[str], colours: np.ndarray) -> str:
    """Wrap each character in an ANSI truecolor foreground escape."""
    out = []
    for r, line in enumerate(lines):
        parts = []
        for c, char in enumerate(line):
            red, green, blue = (int(v) for v in colours[r, c])
            parts.append(f"\033[38;2;{red};{green};{blue}m{char}")
        parts.append("\033[0m")
        out.append("".join(parts))
    return "\n".join(out)


def image_to_text(
    image: RasterImage,
    width: int | None = None,
    colour: bool = False,
    charset: str = RAMP,
    cell_width: int = CELL_WIDTH,
    cell_height: int = CELL_HEIGHT,
) -> str:
    """Render an image as plain text for terminals without a graphics protocol."""
    if image.is_empty or not charset or (width is not None and width <= 0):
        return ""

    # Transparent areas read as black
    rgba = image.to_pil()
    flat = Image.alpha_composite(Image.new("RGBA", rgba.size, (0, 0, 0, 255)), rgba).convert("RGB")

    if width is not None:
        new_pixel_width = width * cell_width
        scale = new_pixel_width / flat.width
        new_pixel_height = max(1, int(flat.height * scale))
        flat = flat.resize((new_pixel_width, new_pixel_height), Image.LANCZOS)

    if flat.width < cell_width or flat.height < cell_height:
        return ""

    brightness = sample_brightness(flat, cell_width, cell_height)
    levels = np.minimum((brightness * len(charset)).astype(int), len(charset) - 1)
    lines = ["".join(charset[i] for i in row) for row in levels]

    if colour:
        return _format_colour(lines, sample_colours(flat, cell_width, cell_height))
    return "\n".join(lines)
