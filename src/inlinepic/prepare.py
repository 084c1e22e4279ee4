import logging

from PIL import Image

from inlinepic.image import RasterImage
from inlinepic.terminal import TerminalGeometry

logger = logging.getLogger(__name__)


def target_size(width: int, height: int, geometry: TerminalGeometry) -> tuple[int, int]:
    """Largest size with the image's aspect ratio that fits the terminal, never larger than the image."""
    term_w, term_h = geometry.pixel_width, geometry.pixel_height
    if width <= term_w and height <= term_h:
        return (width, height)
    # Scale by the tighter axis: min(term_w / width, term_h / height), in integers
    if term_w * height <= term_h * width:
        new_w, new_h = term_w, term_w * height // width
    else:
        new_w, new_h = term_h * width // height, term_h
    return (max(1, new_w), max(1, new_h))


def prepare(image: RasterImage, geometry: TerminalGeometry | None) -> RasterImage:
    """Downscale `image` to fit the terminal's pixel area. Never upscales."""
    if geometry is None:
        logger.debug("terminal size unavailable; keeping image at %dx%d", image.width, image.height)
        return image

    term_w, term_h = geometry.pixel_width, geometry.pixel_height
    if image.is_empty or (image.width <= term_w and image.height <= term_h):
        logger.debug(
            "image fits terminal; img_px=%dx%d, term_px=%dx%d -> no downscale",
            image.width,
            image.height,
            term_w,
            term_h,
        )
        return image

    new_w, new_h = target_size(image.width, image.height, geometry)
    logger.debug(
        "downscaling image: img_px=%dx%d -> %dx%d (term_px=%dx%d)",
        image.width,
        image.height,
        new_w,
        new_h,
        term_w,
        term_h,
    )
    resized = image.to_pil().resize((new_w, new_h), Image.LANCZOS)
    return RasterImage.from_pil(resized)
