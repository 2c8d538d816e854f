"""Pure geometric transforms applied to Pillow buffers."""

import logging
from typing import Optional, Tuple

from PIL import Image

from imageroll.models import Crop, ImageOperation, Resize, Rotate, Rotation

log = logging.getLogger(__name__)

_ROTATIONS = {
    Rotation.CLOCKWISE: Image.Transpose.ROTATE_270,
    Rotation.COUNTERCLOCKWISE: Image.Transpose.ROTATE_90,
}


def normalize_crop_box(crop: Crop) -> Tuple[int, int, int, int]:
    """Returns (x, y, width, height) for a crop whose corners may be in any order."""
    (start_x, start_y), (end_x, end_y) = crop.start, crop.end
    return (
        min(start_x, end_x),
        min(start_y, end_y),
        abs(end_x - start_x),
        abs(end_y - start_y),
    )


def _crop(img: Image.Image, crop: Crop) -> Optional[Image.Image]:
    x, y, width, height = normalize_crop_box(crop)
    if width == 0 or height == 0:
        return None
    if x < 0 or y < 0 or x + width > img.width or y + height > img.height:
        log.debug("Crop %s falls outside %dx%d buffer", crop, img.width, img.height)
        return None
    return img.crop((x, y, x + width, y + height))


def _resize(img: Image.Image, resize: Resize) -> Optional[Image.Image]:
    if resize.width <= 0 or resize.height <= 0:
        return None
    # Same ceiling Pillow applies when decoding; None disables it
    max_pixels = Image.MAX_IMAGE_PIXELS
    if max_pixels is not None and resize.width * resize.height > max_pixels:
        log.warning("Resize to %dx%d exceeds the %d pixel limit", resize.width, resize.height, max_pixels)
        return None
    return img.resize((resize.width, resize.height), resample=Image.Resampling.BILINEAR)


def apply_operation(img: Image.Image, operation: ImageOperation) -> Optional[Image.Image]:
    """Applies an operation to a buffer and returns the new buffer.

    Returns None when the operation can't be applied to a buffer of this size;
    the input buffer is never modified.
    """
    if isinstance(operation, Rotate):
        return img.transpose(_ROTATIONS[operation.direction])
    if isinstance(operation, Crop):
        return _crop(img, operation)
    if isinstance(operation, Resize):
        return _resize(img, operation)
    raise TypeError(f"Unknown image operation: {operation!r}")


def parse_operation(text: str) -> ImageOperation:
    """Parses a command-line operation such as ``rotate:cw``, ``crop:0,0,10,10``
    or ``resize:640x480``.
    """
    name, _, args = text.partition(":")
    name = name.strip().lower()
    args = args.strip().lower()
    try:
        if name == "rotate":
            return Rotate(Rotation(args))
        if name == "crop":
            x1, y1, x2, y2 = (int(value) for value in args.split(","))
            return Crop((x1, y1), (x2, y2))
        if name == "resize":
            width, height = (int(value) for value in args.split("x"))
            return Resize(width, height)
    except ValueError as e:
        raise ValueError(f"Invalid arguments for '{name}': {args!r}") from e
    raise ValueError(f"Unknown operation: {text!r}")
