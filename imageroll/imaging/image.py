"""The editable image: decoded buffers plus a linear, undoable operation history."""

import logging
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple, Union

from PIL import Image as PILImage

from imageroll.config import config
from imageroll.errors import DecodeError, EncodeError
from imageroll.imaging.operations import apply_operation
from imageroll.imaging.preview import BestFit, OriginalSize, PreviewSize, Resized
from imageroll.models import CoordinatesPair, ImageOperation

log = logging.getLogger(__name__)

PathLike = Union[str, Path]

# Lower-cased extension -> Pillow format. Anything else is written as PNG.
SAVE_FORMATS: Dict[str, str] = {
    "png": "PNG",
    "jpg": "JPEG",
    "jpeg": "JPEG",
    "tif": "TIFF",
    "tiff": "TIFF",
    "ico": "ICO",
    "bmp": "BMP",
}
DEFAULT_SAVE_FORMAT = "PNG"


def save_format_for(path: PathLike) -> str:
    """Picks the encoder for a destination path from its extension."""
    suffix = Path(path).suffix
    if not suffix:
        raise EncodeError("File path doesn't have file extension")
    return SAVE_FORMATS.get(suffix[1:].lower(), DEFAULT_SAVE_FORMAT)


# ICO frames are stored with one-byte dimensions
MAX_ICO_SIZE = 256


def _save_options(file_format: str, img: PILImage.Image) -> Dict[str, Any]:
    if file_format == "JPEG":
        return {"quality": config.getint("save", "jpeg_quality", fallback=100)}
    if file_format == "PNG":
        return {"compress_level": config.getint("save", "png_compress_level", fallback=9)}
    if file_format == "ICO":
        if img.width > MAX_ICO_SIZE or img.height > MAX_ICO_SIZE:
            raise EncodeError(
                f"Icons can be at most {MAX_ICO_SIZE}x{MAX_ICO_SIZE}, image is {img.width}x{img.height}"
            )
        # Without explicit sizes Pillow writes only its smaller presets
        return {"sizes": [img.size]}
    return {}


def _decode(path: PathLike) -> PILImage.Image:
    """Decodes a file fully into memory, closing the file handle."""
    try:
        with PILImage.open(path) as img:
            img.load()
            if img.mode in ("RGB", "RGBA"):
                return img.copy()
            if img.mode in ("LA", "PA") or "transparency" in img.info:
                return img.convert("RGBA")
            return img.convert("RGB")
    except (OSError, ValueError, PILImage.DecompressionBombError) as e:
        raise DecodeError(f"Couldn't open image {path}: {e}") from e


def _scale_to_fit(img: PILImage.Image, canvas_width: int, canvas_height: int) -> Optional[PILImage.Image]:
    width_ratio = canvas_width / img.width
    height_ratio = canvas_height / img.height
    scale_ratio = min(width_ratio, height_ratio)
    width = int(img.width * scale_ratio)
    height = int(img.height * scale_ratio)
    if width < 1 or height < 1:
        return None
    return img.resize((width, height), resample=PILImage.Resampling.NEAREST)


def _scale_by_percent(img: PILImage.Image, percent: int) -> Optional[PILImage.Image]:
    width = int(img.width * (percent / 100.0))
    height = int(img.height * (percent / 100.0))
    if width < 1 or height < 1:
        return None
    return img.resize((width, height), resample=PILImage.Resampling.BILINEAR)


class Image:
    """A decoded image and the edits applied to it since it was last saved.

    ``current_buffer`` is always ``original_buffer`` with
    ``operations[:cursor + 1]`` applied in order. ``cursor`` is None when no
    operation is applied, either because there are none or all were undone.
    """

    def __init__(self, original_buffer: Optional[PILImage.Image] = None):
        self.original_buffer: Optional[PILImage.Image] = original_buffer
        self.current_buffer: Optional[PILImage.Image] = original_buffer
        self.preview_buffer: Optional[PILImage.Image] = None
        self.operations: List[ImageOperation] = []
        self.cursor: Optional[int] = None

    @classmethod
    def load(cls, path: PathLike) -> "Image":
        """Decodes an image file with an empty edit history."""
        img = _decode(path)
        log.debug("Loaded %s (%dx%d, %s)", path, img.width, img.height, img.mode)
        return cls(img)

    def reload(self, path: PathLike) -> "Image":
        """Re-decodes the file and replays the applied part of the history.

        Used after ``remove_image_buffers``. The history and cursor are kept
        as they are. On failure the image is left untouched.
        """
        original_buffer = _decode(path)
        self.original_buffer = original_buffer
        self.current_buffer = self._replay(original_buffer, self.cursor)
        self.preview_buffer = None
        log.debug("Reloaded %s, replayed %d operation(s)", path, self._applied_count())
        return self

    def save(self, path: PathLike, clear_history: bool):
        """Encodes the current buffer to ``path``.

        The encoder follows the file extension. With ``clear_history`` the
        saved buffer becomes the new original and the history is dropped.
        """
        if self.current_buffer is None:
            raise EncodeError("Image buffer is missing!")
        path = Path(path)
        file_format = save_format_for(path)

        img = self.current_buffer
        if file_format == "JPEG" and img.mode != "RGB":
            img = img.convert("RGB")

        options = _save_options(file_format, img)
        temp_path = path.with_name(path.name + ".tmp")
        try:
            img.save(temp_path, format=file_format, **options)
            # Atomic rename
            temp_path.replace(path)
        except (OSError, ValueError, KeyError) as e:
            temp_path.unlink(missing_ok=True)
            raise EncodeError(f"Couldn't save image to {path}: {e}") from e
        log.info("Saved %s as %s", path, file_format)

        if clear_history:
            self.original_buffer = self.current_buffer
            self.operations.clear()
            self.cursor = None

    def remove_image_buffers(self):
        """Drops every buffer but keeps the history so ``reload`` can rebuild them."""
        self.original_buffer = None
        self.current_buffer = None
        self.preview_buffer = None

    def has_buffers(self) -> bool:
        return self.current_buffer is not None

    def buffer_nbytes(self) -> int:
        """Approximate memory held by the decoded buffers."""
        total = 0
        seen = set()
        for buffer in (self.original_buffer, self.current_buffer, self.preview_buffer):
            if buffer is None or id(buffer) in seen:
                continue
            seen.add(id(buffer))
            total += buffer.width * buffer.height * len(buffer.getbands())
        return total

    # -- History --

    def _applied_count(self) -> int:
        return 0 if self.cursor is None else self.cursor + 1

    def _replay(self, buffer: Optional[PILImage.Image], cursor: Optional[int]) -> Optional[PILImage.Image]:
        if buffer is None or cursor is None:
            return buffer
        for operation in self.operations[:cursor + 1]:
            result = apply_operation(buffer, operation)
            if result is not None:
                buffer = result
        return buffer

    def apply_operation(self, operation: ImageOperation) -> "Image":
        """Applies an edit on top of the current buffer and records it.

        Any undone operations are discarded first. An operation that can't be
        applied leaves both the buffer and the history unchanged.
        """
        if self.current_buffer is None:
            return self
        result = apply_operation(self.current_buffer, operation)
        if result is None:
            log.debug("Operation %s not applicable, ignoring", operation)
            return self
        del self.operations[self._applied_count():]
        self.operations.append(operation)
        self.cursor = len(self.operations) - 1
        self.current_buffer = result
        return self

    def has_unsaved_edits(self) -> bool:
        return bool(self.operations) and self.cursor is not None

    def can_undo_operation(self) -> bool:
        return self.cursor is not None

    def undo_operation(self):
        if not self.can_undo_operation():
            return
        self.cursor = self.cursor - 1 if self.cursor > 0 else None
        self.current_buffer = self._replay(self.original_buffer, self.cursor)

    def can_redo_operation(self) -> bool:
        return self._applied_count() < len(self.operations)

    def redo_operation(self):
        if not self.can_redo_operation():
            return
        self.cursor = self._applied_count()
        self.current_buffer = self._replay(self.original_buffer, self.cursor)

    # -- Derived buffers --

    def create_preview_buffer(self, preview_size: PreviewSize):
        """Derives the on-screen buffer from the current buffer."""
        img = self.current_buffer
        if img is None:
            self.preview_buffer = None
        elif isinstance(preview_size, BestFit):
            self.preview_buffer = _scale_to_fit(img, preview_size.width, preview_size.height)
        elif isinstance(preview_size, OriginalSize):
            self.preview_buffer = img
        elif isinstance(preview_size, Resized):
            self.preview_buffer = _scale_by_percent(img, preview_size.percent)
        else:
            raise TypeError(f"Unknown preview size: {preview_size!r}")

    def create_print_buffer(self, canvas_width: int, canvas_height: int) -> Optional[PILImage.Image]:
        """Like best fit, but only ever shrinks the image."""
        size = self.image_size()
        if size is None:
            return None
        image_width, image_height = size
        if image_width > canvas_width or image_height > canvas_height:
            return _scale_to_fit(self.current_buffer, canvas_width, canvas_height)
        return self.current_buffer

    def preview_coords_to_image_coords(self, coords: CoordinatesPair) -> Optional[CoordinatesPair]:
        """Maps a rectangle selected on the preview to current-buffer pixels."""
        image_size = self.image_size()
        preview_size = self.preview_buffer_size()
        if image_size is None or preview_size is None:
            return None
        x_ratio = image_size[0] / preview_size[0]
        y_ratio = image_size[1] / preview_size[1]
        (start_x, start_y), (end_x, end_y) = coords
        return (
            (int(start_x * x_ratio), int(start_y * y_ratio)),
            (int(end_x * x_ratio), int(end_y * y_ratio)),
        )

    def image_size(self) -> Optional[Tuple[int, int]]:
        if self.current_buffer is None:
            return None
        return self.current_buffer.size

    def image_aspect_ratio(self) -> Optional[float]:
        size = self.image_size()
        if size is None:
            return None
        return size[0] / size[1]

    def preview_buffer_size(self) -> Optional[Tuple[int, int]]:
        if self.preview_buffer is None:
            return None
        return self.preview_buffer.size
