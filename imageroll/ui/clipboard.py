"""Qt bridge for handing buffers to drawing surfaces and the clipboard."""

import logging

import numpy as np
from PIL import Image as PILImage
from PySide6.QtGui import QGuiApplication, QImage

from imageroll.models import DecodedImage

log = logging.getLogger(__name__)


def to_decoded_image(buffer: PILImage.Image) -> DecodedImage:
    """Exposes a buffer as tightly packed RGBA bytes."""
    arr = np.ascontiguousarray(np.asarray(buffer.convert("RGBA"), dtype=np.uint8))
    height, width = arr.shape[:2]
    return DecodedImage(
        buffer=memoryview(arr).cast("B"),
        width=width,
        height=height,
        bytes_per_line=width * 4,
        format=QImage.Format.Format_RGBA8888,
    )


def to_qimage(decoded: DecodedImage) -> QImage:
    """Wraps decoded pixels in a QImage that owns its own copy of the data."""
    qimg = QImage(
        decoded.buffer,
        decoded.width,
        decoded.height,
        decoded.bytes_per_line,
        decoded.format,
    )
    # The wrapper above borrows the numpy memory; detach it.
    return qimg.copy()


class QtClipboardSink:
    """Places buffers on the system clipboard of a running Qt application."""

    def __call__(self, buffer: PILImage.Image):
        app = QGuiApplication.instance()
        if app is None:
            log.warning("No Qt application running, can't copy image to clipboard")
            return
        QGuiApplication.clipboard().setImage(to_qimage(to_decoded_image(buffer)))
        log.info("Copied %dx%d image to clipboard", buffer.width, buffer.height)
