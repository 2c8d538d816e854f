"""Keyed cache of images being browsed, with a byte budget for off-screen buffers."""

import logging
import os
from pathlib import Path
from typing import Any, Callable, Dict, Optional

from cachetools import LRUCache
from PIL import Image as PILImage
from send2trash import send2trash

from imageroll.errors import NoCurrentImageError
from imageroll.imaging.image import Image

log = logging.getLogger(__name__)


class ByteLRUCache(LRUCache):
    """An LRU Cache that respects the size of its items in bytes."""

    def __init__(
        self,
        max_bytes: int,
        size_of: Callable[[Any], int] = len,
        on_evict: Callable[[Any], None] = None,
    ):
        super().__init__(maxsize=max_bytes, getsizeof=size_of)
        self.on_evict = on_evict
        log.info(
            f"Initialized byte-aware LRU cache with {max_bytes / 1024**2:.2f} MB capacity."
        )

    def __setitem__(self, key, value):
        # Eviction of older items to make room is handled by the parent class via popitem
        super().__setitem__(key, value)
        log.debug(
            f"Cached item '{key}'. Cache size: {self.currsize / 1024**2:.2f} MB"
        )

    def popitem(self):
        """Extend popitem to log eviction and notify the owner."""
        key, value = super().popitem()
        log.debug(
            f"Evicted item '{key}' to free up space. Cache size: {self.currsize / 1024**2:.2f} MB"
        )

        if self.on_evict:
            self.on_evict(key)

        return key, value


class ImageList:
    """Images keyed by file path, plus the path of the one being displayed.

    Edits survive browsing away from an image. Buffers of off-screen images
    are kept until their combined size exceeds ``max_buffer_bytes``; then the
    least recently viewed ones are released and rebuilt with ``Image.reload``
    when the user comes back.
    """

    def __init__(self, max_buffer_bytes: int = 0):
        self.images: Dict[Path, Image] = {}
        self.current_path: Optional[Path] = None
        self._offscreen = ByteLRUCache(
            max_bytes=max_buffer_bytes,
            size_of=lambda nbytes: nbytes,
            on_evict=self._release_buffers,
        )

    def __contains__(self, path: Path) -> bool:
        return path in self.images

    def __len__(self) -> int:
        return len(self.images)

    def __getitem__(self, path: Path) -> Image:
        return self.images[path]

    def get(self, path: Path) -> Optional[Image]:
        return self.images.get(path)

    def insert(self, path: Path, image: Image):
        self.images[path] = image

    def remove(self, path: Path) -> Optional[Image]:
        self._offscreen.pop(path, None)
        return self.images.pop(path, None)

    def clear(self):
        self.images.clear()
        self._offscreen.clear()
        self.current_path = None

    def _release_buffers(self, path: Path):
        image = self.images.get(path)
        if image is not None and path != self.current_path:
            log.debug("Releasing buffers of off-screen image %s", path)
            image.remove_image_buffers()

    def _park(self, path: Path):
        """Tracks an image that just went off-screen against the buffer budget."""
        image = self.images.get(path)
        if image is None or not image.has_buffers():
            return
        nbytes = image.buffer_nbytes()
        if nbytes > self._offscreen.maxsize:
            self._release_buffers(path)
            return
        self._offscreen[path] = nbytes

    def set_current_path(self, path: Optional[Path]):
        previous = self.current_path
        self.current_path = path
        if path is not None:
            self._offscreen.pop(path, None)
        if previous is not None and previous != path:
            self._park(previous)

    def current_image(self) -> Optional[Image]:
        if self.current_path is None:
            return None
        return self.images.get(self.current_path)

    def remove_current_image(self) -> Optional[Image]:
        if self.current_path is None:
            return None
        return self.remove(self.current_path)

    def save_current_image(self, filename: Optional[Path] = None):
        """Saves the current image.

        Without ``filename`` the image overwrites its own file and the edit
        history is cleared. With ``filename`` the history is kept and the
        current path doesn't change, unless ``filename`` is the current file.
        """
        image = self.current_image()
        if image is None:
            raise NoCurrentImageError("There is no image to save")
        if filename is None or Path(filename).resolve() == self.current_path.resolve():
            image.save(self.current_path, clear_history=True)
        else:
            image.save(filename, clear_history=False)

    def delete_current_image(self) -> str:
        """Moves the current file to the trash and forgets its edits.

        Returns the file name for user feedback.
        """
        path = self.current_path
        if path is None:
            raise NoCurrentImageError("There is no image to delete")
        send2trash(os.path.normpath(path))
        log.info("Moved %s to trash", path)
        self.remove(path)
        self.current_path = None
        return path.name

    def copy_current_image(self, sink: Callable[[PILImage.Image], None]) -> bool:
        """Hands the current buffer to a clipboard sink."""
        image = self.current_image()
        if image is None or image.current_buffer is None:
            return False
        sink(image.current_buffer)
        return True
