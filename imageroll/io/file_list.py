"""Lists the images of one directory and steps through them cyclically."""

import bisect
import logging
import mimetypes
import os
import time
from pathlib import Path
from typing import Callable, List, Optional

from imageroll.errors import EnumerationError
from imageroll.io.watcher import Watcher

log = logging.getLogger(__name__)


def is_image_name(name: str) -> bool:
    """Guesses from the file name whether a file holds an image."""
    content_type, _ = mimetypes.guess_type(name, strict=False)
    return content_type is not None and content_type.startswith("image")


def find_images(directory: Path) -> List[str]:
    """Returns the sorted names of the image files in a directory."""
    t_start = time.perf_counter()
    names: List[str] = []
    try:
        with os.scandir(directory) as entries:
            for entry in entries:
                if entry.is_file() and is_image_name(entry.name):
                    names.append(entry.name)
    except OSError as e:
        raise EnumerationError(f"Couldn't list directory {directory}: {e}") from e

    names.sort()
    log.debug("Found %d images in %s in %.3fs", len(names), directory, time.perf_counter() - t_start)
    return names


class FileList:
    """The images next to a starting file, with one of them selected.

    ``current_index`` is None exactly when the list is empty.
    """

    def __init__(self, current_file: Optional[Path] = None):
        self.current_folder: Optional[Path] = None
        self.names: List[str] = []
        self.current_index: Optional[int] = None
        self.watcher: Optional[Watcher] = None

        if current_file is None:
            return

        current_file = Path(current_file)
        self.current_folder = current_file.parent
        self.names = find_images(self.current_folder)
        try:
            self.current_index = self.names.index(current_file.name)
        except ValueError:
            log.warning("%s is not a listed image, selecting the first image instead", current_file)
            self.next()

    def __len__(self) -> int:
        return len(self.names)

    def current_file_path(self) -> Optional[Path]:
        if self.current_index is None:
            return None
        return self.current_folder / self.names[self.current_index]

    def next(self):
        if not self.names:
            self.current_index = None
        elif self.current_index is None or self.current_index + 1 >= len(self.names):
            self.current_index = 0
        else:
            self.current_index += 1

    def previous(self):
        if not self.names:
            self.current_index = None
        elif self.current_index is None:
            self.current_index = 0
        elif self.current_index == 0:
            self.current_index = len(self.names) - 1
        else:
            self.current_index -= 1

    def refresh(self):
        """Re-reads the directory, keeping the selected file when it still exists.

        If the selected file is gone the file that followed it is selected.
        If the directory is gone the list becomes empty and stops watching.
        """
        if self.current_folder is None:
            return
        if not self.current_folder.is_dir():
            log.info("Directory %s no longer exists", self.current_folder)
            self.stop_watching()
            self.names = []
            self.current_index = None
            self.current_folder = None
            return

        current_path = self.current_file_path()
        self.names = find_images(self.current_folder)
        if current_path is None:
            self.current_index = None
            self.next()
            return

        current_name = current_path.name
        index = bisect.bisect_left(self.names, current_name)
        if index < len(self.names) and self.names[index] == current_name:
            self.current_index = index
        elif not self.names:
            self.current_index = None
        else:
            # Select the file that sorted right after the vanished one
            self.current_index = index - 1 if index > 0 else len(self.names) - 1
            self.next()

    def watch(self, callback: Callable[[], None]):
        """Calls ``callback`` from a watcher thread whenever the folder changes."""
        self.stop_watching()
        if self.current_folder is None:
            return
        self.watcher = Watcher(self.current_folder, callback)
        self.watcher.start()

    def stop_watching(self):
        if self.watcher is not None:
            self.watcher.stop()
            self.watcher = None

    def is_watching(self) -> bool:
        return self.watcher is not None and self.watcher.is_alive()
