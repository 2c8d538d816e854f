"""Notifies the file list when the browsed directory changes on disk."""

import logging
from pathlib import Path
from typing import Callable, Optional

from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer

log = logging.getLogger(__name__)

# Written by Image.save before the atomic rename
TEMP_SUFFIX = ".tmp"

# Reading a file, e.g. to decode it, isn't a change
READ_EVENTS = ("opened", "closed_no_write")


class ImageDirectoryEventHandler(FileSystemEventHandler):
    def __init__(self, on_change: Callable[[], None]):
        super().__init__()
        self.on_change = on_change

    def on_any_event(self, event: FileSystemEvent):
        if event.event_type in READ_EVENTS:
            return
        # A rename takes effect at its destination
        path = getattr(event, "dest_path", "") or event.src_path
        if str(path).endswith(TEMP_SUFFIX):
            return
        log.debug(f"{event.event_type} in watched directory: {event.src_path}")
        self.on_change()


class Watcher:
    """Runs a watchdog observer over one directory, non-recursively.

    ``on_change`` runs on the observer thread, so it should only hand a signal
    over to the thread that owns the file list.
    """

    def __init__(self, directory: Path, on_change: Callable[[], None]):
        self.directory = Path(directory)
        self.handler = ImageDirectoryEventHandler(on_change)
        self.observer: Optional[Observer] = None

    def start(self):
        if self.is_alive():
            return
        if not self.directory.is_dir():
            log.warning(f"Not watching {self.directory}: no such directory")
            return
        # Observers are threads and can't be restarted, so each start gets a new one
        observer = Observer()
        observer.schedule(self.handler, str(self.directory), recursive=False)
        observer.start()
        self.observer = observer
        log.info(f"Watching {self.directory} for changes")

    def stop(self):
        observer, self.observer = self.observer, None
        if observer is not None and observer.is_alive():
            observer.stop()
            observer.join()
            log.info(f"Stopped watching {self.directory}")

    def is_alive(self) -> bool:
        return self.observer is not None and self.observer.is_alive()
