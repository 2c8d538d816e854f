"""Event dispatcher tying the image list, file list and preview together, and the CLI."""

import argparse
import dataclasses
import logging
import math
import queue
import sys
from pathlib import Path
from typing import Callable, List, Optional, Tuple

from PIL import Image as PILImage

from imageroll import events
from imageroll.config import config
from imageroll.errors import DecodeError, EnumerationError, ImageRollError
from imageroll.imaging.cache import ImageList
from imageroll.imaging.image import Image
from imageroll.imaging.operations import parse_operation
from imageroll.imaging.preview import BestFit, PreviewSize
from imageroll.io.file_list import FileList
from imageroll.logging_setup import setup_logging
from imageroll.models import Crop

log = logging.getLogger(__name__)

APP_NAME = "Image Roll"

_LOG_LEVELS = {
    events.INFO: logging.INFO,
    events.WARNING: logging.WARNING,
    events.ERROR: logging.ERROR,
}


@dataclasses.dataclass
class ButtonsState:
    """Which controls a UI should enable for the current state."""
    navigation: bool = False
    undo: bool = False
    redo: bool = False
    save: bool = False
    edit: bool = False
    preview_smaller: bool = True
    preview_larger: bool = True


def _initial_preview_size() -> PreviewSize:
    label = config.get("preview", "initial_size", fallback="Fit screen")
    try:
        return PreviewSize.from_label(label)
    except ValueError:
        log.warning("Invalid preview size %r in config, using best fit", label)
        return BestFit()


class AppController:
    """Owns the image and file lists and mutates them in response to events.

    Events are queued with ``post_event`` from any thread and handled one at
    a time, in arrival order, by ``process_pending_events`` on the owning
    thread. Handlers may post follow-up events.
    """

    def __init__(
        self,
        viewport_size: Callable[[], Tuple[int, int]] = lambda: (0, 0),
        clipboard_sink: Optional[Callable[[PILImage.Image], None]] = None,
        on_preview: Optional[Callable[[Optional[PILImage.Image]], None]] = None,
        on_message: Optional[Callable[[events.DisplayMessage], None]] = None,
        watch_directories: bool = True,
    ):
        self.viewport_size = viewport_size
        self.clipboard_sink = clipboard_sink
        self.on_preview = on_preview
        self.on_message = on_message
        self.watch_directories = watch_directories

        self.event_queue: "queue.Queue[object]" = queue.Queue()
        cache_size_mb = config.getint("core", "cache_size_mb", fallback=512)
        self.image_list = ImageList(max_buffer_bytes=max(0, cache_size_mb) * 1024**2)
        self.file_list = FileList()
        self.preview_size: PreviewSize = _initial_preview_size()
        self.scale_before_zoom_gesture: Optional[PreviewSize] = None
        self.selection_coords = None
        self.crop_mode = False
        self.title = APP_NAME
        self.messages: List[events.DisplayMessage] = []

        self._handlers = {
            events.OpenFile: self.open_file,
            events.LoadImage: self.load_image,
            events.DisplayMessage: self.display_message,
            events.ImageViewportResize: self.image_viewport_resize,
            events.RefreshPreview: self.refresh_preview,
            events.ChangePreviewSize: self.change_preview_size,
            events.ImageEdit: self.image_edit,
            events.SetCropMode: self.set_crop_mode,
            events.StartSelection: self.start_selection,
            events.DragSelection: self.drag_selection,
            events.EndSelection: self.end_selection,
            events.PreviewSmaller: self.preview_smaller,
            events.PreviewLarger: self.preview_larger,
            events.PreviewFitScreen: self.preview_fit_screen,
            events.NextImage: self.next_image,
            events.PreviousImage: self.previous_image,
            events.RefreshFileList: self.refresh_file_list,
            events.SaveCurrentImage: self.save_current_image,
            events.DeleteCurrentImage: self.delete_current_image,
            events.UndoOperation: self.undo_operation,
            events.RedoOperation: self.redo_operation,
            events.CopyCurrentImage: self.copy_current_image,
            events.StartZoomGesture: self.start_zoom_gesture,
            events.ZoomGestureScaleChanged: self.change_scale_on_zoom_gesture,
        }

    # -- Event loop --

    def post_event(self, event):
        """Queues an event. Safe to call from any thread."""
        self.event_queue.put(event)

    def process_event(self, event):
        handler = self._handlers.get(type(event))
        if handler is None:
            log.debug("Discarded unused event: %r", event)
            return
        handler(event)

    def process_pending_events(self):
        """Handles queued events until the queue is empty."""
        while True:
            try:
                event = self.event_queue.get_nowait()
            except queue.Empty:
                return
            self.process_event(event)

    def shutdown(self):
        self.file_list.stop_watching()

    def _report(self, error: Exception):
        self.post_event(events.DisplayMessage(str(error), events.ERROR))

    # -- Files --

    def open_file(self, event: events.OpenFile):
        try:
            new_file_list = FileList(event.path)
        except EnumerationError as e:
            self._report(e)
            return

        self.file_list.stop_watching()
        self.image_list.clear()
        self.file_list = new_file_list
        self.post_event(events.LoadImage(self.file_list.current_file_path()))

        if self.watch_directories:
            self.file_list.watch(lambda: self.post_event(events.RefreshFileList()))

    def refresh_file_list(self, event: events.RefreshFileList = None):
        try:
            self.file_list.refresh()
        except EnumerationError as e:
            self._report(e)
            return
        self.post_event(events.LoadImage(self.file_list.current_file_path()))

    def load_image(self, event: events.LoadImage):
        path = event.path
        if path is None:
            self.title = APP_NAME
            self.image_list.set_current_path(None)
            self.post_event(events.RefreshPreview(self.preview_size))
            return

        image = self.image_list.get(path)
        try:
            if image is None:
                image = Image.load(path)
            elif not image.has_buffers():
                image.reload(path)
        except DecodeError as e:
            self.image_list.set_current_path(None)
            self.post_event(events.RefreshPreview(self.preview_size))
            self._report(e)
            return

        self.image_list.insert(path, image)
        self.image_list.set_current_path(path)
        self.title = path.name
        if self.preview_size == BestFit(0, 0):
            self.preview_size = self.preview_size.with_viewport(*self.viewport_size())
        self.post_event(events.RefreshPreview(self.preview_size))

    def next_image(self, event: events.NextImage = None):
        self.file_list.next()
        self.post_event(events.LoadImage(self.file_list.current_file_path()))

    def previous_image(self, event: events.PreviousImage = None):
        self.file_list.previous()
        self.post_event(events.LoadImage(self.file_list.current_file_path()))

    def save_current_image(self, event: events.SaveCurrentImage):
        try:
            self.image_list.save_current_image(event.filename)
        except ImageRollError as e:
            self._report(e)
            return
        if not self.file_list.is_watching():
            self.refresh_file_list()

    def delete_current_image(self, event: events.DeleteCurrentImage = None):
        try:
            name = self.image_list.delete_current_image()
        except (ImageRollError, OSError) as e:
            self._report(e)
            return
        self.post_event(events.DisplayMessage(f"Image {name} was moved to trash", events.INFO))
        if not self.file_list.is_watching():
            self.refresh_file_list()

    def copy_current_image(self, event: events.CopyCurrentImage = None):
        if self.clipboard_sink is None:
            log.warning("No clipboard available")
            return
        self.image_list.copy_current_image(self.clipboard_sink)

    def display_message(self, event: events.DisplayMessage):
        log.log(_LOG_LEVELS.get(event.level, logging.INFO), event.text)
        self.messages.append(event)
        if self.on_message:
            self.on_message(event)

    # -- Preview --

    def image_viewport_resize(self, event: events.ImageViewportResize):
        if isinstance(self.preview_size, BestFit):
            self.preview_size = BestFit(event.width, event.height)
            self.post_event(events.RefreshPreview(self.preview_size))

    def refresh_preview(self, event: events.RefreshPreview):
        image = self.image_list.current_image()
        if image is not None:
            image.create_preview_buffer(event.preview_size)
        if self.on_preview:
            self.on_preview(image.preview_buffer if image is not None else None)

    def change_preview_size(self, event: events.ChangePreviewSize):
        preview_size = event.preview_size
        if isinstance(preview_size, BestFit):
            preview_size = preview_size.with_viewport(*self.viewport_size())
        self.preview_size = preview_size
        self.post_event(events.RefreshPreview(preview_size))

    def preview_smaller(self, event: events.PreviewSmaller):
        if event.value is None:
            new_size = self.preview_size.smaller()
        else:
            new_size = self.preview_size.smaller_by(event.value)
        if new_size != self.preview_size:
            self.post_event(events.ChangePreviewSize(new_size))

    def preview_larger(self, event: events.PreviewLarger):
        if event.value is None:
            new_size = self.preview_size.larger()
        else:
            new_size = self.preview_size.larger_by(event.value)
        if new_size != self.preview_size:
            self.post_event(events.ChangePreviewSize(new_size))

    def preview_fit_screen(self, event: events.PreviewFitScreen = None):
        self.post_event(events.ChangePreviewSize(BestFit()))

    def start_zoom_gesture(self, event: events.StartZoomGesture = None):
        self.scale_before_zoom_gesture = self.preview_size

    def change_scale_on_zoom_gesture(self, event: events.ZoomGestureScaleChanged):
        if self.scale_before_zoom_gesture is None:
            return
        if not math.isfinite(event.scale):
            log.debug("Ignoring zoom gesture scale %r", event.scale)
            return
        base_percent = self.scale_before_zoom_gesture.percent or 100
        new_size = PreviewSize.from_percent(int(base_percent * event.scale))
        self.post_event(events.ChangePreviewSize(new_size))

    # -- Editing --

    def image_edit(self, event: events.ImageEdit):
        image = self.image_list.current_image()
        if image is None:
            return
        try:
            image.apply_operation(event.operation)
        except (MemoryError, OSError, ValueError) as e:
            # The image and its history are untouched when the transform fails
            log.exception("Failed to apply %s", event.operation)
            detail = str(e) or type(e).__name__
            self.post_event(events.DisplayMessage(f"Couldn't apply {event.operation}: {detail}", events.ERROR))
            return
        self.post_event(events.RefreshPreview(self.preview_size))

    def undo_operation(self, event: events.UndoOperation = None):
        image = self.image_list.current_image()
        if image is not None:
            image.undo_operation()
            self.post_event(events.RefreshPreview(self.preview_size))

    def redo_operation(self, event: events.RedoOperation = None):
        image = self.image_list.current_image()
        if image is not None:
            image.redo_operation()
            self.post_event(events.RefreshPreview(self.preview_size))

    def set_crop_mode(self, event: events.SetCropMode):
        self.crop_mode = event.active
        if not event.active:
            self.selection_coords = None

    def start_selection(self, event: events.StartSelection):
        if self.crop_mode and self.image_list.current_image() is not None:
            self.selection_coords = (event.position, event.position)

    def drag_selection(self, event: events.DragSelection):
        if not self.crop_mode or self.selection_coords is None:
            return
        image = self.image_list.current_image()
        if image is None or image.preview_buffer_size() is None:
            return
        position_x, position_y = event.position
        preview_width, preview_height = image.preview_buffer_size()
        if position_x >= preview_width or position_y >= preview_height:
            return
        self.selection_coords = (self.selection_coords[0], event.position)

    def end_selection(self, event: events.EndSelection = None):
        if not self.crop_mode:
            return
        selection_coords, self.selection_coords = self.selection_coords, None
        image = self.image_list.current_image()
        if selection_coords is None or image is None:
            return
        coords = image.preview_coords_to_image_coords(selection_coords)
        if coords is not None:
            self.post_event(events.ImageEdit(Crop(*coords)))
        self.crop_mode = False

    # -- Queries for the UI --

    def buttons_state(self) -> ButtonsState:
        image = self.image_list.current_image()
        state = ButtonsState(
            navigation=len(self.file_list) > 1,
            preview_smaller=self.preview_size.can_be_smaller(),
            preview_larger=self.preview_size.can_be_larger(),
        )
        if image is not None:
            state.undo = image.can_undo_operation()
            state.redo = image.can_redo_operation()
            state.save = image.has_unsaved_edits()
            state.edit = True
        return state

    def resize_dimensions_for_width(self, width: int) -> Optional[Tuple[int, int]]:
        """Resize dialog helper: the height matching ``width`` at the current aspect ratio."""
        image = self.image_list.current_image()
        aspect_ratio = image.image_aspect_ratio() if image is not None else None
        if aspect_ratio is None:
            return None
        return width, max(1, round(width / aspect_ratio))

    def resize_dimensions_for_height(self, height: int) -> Optional[Tuple[int, int]]:
        image = self.image_list.current_image()
        aspect_ratio = image.image_aspect_ratio() if image is not None else None
        if aspect_ratio is None:
            return None
        return max(1, round(height * aspect_ratio)), height

    def print_page(self, canvas_width: int, canvas_height: int) -> Optional[Tuple[PILImage.Image, Tuple[float, float]]]:
        """Returns the buffer to print and its offset when centred on the page."""
        image = self.image_list.current_image()
        if image is None:
            return None
        buffer = image.create_print_buffer(canvas_width, canvas_height)
        if buffer is None:
            return None
        offset = ((canvas_width - buffer.width) / 2.0, (canvas_height - buffer.height) / 2.0)
        return buffer, offset


def main(argv: Optional[List[str]] = None) -> int:
    """ImageRoll command-line entry point."""
    parser = argparse.ArgumentParser(description="ImageRoll - rotate, crop and resize images")
    parser.add_argument("image", help="Image file to open")
    parser.add_argument(
        "--op",
        dest="operations",
        action="append",
        default=[],
        help="Edit to apply, in order: rotate:cw|ccw, crop:X1,Y1,X2,Y2, resize:WxH",
    )
    parser.add_argument("--output", help="Save to this file instead of overwriting the image")
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")
    args = parser.parse_args(argv)

    try:
        operations = [parse_operation(text) for text in args.operations]
    except ValueError as e:
        parser.error(str(e))

    setup_logging(args.debug)
    log.info("Starting ImageRoll")

    image_path = Path(args.image).absolute()
    controller = AppController(watch_directories=False)
    controller.post_event(events.OpenFile(image_path))
    controller.process_pending_events()

    image = controller.image_list.current_image()
    if image is None:
        for message in controller.messages:
            print(message.text, file=sys.stderr)
        return 1
    if controller.image_list.current_path != image_path:
        print(f"{args.image} is not an image", file=sys.stderr)
        return 1

    if not operations and not args.output:
        width, height = image.image_size()
        print(f"{controller.title}: {width}x{height} "
              f"({controller.file_list.current_index + 1}/{len(controller.file_list)})")
        return 0

    for operation in operations:
        controller.post_event(events.ImageEdit(operation))
    controller.process_pending_events()
    skipped = len(operations) - len(image.operations)
    if skipped:
        print(f"Warning: {skipped} operation(s) could not be applied", file=sys.stderr)

    output = Path(args.output) if args.output else None
    controller.post_event(events.SaveCurrentImage(output))
    controller.process_pending_events()

    errors = [message for message in controller.messages if message.level == events.ERROR]
    for message in errors:
        print(message.text, file=sys.stderr)
    return 1 if errors else 0


if __name__ == "__main__":
    sys.exit(main())
