"""Tests for the event-driven controller and the command-line entry point."""

import os
from unittest.mock import MagicMock, patch

import pytest

from imageroll import events
from imageroll.app import APP_NAME, AppController, main
from imageroll.imaging.cache import ImageList
from imageroll.imaging.image import Image
from imageroll.imaging.preview import BestFit, OriginalSize, Resized
from imageroll.models import Crop, Resize, Rotate, Rotation

CW = Rotate(Rotation.CLOCKWISE)
VIEWPORT = (400, 300)


@pytest.fixture
def folder(make_image, tmp_path):
    for name in ("a.png", "b.png", "c.png"):
        make_image(name)
    return tmp_path


@pytest.fixture
def controller():
    previews = []
    controller = AppController(
        viewport_size=lambda: VIEWPORT,
        on_preview=previews.append,
        watch_directories=False,
    )
    controller.previews = previews
    yield controller
    controller.shutdown()


def send(controller, *evts):
    for event in evts:
        controller.post_event(event)
    controller.process_pending_events()


def errors(controller):
    return [m.text for m in controller.messages if m.level == events.ERROR]


@pytest.fixture
def opened(controller, folder):
    send(controller, events.OpenFile(folder / "a.png"))
    return controller


def test_open_file_loads_and_previews(opened, folder):
    assert opened.title == "a.png"
    assert opened.image_list.current_path == folder / "a.png"
    assert opened.preview_size == BestFit(*VIEWPORT)
    assert opened.previews[-1].size == VIEWPORT
    assert not errors(opened)


def test_next_and_previous_wrap(opened):
    send(opened, events.NextImage())
    assert opened.title == "b.png"
    send(opened, events.PreviousImage(), events.PreviousImage())
    assert opened.title == "c.png"
    send(opened, events.NextImage())
    assert opened.title == "a.png"


def test_failed_open_keeps_previous_state(opened, folder):
    send(opened, events.OpenFile(folder / "missing" / "x.png"))

    assert len(errors(opened)) == 1
    assert opened.title == "a.png"
    assert len(opened.file_list) == 3
    assert opened.image_list.current_image() is not None


def test_undecodable_file_reports_error(controller, tmp_path):
    broken = tmp_path / "broken.png"
    broken.write_bytes(b"definitely not a png")

    send(controller, events.OpenFile(broken))

    assert len(errors(controller)) == 1
    assert controller.image_list.current_image() is None
    assert controller.previews[-1] is None


def test_open_directory_without_images(controller, tmp_path):
    (tmp_path / "notes.txt").write_text("nothing to see")
    send(controller, events.OpenFile(tmp_path / "notes.txt"))
    assert controller.title == APP_NAME
    assert controller.image_list.current_image() is None
    assert not errors(controller)


def test_edit_undo_redo(opened):
    send(opened, events.ImageEdit(CW))
    image = opened.image_list.current_image()
    assert image.image_size() == (30, 40)
    state = opened.buttons_state()
    assert state.undo and state.save and not state.redo

    send(opened, events.UndoOperation())
    assert image.image_size() == (40, 30)
    state = opened.buttons_state()
    assert state.redo and not state.undo and not state.save

    send(opened, events.RedoOperation())
    assert image.image_size() == (30, 40)


def test_edit_that_cannot_apply_leaves_no_history(opened):
    send(opened, events.ImageEdit(Resize(0, 10)))
    image = opened.image_list.current_image()
    assert image.operations == []
    assert not opened.buttons_state().undo


def test_edit_without_image_is_ignored(controller):
    send(controller, events.ImageEdit(CW), events.UndoOperation(), events.RedoOperation())
    assert controller.image_list.current_image() is None
    assert not errors(controller)


def test_crop_selection_maps_preview_to_image(opened):
    # The 40x30 image is previewed at 400x300
    send(
        opened,
        events.SetCropMode(True),
        events.StartSelection((100, 50)),
        events.DragSelection((300, 250)),
        events.EndSelection(),
    )

    image = opened.image_list.current_image()
    assert image.operations == [Crop((10, 5), (30, 25))]
    assert image.image_size() == (20, 20)
    assert not opened.crop_mode
    assert opened.selection_coords is None


def test_drag_outside_preview_is_ignored(opened):
    send(
        opened,
        events.SetCropMode(True),
        events.StartSelection((100, 50)),
        events.DragSelection((200, 150)),
        events.DragSelection((500, 100)),
    )
    assert opened.selection_coords == ((100, 50), (200, 150))


def test_selection_requires_crop_mode(opened):
    send(opened, events.StartSelection((10, 10)), events.DragSelection((20, 20)), events.EndSelection())
    assert opened.selection_coords is None
    assert opened.image_list.current_image().operations == []


def test_leaving_crop_mode_drops_selection(opened):
    send(opened, events.SetCropMode(True), events.StartSelection((10, 10)), events.SetCropMode(False))
    assert opened.selection_coords is None


def test_preview_ladder_events(opened):
    send(opened, events.PreviewLarger())
    assert opened.preview_size == OriginalSize()
    assert opened.previews[-1].size == (40, 30)

    send(opened, events.PreviewLarger())
    assert opened.preview_size == Resized(133)

    send(opened, events.PreviewSmaller(10))
    assert opened.preview_size == Resized(123)

    send(opened, events.PreviewFitScreen())
    assert opened.preview_size == BestFit(*VIEWPORT)


def test_preview_at_bound_does_not_refresh(opened):
    send(opened, events.ChangePreviewSize(Resized(500)))
    count = len(opened.previews)
    send(opened, events.PreviewLarger())
    assert opened.preview_size == Resized(500)
    assert len(opened.previews) == count
    assert not opened.buttons_state().preview_larger


def test_viewport_resize_only_matters_for_best_fit(opened):
    send(opened, events.ImageViewportResize(200, 150))
    assert opened.preview_size == BestFit(200, 150)
    assert opened.previews[-1].size == (200, 150)

    send(opened, events.ChangePreviewSize(OriginalSize()))
    count = len(opened.previews)
    send(opened, events.ImageViewportResize(100, 100))
    assert opened.preview_size == OriginalSize()
    assert len(opened.previews) == count


def test_zoom_gesture_scales_from_size_at_start(opened):
    send(opened, events.ChangePreviewSize(OriginalSize()), events.StartZoomGesture())

    send(opened, events.ZoomGestureScaleChanged(1.5))
    assert opened.preview_size == Resized(150)

    send(opened, events.ZoomGestureScaleChanged(0.5))
    assert opened.preview_size == Resized(50)

    send(opened, events.ZoomGestureScaleChanged(0.01))
    assert opened.preview_size == Resized(5)


def test_zoom_gesture_from_best_fit_starts_at_original_size(opened):
    send(opened, events.StartZoomGesture(), events.ZoomGestureScaleChanged(2.0))
    assert opened.preview_size == Resized(200)


def test_zoom_without_start_is_ignored(opened):
    send(opened, events.ZoomGestureScaleChanged(2.0))
    assert opened.preview_size == BestFit(*VIEWPORT)


def test_buttons_state_without_image(controller):
    state = controller.buttons_state()
    assert not state.navigation
    assert not state.edit
    assert not state.undo and not state.redo and not state.save


def test_buttons_state_with_image(opened):
    state = opened.buttons_state()
    assert state.navigation
    assert state.edit
    assert not state.save


def test_delete_moves_to_trash_and_selects_next(opened, folder):
    with patch("imageroll.imaging.cache.send2trash", side_effect=os.remove) as trash:
        send(opened, events.DeleteCurrentImage())

    trash.assert_called_once()
    assert not (folder / "a.png").exists()
    assert "Image a.png was moved to trash" in [m.text for m in opened.messages]
    assert opened.title == "b.png"
    assert len(opened.file_list) == 2


def test_delete_failure_is_reported(opened):
    with patch("imageroll.imaging.cache.send2trash", side_effect=OSError("trash unavailable")):
        send(opened, events.DeleteCurrentImage())

    assert errors(opened) == ["trash unavailable"]
    assert opened.title == "a.png"
    assert opened.image_list.current_image() is not None


def test_save_overwrites_current_file(opened, folder):
    send(opened, events.ImageEdit(CW), events.SaveCurrentImage())

    assert not errors(opened)
    assert Image.load(folder / "a.png").image_size() == (30, 40)
    assert not opened.buttons_state().save
    assert opened.title == "a.png"


def test_save_as_keeps_current_image_and_history(opened, folder):
    send(opened, events.ImageEdit(CW), events.SaveCurrentImage(folder / "copy.jpg"))

    assert not errors(opened)
    assert Image.load(folder / "copy.jpg").image_size() == (30, 40)
    assert opened.title == "a.png"
    assert opened.buttons_state().save
    assert len(opened.file_list) == 4


def test_save_without_extension_is_reported(opened, folder):
    send(opened, events.SaveCurrentImage(folder / "noext"))
    assert errors(opened) == ["File path doesn't have file extension"]


def test_save_without_image_is_reported(controller):
    send(controller, events.SaveCurrentImage())
    assert len(errors(controller)) == 1


def test_copy_hands_current_buffer_to_clipboard(folder):
    sink = MagicMock()
    controller = AppController(clipboard_sink=sink, watch_directories=False)
    send(controller, events.OpenFile(folder / "a.png"), events.ImageEdit(CW), events.CopyCurrentImage())

    sink.assert_called_once()
    assert sink.call_args[0][0].size == (30, 40)


def test_refresh_file_list_keeps_current_image(opened, make_image):
    make_image("0.png")
    send(opened, events.RefreshFileList())
    assert len(opened.file_list) == 4
    assert opened.title == "a.png"


def test_navigating_back_keeps_edits(opened):
    send(opened, events.ImageEdit(CW), events.NextImage(), events.PreviousImage())
    image = opened.image_list.current_image()
    assert image.cursor == 0
    assert image.image_size() == (30, 40)


def test_released_buffers_are_rebuilt_on_return(controller, folder):
    controller.image_list = ImageList(max_buffer_bytes=0)
    send(controller, events.OpenFile(folder / "a.png"), events.ImageEdit(CW), events.NextImage())

    a = controller.image_list[folder / "a.png"]
    assert not a.has_buffers()

    send(controller, events.PreviousImage())
    assert a.has_buffers()
    assert a.image_size() == (30, 40)
    assert a.can_undo_operation()


def test_unknown_event_is_discarded(controller):
    controller.process_event(object())


def test_messages_are_forwarded(folder):
    received = []
    controller = AppController(on_message=received.append, watch_directories=False)
    send(controller, events.DisplayMessage("hello", events.WARNING))
    assert received == [events.DisplayMessage("hello", events.WARNING)]


def test_print_page_centres_small_image(opened):
    buffer, offset = opened.print_page(100, 100)
    assert buffer.size == (40, 30)
    assert offset == (30.0, 35.0)


def test_print_page_shrinks_large_image(opened):
    buffer, offset = opened.print_page(20, 20)
    assert buffer.size == (20, 15)
    assert offset == (0.0, 2.5)


def test_print_page_without_image(controller):
    assert controller.print_page(100, 100) is None


def test_resize_dimensions_follow_aspect_ratio(opened):
    assert opened.resize_dimensions_for_width(80) == (80, 60)
    assert opened.resize_dimensions_for_height(60) == (80, 60)


def test_resize_dimensions_without_image(controller):
    assert controller.resize_dimensions_for_width(80) is None
    assert controller.resize_dimensions_for_height(60) is None


def test_cli_prints_summary(folder, capsys):
    assert main([str(folder / "b.png")]) == 0
    assert capsys.readouterr().out.strip() == "b.png: 40x30 (2/3)"


def test_cli_applies_operations_and_saves_copy(folder):
    output = folder / "out.png"
    code = main([str(folder / "a.png"), "--op", "rotate:cw", "--op", "crop:0,0,20,10", "--output", str(output)])

    assert code == 0
    assert Image.load(output).image_size() == (20, 10)
    assert Image.load(folder / "a.png").image_size() == (40, 30)


def test_cli_overwrites_without_output(folder):
    assert main([str(folder / "a.png"), "--op", "resize:20x15"]) == 0
    assert Image.load(folder / "a.png").image_size() == (20, 15)


def test_cli_warns_about_skipped_operations(folder, capsys):
    output = folder / "out.png"
    assert main([str(folder / "a.png"), "--op", "crop:0,0,0,10", "--output", str(output)]) == 0
    assert "1 operation(s) could not be applied" in capsys.readouterr().err


def test_cli_rejects_non_image(folder, capsys):
    (folder / "notes.txt").write_text("text")
    assert main([str(folder / "notes.txt")]) == 1
    assert "is not an image" in capsys.readouterr().err


def test_cli_missing_directory(tmp_path):
    assert main([str(tmp_path / "missing" / "a.png")]) == 1


def test_cli_rejects_bad_operation(folder):
    with pytest.raises(SystemExit):
        main([str(folder / "a.png"), "--op", "flip:h"])


def test_failing_edit_keeps_image_and_history(opened):
    send(opened, events.ImageEdit(CW))
    image = opened.image_list.current_image()

    with patch("imageroll.imaging.image.apply_operation", side_effect=MemoryError):
        send(opened, events.ImageEdit(Resize(100, 100)), events.NextImage())

    assert errors(opened) == [f"Couldn't apply {Resize(100, 100)}: MemoryError"]
    # Events queued behind the failing edit still run
    assert opened.title == "b.png"
    send(opened, events.PreviousImage())
    assert opened.image_list.current_image() is image
    assert image.operations == [CW] and image.cursor == 0
    assert image.image_size() == (30, 40)


def test_cli_reports_oversized_resize(folder, capsys):
    output = folder / "out.png"
    assert main([str(folder / "a.png"), "--op", "resize:1000000x1000000", "--output", str(output)]) == 0
    assert "1 operation(s) could not be applied" in capsys.readouterr().err
    assert Image.load(output).image_size() == (40, 30)


@pytest.mark.parametrize("scale", [float("nan"), float("inf"), float("-inf")])
def test_non_finite_zoom_scale_is_ignored(opened, scale):
    send(opened, events.StartZoomGesture(), events.ZoomGestureScaleChanged(scale), events.PreviewLarger())
    assert opened.preview_size == OriginalSize()
