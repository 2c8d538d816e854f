"""Events delivered to the AppController queue.

User intent, viewport changes and directory notifications all arrive as one
of these and are processed strictly in arrival order.
"""

import dataclasses
from pathlib import Path
from typing import Optional

from imageroll.imaging.preview import PreviewSize
from imageroll.models import Coordinates, ImageOperation

INFO = "info"
WARNING = "warning"
ERROR = "error"


@dataclasses.dataclass(frozen=True)
class OpenFile:
    path: Path


@dataclasses.dataclass(frozen=True)
class LoadImage:
    path: Optional[Path]


@dataclasses.dataclass(frozen=True)
class DisplayMessage:
    text: str
    level: str = INFO


@dataclasses.dataclass(frozen=True)
class ImageViewportResize:
    width: int
    height: int


@dataclasses.dataclass(frozen=True)
class RefreshPreview:
    preview_size: PreviewSize


@dataclasses.dataclass(frozen=True)
class ChangePreviewSize:
    preview_size: PreviewSize


@dataclasses.dataclass(frozen=True)
class ImageEdit:
    operation: ImageOperation


@dataclasses.dataclass(frozen=True)
class SetCropMode:
    active: bool


@dataclasses.dataclass(frozen=True)
class StartSelection:
    position: Coordinates


@dataclasses.dataclass(frozen=True)
class DragSelection:
    position: Coordinates


@dataclasses.dataclass(frozen=True)
class EndSelection:
    pass


@dataclasses.dataclass(frozen=True)
class PreviewSmaller:
    value: Optional[int] = None  # None steps down the ladder


@dataclasses.dataclass(frozen=True)
class PreviewLarger:
    value: Optional[int] = None  # None steps up the ladder


@dataclasses.dataclass(frozen=True)
class PreviewFitScreen:
    pass


@dataclasses.dataclass(frozen=True)
class NextImage:
    pass


@dataclasses.dataclass(frozen=True)
class PreviousImage:
    pass


@dataclasses.dataclass(frozen=True)
class RefreshFileList:
    pass


@dataclasses.dataclass(frozen=True)
class SaveCurrentImage:
    filename: Optional[Path] = None  # None overwrites the current file


@dataclasses.dataclass(frozen=True)
class DeleteCurrentImage:
    pass


@dataclasses.dataclass(frozen=True)
class UndoOperation:
    pass


@dataclasses.dataclass(frozen=True)
class RedoOperation:
    pass


@dataclasses.dataclass(frozen=True)
class CopyCurrentImage:
    pass


@dataclasses.dataclass(frozen=True)
class StartZoomGesture:
    pass


@dataclasses.dataclass(frozen=True)
class ZoomGestureScaleChanged:
    scale: float
