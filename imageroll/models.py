"""Core data types and enumerations for ImageRoll."""

import dataclasses
import enum
from typing import Tuple, Union

Coordinates = Tuple[int, int]
CoordinatesPair = Tuple[Coordinates, Coordinates]


class Rotation(enum.Enum):
    CLOCKWISE = "cw"
    COUNTERCLOCKWISE = "ccw"


@dataclasses.dataclass(frozen=True)
class Rotate:
    """Rotate the whole buffer by 90 degrees."""
    direction: Rotation


@dataclasses.dataclass(frozen=True)
class Crop:
    """Crop to the rectangle spanned by two corners in current-buffer pixels.

    The corners may be given in any order.
    """
    start: Coordinates
    end: Coordinates


@dataclasses.dataclass(frozen=True)
class Resize:
    """Resize to absolute pixel dimensions."""
    width: int
    height: int


ImageOperation = Union[Rotate, Crop, Resize]


@dataclasses.dataclass
class DecodedImage:
    """A raw pixel view of a buffer, ready to hand to a drawing surface."""
    buffer: memoryview
    width: int
    height: int
    bytes_per_line: int
    format: object  # QImage.Format

    def __sizeof__(self) -> int:
        return self.buffer.nbytes
