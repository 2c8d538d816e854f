"""Preview zoom levels and the discrete step ladder between them."""

import bisect
import dataclasses
from typing import Optional, Tuple

# Ascending magnification rungs in percent. 100 is OriginalSize.
PREVIEW_LADDER: Tuple[int, ...] = (5, 10, 25, 33, 50, 66, 75, 100, 133, 150, 200, 500)
MIN_PERCENT = PREVIEW_LADDER[0]
MAX_PERCENT = PREVIEW_LADDER[-1]

FIT_SCREEN_LABEL = "Fit screen"


class PreviewSize:
    """Base class of the three preview modes.

    Instances are immutable; every transition returns a new value.
    """

    @property
    def percent(self) -> Optional[int]:
        raise NotImplementedError

    @property
    def label(self) -> str:
        raise NotImplementedError

    def __str__(self) -> str:
        return self.label

    @staticmethod
    def from_percent(percent: int) -> "PreviewSize":
        """Builds a ladder-independent size, clamped to the valid range."""
        percent = max(MIN_PERCENT, min(MAX_PERCENT, int(percent)))
        if percent == 100:
            return OriginalSize()
        return Resized(percent)

    @staticmethod
    def from_label(text: str, viewport: Tuple[int, int] = (0, 0)) -> "PreviewSize":
        """Inverse of ``label``. A "Fit screen" label takes the viewport it should fit."""
        text = text.strip()
        if text == FIT_SCREEN_LABEL:
            return BestFit(*viewport)
        if not text.endswith("%"):
            raise ValueError(f"Unknown preview size: {text!r}")
        try:
            percent = int(text[:-1])
        except ValueError as e:
            raise ValueError(f"Unknown preview size: {text!r}") from e
        if not MIN_PERCENT <= percent <= MAX_PERCENT:
            raise ValueError(f"Preview size out of range: {text!r}")
        return PreviewSize.from_percent(percent)

    def with_viewport(self, width: int, height: int) -> "PreviewSize":
        return self

    def smaller(self) -> "PreviewSize":
        """One rung down the ladder. Unchanged at the bottom rung."""
        percent = self.percent
        if percent is None:
            return OriginalSize()
        index = bisect.bisect_left(PREVIEW_LADDER, percent)
        if index == 0:
            return self
        return PreviewSize.from_percent(PREVIEW_LADDER[index - 1])

    def larger(self) -> "PreviewSize":
        """One rung up the ladder. Unchanged at the top rung."""
        percent = self.percent
        if percent is None:
            return OriginalSize()
        index = bisect.bisect_right(PREVIEW_LADDER, percent)
        if index == len(PREVIEW_LADDER):
            return self
        return PreviewSize.from_percent(PREVIEW_LADDER[index])

    def smaller_by(self, delta: int) -> "PreviewSize":
        percent = self.percent
        if percent is None:
            return OriginalSize()
        return PreviewSize.from_percent(percent - delta)

    def larger_by(self, delta: int) -> "PreviewSize":
        percent = self.percent
        if percent is None:
            return OriginalSize()
        return PreviewSize.from_percent(percent + delta)

    def can_be_smaller(self) -> bool:
        percent = self.percent
        return percent is None or percent > MIN_PERCENT

    def can_be_larger(self) -> bool:
        percent = self.percent
        return percent is None or percent < MAX_PERCENT


@dataclasses.dataclass(frozen=True)
class BestFit(PreviewSize):
    """Scale to fit a viewport of the given size."""
    width: int = 0
    height: int = 0

    @property
    def percent(self) -> Optional[int]:
        return None

    @property
    def label(self) -> str:
        return FIT_SCREEN_LABEL

    def with_viewport(self, width: int, height: int) -> "PreviewSize":
        return BestFit(width, height)


@dataclasses.dataclass(frozen=True)
class OriginalSize(PreviewSize):
    @property
    def percent(self) -> Optional[int]:
        return 100

    @property
    def label(self) -> str:
        return "100%"


@dataclasses.dataclass(frozen=True)
class Resized(PreviewSize):
    percent_value: int

    @property
    def percent(self) -> Optional[int]:
        return self.percent_value

    @property
    def label(self) -> str:
        return f"{self.percent_value}%"
