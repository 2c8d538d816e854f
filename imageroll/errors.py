"""Exceptions raised by the ImageRoll core."""


class ImageRollError(Exception):
    """Base class for errors that should be reported to the user."""


class DecodeError(ImageRollError):
    """An image file is missing, unreadable or not a valid image."""


class EncodeError(ImageRollError):
    """An image could not be written."""


class EnumerationError(ImageRollError):
    """A directory could not be listed."""


class NoCurrentImageError(ImageRollError):
    """An action needs a current image but none is selected."""
