import os
import tempfile

# Keep the config file and logs out of the user's home directory.
os.environ["APPDATA"] = tempfile.mkdtemp(prefix="imageroll-test-")

import numpy as np
import pytest
from PIL import Image


def gradient(width, height, mode="RGB"):
    """An image whose pixels all differ, so any geometric change is visible."""
    xs = np.linspace(0, 255, width, dtype=np.float32)
    ys = np.linspace(0, 255, height, dtype=np.float32)
    r = np.tile(xs, (height, 1))
    g = np.tile(ys[:, np.newaxis], (1, width))
    b = (r + g) / 2
    arr = np.stack([r, g, b], axis=2).astype(np.uint8)
    img = Image.fromarray(arr, "RGB")
    return img if mode == "RGB" else img.convert(mode)


@pytest.fixture
def make_image(tmp_path):
    """Writes a gradient image into tmp_path and returns its path."""
    def _make(name="test.png", size=(40, 30), mode="RGB", directory=None):
        path = (directory or tmp_path) / name
        path.parent.mkdir(parents=True, exist_ok=True)
        gradient(*size, mode=mode).save(path)
        return path
    return _make


