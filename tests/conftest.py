"""Shared test fixtures."""

from pathlib import Path
from typing import Callable

import numpy as np
import pytest
from PIL import Image

from helpers import noise_pixels


@pytest.fixture()
def make_jpeg(tmp_path: Path) -> Callable[..., Path]:
    """Write a real JPEG (noise by default) and return its path."""

    def _make(name: str = "photo.jpg", pixels: np.ndarray = None, quality: int = 100) -> Path:
        if pixels is None:
            pixels = noise_pixels()
        path = tmp_path / name
        path.parent.mkdir(parents=True, exist_ok=True)
        Image.fromarray(pixels).save(path, format="JPEG", quality=quality)
        return path

    return _make
