"""Pixel generators and fake capabilities shared by the tests."""

from pathlib import Path
from typing import Callable, Dict, List

import numpy as np
from PIL import Image

from delegate import ToolRun


def noise_pixels(width: int = 200, height: int = 150, seed: int = 0) -> np.ndarray:
    rng = np.random.default_rng(seed)
    return rng.integers(0, 256, size=(height, width, 3), dtype=np.uint8)


def gradient_pixels(width: int = 200, height: int = 150) -> np.ndarray:
    xs = np.linspace(0, 255, width, dtype=np.float64)
    ys = np.linspace(0, 255, height, dtype=np.float64)
    red = np.tile(xs, (height, 1))
    green = np.tile(ys[:, None], (1, width))
    blue = (red + green) / 2
    return np.stack([red, green, blue], axis=-1).astype(np.uint8)


class FakeEncoder:
    """Writes `size_for(quality)` bytes instead of encoding."""

    def __init__(self, size_for: Callable[[int], int]):
        self.size_for = size_for
        self.qualities: List[int] = []

    def __call__(self, img: Image.Image, target_path: Path, quality: int) -> None:
        self.qualities.append(quality)
        target_path.write_bytes(b"\0" * self.size_for(quality))


class FakeScorer:
    """Returns a fixed similarity for the quality most recently encoded."""

    def __init__(self, encoder: FakeEncoder, by_quality: Dict[int, float], default: float = 100.0):
        self.encoder = encoder
        self.by_quality = by_quality
        self.default = default
        self.calls = 0

    def __call__(self, source: np.ndarray, candidate_path: Path, max_width: int) -> float:
        self.calls += 1
        return self.by_quality.get(self.encoder.qualities[-1], self.default)


class FakeTool:
    """Stands in for optipng: writes a target of a chosen size or content."""

    def __init__(self, target_size=None, available: bool = True, timed_out: bool = False, payload: bytes = None):
        self.target_size = target_size
        self.available = available
        self.timed_out = timed_out
        self.payload = payload
        self.runs: List[Path] = []

    def is_available(self) -> bool:
        return self.available

    def describe(self) -> str:
        return "fake-optipng"

    def run(self, source_path: Path, target_path: Path, timeout: float) -> ToolRun:
        self.runs.append(source_path)
        if self.payload is not None:
            target_path.write_bytes(self.payload)
        elif self.target_size is not None:
            target_path.write_bytes(b"\0" * self.target_size)
        return ToolRun(returncode=None if self.timed_out else 0, timed_out=self.timed_out)
