"""Perceptual similarity between a source image and a re-encoded candidate."""

from pathlib import Path
from typing import Tuple

import numpy as np

from image_io import load_rgb, resample

# 255 * sqrt(3): distance between black and white in RGB space.
MAX_DISTANCE = 441.67295593
# Raw similarity at or below this many percent counts as "not similar at all".
SIMILARITY_FLOOR = 75.0


def comparison_size(width: int, height: int, max_width: int) -> Tuple[int, int]:
    """Size both images are resampled to before comparing.

    Two pixels are shaved off the width to stay clear of resize edge
    artifacts; height keeps the aspect ratio with integer truncation.
    """
    target_width = max(1, min(max_width, width - 2))
    target_height = max(1, target_width * height // width)
    return target_width, target_height


def raw_similarity(a: np.ndarray, b: np.ndarray) -> float:
    """Mean per-pixel RGB similarity of two equal-shaped arrays, in percent."""
    diff = a[..., :3].astype(np.float64) - b[..., :3].astype(np.float64)
    distance = np.sqrt(np.sum(diff * diff, axis=-1))
    return float(100.0 * np.mean(1.0 - distance / MAX_DISTANCE))


def boost(raw: float) -> float:
    """Map raw similarity (75, 100] onto (0, 100]; anything lower is 0."""
    if raw <= SIMILARITY_FLOOR:
        return 0.0
    return (raw - SIMILARITY_FLOOR) * (100.0 / (100.0 - SIMILARITY_FLOOR))


def score(source: np.ndarray, candidate: np.ndarray, max_width: int) -> float:
    """Boosted similarity in [0, 100] of two H x W x 3 pixel grids.

    Images with different dimensions score 0.
    """
    if source.shape[:2] != candidate.shape[:2]:
        return 0.0
    height, width = source.shape[:2]
    target_width, target_height = comparison_size(width, height, max_width)
    small_source = resample(np.ascontiguousarray(source[..., :3]), target_width, target_height)
    small_candidate = resample(np.ascontiguousarray(candidate[..., :3]), target_width, target_height)
    result = boost(raw_similarity(small_source, small_candidate))
    return min(100.0, max(0.0, result))


def image_similarity(source_path: Path, candidate_path: Path, max_width: int) -> float:
    """Load two image files and score them."""
    return score(load_rgb(source_path), load_rgb(candidate_path), max_width)


def candidate_similarity(source: np.ndarray, candidate_path: Path, max_width: int) -> float:
    """Score an encoded candidate file against already-decoded source pixels."""
    return score(source, load_rgb(candidate_path), max_width)
