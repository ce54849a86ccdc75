"""Lossy path: find the smallest JPEG encoding that still looks the same."""

import logging
from pathlib import Path
from typing import Callable

import numpy as np
from PIL import Image

from image_io import DecodeError, EncodeError, decode_image, encode_jpeg, redraw
from models import OptimizationPolicy, Outcome, OutcomeKind
from similarity import candidate_similarity

logger = logging.getLogger(__name__)

Encoder = Callable[[Image.Image, Path, int], None]
Scorer = Callable[[np.ndarray, Path, int], float]


def search_best_quality(
    source_path: Path,
    target_path: Path,
    policy: OptimizationPolicy,
    encoder: Encoder = encode_jpeg,
    scorer: Scorer = candidate_similarity,
) -> Outcome:
    """Try each policy quality in ascending order and keep the first good one.

    Args:
        source_path: JPEG to recompress
        target_path: Where candidate encodings are written
        policy: Optimization settings (qualities, thresholds)
        encoder: Encode capability, (image, path, quality) -> None
        scorer: Similarity capability, (source pixels, candidate path, width) -> 0..100

    Returns:
        Accepted outcome pointing at target_path, or a rejection/failure with
        target_path removed.
    """
    try:
        source_size = source_path.stat().st_size
        with decode_image(source_path) as decoded:
            canvas = redraw(decoded)
        source_pixels = np.array(canvas)

        for quality in policy.jpeg_qualities:
            encoder(canvas, target_path, quality)
            new_size = target_path.stat().st_size

            # Higher qualities only get bigger, so one size failure ends the search.
            if new_size >= source_size - policy.min_compression_bytes:
                _discard(target_path)
                return Outcome.reject(
                    OutcomeKind.SIZE_GATE,
                    f"Saved bytes ({source_size - new_size}) less than {policy.min_compression_bytes}.",
                )

            similarity = scorer(source_pixels, target_path, policy.comparison_width)
            logger.debug(f"{source_path.name}: quality {quality} -> {new_size} bytes, similarity {similarity:.2f}")

            if similarity < policy.minimum_similarity:
                _discard(target_path)
                continue

            return Outcome.accept(target_path, f"Quality changed to {quality}")

        return Outcome.reject(OutcomeKind.SIMILARITY_GATE, "No tried quality was good enough")
    except DecodeError as exc:
        _discard(target_path)
        return Outcome.from_exception(OutcomeKind.DECODE_ERROR, exc)
    except EncodeError as exc:
        _discard(target_path)
        return Outcome.from_exception(OutcomeKind.ENCODE_ERROR, exc)
    except Exception as exc:
        logger.error(f"Unexpected error optimizing {source_path}: {exc}", exc_info=True)
        _discard(target_path)
        return Outcome.from_exception(OutcomeKind.UNEXPECTED, exc)


def _discard(path: Path) -> None:
    path.unlink(missing_ok=True)
