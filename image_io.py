"""Image I/O utilities for image optimization."""

import os
from pathlib import Path
from typing import Iterable, List

import numpy as np
from PIL import Image

from config import TEMP_SUFFIX

# Try importing OpenCV for faster resampling (optional)
try:
    import cv2
    OPENCV_AVAILABLE = True
except ImportError:
    OPENCV_AVAILABLE = False
    cv2 = None

# Global flag to enable/disable OpenCV optimization
USE_OPENCV = OPENCV_AVAILABLE  # Can be toggled for testing

# Carried from the decoded source into re-encoded JPEGs.
METADATA_KEYS = ("exif", "icc_profile")


class DecodeError(Exception):
    """Image data is malformed or in an unsupported format."""


class EncodeError(Exception):
    """The encoder failed to produce an output file."""


def iter_files(root: Path, recursive: bool = False) -> Iterable[Path]:
    """Yield every regular file under root in sorted order.

    Leftover optimization artifacts are skipped; see iter_artifacts().
    Enumeration errors propagate: a folder that cannot be listed is fatal.
    """
    for path in _scan(root, recursive):
        if not path.name.endswith(TEMP_SUFFIX):
            yield path


def iter_artifacts(root: Path, recursive: bool = False) -> Iterable[Path]:
    """Yield leftover `*.optimized` artifacts under root."""
    for path in _scan(root, recursive):
        if path.name.endswith(TEMP_SUFFIX):
            yield path


def _scan(root: Path, recursive: bool) -> List[Path]:
    if recursive:
        return sorted(path for path in root.rglob("*") if path.is_file())
    # os.scandir() is much faster than glob on large flat directories
    paths = []
    with os.scandir(root) as entries:
        for entry in entries:
            if entry.is_file():
                paths.append(Path(entry.path))
    return sorted(paths)


def decode_image(path: Path) -> Image.Image:
    """Fully decode an image with PIL, raising DecodeError on bad data."""
    try:
        img = Image.open(path)
        img.load()
    except (OSError, ValueError, SyntaxError) as exc:
        raise DecodeError(f"Failed to decode image {path}: {exc}") from exc
    return img


def redraw(img: Image.Image) -> Image.Image:
    """Copy an image 1:1 onto a fresh RGB canvas (no resampling).

    EXIF and ICC data ride along in canvas.info so a re-encode keeps them;
    pixels are never rotated.
    """
    canvas = Image.new("RGB", img.size)
    for key in METADATA_KEYS:
        # A CMYK profile does not describe the RGB canvas.
        if img.info.get(key) and not (key == "icc_profile" and img.mode == "CMYK"):
            canvas.info[key] = img.info[key]
    if img.mode in ("RGBA", "LA", "P"):
        img = img.convert("RGBA")
        canvas.paste(img, (0, 0), img)
    else:
        canvas.paste(img.convert("RGB"), (0, 0))
    return canvas


def encode_jpeg(img: Image.Image, target_path: Path, quality: int) -> None:
    """Encode img as JPEG at the given quality (1-100) into target_path."""
    try:
        metadata = {key: img.info[key] for key in METADATA_KEYS if img.info.get(key)}
        img.save(target_path, format="JPEG", quality=quality, **metadata)
    except (OSError, ValueError) as exc:
        raise EncodeError(f"Failed to encode {target_path} at quality {quality}: {exc}") from exc


def load_rgb(path: Path) -> np.ndarray:
    """Load an image as an H x W x 3 uint8 RGB array (alpha dropped).

    Decoded with PIL and redrawn like the encoder input, so the EXIF
    Orientation tag is ignored on both sides of a comparison.
    """
    img = decode_image(path)
    try:
        return np.array(redraw(img))
    finally:
        img.close()


def resample(pixels: np.ndarray, width: int, height: int) -> np.ndarray:
    """Bicubic resize of an RGB array to (width, height)."""
    if pixels.shape[1] == width and pixels.shape[0] == height:
        return pixels
    if USE_OPENCV:
        return cv2.resize(pixels, (width, height), interpolation=cv2.INTER_CUBIC)
    resized = Image.fromarray(pixels).resize((width, height), Image.Resampling.BICUBIC)
    return np.array(resized)


def verify_image(path: Path) -> bool:
    """Return True if the file decodes as a complete image."""
    try:
        decode_image(path).close()
    except DecodeError:
        return False
    return True
