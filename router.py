"""File classification: decide which engine, if any, handles a file."""

from pathlib import Path
from typing import Iterable, List, Tuple

from config import LOSSLESS_EXTS, LOSSY_EXTS
from models import FileKind


def classify(path: Path) -> FileKind:
    """Classify a file by its extension (case-insensitive)."""
    ext = path.suffix.lower()
    if ext in LOSSY_EXTS:
        return FileKind.LOSSY
    if ext in LOSSLESS_EXTS:
        return FileKind.LOSSLESS
    return FileKind.UNSUPPORTED


def is_optimizable(path: Path) -> bool:
    return classify(path) is not FileKind.UNSUPPORTED


def partition(paths: Iterable[Path]) -> Tuple[List[Path], List[Path]]:
    """Split paths into (optimizable, unsupported), keeping input order."""
    optimizable: List[Path] = []
    unsupported: List[Path] = []
    for path in paths:
        if is_optimizable(path):
            optimizable.append(path)
        else:
            unsupported.append(path)
    return optimizable, unsupported
