from pathlib import Path

import pytest

from models import FileKind
from router import classify, is_optimizable, partition


@pytest.mark.parametrize("name", ["a.jpg", "a.JPG", "b.jpeg", "c.JpEg"])
def test_jpeg_is_lossy(name: str) -> None:
    assert classify(Path(name)) is FileKind.LOSSY


@pytest.mark.parametrize("name", ["a.png", "a.BMP", "a.gif", "a.pnm", "a.tiff"])
def test_other_rasters_are_lossless(name: str) -> None:
    assert classify(Path(name)) is FileKind.LOSSLESS


@pytest.mark.parametrize("name", ["a.txt", "a.tif", "a.webp", "README", "a.jpg.optimized"])
def test_everything_else_is_unsupported(name: str) -> None:
    assert classify(Path(name)) is FileKind.UNSUPPORTED
    assert not is_optimizable(Path(name))


def test_partition_keeps_order() -> None:
    paths = [Path("b.png"), Path("x.txt"), Path("a.jpg"), Path("y.doc")]

    optimizable, unsupported = partition(paths)

    assert optimizable == [Path("b.png"), Path("a.jpg")]
    assert unsupported == [Path("x.txt"), Path("y.doc")]
