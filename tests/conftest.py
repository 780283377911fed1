"""Shared pytest fixtures for brain_tumor_training tests."""

from collections.abc import Callable
from pathlib import Path

import pytest
from PIL import Image

from brain_tumor_training.config import DesiredShape

# Heterogeneous source geometry, as in the real MRI dataset.
_SIZES = [(80, 60), (120, 96), (64, 64)]


def write_image(
    path: Path,
    size: tuple[int, int] = (80, 60),
    mode: str = "RGB",
    color: int | tuple[int, ...] = 128,
) -> Path:
    """Save a solid-color image, creating parent directories."""
    path.parent.mkdir(parents=True, exist_ok=True)
    Image.new(mode, size, color=color).save(path)
    return path


@pytest.fixture()
def tmp_corpus_dir(tmp_path: Path) -> Path:
    """Minimal corpus in label-per-subdirectory format for testing.

    Structure mirrors the Brain Tumor MRI dataset::

        Training/{glioma,notumor}/Tr-*.jpg   (3 images per label)
        Testing/{glioma,notumor}/Te-*.jpg    (2 images per label)

    Images are RGB JPEGs of mixed sizes so the preprocessor must resize.
    A stray README.txt sits at the label level of each root and must be
    ignored by the indexer.
    """
    for split, prefix, per_label in (("Training", "Tr", 3), ("Testing", "Te", 2)):
        root = tmp_path / split
        for label_idx, label in enumerate(("glioma", "notumor")):
            for i in range(per_label):
                write_image(
                    root / label / f"{prefix}-{label[:2]}_{i:04d}.jpg",
                    size=_SIZES[i % len(_SIZES)],
                    color=(label_idx * 120 + 30, 100, 150),
                )
        (root / "README.txt").write_text("not a label directory\n")
    return tmp_path


@pytest.fixture()
def desired_shape() -> DesiredShape:
    return DesiredShape(height=64, width=64, channels=3)


@pytest.fixture()
def image_writer() -> Callable[..., Path]:
    """Expose :func:`write_image` to tests that build their own layouts."""
    return write_image
