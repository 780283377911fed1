"""Lazy, restartable image/label streams over a frozen split snapshot."""

from __future__ import annotations

import io
from collections.abc import Iterator
from dataclasses import dataclass
from pathlib import Path
from typing import TypeVar

import torch
from loguru import logger
from PIL import Image
from torch.utils.data import IterableDataset, get_worker_info

from brain_tumor_training.data.labels import LabelMap, encode_one_hot
from brain_tumor_training.errors import DatasetIOError, DecodeError
from brain_tumor_training.transforms.guard import is_valid_shape
from brain_tumor_training.transforms.preprocess import ImagePreprocessor
from brain_tumor_training.types import ImageRecord, Sample, Split

T = TypeVar("T")

# PIL modes that yield the given channel count after v2.ToImage.
_CHANNEL_MODES: dict[int, str] = {1: "L", 2: "LA", 3: "RGB", 4: "RGBA"}


@dataclass(frozen=True)
class SplitHandle:
    """Immutable snapshot of one split's record order.

    Created after the one-time shuffle. Every stream built from the same
    handle visits records in the same order, so a sample stream and a label
    stream taken from one handle can never drift apart.
    """

    split: Split
    records: tuple[ImageRecord, ...]

    def __len__(self) -> int:
        return len(self.records)


def decode_image(path: Path, channels: int | None = None) -> Image.Image:
    """Read and fully decode an image file.

    Args:
        path: Image file to read.
        channels: Force this many channels (1-4). ``None`` keeps the file's
            native mode, e.g. single-channel for grayscale JPEGs.

    Raises:
        DatasetIOError: If the file cannot be read.
        DecodeError: If the bytes are not a decodable image.
    """
    try:
        data = path.read_bytes()
    except OSError as e:
        raise DatasetIOError(f"Cannot read image {path}: {e}") from e

    try:
        with Image.open(io.BytesIO(data)) as img:
            img.load()
            if channels is None:
                return img.copy()
            return img.convert(_CHANNEL_MODES[channels])
    except (
        OSError,
        SyntaxError,
        ValueError,
        EOFError,
        Image.DecompressionBombError,
    ) as e:
        raise DecodeError(f"Cannot decode image {path}: {e}") from e


class LabeledImageStream(IterableDataset[tuple[torch.Tensor, torch.Tensor]]):
    """Fused lazy sequence of ``(image, one_hot_label)`` pairs for one split.

    Each call to ``iter()`` starts a fresh pass from the first record of the
    handle. Per record: read, decode, preprocess, then check the result
    against the preprocessor's output shape. A failing record is skipped for
    image and label alike, since both come out of the same pass. Read and
    decode failures propagate and end the pass.

    Under a multi-worker ``DataLoader`` each worker takes every
    ``num_workers``-th record, so no record is emitted twice.

    Args:
        handle: Frozen record snapshot to stream.
        label_map: Training vocabulary used to one-hot encode labels.
        preprocessor: Resize/cast/scale transform applied to each image.
        force_channels: Decode with ``preprocessor.desired_shape.channels``
            instead of the file's native mode.
    """

    def __init__(
        self,
        handle: SplitHandle,
        label_map: LabelMap,
        preprocessor: ImagePreprocessor,
        force_channels: bool = True,
    ) -> None:
        super().__init__()
        self.handle = handle
        self.label_map = label_map
        self.preprocessor = preprocessor
        self.force_channels = force_channels

    @property
    def split(self) -> Split:
        return self.handle.split

    def _worker_indices(self) -> range:
        info = get_worker_info()
        if info is None:
            return range(len(self.handle))
        return range(info.id, len(self.handle), info.num_workers)

    def iter_samples(self) -> Iterator[Sample]:
        """Yield guarded samples tagged with their source record index."""
        expected = self.preprocessor.output_shape
        channels = (
            self.preprocessor.desired_shape.channels if self.force_channels else None
        )
        skipped = 0
        for idx in self._worker_indices():
            record = self.handle.records[idx]
            img = self.preprocessor(decode_image(record.path, channels))
            if not is_valid_shape(img, expected):
                skipped += 1
                logger.debug(
                    f"Skipping {record.path}: shape {tuple(img.shape)} != {expected}"
                )
                continue
            yield Sample(
                index=idx,
                image=img,
                label=encode_one_hot(record.label, self.label_map),
            )
        if skipped:
            logger.warning(
                f"Skipped {skipped} image(s) with mismatched shape "
                f"in {self.split} split"
            )

    def __iter__(self) -> Iterator[tuple[torch.Tensor, torch.Tensor]]:
        for sample in self.iter_samples():
            yield sample.image, sample.label

    def __repr__(self) -> str:
        return (
            f"LabeledImageStream(split='{self.split}', records={len(self.handle)}, "
            f"{self.preprocessor!r})"
        )


class ProjectedStream(IterableDataset[T]):
    """One field of a :class:`LabeledImageStream`, re-derived on every pass.

    ``ProjectedStream(stream, 0)`` is the image sequence and
    ``ProjectedStream(stream, 1)`` the label sequence. The Nth element of
    either comes from the same record because both run the fused pass.
    """

    def __init__(self, source: LabeledImageStream, field: int) -> None:
        super().__init__()
        if field not in (0, 1):
            raise ValueError(f"field must be 0 (image) or 1 (label), got {field}")
        self.source = source
        self.field = field

    def __iter__(self) -> Iterator[T]:
        for pair in self.source:
            yield pair[self.field]  # type: ignore[misc]
