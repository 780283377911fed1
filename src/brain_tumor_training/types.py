"""Type aliases and TypedDicts for brain_tumor_training inter-module contracts."""

from pathlib import Path
from typing import Literal, NamedTuple, TypedDict

import torch

Split = Literal["train", "test"]


class ImageRecord(NamedTuple):
    """One discovered image file and the label directory it was found in."""

    path: Path
    label: str


class Sample(NamedTuple):
    """A preprocessed image, its one-hot label and the record it came from.

    index: Position of the source record in the split's frozen snapshot.
    """

    index: int
    image: torch.Tensor
    label: torch.Tensor


class ClassificationBatch(TypedDict):
    """A single batch emitted by the batch assembler.

    images: Float tensor of shape (B, C, H, W), or (B, H, W, C) when the
        pipeline runs channels-last, scaled to [0, 1].
    labels: Float tensor of shape (B, K), one-hot over the training vocabulary.
    """

    images: torch.Tensor
    labels: torch.Tensor
