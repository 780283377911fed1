"""Label-per-directory image corpus with frozen, shuffled split snapshots."""

from __future__ import annotations

from pathlib import Path

import torch
from loguru import logger
from torch.utils.data import DataLoader

from brain_tumor_training.config import DesiredShape, PipelineConfig
from brain_tumor_training.data.batching import Pair, PrefetchIterable, assemble
from brain_tumor_training.data.dataset import (
    LabeledImageStream,
    ProjectedStream,
    SplitHandle,
)
from brain_tumor_training.data.indexer import index_corpus
from brain_tumor_training.data.labels import LabelMap, build_label_map
from brain_tumor_training.data.shuffle import shuffle_records
from brain_tumor_training.transforms.preprocess import ImagePreprocessor
from brain_tumor_training.types import Split


def make_generator(seed: int | None) -> torch.Generator:
    """Seeded torch generator, or a nondeterministically seeded one."""
    generator = torch.Generator()
    if seed is None:
        generator.seed()
    else:
        generator.manual_seed(seed)
    return generator


class BrainTumorCorpus:
    """Training and testing splits of a label-per-directory image corpus.

    Construction indexes both roots, builds the label map from the training
    labels only, shuffles each split's record list once and freezes it into a
    :class:`SplitHandle`. Streams requested afterwards only read those
    snapshots, so they are restartable and never see a reshuffle.

    Construction and iteration fail separately: construction raises
    ``DatasetNotFoundError`` / ``DatasetIOError``; iterating a stream may
    raise ``DatasetIOError``, ``DecodeError`` or ``UnknownLabelError``.

    Args:
        training_root: Directory with one subdirectory per training label.
        testing_root: Directory with one subdirectory per testing label.
        desired_shape: Geometry every emitted image must have.
        generator: Random source for the one-time record shuffle.
        force_channels: Decode with ``desired_shape.channels`` channels.
        channels_last: Emit ``(H, W, C)`` images instead of ``(C, H, W)``.
        extensions: Optional lower-case suffix filter for image files.
    """

    def __init__(
        self,
        training_root: Path,
        testing_root: Path,
        desired_shape: DesiredShape,
        *,
        generator: torch.Generator | None = None,
        force_channels: bool = True,
        channels_last: bool = False,
        extensions: tuple[str, ...] | None = None,
    ) -> None:
        index = index_corpus(training_root, testing_root, extensions)
        self.desired_shape = desired_shape
        self.force_channels = force_channels
        self.label_map: LabelMap = build_label_map(index.all_labels)
        self.preprocessor = ImagePreprocessor(
            desired_shape, channels_last=channels_last
        )

        shuffle_records(index.training_records, generator)
        shuffle_records(index.testing_records, generator)
        self._handles: dict[Split, SplitHandle] = {
            "train": SplitHandle("train", tuple(index.training_records)),
            "test": SplitHandle("test", tuple(index.testing_records)),
        }
        logger.info(
            f"Shuffled splits: train={len(self._handles['train'])}, "
            f"test={len(self._handles['test'])} records"
        )

        unknown = self.unknown_testing_labels()
        if unknown:
            logger.warning(
                f"Testing labels missing from the training label map: {unknown}. "
                "Iterating the test split will raise UnknownLabelError."
            )

    @classmethod
    def from_config(cls, config: PipelineConfig) -> BrainTumorCorpus:
        return cls(
            Path(config.training_root),
            Path(config.testing_root),
            config.desired_shape,
            generator=make_generator(config.seed),
            force_channels=config.force_channels,
            channels_last=config.channels_last,
            extensions=config.extensions,
        )

    def handle(self, split: Split) -> SplitHandle:
        """Frozen record snapshot for split."""
        try:
            return self._handles[split]
        except KeyError:
            raise ValueError(
                f"Unknown split '{split}'; expected 'train' or 'test'"
            ) from None

    def unknown_testing_labels(self) -> list[str]:
        """Sorted testing labels that have no index in the label map."""
        return sorted(
            {r.label for r in self._handles["test"].records} - set(self.label_map)
        )

    # ------------------------------------------------------------------
    # Lazy sequences: every iter() starts a fresh pass over the snapshot
    # ------------------------------------------------------------------

    def pairs(self, split: Split) -> LabeledImageStream:
        """Fused ``(image, one_hot)`` stream for split."""
        return LabeledImageStream(
            self.handle(split),
            self.label_map,
            self.preprocessor,
            force_channels=self.force_channels,
        )

    def samples(self, split: Split) -> ProjectedStream[torch.Tensor]:
        """Image-only view of :meth:`pairs`."""
        return ProjectedStream(self.pairs(split), 0)

    def labels(self, split: Split) -> ProjectedStream[torch.Tensor]:
        """One-hot label view of :meth:`pairs`, aligned with :meth:`samples`."""
        return ProjectedStream(self.pairs(split), 1)

    def batches(
        self,
        split: Split,
        batch_size: int,
        shuffle_window: int,
        *,
        prefetch: int = 0,
        generator: torch.Generator | None = None,
        num_workers: int = 0,
    ) -> PrefetchIterable | DataLoader[Pair]:
        """Window-shuffled, batched stream for split; see :func:`assemble`."""
        return assemble(
            self.pairs(split),
            shuffle_window,
            batch_size,
            prefetch=prefetch,
            generator=generator,
            num_workers=num_workers,
        )

    def __repr__(self) -> str:
        return (
            f"BrainTumorCorpus(classes={len(self.label_map)}, "
            f"train={len(self._handles['train'])}, "
            f"test={len(self._handles['test'])})"
        )
