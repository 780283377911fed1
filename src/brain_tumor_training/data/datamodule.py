"""LightningDataModule for the brain tumor MRI dataset."""

import json
from collections.abc import Iterable, Mapping
from pathlib import Path
from typing import Any

import lightning as L
import torch
from loguru import logger
from omegaconf import DictConfig, ListConfig, OmegaConf

from brain_tumor_training.config import DesiredShape, PipelineConfig
from brain_tumor_training.data.corpus import BrainTumorCorpus, make_generator
from brain_tumor_training.data.labels import LabelMap
from brain_tumor_training.types import ClassificationBatch, Split
from brain_tumor_training.utils.hydra import register


@register(group="data", name="brain_tumor")
class BrainTumorDataModule(L.LightningDataModule):
    """DataModule streaming the brain tumor MRI dataset from disk.

    Reads label-per-subdirectory splits from ``training_root`` and
    ``testing_root`` (e.g. ``data/Training/glioma/*.jpg``). Images are decoded
    lazily one at a time, resized, scaled to [0, 1], window-shuffled and
    batched; nothing is cached in memory beyond the shuffle window and the
    read-ahead batch.

    The label map is built from the training split only, sorted
    alphabetically. The testing split doubles as validation data.

    Args:
        config: PipelineConfig frozen model with all pipeline parameters.
            If provided, flat kwargs are ignored.
        training_root: Training split root. This and the other fields up to
            shuffle_window are required when config is None (e.g. Hydra).
        testing_root: Testing split root.
        desired_shape: DesiredShape, or a mapping with height/width/channels.
        batch_size: Pairs per batch.
        shuffle_window: Window size for the per-pass buffer shuffle.
        prefetch: Batches produced ahead of the consumer, 0 or 1 (default: 1).
        seed: Seed for record and window shuffling (default: None).
        force_channels: Decode with the configured channel count (default: True).
        channels_last: Emit (H, W, C) images (default: False).
        extensions: Optional image file suffix filter.
        num_workers: Number of DataLoader workers (default: 0).
        **kwargs: Absorbs extra Hydra-injected keys (_target_, _recursive_, etc.).
    """

    def __init__(
        self,
        config: PipelineConfig | None = None,
        *,
        training_root: str | None = None,
        testing_root: str | None = None,
        desired_shape: DesiredShape | Mapping[str, int] | None = None,
        batch_size: int | None = None,
        shuffle_window: int | None = None,
        prefetch: int = 1,
        seed: int | None = None,
        force_channels: bool = True,
        channels_last: bool = False,
        extensions: Iterable[str] | None = None,
        num_workers: int = 0,
        **kwargs: Any,
    ) -> None:
        super().__init__()
        if config is not None:
            self._config = config
        else:
            required = {
                "training_root": training_root,
                "testing_root": testing_root,
                "desired_shape": desired_shape,
                "batch_size": batch_size,
                "shuffle_window": shuffle_window,
            }
            missing = [name for name, value in required.items() if value is None]
            if missing:
                raise ValueError(
                    f"BrainTumorDataModule requires config or {', '.join(missing)}"
                )
            if isinstance(desired_shape, DictConfig):
                desired_shape = OmegaConf.to_container(desired_shape)  # type: ignore[assignment]
            if isinstance(extensions, ListConfig):
                extensions = OmegaConf.to_container(extensions)  # type: ignore[assignment]
            self._config = PipelineConfig(
                training_root=training_root,  # type: ignore[arg-type]
                testing_root=testing_root,  # type: ignore[arg-type]
                desired_shape=desired_shape,  # type: ignore[arg-type]
                batch_size=batch_size,  # type: ignore[arg-type]
                shuffle_window=shuffle_window,  # type: ignore[arg-type]
                prefetch=prefetch,
                seed=seed,
                force_channels=force_channels,
                channels_last=channels_last,
                extensions=tuple(extensions) if extensions is not None else None,
                num_workers=num_workers,
            )

        # MPS guard: multiprocessing DataLoader workers crash on Apple Silicon.
        num_workers = self._config.num_workers
        if torch.backends.mps.is_available() and num_workers > 0:
            logger.warning(
                "MPS detected: setting num_workers=0 to avoid multiprocessing "
                "crash. Use linux-64 / CUDA for multi-worker DataLoading."
            )
            num_workers = 0
        self._num_workers = num_workers

        seed = self._config.seed
        self._shuffle_generator = make_generator(seed)
        self._window_generators: dict[Split, torch.Generator] = {
            "train": make_generator(None if seed is None else seed + 1),
            "test": make_generator(None if seed is None else seed + 2),
        }
        self._corpus: BrainTumorCorpus | None = None

    @property
    def config(self) -> PipelineConfig:
        return self._config

    # ------------------------------------------------------------------
    # Corpus is indexed and shuffled exactly once, on first access
    # ------------------------------------------------------------------

    @property
    def corpus(self) -> BrainTumorCorpus:
        """Indexed, shuffled corpus. Built lazily; safe to access before setup()."""
        if self._corpus is None:
            self._corpus = BrainTumorCorpus(
                Path(self._config.training_root),
                Path(self._config.testing_root),
                self._config.desired_shape,
                generator=self._shuffle_generator,
                force_channels=self._config.force_channels,
                channels_last=self._config.channels_last,
                extensions=self._config.extensions,
            )
        return self._corpus

    @property
    def label_map(self) -> LabelMap:
        return self.corpus.label_map

    @property
    def class_to_idx(self) -> dict[str, int]:
        return dict(self.label_map.class_to_idx)

    @property
    def num_classes(self) -> int:
        return len(self.label_map)

    # ------------------------------------------------------------------
    # LightningDataModule lifecycle
    # ------------------------------------------------------------------

    def setup(self, stage: str | None = None) -> None:
        """Index both splits on first call; later calls reuse the same snapshot.

        Both roots are indexed regardless of stage because the label map
        depends on the training split even when only testing.
        """
        corpus = self.corpus
        logger.info(f"Setup {stage or 'all'}: {corpus!r}")

    def _split_batches(self, split: Split) -> Iterable[ClassificationBatch]:
        return self.corpus.batches(
            split,
            self._config.batch_size,
            self._config.shuffle_window,
            prefetch=self._config.prefetch,
            generator=self._window_generators[split],
            num_workers=self._num_workers,
        )

    def train_dataloader(self) -> Iterable[ClassificationBatch]:
        """Return the batched training stream (restartable once per epoch)."""
        return self._split_batches("train")

    def val_dataloader(self) -> Iterable[ClassificationBatch]:
        """Return the batched testing stream, used as validation data."""
        return self._split_batches("test")

    def test_dataloader(self) -> Iterable[ClassificationBatch]:
        """Return the batched testing stream."""
        return self._split_batches("test")

    # ------------------------------------------------------------------
    # labels_mapping.json serialization
    # ------------------------------------------------------------------

    def save_labels_mapping(self, save_path: Path) -> None:
        """Persist the label map and preprocessing geometry as labels_mapping.json.

        Lets an evaluator map predicted indices back to label strings and
        reproduce the input preprocessing.

        Args:
            save_path: Destination path for labels_mapping.json.
        """
        shape = self._config.desired_shape
        mapping = {
            **self.label_map.to_dict(),
            "preprocessing": {
                "height": shape.height,
                "width": shape.width,
                "channels": shape.channels,
                "channels_last": self._config.channels_last,
                "scale": [0.0, 1.0],
            },
        }
        save_path.parent.mkdir(parents=True, exist_ok=True)
        with open(save_path, "w") as f:
            json.dump(mapping, f, indent=2)
        logger.info(f"Saved labels_mapping.json to {save_path}")
