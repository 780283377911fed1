"""Tests for BrainTumorDataModule, including the end-to-end streaming scenario."""

import json
from pathlib import Path
from typing import Any

import pytest
import torch
from hydra.core.config_store import ConfigStore
from pydantic import ValidationError

from brain_tumor_training.config import DesiredShape, PipelineConfig
from brain_tumor_training.data import BrainTumorDataModule
from brain_tumor_training.data.labels import LabelMap


def _config(root: Path, **overrides: object) -> PipelineConfig:
    fields: dict[str, object] = {
        "training_root": str(root / "Training"),
        "testing_root": str(root / "Testing"),
        "desired_shape": DesiredShape(height=64, width=64, channels=3),
        "batch_size": 2,
        "shuffle_window": 1,
        "seed": 0,
    }
    fields.update(overrides)
    return PipelineConfig(**fields)  # type: ignore[arg-type]


class TestEndToEnd:
    def test_glioma_notumor_scenario(self, tmp_corpus_dir: Path) -> None:
        """2 labels x 3 training images, 64x64x3, batch 2, no reshuffling."""
        dm = BrainTumorDataModule(_config(tmp_corpus_dir))
        dm.setup("fit")

        assert dm.num_classes == 2

        images = list(dm.corpus.samples("train"))
        assert len(images) == 6
        for img in images:
            assert img.shape == (3, 64, 64)
            assert float(img.min()) >= 0.0
            assert float(img.max()) <= 1.0

        batches = list(dm.train_dataloader())
        assert len(batches) == 3
        for batch in batches:
            assert batch["images"].shape == (2, 3, 64, 64)
            assert batch["images"].dtype == torch.float32
            assert batch["labels"].shape == (2, 2)
            assert torch.all(batch["labels"].sum(dim=1) == 1.0)

    def test_channels_last_scenario(self, tmp_corpus_dir: Path) -> None:
        dm = BrainTumorDataModule(_config(tmp_corpus_dir, channels_last=True))
        batch = next(iter(dm.train_dataloader()))
        assert batch["images"].shape == (2, 64, 64, 3)

    def test_window_one_batches_follow_snapshot_order(
        self, tmp_corpus_dir: Path
    ) -> None:
        dm = BrainTumorDataModule(_config(tmp_corpus_dir))
        labels = torch.cat([b["labels"] for b in dm.train_dataloader()])
        decoded = [dm.label_map.decode(int(row.argmax())) for row in labels]
        assert decoded == [r.label for r in dm.corpus.handle("train").records]

    def test_every_epoch_sees_every_record(self, tmp_corpus_dir: Path) -> None:
        dm = BrainTumorDataModule(_config(tmp_corpus_dir, shuffle_window=4))
        loader = dm.train_dataloader()
        for _ in range(3):
            labels = torch.cat([b["labels"] for b in loader])
            assert labels.sum(dim=0).tolist() == [3.0, 3.0]


class TestDataModule:
    def test_flat_kwargs_build_config(self, tmp_corpus_dir: Path) -> None:
        dm = BrainTumorDataModule(
            training_root=str(tmp_corpus_dir / "Training"),
            testing_root=str(tmp_corpus_dir / "Testing"),
            desired_shape={"height": 32, "width": 32, "channels": 3},
            batch_size=4,
            shuffle_window=8,
            extensions=["JPG"],
            _target_="ignored",
        )
        assert dm.config.desired_shape == DesiredShape(height=32, width=32, channels=3)
        assert dm.config.extensions == (".jpg",)
        assert dm.class_to_idx == {"glioma": 0, "notumor": 1}

    def test_omitted_roots_do_not_fall_back_to_cwd(
        self, tmp_corpus_dir: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.chdir(tmp_corpus_dir)
        with pytest.raises(ValueError, match="training_root, testing_root"):
            BrainTumorDataModule(
                desired_shape={"height": 32, "width": 32, "channels": 3},
                batch_size=2,
                shuffle_window=1,
            )

    @pytest.mark.parametrize("missing", ["batch_size", "shuffle_window"])
    def test_flat_kwargs_have_no_hidden_defaults(
        self, tmp_corpus_dir: Path, missing: str
    ) -> None:
        fields: dict[str, Any] = {
            "training_root": str(tmp_corpus_dir / "Training"),
            "testing_root": str(tmp_corpus_dir / "Testing"),
            "desired_shape": {"height": 32, "width": 32, "channels": 3},
            "batch_size": 2,
            "shuffle_window": 1,
        }
        del fields[missing]
        with pytest.raises(ValueError, match=missing):
            BrainTumorDataModule(**fields)

    def test_empty_root_rejected(self, tmp_corpus_dir: Path) -> None:
        with pytest.raises(ValidationError):
            BrainTumorDataModule(
                training_root="",
                testing_root=str(tmp_corpus_dir / "Testing"),
                desired_shape={"height": 32, "width": 32, "channels": 3},
                batch_size=2,
                shuffle_window=1,
            )

    def test_class_to_idx_available_before_setup(self, tmp_corpus_dir: Path) -> None:
        dm = BrainTumorDataModule(_config(tmp_corpus_dir))
        assert dm.class_to_idx == {"glioma": 0, "notumor": 1}

    def test_corpus_built_once(self, tmp_corpus_dir: Path) -> None:
        dm = BrainTumorDataModule(_config(tmp_corpus_dir, seed=None))
        dm.setup("fit")
        handle = dm.corpus.handle("train")
        dm.setup("test")
        assert dm.corpus.handle("train") is handle

    def test_val_and_test_stream_testing_split(self, tmp_corpus_dir: Path) -> None:
        dm = BrainTumorDataModule(_config(tmp_corpus_dir))
        dm.setup()
        for loader in (dm.val_dataloader(), dm.test_dataloader()):
            assert sum(b["images"].shape[0] for b in loader) == 4

    def test_missing_root_raises_on_setup(self, tmp_path: Path) -> None:
        dm = BrainTumorDataModule(_config(tmp_path))
        with pytest.raises(FileNotFoundError):
            dm.setup("fit")

    def test_save_labels_mapping_writes_json(
        self, tmp_corpus_dir: Path, tmp_path: Path
    ) -> None:
        dm = BrainTumorDataModule(_config(tmp_corpus_dir))
        out_path = tmp_path / "exports" / "labels_mapping.json"
        dm.save_labels_mapping(out_path)
        with open(out_path) as f:
            mapping = json.load(f)
        assert mapping["num_classes"] == 2
        assert mapping["idx_to_class"] == {"0": "glioma", "1": "notumor"}
        assert mapping["preprocessing"]["height"] == 64
        assert LabelMap.from_dict(mapping) == dm.label_map


class TestHydraRegistration:
    def test_datamodule_registered_in_config_store(self) -> None:
        repo = ConfigStore.instance().repo
        node = repo["data"]["brain_tumor.yaml"].node
        assert node["_target_"] == (
            "brain_tumor_training.data.datamodule.BrainTumorDataModule"
        )
