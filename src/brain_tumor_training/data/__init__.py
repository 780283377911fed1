"""Streaming data pipeline for brain_tumor_training."""

from brain_tumor_training.data.batching import (
    PrefetchIterable,
    WindowShuffleDataset,
    WindowShuffleLoader,
    assemble,
    collate_pairs,
)
from brain_tumor_training.data.corpus import BrainTumorCorpus
from brain_tumor_training.data.datamodule import BrainTumorDataModule
from brain_tumor_training.data.dataset import (
    LabeledImageStream,
    ProjectedStream,
    SplitHandle,
    decode_image,
)
from brain_tumor_training.data.indexer import CorpusIndex, index_corpus, index_split
from brain_tumor_training.data.labels import LabelMap, build_label_map, encode_one_hot
from brain_tumor_training.data.shuffle import shuffle_records

__all__ = [
    "BrainTumorCorpus",
    "BrainTumorDataModule",
    "CorpusIndex",
    "LabelMap",
    "LabeledImageStream",
    "PrefetchIterable",
    "ProjectedStream",
    "SplitHandle",
    "WindowShuffleDataset",
    "WindowShuffleLoader",
    "assemble",
    "build_label_map",
    "collate_pairs",
    "decode_image",
    "encode_one_hot",
    "index_corpus",
    "index_split",
    "shuffle_records",
]
