"""Label vocabulary and one-hot encoding."""

from __future__ import annotations

from collections.abc import Iterable, Iterator, Mapping
from types import MappingProxyType

import torch
from loguru import logger

from brain_tumor_training.errors import UnknownLabelError


class LabelMap(Mapping[str, int]):
    """Read-only bijection from label string to dense index ``0..K-1``.

    Built once from the training split and reused, unmodified, for encoding
    both splits. Behaves as a ``Mapping`` so it can stand in wherever a plain
    ``class_to_idx`` dict is expected.
    """

    def __init__(self, labels: Iterable[str]) -> None:
        idx_to_class = list(labels)
        if len(set(idx_to_class)) != len(idx_to_class):
            raise ValueError(f"Duplicate labels in {idx_to_class}")
        self._idx_to_class: tuple[str, ...] = tuple(idx_to_class)
        self._class_to_idx = MappingProxyType(
            {label: i for i, label in enumerate(self._idx_to_class)}
        )

    def __getitem__(self, label: str) -> int:
        try:
            return self._class_to_idx[label]
        except KeyError:
            raise UnknownLabelError(label) from None

    def __iter__(self) -> Iterator[str]:
        return iter(self._idx_to_class)

    def __len__(self) -> int:
        return len(self._idx_to_class)

    def __repr__(self) -> str:
        return f"LabelMap({dict(self._class_to_idx)!r})"

    @property
    def class_to_idx(self) -> Mapping[str, int]:
        return self._class_to_idx

    @property
    def idx_to_class(self) -> tuple[str, ...]:
        return self._idx_to_class

    @property
    def num_classes(self) -> int:
        return len(self._idx_to_class)

    def decode(self, index: int) -> str:
        """Map a predicted class index back to its label string."""
        if not 0 <= index < len(self._idx_to_class):
            raise IndexError(
                f"Class index {index} out of range for {len(self)} classes"
            )
        return self._idx_to_class[index]

    def encode(self, label: str) -> torch.Tensor:
        """One-hot encode label; see :func:`encode_one_hot`."""
        return encode_one_hot(label, self)

    def to_dict(self) -> dict[str, object]:
        """Serializable labels mapping payload."""
        return {
            "num_classes": self.num_classes,
            "class_to_idx": dict(self._class_to_idx),
            "idx_to_class": {str(i): label for i, label in enumerate(self)},
        }

    @classmethod
    def from_dict(cls, payload: Mapping[str, object]) -> LabelMap:
        """Rebuild a LabelMap from :meth:`to_dict` output."""
        class_to_idx = payload["class_to_idx"]
        if not isinstance(class_to_idx, Mapping):
            raise ValueError("labels mapping payload is missing 'class_to_idx'")
        ordered = sorted(class_to_idx.items(), key=lambda item: item[1])
        if [idx for _, idx in ordered] != list(range(len(ordered))):
            raise ValueError("class_to_idx indices must be dense 0..K-1")
        return cls(label for label, _ in ordered)


def build_label_map(labels: Iterable[str]) -> LabelMap:
    """Assign each distinct label an index in lexicographic order.

    Sorting makes the mapping independent of filesystem listing order, so
    the same training root yields the same indices on every machine.
    """
    label_map = LabelMap(sorted(set(labels)))
    logger.info(f"Built label map: {len(label_map)} classes")
    logger.debug(f"class_to_idx: {dict(label_map.class_to_idx)}")
    return label_map


def encode_one_hot(label: str, label_map: LabelMap) -> torch.Tensor:
    """Float32 vector of length K, all zeros except 1.0 at label's index.

    Raises:
        UnknownLabelError: If label is not in label_map.
    """
    one_hot = torch.zeros(len(label_map), dtype=torch.float32)
    one_hot[label_map[label]] = 1.0
    return one_hot
