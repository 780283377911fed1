"""One-time, in-place shuffling of a split's record list."""

from typing import TypeVar

import torch

T = TypeVar("T")


def shuffle_records(records: list[T], generator: torch.Generator | None = None) -> None:
    """Permute records in place, uniformly over all permutations.

    Uses ``torch.randperm`` so the permutation is reproducible from a seeded
    generator. An empty or single-element list is left untouched.
    """
    if len(records) < 2:
        return
    perm = torch.randperm(len(records), generator=generator).tolist()
    records[:] = [records[i] for i in perm]
