"""Windowed shuffling, batching and read-ahead for paired image/label streams.

The assembled pipeline for one split is::

    LabeledImageStream -> WindowShuffleDataset -> WindowShuffleLoader(collate_pairs)
        -> PrefetchIterable (optional)

Every stage is restartable: iterating the result again starts a new pass
from the first record of the underlying snapshot.
"""

from __future__ import annotations

import concurrent.futures
from collections import deque
from collections.abc import Iterable, Iterator
from typing import Any

import torch
from torch.utils.data import DataLoader, IterableDataset, get_worker_info

from brain_tumor_training.types import ClassificationBatch

Pair = tuple[torch.Tensor, torch.Tensor]

# Returned by the read-ahead worker in place of StopIteration, which cannot
# cross a Future boundary into a generator.
_EXHAUSTED = object()

# Per-pass seeds stay below 2**62 so adding a worker id never overflows.
_SEED_HIGH = 2**62


class WindowShuffleDataset(IterableDataset[Pair]):
    """Buffer-based approximate shuffle over an upstream iterable.

    Fills a buffer of ``window`` pending items, then for each further upstream
    item emits one buffered item chosen uniformly at random and puts the new
    item in its slot. Remaining items are drained in random order once the
    upstream is exhausted. ``window=1`` preserves upstream order.

    Every pass draws one seed from ``generator``, so each epoch sees a
    different order while a seeded run stays reproducible. Under worker
    processes the seed must be drawn in the parent with :meth:`new_pass`
    before the workers receive their copy of the dataset; each worker then
    offsets it by its id.

    Args:
        source: Restartable upstream iterable of pairs.
        window: Buffer size; at most this many items are held at once.
        generator: Random source for the per-pass seeds.
    """

    def __init__(
        self,
        source: Iterable[Pair],
        window: int,
        generator: torch.Generator | None = None,
    ) -> None:
        super().__init__()
        if window < 1:
            raise ValueError(f"window must be >= 1, got {window}")
        self.source = source
        self.window = window
        self.generator = generator
        self._pass_seed: int | None = None

    def new_pass(self) -> int:
        """Draw the seed for the next pass from the shared generator."""
        self._pass_seed = int(
            torch.randint(_SEED_HIGH, (1,), generator=self.generator).item()
        )
        return self._pass_seed

    def _pass_generator(self) -> torch.Generator:
        seed = self._pass_seed if self._pass_seed is not None else self.new_pass()
        self._pass_seed = None
        info = get_worker_info()
        if info is not None:
            seed += info.id
        return torch.Generator().manual_seed(seed)

    def __iter__(self) -> Iterator[Pair]:
        generator = self._pass_generator()
        buffer: list[Pair] = []
        for item in self.source:
            if len(buffer) < self.window:
                buffer.append(item)
                continue
            slot = int(torch.randint(len(buffer), (1,), generator=generator).item())
            yield buffer[slot]
            buffer[slot] = item
        for slot in torch.randperm(len(buffer), generator=generator).tolist():
            yield buffer[slot]


class WindowShuffleLoader(DataLoader[Pair]):
    """DataLoader that seeds a new window-shuffle pass on every ``iter()``.

    Worker processes receive a pickled copy of the dataset, so the seed is
    drawn here in the consuming process before they start.
    """

    dataset: WindowShuffleDataset

    def __iter__(self) -> Any:
        self.dataset.new_pass()
        return super().__iter__()


def collate_pairs(batch: list[Pair]) -> ClassificationBatch:
    """Stack ``(image, one_hot)`` pairs into a ClassificationBatch dict."""
    images = torch.stack([item[0] for item in batch])
    labels = torch.stack([item[1] for item in batch])
    return {"images": images, "labels": labels}


class PrefetchIterable:
    """Produce up to ``depth`` items ahead of the consumer on one thread.

    Each pass owns a single-worker executor, so upstream ``next()`` calls stay
    serialized and at most ``depth`` items are materialized ahead of the one
    being consumed. Upstream exceptions are re-raised to the consumer at the
    position they occurred. Abandoning a pass cancels pending reads.
    """

    def __init__(self, source: Iterable[Any], depth: int = 1) -> None:
        if depth < 1:
            raise ValueError(f"depth must be >= 1, got {depth}")
        self.source = source
        self.depth = depth

    def __iter__(self) -> Iterator[Any]:
        upstream = iter(self.source)
        executor = concurrent.futures.ThreadPoolExecutor(
            max_workers=1, thread_name_prefix="prefetch"
        )
        pending: deque[concurrent.futures.Future[Any]] = deque()
        try:
            for _ in range(self.depth):
                pending.append(executor.submit(next, upstream, _EXHAUSTED))
            while pending:
                item = pending.popleft().result()
                if item is _EXHAUSTED:
                    return
                pending.append(executor.submit(next, upstream, _EXHAUSTED))
                yield item
        finally:
            executor.shutdown(wait=True, cancel_futures=True)


def assemble(
    pairs: Iterable[Pair],
    shuffle_window: int,
    batch_size: int,
    *,
    prefetch: int = 0,
    generator: torch.Generator | None = None,
    num_workers: int = 0,
) -> DataLoader[Pair] | PrefetchIterable:
    """Window-shuffle pairs and group them into batches.

    The final batch of a pass may hold fewer than ``batch_size`` pairs and is
    always emitted.

    Args:
        pairs: Restartable paired sequence, typically a LabeledImageStream.
        shuffle_window: Window size for :class:`WindowShuffleDataset`.
        batch_size: Pairs per batch.
        prefetch: Batches to produce ahead of the consumer; 0 disables.
        generator: Random source for the window shuffle.
        num_workers: DataLoader worker processes; 0 keeps loading in the
            consuming process.

    Returns:
        A WindowShuffleLoader, wrapped in a PrefetchIterable when prefetch > 0.
    """
    loader: DataLoader[Pair] = WindowShuffleLoader(
        WindowShuffleDataset(pairs, shuffle_window, generator=generator),
        batch_size=batch_size,
        drop_last=False,
        num_workers=num_workers,
        collate_fn=collate_pairs,
    )
    if prefetch > 0:
        return PrefetchIterable(loader, depth=prefetch)
    return loader
