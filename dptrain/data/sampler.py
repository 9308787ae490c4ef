"""
Batch Samplers
==============

Lazy, restartable per-epoch batch iteration.

Each call to ``sample_epoch`` starts a fresh traversal that covers the
dataset exactly once. The final batch is emitted even when it is smaller
than ``batch_size``.

- Sampler: dataset order, contiguous ranges
- ShuffleSampler: a new permutation per epoch, drawn from a generator
  seeded with ``(random_seed, epoch)`` so a given epoch always yields
  the same batches

Author: dptrain Team
License: MIT
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Iterator, Optional

import numpy as np
import torch

from ..core.errors import ConfigurationError


@dataclass
class Batch:
    """
    One batch of examples.

    Attributes:
        inputs: Input tensor
        targets: Target tensor
        indices: Dataset indices of the examples, in batch order
        batch_idx: Position of the batch within its epoch
    """
    inputs: torch.Tensor
    targets: torch.Tensor
    indices: np.ndarray
    batch_idx: int

    def size(self) -> int:
        return int(self.inputs.shape[0])


class Sampler:
    """
    Sequential sampler.

    Parameters:
        batch_size: Number of examples per batch (default: 64)

    Example:
        >>> sampler = Sampler(batch_size=2)
        >>> for batch in sampler.sample_epoch(dataset, epoch=1):
        ...     output = model.forward(batch.inputs)
    """

    def __init__(self, batch_size: int = 64):
        if batch_size < 1:
            raise ConfigurationError(f"batch_size must be positive, got {batch_size}")
        self.batch_size = batch_size

    def setup(self, random_seed: Optional[int] = None) -> None:
        """Receive experiment-level settings. The sequential sampler needs none."""

    def epoch_size(self, dataset) -> int:
        return dataset.size()

    def n_batches(self, dataset) -> int:
        return -(-self.epoch_size(dataset) // self.batch_size)

    def sample_epoch(self, dataset, epoch: int = 1) -> Iterator[Batch]:
        n = self.epoch_size(dataset)
        for batch_idx, start in enumerate(range(0, n, self.batch_size)):
            stop = min(start + self.batch_size, n)
            inputs, targets = dataset.sub(start, stop)
            yield Batch(inputs, targets, np.arange(start, stop), batch_idx)

    def report(self) -> dict:
        return {'batch_size': self.batch_size, 'shuffle': 0}


class ShuffleSampler(Sampler):
    """
    Sampler that reshuffles examples at the start of every epoch.

    Parameters:
        batch_size: Number of examples per batch (default: 64)
        random_seed: Seed for the permutations. When None, the owning
                     Experiment provides its own seed through ``setup``.
    """

    def __init__(self, batch_size: int = 64, random_seed: Optional[int] = None):
        super().__init__(batch_size)
        self.random_seed = random_seed

    def setup(self, random_seed: Optional[int] = None) -> None:
        if self.random_seed is None:
            self.random_seed = random_seed

    def permutation(self, n: int, epoch: int) -> np.ndarray:
        """Return the example order used for ``epoch``."""
        if self.random_seed is None:
            raise ConfigurationError(
                "ShuffleSampler has no random_seed; pass one or attach it to an Experiment"
            )
        rng = np.random.default_rng([self.random_seed, epoch])
        return rng.permutation(n)

    def sample_epoch(self, dataset, epoch: int = 1) -> Iterator[Batch]:
        n = self.epoch_size(dataset)
        order = self.permutation(n, epoch)
        for batch_idx, start in enumerate(range(0, n, self.batch_size)):
            indices = order[start:start + self.batch_size]
            inputs, targets = dataset.index(indices)
            yield Batch(inputs, targets, indices, batch_idx)

    def report(self) -> dict:
        return {'batch_size': self.batch_size, 'shuffle': 1}


__all__ = ['Batch', 'Sampler', 'ShuffleSampler']
