"""
Datasets and Data Sources
=========================

Minimal dataset collaborators consumed by the samplers and the
experiment driver.

A DataSet holds aligned ``inputs``/``targets`` tensors for one split
(train, valid or test) and supports range and index retrieval. A
DataSource groups the splits so an Experiment can bind each propagator
to its dataset by name.

Author: dptrain Team
License: MIT
"""

from __future__ import annotations
from typing import Optional, Sequence, Tuple, Union

import numpy as np
import torch

from ..core.errors import ConfigurationError


SETS = ('train', 'valid', 'test')


class DataSet:
    """
    One split of examples.

    Parameters:
        inputs: Tensor of shape (n, ...)
        targets: Tensor of shape (n, ...)
        which_set: 'train', 'valid' or 'test'
        n_classes: Number of classes for classification targets (optional)
    """

    def __init__(
        self,
        inputs: torch.Tensor,
        targets: torch.Tensor,
        which_set: str = 'train',
        n_classes: Optional[int] = None
    ):
        if inputs.shape[0] != targets.shape[0]:
            raise ConfigurationError(
                f"DataSet '{which_set}' has {inputs.shape[0]} inputs "
                f"but {targets.shape[0]} targets"
            )
        self.inputs = inputs
        self.targets = targets
        self.which_set = which_set
        self._n_classes = n_classes

    def size(self) -> int:
        return self.inputs.shape[0]

    def __len__(self) -> int:
        return self.size()

    def sub(self, start: int, stop: int) -> Tuple[torch.Tensor, torch.Tensor]:
        """Return examples in ``[start, stop)``."""
        return self.inputs[start:stop], self.targets[start:stop]

    def index(
        self, indices: Union[Sequence[int], np.ndarray, torch.Tensor]
    ) -> Tuple[torch.Tensor, torch.Tensor]:
        """Return the examples at ``indices``, in that order."""
        indices = torch.as_tensor(indices, dtype=torch.long)
        return self.inputs[indices], self.targets[indices]

    def feature_size(self) -> int:
        return int(np.prod(self.inputs.shape[1:])) if self.inputs.dim() > 1 else 1

    def classes(self) -> Optional[list]:
        if self._n_classes is None:
            return None
        return list(range(self._n_classes))


class DataSource:
    """
    Named collection of train/valid/test splits.

    Example:
        >>> source = DataSource(train_set, valid_set, name='toy')
        >>> source.get_set('valid').size()
    """

    def __init__(
        self,
        train_set: DataSet,
        valid_set: Optional[DataSet] = None,
        test_set: Optional[DataSet] = None,
        name: str = 'datasource'
    ):
        self.name = name
        self._sets = {
            'train': train_set,
            'valid': valid_set,
            'test': test_set,
        }

    def get_set(self, which_set: str) -> DataSet:
        """
        Return a split by name.

        Raises:
            ConfigurationError: If the split is unknown or was not provided
        """
        if which_set not in self._sets:
            raise ConfigurationError(
                f"Unknown set {which_set!r}. Available: {', '.join(SETS)}"
            )
        dataset = self._sets[which_set]
        if dataset is None:
            raise ConfigurationError(
                f"DataSource '{self.name}' has no {which_set!r} set"
            )
        return dataset

    def has_set(self, which_set: str) -> bool:
        return self._sets.get(which_set) is not None

    def feature_size(self) -> int:
        return self.get_set('train').feature_size()

    def classes(self) -> Optional[list]:
        return self.get_set('train').classes()


def make_classification(
    n_samples: int = 1000,
    n_features: int = 20,
    n_classes: int = 4,
    valid_ratio: float = 0.2,
    test_ratio: float = 0.2,
    noise: float = 0.5,
    seed: int = 42
) -> DataSource:
    """
    Generate a seeded Gaussian-blob classification problem.

    Each class is centered on a random prototype; examples are the
    prototype plus isotropic noise. Splits are contiguous slices of a
    shuffled pool.

    Returns:
        DataSource with train, valid and test sets
    """
    rng = np.random.default_rng(seed)
    prototypes = rng.normal(0.0, 1.0, size=(n_classes, n_features))
    labels = rng.integers(0, n_classes, size=n_samples)
    features = prototypes[labels] + rng.normal(0.0, noise, size=(n_samples, n_features))

    inputs = torch.as_tensor(features, dtype=torch.float32)
    targets = torch.as_tensor(labels, dtype=torch.long)

    n_valid = int(n_samples * valid_ratio)
    n_test = int(n_samples * test_ratio)
    n_train = n_samples - n_valid - n_test
    if n_train <= 0:
        raise ConfigurationError("valid_ratio + test_ratio leaves no training examples")

    bounds = [0, n_train, n_train + n_valid, n_samples]
    splits = []
    for which_set, start, stop in zip(SETS, bounds[:-1], bounds[1:]):
        if stop > start:
            splits.append(DataSet(inputs[start:stop], targets[start:stop], which_set, n_classes))
        else:
            splits.append(None)

    return DataSource(*splits, name='classification')


__all__ = ['DataSet', 'DataSource', 'make_classification', 'SETS']
