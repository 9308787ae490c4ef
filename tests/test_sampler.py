"""
Tests for sequential and shuffled samplers.
"""

import inspect

import numpy as np
import pytest
import torch

from dptrain.core.errors import ConfigurationError
from dptrain.data import DataSet, DataSource, Sampler, ShuffleSampler


@pytest.fixture
def dataset():
    inputs = torch.arange(10, dtype=torch.float32).unsqueeze(1)
    return DataSet(inputs, inputs.clone(), 'train')


def batch_indices(sampler, dataset, epoch):
    return [batch.indices.tolist() for batch in sampler.sample_epoch(dataset, epoch)]


class TestSequentialSampler:
    """Dataset-order batches."""

    def test_covers_dataset_in_order(self, dataset):
        batches = list(Sampler(batch_size=4).sample_epoch(dataset))

        assert [b.size() for b in batches] == [4, 4, 2]
        assert [b.batch_idx for b in batches] == [0, 1, 2]
        assert torch.equal(torch.cat([b.inputs for b in batches]), dataset.inputs)

    def test_is_lazy_and_restartable(self, dataset):
        sampler = Sampler(batch_size=3)
        traversal = sampler.sample_epoch(dataset)
        assert inspect.isgenerator(traversal)

        next(traversal)
        fresh = batch_indices(sampler, dataset, 1)
        assert fresh[0] == [0, 1, 2]

    def test_n_batches(self, dataset):
        assert Sampler(batch_size=4).n_batches(dataset) == 3
        assert Sampler(batch_size=5).n_batches(dataset) == 2

    def test_invalid_batch_size(self):
        with pytest.raises(ConfigurationError):
            Sampler(batch_size=0)


class TestShuffleSampler:
    """Per-epoch permutations seeded from (seed, epoch)."""

    def test_same_seed_and_epoch_repeat(self, dataset):
        first = batch_indices(ShuffleSampler(4, random_seed=3), dataset, 1)
        second = batch_indices(ShuffleSampler(4, random_seed=3), dataset, 1)

        assert first == second

    def test_epochs_differ_but_cover_everything(self, dataset):
        sampler = ShuffleSampler(4, random_seed=3)
        epoch_1 = sum(batch_indices(sampler, dataset, 1), [])
        epoch_2 = sum(batch_indices(sampler, dataset, 2), [])

        assert epoch_1 != epoch_2
        assert sorted(epoch_1) == list(range(10))
        assert sorted(epoch_2) == list(range(10))

    def test_partial_last_batch(self, dataset):
        sizes = [b.size() for b in ShuffleSampler(4, random_seed=0).sample_epoch(dataset, 1)]
        assert sizes == [4, 4, 2]

    def test_batches_match_indices(self, dataset):
        for batch in ShuffleSampler(3, random_seed=1).sample_epoch(dataset, 5):
            expected = torch.as_tensor(batch.indices, dtype=torch.float32).unsqueeze(1)
            assert torch.equal(batch.inputs, expected)

    def test_experiment_seed_used_when_unset(self, dataset):
        sampler = ShuffleSampler(4)
        sampler.setup(random_seed=11)
        explicit = ShuffleSampler(4, random_seed=11)

        assert batch_indices(sampler, dataset, 2) == batch_indices(explicit, dataset, 2)

    def test_explicit_seed_kept(self):
        sampler = ShuffleSampler(4, random_seed=5)
        sampler.setup(random_seed=11)
        assert sampler.random_seed == 5

    def test_missing_seed(self, dataset):
        with pytest.raises(ConfigurationError):
            list(ShuffleSampler(4).sample_epoch(dataset, 1))


class TestDataSource:
    """Split lookup."""

    def test_missing_split(self, dataset):
        source = DataSource(dataset)
        with pytest.raises(ConfigurationError):
            source.get_set('test')
        assert not source.has_set('valid')

    def test_unknown_split(self, dataset):
        with pytest.raises(ConfigurationError):
            DataSource(dataset).get_set('holdout')

    def test_mismatched_lengths(self):
        with pytest.raises(ConfigurationError):
            DataSet(torch.zeros(3, 1), torch.zeros(4, 1))

    def test_make_classification(self):
        from dptrain.data import make_classification
        source = make_classification(n_samples=100, n_features=5, n_classes=3, seed=1)

        assert source.feature_size() == 5
        assert source.classes() == [0, 1, 2]
        sizes = [source.get_set(s).size() for s in ('train', 'valid', 'test')]
        assert sizes == [60, 20, 20]
