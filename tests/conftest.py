"""
Shared fixtures for the dptrain test suite.
"""

import pytest
import torch
import torch.nn as nn

from dptrain.data import DataSet, DataSource
from dptrain.feedback import Feedback
from dptrain.models import Module
from dptrain.observers import Observer


class OutputSum(Feedback):
    """Sums every model output seen during an epoch."""

    def __init__(self):
        super().__init__('outputsum')
        self.total = 0.0

    def _add(self, output, target):
        self.total += float(output.sum())

    def _report(self):
        return {'total': self.total}

    def _reset(self):
        self.total = 0.0


class Recorder(Observer):
    """Keeps every doneEpoch / doneExperiment payload."""

    def __init__(self):
        super().__init__(
            ['doneEpoch', 'doneExperiment'],
            ['on_done_epoch', 'on_done_experiment'],
        )
        self.reports = []
        self.finished = []

    def on_done_epoch(self, report, epoch):
        self.reports.append((epoch, report))

    def on_done_experiment(self, report, reason):
        self.finished.append((report, reason))


class FakeSubject:
    """Stands in for an Experiment observed by an EarlyStopper."""

    def __init__(self, id='exp-1'):
        self.id = id
        self.epoch = 0

    def state_dict(self):
        return {'id': self.id, 'epoch': self.epoch}


class RecordingStore:
    """In-memory snapshot store remembering every save."""

    def __init__(self, fail=False):
        self.fail = fail
        self.saves = []
        self.snapshots = {}

    def save(self, snapshot, identifier):
        if self.fail:
            from dptrain.core.errors import ResourceError
            raise ResourceError("disk full")
        self.saves.append((identifier, snapshot))
        self.snapshots[identifier] = snapshot
        return identifier

    def load(self, identifier):
        return self.snapshots[identifier]


def make_regression_set(which_set='train', n=16):
    inputs = torch.linspace(0.0, 1.0, n).unsqueeze(1)
    targets = 2.0 * inputs + 1.0
    return DataSet(inputs, targets, which_set)


@pytest.fixture
def regression_source():
    """y = 2x + 1 on [0, 1], same points in every split."""
    return DataSource(
        make_regression_set('train'),
        make_regression_set('valid'),
        make_regression_set('test'),
        name='regression',
    )


@pytest.fixture
def tiny_source():
    """Four 1-feature examples: 1, 2, 3, 4."""
    inputs = torch.tensor([[1.0], [2.0], [3.0], [4.0]])
    targets = torch.zeros(4, 1)
    dataset = DataSet(inputs, targets, 'valid')
    return DataSource(dataset, dataset, dataset, name='tiny')


@pytest.fixture
def frozen_model():
    """Identity linear map whose parameters cannot be trained."""
    linear = nn.Linear(1, 1)
    with torch.no_grad():
        linear.weight.fill_(1.0)
        linear.bias.fill_(0.0)
    linear.requires_grad_(False)
    return Module(linear, name='frozen')


@pytest.fixture
def linear_model():
    torch.manual_seed(0)
    return Module(nn.Linear(1, 1), name='linear')


@pytest.fixture
def output_sum():
    return OutputSum()


@pytest.fixture
def recorder():
    return Recorder()


@pytest.fixture
def fake_subject():
    return FakeSubject()


@pytest.fixture
def recording_store():
    return RecordingStore()


@pytest.fixture
def failing_store():
    return RecordingStore(fail=True)
