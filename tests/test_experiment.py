"""
Tests for the Experiment epoch loop.
"""

import shutil

import pytest
import torch
import torch.nn as nn

from dptrain.core import (
    ComputationError,
    ConfigurationError,
    Evaluator,
    Experiment,
    ExperimentState,
    FileSnapshotStore,
    ObserverError,
    Optimizer,
    ResourceError,
)
from dptrain.data import DataSource, Sampler
from dptrain.models import Module
from dptrain.observers import EarlyStopper, LearningRateSchedule, Observer
from dptrain.visitors import Learn, Momentum

from conftest import make_regression_set


def regression_experiment(model, observers=(), max_epoch=3, visitors=None, **kwargs):
    return Experiment(
        model=model,
        optimizer=Optimizer(
            nn.MSELoss(),
            visitors if visitors is not None else [Learn(0.1)],
            sampler=Sampler(batch_size=4),
        ),
        validator=Evaluator(nn.MSELoss(), Sampler(batch_size=8)),
        tester=Evaluator(nn.MSELoss(), Sampler(batch_size=8)),
        observers=observers,
        random_seed=1,
        max_epoch=max_epoch,
        id='exp-test',
        verbose=False,
        **kwargs
    )


def fresh_linear():
    torch.manual_seed(5)
    return Module(nn.Linear(1, 1), name='linear')


class TestEpochLoop:
    """Ordering, reports and termination."""

    def test_propagators_run_in_order(self, regression_source, linear_model):
        experiment = regression_experiment(linear_model, max_epoch=2)
        batches = []
        experiment.mediator.subscribe('doneBatch', lambda name, idx, loss: batches.append(name))
        experiment.run(regression_source)

        epoch = ['optimizer'] * 4 + ['validator'] * 2 + ['tester'] * 2
        assert batches == epoch * 2

    def test_runs_to_max_epoch(self, regression_source, linear_model, recorder):
        experiment = regression_experiment(linear_model, observers=[recorder], max_epoch=3)
        report = experiment.run(regression_source)

        assert report['epoch'] == 3
        assert [epoch for epoch, _ in recorder.reports] == [1, 2, 3]
        assert recorder.finished == [(report, 'max_epoch')]
        assert experiment.state is ExperimentState.STOPPED
        assert experiment.stop_reason == 'max_epoch'

    def test_report_shape_is_stable(self, regression_source, linear_model, recorder):
        experiment = regression_experiment(linear_model, observers=[recorder], max_epoch=5)
        experiment.run(regression_source)

        first = recorder.reports[0][1]
        last = recorder.reports[-1][1]
        assert first.key_paths() == last.key_paths()
        assert {'id', 'epoch', 'random_seed', 'model', 'optimizer', 'validator', 'tester'} <= set(first)

    def test_training_improves_validation(self, regression_source, linear_model, recorder):
        experiment = regression_experiment(
            linear_model, observers=[recorder], max_epoch=20,
            visitors=[Momentum(0.5), Learn(0.1)],
        )
        experiment.run(regression_source)

        losses = [report['validator']['loss'] for _, report in recorder.reports]
        assert losses[-1] < losses[0]

    def test_early_stopping(self, tiny_source, frozen_model, recorder, tmp_path):
        """A frozen model never improves: stop after patience runs out."""
        stopper = EarlyStopper(max_epochs=3, store=FileSnapshotStore(tmp_path), verbose=False)
        experiment = Experiment(
            model=frozen_model,
            validator=Evaluator(nn.MSELoss(), Sampler(batch_size=2)),
            observers=[stopper, recorder],
            max_epoch=100,
            id='frozen',
            verbose=False,
        )
        report = experiment.run(tiny_source)

        assert report['epoch'] == 4
        assert len(recorder.reports) == 4
        assert recorder.finished[0][1] == 'early_stopping'
        assert experiment.stop_reason == 'early_stopping'
        assert stopper.best_epoch == 1
        assert (tmp_path / 'frozen.pt').exists()

    def test_learning_rate_schedule(self, regression_source, linear_model, recorder):
        schedule = LearningRateSchedule({1: 0.5, 3: 0.05})
        experiment = regression_experiment(linear_model, observers=[schedule, recorder], max_epoch=4)
        experiment.run(regression_source)

        rates = [report['optimizer']['visitors']['learn']['learning_rate']
                 for _, report in recorder.reports]
        assert rates == [0.5, 0.5, 0.05, 0.05]


class TestFailures:
    """Errors stop the run and surface to the caller."""

    def test_missing_dataset(self, linear_model):
        experiment = regression_experiment(linear_model)
        source = DataSource(make_regression_set('train'))

        with pytest.raises(ConfigurationError):
            experiment.run(source)
        assert experiment.state is ExperimentState.IDLE
        assert experiment.epoch == 0

    def test_computation_error(self, regression_source, linear_model):
        def nan_loss(output, target):
            return output.sum() * float('nan')

        experiment = Experiment(
            model=linear_model,
            optimizer=Optimizer(nan_loss, [Learn(0.1)], sampler=Sampler(batch_size=4)),
            verbose=False,
        )
        with pytest.raises(ComputationError):
            experiment.run(regression_source)
        assert experiment.state is ExperimentState.ERROR

    def test_failure_logged(self, regression_source, linear_model, capsys):
        def nan_loss(output, target):
            return output.sum() * float('nan')

        experiment = Experiment(
            model=linear_model,
            optimizer=Optimizer(nan_loss, [Learn(0.1)], sampler=Sampler(batch_size=4)),
            id='noisy',
        )
        with pytest.raises(ComputationError):
            experiment.run(regression_source)

        assert 'ERROR: Experiment noisy failed in epoch 1' in capsys.readouterr().out

    def test_observer_error(self, regression_source, linear_model):
        class Broken(Observer):
            def __init__(self):
                super().__init__(['doneEpoch'], ['on_done_epoch'])

            def on_done_epoch(self, report, epoch):
                raise KeyError('oops')

        experiment = regression_experiment(linear_model, observers=[Broken()])
        with pytest.raises(ObserverError):
            experiment.run(regression_source)
        assert experiment.state is ExperimentState.ERROR
        assert experiment.epoch == 1

    def test_snapshot_failure_keeps_its_type(self, tiny_source, frozen_model, tmp_path):
        """Store errors reach the caller as ResourceError, not ObserverError."""
        store = FileSnapshotStore(tmp_path / 'checkpoints')
        shutil.rmtree(store.directory)
        experiment = Experiment(
            model=frozen_model,
            validator=Evaluator(nn.MSELoss(), Sampler(batch_size=2)),
            observers=[EarlyStopper(store=store, verbose=False)],
            verbose=False,
        )

        with pytest.raises(ResourceError):
            experiment.run(tiny_source)
        assert experiment.state is ExperimentState.ERROR

    def test_needs_a_propagator(self, linear_model):
        with pytest.raises(ConfigurationError):
            Experiment(model=linear_model, verbose=False)

    def test_invalid_max_epoch(self, linear_model):
        with pytest.raises(ConfigurationError):
            regression_experiment(linear_model, max_epoch=0)

    def test_unknown_intent(self, regression_source, linear_model):
        class Chatty(Observer):
            def __init__(self):
                super().__init__(['doneEpoch'], ['on_done_epoch'])

            def on_done_epoch(self, report, epoch):
                return 'please stop'

        experiment = regression_experiment(linear_model, observers=[Chatty()])
        with pytest.raises(ConfigurationError):
            experiment.run(regression_source)


class TestSnapshots:
    """state_dict / load_state_dict resume."""

    def test_resume(self, regression_source, tmp_path):
        momentum = Momentum(0.9)
        first = regression_experiment(fresh_linear(), max_epoch=2, visitors=[momentum, Learn(0.1)])
        first.run(regression_source)

        store = FileSnapshotStore(tmp_path)
        store.save(first.state_dict(), first.id)

        resumed_momentum = Momentum(0.9)
        other = Module(nn.Linear(1, 1), name='linear')
        second = regression_experiment(other, max_epoch=3, visitors=[resumed_momentum, Learn(0.1)])
        second.load_state_dict(store.load(first.id))

        assert second.epoch == 2
        assert second.last_report == first.last_report
        assert torch.equal(other.module.weight, first.model.module.weight)
        assert torch.equal(resumed_momentum.velocity('weight'), momentum.velocity('weight'))

        report = second.run(regression_source)
        assert report['epoch'] == 3

    def test_unique_ids(self, linear_model):
        one = Experiment(model=linear_model, validator=Evaluator(nn.MSELoss()), verbose=False)
        two = Experiment(model=linear_model, validator=Evaluator(nn.MSELoss()), verbose=False)
        assert one.id != two.id
