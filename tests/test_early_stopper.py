"""
Tests for the EarlyStopper observer.
"""

import pytest

from dptrain.core import ConfigurationError, Mediator, Report, ReportPathError, ResourceError
from dptrain.core.intents import RequestStop
from dptrain.observers import EarlyStopper


def accuracy_report(value):
    return Report({'validator': {'feedback': {'confusion': {'accuracy': value}}}})


def loss_report(value):
    return Report({'validator': {'loss': value}})


ACCURACY = ('validator', 'feedback', 'confusion', 'accuracy')


def attach(stopper, subject):
    stopper.setup(mediator=Mediator(), subject=subject)
    return stopper


def feed(stopper, reports):
    """Publish reports as consecutive epochs, returning the intents."""
    results = []
    for epoch, report in enumerate(reports, start=1):
        results.append(stopper.mediator.publish('doneEpoch', report, epoch))
    return results


class TestPatience:
    """Stop requests after non-improving epochs."""

    def test_stops_after_patience(self, fake_subject):
        stopper = attach(EarlyStopper(max_epochs=3, verbose=False), fake_subject)
        results = feed(stopper, [loss_report(0.5)] * 4)

        assert results[:3] == [[], [], []]
        assert len(results[3]) == 1
        assert isinstance(results[3][0], RequestStop)
        assert results[3][0].source == 'earlystopper'
        assert stopper.stop_requested
        assert stopper.best_epoch == 1

    def test_stops_after_patience_maximizing(self, fake_subject):
        """Flat accuracy with maximize=True stops on the fourth report."""
        stopper = attach(EarlyStopper(ACCURACY, maximize=True, max_epochs=3, verbose=False), fake_subject)
        results = feed(stopper, [accuracy_report(0.5)] * 4)

        assert results[:3] == [[], [], []]
        assert isinstance(results[3][0], RequestStop)
        assert stopper.best_value == pytest.approx(0.5)
        assert stopper.best_epoch == 1

    def test_improvement_resets_counter(self, fake_subject):
        stopper = attach(EarlyStopper(max_epochs=2, verbose=False), fake_subject)
        results = feed(stopper, [loss_report(v) for v in (0.5, 0.6, 0.4, 0.7, 0.8)])

        assert [bool(r) for r in results] == [False, False, False, False, True]
        assert stopper.best_value == pytest.approx(0.4)
        assert stopper.best_epoch == 3

    def test_ties_do_not_improve(self, fake_subject):
        stopper = attach(EarlyStopper(max_epochs=5, verbose=False), fake_subject)
        feed(stopper, [loss_report(0.5), loss_report(0.5)])
        assert stopper.epochs_since_best == 1


class TestSnapshots:
    """Saving on improvement."""

    def test_saves_on_every_improvement(self, fake_subject, recording_store):
        stopper = attach(
            EarlyStopper(ACCURACY, maximize=True, max_epochs=10, store=recording_store, verbose=False),
            fake_subject,
        )
        feed(stopper, [accuracy_report(v) for v in (0.5, 0.6, 0.55, 0.65)])

        epochs = [snapshot['early_stopper']['epoch'] for _, snapshot in recording_store.saves]
        assert epochs == [1, 2, 4]
        assert stopper.best_value == pytest.approx(0.65)
        assert stopper.best_report == accuracy_report(0.65)
        assert stopper.best_handle == 'exp-1'

    def test_snapshot_carries_subject_state(self, fake_subject, recording_store):
        fake_subject.epoch = 7
        stopper = attach(EarlyStopper(store=recording_store, verbose=False), fake_subject)
        feed(stopper, [loss_report(1.0)])

        identifier, snapshot = recording_store.saves[0]
        assert identifier == 'exp-1'
        assert snapshot['epoch'] == 7
        assert snapshot['early_stopper']['error_report_path'] == ['validator', 'loss']

    def test_failed_save_keeps_previous_best(self, fake_subject, recording_store):
        stopper = attach(EarlyStopper(store=recording_store, verbose=False), fake_subject)
        feed(stopper, [loss_report(1.0)])

        recording_store.fail = True
        with pytest.raises(ResourceError):
            stopper.mediator.publish('doneEpoch', loss_report(0.5), 2)

        assert stopper.best_value == pytest.approx(1.0)
        assert stopper.best_epoch == 1


class TestMonitoredValue:
    """Report path resolution."""

    def test_missing_path(self, fake_subject):
        stopper = attach(EarlyStopper(ACCURACY, verbose=False), fake_subject)
        with pytest.raises(ReportPathError):
            feed(stopper, [loss_report(0.5)])

    def test_non_numeric_value(self, fake_subject):
        stopper = attach(EarlyStopper(('validator',), verbose=False), fake_subject)
        with pytest.raises(ConfigurationError):
            feed(stopper, [loss_report(0.5)])

    def test_is_better(self):
        minimize = EarlyStopper(verbose=False)
        maximize = EarlyStopper(maximize=True, verbose=False)
        minimize.best_value = maximize.best_value = 0.5

        assert minimize.is_better(0.4) and not minimize.is_better(0.6)
        assert maximize.is_better(0.6) and not maximize.is_better(0.4)

    def test_invalid_patience(self):
        with pytest.raises(ConfigurationError):
            EarlyStopper(max_epochs=0)
