"""
Experiment
==========

Top-level driver of the epoch loop.

An Experiment owns one model, up to three named propagators, a set of
observers, and the Mediator connecting them. Propagators and observers
receive the mediator (and the experiment seed) at construction; there
is no global bus.

Lifecycle:
----------
    IDLE → RUNNING → STOPPING → STOPPED
                   ↘ ERROR

``run(datasource)``:
1. Bind 'train' / 'valid' / 'test' to optimizer / validator / tester.
   A configured propagator without its dataset is a ConfigurationError.
2. Publish ``startExperiment`` (payload: first epoch to run).
3. While ``epoch < max_epoch`` and no stop was requested:
   a. increment ``epoch``
   b. run optimizer, then validator, then tester
   c. merge their reports under their names, next to the experiment
      id, epoch and model report
   d. publish ``doneEpoch`` (payload: report, epoch) and apply the
      intents returned by the observers
4. Publish ``doneExperiment`` (payload: final report, reason) once.

A stop request is honoured at the epoch boundary only. Any failure
marks the experiment ERROR and propagates to the caller.

Example:
--------
    experiment = Experiment(
        model=build_mlp(20, 4),
        optimizer=Optimizer(nn.CrossEntropyLoss(), [Momentum(0.9), Learn(0.1)]),
        validator=Evaluator(nn.CrossEntropyLoss(), feedback=Confusion()),
        observers=[EarlyStopper(('validator', 'feedback', 'confusion', 'accuracy'),
                                maximize=True, max_epochs=5)],
        random_seed=7,
        max_epoch=100,
    )
    report = experiment.run(make_classification())

Author: dptrain Team
License: MIT
"""

from __future__ import annotations
import os
import socket
import time
import uuid
from collections import OrderedDict
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional

import torch

from .errors import ConfigurationError
from .intents import RequestStop, SetLearningRate
from .mediator import Mediator
from .propagator import Optimizer, Propagator
from .report import Report
from ..utils.logging import TrainingLogger
from ..visitors.learn import Learn


# Propagator name → dataset split, in execution order
BINDINGS = OrderedDict([
    ('optimizer', 'train'),
    ('validator', 'valid'),
    ('tester', 'test'),
])


class ExperimentState(Enum):
    """Experiment lifecycle state."""
    IDLE = 'idle'
    RUNNING = 'running'
    STOPPING = 'stopping'
    STOPPED = 'stopped'
    ERROR = 'error'


def unique_id() -> str:
    """Return an id unique to this host, process and call."""
    return f"{socket.gethostname()}-{os.getpid()}-{uuid.uuid4().hex[:8]}"


class Experiment:
    """
    Epoch loop over a model, its propagators and its observers.

    Parameters:
        model: Model to train/evaluate
        optimizer: Training propagator (optional)
        validator: Evaluator bound to the 'valid' set (optional)
        tester: Evaluator bound to the 'test' set (optional)
        observers: Observers attached to the experiment's mediator
        random_seed: Seed for torch and the shuffled samplers
                     (default: derived from the clock)
        max_epoch: Maximum number of epochs (default: 1000)
        id: Experiment identifier (default: host-pid-random)
        description: Free-text description copied into every report
        verbose: Print lifecycle messages (default: True)

    Attributes:
        epoch: Last completed (or running) epoch
        stopped: Whether a stop was requested
        stop_reason: Why the run ended
        state: Current ExperimentState
        last_report: Report of the last completed epoch
    """

    def __init__(
        self,
        model,
        optimizer: Optional[Optimizer] = None,
        validator: Optional[Propagator] = None,
        tester: Optional[Propagator] = None,
        observers: Iterable[Any] = (),
        random_seed: Optional[int] = None,
        max_epoch: int = 1000,
        id: Optional[str] = None,
        description: str = '',
        verbose: bool = True
    ):
        if max_epoch < 1:
            raise ConfigurationError(f"max_epoch must be >= 1, got {max_epoch}")

        self.id = id or unique_id()
        self.description = description
        self.model = model
        self.max_epoch = max_epoch
        self.random_seed = (
            random_seed if random_seed is not None
            else int(time.time() * 1000) % (2 ** 31)
        )
        self.mediator = Mediator()
        self.logger = TrainingLogger(self.id, verbose=verbose)

        self.propagators: Dict[str, Propagator] = OrderedDict()
        for name, propagator in zip(BINDINGS.keys(), (optimizer, validator, tester)):
            if propagator is None:
                continue
            propagator.setup(mediator=self.mediator, random_seed=self.random_seed, name=name)
            self.propagators[name] = propagator
        if not self.propagators:
            raise ConfigurationError("Experiment needs at least one propagator")

        self.observers: List[Any] = list(observers)
        for observer in self.observers:
            observer.setup(mediator=self.mediator, subject=self)

        self.epoch = 0
        self.stopped = False
        self.stop_reason: Optional[str] = None
        self.state = ExperimentState.IDLE
        self.last_report: Optional[Report] = None

    @property
    def optimizer(self) -> Optional[Optimizer]:
        return self.propagators.get('optimizer')

    @property
    def validator(self) -> Optional[Propagator]:
        return self.propagators.get('validator')

    @property
    def tester(self) -> Optional[Propagator]:
        return self.propagators.get('tester')

    # ------------------------------------------------------------------
    # Epoch loop
    # ------------------------------------------------------------------

    def run(self, datasource) -> Report:
        """
        Run epochs until ``max_epoch`` or a stop request.

        Returns:
            Report of the last epoch
        """
        if self.state is ExperimentState.RUNNING:
            raise ConfigurationError(f"Experiment {self.id} is already running")

        datasets = self._bind(datasource)
        self.state = ExperimentState.RUNNING
        self.stopped = False
        self.stop_reason = None
        torch.manual_seed(self.random_seed)

        try:
            self.logger.info(
                f"Experiment {self.id}: epochs {self.epoch + 1}..{self.max_epoch}, "
                f"propagators {', '.join(self.propagators)}"
            )
            self._apply(self.mediator.publish('startExperiment', self.epoch + 1))

            while self.epoch < self.max_epoch and not self.stopped:
                self.epoch += 1
                if self.last_report is not None:
                    self.model.set_report(self.last_report)

                reports = OrderedDict()
                for name, propagator in self.propagators.items():
                    reports[name] = propagator.propagate(self.model, datasets[name], self.epoch)

                self.last_report = self.report(reports)
                self._apply(self.mediator.publish('doneEpoch', self.last_report, self.epoch))

            self.state = ExperimentState.STOPPING
            if self.stop_reason is None:
                self.stop_reason = 'max_epoch'
            self.mediator.publish('doneExperiment', self.last_report, self.stop_reason)
        except BaseException as exc:
            self.state = ExperimentState.ERROR
            self.logger.error(f"Experiment {self.id} failed in epoch {self.epoch}: {exc!r}")
            raise

        self.state = ExperimentState.STOPPED
        self.logger.info(f"Experiment {self.id} finished at epoch {self.epoch}: {self.stop_reason}")
        return self.last_report

    def report(self, propagator_reports: Dict[str, Report]) -> Report:
        """Merge propagator subtrees into the epoch report."""
        return Report({
            'id': self.id,
            'epoch': self.epoch,
            'random_seed': self.random_seed,
            'description': self.description,
            'model': self.model.report(),
            **propagator_reports,
        })

    def _bind(self, datasource) -> Dict[str, Any]:
        datasets = {}
        for name in self.propagators:
            which_set = BINDINGS[name]
            try:
                datasets[name] = datasource.get_set(which_set)
            except ConfigurationError as exc:
                raise ConfigurationError(
                    f"Propagator '{name}' needs the {which_set!r} set: {exc}"
                ) from exc
        return datasets

    def _apply(self, intents: List[Any]) -> None:
        for intent in _flatten(intents):
            if isinstance(intent, RequestStop):
                if not self.stopped:
                    self.stopped = True
                    self.stop_reason = 'early_stopping'
                    self.logger.info(f"Stop requested by {intent.source or 'observer'}: {intent.reason}")
            elif isinstance(intent, SetLearningRate):
                self.set_learning_rate(intent.learning_rate)
            else:
                raise ConfigurationError(f"Unknown observer intent: {intent!r}")

    def set_learning_rate(self, learning_rate: float) -> None:
        if self.optimizer is None:
            raise ConfigurationError("Cannot set a learning rate without an optimizer")
        learn = self.optimizer.find_visitor(Learn)
        if learn is None:
            raise ConfigurationError("Optimizer has no Learn visitor")
        learn.learning_rate = learning_rate

    # ------------------------------------------------------------------
    # Snapshots
    # ------------------------------------------------------------------

    def state_dict(self) -> Dict[str, Any]:
        """Full restorable state: model, visitor state, counters, last report."""
        return {
            'id': self.id,
            'epoch': self.epoch,
            'random_seed': self.random_seed,
            'description': self.description,
            'model': self.model.state_dict(),
            'propagators': {
                name: propagator.state_dict()
                for name, propagator in self.propagators.items()
            },
            'report': self.last_report.to_dict() if self.last_report is not None else None,
        }

    def load_state_dict(self, state: Dict[str, Any]) -> None:
        """Restore a snapshot produced by ``state_dict``."""
        if self.state is ExperimentState.RUNNING:
            raise ConfigurationError("Cannot load a snapshot into a running experiment")
        self.model.load_state_dict(state['model'])
        for name, propagator_state in state.get('propagators', {}).items():
            if name in self.propagators:
                self.propagators[name].load_state_dict(propagator_state)
        self.epoch = state['epoch']
        report = state.get('report')
        self.last_report = Report(report) if report is not None else None
        self.state = ExperimentState.IDLE


def _flatten(intents: Iterable[Any]):
    for intent in intents:
        if isinstance(intent, (list, tuple)):
            yield from intent
        else:
            yield intent


__all__ = ['Experiment', 'ExperimentState', 'BINDINGS', 'unique_id']
