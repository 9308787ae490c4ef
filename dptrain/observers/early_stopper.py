"""
Early Stopper
=============

Patience-based early stopping with best-snapshot checkpointing.

On every ``doneEpoch`` the stopper reads one scalar from the report at
``error_report_path`` and compares it with the best value seen so far
(``>`` when maximizing, ``<`` otherwise):

- Strictly better: the observed component's ``state_dict()`` is saved
  to the store under the experiment id, replacing the previous best,
  and the patience counter resets.
- Otherwise: the patience counter grows. When it reaches
  ``max_epochs`` the stopper returns a ``RequestStop`` intent.

The best value only moves after the snapshot has been written, so a
failed save (ResourceError) leaves both the stored snapshot and the
stopper's state at the previous best.

A report without ``error_report_path`` is a configuration error and is
raised immediately.

Integration Pattern:
--------------------
    stopper = EarlyStopper(
        error_report_path=('validator', 'feedback', 'confusion', 'accuracy'),
        maximize=True,
        max_epochs=10,
        store=FileSnapshotStore('checkpoints'),
    )
    experiment = Experiment(model, optimizer, validator, observers=[stopper])
    experiment.run(datasource)

    best = store.load(experiment.id)

Author: dptrain Team
License: MIT
"""

from __future__ import annotations
import numbers
from typing import Any, Optional, Sequence

from ..core.errors import ConfigurationError
from ..core.intents import RequestStop
from ..core.report import Report
from ..utils.logging import TrainingLogger
from .base import Observer


class EarlyStopper(Observer):
    """
    Early stopping observer.

    Parameters:
        error_report_path: Key path of the monitored scalar in the epoch report
                           (default: ('validator', 'loss'))
        maximize: Treat larger values as better (default: False)
        max_epochs: Patience, in consecutive non-improving epochs (default: 30)
        store: Snapshot store with ``save(snapshot, identifier)`` (optional)
        verbose: Print improvements and stops (default: True)

    Attributes:
        best_value: Best monitored value so far (None before the first report)
        best_epoch: Epoch that produced ``best_value``
        best_report: Report of ``best_epoch``
        best_handle: Handle returned by the store for the best snapshot
        epochs_since_best: Consecutive epochs without improvement
        stop_requested: Whether patience ran out
    """

    def __init__(
        self,
        error_report_path: Sequence[str] = ('validator', 'loss'),
        maximize: bool = False,
        max_epochs: int = 30,
        store: Optional[Any] = None,
        verbose: bool = True
    ):
        super().__init__(['doneEpoch'], ['on_done_epoch'])
        if not error_report_path:
            raise ConfigurationError("EarlyStopper needs a non-empty error_report_path")
        if max_epochs < 1:
            raise ConfigurationError(f"max_epochs must be >= 1, got {max_epochs}")
        self.error_report_path = tuple(error_report_path)
        self.maximize = maximize
        self.max_epochs = max_epochs
        self.store = store
        self.verbose = verbose
        self._logger = TrainingLogger('early_stopper', verbose=verbose)
        self.reset()

    def reset(self) -> None:
        self.best_value: Optional[float] = None
        self.best_epoch: Optional[int] = None
        self.best_report: Optional[Report] = None
        self.best_handle: Any = None
        self.epochs_since_best = 0
        self.stop_requested = False

    def is_better(self, value: float) -> bool:
        if self.best_value is None:
            return True
        if self.maximize:
            return value > self.best_value
        return value < self.best_value

    def on_done_epoch(self, report: Report, epoch: int) -> Optional[RequestStop]:
        value = report.get_path(self.error_report_path)
        if isinstance(value, bool) or not isinstance(value, numbers.Real):
            raise ConfigurationError(
                f"Report path {list(self.error_report_path)} holds "
                f"{type(value).__name__}, not a number"
            )
        value = float(value)

        if self.is_better(value):
            if self.store is not None:
                self.best_handle = self.store.save(self._snapshot(epoch, value), self._identifier())
            self.best_value = value
            self.best_epoch = epoch
            self.best_report = report
            self.epochs_since_best = 0
            self._logger.info(f"Epoch {epoch}: new best {'/'.join(self.error_report_path)} = {value:.6f}")
            return None

        self.epochs_since_best += 1
        if self.epochs_since_best >= self.max_epochs:
            self.stop_requested = True
            reason = (
                f"No improvement of {'/'.join(self.error_report_path)} for "
                f"{self.epochs_since_best} epochs (best {self.best_value:.6f} "
                f"at epoch {self.best_epoch})"
            )
            self._logger.info(f"Early stopping: {reason}")
            return RequestStop(reason, source=self.name)
        return None

    def _identifier(self) -> str:
        return str(getattr(self.subject, 'id', 'experiment'))

    def _snapshot(self, epoch: int, value: float) -> dict:
        state = self.subject.state_dict() if self.subject is not None else {}
        return {
            **state,
            'early_stopper': {
                'epoch': epoch,
                'best_value': value,
                'error_report_path': list(self.error_report_path),
                'maximize': self.maximize,
            },
        }


__all__ = ['EarlyStopper']
