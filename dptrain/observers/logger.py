"""
Report Loggers
==============

Observers that record epoch reports.

- Logger: one console line per epoch (loss and feedback scalars of each
  propagator), optional TensorBoard scalars for every numeric leaf
- FileLogger: the full report history as JSON, rewritten every epoch

Author: dptrain Team
License: MIT
"""

from __future__ import annotations
import json
import numbers
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from ..core.report import Report
from ..utils.logging import TrainingLogger
from .base import Observer


# TensorBoard availability check
try:
    from torch.utils.tensorboard import SummaryWriter
    TENSORBOARD_AVAILABLE = True
except ImportError:
    TENSORBOARD_AVAILABLE = False
    SummaryWriter = None  # type: ignore


PROPAGATORS = ('optimizer', 'validator', 'tester')


def epoch_metrics(report: Report) -> Dict[str, Any]:
    """Pick the loss and feedback scalars of each propagator from a report."""
    metrics: Dict[str, Any] = {}
    for name in PROPAGATORS:
        if name not in report:
            continue
        node = report[name]
        metrics[f"{name}/loss"] = node['loss']
        feedback = node.get('feedback')
        if isinstance(feedback, Report):
            for path, value in feedback.flatten().items():
                if not path.endswith('n_samples'):
                    metrics[f"{name}/{path}"] = value
    return metrics


class Logger(Observer):
    """
    Console (and optional TensorBoard) epoch logger.

    Parameters:
        verbose: Print to console (default: True)
        log_dir: Directory for the log file and TensorBoard runs (default: 'logs')
        log_to_file: Also write console lines to a file (default: False)
        enable_tensorboard: Write every numeric report leaf to TensorBoard
                            (default: False)
    """

    def __init__(
        self,
        verbose: bool = True,
        log_dir: Union[str, Path] = 'logs',
        log_to_file: bool = False,
        enable_tensorboard: bool = False
    ):
        super().__init__(
            ['doneEpoch', 'doneExperiment'],
            ['on_done_epoch', 'on_done_experiment'],
        )
        self.log_dir = Path(log_dir)
        self.logger = TrainingLogger('experiment', log_dir=log_dir, verbose=verbose, log_to_file=log_to_file)
        self.enable_tensorboard = enable_tensorboard
        self._writer = None

    def setup(self, mediator, subject: Any = None) -> None:
        super().setup(mediator, subject)
        if not self.enable_tensorboard:
            return
        if not TENSORBOARD_AVAILABLE:
            self.logger.warning("TensorBoard is not installed; scalar logging disabled")
            return
        run_dir = self.log_dir / str(getattr(subject, 'id', 'experiment'))
        self._writer = SummaryWriter(str(run_dir))
        self.logger.info(f"TensorBoard logging: {run_dir}")

    def on_done_epoch(self, report: Report, epoch: int) -> None:
        self.logger.log_metrics(epoch=epoch, **epoch_metrics(report))
        if self._writer is None:
            return
        for path, value in report.flatten().items():
            if isinstance(value, numbers.Real):
                self._writer.add_scalar(path, value, epoch)

    def on_done_experiment(self, report: Optional[Report], reason: str) -> None:
        summary: Dict[str, Any] = {'Stopped': reason}
        if report is not None:
            summary['Epochs'] = report['epoch']
        if self._writer is not None:
            self._writer.close()
            self._writer = None
        self.logger.finalize(summary)


class FileLogger(Observer):
    """
    JSON report history writer.

    Writes ``<log_dir>/<experiment id>/reports.json`` holding every epoch
    report so far, and the termination reason once the run ends.

    Parameters:
        log_dir: Root directory (default: 'logs')
    """

    def __init__(self, log_dir: Union[str, Path] = 'logs'):
        super().__init__(
            ['doneEpoch', 'doneExperiment'],
            ['on_done_epoch', 'on_done_experiment'],
        )
        self.log_dir = Path(log_dir)
        self.reports: List[Dict[str, Any]] = []
        self.reason: Optional[str] = None

    @property
    def path(self) -> Path:
        return self.log_dir / str(getattr(self.subject, 'id', 'experiment')) / 'reports.json'

    def on_done_epoch(self, report: Report, epoch: int) -> None:
        self.reports.append(report.to_dict())
        self._write()

    def on_done_experiment(self, report: Optional[Report], reason: str) -> None:
        self.reason = reason
        self._write()

    def _write(self) -> None:
        path = self.path
        path.parent.mkdir(exist_ok=True, parents=True)
        with open(path, 'w') as f:
            json.dump({'reports': self.reports, 'stopped': self.reason}, f, indent=2)


__all__ = ['Logger', 'FileLogger', 'epoch_metrics', 'TENSORBOARD_AVAILABLE']
