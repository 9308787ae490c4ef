"""
Learning Rate Schedule
======================

Observer that changes the Optimizer's learning rate between epochs.

The schedule maps an epoch number to the learning rate used from that
epoch on. When the run starts, the rate in effect for the first epoch
is requested. After epoch ``e`` is reported, the observer looks up
``e + 1`` and, if it is a change point, returns a ``SetLearningRate``
intent that the Experiment applies to its Learn visitor before the next
epoch starts.

Example:
--------
    schedule = LearningRateSchedule({1: 0.1, 20: 0.01, 40: 0.001})

Author: dptrain Team
License: MIT
"""

from __future__ import annotations
from typing import Dict, Optional

from ..core.errors import ConfigurationError
from ..core.intents import SetLearningRate
from ..core.report import Report
from .base import Observer


class LearningRateSchedule(Observer):
    """
    Epoch-indexed learning rate schedule.

    Parameters:
        schedule: Mapping epoch → learning rate
    """

    def __init__(self, schedule: Dict[int, float]):
        super().__init__(
            ['startExperiment', 'doneEpoch'],
            ['on_start_experiment', 'on_done_epoch'],
        )
        if not schedule:
            raise ConfigurationError("LearningRateSchedule needs at least one entry")
        for epoch, learning_rate in schedule.items():
            if epoch < 1 or learning_rate <= 0:
                raise ConfigurationError(
                    f"Invalid schedule entry {epoch}: {learning_rate}"
                )
        self.schedule = dict(schedule)

    def learning_rate_for(self, epoch: int) -> Optional[float]:
        """Return the rate in effect at ``epoch`` (latest entry <= epoch)."""
        starts = [start for start in self.schedule if start <= epoch]
        if not starts:
            return None
        return self.schedule[max(starts)]

    def on_start_experiment(self, epoch: int) -> Optional[SetLearningRate]:
        learning_rate = self.learning_rate_for(epoch)
        if learning_rate is None:
            return None
        return SetLearningRate(learning_rate, source=self.name)

    def on_done_epoch(self, report: Report, epoch: int) -> Optional[SetLearningRate]:
        if epoch + 1 not in self.schedule:
            return None
        return SetLearningRate(self.schedule[epoch + 1], source=self.name)


__all__ = ['LearningRateSchedule']
