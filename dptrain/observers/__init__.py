"""
dptrain - Observers
===================

Mediator subscribers reacting to experiment events.

- EarlyStopper: patience-based stopping with best-snapshot checkpointing
- Logger: console / TensorBoard epoch logging
- FileLogger: JSON report history
- LearningRateSchedule: epoch-indexed learning rate changes
"""

from .base import Observer
from .early_stopper import EarlyStopper
from .logger import Logger, FileLogger, epoch_metrics
from .lr_schedule import LearningRateSchedule

__all__ = [
    'Observer',
    'EarlyStopper',
    'Logger',
    'FileLogger',
    'epoch_metrics',
    'LearningRateSchedule',
]
