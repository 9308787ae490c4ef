"""
Observer Intents
================

Messages an observer returns from a handler instead of reaching into
the component it observes. The Experiment collects them from
``Mediator.publish`` and applies them after every handler has run.

- RequestStop: end the run once the current epoch is finished
- SetLearningRate: change the Optimizer's Learn step for the next epoch

Author: dptrain Team
License: MIT
"""

from __future__ import annotations
from dataclasses import dataclass


@dataclass(frozen=True)
class RequestStop:
    """Ask the experiment to stop at the end of this epoch."""
    reason: str
    source: str = ''


@dataclass(frozen=True)
class SetLearningRate:
    """Ask the experiment to set the Learn visitor's learning rate."""
    learning_rate: float
    source: str = ''


__all__ = ['RequestStop', 'SetLearningRate']
