"""
dptrain - Feedback
==================

Epoch-level statistic accumulators attached to propagators.
"""

from .base import Feedback
from .confusion import Confusion, Criteria

__all__ = ['Feedback', 'Confusion', 'Criteria']
