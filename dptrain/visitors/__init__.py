"""
dptrain - Visitors
==================

Ordered parameter/gradient update steps applied by the Optimizer.

Typical chain::

    [Momentum(0.9), WeightDecay(1e-4), Learn(0.1), MaxNorm(2.0)]
"""

from .base import Visitor, VisitorChain, check_unique_names, find_visitor
from .momentum import Momentum
from .learn import Learn
from .constraints import WeightDecay, GradClip, MaxNorm

__all__ = [
    'Visitor',
    'VisitorChain',
    'check_unique_names',
    'find_visitor',
    'Momentum',
    'Learn',
    'WeightDecay',
    'GradClip',
    'MaxNorm',
]
