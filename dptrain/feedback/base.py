"""
Feedback Base
=============

A feedback accumulates a performance statistic over the batches of one
epoch. The owning propagator calls ``add`` for every batch, ``report``
once the epoch is over, then ``reset`` before the next epoch.

Author: dptrain Team
License: MIT
"""

from __future__ import annotations
from typing import Any, Dict, Optional

import torch


class Feedback:
    """
    Epoch-scoped statistic accumulator.

    Subclasses implement ``_add`` and ``_report``; ``n_samples`` is
    tracked here.

    Parameters:
        name: Key under which the report appears (default: class name, lowercased)
    """

    def __init__(self, name: Optional[str] = None):
        self.name = name or type(self).__name__.lower()
        self.n_samples = 0

    def add(self, output: torch.Tensor, target: torch.Tensor) -> None:
        """Accumulate one batch."""
        output = output.detach()
        self._add(output, target)
        self.n_samples += int(output.shape[0])

    def report(self) -> Dict[str, Any]:
        report = self._report()
        report['n_samples'] = self.n_samples
        return report

    def reset(self) -> None:
        self.n_samples = 0
        self._reset()

    def _add(self, output: torch.Tensor, target: torch.Tensor) -> None:
        raise NotImplementedError

    def _report(self) -> Dict[str, Any]:
        raise NotImplementedError

    def _reset(self) -> None:
        raise NotImplementedError


__all__ = ['Feedback']
