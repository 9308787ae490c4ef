"""
Classification Feedback
=======================

- Confusion: argmax accuracy and a class-by-class confusion matrix
- Criteria: epoch mean of additional criteria (e.g. an MSE next to the
  training loss)

Author: dptrain Team
License: MIT
"""

from __future__ import annotations
from typing import Any, Callable, Dict, Optional

import numpy as np
import torch

from .base import Feedback


class Confusion(Feedback):
    """
    Confusion matrix and accuracy.

    Rows of ``matrix`` index the target class, columns the predicted
    class. The report only carries scalars; read ``matrix`` for the full
    table.

    Parameters:
        n_classes: Number of classes (default: inferred from the first
                   output's last dimension)
        name: Report key (default: 'confusion')

    Example:
        >>> feedback = Confusion()
        >>> feedback.add(logits, labels)
        >>> feedback.report()['accuracy']
    """

    def __init__(self, n_classes: Optional[int] = None, name: str = 'confusion'):
        super().__init__(name)
        self.n_classes = n_classes
        self.matrix: Optional[np.ndarray] = None
        if n_classes is not None:
            self.matrix = np.zeros((n_classes, n_classes), dtype=np.int64)

    def _add(self, output: torch.Tensor, target: torch.Tensor) -> None:
        if self.matrix is None:
            self.n_classes = int(output.shape[-1])
            self.matrix = np.zeros((self.n_classes, self.n_classes), dtype=np.int64)
        predicted = output.argmax(dim=-1).cpu().numpy().reshape(-1)
        actual = target.detach().cpu().numpy().reshape(-1).astype(np.int64)
        np.add.at(self.matrix, (actual, predicted), 1)

    def accuracy(self) -> float:
        if self.matrix is None or self.matrix.sum() == 0:
            return 0.0
        return float(np.trace(self.matrix) / self.matrix.sum())

    def per_class_accuracy(self) -> np.ndarray:
        totals = self.matrix.sum(axis=1)
        return np.divide(
            np.diag(self.matrix), totals,
            out=np.zeros(len(totals), dtype=np.float64),
            where=totals > 0,
        )

    def _report(self) -> Dict[str, Any]:
        return {'accuracy': self.accuracy()}

    def _reset(self) -> None:
        if self.matrix is not None:
            self.matrix[:] = 0


class Criteria(Feedback):
    """
    Epoch means of extra criteria.

    Parameters:
        criteria: Mapping of name → ``criterion(output, target)`` returning
                  a scalar tensor (assumed to be a batch mean)
        name: Report key (default: 'criteria')
    """

    def __init__(
        self,
        criteria: Dict[str, Callable[[torch.Tensor, torch.Tensor], torch.Tensor]],
        name: str = 'criteria'
    ):
        super().__init__(name)
        self.criteria = dict(criteria)
        self._sums = {key: 0.0 for key in self.criteria}

    def _add(self, output: torch.Tensor, target: torch.Tensor) -> None:
        batch_size = int(output.shape[0])
        with torch.no_grad():
            for key, criterion in self.criteria.items():
                self._sums[key] += float(criterion(output, target)) * batch_size

    def _report(self) -> Dict[str, Any]:
        n = max(self.n_samples, 1)
        return {key: total / n for key, total in self._sums.items()}

    def _reset(self) -> None:
        self._sums = {key: 0.0 for key in self.criteria}


__all__ = ['Confusion', 'Criteria']
