"""
Learn
=====

Plain gradient-descent step:

    θ ← θ - η · s · g

where η is the visitor's ``learning_rate`` and s is the visited
model's ``learning_scale`` (1.0 unless the leaf sets it).

``learning_rate`` is a public attribute so a schedule observer can
change it between epochs.

Author: dptrain Team
License: MIT
"""

from __future__ import annotations
from typing import Any, Dict, Optional

import torch

from ..core.errors import ConfigurationError
from .base import Visitor


class Learn(Visitor):
    """
    Gradient-descent parameter update.

    Parameters:
        learning_rate: Step size η (default: 0.1)
        name: Visitor name (default: 'learn')
    """

    def __init__(self, learning_rate: float = 0.1, name: Optional[str] = None):
        super().__init__(name)
        if learning_rate <= 0:
            raise ConfigurationError(f"learning_rate must be positive, got {learning_rate}")
        self.learning_rate = learning_rate

    def visit(self, model) -> None:
        step = -self.learning_rate * getattr(model, 'learning_scale', 1.0)
        with torch.no_grad():
            for _, param in model.named_parameters():
                if param.grad is not None:
                    param.add_(param.grad, alpha=step)

    def report(self) -> Dict[str, Any]:
        return {'learning_rate': self.learning_rate}

    def state_dict(self) -> Dict[str, Any]:
        return {'learning_rate': self.learning_rate}

    def load_state_dict(self, state: Dict[str, Any]) -> None:
        self.learning_rate = state.get('learning_rate', self.learning_rate)


__all__ = ['Learn']
