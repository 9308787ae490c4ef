"""
Constraint and Regularization Visitors
======================================

Visitors that shape gradients before the update or clamp parameters
after it.

- WeightDecay: g ← g + λ·θ                (before Learn)
- GradClip: rescale each leaf's gradients to a maximum joint L2 norm
  (before Learn)
- MaxNorm: renormalize each output unit's incoming weight vector to at
  most ``max_out_norm`` (after Learn)

Author: dptrain Team
License: MIT
"""

from __future__ import annotations
from collections import defaultdict
from typing import Any, Dict, Optional

import torch

from ..core.errors import ConfigurationError
from .base import Visitor


def _is_weight(param: torch.Tensor) -> bool:
    return param.dim() >= 2


class WeightDecay(Visitor):
    """
    L2 weight decay added to the gradient.

    Parameters:
        wd_factor: Decay coefficient λ
        exclude_bias: Skip 1-d parameters (biases, norms) (default: True)
        name: Visitor name (default: 'weightdecay')
    """

    def __init__(
        self,
        wd_factor: float = 1e-4,
        exclude_bias: bool = True,
        name: Optional[str] = None
    ):
        super().__init__(name)
        if wd_factor < 0:
            raise ConfigurationError(f"wd_factor must be non-negative, got {wd_factor}")
        self.wd_factor = wd_factor
        self.exclude_bias = exclude_bias

    def visit(self, model) -> None:
        with torch.no_grad():
            for _, param in model.named_parameters():
                if param.grad is None:
                    continue
                if self.exclude_bias and not _is_weight(param):
                    continue
                param.grad.add_(param, alpha=self.wd_factor)

    def report(self) -> Dict[str, Any]:
        return {'wd_factor': self.wd_factor}


class GradClip(Visitor):
    """
    Gradient norm clipping per leaf model.

    The gradients of all parameters of a leaf are treated as one vector;
    when its L2 norm exceeds ``cutoff_norm`` they are scaled down together.

    Parameters:
        cutoff_norm: Maximum joint gradient norm (default: 1.0)
        name: Visitor name (default: 'gradclip')
    """

    def __init__(self, cutoff_norm: float = 1.0, name: Optional[str] = None):
        super().__init__(name)
        if cutoff_norm <= 0:
            raise ConfigurationError(f"cutoff_norm must be positive, got {cutoff_norm}")
        self.cutoff_norm = cutoff_norm

    def visit(self, model) -> None:
        grads = [p.grad for p in model.parameters() if p.grad is not None]
        if not grads:
            return
        with torch.no_grad():
            norm = torch.sqrt(sum((g * g).sum() for g in grads))
            if norm > self.cutoff_norm:
                scale = self.cutoff_norm / (norm + 1e-12)
                for grad in grads:
                    grad.mul_(scale)

    def report(self) -> Dict[str, Any]:
        return {'cutoff_norm': self.cutoff_norm}


class MaxNorm(Visitor):
    """
    Max-norm constraint on weight rows.

    Every weight tensor (dim >= 2) is renormalized along dim 0 so that
    each output unit's incoming weights have L2 norm at most
    ``max_out_norm``. Biases are left alone.

    Parameters:
        max_out_norm: Maximum row norm (default: 1.0)
        period: Apply on every ``period``-th visit of a slot (default: 1)
        name: Visitor name (default: 'maxnorm')
    """

    def __init__(
        self,
        max_out_norm: float = 1.0,
        period: int = 1,
        name: Optional[str] = None
    ):
        super().__init__(name)
        if max_out_norm <= 0:
            raise ConfigurationError(f"max_out_norm must be positive, got {max_out_norm}")
        if period < 1:
            raise ConfigurationError(f"period must be >= 1, got {period}")
        self.max_out_norm = max_out_norm
        self.period = period
        self._visits: Dict[str, int] = defaultdict(int)

    def visit(self, model) -> None:
        with torch.no_grad():
            for slot, param in model.named_parameters():
                if not _is_weight(param):
                    continue
                self._visits[slot] += 1
                if self._visits[slot] % self.period == 0:
                    param.renorm_(2, 0, self.max_out_norm)

    def report(self) -> Dict[str, Any]:
        return {'max_out_norm': self.max_out_norm, 'period': self.period}

    def state_dict(self) -> Dict[str, Any]:
        return {'visits': dict(self._visits)}

    def load_state_dict(self, state: Dict[str, Any]) -> None:
        self._visits = defaultdict(int, state.get('visits', {}))


__all__ = ['WeightDecay', 'GradClip', 'MaxNorm']
