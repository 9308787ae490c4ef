"""
Momentum
========

Blends each gradient with an exponentially decaying memory of past
gradients.

Update Rule:
------------
For every parameter slot with gradient g:

    v ← g                          (first visit)
    v ← μ·v + (1 - d)·g            (afterwards)

then the gradient is replaced:

    g ← v                          (classical)
    g ← g + μ·v                    (Nesterov)

where μ is ``momentum_factor`` and d is ``damping_factor``.

State:
------
The velocity buffers live in an arena keyed by the model's parameter
slot ids, not by tensor identity. The shape each slot was first seen
with is recorded; visiting a model whose slot has a different shape is
a configuration error, since the arena was built for other parameters.

Author: dptrain Team
License: MIT
"""

from __future__ import annotations
from typing import Any, Dict, Optional

import torch

from ..core.errors import ConfigurationError
from .base import Visitor


class Momentum(Visitor):
    """
    Momentum gradient blending.

    Parameters:
        momentum_factor: Decay of the velocity memory μ (default: 0.9)
        damping_factor: Damping d of the incoming gradient (default: 0.0)
        nesterov: Use Nesterov momentum (default: False)
        name: Visitor name (default: 'momentum')
    """

    def __init__(
        self,
        momentum_factor: float = 0.9,
        damping_factor: float = 0.0,
        nesterov: bool = False,
        name: Optional[str] = None
    ):
        super().__init__(name)
        if not 0.0 <= momentum_factor < 1.0:
            raise ConfigurationError(
                f"momentum_factor must be in [0, 1), got {momentum_factor}"
            )
        self.momentum_factor = momentum_factor
        self.damping_factor = damping_factor
        self.nesterov = nesterov
        self._velocity: Dict[str, torch.Tensor] = {}

    def visit(self, model) -> None:
        mu = self.momentum_factor
        with torch.no_grad():
            for slot, param in model.named_parameters():
                grad = param.grad
                if grad is None:
                    continue
                velocity = self._velocity.get(slot)
                if velocity is None:
                    velocity = grad.detach().clone()
                    self._velocity[slot] = velocity
                else:
                    if velocity.shape != grad.shape:
                        raise ConfigurationError(
                            f"Momentum state for slot {slot!r} has shape "
                            f"{tuple(velocity.shape)} but the parameter has "
                            f"{tuple(grad.shape)}"
                        )
                    velocity.mul_(mu).add_(grad, alpha=1.0 - self.damping_factor)

                if self.nesterov:
                    grad.add_(velocity, alpha=mu)
                else:
                    grad.copy_(velocity)

    def velocity(self, slot: str) -> Optional[torch.Tensor]:
        return self._velocity.get(slot)

    def reset(self) -> None:
        self._velocity.clear()

    def report(self) -> Dict[str, Any]:
        return {
            'momentum_factor': self.momentum_factor,
            'damping_factor': self.damping_factor,
            'nesterov': int(self.nesterov),
        }

    def state_dict(self) -> Dict[str, Any]:
        return {
            'velocity': {slot: v.clone() for slot, v in self._velocity.items()},
        }

    def load_state_dict(self, state: Dict[str, Any]) -> None:
        self._velocity = {
            slot: v.clone() for slot, v in state.get('velocity', {}).items()
        }


__all__ = ['Momentum']
