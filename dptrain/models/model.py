"""
Model Capability Surface
========================

The experiment engine treats a model as an opaque computable unit. It
only needs to run it forward, push a gradient back through it, let
visitors update its parameters, and read a small report from it.

Hierarchy:
----------
- Model: capability interface shared by every model
- Module: leaf wrapping a ``torch.nn.Module``
- Sequential: ordered composite of Models

Parameter slots:
----------------
Every parameter is addressed by a slot id assigned when the model is
assembled (``'weight'`` for a lone leaf, ``'0.weight'``, ``'1.2.bias'``
inside composites). Visitors key their per-parameter state on these ids,
so the ids must not change once training starts.

Mutation rule:
--------------
Parameters change only inside ``accept(visitor)``. ``forward`` and
``backward`` read parameters and write gradient buffers, nothing else.
In evaluation mode, autograd is disabled and wrapped modules run in
``eval()`` so dropout and batch-norm statistics stay untouched.

Author: dptrain Team
License: MIT
"""

from __future__ import annotations
from typing import Any, Dict, List, Optional, Tuple

import torch
import torch.nn as nn

from ..core.errors import ComputationError, ConfigurationError


class Model:
    """
    Capability interface consumed by propagators and visitors.

    Subclasses implement ``forward``, ``accept``, ``named_parameters``
    and the mode/state hooks. ``backward`` is shared: it pushes
    ``grad_output`` through the autograd graph recorded by ``forward``.
    """

    def __init__(self, name: Optional[str] = None):
        self.name = name or type(self).__name__.lower()
        self._prefix = ''
        self._training = True
        self._previous_report = None

    # ------------------------------------------------------------------
    # Computation
    # ------------------------------------------------------------------

    def forward(self, inputs: torch.Tensor) -> torch.Tensor:
        raise NotImplementedError

    def backward(
        self, output: torch.Tensor, grad_output: torch.Tensor
    ) -> List[Optional[torch.Tensor]]:
        """
        Accumulate parameter gradients for ``output``.

        Args:
            output: Tensor returned by ``forward`` in training mode
            grad_output: Gradient of the criterion w.r.t. ``output``

        Returns:
            Gradient buffers, ordered like ``parameters()``
        """
        if not self._training:
            raise ComputationError(f"Model '{self.name}' cannot backward in evaluation mode")
        if output.grad_fn is None:
            raise ComputationError(
                f"Model '{self.name}' output carries no autograd graph"
            )
        torch.autograd.backward(output, grad_output)
        return self.gradients()

    def accept(self, visitor) -> None:
        raise NotImplementedError

    # ------------------------------------------------------------------
    # Parameters
    # ------------------------------------------------------------------

    def named_parameters(self) -> List[Tuple[str, nn.Parameter]]:
        raise NotImplementedError

    def parameters(self) -> List[nn.Parameter]:
        return [param for _, param in self.named_parameters()]

    def gradients(self) -> List[Optional[torch.Tensor]]:
        return [param.grad for param in self.parameters()]

    def slots(self) -> List[str]:
        return [slot for slot, _ in self.named_parameters()]

    def zero_grad(self) -> None:
        for param in self.parameters():
            param.grad = None

    def n_parameters(self) -> int:
        return sum(param.numel() for param in self.parameters())

    def _assign_slots(self, prefix: str) -> None:
        self._prefix = prefix

    # ------------------------------------------------------------------
    # Modes
    # ------------------------------------------------------------------

    def training(self) -> None:
        self._training = True

    def evaluate(self) -> None:
        self._training = False

    @property
    def is_training(self) -> bool:
        return self._training

    # ------------------------------------------------------------------
    # Reports and state
    # ------------------------------------------------------------------

    def report(self) -> Dict[str, Any]:
        return {
            'name': self.name,
            'type': type(self).__name__,
            'n_parameters': self.n_parameters(),
        }

    def set_report(self, report) -> None:
        """Receive the previous epoch's report for cross-epoch state."""
        self._previous_report = report

    def state_dict(self) -> Dict[str, torch.Tensor]:
        raise NotImplementedError

    def load_state_dict(self, state: Dict[str, torch.Tensor]) -> None:
        raise NotImplementedError


class Module(Model):
    """
    Leaf model wrapping a ``torch.nn.Module``.

    Parameters:
        module: Wrapped torch module
        name: Display name (default: wrapped class name, lowercased)
        learning_scale: Per-model multiplier applied by the Learn visitor

    Example:
        >>> leaf = Module(nn.Linear(4, 2))
        >>> leaf.slots()
        ['weight', 'bias']
    """

    def __init__(
        self,
        module: nn.Module,
        name: Optional[str] = None,
        learning_scale: float = 1.0
    ):
        super().__init__(name or type(module).__name__.lower())
        self.module = module
        self.learning_scale = learning_scale
        self.module.train()

    def forward(self, inputs: torch.Tensor) -> torch.Tensor:
        if self._training:
            return self.module(inputs)
        with torch.no_grad():
            return self.module(inputs)

    def accept(self, visitor) -> None:
        visitor.visit(self)

    def named_parameters(self) -> List[Tuple[str, nn.Parameter]]:
        return [
            (self._prefix + name, param)
            for name, param in self.module.named_parameters()
        ]

    def training(self) -> None:
        super().training()
        self.module.train()

    def evaluate(self) -> None:
        super().evaluate()
        self.module.eval()

    def state_dict(self) -> Dict[str, torch.Tensor]:
        return {
            self._prefix + key: value.detach().clone()
            for key, value in self.module.state_dict().items()
        }

    def load_state_dict(self, state: Dict[str, torch.Tensor]) -> None:
        own = {}
        for key in self.module.state_dict().keys():
            slot = self._prefix + key
            if slot not in state:
                raise ConfigurationError(
                    f"State for model '{self.name}' is missing {slot!r}"
                )
            own[key] = state[slot]
        self.module.load_state_dict(own)


class Sequential(Model):
    """
    Ordered composite of models.

    ``forward`` chains children in declared order; ``accept`` visits
    them depth-first in the same order, so slot ids and visitor state
    line up across epochs.

    Example:
        >>> model = Sequential(
        ...     Module(nn.Linear(4, 8)),
        ...     Module(nn.Linear(8, 2)),
        ... )
        >>> model.slots()
        ['0.weight', '0.bias', '1.weight', '1.bias']
    """

    def __init__(self, *models: Model, name: Optional[str] = None):
        super().__init__(name)
        if not models:
            raise ConfigurationError("Sequential needs at least one model")
        self.models: List[Model] = list(models)
        self._assign_slots('')

    def _assign_slots(self, prefix: str) -> None:
        super()._assign_slots(prefix)
        for index, model in enumerate(self.models):
            model._assign_slots(f"{prefix}{index}.")

    def forward(self, inputs: torch.Tensor) -> torch.Tensor:
        output = inputs
        for model in self.models:
            output = model.forward(output)
        return output

    def accept(self, visitor) -> None:
        for model in self.models:
            model.accept(visitor)

    def named_parameters(self) -> List[Tuple[str, nn.Parameter]]:
        named = []
        for model in self.models:
            named.extend(model.named_parameters())
        return named

    def training(self) -> None:
        super().training()
        for model in self.models:
            model.training()

    def evaluate(self) -> None:
        super().evaluate()
        for model in self.models:
            model.evaluate()

    def report(self) -> Dict[str, Any]:
        report = super().report()
        report['modules'] = {
            str(index): model.report() for index, model in enumerate(self.models)
        }
        return report

    def set_report(self, report) -> None:
        super().set_report(report)
        for model in self.models:
            model.set_report(report)

    def state_dict(self) -> Dict[str, torch.Tensor]:
        state = {}
        for model in self.models:
            state.update(model.state_dict())
        return state

    def load_state_dict(self, state: Dict[str, torch.Tensor]) -> None:
        for model in self.models:
            model.load_state_dict(state)

    def __len__(self) -> int:
        return len(self.models)

    def __getitem__(self, index: int) -> Model:
        return self.models[index]


def count_parameters(model: Model) -> Tuple[int, int]:
    """
    Count model parameters.

    Returns:
        Tuple of (total_params, trainable_params)
    """
    params = model.parameters()
    total = sum(p.numel() for p in params)
    trainable = sum(p.numel() for p in params if p.requires_grad)
    return total, trainable


__all__ = ['Model', 'Module', 'Sequential', 'count_parameters']
