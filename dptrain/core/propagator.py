"""
Propagators
===========

A propagator drives a model through one dataset for one epoch and
returns that epoch's report subtree.

Variants:
---------
- Optimizer: forward, criterion, backward, then every visitor in list
  order (momentum → learn → constraints). Mutates the model.
- Evaluator: forward and criterion only, autograd disabled, model in
  evaluation mode. Running it any number of times on the same model
  yields the same report.

Per-batch flow:
---------------
    batch = sampler → output = model.forward(inputs)
                    → loss = criterion(output, targets)
                    → [Optimizer] grad_output = ∂loss/∂output
                    → [Optimizer] model.backward(output, grad_output)
                    → [Optimizer] model.accept(v) for v in visitors
                    → feedback.add(output, targets)

Report:
-------
    {
        'loss': <sample-weighted mean loss>,
        'n_batches': ..., 'n_samples': ...,
        'sampler': {...},
        'feedback': {<feedback name>: {...}},   # when a feedback is set
        'visitors': {<visitor name>: {...}},    # Optimizer only
    }

Failures in forward, backward or the criterion, and non-finite losses,
raise ComputationError and abort the run.

Author: dptrain Team
License: MIT
"""

from __future__ import annotations
import math
from typing import Any, Callable, Dict, List, Optional, Sequence

import torch

from .errors import ComputationError, ConfigurationError, DPError
from .report import Report
from ..data.sampler import Batch, Sampler, ShuffleSampler
from ..feedback.base import Feedback
from ..visitors.base import Visitor, check_unique_names, find_visitor


Criterion = Callable[[torch.Tensor, torch.Tensor], torch.Tensor]


class Propagator:
    """
    Base propagator.

    Parameters:
        criterion: ``criterion(output, target)`` returning a scalar loss
                   (a batch mean)
        sampler: Batch sampler (default: sequential, batch_size=64)
        feedback: Optional epoch statistic accumulator
        name: Report key, set by the Experiment when left as None; must
              match the binding name otherwise
    """

    def __init__(
        self,
        criterion: Criterion,
        sampler: Optional[Sampler] = None,
        feedback: Optional[Feedback] = None,
        name: Optional[str] = None
    ):
        if criterion is None:
            raise ConfigurationError(f"{type(self).__name__} requires a criterion")
        self.criterion = criterion
        self.sampler = sampler if sampler is not None else Sampler()
        self.feedback = feedback
        self.name = name
        self._mediator = None

        # Per-epoch accumulators
        self._loss_sum = 0.0
        self._n_samples = 0
        self._n_batches = 0

    def setup(self, mediator=None, random_seed: Optional[int] = None, name: Optional[str] = None) -> None:
        """
        Attach the experiment's mediator and seed.

        Raises:
            ConfigurationError: If ``name`` differs from an explicit name
                given at construction
        """
        if name is not None and self.name is not None and self.name != name:
            raise ConfigurationError(
                f"{type(self).__name__} named {self.name!r} cannot be bound as {name!r}"
            )
        self._mediator = mediator
        if self.name is None:
            self.name = name
        self.sampler.setup(random_seed=random_seed)

    def propagate(self, model, dataset, epoch: int) -> Report:
        """
        Run one epoch over ``dataset``.

        Returns:
            This propagator's report subtree
        """
        self._begin_epoch(model)
        for batch in self.sampler.sample_epoch(dataset, epoch):
            loss = self._propagate_batch(model, batch)
            self._loss_sum += loss * batch.size()
            self._n_samples += batch.size()
            self._n_batches += 1
            if self._mediator is not None:
                self._mediator.publish('doneBatch', self.name, batch.batch_idx, loss)

        report = self.report()
        self._end_epoch()
        return report

    def report(self) -> Report:
        report: Dict[str, Any] = {
            'loss': self._loss_sum / self._n_samples if self._n_samples else 0.0,
            'n_batches': self._n_batches,
            'n_samples': self._n_samples,
            'sampler': self.sampler.report(),
        }
        if self.feedback is not None:
            report['feedback'] = {self.feedback.name: self.feedback.report()}
        return Report(report)

    def state_dict(self) -> Dict[str, Any]:
        return {}

    def load_state_dict(self, state: Dict[str, Any]) -> None:
        pass

    def _begin_epoch(self, model) -> None:
        self._loss_sum = 0.0
        self._n_samples = 0
        self._n_batches = 0
        if self.feedback is not None:
            self.feedback.reset()

    def _end_epoch(self) -> None:
        if self.feedback is not None:
            self.feedback.reset()

    def _forward(self, model, batch: Batch):
        try:
            output = model.forward(batch.inputs)
            loss = self.criterion(output, batch.targets)
            if not isinstance(loss, torch.Tensor) or loss.numel() != 1:
                raise ComputationError(
                    f"{self.name}: criterion must return a scalar tensor, "
                    f"got {_describe(loss)} on batch {batch.batch_idx}"
                )
            value = float(loss.detach())
        except DPError:
            raise
        except Exception as exc:
            raise ComputationError(
                f"{self.name}: forward/criterion failed on batch {batch.batch_idx}: {exc}"
            ) from exc

        if not math.isfinite(value):
            raise ComputationError(
                f"{self.name}: non-finite loss {value} on batch {batch.batch_idx}"
            )
        return output, loss, value

    def _add_feedback(self, output: torch.Tensor, batch: Batch) -> None:
        if self.feedback is None:
            return
        try:
            self.feedback.add(output, batch.targets)
        except DPError:
            raise
        except Exception as exc:
            raise ComputationError(
                f"{self.name}: feedback '{self.feedback.name}' failed on "
                f"batch {batch.batch_idx}: {exc}"
            ) from exc

    def _propagate_batch(self, model, batch: Batch) -> float:
        raise NotImplementedError


class Optimizer(Propagator):
    """
    Training propagator.

    Parameters:
        criterion: Loss callable
        visitors: Update steps, applied in this exact order after backward
        sampler: Batch sampler (default: ShuffleSampler, batch_size=64)
        feedback: Optional epoch statistic accumulator
        name: Report key (default: 'optimizer' when attached to an Experiment)

    Example:
        >>> optimizer = Optimizer(
        ...     criterion=nn.CrossEntropyLoss(),
        ...     visitors=[Momentum(0.9), Learn(0.1), MaxNorm(2.0)],
        ...     sampler=ShuffleSampler(batch_size=32),
        ... )
    """

    def __init__(
        self,
        criterion: Criterion,
        visitors: Sequence[Visitor],
        sampler: Optional[Sampler] = None,
        feedback: Optional[Feedback] = None,
        name: Optional[str] = None
    ):
        super().__init__(
            criterion,
            sampler if sampler is not None else ShuffleSampler(),
            feedback,
            name,
        )
        self.visitors: List[Visitor] = list(visitors)
        if not self.visitors:
            raise ConfigurationError("Optimizer requires at least one visitor")
        check_unique_names(self.visitors)

    def find_visitor(self, visitor_type: type) -> Optional[Visitor]:
        return find_visitor(self.visitors, visitor_type)

    def _begin_epoch(self, model) -> None:
        super()._begin_epoch(model)
        model.training()

    def _propagate_batch(self, model, batch: Batch) -> float:
        model.zero_grad()
        output, loss, value = self._forward(model, batch)

        try:
            grad_output, = torch.autograd.grad(loss, output, retain_graph=True)
            model.backward(output, grad_output)
        except DPError:
            raise
        except Exception as exc:
            raise ComputationError(
                f"{self.name}: backward failed on batch {batch.batch_idx}: {exc}"
            ) from exc

        for visitor in self.visitors:
            model.accept(visitor)
        model.zero_grad()

        self._add_feedback(output, batch)
        return value

    def report(self) -> Report:
        report = dict(super().report())
        report['visitors'] = {v.name: v.report() for v in self.visitors}
        return Report(report)

    def state_dict(self) -> Dict[str, Any]:
        return {'visitors': {v.name: v.state_dict() for v in self.visitors}}

    def load_state_dict(self, state: Dict[str, Any]) -> None:
        visitor_states = state.get('visitors', {})
        for visitor in self.visitors:
            visitor.load_state_dict(visitor_states.get(visitor.name, {}))


class Evaluator(Propagator):
    """
    Read-only propagator for validation and testing.

    Never calls ``backward`` or applies visitors; the model runs in
    evaluation mode with autograd disabled.
    """

    def _begin_epoch(self, model) -> None:
        super()._begin_epoch(model)
        model.evaluate()

    def _propagate_batch(self, model, batch: Batch) -> float:
        with torch.no_grad():
            output, _, value = self._forward(model, batch)
        self._add_feedback(output, batch)
        return value


def _describe(value) -> str:
    if isinstance(value, torch.Tensor):
        return f"a tensor of shape {tuple(value.shape)}"
    return type(value).__name__


__all__ = ['Propagator', 'Optimizer', 'Evaluator', 'Criterion']
