"""
Tests for Optimizer and Evaluator propagators.
"""

import pytest
import torch
import torch.nn as nn

from dptrain.core import ComputationError, ConfigurationError, Evaluator, Mediator, Optimizer
from dptrain.data import DataSet, Sampler
from dptrain.feedback import Confusion, Criteria
from dptrain.models import Module
from dptrain.visitors import Learn, Momentum, Visitor


class GradientRecorder(Visitor):
    """Records the gradient of every parameter it visits."""

    def __init__(self, name='gradients'):
        super().__init__(name)
        self.grads = []

    def visit(self, model):
        for _, param in model.named_parameters():
            self.grads.append(None if param.grad is None else param.grad.clone())


class TestEvaluator:
    """Read-only propagation."""

    def test_frozen_model_scenario(self, tiny_source, frozen_model, output_sum):
        """Identity model, batch size 2, two epochs give the same totals."""
        evaluator = Evaluator(nn.MSELoss(), Sampler(batch_size=2), output_sum)
        dataset = tiny_source.get_set('valid')

        first = evaluator.propagate(frozen_model, dataset, 1)
        second = evaluator.propagate(frozen_model, dataset, 2)

        assert first['feedback']['outputsum']['total'] == pytest.approx(10.0)
        assert second['feedback']['outputsum']['total'] == pytest.approx(10.0)
        assert first['feedback']['outputsum']['n_samples'] == 4
        assert first['n_batches'] == 2
        assert first['loss'] == pytest.approx(7.5)
        assert first == second

    def test_idempotent_on_trainable_model(self, regression_source, linear_model):
        evaluator = Evaluator(nn.MSELoss(), Sampler(batch_size=5), Criteria({'l1': nn.L1Loss()}))
        dataset = regression_source.get_set('valid')
        before = [p.clone() for p in linear_model.parameters()]

        first = evaluator.propagate(linear_model, dataset, 1)
        second = evaluator.propagate(linear_model, dataset, 2)

        assert first == second
        for old, new in zip(before, linear_model.parameters()):
            assert torch.equal(old, new)
        assert not linear_model.is_training

    def test_partial_batches_weighted(self, frozen_model, tiny_source):
        """Loss is the per-sample mean even with an uneven final batch."""
        evaluator = Evaluator(nn.MSELoss(), Sampler(batch_size=3))
        report = evaluator.propagate(frozen_model, tiny_source.get_set('valid'), 1)

        assert report['loss'] == pytest.approx((1 + 4 + 9 + 16) / 4)
        assert 'feedback' not in report

    def test_binding_name_mismatch(self):
        evaluator = Evaluator(nn.MSELoss(), name='valid')
        with pytest.raises(ConfigurationError):
            evaluator.setup(mediator=Mediator(), random_seed=0, name='validator')

    def test_matching_name_accepted(self):
        evaluator = Evaluator(nn.MSELoss(), name='validator')
        evaluator.setup(mediator=Mediator(), random_seed=0, name='validator')
        assert evaluator.name == 'validator'

    def test_done_batch_published(self, frozen_model, tiny_source):
        mediator = Mediator()
        seen = []
        mediator.subscribe('doneBatch', lambda name, idx, loss: seen.append((name, idx)))
        evaluator = Evaluator(nn.MSELoss(), Sampler(batch_size=2))
        evaluator.setup(mediator=mediator, random_seed=0, name='validator')
        evaluator.propagate(frozen_model, tiny_source.get_set('valid'), 1)

        assert seen == [('validator', 0), ('validator', 1)]


class TestOptimizer:
    """Training propagation."""

    def test_reduces_loss(self, regression_source, linear_model):
        optimizer = Optimizer(nn.MSELoss(), [Learn(0.5)], sampler=Sampler(batch_size=4))
        dataset = regression_source.get_set('train')

        losses = [optimizer.propagate(linear_model, dataset, epoch)['loss'] for epoch in range(1, 11)]

        assert losses[-1] < losses[0]

    def test_gradients_cleared_after_batch(self, regression_source, linear_model):
        optimizer = Optimizer(nn.MSELoss(), [Learn(0.1)], sampler=Sampler(batch_size=8))
        optimizer.propagate(linear_model, regression_source.get_set('train'), 1)

        assert all(grad is None for grad in linear_model.gradients())

    def test_visitors_see_fresh_gradients(self, regression_source, linear_model):
        recorder = GradientRecorder()
        optimizer = Optimizer(nn.MSELoss(), [recorder, Learn(0.1)], sampler=Sampler(batch_size=8))
        optimizer.propagate(linear_model, regression_source.get_set('train'), 1)

        # two batches, weight and bias each
        assert len(recorder.grads) == 4
        assert all(grad is not None for grad in recorder.grads)

    def test_visitor_order_preserved(self):
        visitors = [Momentum(0.9), Learn(0.1)]
        optimizer = Optimizer(nn.MSELoss(), visitors)

        assert optimizer.visitors == visitors
        assert optimizer.find_visitor(Learn) is visitors[1]

    def test_report(self, regression_source, linear_model):
        optimizer = Optimizer(
            nn.MSELoss(), [Momentum(0.9), Learn(0.1)],
            sampler=Sampler(batch_size=4),
            feedback=Criteria({'l1': nn.L1Loss()}),
        )
        report = optimizer.propagate(linear_model, regression_source.get_set('train'), 1)

        assert report['n_samples'] == 16
        assert report['visitors']['learn']['learning_rate'] == 0.1
        assert 'momentum' in report['visitors']
        assert report['feedback']['criteria']['n_samples'] == 16

    def test_requires_visitors(self):
        with pytest.raises(ConfigurationError):
            Optimizer(nn.MSELoss(), [])

    def test_state_dict_roundtrip(self, regression_source, linear_model):
        momentum = Momentum(0.9)
        optimizer = Optimizer(nn.MSELoss(), [momentum, Learn(0.1)], sampler=Sampler(batch_size=16))
        optimizer.propagate(linear_model, regression_source.get_set('train'), 1)
        state = optimizer.state_dict()

        fresh = Momentum(0.9)
        Optimizer(nn.MSELoss(), [fresh, Learn(0.1)]).load_state_dict(state)

        assert torch.equal(fresh.velocity('weight'), momentum.velocity('weight'))


class TestFailures:
    """Numeric failures abort propagation."""

    def test_raising_criterion(self, frozen_model, tiny_source):
        def broken(output, target):
            raise RuntimeError("shape mismatch")

        evaluator = Evaluator(broken, Sampler(batch_size=2))
        with pytest.raises(ComputationError) as info:
            evaluator.propagate(frozen_model, tiny_source.get_set('valid'), 1)
        assert isinstance(info.value.__cause__, RuntimeError)

    def test_nan_loss(self, regression_source, linear_model):
        def nan_loss(output, target):
            return (output - target).pow(2).mean() * float('nan')

        optimizer = Optimizer(nan_loss, [Learn(0.1)], sampler=Sampler(batch_size=4))
        before = [p.clone() for p in linear_model.parameters()]

        with pytest.raises(ComputationError):
            optimizer.propagate(linear_model, regression_source.get_set('train'), 1)
        for old, new in zip(before, linear_model.parameters()):
            assert torch.equal(old, new)

    def test_non_scalar_loss(self, linear_model, tiny_source):
        """A per-sample loss is rejected instead of averaged silently."""
        evaluator = Evaluator(nn.MSELoss(reduction='none'), Sampler(batch_size=2))
        with pytest.raises(ComputationError):
            evaluator.propagate(linear_model, tiny_source.get_set('valid'), 1)

    def test_non_tensor_loss(self, frozen_model, tiny_source):
        evaluator = Evaluator(lambda output, target: 'loss', Sampler(batch_size=2))
        with pytest.raises(ComputationError):
            evaluator.propagate(frozen_model, tiny_source.get_set('valid'), 1)

    def test_feedback_failure(self):
        """An out-of-range class in a later batch fails the epoch cleanly."""
        inputs = torch.zeros(4, 2)
        targets = torch.tensor([0, 1, 0, 3])
        dataset = DataSet(inputs, targets, 'valid')
        model = Module(nn.Linear(2, 2))
        evaluator = Evaluator(nn.CrossEntropyLoss(ignore_index=3), Sampler(batch_size=2), Confusion())

        with pytest.raises(ComputationError) as info:
            evaluator.propagate(model, dataset, 1)
        assert isinstance(info.value.__cause__, IndexError)

    def test_backward_on_frozen_model(self, frozen_model, tiny_source):
        optimizer = Optimizer(nn.MSELoss(), [Learn(0.1)], sampler=Sampler(batch_size=2))
        with pytest.raises(ComputationError):
            optimizer.propagate(frozen_model, tiny_source.get_set('train'), 1)
