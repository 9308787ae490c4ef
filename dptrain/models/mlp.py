"""
Multilayer Perceptron Builder
=============================

Ready-made Sequential models for vector classification and regression.

Each hidden layer is one leaf Module wrapping Linear → activation →
(optional) Dropout, so visitors see one parameter group per layer.

Author: dptrain Team
License: MIT
"""

from __future__ import annotations
from typing import Sequence

import torch.nn as nn

from .model import Module, Sequential


ACTIVATIONS = {
    'relu': nn.ReLU,
    'tanh': nn.Tanh,
    'sigmoid': nn.Sigmoid,
}


def build_mlp(
    input_size: int,
    output_size: int,
    hidden_sizes: Sequence[int] = (64,),
    activation: str = 'relu',
    dropout: float = 0.0
) -> Sequential:
    """
    Build an MLP as a Sequential of leaf Modules.

    Args:
        input_size: Number of input features
        output_size: Number of outputs (classes for classification)
        hidden_sizes: Width of each hidden layer
        activation: 'relu', 'tanh' or 'sigmoid'
        dropout: Dropout probability after each hidden layer

    Returns:
        Sequential model

    Example:
        >>> model = build_mlp(20, 4, hidden_sizes=(32, 32))
        >>> len(model)
        3
    """
    if activation not in ACTIVATIONS:
        available = ', '.join(ACTIVATIONS.keys())
        raise ValueError(f"Unknown activation '{activation}'. Available: {available}")

    layers = []
    in_size = input_size
    for depth, hidden in enumerate(hidden_sizes):
        block = [nn.Linear(in_size, hidden), ACTIVATIONS[activation]()]
        if dropout > 0:
            block.append(nn.Dropout(dropout))
        layers.append(Module(nn.Sequential(*block), name=f'hidden{depth}'))
        in_size = hidden

    layers.append(Module(nn.Linear(in_size, output_size), name='output'))
    return Sequential(*layers, name='mlp')


__all__ = ['build_mlp', 'ACTIVATIONS']
