"""
dptrain - Models
================

Model capability surface and builders.

- Model: interface consumed by propagators and visitors
- Module: leaf wrapping a torch.nn.Module
- Sequential: ordered composite
- build_mlp: multilayer perceptron builder
"""

from .model import Model, Module, Sequential, count_parameters
from .mlp import build_mlp, ACTIVATIONS

__all__ = [
    'Model',
    'Module',
    'Sequential',
    'count_parameters',
    'build_mlp',
    'ACTIVATIONS',
]
