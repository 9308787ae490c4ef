"""
dptrain - Data
==============

Dataset collaborators and batch samplers.
"""

from .dataset import DataSet, DataSource, make_classification, SETS
from .sampler import Batch, Sampler, ShuffleSampler

__all__ = [
    'DataSet',
    'DataSource',
    'make_classification',
    'SETS',
    'Batch',
    'Sampler',
    'ShuffleSampler',
]
