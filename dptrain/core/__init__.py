"""
dptrain - Core
==============

Experiment engine: errors, report tree, mediator, propagators,
snapshots, the experiment driver and its configuration.
"""

from .errors import (
    DPError,
    ConfigurationError,
    ReportPathError,
    ComputationError,
    ObserverError,
    ResourceError,
)
from .report import Report
from .mediator import Mediator
from .intents import RequestStop, SetLearningRate
from .propagator import Propagator, Optimizer, Evaluator
from .snapshot import SnapshotStore, FileSnapshotStore
from .experiment import Experiment, ExperimentState, BINDINGS, unique_id
from .config import ExperimentConfig, PRESETS, get_preset

__all__ = [
    # Errors
    'DPError',
    'ConfigurationError',
    'ReportPathError',
    'ComputationError',
    'ObserverError',
    'ResourceError',

    # Engine
    'Report',
    'Mediator',
    'RequestStop',
    'SetLearningRate',
    'Propagator',
    'Optimizer',
    'Evaluator',
    'SnapshotStore',
    'FileSnapshotStore',
    'Experiment',
    'ExperimentState',
    'BINDINGS',
    'unique_id',

    # Configuration
    'ExperimentConfig',
    'PRESETS',
    'get_preset',
]
