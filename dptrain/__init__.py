"""
dptrain
=======

An experiment engine for iterative training and evaluation of models.

An Experiment drives propagators (an Optimizer for training, Evaluators
for validation and testing) through their datasets epoch after epoch.
The Optimizer updates the model through an ordered chain of visitors,
feedbacks accumulate epoch statistics, every epoch produces one Report
tree, and observers (early stopping, logging, schedules) react to it
through a Mediator without being wired into the loop.

Quick Start:
------------
    import torch.nn as nn
    from dptrain import (
        Experiment, Optimizer, Evaluator, ShuffleSampler, Sampler,
        Momentum, Learn, MaxNorm, Confusion, EarlyStopper, Logger,
        FileSnapshotStore, build_mlp, make_classification,
    )

    datasource = make_classification(n_features=20, n_classes=4)
    model = build_mlp(20, 4, hidden_sizes=(64,))

    experiment = Experiment(
        model=model,
        optimizer=Optimizer(
            nn.CrossEntropyLoss(),
            visitors=[Momentum(0.9), Learn(0.05), MaxNorm(2.0)],
            sampler=ShuffleSampler(batch_size=32),
        ),
        validator=Evaluator(nn.CrossEntropyLoss(), Sampler(256), Confusion()),
        observers=[
            Logger(),
            EarlyStopper(('validator', 'feedback', 'confusion', 'accuracy'),
                         maximize=True, max_epochs=5,
                         store=FileSnapshotStore('checkpoints')),
        ],
        random_seed=7,
        max_epoch=50,
    )
    report = experiment.run(datasource)

Components:
-----------
- Experiment: epoch loop, report merging, intent handling
- Mediator: synchronous publish/subscribe bus
- Optimizer / Evaluator: training and read-only propagators
- Sampler / ShuffleSampler: per-epoch batch iteration
- Momentum, Learn, WeightDecay, GradClip, MaxNorm: update visitors
- Confusion, Criteria: epoch feedback
- EarlyStopper, Logger, FileLogger, LearningRateSchedule: observers
- Report: path-addressable epoch results
- ExperimentConfig: configuration dataclass and presets

Author: dptrain Team
License: MIT
Version: 1.0.0
"""

__version__ = "1.0.0"
__author__ = "dptrain Team"

# Core API
from .core import (
    DPError,
    ConfigurationError,
    ReportPathError,
    ComputationError,
    ObserverError,
    ResourceError,
    Report,
    Mediator,
    RequestStop,
    SetLearningRate,
    Propagator,
    Optimizer,
    Evaluator,
    SnapshotStore,
    FileSnapshotStore,
    Experiment,
    ExperimentState,
    ExperimentConfig,
    PRESETS,
    get_preset,
)

# Data
from .data import DataSet, DataSource, make_classification, Batch, Sampler, ShuffleSampler

# Models
from .models import Model, Module, Sequential, build_mlp, count_parameters

# Visitors
from .visitors import Visitor, VisitorChain, Momentum, Learn, WeightDecay, GradClip, MaxNorm

# Feedback
from .feedback import Feedback, Confusion, Criteria

# Observers
from .observers import Observer, EarlyStopper, Logger, FileLogger, LearningRateSchedule

# Utilities
from .utils import TrainingLogger, format_time, format_number

__all__ = [
    # Version
    '__version__',

    # Errors
    'DPError',
    'ConfigurationError',
    'ReportPathError',
    'ComputationError',
    'ObserverError',
    'ResourceError',

    # Core API
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
    'ExperimentConfig',
    'PRESETS',
    'get_preset',

    # Data
    'DataSet',
    'DataSource',
    'make_classification',
    'Batch',
    'Sampler',
    'ShuffleSampler',

    # Models
    'Model',
    'Module',
    'Sequential',
    'build_mlp',
    'count_parameters',

    # Visitors
    'Visitor',
    'VisitorChain',
    'Momentum',
    'Learn',
    'WeightDecay',
    'GradClip',
    'MaxNorm',

    # Feedback
    'Feedback',
    'Confusion',
    'Criteria',

    # Observers
    'Observer',
    'EarlyStopper',
    'Logger',
    'FileLogger',
    'LearningRateSchedule',

    # Utilities
    'TrainingLogger',
    'format_time',
    'format_number',
]
