"""
Experiment Configuration
========================

Central configuration dataclass for an experiment.

This module provides a single configuration object that controls:
- Feature flags (enable/disable individual visitors and observers)
- Hyperparameters for each visitor
- Epoch loop, sampling, stopping and logging settings

Every optional component can be enabled independently, so ablations
only differ in flags. The ``build_*`` helpers turn a configuration into
the visitor chain and observer list an Experiment expects.

Author: dptrain Team
License: MIT
"""

from __future__ import annotations
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple, Union

import yaml

from .errors import ConfigurationError


@dataclass
class ExperimentConfig:
    """
    Unified configuration for an experiment run.

    Component Overview:
    ------------------
    - Momentum: velocity blending of gradients before the update
    - Weight Decay: L2 penalty added to weight gradients
    - Gradient Clipping: joint gradient norm cap per leaf model
    - Learn: gradient-descent step (always on)
    - Max Norm: row norm constraint on weights after the update
    - Early Stopping: patience on a report path, best-snapshot checkpoints
    - File Logger: JSON history of every epoch report
    - TensorBoard: scalar logging of every numeric report leaf

    Example:
        >>> config = ExperimentConfig(use_momentum=True, momentum=0.9)
        >>> visitors = config.build_visitors()
        >>> config = ExperimentConfig.from_yaml('experiment.yaml')
    """

    # ========================
    # Feature Flags
    # ========================
    use_momentum: bool = False
    use_weight_decay: bool = False
    use_grad_clip: bool = False
    use_max_norm: bool = False
    use_early_stopping: bool = True
    use_file_logger: bool = False
    use_tensorboard: bool = False

    # ========================
    # General Settings
    # ========================
    random_seed: int = 42
    max_epoch: int = 100
    batch_size: int = 32
    shuffle: bool = True
    verbose: bool = True
    description: str = ''

    # ========================
    # Visitors
    # ========================
    learning_rate: float = 0.1
    momentum: float = 0.9
    momentum_damping: float = 0.0
    nesterov: bool = False
    weight_decay: float = 1e-4
    grad_clip_norm: float = 1.0
    max_out_norm: float = 2.0
    max_norm_period: int = 1

    # ========================
    # Early Stopping
    # ========================
    error_report_path: Tuple[str, ...] = ('validator', 'loss')
    maximize: bool = False
    patience: int = 10

    # ========================
    # Output Locations
    # ========================
    checkpoint_dir: str = 'checkpoints'
    log_dir: str = 'logs'

    # Learning rate schedule: epoch → learning rate
    lr_schedule: Dict[int, float] = field(default_factory=dict)

    def __post_init__(self):
        self.error_report_path = tuple(self.error_report_path)
        self.lr_schedule = {int(k): float(v) for k, v in self.lr_schedule.items()}
        if self.max_epoch < 1:
            raise ConfigurationError(f"max_epoch must be >= 1, got {self.max_epoch}")
        if self.batch_size < 1:
            raise ConfigurationError(f"batch_size must be >= 1, got {self.batch_size}")
        if self.patience < 1:
            raise ConfigurationError(f"patience must be >= 1, got {self.patience}")

    def to_dict(self) -> Dict[str, Any]:
        """Convert configuration to a plain dictionary."""
        data = {f.name: getattr(self, f.name) for f in fields(self)}
        data['error_report_path'] = list(self.error_report_path)
        return data

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> 'ExperimentConfig':
        """
        Create configuration from a dictionary.

        Raises:
            ConfigurationError: On unknown keys
        """
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(d) - known)
        if unknown:
            raise ConfigurationError(f"Unknown configuration keys: {', '.join(unknown)}")
        return cls(**d)

    @classmethod
    def from_yaml(cls, path: Union[str, Path]) -> 'ExperimentConfig':
        """Load configuration from a YAML mapping."""
        with open(path) as f:
            data = yaml.safe_load(f) or {}
        if not isinstance(data, dict):
            raise ConfigurationError(f"{path} does not contain a mapping")
        return cls.from_dict(data)

    def to_yaml(self, path: Union[str, Path]) -> None:
        with open(path, 'w') as f:
            yaml.safe_dump(self.to_dict(), f, sort_keys=False)

    @classmethod
    def baseline(cls) -> 'ExperimentConfig':
        """Plain gradient descent, early stopping on validation loss."""
        return cls()

    @classmethod
    def minimal(cls) -> 'ExperimentConfig':
        """Momentum SGD with early stopping."""
        return cls(use_momentum=True)

    @classmethod
    def full(cls) -> 'ExperimentConfig':
        """Every visitor and observer enabled."""
        return cls(
            use_momentum=True,
            use_weight_decay=True,
            use_grad_clip=True,
            use_max_norm=True,
            use_early_stopping=True,
            use_file_logger=True,
            use_tensorboard=True,
        )

    @classmethod
    def classification(cls) -> 'ExperimentConfig':
        """Momentum SGD with max-norm, stopping on validation accuracy."""
        return cls(
            use_momentum=True,
            use_max_norm=True,
            error_report_path=('validator', 'feedback', 'confusion', 'accuracy'),
            maximize=True,
        )

    def get_enabled_features(self) -> List[str]:
        """Return list of enabled feature names."""
        features = []
        if self.use_momentum:
            features.append("Momentum")
        if self.use_weight_decay:
            features.append("Weight Decay")
        if self.use_grad_clip:
            features.append("Gradient Clipping")
        features.append("Learn")
        if self.use_max_norm:
            features.append("Max Norm")
        if self.use_early_stopping:
            features.append("Early Stopping")
        if self.lr_schedule:
            features.append("Learning Rate Schedule")
        if self.use_file_logger:
            features.append("File Logger")
        if self.use_tensorboard:
            features.append("TensorBoard")
        return features

    def build_visitors(self) -> list:
        """
        Build the visitor list in update order:
        momentum → weight decay → gradient clipping → learn → max norm.
        """
        from ..visitors import GradClip, Learn, MaxNorm, Momentum, WeightDecay

        visitors = []
        if self.use_momentum:
            visitors.append(Momentum(self.momentum, self.momentum_damping, self.nesterov))
        if self.use_weight_decay:
            visitors.append(WeightDecay(self.weight_decay))
        if self.use_grad_clip:
            visitors.append(GradClip(self.grad_clip_norm))
        visitors.append(Learn(self.learning_rate))
        if self.use_max_norm:
            visitors.append(MaxNorm(self.max_out_norm, self.max_norm_period))
        return visitors

    def build_sampler(self, train: bool = True):
        from ..data.sampler import Sampler, ShuffleSampler

        if train and self.shuffle:
            return ShuffleSampler(self.batch_size)
        return Sampler(self.batch_size)

    def build_observers(self, store: Optional[Any] = None) -> list:
        """
        Build the observer list: logger, then learning rate schedule,
        early stopper and file logger when enabled.
        """
        from ..observers import EarlyStopper, FileLogger, LearningRateSchedule, Logger
        from .snapshot import FileSnapshotStore

        observers = [Logger(
            verbose=self.verbose,
            log_dir=self.log_dir,
            enable_tensorboard=self.use_tensorboard,
        )]
        if self.lr_schedule:
            observers.append(LearningRateSchedule(self.lr_schedule))
        if self.use_early_stopping:
            observers.append(EarlyStopper(
                error_report_path=self.error_report_path,
                maximize=self.maximize,
                max_epochs=self.patience,
                store=store if store is not None else FileSnapshotStore(self.checkpoint_dir),
                verbose=self.verbose,
            ))
        if self.use_file_logger:
            observers.append(FileLogger(self.log_dir))
        return observers


# ========================
# Preset Configurations
# ========================

PRESETS = {
    'baseline': ExperimentConfig.baseline,
    'minimal': ExperimentConfig.minimal,
    'full': ExperimentConfig.full,
    'classification': ExperimentConfig.classification,
}


def get_preset(name: str) -> ExperimentConfig:
    """
    Get a preset configuration by name.

    Available presets:
    - 'baseline': plain gradient descent, early stopping on validation loss
    - 'minimal': momentum SGD
    - 'full': every visitor and observer enabled
    - 'classification': momentum + max-norm, stopping on validation accuracy

    Raises:
        ValueError: If preset name is not recognized
    """
    if name not in PRESETS:
        available = ', '.join(PRESETS.keys())
        raise ValueError(f"Unknown preset '{name}'. Available: {available}")
    return PRESETS[name]()


__all__ = ['ExperimentConfig', 'PRESETS', 'get_preset']
