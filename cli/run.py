#!/usr/bin/env python3
"""
dptrain - Command Line Interface
================================

Train an MLP on a synthetic classification problem with the experiment
engine.

Usage:
------
    # Plain gradient descent, early stopping on validation loss
    python -m cli.run --mode baseline --epochs 20

    # Momentum + max-norm, early stopping on validation accuracy
    python -m cli.run --mode classification --epochs 50

    # From a YAML configuration, with overrides
    python -m cli.run --config experiment.yaml --lr 0.05 --patience 3

    # Custom configuration
    python -m cli.run --mode custom --epochs 30 \\
        --use-momentum --use-max-norm \\
        --lr 0.05 --batch-size 16

Author: dptrain Team
License: MIT
"""

import argparse
from typing import List, Optional

import torch.nn as nn

from dptrain.core import (
    Evaluator,
    Experiment,
    ExperimentConfig,
    Optimizer,
    Report,
    get_preset,
)
from dptrain.data import Sampler, make_classification
from dptrain.feedback import Confusion
from dptrain.models import build_mlp, count_parameters
from dptrain.utils import TrainingLogger, format_number


def create_parser() -> argparse.ArgumentParser:
    """Create argument parser."""
    parser = argparse.ArgumentParser(
        description='dptrain experiment CLI',
        formatter_class=argparse.ArgumentDefaultsHelpFormatter
    )

    # === Configuration Source ===
    parser.add_argument('--mode', type=str, default='classification',
                        choices=['baseline', 'minimal', 'full', 'classification', 'custom'],
                        help='Configuration preset')
    parser.add_argument('--config', type=str, default=None,
                        help='YAML configuration file (overrides --mode)')

    # === Data and Model ===
    parser.add_argument('--n-samples', type=int, default=1000,
                        help='Number of synthetic examples')
    parser.add_argument('--n-features', type=int, default=20,
                        help='Number of input features')
    parser.add_argument('--n-classes', type=int, default=4,
                        help='Number of classes')
    parser.add_argument('--noise', type=float, default=0.8,
                        help='Noise around class prototypes')
    parser.add_argument('--hidden', type=int, nargs='+', default=[64],
                        help='Hidden layer sizes')
    parser.add_argument('--dropout', type=float, default=0.0,
                        help='Dropout after hidden layers')

    # === Training ===
    parser.add_argument('--epochs', type=int, default=None,
                        help='Maximum number of epochs')
    parser.add_argument('--batch-size', type=int, default=None,
                        help='Training batch size')
    parser.add_argument('--lr', type=float, default=None,
                        help='Learning rate')
    parser.add_argument('--momentum', type=float, default=None,
                        help='Momentum factor')
    parser.add_argument('--patience', type=int, default=None,
                        help='Early stopping patience')

    # === Feature Flags ===
    parser.add_argument('--use-momentum', action='store_true',
                        help='Enable momentum')
    parser.add_argument('--use-weight-decay', action='store_true',
                        help='Enable weight decay')
    parser.add_argument('--use-grad-clip', action='store_true',
                        help='Enable gradient clipping')
    parser.add_argument('--use-max-norm', action='store_true',
                        help='Enable max-norm constraint')
    parser.add_argument('--no-early-stopping', action='store_true',
                        help='Disable early stopping')
    parser.add_argument('--use-file-logger', action='store_true',
                        help='Write the report history as JSON')
    parser.add_argument('--use-tensorboard', action='store_true',
                        help='Log report scalars to TensorBoard')

    # === Output ===
    parser.add_argument('--checkpoint-dir', type=str, default=None,
                        help='Checkpoint directory')
    parser.add_argument('--log-dir', type=str, default=None,
                        help='Log directory')
    parser.add_argument('--quiet', action='store_true',
                        help='Suppress verbose output')
    parser.add_argument('--seed', type=int, default=None,
                        help='Random seed')

    return parser


def build_config(args: argparse.Namespace) -> ExperimentConfig:
    """Build ExperimentConfig from command line arguments."""

    # Start with preset or file
    if args.config is not None:
        config = ExperimentConfig.from_yaml(args.config)
    elif args.mode == 'custom':
        config = ExperimentConfig()
    else:
        config = get_preset(args.mode)

    # Flags only switch features on
    for flag in ('use_momentum', 'use_weight_decay', 'use_grad_clip',
                 'use_max_norm', 'use_file_logger', 'use_tensorboard'):
        if getattr(args, flag):
            setattr(config, flag, True)
    if args.no_early_stopping:
        config.use_early_stopping = False

    # Explicit overrides
    overrides = {
        'max_epoch': args.epochs,
        'batch_size': args.batch_size,
        'learning_rate': args.lr,
        'momentum': args.momentum,
        'patience': args.patience,
        'checkpoint_dir': args.checkpoint_dir,
        'log_dir': args.log_dir,
        'random_seed': args.seed,
    }
    for key, value in overrides.items():
        if value is not None:
            setattr(config, key, value)
    if args.quiet:
        config.verbose = False

    return config


def build_experiment(config: ExperimentConfig, args: argparse.Namespace):
    """Assemble datasource, model, propagators and observers."""
    datasource = make_classification(
        n_samples=args.n_samples,
        n_features=args.n_features,
        n_classes=args.n_classes,
        noise=args.noise,
        seed=config.random_seed,
    )
    model = build_mlp(
        datasource.feature_size(),
        len(datasource.classes()),
        hidden_sizes=args.hidden,
        dropout=args.dropout,
    )
    criterion = nn.CrossEntropyLoss()

    experiment = Experiment(
        model=model,
        optimizer=Optimizer(
            criterion,
            visitors=config.build_visitors(),
            sampler=config.build_sampler(train=True),
            feedback=Confusion(),
        ),
        validator=Evaluator(criterion, Sampler(256), Confusion()),
        tester=Evaluator(criterion, Sampler(256), Confusion()),
        observers=config.build_observers(),
        random_seed=config.random_seed,
        max_epoch=config.max_epoch,
        description=config.description,
        verbose=config.verbose,
    )
    return experiment, datasource


def main(argv: Optional[List[str]] = None) -> Report:
    """Main entry point."""
    parser = create_parser()
    args = parser.parse_args(argv)
    config = build_config(args)

    logger = TrainingLogger('cli', verbose=config.verbose)
    logger.log_config(config.to_dict())

    experiment, datasource = build_experiment(config, args)

    total, _ = count_parameters(experiment.model)
    logger.info(f"Enabled features: {', '.join(config.get_enabled_features())}")
    logger.info(f"Model parameters: {format_number(total)}")
    logger.info(f"Train/valid/test examples: "
                f"{datasource.get_set('train').size()}/"
                f"{datasource.get_set('valid').size()}/"
                f"{datasource.get_set('test').size()}")

    report = experiment.run(datasource)

    logger.info(
        f"Final test accuracy: "
        f"{report.get_path(['tester', 'feedback', 'confusion', 'accuracy']):.2%}"
    )
    return report


if __name__ == '__main__':
    main()
