"""
Logging Utilities
=================

Console and file logging for experiments.

This module provides:
- TrainingLogger: timestamped console output and an optional log file
- format_time / format_number: compact human-readable formatting

Author: dptrain Team
License: MIT
"""

from __future__ import annotations
import time
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Optional, Union


class TrainingLogger:
    """
    Structured logging for experiment runs.

    Parameters:
        name: Run name (used in log filenames)
        log_dir: Directory for log files (default: ./logs)
        verbose: Print to console (default: True)
        log_to_file: Write to log file (default: False)
        timestamp: Add timestamp to log filename (default: True)

    Example:
        >>> logger = TrainingLogger("toy_experiment")
        >>> logger.info("Starting experiment")
        >>> logger.log_metrics(epoch=1, **{'validator/loss': 0.5})
        >>> logger.finalize()
    """

    def __init__(
        self,
        name: str = "experiment",
        log_dir: Union[str, Path] = "logs",
        verbose: bool = True,
        log_to_file: bool = False,
        timestamp: bool = True
    ):
        self.name = name
        self.verbose = verbose
        self.log_to_file = log_to_file

        self.log_dir = Path(log_dir)
        if log_to_file:
            self.log_dir.mkdir(exist_ok=True, parents=True)

        if timestamp:
            ts = datetime.now().strftime("%Y%m%d_%H%M%S")
            self.log_filename = self.log_dir / f"{name}_{ts}.log"
        else:
            self.log_filename = self.log_dir / f"{name}.log"

        self._start_time = time.time()

        self._file = None
        if log_to_file:
            self._file = open(self.log_filename, 'w')

    def _write(self, message: str) -> None:
        if self.verbose:
            print(message)
        if self._file:
            self._file.write(message + "\n")
            self._file.flush()

    def _stamp(self) -> str:
        return datetime.now().strftime("%H:%M:%S")

    def info(self, message: str) -> None:
        self._write(f"[{self._stamp()}] INFO: {message}")

    def warning(self, message: str) -> None:
        self._write(f"[{self._stamp()}] WARNING: {message}")

    def error(self, message: str) -> None:
        self._write(f"[{self._stamp()}] ERROR: {message}")

    def log_config(self, config: Dict[str, Any]) -> None:
        """Log configuration dictionary."""
        self._write("\n" + "=" * 60)
        self._write("CONFIGURATION")
        self._write("=" * 60)
        for key, value in config.items():
            self._write(f"  {key}: {value}")
        self._write("=" * 60 + "\n")

    def log_metrics(self, **kwargs: Any) -> None:
        """
        Log one epoch's metrics on a single line.

        Floats are formatted by key: losses with 4 decimals, accuracies
        as percentages, learning rates in scientific notation.
        """
        epoch = kwargs.get('epoch', '?')
        parts = [f"Epoch {epoch}"]
        for key, value in kwargs.items():
            if key == 'epoch':
                continue
            parts.append(f"{key}={_format_value(key, value)}")
        self._write(" | ".join(parts))

    def elapsed(self) -> float:
        return time.time() - self._start_time

    def finalize(self, summary: Optional[Dict[str, Any]] = None) -> None:
        """Print a closing summary and release the log file."""
        elapsed = self.elapsed()
        self._write("\n" + "=" * 60)
        self._write("EXPERIMENT COMPLETE")
        self._write("=" * 60)
        self._write(f"Total time: {format_time(elapsed)}")
        for key, value in (summary or {}).items():
            self._write(f"{key}: {_format_value(key, value)}")
        self._write("=" * 60)
        self.close()

    def close(self) -> None:
        if self._file:
            self._file.close()
            self._file = None

    def __del__(self):
        if hasattr(self, '_file') and self._file:
            self._file.close()


def _format_value(key: str, value: Any) -> str:
    if not isinstance(value, float):
        return str(value)
    lowered = key.lower()
    if 'acc' in lowered:
        return f"{value:.2%}"
    if 'lr' in lowered or 'learning_rate' in lowered:
        return f"{value:.2e}"
    return f"{value:.4f}"


def format_time(seconds: float) -> str:
    """Format seconds as human-readable string."""
    if seconds < 60:
        return f"{seconds:.1f}s"
    elif seconds < 3600:
        return f"{seconds / 60:.1f}min"
    return f"{seconds / 3600:.1f}h"


def format_number(n: Union[int, float]) -> str:
    """Format large numbers with K/M/B suffixes."""
    if n < 1000:
        return str(int(n))
    elif n < 1_000_000:
        return f"{n / 1000:.1f}K"
    elif n < 1_000_000_000:
        return f"{n / 1_000_000:.1f}M"
    return f"{n / 1_000_000_000:.1f}B"


__all__ = ['TrainingLogger', 'format_time', 'format_number']
