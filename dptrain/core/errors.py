"""
Error Taxonomy
==============

Exceptions raised by the experiment engine.

All failures are fatal at this layer: nothing is retried and nothing is
converted into a report entry. The hierarchy exists so callers can tell
a misconfigured experiment from a numerically failing one.

- ConfigurationError: invalid wiring (missing dataset, bad report path)
- ComputationError: failure inside forward/backward/criterion
- ObserverError: an observer handler raised while handling a publish
- ResourceError: a snapshot could not be persisted

Author: dptrain Team
License: MIT
"""

from __future__ import annotations
from typing import Sequence


class DPError(Exception):
    """Base class for all engine errors."""


class ConfigurationError(DPError):
    """Raised when an experiment is wired incorrectly."""


class ReportPathError(ConfigurationError, KeyError):
    """Raised when a report path does not resolve to a value."""

    def __init__(self, path: Sequence[str], missing: str):
        self.path = tuple(path)
        self.missing = missing
        super().__init__(
            f"Report path {list(self.path)} is invalid: no key {missing!r}"
        )

    def __str__(self) -> str:
        # KeyError would otherwise repr() the message
        return self.args[0]


class ComputationError(DPError):
    """Raised when a forward, backward or criterion step fails."""


class ObserverError(DPError):
    """Raised when an observer handler fails during a publish."""


class ResourceError(DPError):
    """Raised when a snapshot cannot be written or read."""


__all__ = [
    'DPError',
    'ConfigurationError',
    'ReportPathError',
    'ComputationError',
    'ObserverError',
    'ResourceError',
]
