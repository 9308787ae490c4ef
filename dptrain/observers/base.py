"""
Observer Base
=============

Observers react to experiment events published on the Mediator.

An observer keeps a back-reference to the component it observes (its
``subject``, usually the Experiment); the subject never references its
observers. Handlers may return an intent (see ``dptrain.core.intents``)
that the Experiment applies once the publish round is over.

Author: dptrain Team
License: MIT
"""

from __future__ import annotations
from typing import Any, Optional, Sequence

from ..core.errors import ConfigurationError


class Observer:
    """
    Base class for mediator subscribers.

    Parameters:
        channels: Channel names to subscribe to
        callbacks: Method name handling each channel, aligned with
                   ``channels``

    Example:
        >>> class EpochCounter(Observer):
        ...     def __init__(self):
        ...         super().__init__(['doneEpoch'], ['on_done_epoch'])
        ...         self.count = 0
        ...     def on_done_epoch(self, report, epoch):
        ...         self.count += 1
    """

    def __init__(self, channels: Sequence[str], callbacks: Sequence[str]):
        if len(channels) != len(callbacks):
            raise ConfigurationError(
                f"{type(self).__name__}: {len(channels)} channels but "
                f"{len(callbacks)} callbacks"
            )
        for callback in callbacks:
            if not callable(getattr(self, callback, None)):
                raise ConfigurationError(
                    f"{type(self).__name__} has no callback method '{callback}'"
                )
        self.channels = list(channels)
        self.callbacks = list(callbacks)
        self.mediator = None
        self.subject: Optional[Any] = None

    @property
    def name(self) -> str:
        return type(self).__name__.lower()

    def setup(self, mediator, subject: Any = None) -> None:
        """Subscribe to every channel and remember the observed component."""
        if self.mediator is not None:
            raise ConfigurationError(f"{type(self).__name__} is already attached")
        self.mediator = mediator
        self.subject = subject
        for channel, callback in zip(self.channels, self.callbacks):
            mediator.subscribe(channel, getattr(self, callback))

    def detach(self) -> None:
        """Unsubscribe from every channel."""
        if self.mediator is None:
            return
        for channel, callback in zip(self.channels, self.callbacks):
            self.mediator.unsubscribe(channel, getattr(self, callback))
        self.mediator = None


__all__ = ['Observer']
