"""
Mediator
========

In-process publish/subscribe bus connecting the experiment loop to its
observers.

Channels are plain names and come into existence on first use. Delivery
is synchronous and follows subscription order: ``publish`` returns only
after every handler has returned. Each handler's return value is
collected, which is how observers hand intents (e.g. ``RequestStop``)
back to the publisher.

Dispatch runs over a snapshot of the subscriber list, so a handler may
unsubscribe itself (or publish again) from inside a dispatch without
another handler being skipped or invoked twice. A handler removed by an
earlier handler of the same round is not invoked.

Errors are not isolated. Engine errors propagate unchanged; anything
else is wrapped in ObserverError and chained to the original.

Author: dptrain Team
License: MIT
"""

from __future__ import annotations
from collections import OrderedDict
from typing import Any, Callable, Dict, List

from .errors import DPError, ObserverError


Handler = Callable[..., Any]


class Mediator:
    """
    Named-channel event bus.

    Example:
        >>> mediator = Mediator()
        >>> mediator.subscribe("doneEpoch", lambda report, epoch: print(epoch))
        >>> mediator.publish("doneEpoch", report, 3)
    """

    def __init__(self):
        self._channels: Dict[str, List[Handler]] = OrderedDict()

    def subscribe(self, channel: str, handler: Handler) -> None:
        """Append ``handler`` to ``channel``. Subscribing twice is a no-op."""
        if not callable(handler):
            raise TypeError(f"Handler for channel {channel!r} is not callable")
        handlers = self._channels.setdefault(channel, [])
        if handler not in handlers:
            handlers.append(handler)

    def unsubscribe(self, channel: str, handler: Handler) -> bool:
        """Remove ``handler`` from ``channel``. Returns False if it was absent."""
        handlers = self._channels.get(channel)
        if not handlers or handler not in handlers:
            return False
        handlers.remove(handler)
        return True

    def publish(self, channel: str, *args: Any) -> List[Any]:
        """
        Deliver ``args`` to every handler of ``channel``.

        Returns:
            Non-None handler return values, in delivery order
        """
        handlers = self._channels.get(channel)
        if not handlers:
            return []

        results = []
        for handler in tuple(handlers):
            if handler not in self._channels[channel]:
                continue
            try:
                result = handler(*args)
            except DPError:
                raise
            except Exception as exc:
                raise ObserverError(
                    f"Handler {_handler_name(handler)} failed on "
                    f"channel {channel!r}: {exc}"
                ) from exc
            if result is not None:
                results.append(result)
        return results

    def subscribers(self, channel: str) -> List[Handler]:
        """Return a copy of the handlers subscribed to ``channel``."""
        return list(self._channels.get(channel, ()))

    def channels(self) -> List[str]:
        return list(self._channels.keys())


def _handler_name(handler: Handler) -> str:
    owner = getattr(handler, '__self__', None)
    name = getattr(handler, '__name__', repr(handler))
    if owner is not None:
        return f"{type(owner).__name__}.{name}"
    return name


__all__ = ['Mediator']
