"""
Report Tree
===========

Hierarchical, path-addressable snapshot of one epoch's results.

Every node maps string keys to a scalar (int/float), a string, or a
nested Report. Components contribute one subtree each, keyed by their
own name, so a fixed experiment configuration yields the same key set
every epoch and a path such as::

    ('validator', 'feedback', 'confusion', 'accuracy')

stays valid for the whole run.

Values are normalized at construction: plain dicts become Report nodes,
0-dim tensors and numpy scalars become Python numbers. Anything else is
rejected, which keeps the tree serializable and comparable.

Author: dptrain Team
License: MIT
"""

from __future__ import annotations
from collections.abc import Mapping
from typing import Any, Dict, Iterator, Optional, Sequence, Set, Tuple, Union

import numpy as np
import torch

from .errors import ReportPathError


Scalar = Union[int, float]
Value = Union[Scalar, str, 'Report']


def _normalize(key: str, value: Any) -> Value:
    if isinstance(value, Report):
        return value
    if isinstance(value, Mapping):
        return Report(value)
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, (int, float, str)):
        return value
    if isinstance(value, torch.Tensor) and value.numel() == 1:
        return value.item()
    if isinstance(value, np.generic):
        return value.item()
    raise TypeError(
        f"Report value for key {key!r} must be a number, string or mapping, "
        f"got {type(value).__name__}"
    )


class Report(Mapping):
    """
    Immutable report node.

    Example:
        >>> report = Report({'validator': {'loss': 0.4, 'feedback': {
        ...     'confusion': {'accuracy': 0.9}}}})
        >>> report.get_path(['validator', 'feedback', 'confusion', 'accuracy'])
        0.9
    """

    __slots__ = ('_data',)

    def __init__(self, data: Optional[Mapping] = None, **kwargs: Any):
        items: Dict[str, Value] = {}
        for source in (data or {}, kwargs):
            for key, value in source.items():
                if not isinstance(key, str):
                    raise TypeError(f"Report keys must be strings, got {key!r}")
                items[key] = _normalize(key, value)
        self._data = items

    def __getitem__(self, key: str) -> Value:
        return self._data[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._data)

    def __len__(self) -> int:
        return len(self._data)

    def __repr__(self) -> str:
        return f"Report({self._data!r})"

    def get_path(self, path: Sequence[str]) -> Value:
        """
        Resolve an ordered key path.

        Raises:
            ReportPathError: If any key along the path is absent, or the
                path descends into a leaf value
        """
        node: Value = self
        for key in path:
            if not isinstance(node, Report) or key not in node:
                raise ReportPathError(path, key)
            node = node[key]
        return node

    def has_path(self, path: Sequence[str]) -> bool:
        try:
            self.get_path(path)
        except ReportPathError:
            return False
        return True

    def key_paths(self) -> Set[Tuple[str, ...]]:
        """Return the path of every leaf value in the tree."""
        return set(self.flatten(sep=None).keys())

    def flatten(self, sep: Optional[str] = '/') -> Dict[Any, Value]:
        """
        Flatten leaf values into one mapping.

        Keys are ``sep``-joined paths, or tuples when ``sep`` is None.
        """
        flat: Dict[Any, Value] = {}
        stack = [((), self)]
        while stack:
            prefix, node = stack.pop()
            for key, value in node.items():
                path = prefix + (key,)
                if isinstance(value, Report):
                    stack.append((path, value))
                else:
                    flat[path if sep is None else sep.join(path)] = value
        return flat

    def to_dict(self) -> Dict[str, Any]:
        """Convert to nested plain dicts (JSON serializable)."""
        return {
            key: value.to_dict() if isinstance(value, Report) else value
            for key, value in self._data.items()
        }


__all__ = ['Report']
