"""
Visitor Base
============

A visitor is one named mutation step applied to a model's parameters
and gradient buffers. The Optimizer applies its visitors strictly in
list order after every backward pass; each ``model.accept(visitor)``
call walks the leaves of the model in their fixed order and hands each
one to ``visit``.

The order is part of the training rule. Momentum blending has to run
before the Learn step, and norm constraints after it.

Author: dptrain Team
License: MIT
"""

from __future__ import annotations
from typing import Any, Dict, List, Optional, Sequence

from ..core.errors import ConfigurationError


class Visitor:
    """
    Base class for parameter/gradient update steps.

    Subclasses implement ``visit(model)`` for a leaf model, and override
    ``state_dict``/``load_state_dict`` when they carry cross-epoch state.
    """

    def __init__(self, name: Optional[str] = None):
        self.name = name or type(self).__name__.lower()

    def visit(self, model) -> None:
        raise NotImplementedError

    def report(self) -> Dict[str, Any]:
        return {}

    def state_dict(self) -> Dict[str, Any]:
        return {}

    def load_state_dict(self, state: Dict[str, Any]) -> None:
        pass

    def __repr__(self) -> str:
        return f"{type(self).__name__}(name={self.name!r})"


class VisitorChain(Visitor):
    """
    Ordered composition of visitors, usable as a single visitor.

    Each leaf receives every visitor of the chain, in order, before the
    next leaf is visited.

    Example:
        >>> chain = VisitorChain([Momentum(0.9), Learn(0.1), MaxNorm(2.0)])
        >>> model.accept(chain)
    """

    def __init__(self, visitors: Sequence[Visitor], name: str = 'visitor'):
        super().__init__(name)
        self.visitors: List[Visitor] = list(visitors)
        check_unique_names(self.visitors)

    def visit(self, model) -> None:
        for visitor in self.visitors:
            visitor.visit(model)

    def report(self) -> Dict[str, Any]:
        return {visitor.name: visitor.report() for visitor in self.visitors}

    def state_dict(self) -> Dict[str, Any]:
        return {visitor.name: visitor.state_dict() for visitor in self.visitors}

    def load_state_dict(self, state: Dict[str, Any]) -> None:
        for visitor in self.visitors:
            visitor.load_state_dict(state.get(visitor.name, {}))

    def find(self, visitor_type: type) -> Optional[Visitor]:
        """Return the first visitor (searched depth-first) of ``visitor_type``."""
        return find_visitor(self.visitors, visitor_type)


def check_unique_names(visitors: Sequence[Visitor]) -> None:
    seen = set()
    for visitor in visitors:
        if visitor.name in seen:
            raise ConfigurationError(
                f"Duplicate visitor name '{visitor.name}'; give each visitor a distinct name"
            )
        seen.add(visitor.name)


def find_visitor(visitors: Sequence[Visitor], visitor_type: type) -> Optional[Visitor]:
    for visitor in visitors:
        if isinstance(visitor, visitor_type):
            return visitor
        if isinstance(visitor, VisitorChain):
            found = visitor.find(visitor_type)
            if found is not None:
                return found
    return None


__all__ = ['Visitor', 'VisitorChain', 'check_unique_names', 'find_visitor']
