"""Per-atom runtime records — plain structures a store attaches to each atom.

Descriptors stay immutable; everything that changes while a store runs lives
here. Separating data from behavior keeps the store's algorithms free to walk
the graph without touching the atoms themselves.
"""

from __future__ import annotations

import math
from typing import Any, Callable

from atomx.exceptions import UninitializedAtomError

UNSET: Any = object()

# Immutable scalars compare by value; everything else by identity.
_SCALARS = frozenset({int, float, complex, str, bytes, bool, type(None)})


def same_value(a: object, b: object) -> bool:
    """Identity comparison, widened to equality for immutable scalars."""
    if a is b:
        return True
    kind = type(a)
    if kind is not type(b) or kind not in _SCALARS:
        return False
    if kind is float and a != a and b != b:  # NaN is the same as NaN
        return True
    if kind is float and a == 0.0 and b == 0.0:  # -0.0 differs from 0.0
        return math.copysign(1.0, a) == math.copysign(1.0, b)
    return a == b


class Mounted:
    """Edges and listeners of an atom that belongs to the observed subgraph.

    All three are insertion-ordered dicts used as sets, so walks over the
    graph and listener calls happen in a reproducible order.
    """

    __slots__ = ("listeners", "dependencies", "dependents")

    def __init__(self, dependencies) -> None:
        self.listeners: dict[Callable[[], None], None] = {}
        self.dependencies: dict = dict.fromkeys(dependencies)
        self.dependents: dict = {}


class AtomState:
    """Cached value or error, epoch and last-read dependencies of one atom."""

    __slots__ = ("dependencies", "epoch", "value", "error", "mounted")

    def __init__(self) -> None:
        # atom -> epoch observed during the last evaluation, in read order
        self.dependencies: dict = {}
        self.epoch = 0
        self.value: Any = UNSET
        self.error: BaseException | None = None
        self.mounted: Mounted | None = None

    @property
    def initialized(self) -> bool:
        return self.value is not UNSET or self.error is not None

    def set_value(self, value: Any) -> None:
        previous = self.value
        self.error = None
        self.value = value
        if previous is UNSET or not same_value(previous, value):
            self.epoch += 1

    def set_error(self, error: BaseException) -> None:
        self.value = UNSET
        self.error = error
        self.epoch += 1

    def unwrap(self) -> Any:
        """Return the value, or raise the stored error."""
        if self.error is not None:
            raise self.error
        if self.value is UNSET:
            raise UninitializedAtomError("atom state read before initialization")
        return self.value

    def __repr__(self) -> str:
        if self.error is not None:
            state = f"error={self.error!r}"
        elif self.value is UNSET:
            state = "uninitialized"
        else:
            state = f"value={self.value!r}"
        mounted = ", mounted" if self.mounted is not None else ""
        return f"AtomState(epoch={self.epoch}, {state}{mounted})"
