"""Actions — functions whose writes notify listeners once, at the end.

An action runs inside ``store.transaction()``: every write inside it is applied
and propagated immediately, but listeners only fire after the outermost action
or transaction returns. This prevents glitchy intermediate notifications where
some atoms have been written and others haven't yet.
"""

from __future__ import annotations

import functools
from typing import TYPE_CHECKING, Callable, ParamSpec, TypeVar

if TYPE_CHECKING:
    from atomx.store import Store

P = ParamSpec("P")
R = TypeVar("R")


def action(store: Store) -> Callable[[Callable[P, R]], Callable[P, R]]:
    """Decorator factory: batch all writes to ``store`` made inside fn.

    Usage:
        a = atom(0)
        b = atom(0)

        @action(store)
        def swap():
            x, y = store.get(a), store.get(b)
            store.set(a, y)
            store.set(b, x)
            # subscribers see both changes at once, not one at a time
    """

    def decorator(fn: Callable[P, R]) -> Callable[P, R]:
        @functools.wraps(fn)
        def wrapper(*args: P.args, **kwargs: P.kwargs) -> R:
            with store.transaction():
                return fn(*args, **kwargs)

        return wrapper

    return decorator
