"""Atom descriptors — immutable records identifying one piece of state.

A descriptor holds no state. It only says how a value is produced (``read``),
how writes are applied (``write``) and, optionally, what the value starts as
(``initial_value``). Stores attach the runtime state, keyed by descriptor identity.

Shapes:
- primitive:        atom(0)              read = get(self), write = set(self, v)
- read-only:        atom(lambda get: ...)
- writable derived: atom(read_fn, write_fn)
- write-only:       atom(None, write_fn)
"""

from __future__ import annotations

from typing import Any, Callable, Generic, TypeVar

T = TypeVar("T")

Getter = Callable[["Atom[Any]"], Any]
Setter = Callable[..., Any]
Read = Callable[[Getter], T]
Write = Callable[..., Any]

_NO_INITIAL = object()


class Atom(Generic[T]):
    """Identity-keyed descriptor of reactive state."""

    __slots__ = ("read", "write", "initial_value", "label", "__weakref__")

    def __init__(
        self,
        read: Read[T] | None = None,
        write: Write | None = None,
        *,
        initial_value: Any = _NO_INITIAL,
        label: str | None = None,
    ) -> None:
        primitive = read is None
        if primitive and initial_value is _NO_INITIAL:
            initial_value = None
        object.__setattr__(self, "initial_value", initial_value)
        object.__setattr__(self, "label", label)
        object.__setattr__(self, "read", self._read_self if primitive else read)
        object.__setattr__(self, "write", self._write_self if primitive and write is None else write)

    @property
    def has_initial_value(self) -> bool:
        return self.initial_value is not _NO_INITIAL

    @property
    def is_primitive(self) -> bool:
        return self.read == self._read_self

    @property
    def is_writable(self) -> bool:
        return self.write is not None

    def _read_self(self, get: Getter) -> T:
        return get(self)

    def _write_self(self, get: Getter, set: Setter, value: Any) -> None:
        # Callables are updaters: they receive the current value.
        if callable(value):
            value = value(get(self))
        set(self, value)

    def __setattr__(self, name: str, value: Any) -> None:
        raise AttributeError(f"{type(self).__name__} is immutable")

    def __repr__(self) -> str:
        name = self.label or f"atom{id(self):x}"
        if self.is_primitive:
            return f"Atom({name}, initial={self.initial_value!r})"
        kind = "writable" if self.is_writable else "read-only"
        return f"Atom({name}, {kind})"


def atom(
    read: Any = _NO_INITIAL,
    write: Write | None = None,
    *,
    initial: Any = _NO_INITIAL,
    label: str | None = None,
) -> Any:
    """Create an atom, dispatching on the shape of the arguments.

    Usage:
        count = atom(0)
        double = atom(lambda get: get(count) * 2)
        half = atom(
            lambda get: get(count) / 2,
            lambda get, set, value: set(count, value * 2),
        )

        @atom
        def total(get):
            return get(count) + get(double)

    ``atom(write=fn)`` returns a decorator, for writable derived atoms
    declared with ``@``. ``initial=`` gives a derived atom an initial value,
    which lets its read and write address the atom itself.
    """
    if read is _NO_INITIAL:
        if write is not None:
            return lambda fn: Atom(fn, write, initial_value=initial, label=label or fn.__name__)
        return Atom(initial_value=None if initial is _NO_INITIAL else initial, label=label)
    if read is None and write is not None:
        return Atom(_read_nothing, write, initial_value=initial, label=label)
    if callable(read):
        return Atom(read, write, initial_value=initial, label=label or _fn_label(read))
    if write is not None:
        raise TypeError("a primitive atom takes no write function")
    return Atom(initial_value=read, label=label)


def _read_nothing(get: Getter) -> None:
    return None


def _fn_label(fn: Callable) -> str | None:
    name = getattr(fn, "__name__", None)
    return None if name == "<lambda>" else name
