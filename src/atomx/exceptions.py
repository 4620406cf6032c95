"""Exception hierarchy for atomx."""

from __future__ import annotations


class AtomError(Exception):
    """Base exception for errors raised by the store itself."""


class InvalidSelfReadError(AtomError):
    """An atom read itself but has no initial value to seed the read."""

    def __init__(self, atom) -> None:
        self.atom = atom
        super().__init__(f"{atom!r} reads itself but has no initial value")


class NotWritableError(AtomError):
    """An atom was the target of a write it cannot accept."""

    def __init__(self, atom, reason: str = "has no initial value") -> None:
        self.atom = atom
        super().__init__(f"{atom!r} is not writable: {reason}")


class UninitializedAtomError(AtomError):
    """A state record was read before any value or error was stored."""
