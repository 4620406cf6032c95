"""atomx: atom-based reactive state with a lazily derived dependency graph."""

from importlib.metadata import version as _version

__version__ = _version("atomx")

from atomx.atom import Atom, atom
from atomx.store import Store, create_store, get_default_store
from atomx.action import action
from atomx.exceptions import (
    AtomError,
    InvalidSelfReadError,
    NotWritableError,
    UninitializedAtomError,
)
# textual NOT auto-imported — opt-in only

__all__ = [
    "Atom",
    "atom",
    "Store",
    "create_store",
    "get_default_store",
    "action",
    "AtomError",
    "InvalidSelfReadError",
    "NotWritableError",
    "UninitializedAtomError",
]
