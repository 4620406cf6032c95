"""Store — holds atom state, derives values lazily, notifies in dependency order.

Reads are pull-based: ``get`` walks the dependency graph top-down and reuses a
cached value whenever every dependency still has the epoch recorded at the last
evaluation. Writes are push-based, but only over the mounted subgraph (atoms
somebody subscribed to, plus everything they read): the written atom's mounted
dependents are recomputed in topological order and the ones that actually
changed have their listeners flushed once.

Batching: every ``set`` runs inside a batch. Listener notification is deferred
until the outermost batch exits, and writes made by listeners are drained by
the same flush loop.
"""

from __future__ import annotations

import logging
import threading
import weakref
from contextlib import contextmanager
from typing import Any, Callable, Iterator, TypeVar

from atomx._state import AtomState, Mounted
from atomx.atom import Atom
from atomx.exceptions import InvalidSelfReadError, NotWritableError

logger = logging.getLogger(__name__)

T = TypeVar("T")

Listener = Callable[[], None]
Unsubscribe = Callable[[], None]


class Store:
    """Reactive atom store. Single-threaded; see ``set_scheduler`` for threads."""

    def __init__(self) -> None:
        self._states: weakref.WeakKeyDictionary[Atom, AtomState] = weakref.WeakKeyDictionary()
        # Ordered set of atoms whose epoch changed, awaiting notification.
        self._pending: dict[Atom, None] = {}
        self._batch_depth = 0
        self._scheduler: Callable[[Callable[[], None]], Any] | None = None
        self._scheduler_thread: threading.Thread | None = None

    # ─── Public API ─────────────────────────────────────────────────────────

    def get(self, atom: Atom[T]) -> T:
        """Read the value of an atom, raising its stored error if it has one."""
        return self._read(atom).unwrap()

    def set(self, atom: Atom, *args: Any) -> Any:
        """Run the atom's write and flush listeners before returning.

        Returns whatever the atom's write returns. When a scheduler is set and
        this is called from another thread, the write is handed to the
        scheduler and ``None`` is returned.
        """
        if self._scheduler is not None and threading.current_thread() != self._scheduler_thread:
            self._scheduler(lambda: self._set_direct(atom, *args))
            return None
        return self._set_direct(atom, *args)

    def subscribe(self, atom: Atom, listener: Listener) -> Unsubscribe:
        """Mount the atom and call ``listener`` after each change of its value.

        The listener is never called during ``subscribe`` itself. Returns a
        function that removes the listener and unmounts what is no longer needed.
        """
        mounted = self._mount(atom)
        mounted.listeners[listener] = None

        def unsubscribe() -> None:
            mounted.listeners.pop(listener, None)
            self._unmount(atom)

        return unsubscribe

    @contextmanager
    def transaction(self) -> Iterator[None]:
        """Defer listener notification until the outermost block exits.

        Usage:
            with store.transaction():
                store.set(first, "Bob")
                store.set(last, "Jones")
                # listeners fire here, once each
        """
        self._begin_batch()
        try:
            yield
        finally:
            self._end_batch()

    def set_scheduler(self, scheduler: Callable[[Callable[[], None]], Any] | None) -> None:
        """Marshal writes from other threads through ``scheduler``.

        Call once from the thread that owns the store:
            store.set_scheduler(app.call_from_thread)

        Writes from the owning thread remain synchronous. ``None`` disables it.
        """
        self._scheduler = scheduler
        self._scheduler_thread = threading.current_thread() if scheduler is not None else None

    def is_mounted(self, atom: Atom) -> bool:
        state = self._states.get(atom)
        return state is not None and state.mounted is not None

    @property
    def pending_count(self) -> int:
        """Number of changed atoms waiting for notification."""
        return len(self._pending)

    # ─── Lazy evaluation ────────────────────────────────────────────────────

    def _state(self, atom: Atom) -> AtomState:
        state = self._states.get(atom)
        if state is None:
            state = self._states[atom] = AtomState()
        return state

    def _read(self, atom: Atom, force: Callable[[Atom], bool] | None = None) -> AtomState:
        """Bring the atom's value up to date with its dependencies' epochs."""
        state = self._state(atom)
        if state.initialized and not (force is not None and force(atom)):
            # Mounted atoms are kept fresh by propagation.
            if state.mounted is not None:
                return state
            if all(
                self._read(dep, force).epoch == epoch
                for dep, epoch in list(state.dependencies.items())
            ):
                return state

        state.dependencies.clear()

        def getter(a: Atom) -> Any:
            if a is atom:
                if not state.initialized:
                    if not a.has_initial_value:
                        raise InvalidSelfReadError(a)
                    state.set_value(a.initial_value)
                return state.unwrap()
            dep_state = self._read(a, force)
            state.dependencies[a] = dep_state.epoch
            return dep_state.unwrap()

        try:
            value = atom.read(getter)
        except Exception as exc:
            state.set_error(exc)
        else:
            state.set_value(value)
        return state

    # ─── Writes ─────────────────────────────────────────────────────────────

    def _set_direct(self, atom: Atom, *args: Any) -> Any:
        self._begin_batch()
        try:
            return self._write(atom, *args)
        finally:
            self._end_batch()

    def _write(self, atom: Atom, *args: Any) -> Any:
        if atom.write is None:
            raise NotWritableError(atom, "it is read-only")

        def setter(a: Atom, *values: Any) -> Any:
            if a is not atom:
                return self._write(a, *values)
            if not a.has_initial_value:
                raise NotWritableError(a)
            state = self._state(a)
            previous_epoch = state.epoch
            state.set_value(values[0])
            self._mount_dependencies(a, state)
            if state.epoch != previous_epoch:
                logger.debug("%r changed to %r", a, state.value)
                self._pending[a] = None
                self._recompute_dependents(a)
            return None

        return atom.write(self.get, setter, *args)

    # ─── Propagation ────────────────────────────────────────────────────────

    def _recompute_dependents(self, atom: Atom) -> None:
        """Re-read mounted dependents of ``atom`` in topological order."""
        topsorted: list[tuple[Atom, int]] = []
        marked: set[Atom] = set()

        def visit(node: Atom) -> None:
            if node in marked:
                return
            marked.add(node)
            mounted = self._state(node).mounted
            if mounted is not None:
                for dependent in list(mounted.dependents):
                    if dependent is not node:
                        visit(dependent)
            topsorted.append((node, self._state(node).epoch))

        visit(atom)
        changed = {atom}
        # Compare against the epoch seen during the walk: a node read early
        # through a new edge has already been recomputed by the time it is reached.
        for node, previous_epoch in reversed(topsorted):
            state = self._state(node)
            if any(dep in changed for dep in state.dependencies if dep is not node):
                self._read(node, marked.__contains__)
                self._mount_dependencies(node, state)
                if state.epoch != previous_epoch:
                    self._pending[node] = None
                    changed.add(node)
            marked.discard(node)

    def _begin_batch(self) -> None:
        self._batch_depth += 1

    def _end_batch(self) -> None:
        self._batch_depth -= 1
        if self._batch_depth == 0:
            self._flush_pending()

    def _flush_pending(self) -> None:
        """Notify listeners of pending atoms. Handles writes made during flush."""
        # Writes from listeners only enqueue; this loop drains them.
        self._batch_depth += 1
        try:
            while self._pending:
                batch = list(self._pending)
                self._pending.clear()
                logger.debug("flushing %d changed atom(s)", len(batch))
                for atom in batch:
                    mounted = self._state(atom).mounted
                    if mounted is None:
                        continue
                    for listener in list(mounted.listeners):
                        if listener in mounted.listeners:
                            listener()
        finally:
            self._batch_depth -= 1

    # ─── Mounting ───────────────────────────────────────────────────────────

    def _mount(self, atom: Atom) -> Mounted:
        state = self._state(atom)
        if state.mounted is None:
            self._read(atom)
            for dep in state.dependencies:
                self._mount(dep).dependents[atom] = None
            state.mounted = Mounted(state.dependencies)
            logger.debug("mounted %r", atom)
        return state.mounted

    def _unmount(self, atom: Atom) -> Mounted | None:
        state = self._state(atom)
        mounted = state.mounted
        if mounted is None:
            return None
        if mounted.listeners or any(
            self._is_mounted_dependency(dependent, atom) for dependent in mounted.dependents
        ):
            return mounted
        state.mounted = None
        logger.debug("unmounted %r", atom)
        for dep in mounted.dependencies:
            dep_mounted = self._state(dep).mounted
            if dep_mounted is not None:
                dep_mounted.dependents.pop(atom, None)
            self._unmount(dep)
        return None

    def _is_mounted_dependency(self, dependent: Atom, atom: Atom) -> bool:
        mounted = self._state(dependent).mounted
        return mounted is not None and atom in mounted.dependencies

    def _mount_dependencies(self, atom: Atom, state: AtomState) -> None:
        """Reconcile mounted edges with the dependencies read last time."""
        mounted = state.mounted
        if mounted is None:
            return
        for dep in state.dependencies:
            if dep not in mounted.dependencies:
                self._mount(dep).dependents[atom] = None
                mounted.dependencies[dep] = None
        for dep in list(mounted.dependencies):
            if dep not in state.dependencies:
                mounted.dependencies.pop(dep, None)
                dep_mounted = self._state(dep).mounted
                if dep_mounted is not None:
                    dep_mounted.dependents.pop(atom, None)
                self._unmount(dep)


def create_store() -> Store:
    """Create an independent store."""
    return Store()


_default_store: Store | None = None


def get_default_store() -> Store:
    """Return the process-wide store, creating it on first use."""
    global _default_store
    if _default_store is None:
        _default_store = Store()
    return _default_store
