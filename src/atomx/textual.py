"""Textual integration for atomx. Opt-in — requires textual.

Guard, NoMatches handling and thread marshalling live here, not at callsites.
Textual coupling is isolated in this module; the store stays agnostic.
_paused_apps has a single owner (this module): an id is present iff the app is
inside a ``pause`` block.
"""

import logging
import threading
from contextlib import contextmanager

from textual.css.query import NoMatches

logger = logging.getLogger(__name__)

# Keyed by id(app) so multiple apps work in tests.
_paused_apps: set[int] = set()


@contextmanager
def pause(app):
    """Suspend guarded listeners during widget replacement."""
    key = id(app)
    _paused_apps.add(key)
    try:
        yield
    finally:
        _paused_apps.discard(key)


def is_safe(app) -> bool:
    """Is the widget tree in a queryable state?"""
    return app.is_running and id(app) not in _paused_apps


def subscribe(app, store, atom, effect):
    """store.subscribe() that safely bridges atom changes to Textual widgets.

    Calls ``effect(store.get(atom))`` after each change. Skips while the app is
    paused or not running, swallows NoMatches from widget queries, and marshals
    calls from other threads via call_from_thread. Returns the unsubscribe function.
    """
    _main = threading.get_ident()

    def _guarded():
        if not is_safe(app):
            return
        if threading.get_ident() != _main:
            app.call_from_thread(_safe)
        else:
            _safe()

    def _safe():
        try:
            effect(store.get(atom))
        except NoMatches:
            logger.debug("no widget matched while updating from %r", atom)

    return store.subscribe(atom, _guarded)
