"""Textual integration for statestash. Opt-in — requires textual.

Provider callbacks that touch widgets need three guards: don't deliver while
the app is not running or while its widget tree is being replaced, swallow
NoMatches from widget queries, and marshal calls from other threads with
call_from_thread. Those guards live here, not at callsites.

Changes that arrive during pause(app) are held per provider and delivered,
merged, when the outermost pause for that app exits.
"""

import threading
from contextlib import contextmanager

from textual.css.query import NoMatches

from statestash.store import ProviderHandle, SchemaConfig, Store

# Module-owned pause state, keyed by id(app) so multiple apps work in tests.
# id present <-> inside at least one pause(app) context.
_pause_depth: dict[int, int] = {}
# id(app) -> {provider id: (deliver, held changes)}
_held: dict[int, dict[int, tuple]] = {}


@contextmanager
def pause(app):
    """Hold provider deliveries for app while its widgets are replaced."""
    key = id(app)
    _pause_depth[key] = _pause_depth.get(key, 0) + 1
    try:
        yield
    finally:
        _pause_depth[key] -= 1
        if _pause_depth[key] == 0:
            del _pause_depth[key]
            _release(app)


def is_safe(app) -> bool:
    """Is the widget tree in a queryable state?"""
    return app.is_running and id(app) not in _pause_depth


def _release(app) -> None:
    held = _held.pop(id(app), {})
    if not app.is_running:
        return
    for deliver, changes in held.values():
        deliver(changes)


def register(app, store: Store, config: SchemaConfig, callback) -> ProviderHandle:
    """Store.register() with a callback that safely bridges to Textual widgets.

    Unregister with the returned handle: the store sees the guarded
    callback, not the one passed here.
    """
    _main = threading.get_ident()
    handle_ref: list[ProviderHandle | None] = [None]

    def _safe(changes):
        try:
            callback(changes)
        except NoMatches:
            pass

    def _deliver(changes):
        # Held changes outlive unregister(); drop them if the provider is gone.
        if handle_ref[0] is not None and not handle_ref[0].registered:
            return
        if threading.get_ident() != _main:
            app.call_from_thread(_safe, changes)
        else:
            _safe(changes)

    def _guarded(changes):
        if not app.is_running:
            return
        if id(app) in _pause_depth:
            pending = _held.setdefault(id(app), {})
            pid = handle_ref[0].id
            _, held = pending.get(pid, (_deliver, {}))
            pending[pid] = (_deliver, {**held, **changes})
            return
        _deliver(changes)

    handle_ref[0] = store.register(config, _guarded)
    return handle_ref[0]
