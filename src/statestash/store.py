"""Store — canonical string mapping shared by independent state providers.

Providers register a schema and a callback. The store:
- serializes provider updates into the canonical mapping and tells its own
  callback (debounced) with the full mapping,
- reconciles providers against the canonical mapping after update(),
  calling each one with only the keys whose serialized form changed.

All callbacks run on the scheduler, never inside the triggering call.
"""

from __future__ import annotations

import itertools
import logging
from collections.abc import Callable, Mapping
from typing import Any

from statestash.errors import RegistrationConflict, UnregisteredProviderError
from statestash.scheduler import AsyncioScheduler, Debouncer, Scheduler
from statestash.schema import Field, Schema

logger = logging.getLogger("statestash.store")

ProviderCallback = Callable[[dict[str, Any]], None]
ValuesCallback = Callable[[dict[str, str]], None]
SchemaConfig = Schema | list[Field] | Mapping[str, Any]


class Provider:
    """A registered schema, its last-known typed state, and its callback."""

    __slots__ = ("id", "schema", "state", "callback")

    def __init__(self, id: int, schema: Schema, callback: ProviderCallback) -> None:
        self.id = id
        self.schema = schema
        self.state: dict[str, Any] = {}
        self.callback = callback

    def __repr__(self) -> str:
        return f"Provider({self.id}, {self.schema!r})"


class ProviderHandle:
    """Token returned by Store.register(). Call it to push provider state.

    The handle holds only an id; the store checks liveness on every call.
    """

    __slots__ = ("_store", "_id")

    def __init__(self, store: Store, provider_id: int) -> None:
        self._store = store
        self._id = provider_id

    @property
    def id(self) -> int:
        return self._id

    @property
    def registered(self) -> bool:
        return self._store.is_registered(self._id)

    def update(self, state: Mapping[str, Any]) -> None:
        self._store.push(self._id, state)

    __call__ = update

    def __repr__(self) -> str:
        status = "registered" if self.registered else "unregistered"
        return f"ProviderHandle({self._id}, {status})"


class Store:
    """In-memory canonical mapping with schema-driven providers.

    Usage:
        store = Store(lambda values: save(values))
        update = store.register({"zoom": 3, "_": "map"}, on_map_change)
        update({"zoom": 4})          # save({"map.zoom": "4"}) on next tick
        store.update({"map.zoom": "7"})  # on_map_change({"zoom": 7}) on next tick
    """

    def __init__(
        self,
        callback: ValuesCallback,
        *,
        scheduler: Scheduler | None = None,
        delay: float = 0.0,
    ) -> None:
        self._values: dict[str, str] = {}
        self._providers: dict[int, Provider] = {}
        self._ids = itertools.count(1)
        self._callback = callback
        self._scheduler: Scheduler = scheduler if scheduler is not None else AsyncioScheduler()
        self._debouncer = Debouncer(self._scheduler, self._debounced_callback, delay)

    @property
    def values(self) -> dict[str, str]:
        """Copy of the canonical mapping."""
        return dict(self._values)

    def __len__(self) -> int:
        return len(self._providers)

    # --- Outbound ---

    def _debounced_callback(self) -> None:
        self._callback(dict(self._values))

    def flush(self) -> None:
        """Deliver a pending outbound notification now."""
        self._debouncer.flush()

    # --- Registration ---

    def register(self, config: SchemaConfig, callback: ProviderCallback) -> ProviderHandle:
        """Register a new state provider.

        Raises RegistrationConflict if any prefixed key is already owned by
        a registered provider. The callback first fires on the next tick with
        every key, taken from the canonical mapping or defaulted.
        """
        schema = Schema.coerce(config)
        for existing in self._providers.values():
            conflict = schema.conflicts(existing.schema)
            if conflict is not None:
                logger.warning("Registration conflict on %r with provider %d", conflict, existing.id)
                raise RegistrationConflict(conflict)

        provider = Provider(next(self._ids), schema, callback)

        def _initial_sync() -> None:
            if self._providers.get(provider.id) is provider:
                self._notify_provider(provider)

        # Schedule before registering: a scheduler error must leave no provider behind.
        self._scheduler.call_soon(_initial_sync)
        self._providers[provider.id] = provider
        logger.debug("Registered provider %d: %r", provider.id, schema)
        return ProviderHandle(self, provider.id)

    def unregister(self, callback: ProviderCallback | ProviderHandle) -> int:
        """Remove providers whose callback equals the argument, or by handle.

        Equality, not identity: each `obj.method` access builds a new bound
        method, and bound methods compare equal on (__self__, __func__).

        Returns the number of providers removed; zero is not an error.
        """
        if isinstance(callback, ProviderHandle):
            removed = [callback.id] if callback.id in self._providers else []
        else:
            removed = [pid for pid, p in self._providers.items() if p.callback == callback]
        for pid in removed:
            del self._providers[pid]
            logger.debug("Unregistered provider %d", pid)
        return len(removed)

    def _resolve(self, handle: ProviderHandle | int) -> Provider:
        pid = handle.id if isinstance(handle, ProviderHandle) else handle
        provider = self._providers.get(pid)
        if provider is None:
            raise UnregisteredProviderError(pid)
        return provider

    def is_registered(self, handle: ProviderHandle | int) -> bool:
        pid = handle.id if isinstance(handle, ProviderHandle) else handle
        return pid in self._providers

    def state_of(self, handle: ProviderHandle | int) -> dict[str, Any]:
        """Copy of a provider's last-known typed state."""
        return dict(self._resolve(handle).state)

    # --- Provider -> store ---

    def push(self, provider_id: int, state: Mapping[str, Any]) -> None:
        """Serialize provider state into the canonical mapping.

        Raises UnregisteredProviderError, leaving the store untouched, if the
        provider is gone.
        """
        provider = self._resolve(provider_id)
        schema = provider.schema
        context = {**provider.state, **state}
        serialized = {
            schema.get_prefixed(key): schema.serialize(key, value, context)
            for key, value in state.items()
        }
        self._debouncer.trigger()
        provider.state.update(state)
        self._values.update(serialized)

    # --- Store -> providers ---

    def update(self, values: Mapping[str, str]) -> None:
        """Replace the canonical mapping; providers are reconciled next tick."""
        values = dict(values)
        self._scheduler.call_soon(self._notify_providers)
        self._values = values

    def _notify_providers(self) -> None:
        for provider in list(self._providers.values()):
            if provider.id in self._providers:
                self._notify_provider(provider)

    def _notify_provider(self, provider: Provider) -> None:
        """Call provider with the keys whose canonical value differs from its state.

        Values that fail to deserialize become the schema default. Keys are
        compared by serialized form, so the schema decides equivalence.
        """
        schema = provider.schema
        changes: dict[str, Any] = {}
        for key, prefixed in schema:
            if prefixed in self._values:
                try:
                    value = schema.deserialize(key, self._values[prefixed])
                except Exception:
                    value = schema.get_default(key)
            else:
                value = schema.get_default(key)

            if key in provider.state:
                incoming = schema.serialize(key, value, provider.state)
                current = schema.serialize(key, provider.state[key], provider.state)
                if incoming == current:
                    continue
            changes[key] = value
            provider.state[key] = value

        if changes:
            provider.callback(changes)

    # --- Teardown ---

    def dispose(self) -> None:
        """Cancel the pending outbound call and drop every provider."""
        self._debouncer.cancel()
        count = len(self._providers)
        self._providers.clear()
        logger.debug("Disposed store with %d providers", count)
