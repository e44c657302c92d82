"""Generic optimistic entity store.

Holds the list/detail view of one entity type and mediates every mutation
through the request gateway:

- ``create`` prepends a placeholder (temporary id, ``is_optimistic``) and
  swaps it for the server entity on success, or removes it on failure.
- ``update`` applies a locally merged entity in place and overwrites it with
  the server entity on success, or restores the last confirmed entity on
  failure.
- ``delete`` is not optimistic: the entity leaves ``items`` only after the
  server confirms.

Concurrent mutations of the same entity are ordered by a per-entity version
counter. A completing update only touches ``items`` if no newer mutation of
that entity has started since; otherwise its result is discarded as stale,
so a late rollback can never overwrite a newer success.

Every action resolves; failures are surfaced as ``state.error``.
"""

from __future__ import annotations

import asyncio
import logging
import time
from abc import ABC, abstractmethod
from collections import Counter
from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass, field, fields, replace
from typing import Any

from marketplace_client.errors import ApplicationError, EntityNotFoundError, LocalPreconditionError
from marketplace_client.models.responses import ApiResponse

logger = logging.getLogger(__name__)

Entity = dict[str, Any]
Listener = Callable[["StoreState"], None]

OPTIMISTIC_FLAG = "is_optimistic"


@dataclass(frozen=True)
class ActionFlags:
    """Busy flags, one per action family."""

    is_loading: bool = False
    is_creating: bool = False
    is_updating: bool = False
    is_deleting: bool = False


@dataclass(frozen=True)
class Pagination:
    """Derived from the ``meta`` block of the last successful list response."""

    current_page: int = 1
    total_pages: int = 0
    total_items: int = 0


@dataclass(frozen=True)
class StoreState:
    """Snapshot of a store. A new snapshot is published on every change."""

    items: list[Entity] = field(default_factory=list)
    selected: Entity | None = None
    filters: dict[str, Any] = field(default_factory=dict)
    flags: ActionFlags = field(default_factory=ActionFlags)
    error: str | None = None
    pagination: Pagination = field(default_factory=Pagination)


@dataclass
class _Baseline:
    """Last server-confirmed copy of an entity with mutations in flight."""

    entity: Entity
    version: int
    pending: int = 0


def same_id(a: Any, b: Any) -> bool:
    """Compare entity ids across int/str representations."""
    return a is not None and b is not None and str(a) == str(b)


class EntityStore(ABC):
    """Base store; subclasses supply the transport calls and optimistic shapes.

    Parameters
    ----------
    initial_filters:
        Filters restored by ``clear_filters`` and ``reset``. ``page`` defaults
        to 1.
    """

    name: str = "entities"

    messages: dict[str, str] = {
        "list": "Failed to load items",
        "get": "Failed to load item",
        "create": "Failed to create item",
        "update": "Failed to update item",
        "delete": "Failed to delete item",
        "not_found": "Item not found",
    }

    def __init__(self, initial_filters: Mapping[str, Any] | None = None) -> None:
        self._initial_filters: dict[str, Any] = {"page": 1, **dict(initial_filters or {})}
        self._state = self._initial_state()
        self._listeners: list[Listener] = []

        # Mutation ordering
        self._versions: Counter[str] = Counter()
        self._baselines: dict[str, _Baseline] = {}
        self._last_temp_id = 0

        # Per-flag count of running actions
        self._active: Counter[str] = Counter()

        # Strong refs to fire-and-forget refreshes
        self._background: set[asyncio.Task[None]] = set()

    # ------------------------------------------------------------------
    # Transport hooks
    # ------------------------------------------------------------------

    @abstractmethod
    async def _request_list(self, filters: dict[str, Any]) -> ApiResponse[Any]: ...

    @abstractmethod
    async def _request_get(self, entity_id: Any) -> ApiResponse[Any]: ...

    @abstractmethod
    async def _request_create(self, data: Any) -> ApiResponse[Any]: ...

    @abstractmethod
    async def _request_update(self, entity_id: Any, data: Any) -> ApiResponse[Any]: ...

    @abstractmethod
    async def _request_delete(self, entity_id: Any) -> ApiResponse[Any]: ...

    @abstractmethod
    def _build_placeholder(self, data: Any) -> Entity:
        """Local stand-in for an entity the server has not confirmed yet."""

    @abstractmethod
    def _merge_optimistic(self, existing: Entity, data: Any) -> Entity:
        """Existing entity with *data* overlaid, before server confirmation."""

    # ------------------------------------------------------------------
    # State container
    # ------------------------------------------------------------------

    @property
    def state(self) -> StoreState:
        return self._state

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register *listener* for state changes; returns an unsubscribe callable."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _initial_state(self) -> StoreState:
        return StoreState(filters=dict(self._initial_filters))

    def _set(self, **changes: Any) -> None:
        self._state = replace(self._state, **changes)
        for listener in list(self._listeners):
            try:
                listener(self._state)
            except Exception:
                logger.exception("Store listener error", extra={"store": self.name})

    def _begin(self, flag: str) -> None:
        self._active[flag] += 1
        self._set(flags=replace(self._state.flags, **{flag: True}), error=None)

    def _end(self, flag: str) -> None:
        self._active[flag] -= 1
        if self._active[flag] <= 0:
            del self._active[flag]
            self._set(flags=replace(self._state.flags, **{flag: False}))

    def _set_total(self, delta: int) -> Pagination:
        pagination = self._state.pagination
        return replace(pagination, total_items=max(0, pagination.total_items + delta))

    def _log(self, level: int, action: str, entity_id: Any, message: str, *args: Any) -> None:
        logger.log(
            level,
            message,
            *args,
            extra={"store": self.name, "action": action, "entity_id": entity_id},
        )

    # ------------------------------------------------------------------
    # Envelope helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _require(response: ApiResponse[Any], fallback: str) -> Any:
        """Return the envelope payload or raise ApplicationError."""
        if not response.success:
            raise ApplicationError(response.message or fallback, errors=response.errors)
        payload = response.payload
        if payload is None:
            raise ApplicationError(response.message or fallback)
        return payload

    @classmethod
    def _require_entity(cls, response: ApiResponse[Any], fallback: str) -> Entity:
        payload = cls._require(response, fallback)
        if not isinstance(payload, dict):
            raise ApplicationError(fallback)
        return payload

    @staticmethod
    def _require_success(response: ApiResponse[Any], fallback: str) -> None:
        if not response.success:
            raise ApplicationError(response.message or fallback, errors=response.errors)

    # ------------------------------------------------------------------
    # Item helpers
    # ------------------------------------------------------------------

    def find(self, entity_id: Any) -> Entity | None:
        """Return the item with *entity_id*, if loaded."""
        for item in self._state.items:
            if same_id(item.get("id"), entity_id):
                return item
        return None

    @staticmethod
    def _replace_item(items: list[Entity], entity_id: Any, entity: Entity) -> list[Entity]:
        return [entity if same_id(item.get("id"), entity_id) else item for item in items]

    def _next_temp_id(self) -> int:
        """Wall-clock milliseconds, strictly increasing within this store."""
        self._last_temp_id = max(int(time.time() * 1000), self._last_temp_id + 1)
        return self._last_temp_id

    def _start_mutation(self, entity_id: Any, current: Entity | None) -> int:
        key = str(entity_id)
        self._versions[key] += 1
        version = self._versions[key]
        if current is not None:
            baseline = self._baselines.get(key)
            if baseline is None:
                baseline = self._baselines[key] = _Baseline(entity=current, version=version - 1)
            baseline.pending += 1
        return version

    def _is_current(self, entity_id: Any, version: int) -> bool:
        return self._versions[str(entity_id)] == version

    def _confirm(self, entity_id: Any, version: int, entity: Entity) -> None:
        baseline = self._baselines.get(str(entity_id))
        if baseline is not None and version > baseline.version:
            baseline.entity = entity
            baseline.version = version

    def _finish_mutation(self, entity_id: Any) -> None:
        key = str(entity_id)
        baseline = self._baselines.get(key)
        if baseline is not None:
            baseline.pending -= 1
            if baseline.pending <= 0:
                del self._baselines[key]

    # ------------------------------------------------------------------
    # Actions
    # ------------------------------------------------------------------

    async def list(self, filters: Mapping[str, Any] | None = None) -> None:
        """Load ``items`` and ``pagination`` for the current (or given) filters."""
        if filters is not None:
            self._set(filters=dict(filters))
        self._begin("is_loading")
        try:
            response = await self._request_list(dict(self._state.filters))
            items = self._require(response, self.messages["list"])
            if not isinstance(items, list) or not all(isinstance(item, dict) for item in items):
                raise ApplicationError(self.messages["list"])
            meta = response.meta
            self._set(
                items=[dict(item) for item in items],
                pagination=Pagination(
                    current_page=(meta.current_page if meta else None) or 1,
                    total_pages=(meta.last_page if meta else None) or 1,
                    total_items=(meta.total if meta else None) or len(items),
                ),
            )
        except ApplicationError as exc:
            self._set(error=exc.message)
            self._log(logging.WARNING, "list", None, "List failed: %s", exc.message)
        finally:
            self._end("is_loading")

    async def get(self, entity_id: Any) -> Entity | None:
        """Load one entity into ``selected``; a failure leaves ``selected`` as is."""
        self._begin("is_loading")
        try:
            response = await self._request_get(entity_id)
            entity = self._require_entity(response, self.messages["get"])
            self._set(selected=entity)
            return entity
        except ApplicationError as exc:
            self._set(error=exc.message)
            self._log(logging.WARNING, "get", entity_id, "Get failed: %s", exc.message)
            return None
        finally:
            self._end("is_loading")

    async def create(self, data: Any) -> Entity | None:
        """Create optimistically; returns the server entity or None."""
        temp_id = self._next_temp_id()
        placeholder = {**self._build_placeholder(data), "id": temp_id, OPTIMISTIC_FLAG: True}

        self._begin("is_creating")
        self._set(items=[placeholder, *self._state.items], pagination=self._set_total(+1))
        self._log(logging.DEBUG, "create", temp_id, "Added optimistic placeholder %s", temp_id)

        try:
            response = await self._request_create(data)
            created = self._require_entity(response, self.messages["create"])
            items = self._state.items
            if any(same_id(item.get("id"), temp_id) for item in items):
                items = self._replace_item(items, temp_id, created)
            elif self.find(created.get("id")) is None:
                items = [created, *items]
            self._set(items=items)
            return created
        except ApplicationError as exc:
            self._set(
                items=[item for item in self._state.items if not same_id(item.get("id"), temp_id)],
                pagination=self._set_total(-1),
                error=exc.message,
            )
            self._log(logging.WARNING, "create", temp_id, "Rolled back create: %s", exc.message)
            return None
        finally:
            self._end("is_creating")

    async def update(self, entity_id: Any, data: Any) -> Entity | None:
        """Update optimistically; returns the server entity or None."""
        return await self._mutate(
            "update",
            entity_id,
            lambda existing: self._merge_optimistic(existing, data),
            lambda: self._request_update(entity_id, data),
        )

    async def delete(self, entity_id: Any) -> bool:
        """Delete after server confirmation (no optimistic removal)."""
        self._begin("is_deleting")
        try:
            response = await self._request_delete(entity_id)
            self._require_success(response, self.messages["delete"])
        except ApplicationError as exc:
            self._set(error=exc.message)
            self._log(logging.WARNING, "delete", entity_id, "Delete failed: %s", exc.message)
            return False
        else:
            # Results of updates still in flight for this entity are now stale
            self._versions[str(entity_id)] += 1
            removed = self.find(entity_id) is not None
            selected = self._state.selected
            self._set(
                items=[item for item in self._state.items if not same_id(item.get("id"), entity_id)],
                pagination=self._set_total(-1) if removed else self._state.pagination,
                selected=None if selected is not None and same_id(selected.get("id"), entity_id) else selected,
            )
            return True
        finally:
            self._end("is_deleting")

    async def _mutate(
        self,
        action: str,
        entity_id: Any,
        apply: Callable[[Entity], Entity],
        send: Callable[[], Awaitable[ApiResponse[Any]]],
        flag: str = "is_updating",
    ) -> Entity | None:
        """Optimistic in-place mutation guarded by the entity's version."""
        self._begin(flag)
        try:
            try:
                existing = self.find(entity_id)
                if existing is None:
                    raise EntityNotFoundError(self.messages["not_found"])
            except LocalPreconditionError as exc:
                self._set(error=exc.message)
                return None

            version = self._start_mutation(entity_id, existing)
            optimistic = {**apply(existing), "id": existing["id"], OPTIMISTIC_FLAG: True}
            self._set(items=self._replace_item(self._state.items, entity_id, optimistic))

            try:
                response = await send()
                confirmed = self._require_entity(response, self.messages.get(action, self.messages["update"]))
            except ApplicationError as exc:
                if self._is_current(entity_id, version):
                    baseline = self._baselines[str(entity_id)].entity
                    self._set(
                        items=self._replace_item(self._state.items, entity_id, baseline),
                        error=exc.message,
                    )
                    self._log(logging.WARNING, action, entity_id, "Rolled back %s: %s", action, exc.message)
                else:
                    self._set(error=exc.message)
                    self._log(logging.WARNING, action, entity_id, "Discarded stale rollback of %s", action)
                return None
            finally:
                self._finish_mutation(entity_id)

            self._confirm(entity_id, version, confirmed)
            if not self._is_current(entity_id, version):
                self._log(logging.WARNING, action, entity_id, "Discarded stale result of %s", action)
                return confirmed

            selected = self._state.selected
            self._set(
                items=self._replace_item(self._state.items, entity_id, confirmed),
                selected=confirmed if selected is not None and same_id(selected.get("id"), entity_id) else selected,
            )
            return confirmed
        finally:
            self._end(flag)

    # ------------------------------------------------------------------
    # Local state
    # ------------------------------------------------------------------

    def set_filters(self, partial: Mapping[str, Any]) -> asyncio.Task[None]:
        """Merge *partial* into the filters, reset to page 1 and reload."""
        self._set(
            filters={**self._state.filters, **dict(partial), "page": 1},
            pagination=replace(self._state.pagination, current_page=1),
        )
        return self._refresh()

    def set_page(self, page: int) -> asyncio.Task[None]:
        """Switch to *page* and reload."""
        self._set(
            filters={**self._state.filters, "page": page},
            pagination=replace(self._state.pagination, current_page=page),
        )
        return self._refresh()

    def clear_filters(self) -> None:
        self._set(
            filters=dict(self._initial_filters),
            pagination=replace(self._state.pagination, current_page=1),
        )

    def clear_error(self) -> None:
        self._set(error=None)

    def set_selected(self, entity: Entity | None) -> None:
        self._set(selected=entity)

    def reset(self) -> None:
        """Return to the initial empty state (no network call)."""
        initial = self._initial_state()
        self._set(**{f.name: getattr(initial, f.name) for f in fields(initial)})

    def _refresh(self) -> asyncio.Task[None]:
        task = asyncio.ensure_future(self.list())
        self._background.add(task)
        task.add_done_callback(self._background.discard)
        return task
