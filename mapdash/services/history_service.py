"""Search history service.

Route and place search histories are small most-recent-first lists kept in
memory and written back to a key/value store on every mutation. Storage is
best effort: a corrupt or missing blob loads as an empty list and a failed
write leaves the in-memory list authoritative for the running process.
"""

import json
import logging
import functools
import re
import threading
import time
from typing import Any, Callable, Generic, List, Optional, Type, TypeVar

from pydantic import BaseModel, TypeAdapter

from mapdash.config import get_settings
from mapdash.schemas.history import PlaceHistoryItem, RouteHistoryItem
from mapdash.storage.kv_store import KeyValueStore

logger = logging.getLogger(__name__)

ItemT = TypeVar("ItemT", bound=BaseModel)

_WHITESPACE = re.compile(r"\s+")


def _locked(method: Callable[..., Any]) -> Callable[..., Any]:
    """Serialize a read-modify-write on the history; API handlers run in a threadpool."""

    @functools.wraps(method)
    def wrapper(self: "PersistedHistory", *args: Any, **kwargs: Any) -> Any:
        with self._lock:
            return method(self, *args, **kwargs)

    return wrapper


def now_ms() -> int:
    return int(time.time() * 1000)


def make_route_history_id(origin_text: str, dest_text: str) -> str:
    """Stable id for an origin/destination pair.

    Derived only from the trimmed texts with all whitespace removed, so the
    same pair always maps to the same id across sessions.
    """
    return _WHITESPACE.sub("", f"{(origin_text or '').strip()}=>{(dest_text or '').strip()}")


def is_same_route(a: RouteHistoryItem, b: RouteHistoryItem) -> bool:
    """Two-tier equality between route history entries.

    When both entries carry resolved coordinates for both endpoints the
    coordinates decide; otherwise the trimmed texts do.
    """
    if a.has_locations and b.has_locations:
        return (
            a.origin_location.lng == b.origin_location.lng
            and a.origin_location.lat == b.origin_location.lat
            and a.dest_location.lng == b.dest_location.lng
            and a.dest_location.lat == b.dest_location.lat
        )
    return (a.origin_text or "").strip() == (b.origin_text or "").strip() and (
        a.dest_text or ""
    ).strip() == (b.dest_text or "").strip()


class PersistedHistory(Generic[ItemT]):
    """Most-recent-first list persisted as one JSON blob under `key`."""

    item_model: Type[BaseModel] = BaseModel

    def __init__(self, store: KeyValueStore, key: str, limit: int):
        self.store = store
        self.key = key
        self.limit = limit
        self._items: List[ItemT] = []
        self._loaded = False
        self._lock = threading.RLock()
        self._adapter = TypeAdapter(List[self.item_model])

    @property
    def items(self) -> List[ItemT]:
        """Snapshot of the current entries, most recent first."""
        self.load()
        return list(self._items)

    def __len__(self) -> int:
        self.load()
        return len(self._items)

    @_locked
    def load(self, force: bool = False) -> List[ItemT]:
        """Hydrate from storage once. Any read or decode failure yields an empty list."""
        if self._loaded and not force:
            return list(self._items)

        try:
            raw = self.store.get(self.key)
            decoded = json.loads(raw) if raw else []
            items = self._adapter.validate_python(decoded) if isinstance(decoded, list) else []
        except Exception as e:
            logger.warning(f"Discarding unreadable history '{self.key}': {str(e)}")
            items = []

        self._items = list(items[: self.limit])
        self._loaded = True
        return list(self._items)

    def _persist(self) -> None:
        payload = [item.model_dump(mode="json", by_alias=True) for item in self._items]
        try:
            self.store.set(self.key, json.dumps(payload, ensure_ascii=False))
        except Exception as e:
            logger.warning(f"Failed to persist history '{self.key}': {str(e)}")

    def _replace(self, items: List[ItemT]) -> None:
        self._items = items[: self.limit]
        self._persist()

    @_locked
    def remove(self, item_id: str) -> bool:
        """Drop the entry with `item_id`. Returns whether anything was removed."""
        self.load()
        remaining = [item for item in self._items if item.id != item_id]
        removed = len(remaining) != len(self._items)
        self._replace(remaining)
        return removed


class RouteHistoryStore(PersistedHistory[RouteHistoryItem]):
    """Deduplicated history of route queries."""

    item_model = RouteHistoryItem

    def __init__(
        self,
        store: KeyValueStore,
        key: Optional[str] = None,
        limit: Optional[int] = None,
        clock: Callable[[], int] = now_ms,
    ):
        settings = get_settings()
        super().__init__(
            store,
            key or settings.ROUTE_HISTORY_KEY,
            limit if limit is not None else settings.ROUTE_HISTORY_LIMIT,
        )
        self.clock = clock

    @_locked
    def add(self, item: RouteHistoryItem) -> Optional[RouteHistoryItem]:
        """Record a route query, moving an equivalent entry to the front.

        Returns the stored entry, or None when either endpoint text is blank.
        """
        if not (item.origin_text or "").strip() or not (item.dest_text or "").strip():
            return None

        self.load()
        stored = item.model_copy(
            update={
                "id": make_route_history_id(item.origin_text, item.dest_text),
                "updated_at": self.clock(),
            }
        )

        existing_index = next(
            (i for i, entry in enumerate(self._items) if is_same_route(entry, item)), None
        )
        rest = list(self._items)
        if existing_index is not None:
            del rest[existing_index]
            logger.debug(f"Route history hit for {stored.id}, moving to front")

        self._replace([stored] + rest)
        return stored

    @_locked
    def clear(self) -> None:
        self.load()
        self._replace([])


class PlaceHistoryStore(PersistedHistory[PlaceHistoryItem]):
    """History of selected place search results, deduplicated by id."""

    item_model = PlaceHistoryItem

    def __init__(self, store: KeyValueStore, key: Optional[str] = None, limit: Optional[int] = None):
        settings = get_settings()
        super().__init__(
            store,
            key or settings.PLACE_HISTORY_KEY,
            limit if limit is not None else settings.PLACE_HISTORY_LIMIT,
        )

    @_locked
    def add(self, item: PlaceHistoryItem) -> PlaceHistoryItem:
        self.load()
        rest = [entry for entry in self._items if entry.id != item.id]
        self._replace([item] + rest)
        return item

    @_locked
    def clear(self) -> None:
        """Forget every place. The stored key is deleted rather than overwritten."""
        try:
            self.store.delete(self.key)
        except Exception as e:
            logger.warning(f"Failed to clear history '{self.key}': {str(e)}")
        self._items = []
        self._loaded = True
