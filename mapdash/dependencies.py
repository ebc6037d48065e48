"""FastAPI dependencies.

History stores are process-wide: hydrated from storage once and shared by
every request.
"""

from typing import Optional

from mapdash.services.history_service import PlaceHistoryStore, RouteHistoryStore
from mapdash.services.routing_service import RoutingService
from mapdash.storage.kv_store import KeyValueStore, build_store

_store: Optional[KeyValueStore] = None
_route_history: Optional[RouteHistoryStore] = None
_place_history: Optional[PlaceHistoryStore] = None


def get_kv_store() -> KeyValueStore:
    global _store
    if _store is None:
        _store = build_store()
    return _store


def get_route_history_store() -> RouteHistoryStore:
    global _route_history
    if _route_history is None:
        _route_history = RouteHistoryStore(get_kv_store())
        _route_history.load()
    return _route_history


def get_place_history_store() -> PlaceHistoryStore:
    global _place_history
    if _place_history is None:
        _place_history = PlaceHistoryStore(get_kv_store())
        _place_history.load()
    return _place_history


def get_routing_service() -> RoutingService:
    return RoutingService()


def reset_dependencies() -> None:
    """Drop the shared stores (tests and settings reloads)."""
    global _store, _route_history, _place_history
    _store = None
    _route_history = None
    _place_history = None
