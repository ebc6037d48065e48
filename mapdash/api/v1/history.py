"""Search history endpoints.

History reads and writes hit the key/value store synchronously (file or
Redis), so handlers hand them to the threadpool instead of the event loop.
"""

from fastapi import APIRouter, Depends, status
from starlette.concurrency import run_in_threadpool

from mapdash.core.exceptions import NotFoundError
from mapdash.dependencies import get_place_history_store, get_route_history_store
from mapdash.schemas.history import (
    PlaceHistoryItem,
    PlaceHistoryListResponse,
    RouteHistoryItem,
    RouteHistoryListResponse,
)
from mapdash.services.history_service import PlaceHistoryStore, RouteHistoryStore

router = APIRouter()


def _route_list(store: RouteHistoryStore) -> RouteHistoryListResponse:
    items = store.items
    return RouteHistoryListResponse(items=items, total=len(items))


def _place_list(store: PlaceHistoryStore) -> PlaceHistoryListResponse:
    items = store.items
    return PlaceHistoryListResponse(items=items, total=len(items))


@router.get("/routes", response_model=RouteHistoryListResponse, response_model_by_alias=True)
async def list_route_history(store: RouteHistoryStore = Depends(get_route_history_store)):
    """Route history, most recent first."""
    return await run_in_threadpool(_route_list, store)


@router.post("/routes", response_model=RouteHistoryListResponse, response_model_by_alias=True)
async def add_route_history(
    item: RouteHistoryItem,
    store: RouteHistoryStore = Depends(get_route_history_store),
):
    """Remember a route query.

    Entries with a blank origin or destination text are ignored; the list
    comes back unchanged in that case.
    """
    await run_in_threadpool(store.add, item)
    return await run_in_threadpool(_route_list, store)


@router.delete(
    "/routes/{item_id}", response_model=RouteHistoryListResponse, response_model_by_alias=True
)
async def delete_route_history(
    item_id: str,
    store: RouteHistoryStore = Depends(get_route_history_store),
):
    if not await run_in_threadpool(store.remove, item_id):
        raise NotFoundError("History item not found")
    return await run_in_threadpool(_route_list, store)


@router.get("/places", response_model=PlaceHistoryListResponse)
async def list_place_history(store: PlaceHistoryStore = Depends(get_place_history_store)):
    """Place search history, most recent first."""
    return await run_in_threadpool(_place_list, store)


@router.post("/places", response_model=PlaceHistoryListResponse)
async def add_place_history(
    item: PlaceHistoryItem,
    store: PlaceHistoryStore = Depends(get_place_history_store),
):
    await run_in_threadpool(store.add, item)
    return await run_in_threadpool(_place_list, store)


@router.delete("/places/{item_id}", response_model=PlaceHistoryListResponse)
async def delete_place_history(
    item_id: str,
    store: PlaceHistoryStore = Depends(get_place_history_store),
):
    if not await run_in_threadpool(store.remove, item_id):
        raise NotFoundError("History item not found")
    return await run_in_threadpool(_place_list, store)


@router.delete("/places", status_code=status.HTTP_204_NO_CONTENT)
async def clear_place_history(store: PlaceHistoryStore = Depends(get_place_history_store)):
    await run_in_threadpool(store.clear)
