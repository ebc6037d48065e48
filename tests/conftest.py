"""Pytest configuration and fixtures."""

import os
from dataclasses import dataclass, field
from typing import Any, Generator, List, Tuple
from unittest.mock import AsyncMock, Mock

import pytest
from fastapi.testclient import TestClient

# Set test environment
os.environ["APP_ENV"] = "test"
os.environ["HISTORY_BACKEND"] = "memory"
os.environ["AMAP_SERVICE_KEY"] = "test-key"
os.environ["OVERLAY_RETRY_DELAY_S"] = "0.05"

from mapdash.dependencies import (
    get_place_history_store,
    get_route_history_store,
    get_routing_service,
    reset_dependencies,
)
from mapdash.main import app
from mapdash.rendering.engine import EngineHandle, OverlayStyle
from mapdash.schemas.route import (
    MapPosition,
    RouteResult,
    RouteServiceResult,
    RouteServiceStatus,
)
from mapdash.services.history_service import PlaceHistoryStore, RouteHistoryStore
from mapdash.storage.kv_store import MemoryStore


@dataclass(eq=False)
class FakePolyline:
    """Path overlay as created by FakeEngine; compared by identity."""

    path: List[Tuple[float, float]]
    style: OverlayStyle


@dataclass
class FakeEngine:
    """In-memory stand-in for the map SDK that records every call."""

    overlays: List[Any] = field(default_factory=list)
    events: List[Tuple[str, Any]] = field(default_factory=list)
    fit_calls: List[Tuple[List[Any], List[int]]] = field(default_factory=list)

    def create_lnglat(self, lng: float, lat: float) -> Tuple[float, float]:
        return (lng, lat)

    def create_polyline(self, path, style: OverlayStyle) -> FakePolyline:
        return FakePolyline(path=list(path), style=style)

    def add(self, overlay: Any) -> None:
        self.events.append(("add", overlay))
        self.overlays.append(overlay)

    def remove(self, overlay: Any) -> None:
        self.events.append(("remove", overlay))
        if overlay in self.overlays:
            self.overlays.remove(overlay)

    def set_fit_view(self, overlays, padding) -> None:
        self.fit_calls.append((list(overlays), list(padding)))


class Clock:
    """Manually advanced millisecond clock."""

    def __init__(self, start: int = 1_700_000_000_000):
        self.now = start

    def __call__(self) -> int:
        self.now += 1000
        return self.now


@pytest.fixture
def memory_store() -> MemoryStore:
    return MemoryStore()


@pytest.fixture
def clock() -> Clock:
    return Clock()


@pytest.fixture
def route_history(memory_store: MemoryStore, clock: Clock) -> RouteHistoryStore:
    return RouteHistoryStore(memory_store, clock=clock)


@pytest.fixture
def place_history(memory_store: MemoryStore) -> PlaceHistoryStore:
    return PlaceHistoryStore(memory_store)


@pytest.fixture
def fake_engine() -> FakeEngine:
    return FakeEngine()


@pytest.fixture
def engine_handle(fake_engine: FakeEngine) -> EngineHandle:
    return EngineHandle(fake_engine)


@pytest.fixture
def sample_polyline() -> List[MapPosition]:
    return [
        MapPosition(lng=116.3, lat=39.9),
        MapPosition(lng=116.35, lat=39.92),
        MapPosition(lng=116.4, lat=39.95),
    ]


@pytest.fixture
def success_result(sample_polyline) -> RouteServiceResult:
    return RouteServiceResult(
        status=RouteServiceStatus.SUCCESS,
        data=RouteResult(polyline=sample_polyline, distance=5000, duration=600),
    )


@pytest.fixture
def backend(success_result) -> Mock:
    """Routing backend whose planners all succeed with `success_result`."""
    stub = Mock()
    for name in ("plan_driving", "plan_walking", "plan_transit", "plan_riding", "plan_electric"):
        setattr(stub, name, AsyncMock(return_value=success_result))
    return stub


@pytest.fixture(scope="function")
def client(backend: Mock) -> Generator[TestClient, None, None]:
    """Test client with in-memory histories and a stubbed routing backend."""
    reset_dependencies()
    route_store = RouteHistoryStore(MemoryStore())
    place_store = PlaceHistoryStore(MemoryStore())

    app.dependency_overrides[get_route_history_store] = lambda: route_store
    app.dependency_overrides[get_place_history_store] = lambda: place_store
    app.dependency_overrides[get_routing_service] = lambda: backend

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.clear()
    reset_dependencies()
