"""Unit tests for the route and place search histories."""

import json
from concurrent.futures import ThreadPoolExecutor
from unittest.mock import Mock

import pytest

from mapdash.schemas.history import PlaceHistoryItem, RouteHistoryItem
from mapdash.schemas.route import MapPosition, RouteMode
from mapdash.services.history_service import (
    PlaceHistoryStore,
    RouteHistoryStore,
    is_same_route,
    make_route_history_id,
)
from mapdash.storage.kv_store import MemoryStore

ROUTE_KEY = "route_search_history_v1"
PLACE_KEY = "place_search_history_v1"


def route_item(origin: str, dest: str, origin_loc=None, dest_loc=None, **kwargs) -> RouteHistoryItem:
    return RouteHistoryItem(
        origin_text=origin,
        dest_text=dest,
        origin_location=MapPosition(lng=origin_loc[0], lat=origin_loc[1]) if origin_loc else None,
        dest_location=MapPosition(lng=dest_loc[0], lat=dest_loc[1]) if dest_loc else None,
        **kwargs,
    )


class TestStableId:
    def test_strips_and_removes_whitespace(self):
        assert make_route_history_id("  Tian anmen ", " Bei hai\tPark ") == "Tiananmen=>BeihaiPark"

    def test_same_input_same_id(self):
        assert make_route_history_id("A", "B") == make_route_history_id("A", "B")


class TestIsSameRoute:
    def test_coordinates_decide_when_both_sides_resolved(self):
        a = route_item("Home", "Office", (116.3, 39.9), (116.4, 39.95))
        b = route_item("home ", "the office", (116.3, 39.9), (116.4, 39.95))
        assert is_same_route(a, b)

    def test_different_coordinates_with_same_text_are_different(self):
        a = route_item("Home", "Office", (116.3, 39.9), (116.4, 39.95))
        b = route_item("Home", "Office", (116.3, 39.9), (116.5, 39.95))
        assert not is_same_route(a, b)

    def test_text_fallback_when_a_location_is_missing(self):
        a = route_item("Home", "Office", (116.3, 39.9), (116.4, 39.95))
        b = route_item(" Home ", "Office ")
        assert is_same_route(a, b)

    def test_text_fallback_is_case_sensitive(self):
        assert not is_same_route(route_item("Home", "Office"), route_item("home", "office"))


class TestRouteHistoryAdd:
    def test_add_inserts_at_front_with_stable_id(self, route_history):
        route_history.add(route_item("A", "B"))
        stored = route_history.add(route_item("C", "D"))

        assert stored.id == "C=>D"
        assert [item.id for item in route_history.items] == ["C=>D", "A=>B"]

    def test_blank_texts_are_rejected(self, route_history, memory_store):
        route_history.add(route_item("A", "B"))
        before = memory_store.get(ROUTE_KEY)

        assert route_history.add(route_item("   ", "B")) is None
        assert route_history.add(route_item("A", "")) is None

        assert len(route_history) == 1
        assert memory_store.get(ROUTE_KEY) == before

    def test_readding_equal_item_moves_it_to_front(self, route_history):
        first = route_history.add(route_item("A", "B"))
        route_history.add(route_item("C", "D"))
        again = route_history.add(route_item(" A ", "B "))

        items = route_history.items
        assert len(items) == 2
        assert items[0].id == first.id == again.id == "A=>B"
        assert again.updated_at > first.updated_at

    def test_duplicate_coordinates_collapse_despite_text_differences(self, route_history):
        route_history.add(route_item("Tiananmen", "Beihai", (116.397, 39.909), (116.389, 39.925)))
        stored = route_history.add(
            route_item("  tiananmen square", "BEIHAI ", (116.397, 39.909), (116.389, 39.925))
        )

        items = route_history.items
        assert len(items) == 1
        # id follows the most recent texts
        assert stored.id == "tiananmensquare=>BEIHAI"
        assert items[0].origin_text == "  tiananmen square"

    def test_incoming_fields_replace_stored_ones(self, route_history):
        route_history.add(route_item("A", "B", mode=RouteMode.DRIVING))
        route_history.add(route_item("A", "B", (1.0, 2.0), (3.0, 4.0), mode=RouteMode.WALKING))

        (item,) = route_history.items
        assert item.mode == RouteMode.WALKING
        assert item.origin_location == MapPosition(lng=1.0, lat=2.0)

    def test_capacity_drops_oldest(self, route_history):
        for i in range(15):
            route_history.add(route_item(f"origin {i}", f"dest {i}"))

        items = route_history.items
        assert len(items) == 12
        assert items[0].id == "origin14=>dest14"
        assert items[-1].id == "origin3=>dest3"

    def test_every_add_is_persisted(self, route_history, memory_store):
        route_history.add(route_item("A", "B", (116.3, 39.9), (116.4, 39.95)))

        persisted = json.loads(memory_store.get(ROUTE_KEY))
        assert persisted[0]["id"] == "A=>B"
        assert persisted[0]["originText"] == "A"
        assert persisted[0]["destLocation"] == {"lng": 116.4, "lat": 39.95}
        assert "updatedAt" in persisted[0]

    def test_storage_failure_keeps_memory_state(self, clock):
        store = Mock()
        store.get.return_value = None
        store.set.side_effect = OSError("quota exceeded")
        history = RouteHistoryStore(store, clock=clock)

        stored = history.add(route_item("A", "B"))

        assert stored is not None
        assert [item.id for item in history.items] == ["A=>B"]


class TestRouteHistoryLoad:
    def test_hydrates_from_storage(self, clock):
        blob = json.dumps(
            [{"id": "A=>B", "originText": "A", "destText": "B", "mode": "walking", "updatedAt": 1}]
        )
        history = RouteHistoryStore(MemoryStore({ROUTE_KEY: blob}), clock=clock)

        (item,) = history.load()
        assert item.id == "A=>B"
        assert item.mode == RouteMode.WALKING

    @pytest.mark.parametrize("blob", ["{not json", '{"id": 1}', '[{"originText": 5, "id": []}]'])
    def test_corrupt_blob_loads_empty(self, clock, blob):
        history = RouteHistoryStore(MemoryStore({ROUTE_KEY: blob}), clock=clock)
        assert history.load() == []

    def test_read_failure_loads_empty(self, clock):
        store = Mock()
        store.get.side_effect = ConnectionError("redis down")
        history = RouteHistoryStore(store, clock=clock)

        assert history.items == []

    def test_loads_only_once(self, clock):
        store = Mock()
        store.get.return_value = None
        history = RouteHistoryStore(store, clock=clock)

        history.load()
        history.items
        history.add(route_item("A", "B"))

        assert store.get.call_count == 1

    def test_survives_restart(self, memory_store, clock):
        RouteHistoryStore(memory_store, clock=clock).add(route_item("A", "B"))

        reloaded = RouteHistoryStore(memory_store, clock=clock)
        assert [item.id for item in reloaded.items] == ["A=>B"]


class TestRouteHistoryRemove:
    def test_remove_filters_and_persists(self, route_history, memory_store):
        route_history.add(route_item("A", "B"))
        route_history.add(route_item("C", "D"))

        assert route_history.remove("A=>B") is True
        assert [item.id for item in route_history.items] == ["C=>D"]
        assert [entry["id"] for entry in json.loads(memory_store.get(ROUTE_KEY))] == ["C=>D"]

    def test_remove_unknown_id(self, route_history):
        route_history.add(route_item("A", "B"))
        assert route_history.remove("nope") is False
        assert len(route_history) == 1


class TestPlaceHistory:
    @staticmethod
    def place(item_id: str, name: str = "Place") -> PlaceHistoryItem:
        return PlaceHistoryItem(id=item_id, name=name, location=MapPosition(lng=116.0, lat=39.0))

    def test_dedup_by_id_moves_to_front(self, place_history):
        place_history.add(self.place("p1", "Old name"))
        place_history.add(self.place("p2"))
        place_history.add(self.place("p1", "New name"))

        items = place_history.items
        assert [item.id for item in items] == ["p1", "p2"]
        assert items[0].name == "New name"

    def test_capacity_is_ten(self, place_history):
        for i in range(13):
            place_history.add(self.place(f"p{i}"))

        items = place_history.items
        assert len(items) == 10
        assert items[0].id == "p12"
        assert items[-1].id == "p3"

    def test_clear_deletes_key(self, place_history, memory_store):
        place_history.add(self.place("p1"))
        place_history.clear()

        assert place_history.items == []
        assert memory_store.get(PLACE_KEY) is None

    def test_clear_swallows_storage_errors(self):
        store = Mock()
        store.get.return_value = None
        store.delete.side_effect = OSError("read-only")

        history = PlaceHistoryStore(store)
        history.add(self.place("p1"))
        history.clear()

        assert history.items == []

    def test_remove(self, place_history):
        place_history.add(self.place("p1"))
        place_history.add(self.place("p2"))

        assert place_history.remove("p1") is True
        assert [item.id for item in place_history.items] == ["p2"]


def test_concurrent_adds_keep_memory_and_storage_in_step(memory_store):
    history = PlaceHistoryStore(memory_store)
    place = TestPlaceHistory.place

    with ThreadPoolExecutor(max_workers=8) as pool:
        list(pool.map(lambda i: history.add(place(f"p{i}")), range(40)))

    items = history.items
    assert len(items) == 10
    assert len({item.id for item in items}) == 10
    persisted = [entry["id"] for entry in json.loads(memory_store.get(PLACE_KEY))]
    assert persisted == [item.id for item in items]
