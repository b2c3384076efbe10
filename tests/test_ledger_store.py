"""Tests for the ledger store."""

import json

import pytest

from freshtrack.models.alert import Alert
from freshtrack.models.movement import Movement
from freshtrack.models.product import Product
from freshtrack.services.ledger_store import LedgerStore
from freshtrack.storage.backends import InMemoryStore, JsonFileStore
from freshtrack.utils.exceptions import PersistenceError, ProductNotFoundError


def _product(pid, name, category="", location="", barcode=None):
    return Product(id=pid, name=name, category=category, location=location, barcode=barcode)


def _alert(pid, suffix="low-stock"):
    return Alert(
        id=f"{pid}-{suffix}", type="low_stock", severity="medium",
        product_id=pid, product_name=pid, message="Low stock: 0",
    )


@pytest.fixture
def ledger(failing_backend):
    store = LedgerStore(failing_backend)
    store.load()
    return store


class TestCommit:
    """Tests for atomic persistence."""

    def test_commit_writes_all_collections_once(self, ledger, failing_backend):
        """Test that one commit is one backend write."""
        ledger.commit(
            products=[_product("p-1", "Milch")],
            movements=[],
            alerts=[_alert("p-1")],
        )

        assert failing_backend.writes == 1
        assert json.loads(failing_backend.get_item("products"))[0]["name"] == "Milch"
        assert json.loads(failing_backend.get_item("alerts"))[0]["id"] == "p-1-low-stock"

    def test_failed_write_leaves_memory_untouched(self, ledger, failing_backend):
        """Test that nothing changes in memory when the backend write fails."""
        ledger.save_products([_product("p-1", "Milch")])
        failing_backend.fail = True

        with pytest.raises(PersistenceError, match="disk full"):
            ledger.commit(products=[], alerts=[_alert("p-2")])

        assert [p.id for p in ledger.products] == ["p-1"]
        assert ledger.alerts == []

    def test_failed_write_sends_no_notification(self, ledger, failing_backend):
        calls = []
        ledger.subscribe(lambda: calls.append(1))
        failing_backend.fail = True

        with pytest.raises(PersistenceError):
            ledger.save_products([_product("p-1", "Milch")])

        assert calls == []

    def test_one_notification_per_commit(self, ledger):
        calls = []
        ledger.subscribe(lambda: calls.append(1))

        ledger.commit(products=[_product("p-1", "Milch")], alerts=[_alert("p-1")])

        assert calls == [1]

    def test_unsubscribe(self, ledger):
        calls = []
        listener = lambda: calls.append(1)  # noqa: E731
        ledger.subscribe(listener)
        ledger.unsubscribe(listener)

        ledger.save_products([])

        assert calls == []

    def test_failing_listener_does_not_abort_commit(self, ledger):
        def broken():
            raise RuntimeError("boom")

        calls = []
        ledger.subscribe(broken)
        ledger.subscribe(lambda: calls.append(1))

        ledger.save_products([_product("p-1", "Milch")])

        assert calls == [1]
        assert len(ledger.products) == 1

    def test_snapshots_are_copies(self, ledger):
        ledger.save_products([_product("p-1", "Milch")])

        ledger.products.clear()

        assert len(ledger.products) == 1


class TestLoad:
    """Tests for loading persisted collections."""

    def test_load_empty_backend(self):
        store = LedgerStore(InMemoryStore())
        store.load()

        assert store.products == []
        assert store.movements == []
        assert store.alerts == []

    def test_load_persisted_records(self, sample_product):
        movement = Movement(
            id="m-1", product_id="p-1", product_name="Tomaten",
            type="in", quantity=10, reason="initial stock", user="System",
        )
        backend = InMemoryStore({
            "products": json.dumps([sample_product.to_dict()]),
            "movements": json.dumps([movement.to_dict()]),
        })
        store = LedgerStore(backend)

        store.load()

        assert store.products == [sample_product]
        assert store.movements[0].id == "m-1"

    def test_corrupt_collection_raises_and_keeps_snapshot(self, sample_product):
        backend = InMemoryStore({"products": json.dumps([sample_product.to_dict()])})
        store = LedgerStore(backend)
        store.load()

        backend.set_many({"movements": "{not json"})

        with pytest.raises(PersistenceError, match="movements"):
            store.load()
        assert store.products == [sample_product]

    def test_non_array_collection_is_corrupt(self):
        store = LedgerStore(InMemoryStore({"alerts": json.dumps({"id": "x"})}))

        with pytest.raises(PersistenceError):
            store.load()

    def test_json_file_backend_round_trip(self, tmp_path, sample_product):
        store = LedgerStore(JsonFileStore(str(tmp_path / "data")))
        store.save_products([sample_product])

        reloaded = LedgerStore(JsonFileStore(str(tmp_path / "data")))
        reloaded.load()

        assert reloaded.products == [sample_product]
        assert (tmp_path / "data" / "products.json").exists()
        assert not list((tmp_path / "data").glob("*.tmp"))


class TestQueries:
    """Tests for lookup and search."""

    @pytest.fixture
    def populated(self, ledger):
        ledger.save_products([
            _product("p-1", "Tomaten", "Gemüse", "Kühlschrank A1", barcode="400"),
            _product("p-2", "Milch", "Milchprodukte", "Kühlschrank B2"),
            _product("p-3", "Gurken", "Gemüse", "Lager", barcode="400"),
        ])
        return ledger

    def test_get_product_missing(self, populated):
        with pytest.raises(ProductNotFoundError):
            populated.get_product("nope")

    def test_find_by_barcode_returns_first_match(self, populated):
        assert populated.find_by_barcode("400").id == "p-1"

    def test_find_by_blank_barcode(self, populated):
        assert populated.find_by_barcode("") is None

    def test_search_matches_name_category_or_location(self, populated):
        assert [p.id for p in populated.search_products("tomat")] == ["p-1"]
        assert [p.id for p in populated.search_products("gemüse")] == ["p-1", "p-3"]
        assert [p.id for p in populated.search_products("kühlschrank")] == ["p-1", "p-2"]

    def test_search_within_category(self, populated):
        results = populated.search_products("kühlschrank", category="Gemüse")
        assert [p.id for p in results] == ["p-1"]

    def test_search_all_category(self, populated):
        assert len(populated.search_products("", category="all")) == 3

    def test_categories_in_first_seen_order(self, populated):
        assert populated.categories() == ["Gemüse", "Milchprodukte"]


class TestDeleteProduct:
    """Tests for deleting products."""

    def test_delete_cascades_alerts_but_keeps_movements(self, ledger):
        movement = Movement(
            id="m-1", product_id="p-1", product_name="Milch",
            type="out", quantity=1, reason="Verkauf",
        )
        ledger.commit(
            products=[_product("p-1", "Milch"), _product("p-2", "Butter")],
            movements=[movement],
            alerts=[_alert("p-1"), _alert("p-2")],
        )

        deleted = ledger.delete_product("p-1")

        assert deleted.name == "Milch"
        assert [p.id for p in ledger.products] == ["p-2"]
        assert [a.product_id for a in ledger.alerts] == ["p-2"]
        assert ledger.movements == [movement]

    def test_delete_missing_product_writes_nothing(self, ledger, failing_backend):
        writes = failing_backend.writes

        with pytest.raises(ProductNotFoundError):
            ledger.delete_product("nope")

        assert failing_backend.writes == writes
