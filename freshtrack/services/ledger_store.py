"""Ledger store: the persisted product, movement and alert collections."""

import json
import threading
from contextlib import contextmanager
from typing import Dict, Iterator, List, Optional, Sequence

from ..models.alert import Alert
from ..models.movement import Movement
from ..models.product import Product
from ..storage.backends import KeyValueStore
from ..storage.notifier import ChangeNotifier
from ..utils.exceptions import PersistenceError, ProductNotFoundError
from ..utils.logger import get_ledger_logger, get_error_logger

PRODUCTS_KEY = "products"
MOVEMENTS_KEY = "movements"
ALERTS_KEY = "alerts"


class LedgerStore:
    """
    Owns the three ledger collections and their persistence.

    Every mutation writes whole collections through ``commit()``: the backend
    is written first, the in-memory snapshot is swapped only after the write
    succeeded, and one change notification follows. Read-modify-write units
    must run inside ``locked()`` so that only one writer touches the ledger
    at a time.
    """

    def __init__(self, backend: KeyValueStore, notifier: Optional[ChangeNotifier] = None):
        self.backend = backend
        self.notifier = notifier or ChangeNotifier()
        self.logger = get_ledger_logger()
        self.error_logger = get_error_logger()
        self._lock = threading.RLock()
        self._products: List[Product] = []
        self._movements: List[Movement] = []
        self._alerts: List[Alert] = []

    # ------------------------------------------------------------------
    # Persistence primitives
    # ------------------------------------------------------------------

    @contextmanager
    def locked(self) -> Iterator["LedgerStore"]:
        """Hold the single-writer lock for a read-modify-write unit."""
        with self._lock:
            yield self

    def load(self) -> None:
        """
        Load all collections from the backend.

        Raises:
            PersistenceError: If any collection cannot be read or decoded.
                The previous snapshot stays in place.
        """
        with self._lock:
            products = self._read(PRODUCTS_KEY, Product.from_dict)
            movements = self._read(MOVEMENTS_KEY, Movement.from_dict)
            alerts = self._read(ALERTS_KEY, Alert.from_dict)

            self._products = products
            self._movements = movements
            self._alerts = alerts

        self.logger.info(
            f"Ledger loaded: {len(products)} products, "
            f"{len(movements)} movements, {len(alerts)} alerts"
        )

    def _read(self, key: str, factory) -> list:
        raw = self.backend.get_item(key)
        if not raw:
            return []
        try:
            records = json.loads(raw)
            if not isinstance(records, list):
                raise ValueError(f"expected a JSON array, got {type(records).__name__}")
            return [factory(record) for record in records]
        except (ValueError, KeyError, TypeError) as e:
            self.error_logger.error(f"Corrupt '{key}' collection: {str(e)}")
            raise PersistenceError(
                f"Failed to decode '{key}': {str(e)}",
                details={"key": key, "error": str(e)}
            ) from e

    def commit(
        self,
        products: Optional[Sequence[Product]] = None,
        movements: Optional[Sequence[Movement]] = None,
        alerts: Optional[Sequence[Alert]] = None
    ) -> None:
        """
        Persist the given collections in a single backend write.

        Collections passed as None are left untouched.

        Raises:
            PersistenceError: If the backend write fails. Nothing in memory
                changes and no notification is sent.
        """
        items: Dict[str, str] = {}
        if products is not None:
            items[PRODUCTS_KEY] = json.dumps([p.to_dict() for p in products])
        if movements is not None:
            items[MOVEMENTS_KEY] = json.dumps([m.to_dict() for m in movements])
        if alerts is not None:
            items[ALERTS_KEY] = json.dumps([a.to_dict() for a in alerts])
        if not items:
            return

        with self._lock:
            try:
                self.backend.set_many(items)
            except PersistenceError as e:
                self.error_logger.error(f"Ledger write failed: {e.message}")
                raise
            except OSError as e:
                self.error_logger.error(f"Ledger write failed: {str(e)}")
                raise PersistenceError(
                    f"Failed to write {', '.join(items)}: {str(e)}",
                    details={"keys": list(items), "error": str(e)}
                ) from e

            if products is not None:
                self._products = list(products)
            if movements is not None:
                self._movements = list(movements)
            if alerts is not None:
                self._alerts = list(alerts)

        self.logger.debug(f"Committed {', '.join(items)}")
        self.notifier.notify()

    def save_products(self, products: Sequence[Product]) -> None:
        self.commit(products=products)

    def save_movements(self, movements: Sequence[Movement]) -> None:
        self.commit(movements=movements)

    def save_alerts(self, alerts: Sequence[Alert]) -> None:
        self.commit(alerts=alerts)

    def subscribe(self, listener) -> None:
        self.notifier.subscribe(listener)

    def unsubscribe(self, listener) -> None:
        self.notifier.unsubscribe(listener)

    # ------------------------------------------------------------------
    # Snapshots
    # ------------------------------------------------------------------

    @property
    def products(self) -> List[Product]:
        return list(self._products)

    @property
    def movements(self) -> List[Movement]:
        """Movements, newest first."""
        return list(self._movements)

    @property
    def alerts(self) -> List[Alert]:
        return list(self._alerts)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def find_product(self, product_id: str) -> Optional[Product]:
        for product in self._products:
            if product.id == product_id:
                return product
        return None

    def get_product(self, product_id: str) -> Product:
        """
        Look up a product by id.

        Raises:
            ProductNotFoundError: If no product has this id
        """
        product = self.find_product(product_id)
        if product is None:
            raise ProductNotFoundError(
                f"Product not found: {product_id}",
                details={"product_id": product_id}
            )
        return product

    def find_by_barcode(self, barcode: str) -> Optional[Product]:
        """First product carrying this barcode; duplicates are not detected."""
        if not barcode:
            return None
        for product in self._products:
            if product.barcode == barcode:
                return product
        return None

    def search_products(self, query: str = "", category: Optional[str] = None) -> List[Product]:
        """Case-insensitive match on name, category or location, optionally within one category."""
        needle = query.strip().lower()
        results = []
        for product in self._products:
            if category and category != "all" and product.category != category:
                continue
            if needle and not (
                needle in product.name.lower()
                or needle in product.category.lower()
                or needle in product.location.lower()
            ):
                continue
            results.append(product)
        return results

    def categories(self) -> List[str]:
        seen = []
        for product in self._products:
            if product.category and product.category not in seen:
                seen.append(product.category)
        return seen

    def movements_for(self, product_id: str) -> List[Movement]:
        return [m for m in self._movements if m.product_id == product_id]

    def filter_movements(self, movement_type: Optional[str] = None) -> List[Movement]:
        if not movement_type or movement_type == "all":
            return self.movements
        return [m for m in self._movements if m.type == movement_type]

    def alerts_for(self, product_id: str) -> List[Alert]:
        return [a for a in self._alerts if a.product_id == product_id]

    def find_alert(self, alert_id: str) -> Optional[Alert]:
        for alert in self._alerts:
            if alert.id == alert_id:
                return alert
        return None

    # ------------------------------------------------------------------
    # Direct CRUD
    # ------------------------------------------------------------------

    def delete_product(self, product_id: str) -> Product:
        """
        Remove a product and its alerts. Historical movements are kept.

        Raises:
            ProductNotFoundError: If no product has this id
        """
        with self._lock:
            product = self.get_product(product_id)
            self.commit(
                products=[p for p in self._products if p.id != product_id],
                alerts=[a for a in self._alerts if a.product_id != product_id],
            )

        self.logger.info(f"Deleted product {product.name} ({product_id})")
        return product
