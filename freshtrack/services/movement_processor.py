"""Movement processor: the only path that changes a product's stock."""

import uuid
from dataclasses import fields
from datetime import datetime
from typing import Any, Callable, Dict, Optional

from .alert_engine import AlertEngine
from .date_service import DateService
from .ledger_store import LedgerStore
from ..models.movement import Movement, MOVEMENT_IN
from ..models.product import Product, PROTECTED_FIELDS
from ..utils.exceptions import ValidationError
from ..utils.logger import get_ledger_logger

INITIAL_STOCK_REASON = "initial stock"
SYSTEM_USER = "System"

EDITABLE_FIELDS = tuple(
    f.name for f in fields(Product)
    if f.name not in PROTECTED_FIELDS and f.name != "updated_at"
)


def new_id() -> str:
    return uuid.uuid4().hex


def _normalize(data: Dict[str, Any]) -> Dict[str, Any]:
    """Map blank optional inputs onto the model's "absent" values."""
    data = dict(data)
    for key in ("expiry_date", "category", "unit", "location", "supplier"):
        if key in data and data[key] is None:
            data[key] = ""
    if "barcode" in data and not data["barcode"]:
        data["barcode"] = None
    return data


class MovementProcessor:
    """
    Applies stock movements and product lifecycle changes to the ledger.

    Each operation reads the current snapshot, builds the new product,
    movement and alert collections, and commits them in one write under the
    ledger lock: either all of them land or none do.
    """

    def __init__(
        self,
        store: LedgerStore,
        alert_engine: AlertEngine,
        clock: Callable[[], datetime] = datetime.now,
        id_factory: Callable[[], str] = new_id
    ):
        self.store = store
        self.alert_engine = alert_engine
        self.clock = clock
        self.id_factory = id_factory
        self.logger = get_ledger_logger()

    def apply_movement(
        self,
        product_id: str,
        type: str,
        quantity: int,
        reason: str,
        user: str = "",
        notes: Optional[str] = None,
        batch_number: Optional[str] = None
    ) -> Movement:
        """
        Record a movement and update the product's stock.

        ``in`` adds, ``out`` subtracts (stock may go negative), ``adjustment``
        sets the stock to ``quantity``.

        Args:
            product_id: Product the movement applies to
            type: "in", "out" or "adjustment"
            quantity: Non-negative integer
            reason: Required free-text reason
            user: Who performed the movement
            notes: Optional notes
            batch_number: Optional batch reference

        Returns:
            The recorded movement

        Raises:
            ValidationError: If the movement input is invalid
            ProductNotFoundError: If the product does not exist
            PersistenceError: If the ledger cannot be written
        """
        with self.store.locked():
            product = self.store.get_product(product_id)
            now = self.clock()

            try:
                movement = Movement(
                    id=self.id_factory(),
                    product_id=product.id,
                    product_name=product.name,
                    type=type,
                    quantity=quantity,
                    reason=reason,
                    user=user,
                    notes=notes,
                    batch_number=batch_number,
                    timestamp=now,
                )
            except ValueError as e:
                raise ValidationError(
                    f"Invalid movement: {str(e)}",
                    details={"product_id": product_id, "type": type, "quantity": quantity}
                ) from e

            updated = product.with_stock(movement.apply_to(product.current_stock), now)
            self._commit_product(updated, now, movement=movement)

        self.logger.info(
            f"Movement {movement.type} {movement.quantity} for {product.name} ({product.id}): "
            f"stock {product.current_stock} -> {updated.current_stock}"
        )
        if updated.current_stock < 0:
            self.logger.warning(f"Stock of {product.name} ({product.id}) is negative: {updated.current_stock}")
        return movement

    def create_product(self, **data: Any) -> Product:
        """
        Create a product, recording an initial stock movement when it starts with stock.

        Raises:
            ValidationError: If the product data is invalid
            PersistenceError: If the ledger cannot be written
        """
        self._check_fields(data, allowed=EDITABLE_FIELDS + ("current_stock",))
        self._check_expiry(data.get("expiry_date"))
        data = _normalize(data)

        current_stock = data.get("current_stock", 0)
        if isinstance(current_stock, int) and current_stock < 0:
            raise ValidationError("Initial stock cannot be negative", details={"current_stock": current_stock})
        min_stock = data.get("min_stock", 0)
        if isinstance(min_stock, int) and min_stock < 0:
            raise ValidationError("Minimum stock cannot be negative", details={"min_stock": min_stock})

        with self.store.locked():
            now = self.clock()
            try:
                product = Product(id=self.id_factory(), created_at=now, updated_at=now, **data)
            except (ValueError, TypeError) as e:
                raise ValidationError(f"Invalid product: {str(e)}", details={"name": data.get("name")}) from e

            initial = None
            if product.current_stock > 0:
                initial = Movement(
                    id=f"{product.id}-initial",
                    product_id=product.id,
                    product_name=product.name,
                    type=MOVEMENT_IN,
                    quantity=product.current_stock,
                    reason=INITIAL_STOCK_REASON,
                    user=SYSTEM_USER,
                    notes="Created automatically with the product",
                    timestamp=now,
                )
            self._commit_product(product, now, movement=initial, is_new=True)

        self.logger.info(f"Created product {product.name} ({product.id}) with stock {product.current_stock}")
        return product

    def update_product(self, product_id: str, **changes: Any) -> Product:
        """
        Edit product attributes other than stock, then recompute its alerts.

        Raises:
            ValidationError: If a protected or unknown field is edited, or a value is invalid
            ProductNotFoundError: If the product does not exist
            PersistenceError: If the ledger cannot be written
        """
        self._check_fields(changes, allowed=EDITABLE_FIELDS)
        if "expiry_date" in changes:
            self._check_expiry(changes["expiry_date"])
        changes = _normalize(changes)

        with self.store.locked():
            product = self.store.get_product(product_id)
            now = self.clock()
            try:
                updated = product.with_changes(now, **changes)
            except (ValueError, TypeError) as e:
                raise ValidationError(f"Invalid product: {str(e)}", details={"product_id": product_id}) from e
            self._commit_product(updated, now)

        self.logger.info(f"Updated product {updated.name} ({product_id}): {sorted(changes)}")
        return updated

    def delete_product(self, product_id: str) -> Product:
        return self.store.delete_product(product_id)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _commit_product(
        self,
        product: Product,
        now: datetime,
        movement: Optional[Movement] = None,
        is_new: bool = False
    ) -> None:
        if is_new:
            products = self.store.products + [product]
        else:
            products = [product if p.id == product.id else p for p in self.store.products]

        movements = None
        if movement is not None:
            movements = [movement] + self.store.movements

        alerts = self.alert_engine.replace_alerts(
            self.store.alerts, product.id, self.alert_engine.compute_for(product, now)
        )
        self.store.commit(products=products, movements=movements, alerts=alerts)

    @staticmethod
    def _check_fields(data: Dict[str, Any], allowed) -> None:
        protected = sorted(k for k in data if k in PROTECTED_FIELDS or k == "updated_at")
        if protected and not set(protected) <= set(allowed):
            raise ValidationError(
                f"Fields cannot be edited directly: {', '.join(protected)}",
                details={"fields": protected}
            )
        unknown = sorted(k for k in data if k not in allowed)
        if unknown:
            raise ValidationError(
                f"Unknown product fields: {', '.join(unknown)}",
                details={"fields": unknown}
            )

    @staticmethod
    def _check_expiry(expiry_date: Optional[str]) -> None:
        if not DateService.is_valid(expiry_date):
            raise ValidationError(
                f"Invalid expiry date '{expiry_date}', expected DD.MM.YYYY",
                details={"expiry_date": expiry_date}
            )
