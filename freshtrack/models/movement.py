"""Stock movement data model."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional, Dict, Any

from .product import _parse_timestamp

MOVEMENT_IN = "in"
MOVEMENT_OUT = "out"
MOVEMENT_ADJUSTMENT = "adjustment"
MOVEMENT_TYPES = (MOVEMENT_IN, MOVEMENT_OUT, MOVEMENT_ADJUSTMENT)


@dataclass(frozen=True)
class Movement:
    """An immutable entry in the stock ledger."""

    id: str
    product_id: str
    product_name: str
    type: str
    quantity: int
    reason: str
    user: str = ""
    notes: Optional[str] = None
    batch_number: Optional[str] = None
    timestamp: datetime = field(default_factory=datetime.now)

    def __post_init__(self):
        """Validate data."""
        if not self.product_id:
            raise ValueError("Movement must reference a product")

        if self.type not in MOVEMENT_TYPES:
            raise ValueError("Movement type must be 'in', 'out' or 'adjustment'")

        if not isinstance(self.quantity, int) or isinstance(self.quantity, bool):
            raise ValueError("Quantity must be an integer")

        if self.quantity < 0:
            raise ValueError("Quantity cannot be negative")

        if not isinstance(self.reason, str):
            raise ValueError("Reason must be text")

        if not self.reason.strip():
            raise ValueError("Reason cannot be empty")

    def apply_to(self, current_stock: int) -> int:
        """Return the stock level that results from applying this movement.

        Outgoing movements are not floored at zero; over-issuance shows up as
        negative stock.
        """
        if self.type == MOVEMENT_IN:
            return current_stock + self.quantity
        if self.type == MOVEMENT_OUT:
            return current_stock - self.quantity
        return self.quantity

    def to_dict(self) -> Dict[str, Any]:
        """Convert to the persisted camelCase representation."""
        data = {
            "id": self.id,
            "productId": self.product_id,
            "productName": self.product_name,
            "type": self.type,
            "quantity": self.quantity,
            "reason": self.reason,
            "user": self.user,
            "timestamp": self.timestamp.isoformat(),
        }
        if self.notes is not None:
            data["notes"] = self.notes
        if self.batch_number is not None:
            data["batchNumber"] = self.batch_number
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Movement":
        """Create instance from a persisted dictionary."""
        return cls(
            id=str(data["id"]),
            product_id=str(data["productId"]),
            product_name=data.get("productName", ""),
            type=data["type"],
            quantity=int(data["quantity"]),
            reason=data["reason"],
            user=data.get("user", ""),
            notes=data.get("notes"),
            batch_number=data.get("batchNumber"),
            timestamp=_parse_timestamp(data.get("timestamp")),
        )
