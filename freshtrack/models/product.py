"""Product data model."""

from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Optional, Dict, Any

# Fields a direct edit may never touch; stock only moves through movements
PROTECTED_FIELDS = ("id", "current_stock", "created_at")


@dataclass(frozen=True)
class Product:
    """Represents a perishable product held at the site."""

    id: str
    name: str
    category: str = ""
    unit: str = ""
    current_stock: int = 0
    min_stock: int = 0
    expiry_date: str = ""  # DD.MM.YYYY or empty
    location: str = ""
    supplier: str = ""
    barcode: Optional[str] = None
    batch_number: Optional[str] = None
    price: Optional[float] = None
    created_at: datetime = field(default_factory=datetime.now)
    updated_at: datetime = field(default_factory=datetime.now)

    def __post_init__(self):
        """Validate data."""
        if not self.id:
            raise ValueError("Product id cannot be empty")

        if not isinstance(self.name, str):
            raise ValueError("Product name must be text")

        if not self.name.strip():
            raise ValueError("Product name cannot be empty")

        if not isinstance(self.current_stock, int) or isinstance(self.current_stock, bool):
            raise ValueError("Current stock must be an integer")

        if not isinstance(self.min_stock, int) or isinstance(self.min_stock, bool):
            raise ValueError("Minimum stock must be an integer")

    def with_changes(self, now: datetime, **changes) -> "Product":
        """Return a copy with the given attributes changed and updated_at refreshed."""
        return replace(self, updated_at=now, **changes)

    def with_stock(self, current_stock: int, now: datetime) -> "Product":
        """Return a copy carrying a new stock level."""
        return self.with_changes(now, current_stock=current_stock)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to the persisted camelCase representation."""
        data = {
            "id": self.id,
            "name": self.name,
            "category": self.category,
            "currentStock": self.current_stock,
            "minStock": self.min_stock,
            "unit": self.unit,
            "expiryDate": self.expiry_date,
            "location": self.location,
            "supplier": self.supplier,
            "createdAt": self.created_at.isoformat(),
            "updatedAt": self.updated_at.isoformat(),
        }
        if self.barcode is not None:
            data["barcode"] = self.barcode
        if self.batch_number is not None:
            data["batchNumber"] = self.batch_number
        if self.price is not None:
            data["price"] = self.price
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Product":
        """Create instance from a persisted dictionary."""
        return cls(
            id=str(data["id"]),
            name=data["name"],
            category=data.get("category", ""),
            unit=data.get("unit", ""),
            current_stock=int(data.get("currentStock", 0)),
            min_stock=int(data.get("minStock", 0)),
            expiry_date=data.get("expiryDate") or "",
            location=data.get("location", ""),
            supplier=data.get("supplier") or "",
            barcode=data.get("barcode") or None,
            batch_number=data.get("batchNumber"),
            price=data.get("price"),
            created_at=_parse_timestamp(data.get("createdAt")),
            updated_at=_parse_timestamp(data.get("updatedAt")),
        )


def _parse_timestamp(value: Any) -> datetime:
    if isinstance(value, datetime):
        return value
    if not value:
        return datetime.now()
    # Exports from the mobile app carry a trailing "Z"
    if isinstance(value, str) and value.endswith("Z"):
        value = value[:-1] + "+00:00"
    return datetime.fromisoformat(value)
