"""Alert data model."""

from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Dict, Any

from .product import _parse_timestamp

ALERT_EXPIRY = "expiry"
ALERT_LOW_STOCK = "low_stock"
ALERT_TYPES = (ALERT_EXPIRY, ALERT_LOW_STOCK)

SEVERITY_LOW = "low"
SEVERITY_MEDIUM = "medium"
SEVERITY_HIGH = "high"
SEVERITIES = (SEVERITY_LOW, SEVERITY_MEDIUM, SEVERITY_HIGH)


@dataclass(frozen=True)
class Alert:
    """A derived notification about a product's expiry or stock level."""

    id: str
    type: str
    severity: str
    product_id: str
    product_name: str
    message: str
    acknowledged: bool = False
    timestamp: datetime = field(default_factory=datetime.now)

    def __post_init__(self):
        """Validate data."""
        if self.type not in ALERT_TYPES:
            raise ValueError("Alert type must be 'expiry' or 'low_stock'")

        if self.severity not in SEVERITIES:
            raise ValueError("Severity must be 'low', 'medium' or 'high'")

    def acknowledge(self) -> "Alert":
        """Return an acknowledged copy."""
        return replace(self, acknowledged=True)

    def same_as(self, other: "Alert") -> bool:
        """Compare every field except the generation timestamp."""
        return replace(self, timestamp=other.timestamp) == other

    def to_dict(self) -> Dict[str, Any]:
        """Convert to the persisted camelCase representation."""
        return {
            "id": self.id,
            "type": self.type,
            "severity": self.severity,
            "productId": self.product_id,
            "productName": self.product_name,
            "message": self.message,
            "timestamp": self.timestamp.isoformat(),
            "acknowledged": self.acknowledged,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Alert":
        """Create instance from a persisted dictionary."""
        return cls(
            id=str(data["id"]),
            type=data["type"],
            severity=data["severity"],
            product_id=str(data["productId"]),
            product_name=data.get("productName", ""),
            message=data.get("message", ""),
            acknowledged=bool(data.get("acknowledged", False)),
            timestamp=_parse_timestamp(data.get("timestamp")),
        )
