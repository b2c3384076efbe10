"""Export and import of the full ledger as a JSON document."""

from datetime import datetime
from typing import Any, Dict, List

from .date_service import DateService
from .ledger_store import LedgerStore
from ..models.alert import Alert
from ..models.movement import Movement
from ..models.product import Product
from ..utils.exceptions import ImportValidationError
from ..utils.logger import get_ledger_logger

EXPORT_VERSION = "1.0.0"
EXPORT_FORMAT = "JSON"
COLLECTIONS = ("products", "movements", "alerts")
IMPORT_MODES = ("merge", "replace")


def export_filename(now: datetime) -> str:
    return f"freshtrack_export_{DateService.format(now)}.json"


def build_export(
    store: LedgerStore,
    now: datetime,
    version: str = EXPORT_VERSION,
    export_format: str = EXPORT_FORMAT
) -> Dict[str, Any]:
    """Snapshot the ledger with metadata describing the export."""
    products = [p.to_dict() for p in store.products]
    movements = [m.to_dict() for m in store.movements]
    alerts = [a.to_dict() for a in store.alerts]
    return {
        "metadata": {
            "exportDate": now.isoformat(),
            "version": version,
            "format": export_format,
            "recordCounts": {
                "products": len(products),
                "movements": len(movements),
                "alerts": len(alerts),
            },
        },
        "products": products,
        "movements": movements,
        "alerts": alerts,
    }


def validate_import(document: Any) -> None:
    """
    Check the structure of an import document.

    Raises:
        ImportValidationError: If metadata fields are missing or a collection
            is not an array
    """
    if not isinstance(document, dict):
        raise ImportValidationError("Import document must be a JSON object")

    metadata = document.get("metadata")
    if not isinstance(metadata, dict):
        raise ImportValidationError("Import document has no metadata")

    missing = [key for key in ("exportDate", "version") if not metadata.get(key)]
    if missing:
        raise ImportValidationError(
            f"Import metadata is missing: {', '.join(missing)}",
            details={"missing": missing}
        )

    not_arrays = [key for key in COLLECTIONS if not isinstance(document.get(key), list)]
    if not_arrays:
        raise ImportValidationError(
            f"Import collections must be arrays: {', '.join(not_arrays)}",
            details={"invalid": not_arrays}
        )


def _decode(records: List[Dict[str, Any]], factory, name: str) -> list:
    decoded = []
    for index, record in enumerate(records):
        try:
            decoded.append(factory(record))
        except (ValueError, KeyError, TypeError) as e:
            raise ImportValidationError(
                f"Invalid {name} record at index {index}: {str(e)}",
                details={"collection": name, "index": index}
            ) from e

    seen = set()
    for index, item in enumerate(decoded):
        if item.id in seen:
            raise ImportValidationError(
                f"Duplicate {name} id at index {index}: {item.id}",
                details={"collection": name, "index": index, "id": item.id}
            )
        seen.add(item.id)
    return decoded


def _merge(existing: list, incoming: list) -> list:
    """Upsert by id; imported records win, new ones keep their import order."""
    by_id = {item.id: item for item in incoming}
    merged = [by_id.pop(item.id, item) for item in existing]
    return merged + [item for item in incoming if item.id in by_id]


def import_document(store: LedgerStore, document: Any, mode: str = "merge") -> Dict[str, int]:
    """
    Validate and load an export document into the ledger in one write.

    Args:
        store: Target ledger
        document: Parsed JSON document
        mode: "merge" (upsert by id) or "replace"

    Returns:
        Record counts per collection after the import

    Raises:
        ImportValidationError: If the document or any record is invalid, or
            an id repeats within a collection.
            Nothing is written in that case.
    """
    if mode not in IMPORT_MODES:
        raise ImportValidationError(f"Unknown import mode: {mode}", details={"mode": mode})

    validate_import(document)
    products = _decode(document["products"], Product.from_dict, "products")
    movements = _decode(document["movements"], Movement.from_dict, "movements")
    alerts = _decode(document["alerts"], Alert.from_dict, "alerts")

    with store.locked():
        if mode == "merge":
            products = _merge(store.products, products)
            movements = _merge(store.movements, movements)
            movements.sort(key=lambda m: m.timestamp.replace(tzinfo=None), reverse=True)
            alerts = _merge(store.alerts, alerts)
        store.commit(products=products, movements=movements, alerts=alerts)

    counts = {"products": len(products), "movements": len(movements), "alerts": len(alerts)}
    get_ledger_logger().info(f"Import ({mode}) complete: {counts}")
    return counts
