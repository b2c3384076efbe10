"""Pytest configuration and fixtures."""

import itertools
from datetime import datetime, timedelta

import pytest

from freshtrack.models.product import Product
from freshtrack.services.inventory_service import InventoryService
from freshtrack.services.scan_debouncer import ScanDebouncer
from freshtrack.storage.backends import InMemoryStore

NOW = datetime(2025, 6, 15, 10, 0, 0)


class FakeClock:
    """Controllable wall clock returning datetimes."""

    def __init__(self, now: datetime = NOW):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs):
        self.now += timedelta(**kwargs)


class FakeScanClock:
    """Controllable millisecond clock for the scan debouncer."""

    def __init__(self, now: float = 0.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, ms: float):
        self.now += ms


class FailingStore(InMemoryStore):
    """In-memory backend whose writes fail on demand."""

    def __init__(self, initial=None):
        super().__init__(initial)
        self.fail = False
        self.writes = 0

    def set_many(self, items):
        self.writes += 1
        if self.fail:
            raise OSError("disk full")
        super().set_many(items)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def scan_clock():
    return FakeScanClock()


@pytest.fixture
def id_factory():
    counter = itertools.count(1)
    return lambda: f"id-{next(counter)}"


@pytest.fixture
def failing_backend():
    return FailingStore()


@pytest.fixture
def backend(failing_backend):
    return failing_backend


@pytest.fixture
def service(backend, clock, scan_clock, id_factory):
    """An isolated inventory service on an in-memory backend."""
    return InventoryService(
        backend=backend,
        clock=clock,
        scan_clock=scan_clock,
        id_factory=id_factory,
    ).load()


@pytest.fixture
def store(service):
    return service.store


@pytest.fixture
def processor(service):
    return service.processor


@pytest.fixture
def engine(service):
    return service.alert_engine


@pytest.fixture
def debouncer(scan_clock):
    return ScanDebouncer(cooldown_ms=2000, processing_timeout_ms=5000, clock=scan_clock)


@pytest.fixture
def sample_product():
    """Create a sample Product for testing."""
    return Product(
        id="p-1",
        name="Tomaten",
        category="Gemüse",
        unit="kg",
        current_stock=10,
        min_stock=5,
        expiry_date="31.12.2099",
        location="Kühlschrank A1",
        supplier="Frischhof",
        barcode="4001234567890",
        created_at=NOW,
        updated_at=NOW,
    )


@pytest.fixture
def tomatoes(processor):
    """A persisted product matching the end-to-end scenario."""
    return processor.create_product(
        name="Tomaten",
        category="Gemüse",
        unit="kg",
        current_stock=10,
        min_stock=5,
        expiry_date="31.12.2099",
        location="Kühlschrank A1",
        barcode="4001234567890",
    )


@pytest.fixture
def sample_export_document():
    """An export document as produced by the mobile app."""
    return {
        "metadata": {
            "exportDate": "2025-01-27T10:00:00Z",
            "version": "1.0.0",
            "format": "JSON",
            "recordCounts": {"products": 1, "movements": 1, "alerts": 1},
        },
        "products": [
            {
                "id": "1",
                "name": "Test Product",
                "category": "Test Category",
                "currentStock": 10,
                "minStock": 5,
                "unit": "kg",
                "expiryDate": "31.12.2025",
                "location": "Test Location",
                "createdAt": "2025-01-27T10:00:00Z",
                "updatedAt": "2025-01-27T10:00:00Z",
            }
        ],
        "movements": [
            {
                "id": "1",
                "productId": "1",
                "productName": "Test Product",
                "type": "in",
                "quantity": 5,
                "reason": "Test Reason",
                "user": "Test User",
                "timestamp": "2025-01-27T10:00:00Z",
            }
        ],
        "alerts": [
            {
                "id": "1",
                "type": "low_stock",
                "severity": "medium",
                "productId": "1",
                "productName": "Test Product",
                "message": "Test Alert",
                "timestamp": "2025-01-27T10:00:00Z",
                "acknowledged": False,
            }
        ],
    }
