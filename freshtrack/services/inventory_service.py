"""Main inventory service orchestrator."""

from datetime import datetime
from typing import Callable, Optional

from .alert_engine import AlertEngine
from .ledger_store import LedgerStore
from .movement_processor import MovementProcessor, new_id
from .scan_debouncer import ScanDebouncer, monotonic_ms
from .scan_service import ScanService
from ..storage.backends import KeyValueStore, create_backend
from ..storage.notifier import ChangeNotifier
from ..utils.config import AppConfig, get_config
from ..utils.logger import get_ledger_logger


class InventoryService:
    """
    Wires the ledger components together for one site.

    The CLI, the HTTP API and the scheduler each hold one instance; tests
    build isolated ones by passing an in-memory backend and fixed clocks.
    """

    def __init__(
        self,
        backend: Optional[KeyValueStore] = None,
        config: Optional[AppConfig] = None,
        clock: Callable[[], datetime] = datetime.now,
        scan_clock: Callable[[], float] = monotonic_ms,
        id_factory: Callable[[], str] = new_id
    ):
        self.config = config or get_config()
        self.logger = get_ledger_logger()

        if backend is None:
            backend = create_backend(self.config.storage.backend, self.config.storage.data_dir)

        self.notifier = ChangeNotifier()
        self.store = LedgerStore(backend, self.notifier)
        self.alert_engine = AlertEngine(
            self.store,
            clock=clock,
            soon_days=self.config.alerts.expiry_soon_days,
            week_days=self.config.alerts.expiring_week_days,
        )
        self.processor = MovementProcessor(self.store, self.alert_engine, clock=clock, id_factory=id_factory)
        self.scanner = ScanService(
            self.store,
            self.processor,
            ScanDebouncer(
                cooldown_ms=self.config.scanner.cooldown_ms,
                processing_timeout_ms=self.config.scanner.processing_timeout_ms,
                clock=scan_clock,
            ),
        )
        self.clock = clock

    def load(self) -> "InventoryService":
        self.store.load()
        return self

    def refresh_alerts(self):
        """Recompute every product's alerts against the current date."""
        return self.alert_engine.refresh_all(self.clock())

    def close(self):
        self.scanner.reset()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
