"""Scan intake: debounced barcode events driving product lookup and creation."""

from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional

from .ledger_store import LedgerStore
from .movement_processor import MovementProcessor
from .scan_debouncer import ScanDebouncer, STATE_DIALOG_ACTIVE
from ..models.product import Product
from ..utils.exceptions import ValidationError
from ..utils.logger import get_scanner_logger, get_error_logger

OUTCOME_DROPPED = "dropped"
OUTCOME_FOUND = "found"
OUTCOME_NOT_FOUND = "not_found"


@dataclass
class ScanOutcome:
    """Result of offering one raw scan to the pipeline."""

    outcome: str
    code: str
    product: Optional[Product] = None

    @property
    def admitted(self) -> bool:
        return self.outcome != OUTCOME_DROPPED

    def to_dict(self) -> Dict[str, Any]:
        return {
            "outcome": self.outcome,
            "code": self.code,
            "product": self.product.to_dict() if self.product else None,
        }


class ScanService:
    """
    Sole consumer of the scan source.

    A matched barcode runs ``on_product_found`` (typically opening the
    movement entry form) and frees the scanner; a miss leaves the scanner
    blocked on the create-product prompt until ``confirm_create`` or
    ``cancel_create`` is called.
    """

    def __init__(
        self,
        store: LedgerStore,
        processor: MovementProcessor,
        debouncer: Optional[ScanDebouncer] = None,
        on_product_found: Optional[Callable[[Product], None]] = None
    ):
        self.store = store
        self.processor = processor
        self.debouncer = debouncer or ScanDebouncer()
        self.on_product_found = on_product_found
        self.pending_barcode: Optional[str] = None
        self.logger = get_scanner_logger()
        self.error_logger = get_error_logger()

    @property
    def state(self) -> str:
        return self.debouncer.state

    def handle_scan(self, code: str, now: Optional[float] = None) -> ScanOutcome:
        """
        Offer a raw decoded barcode.

        Args:
            code: Raw decoded string from the camera or manual entry
            now: Event time in ms, defaults to the debouncer clock

        Returns:
            ScanOutcome with ``dropped``, ``found`` or ``not_found``
        """
        code = (code or "").strip()
        if not self.debouncer.scan(code, now):
            return ScanOutcome(OUTCOME_DROPPED, code)

        try:
            product = self.store.find_by_barcode(code)
            if product is None:
                self.pending_barcode = code
                self.debouncer.resolve_missing(now)
                self.logger.info(f"No product for barcode {code}, awaiting create decision")
                return ScanOutcome(OUTCOME_NOT_FOUND, code)

            self.logger.info(f"Barcode {code} matched {product.name} ({product.id})")
            if self.on_product_found:
                self.on_product_found(product)
            self.debouncer.resolve_found(now)
            return ScanOutcome(OUTCOME_FOUND, code, product)

        except Exception as e:
            self.error_logger.error(f"Scan pipeline failed for {code}: {str(e)}", exc_info=True)
            self.pending_barcode = None
            self.debouncer.reset()
            raise

    def confirm_create(self, now: Optional[float] = None, **data: Any) -> Product:
        """
        Create a product for the pending barcode and free the scanner.

        Raises:
            ValidationError: If no prompt is open or the product data is invalid.
                On invalid data the prompt stays open so the form can be corrected.
        """
        if self.debouncer.state_at(now) != STATE_DIALOG_ACTIVE:
            raise ValidationError("No pending barcode to create a product for")

        data["barcode"] = self.pending_barcode
        product = self.processor.create_product(**data)
        self.pending_barcode = None
        self.debouncer.confirm(now)
        return product

    def cancel_create(self, now: Optional[float] = None) -> bool:
        """User declined or dismissed the create-product prompt."""
        cancelled = self.debouncer.cancel(now)
        if cancelled:
            self.logger.info(f"Product creation for barcode {self.pending_barcode} cancelled")
            self.pending_barcode = None
        return cancelled

    def reset(self) -> None:
        """Tear down: forget any pending prompt and force the scanner idle."""
        self.pending_barcode = None
        self.debouncer.reset()
