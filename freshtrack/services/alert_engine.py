"""Alert generation and product status classification."""

from datetime import datetime
from typing import Callable, Dict, List, Optional

from .date_service import DateService
from .ledger_store import LedgerStore
from ..models.alert import (
    Alert,
    ALERT_EXPIRY,
    ALERT_LOW_STOCK,
    SEVERITY_HIGH,
    SEVERITY_MEDIUM,
)
from ..models.product import Product
from ..utils.exceptions import AlertNotFoundError
from ..utils.logger import get_ledger_logger

EXPIRY_SOON_DAYS = 3
EXPIRING_WEEK_DAYS = 7

STATUS_EXPIRED = "expired"
STATUS_EXPIRES_TODAY = "expires_today"
STATUS_EXPIRES_THIS_WEEK = "expires_this_week"
STATUS_LOW_STOCK = "low_stock"
STATUS_IN_STOCK = "in_stock"
STATUSES = (
    STATUS_EXPIRED,
    STATUS_EXPIRES_TODAY,
    STATUS_EXPIRES_THIS_WEEK,
    STATUS_LOW_STOCK,
    STATUS_IN_STOCK,
)


def days_until_expiry(product: Product, now: datetime) -> Optional[int]:
    """Days left before expiry, or None when the product has no usable date."""
    expiry = DateService.parse(product.expiry_date)
    if expiry is None:
        return None
    return DateService.days_until(expiry, now)


def compute_alerts(
    product: Product,
    now: datetime,
    soon_days: int = EXPIRY_SOON_DAYS
) -> List[Alert]:
    """
    Derive the alerts a product should carry at ``now``.

    Expiry tiers are mutually exclusive; low stock is independent of expiry,
    so zero, one or two alerts come back. Alert ids depend only on the
    product id and the tier, so recomputing replaces rather than duplicates.
    """
    alerts = []

    days = days_until_expiry(product, now)
    if days is not None:
        if days < 0:
            alerts.append(_alert(product, "expired", ALERT_EXPIRY, SEVERITY_HIGH,
                                 "Product has expired", now))
        elif days == 0:
            alerts.append(_alert(product, "expires-today", ALERT_EXPIRY, SEVERITY_HIGH,
                                 "Product expires today", now))
        elif days <= soon_days:
            alerts.append(_alert(product, "expires-soon", ALERT_EXPIRY, SEVERITY_MEDIUM,
                                 f"Product expires in {days} days", now))

    if product.current_stock <= product.min_stock:
        severity = SEVERITY_HIGH if product.current_stock == 0 else SEVERITY_MEDIUM
        message = f"Low stock: {product.current_stock} {product.unit}".rstrip()
        alerts.append(_alert(product, "low-stock", ALERT_LOW_STOCK, severity, message, now))

    return alerts


def _alert(product: Product, suffix: str, alert_type: str, severity: str,
           message: str, now: datetime) -> Alert:
    return Alert(
        id=f"{product.id}-{suffix}",
        type=alert_type,
        severity=severity,
        product_id=product.id,
        product_name=product.name,
        message=message,
        acknowledged=False,
        timestamp=now,
    )


def classify_status(
    product: Product,
    now: datetime,
    week_days: int = EXPIRING_WEEK_DAYS
) -> str:
    """
    Display status of a product, first match wins.

    Uses the 7-day "this week" window of the inventory screens, not the
    3-day window used for alerts.
    """
    days = days_until_expiry(product, now)
    if days is not None:
        if days < 0:
            return STATUS_EXPIRED
        if days == 0:
            return STATUS_EXPIRES_TODAY
        if days <= week_days:
            return STATUS_EXPIRES_THIS_WEEK
    if product.current_stock <= product.min_stock:
        return STATUS_LOW_STOCK
    return STATUS_IN_STOCK


class AlertEngine:
    """Keeps each product's alerts in the ledger in line with its current state."""

    def __init__(
        self,
        store: LedgerStore,
        clock: Callable[[], datetime] = datetime.now,
        soon_days: int = EXPIRY_SOON_DAYS,
        week_days: int = EXPIRING_WEEK_DAYS
    ):
        self.store = store
        self.clock = clock
        self.soon_days = soon_days
        self.week_days = week_days
        self.logger = get_ledger_logger()

    def compute_for(self, product: Product, now: Optional[datetime] = None) -> List[Alert]:
        return compute_alerts(product, now or self.clock(), self.soon_days)

    def replace_alerts(self, alerts: List[Alert], product_id: str, fresh: List[Alert]) -> List[Alert]:
        """The alert collection with every alert of ``product_id`` swapped for ``fresh``."""
        return [a for a in alerts if a.product_id != product_id] + fresh

    def recompute_alerts_for(self, product: Product, now: Optional[datetime] = None) -> List[Alert]:
        """
        Replace all stored alerts of a product with a fresh computation.

        Acknowledgements on the old alerts are discarded, so a condition that
        still holds surfaces again.
        """
        with self.store.locked():
            fresh = self.compute_for(product, now)
            self.store.save_alerts(self.replace_alerts(self.store.alerts, product.id, fresh))

        self.logger.debug(f"Alerts for {product.name} ({product.id}): {[a.id for a in fresh]}")
        return fresh

    def refresh_all(self, now: Optional[datetime] = None) -> List[Alert]:
        """Recompute alerts for every product in a single write."""
        now = now or self.clock()
        with self.store.locked():
            alerts = []
            for product in self.store.products:
                alerts.extend(self.compute_for(product, now))
            self.store.save_alerts(alerts)

        self.logger.info(f"Alert refresh complete: {len(alerts)} active alerts")
        return alerts

    def acknowledge(self, alert_id: str) -> Alert:
        """
        Mark one alert as acknowledged.

        Raises:
            AlertNotFoundError: If the alert does not exist
        """
        with self.store.locked():
            target = self.store.find_alert(alert_id)
            if target is None:
                raise AlertNotFoundError(
                    f"Alert not found: {alert_id}",
                    details={"alert_id": alert_id}
                )
            acknowledged = target.acknowledge()
            self.store.save_alerts([
                acknowledged if a.id == alert_id else a
                for a in self.store.alerts
            ])

        self.logger.info(f"Alert acknowledged: {alert_id}")
        return acknowledged

    def status_of(self, product: Product, now: Optional[datetime] = None) -> str:
        return classify_status(product, now or self.clock(), self.week_days)

    def summary(self, now: Optional[datetime] = None) -> Dict[str, int]:
        """Product count per display status, plus totals for dashboards."""
        now = now or self.clock()
        counts = {status: 0 for status in STATUSES}
        for product in self.store.products:
            counts[classify_status(product, now, self.week_days)] += 1
        counts["total_products"] = len(self.store.products)
        counts["open_alerts"] = sum(1 for a in self.store.alerts if not a.acknowledged)
        return counts
