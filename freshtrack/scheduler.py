"""Background scheduler for the nightly alert refresh.

Expiry alerts depend on the current date, so they go stale overnight even
when no product changes. Supports two modes:
  - **Standalone** (``python -m freshtrack.scheduler``): runs a
    ``BlockingScheduler`` as a separate worker process.
  - **Embedded** (``create_background_scheduler()``): returns a
    ``BackgroundScheduler`` that the API process starts in its ``lifespan``
    handler.
"""

import signal
import sys
from datetime import datetime, timedelta
from typing import Callable

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.schedulers.blocking import BlockingScheduler
from apscheduler.triggers.cron import CronTrigger

from .services.inventory_service import InventoryService
from .utils.config import get_config
from .utils.logger import get_ledger_logger, get_scheduler_logger

JOB_ID = "alert_refresh"


# ------------------------------------------------------------------
# Shared job factory
# ------------------------------------------------------------------

def make_refresh_job(service: InventoryService) -> Callable[[], None]:
    """Create and return the alert-refresh callable."""
    logger = get_ledger_logger()

    def refresh_job():
        logger.info("=" * 70)
        logger.info(f"Scheduled alert refresh started at {datetime.now()}")

        try:
            service.store.load()
            alerts = service.refresh_alerts()
            summary = service.alert_engine.summary()
            logger.info(f"  Products:          {summary['total_products']}")
            logger.info(f"  Active alerts:     {len(alerts)}")
            logger.info(f"  Expired:           {summary['expired']}")
            logger.info(f"  Expiring (7 days): {summary['expires_today'] + summary['expires_this_week']}")
            logger.info(f"  Low stock:         {summary['low_stock']}")
        except Exception as e:
            logger.error(f"Alert refresh failed with exception: {str(e)}", exc_info=True)

        logger.info("=" * 70)

    return refresh_job


def _cron_trigger() -> CronTrigger:
    config = get_config()
    return CronTrigger(
        hour=config.scheduler.alert_refresh_hour,
        minute=config.scheduler.alert_refresh_minute,
        timezone=config.scheduler.timezone,
    )


# ------------------------------------------------------------------
# Embedded (non-blocking) scheduler, used by the API process
# ------------------------------------------------------------------

def create_background_scheduler(service: InventoryService) -> BackgroundScheduler:
    """Create a ``BackgroundScheduler`` for embedding inside FastAPI.

    The scheduler is returned **not started**. A first refresh runs
    15 seconds after start so stale alerts from a previous day are
    replaced without waiting for the nightly run.
    """
    config = get_config()
    get_scheduler_logger()
    refresh_job = make_refresh_job(service)

    scheduler = BackgroundScheduler(timezone=config.scheduler.timezone)
    scheduler.add_job(
        func=refresh_job,
        trigger=_cron_trigger(),
        id=JOB_ID,
        name="Nightly alert refresh",
        max_instances=config.scheduler.max_instances,
        coalesce=config.scheduler.coalesce,
        misfire_grace_time=config.scheduler.misfire_grace_time,
        replace_existing=True
    )
    scheduler.add_job(
        func=refresh_job,
        trigger="date",
        run_date=datetime.now() + timedelta(seconds=15),
        id="initial_alert_refresh",
        name="Alert refresh on startup",
    )

    get_ledger_logger().info(
        f"Background scheduler configured: alert refresh daily at "
        f"{config.scheduler.alert_refresh_hour:02d}:{config.scheduler.alert_refresh_minute:02d} "
        f"({config.scheduler.timezone})"
    )
    return scheduler


# ------------------------------------------------------------------
# Standalone (blocking) scheduler
# ------------------------------------------------------------------

class AlertRefreshScheduler:
    """Blocking scheduler running only the nightly alert refresh."""

    def __init__(self, service: InventoryService = None):
        self.config = get_config()
        self.logger = get_ledger_logger()
        get_scheduler_logger()
        self.service = service or InventoryService()
        self.refresh_job = make_refresh_job(self.service)

        self.scheduler = BlockingScheduler(timezone=self.config.scheduler.timezone)

        signal.signal(signal.SIGINT, self._shutdown_handler)
        signal.signal(signal.SIGTERM, self._shutdown_handler)

    def _shutdown_handler(self, signum, frame):
        self.logger.info(f"Received shutdown signal ({signum}). Stopping scheduler...")
        self.scheduler.shutdown(wait=True)
        sys.exit(0)

    def start(self):
        """Start the blocking scheduler (runs forever)."""
        sc = self.config.scheduler

        self.logger.info("=" * 70)
        self.logger.info("FreshTrack Alert Scheduler Starting (standalone)")
        self.logger.info("=" * 70)
        self.logger.info(f"Environment:      {self.config.env.environment}")
        self.logger.info(f"Timezone:         {sc.timezone}")
        self.logger.info(f"Refresh at:       {sc.alert_refresh_hour:02d}:{sc.alert_refresh_minute:02d}")
        self.logger.info(f"Data directory:   {self.config.storage.data_dir}")
        self.logger.info("=" * 70)

        self.scheduler.add_job(
            func=self.refresh_job,
            trigger=_cron_trigger(),
            id=JOB_ID,
            name="Nightly alert refresh",
            max_instances=sc.max_instances,
            coalesce=sc.coalesce,
            misfire_grace_time=sc.misfire_grace_time,
            replace_existing=True
        )

        self.logger.info("Running initial alert refresh...")
        self.refresh_job()

        self.logger.info("Scheduler started. Press Ctrl+C to stop.")
        try:
            self.scheduler.start()
        except (KeyboardInterrupt, SystemExit):
            self.logger.info("Scheduler stopped.")


def main():
    """Main entry point for standalone scheduler."""
    try:
        scheduler = AlertRefreshScheduler()
        scheduler.start()
    except Exception as e:
        logger = get_ledger_logger()
        logger.error(f"Scheduler failed to start: {str(e)}", exc_info=True)
        sys.exit(1)


if __name__ == "__main__":
    main()
