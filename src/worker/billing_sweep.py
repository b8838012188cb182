"""Billing Sweep Background Worker

Invoices every project whose billing anchor day is today, then reports the
outcome through the notification service.
Can be run as a standalone script or integrated with a scheduler.
"""

import asyncio
import logging
from datetime import date, datetime
from typing import Optional
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.orm import sessionmaker
from sqlmodel.ext.asyncio.session import AsyncSession

from config import ApplicationConfig
from src.adapter.repositories.project_repository import SqlAlchemyProjectRepository
from src.adapter.services.notification_service import create_notification_service
from src.app.services.notification_service import NotificationService
from src.app.services.payment_gateway import PaymentGateway
from src.app.use_cases.billing import BillingSettings, RunBillingSweep, SweepResultDTO
from src.depends import create_payment_gateway, sweep_unit_factory

logger = logging.getLogger(__name__)


class BillingSweepWorker:
    """
    Background worker for the daily billing sweep

    Features:
    - Runs once per UTC day
    - Each project is composed in its own session
    - Summary delivered via log and optional webhook
    - Can run once or continuously

    Usage:
        # Run for today (typical cron usage)
        worker = BillingSweepWorker()
        result = await worker.run_once()

        # Replay a specific day
        result = await worker.run_once(today=date(2024, 3, 15))

        # Run continuously
        await worker.run_forever()
    """

    def __init__(
        self,
        db_uri: Optional[str] = None,
        settings: Optional[BillingSettings] = None,
        gateway: Optional[PaymentGateway] = None,
        notification_service: Optional[NotificationService] = None,
    ):
        """
        Initialize the worker

        Args:
            db_uri: Database URI (defaults to ApplicationConfig.DB_URI)
            settings: Billing settings (defaults to ApplicationConfig values)
            gateway: Payment gateway (defaults to Stripe)
            notification_service: Summary sink (defaults to log + optional webhook)
        """
        self.db_uri = db_uri or ApplicationConfig.DB_URI
        self.settings = settings or BillingSettings.from_config(ApplicationConfig)
        self.gateway = gateway or create_payment_gateway(self.settings)
        self.notification_service = notification_service or create_notification_service(
            self.settings.sweep_notification_webhook
        )

        self.engine = create_async_engine(self.db_uri, echo=False, future=True)
        self.async_session_factory = sessionmaker(
            self.engine, class_=AsyncSession, expire_on_commit=False, autoflush=False
        )

        logger.info("BillingSweepWorker initialized")

    async def run_once(self, today: Optional[date] = None) -> SweepResultDTO:
        """
        Run the sweep for one day

        Args:
            today: Day to sweep (defaults to the current UTC date)

        Returns:
            SweepResultDTO with per-project results
        """
        today = today or datetime.utcnow().date()

        async with self.async_session_factory() as session:
            use_case = RunBillingSweep(
                project_repo=SqlAlchemyProjectRepository(session),
                unit_factory=sweep_unit_factory(self.async_session_factory, self.gateway, self.settings),
                settings=self.settings,
            )
            result = await use_case.execute(today)

        if result.is_err():
            raise RuntimeError(f"Billing sweep failed: {result.error.message}")

        summary = result.value
        await self.notification_service.publish_sweep_report(summary.model_dump(mode="json"))
        return summary

    async def run_forever(self, check_interval_seconds: Optional[int] = None):
        """
        Run the sweep continuously, at most once per UTC day

        Args:
            check_interval_seconds: Seconds between checks (defaults to the configured interval)
        """
        interval = check_interval_seconds or self.settings.sweep_interval_seconds
        logger.info(f"Starting continuous billing sweep with {interval}s interval")

        last_swept_day = None

        while True:
            try:
                today = datetime.utcnow().date()
                if last_swept_day != today:
                    result = await self.run_once(today)
                    last_swept_day = today
                    logger.info(f"Swept {today.isoformat()}: {result.created} invoices created")
                else:
                    logger.debug(f"Skipping sweep - {today.isoformat()} already processed")

            except Exception as e:
                logger.error(f"Billing sweep cycle failed: {e}")

            await asyncio.sleep(interval)

    async def shutdown(self):
        """Cleanup resources"""
        await self.engine.dispose()
        logger.info("BillingSweepWorker shutdown complete")


async def main():
    """
    Entry point for running the worker as a standalone script

    Usage:
        # Sweep today
        python -m src.worker.billing_sweep

        # Sweep a specific day
        python -m src.worker.billing_sweep --date 2024-03-15

        # Run continuously
        python -m src.worker.billing_sweep --continuous
    """
    import sys
    import argparse

    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    parser = argparse.ArgumentParser(description="Billing Sweep Worker")
    parser.add_argument("--date", type=date.fromisoformat, help="Day to sweep (YYYY-MM-DD)")
    parser.add_argument(
        "--continuous", action="store_true", help="Run continuously"
    )
    args = parser.parse_args()

    settings = BillingSettings.from_config(ApplicationConfig)
    if not settings.sweep_enabled:
        logger.info("Billing sweep is disabled (BILLING_SWEEP_ENABLED=false)")
        return
    if not settings.cron_secret:
        logger.error("CRON_SECRET is not configured; refusing to run the billing sweep")
        sys.exit(1)

    worker = BillingSweepWorker(settings=settings)

    try:
        if args.continuous:
            await worker.run_forever()
        else:
            result = await worker.run_once(today=args.date)
            print(f"Billing sweep complete for {result.run_date.isoformat()}:")
            print(f"  Projects processed: {result.processed}")
            print(f"  Invoices created: {result.created}")
            print(f"  Skipped: {result.skipped}")
            print(f"  Errors: {result.errors}")
    except KeyboardInterrupt:
        logger.info("Received shutdown signal")
    finally:
        await worker.shutdown()


if __name__ == "__main__":
    asyncio.run(main())
