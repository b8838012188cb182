"""Sweep report channels: log lines and an optional HTTP webhook"""

import logging
from typing import Any, Dict, List, Optional
import httpx
from src.app.services.notification_service import NotificationService

logger = logging.getLogger(__name__)


class LoggingNotificationService(NotificationService):
    async def publish_sweep_report(self, report: Dict[str, Any]) -> bool:
        failed = [r for r in report.get("results", []) if r.get("status") == "error"]
        logger.log(
            logging.WARNING if failed else logging.INFO,
            f"[BILLING SWEEP] {report.get('run_date')}: processed={report.get('processed', 0)} "
            f"created={report.get('created', 0)} skipped={report.get('skipped', 0)} "
            f"errors={report.get('errors', 0)}",
        )
        for entry in failed:
            logger.warning(f"[BILLING SWEEP] project {entry.get('project_id')}: {entry.get('message')}")
        return True


class WebhookNotificationService(NotificationService):
    """POSTs the report as JSON; any non-2xx answer counts as a failed delivery"""

    def __init__(self, webhook_url: str, timeout: float = 10.0):
        self.webhook_url = webhook_url
        self.timeout = timeout

    async def publish_sweep_report(self, report: Dict[str, Any]) -> bool:
        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.post(self.webhook_url, json={"type": "billing_sweep_report", **report})
                response.raise_for_status()
        except httpx.HTTPError as e:
            logger.error(f"Sweep report for {report.get('run_date')} not delivered: {e}")
            return False
        return True


class FanOutNotificationService(NotificationService):
    def __init__(self, channels: List[NotificationService]):
        self.channels = channels

    async def publish_sweep_report(self, report: Dict[str, Any]) -> bool:
        delivered = [await channel.publish_sweep_report(report) for channel in self.channels]
        return any(delivered)


def create_notification_service(webhook_url: Optional[str] = None) -> NotificationService:
    """Log channel, plus the webhook when one is configured"""
    if not webhook_url:
        return LoggingNotificationService()
    return FanOutNotificationService([LoggingNotificationService(), WebhookNotificationService(webhook_url)])
