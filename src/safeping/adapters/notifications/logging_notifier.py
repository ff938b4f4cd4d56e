"""Notifier that writes notifications to the log."""

import logging

from safeping.domain.ports.notifier import Notifier

logger = logging.getLogger(__name__)


class LoggingNotifier(Notifier):
    """Logs notifications; used where no platform notification service exists."""

    async def notify(self, title: str, body: str) -> None:
        logger.info(f"Notification: {title} - {body}")
