"""
Operator notifications.

Human-readable outcome messages of validation, submission, polling and
transfers. The default notifier writes them to the log; callers that own a
UI subclass it and override `deliver`.
"""

from dataclasses import dataclass
from enum import StrEnum

from loguru import logger


class NotificationLevel(StrEnum):
    """Severity of an operator notification."""

    INFO = "info"
    SUCCESS = "success"
    WARNING = "warning"
    ERROR = "error"


@dataclass(frozen=True)
class Notification:
    """One message for the operator."""

    level: NotificationLevel
    message: str
    bulk_transaction_id: str | None = None


class Notifier:
    """Log-backed notifier."""

    async def deliver(self, notification: Notification) -> None:
        """Deliver one notification."""
        log = logger.bind(bulk_transaction_id=notification.bulk_transaction_id)
        if notification.level is NotificationLevel.ERROR:
            log.error(notification.message)
        elif notification.level is NotificationLevel.WARNING:
            log.warning(notification.message)
        elif notification.level is NotificationLevel.SUCCESS:
            log.success(notification.message)
        else:
            log.info(notification.message)

    async def notify(
        self,
        level: NotificationLevel,
        message: str,
        bulk_transaction_id: str | None = None,
    ) -> None:
        await self.deliver(Notification(level, message, bulk_transaction_id))

    async def info(self, message: str, bulk_transaction_id: str | None = None) -> None:
        await self.notify(NotificationLevel.INFO, message, bulk_transaction_id)

    async def success(self, message: str, bulk_transaction_id: str | None = None) -> None:
        await self.notify(NotificationLevel.SUCCESS, message, bulk_transaction_id)

    async def warning(self, message: str, bulk_transaction_id: str | None = None) -> None:
        await self.notify(NotificationLevel.WARNING, message, bulk_transaction_id)

    async def error(self, message: str, bulk_transaction_id: str | None = None) -> None:
        await self.notify(NotificationLevel.ERROR, message, bulk_transaction_id)


class RecordingNotifier(Notifier):
    """Notifier that keeps every delivered notification in memory."""

    def __init__(self) -> None:
        self.notifications: list[Notification] = []

    async def deliver(self, notification: Notification) -> None:
        self.notifications.append(notification)
        await super().deliver(notification)

    def of_level(self, level: NotificationLevel) -> list[Notification]:
        return [n for n in self.notifications if n.level is level]
