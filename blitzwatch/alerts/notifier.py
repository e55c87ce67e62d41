"""
Local notifications for new sightings
Announces reports that arrive through the realtime channel
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Optional

from blitzwatch.core.constants import NEW_REPORT_TITLE, NO_DETAILS_TEXT

logger = logging.getLogger(__name__)


@dataclass
class LocalNotification:
    """Notification handed to the device's notification system."""
    title: str
    body: str
    data: Dict[str, Any] = field(default_factory=dict)
    sent_at: Optional[datetime] = None
    status: str = "pending"


NotificationSender = Callable[[LocalNotification], None]


class ReportNotifier:
    """
    Builds and dispatches the "new report" notification.

    Delivery itself is the sender's job; without one the notification
    is only logged.
    """

    def __init__(self, sender: Optional[NotificationSender] = None):
        self.sender = sender

    def build(self, report) -> LocalNotification:
        details = report.description or NO_DETAILS_TEXT
        return LocalNotification(
            title=NEW_REPORT_TITLE,
            body=f"Neuer Blitzer in der {report.street} ({details})",
            data={"report_id": report.id, "type": report.kind.value},
        )

    def notify_new_report(self, report) -> LocalNotification:
        """
        Send the notification for a newly seen report.

        Failures are logged and reported through ``status``, never raised.
        """
        notification = self.build(report)

        if self.sender is None:
            logger.info(f"Notification (no sender): {notification.body}")
            notification.status = "not_configured"
            return notification

        try:
            self.sender(notification)
            notification.status = "sent"
            notification.sent_at = datetime.now(timezone.utc)
        except Exception as e:
            logger.error(f"Notification send failed: {e}")
            notification.status = "failed"

        return notification
