"""
BlitzWatch - Alerts Module
Local notifications for newly reported sightings.
"""

from blitzwatch.alerts.notifier import (
    LocalNotification,
    ReportNotifier,
)

__all__ = [
    "LocalNotification",
    "ReportNotifier",
]
