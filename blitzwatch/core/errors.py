"""
BlitzWatch - Error Taxonomy
Exceptions raised by the report lifecycle, community feed and moderation gate.
"""

from typing import Optional


class BlitzWatchError(Exception):
    """Base class for recoverable BlitzWatch failures."""


class ValidationError(BlitzWatchError):
    """A required field is missing or blank."""

    def __init__(self, field: str, message: Optional[str] = None):
        self.field = field
        super().__init__(message or f"'{field}' must not be empty")


class NotFoundError(BlitzWatchError):
    """The referenced report is unknown; the caller should refresh."""

    def __init__(self, report_id: str):
        self.report_id = report_id
        super().__init__(f"Report not found: {report_id}")


class StoreError(BlitzWatchError):
    """The backing store failed. Never retried automatically."""


class ModerationBlocked(BlitzWatchError):
    """Text contains disallowed language and was rejected outright."""

    def __init__(self, message: str = "Message contains disallowed language"):
        super().__init__(message)


class IdentityRequiredError(BlitzWatchError):
    """An operation needs a user identity but none is available."""


class ModerationPending(Exception):
    """
    A submission is suspended until the user answers the plate warning.

    Not a failure: the caller resolves it with ``confirm()`` or ``cancel()``
    on the submission that raised it.
    """

    def __init__(self, detection):
        self.detection = detection
        plates = ", ".join(detection.plates)
        super().__init__(f"License plate detected, confirmation required: {plates}")
