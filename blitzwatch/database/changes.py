"""
Change notification fan-out shared by the store implementations
"""

import logging
from typing import Callable, Dict, List, Tuple

from blitzwatch.crowdsource.models import ChatMessage, Report, Unsubscribe

logger = logging.getLogger(__name__)

ReportCallbacks = Tuple[
    Callable[[Report], None],
    Callable[[Report], None],
    Callable[[str], None],
]


class ChangeFeed:
    """Delivers insert/update/delete notifications to subscribers in write order."""

    def __init__(self):
        self._report_subscribers: Dict[int, ReportCallbacks] = {}
        self._message_subscribers: Dict[int, Callable[[ChatMessage], None]] = {}
        self._next_token = 0

    def subscribe(
        self,
        on_insert: Callable[[Report], None],
        on_update: Callable[[Report], None],
        on_delete: Callable[[str], None],
    ) -> Unsubscribe:
        token = self._token()
        self._report_subscribers[token] = (on_insert, on_update, on_delete)
        logger.debug(f"Report subscriber {token} added")
        return lambda: self._drop(self._report_subscribers, token)

    def subscribe_messages(self, on_insert: Callable[[ChatMessage], None]) -> Unsubscribe:
        token = self._token()
        self._message_subscribers[token] = on_insert
        logger.debug(f"Message subscriber {token} added")
        return lambda: self._drop(self._message_subscribers, token)

    @property
    def subscriber_count(self) -> int:
        return len(self._report_subscribers) + len(self._message_subscribers)

    def report_inserted(self, report: Report) -> None:
        for on_insert, _, _ in self._report_callbacks():
            on_insert(report)

    def report_updated(self, report: Report) -> None:
        for _, on_update, _ in self._report_callbacks():
            on_update(report)

    def report_deleted(self, report_id: str) -> None:
        for _, _, on_delete in self._report_callbacks():
            on_delete(report_id)

    def message_inserted(self, message: ChatMessage) -> None:
        for on_insert in list(self._message_subscribers.values()):
            on_insert(message)

    def _report_callbacks(self) -> List[ReportCallbacks]:
        # copy, callbacks may unsubscribe while being notified
        return list(self._report_subscribers.values())

    def _token(self) -> int:
        self._next_token += 1
        return self._next_token

    @staticmethod
    def _drop(subscribers: Dict, token: int) -> None:
        if subscribers.pop(token, None) is not None:
            logger.debug(f"Subscriber {token} removed")
