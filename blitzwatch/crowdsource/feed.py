"""
Community chat feed
Keeps the recent message history and posts already-moderated messages
"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Dict, List, Optional

from blitzwatch.core.constants import MESSAGE_FETCH_LIMIT
from blitzwatch.core.errors import IdentityRequiredError, StoreError, ValidationError
from blitzwatch.crowdsource.models import ChatMessage, MessageStore

logger = logging.getLogger(__name__)


class CommunityFeed:
    """
    Local view of the community chat, oldest message first.

    Text must pass the moderation gate before ``post`` is called.
    """

    def __init__(self, store: MessageStore):
        self.store = store
        self._messages: List[ChatMessage] = []
        self._seen: Dict[str, ChatMessage] = {}

    async def refresh(self) -> List[ChatMessage]:
        """Load the most recent messages, replacing the local history."""
        try:
            recent = await self.store.list_recent_messages(MESSAGE_FETCH_LIMIT)
        except StoreError:
            raise
        except Exception as e:
            logger.error(f"Error loading messages: {e}")
            raise StoreError(f"list messages failed: {e}") from e

        # store returns newest first
        self._messages = sorted(recent, key=lambda m: m.created_at)
        self._seen = {m.id: m for m in self._messages}
        return self.messages()

    async def post(self, author_id: Optional[str], text: str) -> ChatMessage:
        """
        Store a moderated message.

        Raises:
            IdentityRequiredError: no user identity is available
            ValidationError: text is blank
            StoreError: the store rejected the insert
        """
        if not author_id:
            raise IdentityRequiredError(
                "Sie müssen angemeldet sein, um Nachrichten zu senden."
            )
        if not text or not text.strip():
            raise ValidationError("text")

        try:
            message = await self.store.insert_message(author_id, text)
        except StoreError:
            raise
        except Exception as e:
            logger.error(f"Error sending message: {e}")
            raise StoreError(f"insert message failed: {e}") from e

        self.reconcile(message)
        return message

    def reconcile(self, message: ChatMessage) -> None:
        """Append a message delivered by the change stream, once."""
        if not isinstance(message, ChatMessage) or not message.id:
            logger.debug(f"Dropping malformed message event: {message!r}")
            return
        if message.id in self._seen:
            return

        self._seen[message.id] = message
        self._messages.append(message)

    def messages(self) -> List[ChatMessage]:
        return list(self._messages)

    @asynccontextmanager
    async def connect(self) -> AsyncIterator["CommunityFeed"]:
        """Subscribe to new messages for the duration of a session."""
        unsubscribe = self.store.subscribe_messages(self.reconcile)
        try:
            await self.refresh()
            yield self
        finally:
            unsubscribe()
