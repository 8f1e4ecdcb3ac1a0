"""
Client-side state for one open conversation.

Runs on a single event loop. API calls suspend the action that issued
them; push events arrive whenever the channel delivers them and may
interleave with any in-flight call. Every message the view has seen is
held in `_index` keyed by id, so a message that arrives both through the
send response and through the push channel is shown once.
"""

import bisect
import logging
from typing import Optional

from app.core.exceptions import ChatError
from app.core.realtime import PushChannel, Subscription
from app.chat.client import ChatApiClient
from app.chat.messages import message_sort_key
from app.chat.schemas import Message, MessageInserted

logger = logging.getLogger(__name__)


class RoomSession:
    def __init__(
        self,
        api: ChatApiClient,
        channel: PushChannel,
        me: str,
        partner_id: str,
        page_size: Optional[int] = None,
    ):
        self.api = api
        self.channel = channel
        self.me = me
        self.partner_id = partner_id
        self.page_size = page_size

        self.room_id: Optional[int] = None
        self.alive = False
        self.loading = False
        self.sending = False
        self.error: Optional[str] = None
        self.draft = ""

        self._index = {}
        self._order = []
        self._subscription: Optional[Subscription] = None

    @property
    def messages(self) -> list:
        return [self._index[key[1]] for key in self._order]

    def _remember(self, message: Message) -> bool:
        if message.id in self._index:
            return False
        self._index[message.id] = message
        bisect.insort(self._order, message_sort_key(message))
        return True

    async def open(self):
        """Resolve the room, subscribe, then load history and mark it read."""
        self.alive = True
        self.loading = True
        self.error = None
        try:
            handle = await self.api.resolve_room(self.partner_id)
            if not self.alive:
                return
            self.room_id = handle.room_id

            # Subscribe before loading so nothing inserted in between is missed;
            # overlap with the fetched page is removed by the id index.
            subscription = await self.channel.subscribe(handle.room_id, self._on_insert)
            if not self.alive:
                await self.channel.unsubscribe(subscription)
                return
            self._subscription = subscription

            await self.refresh()
        except ChatError as e:
            logger.warning(f"chat_session_open_failed partner_id={self.partner_id} error={e.detail}")
            self.error = e.detail
        finally:
            self.loading = False

    async def refresh(self):
        """Re-fetch the recent window and merge it in, e.g. after a reconnect."""
        try:
            messages = await self.api.fetch_recent(self.room_id, limit=self.page_size)
        except ChatError as e:
            logger.warning(f"chat_history_load_failed room_id={self.room_id} error={e.detail}")
            self.error = e.detail
            return
        if not self.alive:
            return
        self.error = None
        for message in messages:
            self._remember(message)
        await self._mark_read_quietly()

    async def load_older(self) -> int:
        """Page back from the oldest loaded message. Returns how many were added."""
        if not self._order:
            return 0
        oldest_id = min(self._index)
        try:
            messages = await self.api.fetch_recent(
                self.room_id, limit=self.page_size, before_id=oldest_id
            )
        except ChatError as e:
            self.error = e.detail
            return 0
        if not self.alive:
            return 0
        return sum(1 for message in messages if self._remember(message))

    async def send(self, text: Optional[str] = None) -> Optional[Message]:
        if text is not None:
            self.draft = text
        body = self.draft.strip()
        if not body:
            self.error = "Message body cannot be empty."
            return None
        if self.room_id is None:
            self.error = "Room is not open."
            return None

        self.sending = True
        self.error = None
        try:
            message = await self.api.send_message(self.room_id, body)
        except ChatError as e:
            # Draft stays in place so the user can retry.
            logger.warning(f"chat_send_failed room_id={self.room_id} error={e.detail}")
            self.error = e.detail
            return None
        finally:
            self.sending = False

        if self.alive:
            self._remember(message)
        self.draft = ""
        return message

    async def _on_insert(self, event: MessageInserted):
        if not self.alive or event.room_id != self.room_id:
            return
        added = self._remember(event.message)
        if added and event.message.sender_id != self.me:
            await self._mark_read_quietly()

    async def _mark_read_quietly(self):
        try:
            await self.api.mark_read(self.room_id)
        except ChatError as e:
            logger.warning(f"chat_mark_read_failed room_id={self.room_id} error={e.detail}")

    async def close(self):
        self.alive = False
        subscription, self._subscription = self._subscription, None
        if subscription is None:
            return
        try:
            await self.channel.unsubscribe(subscription)
        except ChatError as e:
            logger.warning(f"chat_session_unsubscribe_failed room_id={self.room_id} error={e.detail}")
