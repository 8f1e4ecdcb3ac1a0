"""
Push channel delivering new chat messages to subscribed clients.

Delivery is at-least-once with no replay of events missed while
disconnected, so subscribers treat it as a liveness signal and re-fetch
after reconnecting.
"""

import asyncio
import inspect
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Union

from supabase import AsyncClient

from app.core.exceptions import EventDecodeError, StoreError
from app.core.supabase_client import get_async_supabase
from app.chat.events import decode_message_inserted
from app.chat.models import MESSAGES_TABLE
from app.chat.schemas import MessageInserted

logger = logging.getLogger(__name__)

InsertHandler = Callable[[MessageInserted], Union[None, Awaitable[None]]]


def room_topic(room_id: int) -> str:
    return f"chat_room_{room_id}"


@dataclass
class Subscription:
    room_id: int
    topic: str
    handle: Any = None
    active: bool = True


class PushChannel(ABC):
    @abstractmethod
    async def subscribe(self, room_id: int, on_insert: InsertHandler) -> Subscription:
        ...

    @abstractmethod
    async def unsubscribe(self, subscription: Subscription) -> None:
        ...


@dataclass
class _Dispatcher:
    """Decodes raw payloads and hands typed events to the subscriber."""

    room_id: int
    on_insert: InsertHandler
    tasks: set = field(default_factory=set)

    def __call__(self, payload):
        try:
            event = decode_message_inserted(payload)
        except EventDecodeError as e:
            logger.warning(f"realtime_payload_dropped room_id={self.room_id} error={e.detail}")
            return

        if event.room_id != self.room_id:
            logger.warning(
                f"realtime_event_wrong_room expected={self.room_id} got={event.room_id}"
            )
            return

        result = self.on_insert(event)
        if inspect.isawaitable(result):
            task = asyncio.ensure_future(result)
            self.tasks.add(task)
            task.add_done_callback(self._finished)

    def _finished(self, task):
        self.tasks.discard(task)
        if not task.cancelled() and task.exception() is not None:
            logger.error(
                f"realtime_handler_failed room_id={self.room_id}",
                exc_info=task.exception(),
            )


class SupabasePushChannel(PushChannel):
    def __init__(self, client: AsyncClient, schema: str = "public"):
        self.client = client
        self.schema = schema

    async def subscribe(self, room_id: int, on_insert: InsertHandler) -> Subscription:
        topic = room_topic(room_id)
        dispatcher = _Dispatcher(room_id, on_insert)

        try:
            channel = self.client.channel(topic).on_postgres_changes(
                "INSERT",
                callback=dispatcher,
                table=MESSAGES_TABLE,
                schema=self.schema,
                filter=f"room_id=eq.{room_id}",
            )
            await channel.subscribe()
        except Exception as e:
            logger.warning(f"realtime_subscribe_failed topic={topic} error={e}")
            raise StoreError(f"Realtime subscribe failed on {topic}: {e}") from e
        logger.info(f"realtime_subscribed topic={topic}")

        return Subscription(room_id=room_id, topic=topic, handle=channel)

    async def unsubscribe(self, subscription: Subscription) -> None:
        if not subscription.active:
            return
        subscription.active = False
        try:
            await self.client.remove_channel(subscription.handle)
        except Exception as e:
            logger.warning(f"realtime_unsubscribe_failed topic={subscription.topic} error={e}")
            raise StoreError(f"Realtime unsubscribe failed on {subscription.topic}: {e}") from e
        logger.info(f"realtime_unsubscribed topic={subscription.topic}")


async def create_push_channel(access_token: str = None) -> SupabasePushChannel:
    """Open a realtime connection, scoped to a user's token when given."""
    return SupabasePushChannel(await get_async_supabase(access_token))
