import logging
from typing import Optional

from app.core.exceptions import ChatError, ValidationError
from app.core.record_store import RecordStore, desc, eq, lt
from app.chat.models import MESSAGES_TABLE, ROOMS_TABLE
from app.chat.schemas import Message
from app.utils.env_helper import env_int

logger = logging.getLogger(__name__)

HISTORY_LIMIT = env_int("CHAT_HISTORY_LIMIT", 300)


def message_sort_key(message: Message) -> tuple:
    return message.created_at, message.id


class MessageStore:
    """Append-only message log per room."""

    def __init__(self, store: RecordStore, history_limit: int = HISTORY_LIMIT):
        self.store = store
        self.history_limit = history_limit

    def append(self, room_id: int, sender: str, body: str) -> Message:
        text = (body or "").strip()
        if not text:
            raise ValidationError("Message body cannot be empty.")

        record = self.store.insert(
            MESSAGES_TABLE,
            {"room_id": room_id, "sender_id": sender, "body": text},
        )
        message = Message.model_validate(record)
        logger.info(f"chat_message_sent room_id={room_id} message_id={message.id}")

        self._touch_room(message)
        return message

    def _touch_room(self, message: Message):
        # Denormalised preview for room lists; never fails the send.
        try:
            self.store.update(
                ROOMS_TABLE,
                {
                    "last_message_text": message.body,
                    "last_message_at": message.created_at,
                },
                [eq("id", message.room_id)],
            )
        except ChatError as e:
            logger.warning(
                f"chat_room_preview_failed room_id={message.room_id} error={e.detail}"
            )

    def fetch_recent(
        self,
        room_id: int,
        limit: Optional[int] = None,
        before_id: Optional[int] = None,
    ) -> list:
        """
        Return the newest `limit` messages of a room, oldest first.

        `before_id` pages further back: only messages with a smaller id are
        considered.
        """
        limit = min(limit or self.history_limit, self.history_limit)
        if limit < 1:
            raise ValidationError("limit must be positive.")

        conditions = [eq("room_id", room_id)]
        if before_id is not None:
            conditions.append(lt("id", before_id))

        rows = self.store.find_many(
            MESSAGES_TABLE,
            conditions,
            order=[desc("created_at"), desc("id")],
            limit=limit,
        )
        return sorted(
            (Message.model_validate(row) for row in rows), key=message_sort_key
        )
