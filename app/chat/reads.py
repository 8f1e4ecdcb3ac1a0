import logging
from datetime import datetime, timezone
from typing import Callable, Optional

from app.core.record_store import RecordStore, eq, gt, neq
from app.chat.models import MESSAGES_TABLE, READS_CONFLICT_KEY, READS_TABLE
from app.chat.rooms import RoomResolver
from app.chat.schemas import ReadWatermark

logger = logging.getLogger(__name__)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class ReadTracker:
    """
    Per-(room, participant) read watermarks and the unread counts derived
    from them.

    Counts are not stored anywhere; every call to `unread_counts` recounts
    from the message log.
    """

    def __init__(self, store: RecordStore, clock: Callable[[], datetime] = utc_now):
        self.store = store
        self.clock = clock
        self.rooms = RoomResolver(store)

    def get_watermark(self, room_id: int, participant: str) -> Optional[ReadWatermark]:
        row = self.store.find(
            READS_TABLE, [eq("room_id", room_id), eq("user_id", participant)]
        )
        return ReadWatermark.model_validate(row) if row else None

    def mark_read(
        self, room_id: int, participant: str, at: Optional[datetime] = None
    ) -> ReadWatermark:
        at = at or self.clock()

        # Watermarks only move forward; a late call from a slow device is a no-op.
        current = self.get_watermark(room_id, participant)
        if current and current.last_read_at and current.last_read_at >= at:
            logger.debug(
                f"chat_mark_read_skipped room_id={room_id} user_id={participant}"
            )
            return current

        row = self.store.upsert(
            READS_TABLE,
            {"room_id": room_id, "user_id": participant, "last_read_at": at},
            on_conflict=READS_CONFLICT_KEY,
        )
        if row:
            return ReadWatermark.model_validate(row)
        return ReadWatermark(room_id=room_id, user_id=participant, last_read_at=at)

    def unread_count(self, room_id: int, participant: str, watermark=None) -> int:
        conditions = [eq("room_id", room_id), neq("sender_id", participant)]
        if watermark is not None:
            conditions.append(gt("created_at", watermark))
        return self.store.count(MESSAGES_TABLE, conditions)

    def unread_counts(self, participant: str, rooms: Optional[list] = None) -> dict:
        """Unread count per room; pass `rooms` to count an already fetched room list."""
        if rooms is None:
            rooms = self.rooms.rooms_for(participant)
        watermarks = {
            row["room_id"]: ReadWatermark.model_validate(row).last_read_at
            for row in self.store.find_many(READS_TABLE, [eq("user_id", participant)])
        }

        return {
            room["id"]: self.unread_count(
                room["id"], participant, watermarks.get(room["id"])
            )
            for room in rooms
        }
