import logging

from app.core.exceptions import (
    AuthorizationError,
    ConflictError,
    NotFoundError,
    StoreError,
    ValidationError,
)
from app.core.record_store import RecordStore, asc, eq
from app.chat.models import (
    PROFILES_TABLE,
    READS_CONFLICT_KEY,
    READS_TABLE,
    ROOMS_TABLE,
)
from app.chat.schemas import RoomHandle

logger = logging.getLogger(__name__)


def canonical_pair(a: str, b: str) -> tuple:
    """Sort two participant ids so (a, b) and (b, a) give the same key."""
    user1, user2 = sorted([a, b])
    return user1, user2


def other_participant(room: dict, participant: str) -> str:
    return room["user2_id"] if room["user1_id"] == participant else room["user1_id"]


class RoomResolver:
    """
    Find-or-create the single room shared by two participants.

    Rooms are keyed on the canonical (sorted) pair. The find and the create
    are two separate calls, so two first-contact attempts racing each other
    can both miss the lookup. Under the unique constraint the loser gets a
    conflict and re-reads the winner; without it, lookups always take the
    oldest matching room so every caller lands on the same one.
    """

    def __init__(self, store: RecordStore):
        self.store = store

    def resolve(self, requester: str, partner: str) -> RoomHandle:
        partner = (partner or "").strip()
        if not partner:
            raise ValidationError("missing partner_id")
        if requester == partner:
            raise ValidationError("cannot chat with self")

        profile = self.store.find(PROFILES_TABLE, [eq("id", partner)])
        if not profile or not profile.get("is_active"):
            raise NotFoundError("partner not found/inactive")

        user1, user2 = canonical_pair(requester, partner)

        room = self._find_room(user1, user2)
        is_new = False

        if room is None:
            try:
                room = self.store.insert(
                    ROOMS_TABLE, {"user1_id": user1, "user2_id": user2}
                )
                is_new = True
                logger.info(f"chat_room_created room_id={room['id']} users={user1},{user2}")
            except ConflictError:
                logger.warning(f"chat_room_race users={user1},{user2}, re-reading winner")
                room = self._find_room(user1, user2)
                if room is None:
                    raise StoreError("Room insert conflicted but no room was found.")

        self._ensure_watermarks(room["id"], (user1, user2))

        return RoomHandle(room_id=room["id"], partner_id=partner, is_new=is_new)

    def _find_room(self, user1: str, user2: str):
        rows = self.store.find_many(
            ROOMS_TABLE,
            [eq("user1_id", user1), eq("user2_id", user2)],
            order=[asc("id")],
            limit=1,
        )
        return rows[0] if rows else None

    def _ensure_watermarks(self, room_id: int, participants):
        # Only creates missing rows; an existing last_read_at is left alone.
        self.store.upsert(
            READS_TABLE,
            [
                {"room_id": room_id, "user_id": user_id, "last_read_at": None}
                for user_id in participants
            ],
            on_conflict=READS_CONFLICT_KEY,
            ignore_duplicates=True,
        )

    def require_member(self, room_id: int, participant: str) -> dict:
        room = self.store.find(ROOMS_TABLE, [eq("id", room_id)])
        if room is None:
            raise NotFoundError("Room not found.")
        if participant not in (room["user1_id"], room["user2_id"]):
            raise AuthorizationError("You are not a participant in this room.")
        return room

    def rooms_for(self, participant: str) -> list:
        rooms = {}
        for column in ("user1_id", "user2_id"):
            for row in self.store.find_many(ROOMS_TABLE, [eq(column, participant)]):
                rooms[row["id"]] = row

        # Rooms without messages sort last, then newest first.
        with_activity = sorted(
            (r for r in rooms.values() if r.get("last_message_at")),
            key=lambda r: str(r["last_message_at"]),
            reverse=True,
        )
        idle = sorted(
            (r for r in rooms.values() if not r.get("last_message_at")),
            key=lambda r: r["id"],
        )
        return with_activity + idle
