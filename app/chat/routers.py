import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from app.core.dependencies import (
    get_identity,
    get_message_store,
    get_read_tracker,
    get_room_resolver,
)
from app.core.exceptions import ChatError
from app.chat.messages import MessageStore
from app.chat.reads import ReadTracker
from app.chat.rooms import RoomResolver, other_participant
from app.models.identity import Identity

from .schemas import (
    GetMessagesResponseModel,
    GetRoomsResponseModel,
    MarkReadModel,
    Message,
    ReadWatermark,
    ResolveRoomModel,
    RoomHandle,
    RoomSummary,
    SendMessageModel,
    UnreadCountsResponseModel,
)


logger = logging.getLogger(__name__)
router = APIRouter()


@router.post("/rooms", response_model=RoomHandle, status_code=200)
def get_or_create_room(
    data: ResolveRoomModel,
    me: Identity = Depends(get_identity),
    rooms: RoomResolver = Depends(get_room_resolver),
):
    """
    Get or create the 1:1 room between the caller and a partner.

    Both orderings of the pair resolve to the same room. Read watermark rows
    are created for both participants when missing; existing watermarks are
    kept as they are.

    **Input**
    - `partner_id`: id of the other participant

    **Returns**
    - `room_id`, `partner_id`, and `is_new` (whether the room was just created)

    **Errors**
    - 400: Missing partner id, or partner is the caller
    - 401: Invalid or expired token
    - 404: Partner not found or inactive
    - 503: Database error
    """
    try:
        return rooms.resolve(me.user_id, data.partner_id)
    except ChatError as e:
        raise HTTPException(status_code=e.status_code, detail=e.detail)
    except Exception:
        logger.exception("chat_room_resolve_failed")
        raise HTTPException(status_code=500, detail="Failed to create or fetch room.")


@router.get("/rooms", response_model=GetRoomsResponseModel, status_code=200)
def list_rooms(
    me: Identity = Depends(get_identity),
    rooms: RoomResolver = Depends(get_room_resolver),
    reads: ReadTracker = Depends(get_read_tracker),
):
    """
    List the caller's rooms, most recently active first, each with the
    partner id, the cached last message and the caller's unread count.
    """
    try:
        room_rows = rooms.rooms_for(me.user_id)
        counts = reads.unread_counts(me.user_id, rooms=room_rows)
        return {
            "rooms": [
                RoomSummary(
                    room_id=room["id"],
                    partner_id=other_participant(room, me.user_id),
                    last_message_text=room.get("last_message_text"),
                    last_message_at=room.get("last_message_at"),
                    unread_count=counts[room["id"]],
                )
                for room in room_rows
            ]
        }
    except ChatError as e:
        raise HTTPException(status_code=e.status_code, detail=e.detail)
    except Exception:
        logger.exception("chat_room_list_failed")
        raise HTTPException(status_code=500, detail="Failed to fetch rooms.")


@router.get(
    "/rooms/{room_id}/messages",
    response_model=GetMessagesResponseModel,
    status_code=200,
)
def get_messages(
    room_id: int,
    limit: Optional[int] = Query(default=None, ge=1),
    before_id: Optional[int] = Query(default=None),
    me: Identity = Depends(get_identity),
    rooms: RoomResolver = Depends(get_room_resolver),
    messages: MessageStore = Depends(get_message_store),
):
    """
    Retrieve the most recent messages of a room, oldest first.

    **Query Parameters**
    - `limit`: how many messages (capped at the server's history limit)
    - `before_id`: only return messages older than this message id

    **Errors**
    - 403: Caller is not a participant
    - 404: Room does not exist
    """
    try:
        rooms.require_member(room_id, me.user_id)
        return {
            "messages": messages.fetch_recent(room_id, limit=limit, before_id=before_id)
        }
    except ChatError as e:
        raise HTTPException(status_code=e.status_code, detail=e.detail)
    except Exception:
        logger.exception("chat_messages_fetch_failed")
        raise HTTPException(status_code=500, detail="Failed to retrieve messages.")


@router.post(
    "/rooms/{room_id}/messages",
    response_model=Message,
    status_code=201,
)
def send_message(
    room_id: int,
    data: SendMessageModel,
    me: Identity = Depends(get_identity),
    rooms: RoomResolver = Depends(get_room_resolver),
    messages: MessageStore = Depends(get_message_store),
    reads: ReadTracker = Depends(get_read_tracker),
):
    """
    Append a message to a room and return the stored row.

    The returned row carries the server id and timestamp so the sender can
    render it without waiting for the push event. The sender's watermark is
    moved up afterwards; if that fails the send still succeeds.

    **Errors**
    - 400: Empty body
    - 403: Caller is not a participant
    - 404: Room does not exist
    """
    try:
        rooms.require_member(room_id, me.user_id)
        message = messages.append(room_id, me.user_id, data.body)
    except ChatError as e:
        raise HTTPException(status_code=e.status_code, detail=e.detail)
    except Exception:
        logger.exception("chat_message_send_failed")
        raise HTTPException(status_code=500, detail="Failed to send message.")

    try:
        reads.mark_read(room_id, me.user_id, at=message.created_at)
    except ChatError as e:
        logger.warning(f"chat_mark_read_after_send_failed room_id={room_id} error={e.detail}")

    return message


@router.post(
    "/rooms/{room_id}/read",
    response_model=ReadWatermark,
    status_code=200,
)
def mark_room_read(
    room_id: int,
    data: Optional[MarkReadModel] = None,
    me: Identity = Depends(get_identity),
    rooms: RoomResolver = Depends(get_room_resolver),
    reads: ReadTracker = Depends(get_read_tracker),
):
    """
    Move the caller's read watermark for a room up to `at` (default: now).
    A watermark never moves backwards.
    """
    try:
        rooms.require_member(room_id, me.user_id)
        return reads.mark_read(room_id, me.user_id, at=data.at if data else None)
    except ChatError as e:
        raise HTTPException(status_code=e.status_code, detail=e.detail)
    except Exception:
        logger.exception("chat_mark_read_failed")
        raise HTTPException(status_code=500, detail="Failed to update read state.")


@router.get("/unread", response_model=UnreadCountsResponseModel, status_code=200)
def get_unread_counts(
    me: Identity = Depends(get_identity),
    reads: ReadTracker = Depends(get_read_tracker),
):
    """Unread message counts per room for the caller, plus their total."""
    try:
        counts = reads.unread_counts(me.user_id)
        return {"counts": counts, "total": sum(counts.values())}
    except ChatError as e:
        raise HTTPException(status_code=e.status_code, detail=e.detail)
    except Exception:
        logger.exception("chat_unread_counts_failed")
        raise HTTPException(status_code=500, detail="Failed to count unread messages.")
