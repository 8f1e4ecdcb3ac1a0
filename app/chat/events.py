"""
Decoding of realtime row-insert payloads into typed chat events.

Realtime payloads arrive as loosely typed dicts whose shape depends on the
client library version. They are decoded exactly once, at the channel
boundary, and only `MessageInserted` instances travel further.
"""

import pydantic

from app.core.exceptions import EventDecodeError
from app.chat.models import MESSAGES_TABLE
from app.chat.schemas import Message, MessageInserted


def _unwrap(payload: dict) -> tuple:
    # realtime v2 nests the change under "data"
    data = payload.get("data") if isinstance(payload.get("data"), dict) else payload

    event_type = data.get("type") or data.get("eventType")
    table = data.get("table")
    record = data.get("record") or data.get("new")
    return event_type, table, record


def decode_message_inserted(payload) -> MessageInserted:
    if not isinstance(payload, dict):
        raise EventDecodeError(f"Unexpected payload type {type(payload).__name__}")

    event_type, table, record = _unwrap(payload)

    if event_type is not None and str(event_type).upper() != "INSERT":
        raise EventDecodeError(f"Not an insert event: {event_type}")
    if table is not None and table != MESSAGES_TABLE:
        raise EventDecodeError(f"Unexpected table: {table}")
    if not record:
        raise EventDecodeError("Payload carries no record.")

    try:
        message = Message.model_validate(record)
    except pydantic.ValidationError as e:
        raise EventDecodeError(f"Malformed message record: {e.error_count()} errors")

    return MessageInserted(room_id=message.room_id, message=message)
