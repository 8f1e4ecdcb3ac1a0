from pydantic import AwareDatetime, BaseModel
from datetime import datetime
from typing import Dict, List, Literal, Optional


class Message(BaseModel):
    id: int
    room_id: int
    sender_id: str
    body: str
    created_at: datetime


class ReadWatermark(BaseModel):
    room_id: int
    user_id: str
    last_read_at: Optional[datetime] = None


# Room resolution
class ResolveRoomModel(BaseModel):
    partner_id: str


class RoomHandle(BaseModel):
    room_id: int
    partner_id: str
    is_new: bool


# Room list
class RoomSummary(BaseModel):
    room_id: int
    partner_id: str
    last_message_text: Optional[str] = None
    last_message_at: Optional[datetime] = None
    unread_count: int = 0


class GetRoomsResponseModel(BaseModel):
    rooms: List[RoomSummary]


# Messages
class SendMessageModel(BaseModel):
    body: str


class GetMessagesResponseModel(BaseModel):
    messages: List[Message]


# Read tracking
class MarkReadModel(BaseModel):
    at: Optional[AwareDatetime] = None


class UnreadCountsResponseModel(BaseModel):
    counts: Dict[int, int]
    total: int


# Push events
class MessageInserted(BaseModel):
    kind: Literal["message_inserted"] = "message_inserted"
    room_id: int
    message: Message
