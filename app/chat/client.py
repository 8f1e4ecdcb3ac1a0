import asyncio
import logging
from datetime import datetime
from typing import Optional

import httpx

from app.core.exceptions import (
    AuthorizationError,
    ChatError,
    ConflictError,
    NotFoundError,
    StoreError,
    ValidationError,
)
from app.chat.schemas import (
    Message,
    ReadWatermark,
    RoomHandle,
    RoomSummary,
    UnreadCountsResponseModel,
)

logger = logging.getLogger(__name__)

STATUS_ERRORS = {
    400: ValidationError,
    401: AuthorizationError,
    403: AuthorizationError,
    404: NotFoundError,
    409: ConflictError,
    422: ValidationError,
}


def _error_for(response: httpx.Response) -> ChatError:
    try:
        detail = response.json().get("detail")
    except ValueError:
        detail = None
    if not isinstance(detail, str):
        detail = str(detail) if detail else response.reason_phrase

    error_class = STATUS_ERRORS.get(response.status_code, StoreError)
    return error_class(detail)


class ChatApiClient:
    """
    Async client for the chat HTTP API, acting as one signed-in participant.

    GET requests are idempotent and are retried with exponential backoff on
    network errors and 5xx responses. Writes are sent once.
    """

    def __init__(
        self,
        base_url: str,
        token: str,
        http: Optional[httpx.AsyncClient] = None,
        retries: int = 2,
        backoff: float = 0.2,
        timeout: float = 10.0,
    ):
        self.retries = retries
        self.backoff = backoff
        self._owns_http = http is None
        self.http = http or httpx.AsyncClient(base_url=base_url, timeout=timeout)
        self.headers = {"Authorization": f"Bearer {token}"}

    async def aclose(self):
        if self._owns_http:
            await self.http.aclose()

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc_info):
        await self.aclose()

    async def _request(self, method: str, url: str, **kwargs):
        attempts = self.retries + 1 if method == "GET" else 1

        for attempt in range(attempts):
            last = attempt == attempts - 1
            try:
                response = await self.http.request(
                    method, url, headers=self.headers, **kwargs
                )
            except httpx.TransportError as e:
                if last:
                    raise StoreError(f"Network error: {e}")
                logger.warning(f"chat_api_retry {method} {url} attempt={attempt + 1} error={e}")
            else:
                if response.status_code < 400:
                    return response.json()
                if response.status_code < 500 or last:
                    raise _error_for(response)
                logger.warning(
                    f"chat_api_retry {method} {url} attempt={attempt + 1} status={response.status_code}"
                )

            await asyncio.sleep(self.backoff * (2**attempt))

    async def resolve_room(self, partner_id: str) -> RoomHandle:
        data = await self._request("POST", "/chat/rooms", json={"partner_id": partner_id})
        return RoomHandle.model_validate(data)

    async def list_rooms(self) -> list:
        data = await self._request("GET", "/chat/rooms")
        return [RoomSummary.model_validate(row) for row in data["rooms"]]

    async def fetch_recent(
        self, room_id: int, limit: Optional[int] = None, before_id: Optional[int] = None
    ) -> list:
        params = {}
        if limit is not None:
            params["limit"] = limit
        if before_id is not None:
            params["before_id"] = before_id

        data = await self._request("GET", f"/chat/rooms/{room_id}/messages", params=params)
        return [Message.model_validate(row) for row in data["messages"]]

    async def send_message(self, room_id: int, body: str) -> Message:
        data = await self._request(
            "POST", f"/chat/rooms/{room_id}/messages", json={"body": body}
        )
        return Message.model_validate(data)

    async def mark_read(self, room_id: int, at: Optional[datetime] = None) -> ReadWatermark:
        payload = {"at": at.isoformat()} if at else {}
        data = await self._request("POST", f"/chat/rooms/{room_id}/read", json=payload)
        return ReadWatermark.model_validate(data)

    async def unread_counts(self) -> UnreadCountsResponseModel:
        data = await self._request("GET", "/chat/unread")
        return UnreadCountsResponseModel.model_validate(data)
