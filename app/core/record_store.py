"""
Generic record store used by the chat services.

The services only ever talk to this interface; the Supabase implementation
turns each call into a single postgrest request, and tests swap in an
in-memory store through FastAPI dependency overrides.
"""

import logging
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import date, datetime
from typing import Any, Optional, Sequence

import httpx
from supabase import Client, PostgrestAPIError

from app.core.exceptions import AuthorizationError, ConflictError, StoreError
from app.utils.env_helper import env_float, env_int

logger = logging.getLogger(__name__)

AUTHORIZATION_CODES = {"42501", "PGRST301", "PGRST302"}
UNIQUE_VIOLATION = "23505"


@dataclass(frozen=True)
class Condition:
    column: str
    op: str
    value: Any


@dataclass(frozen=True)
class Order:
    column: str
    descending: bool = False


def eq(column: str, value) -> Condition:
    return Condition(column, "eq", value)


def neq(column: str, value) -> Condition:
    return Condition(column, "neq", value)


def gt(column: str, value) -> Condition:
    return Condition(column, "gt", value)


def lt(column: str, value) -> Condition:
    return Condition(column, "lt", value)


def in_(column: str, values) -> Condition:
    return Condition(column, "in", list(values))


def asc(column: str) -> Order:
    return Order(column)


def desc(column: str) -> Order:
    return Order(column, descending=True)


class RecordStore(ABC):
    """Create/read/update/delete-with-filter over named tables."""

    @abstractmethod
    def find(self, table: str, conditions: Sequence[Condition]) -> Optional[dict]:
        ...

    @abstractmethod
    def find_many(
        self,
        table: str,
        conditions: Sequence[Condition],
        order: Sequence[Order] = (),
        limit: Optional[int] = None,
    ) -> list[dict]:
        ...

    @abstractmethod
    def count(self, table: str, conditions: Sequence[Condition]) -> int:
        ...

    @abstractmethod
    def insert(self, table: str, fields: dict) -> dict:
        ...

    @abstractmethod
    def upsert(
        self,
        table: str,
        fields,
        on_conflict: str,
        ignore_duplicates: bool = False,
    ) -> Optional[dict]:
        """Insert or update keyed on `on_conflict` (comma separated columns).

        With `ignore_duplicates` existing rows are left untouched and the
        return value is None when nothing was written.
        """

    @abstractmethod
    def update(
        self, table: str, fields: dict, conditions: Sequence[Condition]
    ) -> list[dict]:
        ...

    @abstractmethod
    def delete(self, table: str, conditions: Sequence[Condition]) -> list[dict]:
        ...


def _serialize(value):
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, list):
        return [_serialize(v) for v in value]
    if isinstance(value, dict):
        return {k: _serialize(v) for k, v in value.items()}
    return value


def _translate(error: PostgrestAPIError, table: str) -> Exception:
    code = str(error.code or "")
    message = error.message or str(error)

    if code in AUTHORIZATION_CODES:
        return AuthorizationError(f"Not permitted on {table}: {message}")
    if code == UNIQUE_VIOLATION:
        return ConflictError(f"Duplicate row in {table}: {message}")
    return StoreError(f"Database error on {table}: {message}")


class SupabaseRecordStore(RecordStore):
    def __init__(
        self,
        client: Client,
        read_retries: int = None,
        retry_backoff: float = None,
    ):
        self.client = client
        self.read_retries = (
            env_int("STORE_READ_RETRIES", 2) if read_retries is None else read_retries
        )
        self.retry_backoff = (
            env_float("STORE_RETRY_BACKOFF", 0.2)
            if retry_backoff is None
            else retry_backoff
        )

    def _filtered(self, query, conditions):
        for condition in conditions:
            method = "in_" if condition.op == "in" else condition.op
            query = getattr(query, method)(condition.column, _serialize(condition.value))
        return query

    def _read(self, table, build):
        attempt = 0
        while True:
            try:
                return build().execute()
            except PostgrestAPIError as e:
                raise _translate(e, table)
            except httpx.TransportError as e:
                if attempt >= self.read_retries:
                    logger.error(f"store_read_failed table={table} attempts={attempt + 1}")
                    raise StoreError(f"Network error reading {table}: {e}")
                delay = self.retry_backoff * (2**attempt)
                logger.warning(
                    f"store_read_retry table={table} attempt={attempt + 1} delay={delay}"
                )
                time.sleep(delay)
                attempt += 1

    def _write(self, table, build):
        try:
            return build().execute()
        except PostgrestAPIError as e:
            raise _translate(e, table)
        except httpx.HTTPError as e:
            raise StoreError(f"Network error writing {table}: {e}")

    def find(self, table, conditions):
        rows = self.find_many(table, conditions, limit=1)
        return rows[0] if rows else None

    def find_many(self, table, conditions, order=(), limit=None):
        def build():
            query = self._filtered(self.client.table(table).select("*"), conditions)
            for item in order:
                query = query.order(item.column, desc=item.descending)
            if limit is not None:
                query = query.limit(limit)
            return query

        return list(self._read(table, build).data or [])

    def count(self, table, conditions):
        def build():
            query = self.client.table(table).select("*", count="exact", head=True)
            return self._filtered(query, conditions)

        return self._read(table, build).count or 0

    def insert(self, table, fields):
        response = self._write(
            table, lambda: self.client.table(table).insert(_serialize(fields))
        )
        if not response.data:
            raise StoreError(f"Insert into {table} returned no row.")
        return response.data[0]

    def upsert(self, table, fields, on_conflict, ignore_duplicates=False):
        response = self._write(
            table,
            lambda: self.client.table(table).upsert(
                _serialize(fields),
                on_conflict=on_conflict,
                ignore_duplicates=ignore_duplicates,
            ),
        )
        return response.data[0] if response.data else None

    def update(self, table, fields, conditions):
        response = self._write(
            table,
            lambda: self._filtered(
                self.client.table(table).update(_serialize(fields)), conditions
            ),
        )
        return list(response.data or [])

    def delete(self, table, conditions):
        response = self._write(
            table, lambda: self._filtered(self.client.table(table).delete(), conditions)
        )
        return list(response.data or [])
