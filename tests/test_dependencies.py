import logging
from unittest.mock import AsyncMock, MagicMock

import pytest

from app.core import dependencies, realtime, supabase_client
from app.core.middleware import RequestIdFilter
from app.core.record_store import SupabaseRecordStore
from app.models.identity import Identity
from app.utils.env_helper import env_bool, env_int, env_list, env_none_or_str
from app.utils.logging_config import setup_logging


@pytest.fixture
def fresh_supabase_cache():
    supabase_client.get_supabase.cache_clear()
    yield
    supabase_client.get_supabase.cache_clear()


def test_record_store_wraps_shared_service_client(monkeypatch, fresh_supabase_cache):
    created = MagicMock()
    factory = MagicMock(return_value=created)
    monkeypatch.setattr(supabase_client, "create_client", factory)
    monkeypatch.setenv("STORE_READ_RETRIES", "4")

    first = dependencies.get_record_store()
    second = dependencies.get_record_store()

    assert isinstance(first, SupabaseRecordStore)
    assert first.client is created
    assert first.read_retries == 4
    assert second.client is created
    factory.assert_called_once_with("http://supabase.test", "service-role-key")


@pytest.mark.anyio
async def test_push_channel_acts_as_the_user(monkeypatch):
    client = MagicMock()
    client.realtime.set_auth = AsyncMock()
    monkeypatch.setattr(supabase_client, "acreate_client", AsyncMock(return_value=client))

    channel = await realtime.create_push_channel("user-token")

    assert channel.client is client
    client.realtime.set_auth.assert_awaited_once_with("user-token")


def test_env_helpers(monkeypatch):
    monkeypatch.setenv("FLAG", "Yes")
    monkeypatch.setenv("NUMBER", "12")
    monkeypatch.setenv("EMPTY", "None")
    monkeypatch.setenv("ORIGINS", "http://a.test, http://b.test,")
    monkeypatch.delenv("MISSING", raising=False)

    assert env_bool("FLAG") is True
    assert env_bool("MISSING", default=True) is True
    assert env_int("NUMBER", 1) == 12
    assert env_int("MISSING", 300) == 300
    assert env_none_or_str("EMPTY", "fallback") == "fallback"
    assert env_list("ORIGINS") == ["http://a.test", "http://b.test"]
    assert env_list("MISSING", default=["x"]) == ["x"]


def test_setup_logging_respects_level():
    setup_logging(level="warning", json_logs=True)
    assert logging.getLogger().level == logging.WARNING

    setup_logging(level="INFO", json_logs=False)
    assert logging.getLogger().level == logging.INFO


def test_request_id_filter_defaults_outside_requests():
    record = logging.LogRecord("chat", logging.INFO, __file__, 1, "hello", None, None)

    assert RequestIdFilter().filter(record) is True
    assert record.request_id == "-"


def test_identity_carries_no_credentials():
    assert set(Identity.model_fields) == {"user_id", "role"}
