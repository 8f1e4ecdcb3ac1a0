import pytest

from app.core.exceptions import (
    AuthorizationError,
    ConflictError,
    NotFoundError,
    StoreError,
    ValidationError,
)
from app.chat.messages import MessageStore
from app.chat.models import READS_TABLE, ROOMS_TABLE
from app.chat.reads import ReadTracker
from app.chat.rooms import RoomResolver, canonical_pair, other_participant

from tests.fakes import InMemoryRecordStore
from tests.helpers import ADMIN, RETIRED, STAFF, STAFF_2


@pytest.fixture
def resolver(store):
    return RoomResolver(store)


def test_canonical_pair_is_order_independent():
    assert canonical_pair("b", "a") == ("a", "b")
    assert canonical_pair("a", "b") == ("a", "b")


def test_first_contact_creates_one_room_with_null_watermarks(resolver, store):
    handle = resolver.resolve(STAFF, ADMIN)

    assert handle.is_new is True
    assert handle.partner_id == ADMIN

    rooms = store.rows(ROOMS_TABLE)
    assert len(rooms) == 1
    assert (rooms[0]["user1_id"], rooms[0]["user2_id"]) == (ADMIN, STAFF)

    reads = store.rows(READS_TABLE)
    assert {(r["user_id"], r["last_read_at"]) for r in reads} == {
        (ADMIN, None),
        (STAFF, None),
    }


def test_both_orderings_resolve_to_same_room(resolver, store):
    first = resolver.resolve(STAFF, ADMIN)
    second = resolver.resolve(ADMIN, STAFF)

    assert first.room_id == second.room_id
    assert second.is_new is False
    assert len(store.rows(ROOMS_TABLE)) == 1


def test_different_pairs_get_different_rooms(resolver):
    assert resolver.resolve(STAFF, ADMIN).room_id != resolver.resolve(STAFF_2, ADMIN).room_id


def test_cannot_chat_with_self(resolver, store):
    with pytest.raises(ValidationError):
        resolver.resolve(STAFF, STAFF)
    assert store.calls == []


def test_missing_partner_id_is_rejected_before_store(resolver, store):
    with pytest.raises(ValidationError):
        resolver.resolve(STAFF, "  ")
    assert store.calls == []


def test_unknown_partner(resolver):
    with pytest.raises(NotFoundError):
        resolver.resolve(STAFF, "nobody")


def test_inactive_partner(resolver, store):
    with pytest.raises(NotFoundError):
        resolver.resolve(STAFF, RETIRED)
    assert store.rows(ROOMS_TABLE) == []


def test_re_resolving_keeps_existing_watermarks(resolver, store, clock):
    handle = resolver.resolve(STAFF, ADMIN)
    MessageStore(store).append(handle.room_id, ADMIN, "hello")
    tracker = ReadTracker(store, clock=clock.now)
    tracker.mark_read(handle.room_id, STAFF)

    resolver.resolve(STAFF, ADMIN)

    watermark = tracker.get_watermark(handle.room_id, STAFF)
    assert watermark.last_read_at == clock.now()
    assert tracker.unread_counts(STAFF)[handle.room_id] == 0


def test_lost_race_re_reads_the_winner(resolver, store):
    winner = store.add_row(ROOMS_TABLE, {"user1_id": ADMIN, "user2_id": STAFF})
    # The lookup ran before the winner committed.
    original_find_many = store.find_many
    misses = iter([[]])

    def racing_find_many(table, conditions, order=(), limit=None):
        if table == ROOMS_TABLE:
            stale = next(misses, None)
            if stale is not None:
                return stale
        return original_find_many(table, conditions, order=order, limit=limit)

    store.find_many = racing_find_many

    handle = resolver.resolve(STAFF, ADMIN)

    assert handle.room_id == winner["id"]
    assert handle.is_new is False
    assert len(store.rows(ROOMS_TABLE)) == 1


def test_duplicate_rooms_without_constraint_converge_on_oldest(clock):
    store = InMemoryRecordStore(clock=clock, enforce_unique=False)
    store.add_profile(ADMIN, role="admin")
    store.add_profile(STAFF)
    oldest = store.add_row(ROOMS_TABLE, {"user1_id": ADMIN, "user2_id": STAFF})
    store.add_row(ROOMS_TABLE, {"user1_id": ADMIN, "user2_id": STAFF})

    resolver = RoomResolver(store)

    assert resolver.resolve(STAFF, ADMIN).room_id == oldest["id"]
    assert resolver.resolve(ADMIN, STAFF).room_id == oldest["id"]


def test_insert_conflict_with_no_visible_room_is_an_error(resolver, store):
    store.fail_next("insert", ROOMS_TABLE, ConflictError("duplicate"))

    with pytest.raises(StoreError):
        resolver.resolve(STAFF, ADMIN)


def test_require_member(resolver):
    handle = resolver.resolve(STAFF, ADMIN)

    room = resolver.require_member(handle.room_id, STAFF)
    assert other_participant(room, STAFF) == ADMIN
    assert other_participant(room, ADMIN) == STAFF

    with pytest.raises(AuthorizationError):
        resolver.require_member(handle.room_id, STAFF_2)
    with pytest.raises(NotFoundError):
        resolver.require_member(999, STAFF)


def test_rooms_for_lists_active_rooms_first(resolver, store):
    quiet = resolver.resolve(ADMIN, STAFF)
    busy = resolver.resolve(ADMIN, STAFF_2)
    MessageStore(store).append(busy.room_id, STAFF_2, "ping")

    assert [r["id"] for r in resolver.rooms_for(ADMIN)] == [busy.room_id, quiet.room_id]
    assert [r["id"] for r in resolver.rooms_for(STAFF)] == [quiet.room_id]
