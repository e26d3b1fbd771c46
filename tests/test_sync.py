"""Tests for the sync protocol coordinator and message parsing."""

import asyncio

import pytest

from wheelcast.core.errors import NotFound, ValidationError
from wheelcast.domain.models import ConnectionRole
from wheelcast.sync import (
    JoinAdminMessage,
    JoinMessage,
    OwnerLocks,
    TestSpinMessage as SpinRequest,
    parse_client_message,
)


@pytest.fixture
def sync(services):
    return services.sync


async def _joined(sync, fake_ws, owner_id, role=ConnectionRole.DISPLAY):
    ws = fake_ws()
    conn = await sync.channel.connect(ws)
    await sync.join_room(conn, owner_id, role)
    return ws, conn


class TestParseClientMessage:
    def test_join(self):
        msg = parse_client_message('{"type": "join", "key": "abc"}')
        assert isinstance(msg, JoinMessage)
        assert msg.key == "abc"

    def test_join_admin_uses_camel_case(self):
        msg = parse_client_message('{"type": "joinAdmin", "ownerId": "o1"}')
        assert isinstance(msg, JoinAdminMessage)
        assert msg.owner_id == "o1"

    def test_test_spin(self):
        msg = parse_client_message('{"type": "testSpin", "winner": "A", "ownerId": "o1", "isTest": true}')
        assert isinstance(msg, SpinRequest)
        assert (msg.winner, msg.owner_id, msg.is_test) == ("A", "o1", True)

    @pytest.mark.parametrize("raw", ["not json", '{"type": "explode"}', "[]", '{"key": "abc"}'])
    def test_rejects_bad_messages(self, raw):
        with pytest.raises(ValidationError):
            parse_client_message(raw)


class TestOwnerLocks:
    def test_same_owner_same_lock(self):
        locks = OwnerLocks()
        assert locks.for_owner("a") is locks.for_owner("a")
        assert locks.for_owner("a") is not locks.for_owner("b")
        assert len(locks) == 2

    @pytest.mark.asyncio
    async def test_waiters_share_the_lock_after_release(self):
        locks = OwnerLocks()
        first = locks.for_owner("a")
        await first.acquire()
        waiter = asyncio.create_task(locks.for_owner("a").acquire())
        await asyncio.sleep(0)
        first.release()
        await waiter
        assert locks.for_owner("a") is first
        assert first.locked()
        first.release()


class TestWheelSync:
    @pytest.mark.asyncio
    async def test_join_sends_full_snapshot(self, sync, make_owner, fake_ws, sent):
        owner = make_owner()
        await sync.create_item(owner.id, "Pizza", 3)

        ws, _ = await _joined(sync, fake_ws, owner.id)

        [snapshot] = sent(ws)
        assert snapshot["type"] == "full-snapshot"
        assert [(i["label"], i["weight"]) for i in snapshot["items"]] == [("Pizza", 3.0)]
        assert set(snapshot["items"][0]) == {"id", "label", "weight"}

    @pytest.mark.asyncio
    async def test_create_then_update_arrive_in_order(self, sync, make_owner, fake_ws, sent):
        owner = make_owner()
        ws, _ = await _joined(sync, fake_ws, owner.id)

        item = await sync.create_item(owner.id, "Pizza", 3)
        await sync.update_item(owner.id, item.id, "Pizza", 5)

        events = sent(ws)[1:]
        assert [e["type"] for e in events] == ["item-created", "item-updated"]
        assert events[1]["item"] == {"id": item.id, "label": "Pizza", "weight": 5.0}

    @pytest.mark.asyncio
    async def test_create_then_delete(self, sync, make_owner, fake_ws, sent):
        owner = make_owner()
        ws, _ = await _joined(sync, fake_ws, owner.id)

        item = await sync.create_item(owner.id, "Pizza", 3)
        assert await sync.delete_item(owner.id, item.id) == 1

        events = sent(ws)[1:]
        assert events == [
            {"type": "item-created", "item": {"id": item.id, "label": "Pizza", "weight": 3.0}},
            {"type": "item-deleted", "id": item.id},
        ]

    @pytest.mark.asyncio
    async def test_concurrent_mutations_keep_commit_order(self, sync, services, make_owner, fake_ws, sent):
        owner = make_owner()
        ws, _ = await _joined(sync, fake_ws, owner.id)

        await asyncio.gather(*(sync.create_item(owner.id, f"I{n}", n + 1) for n in range(5)))

        broadcast_ids = [e["item"]["id"] for e in sent(ws)[1:]]
        stored_ids = [i.id for i in services.items.list(owner.id)]
        assert broadcast_ids == stored_ids

    @pytest.mark.asyncio
    async def test_mutations_stay_inside_owner_room(self, sync, make_owner, fake_ws, sent):
        o1 = make_owner("one")
        o2 = make_owner("two")
        ws1, _ = await _joined(sync, fake_ws, o1.id)
        ws2, _ = await _joined(sync, fake_ws, o2.id)

        await sync.create_item(o1.id, "Secret", 1)

        assert [e["type"] for e in sent(ws1)] == ["full-snapshot", "item-created"]
        assert [e["type"] for e in sent(ws2)] == ["full-snapshot"]

    @pytest.mark.asyncio
    async def test_failed_mutations_broadcast_nothing(self, sync, make_owner, fake_ws, sent):
        o1 = make_owner("one")
        o2 = make_owner("two")
        item = await sync.create_item(o1.id, "Pizza", 3)
        ws, _ = await _joined(sync, fake_ws, o1.id)

        with pytest.raises(ValidationError):
            await sync.create_item(o1.id, "Bad", -1)
        with pytest.raises(NotFound):
            await sync.update_item(o2.id, item.id, "Hacked", 1)
        assert await sync.delete_item(o2.id, item.id) == 0

        assert [e["type"] for e in sent(ws)] == ["full-snapshot"]

    @pytest.mark.asyncio
    async def test_spin_reaches_only_its_room(self, sync, make_owner, fake_ws, sent):
        o1 = make_owner("one")
        o2 = make_owner("two")
        ws_display, _ = await _joined(sync, fake_ws, o1.id)
        ws_admin, _ = await _joined(sync, fake_ws, o1.id, ConnectionRole.ADMIN)
        ws_other, _ = await _joined(sync, fake_ws, o2.id)

        delivered = await sync.trigger_spin(o1.id, "Pizza", is_test=True)

        assert delivered == 2
        spin_event = {"type": "spin", "winner": "Pizza", "isTest": True}
        assert sent(ws_display)[-1] == spin_event
        assert sent(ws_admin)[-1] == spin_event
        assert sent(ws_other)[-1]["type"] == "full-snapshot"

    @pytest.mark.asyncio
    async def test_spin_with_empty_room_delivers_nothing(self, sync, make_owner):
        owner = make_owner()
        assert await sync.trigger_spin(owner.id, "Pizza") == 0

    @pytest.mark.asyncio
    @pytest.mark.parametrize("winner", ["", "   ", None])
    async def test_spin_requires_winner(self, sync, make_owner, winner):
        owner = make_owner()
        with pytest.raises(ValidationError):
            await sync.trigger_spin(owner.id, winner)

    @pytest.mark.asyncio
    async def test_delete_owner_cascades(self, sync, services, make_owner):
        owner = make_owner()
        await sync.create_item(owner.id, "A", 1)
        await sync.create_item(owner.id, "B", 1)

        assert await sync.delete_owner(owner.id) == 2
        assert services.owners.get(owner.id) is None
        assert services.items.list(owner.id) == []

    @pytest.mark.asyncio
    async def test_create_queued_behind_owner_deletion_is_not_found(self, sync, services, make_owner):
        owner = make_owner()

        removed, late = await asyncio.gather(
            sync.delete_owner(owner.id),
            sync.create_item(owner.id, "Late", 1),
            return_exceptions=True,
        )

        assert removed == 0
        assert isinstance(late, NotFound)
        assert services.items.list(owner.id) == []
