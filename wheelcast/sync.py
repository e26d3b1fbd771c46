"""
Sync protocol: the realtime message taxonomy and the coordinator that keeps
every room consistent with the item store.

Server -> client events (JSON objects tagged by ``type``)::

    {"type": "full-snapshot", "items": [{"id", "label", "weight"}, ...]}
    {"type": "item-created",  "item": {...}}
    {"type": "item-updated",  "item": {...}}
    {"type": "item-deleted",  "id": "..."}
    {"type": "spin",          "winner": "...", "isTest": false}
    {"type": "error",         "code": 403, "detail": "..."}

Client -> server messages::

    {"type": "join",      "key": "<wheel key>"}
    {"type": "joinAdmin", "ownerId": "..."}
    {"type": "testSpin",  "winner": "...", "ownerId": "...", "isTest": true}

All mutations and spins for one owner run under that owner's lock, so the
order events reach a connection is the order the store committed them.
"""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Annotated, Any, Dict, Iterable, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter
from pydantic import ValidationError as PydanticValidationError

from wheelcast.core.errors import ValidationError
from wheelcast.domain.models import ConnectionRole, WheelItem
from wheelcast.items import ItemStore
from wheelcast.owners import OwnerStore
from wheelcast.websocket import Connection, RoomChannel

logger = logging.getLogger(__name__)

FULL_SNAPSHOT = "full-snapshot"
ITEM_CREATED = "item-created"
ITEM_UPDATED = "item-updated"
ITEM_DELETED = "item-deleted"
SPIN = "spin"
ERROR = "error"


# ---------------------------------------------------------------------------
# Server -> client events
# ---------------------------------------------------------------------------

def full_snapshot(items: Iterable[WheelItem]) -> Dict[str, Any]:
    return {"type": FULL_SNAPSHOT, "items": [i.to_public() for i in items]}


def item_created(item: WheelItem) -> Dict[str, Any]:
    return {"type": ITEM_CREATED, "item": item.to_public()}


def item_updated(item: WheelItem) -> Dict[str, Any]:
    return {"type": ITEM_UPDATED, "item": item.to_public()}


def item_deleted(item_id: str) -> Dict[str, Any]:
    return {"type": ITEM_DELETED, "id": item_id}


def spin(winner: str, is_test: bool = False) -> Dict[str, Any]:
    return {"type": SPIN, "winner": winner, "isTest": bool(is_test)}


def error_event(code: int, detail: str) -> Dict[str, Any]:
    return {"type": ERROR, "code": code, "detail": detail}


# ---------------------------------------------------------------------------
# Client -> server messages
# ---------------------------------------------------------------------------

class _ClientMessage(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class JoinMessage(_ClientMessage):
    type: Literal["join"]
    key: Optional[str] = None


class JoinAdminMessage(_ClientMessage):
    type: Literal["joinAdmin"]
    owner_id: Optional[str] = Field(default=None, alias="ownerId")


class TestSpinMessage(_ClientMessage):
    type: Literal["testSpin"]
    winner: Optional[str] = None
    owner_id: Optional[str] = Field(default=None, alias="ownerId")
    is_test: Optional[bool] = Field(default=False, alias="isTest")


ClientMessage = Annotated[
    Union[JoinMessage, JoinAdminMessage, TestSpinMessage],
    Field(discriminator="type"),
]

_client_message_adapter = TypeAdapter(ClientMessage)


def parse_client_message(raw: str) -> Union[JoinMessage, JoinAdminMessage, TestSpinMessage]:
    try:
        data = json.loads(raw)
    except (TypeError, ValueError):
        raise ValidationError("Message is not valid JSON")
    try:
        return _client_message_adapter.validate_python(data)
    except PydanticValidationError:
        raise ValidationError("Unknown or malformed message")


# ---------------------------------------------------------------------------
# Per-owner serialization
# ---------------------------------------------------------------------------

class OwnerLocks:
    """Lazily created ``asyncio.Lock`` per owner id.

    Entries are never dropped: a released lock may still have queued waiters.
    """

    def __init__(self):
        self._locks: Dict[str, asyncio.Lock] = {}

    def for_owner(self, owner_id: str) -> asyncio.Lock:
        lock = self._locks.get(owner_id)
        if lock is None:
            lock = self._locks[owner_id] = asyncio.Lock()
        return lock

    def __len__(self) -> int:
        return len(self._locks)


# ---------------------------------------------------------------------------
# Coordinator
# ---------------------------------------------------------------------------

class WheelSync:
    """
    Couples each committed store mutation with exactly one room broadcast.

    The store call (blocking, run in a worker thread) and the broadcast both
    happen while the owner's lock is held; a mutation that fails in the store
    broadcasts nothing.
    """

    def __init__(self, store: ItemStore, channel: RoomChannel, owners: OwnerStore,
                 locks: Optional[OwnerLocks] = None):
        self._store = store
        self._channel = channel
        self._owners = owners
        self._locks = locks or OwnerLocks()

    @property
    def channel(self) -> RoomChannel:
        return self._channel

    async def list_items(self, owner_id: str) -> List[WheelItem]:
        return await asyncio.to_thread(self._store.list, owner_id)

    async def create_item(self, owner_id: str, label: Any, weight: Any) -> WheelItem:
        async with self._locks.for_owner(owner_id):
            item = await asyncio.to_thread(self._store.create, owner_id, label, weight)
            await self._channel.broadcast_to_room(owner_id, item_created(item))
        return item

    async def update_item(self, owner_id: str, item_id: str, label: Any, weight: Any) -> WheelItem:
        async with self._locks.for_owner(owner_id):
            item = await asyncio.to_thread(self._store.update, owner_id, item_id, label, weight)
            await self._channel.broadcast_to_room(owner_id, item_updated(item))
        return item

    async def delete_item(self, owner_id: str, item_id: str) -> int:
        async with self._locks.for_owner(owner_id):
            removed = await asyncio.to_thread(self._store.delete, owner_id, item_id)
            if removed:
                await self._channel.broadcast_to_room(owner_id, item_deleted(item_id))
        return removed

    async def delete_owner(self, owner_id: str) -> int:
        """Remove an owner and cascade its items; returns the items removed."""
        async with self._locks.for_owner(owner_id):
            return await asyncio.to_thread(self._owners.delete_owner, owner_id)

    async def join_room(self, connection: Connection, owner_id: str, role: ConnectionRole) -> int:
        """Join ``connection`` to the owner's room and hand it a full snapshot.

        The snapshot is read under the owner lock, so no mutation can commit
        between the read and the membership taking effect.
        """
        async with self._locks.for_owner(owner_id):
            items = await asyncio.to_thread(self._store.list, owner_id)
            await self._channel.join(connection, owner_id, role, snapshot=full_snapshot(items))
        return len(items)

    async def trigger_spin(self, owner_id: str, winner: Any, is_test: bool = False) -> int:
        """Announce ``winner`` to the owner's room; returns connections reached."""
        if not isinstance(winner, str) or not winner.strip():
            raise ValidationError("Missing winner")
        async with self._locks.for_owner(owner_id):
            delivered = await self._channel.broadcast_to_room(owner_id, spin(winner, is_test))
        logger.info(
            "Spin for owner %s: winner=%r test=%s delivered=%d",
            owner_id, winner, bool(is_test), delivered,
        )
        return delivered
