"""
Room channel for Wheelcast.

Connections live in an arena keyed by connection id; a room is the set of
connection ids joined to one owner. Every mutation of these tables is a plain
synchronous step, so on a single event loop no join/leave/broadcast can
observe another one half-done. Only the actual socket sends are awaited.
"""

from __future__ import annotations

import itertools
import json
import logging
from typing import Any, Dict, List, Optional, Set

from fastapi import WebSocket

from wheelcast.domain.models import ConnectionRole, OwnerAccount

logger = logging.getLogger(__name__)


class Connection:
    """One open realtime socket plus the rooms it has joined (one per role)."""

    def __init__(self, connection_id: str, websocket: WebSocket,
                 session: Optional[OwnerAccount] = None):
        self.id = connection_id
        self.websocket = websocket
        self.session = session
        self.memberships: Dict[ConnectionRole, str] = {}

    def rooms(self) -> Set[str]:
        return set(self.memberships.values())

    def __repr__(self) -> str:
        return f"Connection(id={self.id!r}, rooms={sorted(self.rooms())!r})"


class RoomChannel:
    """Tracks connected sockets, partitions them into owner rooms and fans out events."""

    def __init__(self):
        self._connections: Dict[str, Connection] = {}
        self._rooms: Dict[str, Set[str]] = {}
        self._ids = itertools.count(1)

    # ------------------------------------------------------------------
    # Connection lifecycle
    # ------------------------------------------------------------------

    def register(self, websocket: WebSocket,
                 session: Optional[OwnerAccount] = None) -> Connection:
        """Add an already-accepted socket to the arena. It joins no room yet."""
        connection = Connection(f"c{next(self._ids)}", websocket, session=session)
        self._connections[connection.id] = connection
        logger.info(
            "WebSocket client connected (%s). Total clients: %d",
            connection.id, len(self._connections),
        )
        return connection

    async def connect(self, websocket: WebSocket,
                      session: Optional[OwnerAccount] = None) -> Connection:
        """Accept a new WebSocket connection and register it."""
        await websocket.accept()
        return self.register(websocket, session=session)

    def leave(self, connection: Connection) -> None:
        """Drop every membership of ``connection`` and forget it. Safe to repeat."""
        rooms = connection.rooms()
        connection.memberships.clear()
        for owner_id in rooms:
            self._discard_member(owner_id, connection.id)
        if self._connections.pop(connection.id, None) is not None:
            logger.info(
                "WebSocket client disconnected (%s). Total clients: %d",
                connection.id, len(self._connections),
            )

    # ------------------------------------------------------------------
    # Rooms
    # ------------------------------------------------------------------

    async def join(self, connection: Connection, owner_id: str, role: ConnectionRole,
                   snapshot: Optional[dict] = None) -> None:
        """
        Put ``connection`` into ``owner_id``'s room for ``role``.

        Joining again is a no-op for membership (the room holds connection ids,
        so delivery is never duplicated). A role that pointed at another room
        moves. ``snapshot``, when given, goes to this connection only.
        """
        if connection.id not in self._connections:
            # Closed before the join completed.
            return

        previous = connection.memberships.get(role)
        if previous is not None and previous != owner_id:
            del connection.memberships[role]
            self._discard_member(previous, connection.id)

        connection.memberships[role] = owner_id
        members = self._rooms.setdefault(owner_id, set())
        if connection.id not in members:
            members.add(connection.id)
            logger.info(
                "%s joined room %s as %s (room size %d)",
                connection.id, owner_id, role.value, len(members),
            )

        if snapshot is not None:
            await self.send(connection, snapshot)

    def _discard_member(self, owner_id: str, connection_id: str) -> None:
        connection = self._connections.get(connection_id)
        if connection is not None and owner_id in connection.rooms():
            # Still joined to this room under another role.
            return
        members = self._rooms.get(owner_id)
        if not members:
            return
        members.discard(connection_id)
        if not members:
            del self._rooms[owner_id]

    # ------------------------------------------------------------------
    # Delivery
    # ------------------------------------------------------------------

    async def send(self, connection: Connection, event: Dict[str, Any]) -> bool:
        """Send one event to one connection. A failed send closes it out."""
        try:
            await connection.websocket.send_text(json.dumps(event))
            return True
        except Exception:
            logger.info("Dropping dead WebSocket connection %s", connection.id)
            self.leave(connection)
            return False

    async def broadcast_to_room(self, owner_id: str, event: Dict[str, Any]) -> int:
        """Deliver ``event`` to every connection joined to ``owner_id``.

        Best effort: dead connections are removed and skipped, the rest of
        the room still receives the event. Returns the number delivered.
        """
        payload = json.dumps(event)
        recipients: List[str] = list(self._rooms.get(owner_id, ()))
        stale: List[Connection] = []
        delivered = 0

        for connection_id in recipients:
            # Re-check membership: a connection may have left or moved while
            # an earlier send was awaited.
            if connection_id not in self._rooms.get(owner_id, ()):
                continue
            connection = self._connections.get(connection_id)
            if connection is None:
                continue
            try:
                await connection.websocket.send_text(payload)
                delivered += 1
            except Exception:
                stale.append(connection)

        if stale:
            for connection in stale:
                self.leave(connection)
            logger.info("Removed %d stale WebSocket connections", len(stale))
        return delivered

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------

    def room_size(self, owner_id: str) -> int:
        return len(self._rooms.get(owner_id, ()))

    @property
    def client_count(self) -> int:
        return len(self._connections)

    @property
    def room_count(self) -> int:
        return len(self._rooms)
