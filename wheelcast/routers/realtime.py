"""
WS /ws - the realtime channel.

One socket may join a room as a display (wheel key) and/or as an admin
(session), and admins may send test spins. Rejected messages are answered
with an ``error`` event; the socket stays open.
"""

import logging

from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from wheelcast.core.errors import Unavailable, WheelError
from wheelcast.domain.models import ConnectionRole
from wheelcast.gateway import (
    authorize_display_join, authorize_owner_action, resolve_session,
)
from wheelcast.services import Services
from wheelcast.sync import (
    JoinAdminMessage, JoinMessage, TestSpinMessage, error_event, parse_client_message,
)
from wheelcast.websocket import Connection

logger = logging.getLogger(__name__)

router = APIRouter(tags=["realtime"])


async def dispatch(services: Services, connection: Connection, raw: str) -> None:
    """Handle one client message. Domain errors go back to the sender only."""
    try:
        message = parse_client_message(raw)
        if isinstance(message, JoinMessage):
            owner_id = await authorize_display_join(services.capabilities, message.key)
            await services.sync.join_room(connection, owner_id, ConnectionRole.DISPLAY)
        elif isinstance(message, JoinAdminMessage):
            owner_id = authorize_owner_action(connection.session, message.owner_id)
            await services.sync.join_room(connection, owner_id, ConnectionRole.ADMIN)
        elif isinstance(message, TestSpinMessage):
            owner_id = authorize_owner_action(connection.session, message.owner_id)
            await services.sync.trigger_spin(owner_id, message.winner, bool(message.is_test))
    except Unavailable as exc:
        await services.channel.send(connection, error_event(exc.status_code, "Service unavailable"))
    except WheelError as exc:
        await services.channel.send(connection, error_event(exc.status_code, exc.message))


@router.websocket("/ws")
async def realtime(websocket: WebSocket):
    services: Services = websocket.app.state.services
    session = await resolve_session(websocket, services)
    connection = await services.channel.connect(websocket, session=session)
    try:
        while True:
            raw = await websocket.receive_text()
            await dispatch(services, connection, raw)
    except WebSocketDisconnect:
        pass
    except Exception:
        logger.exception("WebSocket handler failed for %s", connection.id)
    finally:
        services.channel.leave(connection)
