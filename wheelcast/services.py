"""
Service wiring.

Everything with state is built once by ``build_services`` and handed to the
FastAPI app through ``app.state.services``; routes reach it with the
``get_services`` dependency. Construction order is explicit: the spin trigger
receives the sync coordinator, which receives the room channel.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from sqlalchemy.engine import Engine
from starlette.requests import HTTPConnection

from wheelcast import config
from wheelcast import database
from wheelcast.capability import CapabilityRegistry
from wheelcast.items import ItemStore
from wheelcast.owners import OwnerStore
from wheelcast.spin import SpinTrigger
from wheelcast.sync import WheelSync
from wheelcast.websocket import RoomChannel


@dataclass
class Services:
    engine: Engine
    owners: OwnerStore
    capabilities: CapabilityRegistry
    items: ItemStore
    channel: RoomChannel
    sync: WheelSync
    spin: SpinTrigger

    def startup(self) -> None:
        """Create tables and provision the default admin (blocking)."""
        database.init_db(self.engine)
        self.owners.ensure_default_admin()


def build_services(engine: Optional[Engine] = None) -> Services:
    if engine is None:
        engine = database.engine
        session_factory = database.SessionLocal
    else:
        session_factory = database.make_session_factory(engine)

    owners = OwnerStore(session_factory)
    items = ItemStore(session_factory)
    channel = RoomChannel()
    sync = WheelSync(items, channel, owners)
    return Services(
        engine=engine,
        owners=owners,
        capabilities=CapabilityRegistry(session_factory),
        items=items,
        channel=channel,
        sync=sync,
        spin=SpinTrigger(sync, owners, config.TWITCH_OWNER_USERNAME),
    )


def get_services(conn: HTTPConnection) -> Services:
    return conn.app.state.services
