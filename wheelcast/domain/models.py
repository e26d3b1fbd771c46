"""
wheelcast.domain.models — plain value types handed across layers.

Stores convert ORM rows into these before returning, so nothing outside
``wheelcast.database`` holds a live SQLAlchemy object across an ``await``.

Import pattern::

    from wheelcast.domain.models import WheelItem, OwnerAccount
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional


class Role(str, Enum):
    ADMIN = "admin"
    USER = "user"


class ConnectionRole(str, Enum):
    """How a realtime connection joined a room."""
    DISPLAY = "display"
    ADMIN = "admin"


@dataclass(frozen=True)
class WheelItem:
    """One weighted slice of an owner's wheel."""
    id: str
    owner_id: str
    label: str
    weight: float

    def to_public(self) -> dict:
        # owner_id is routing data only; clients never see it.
        return {"id": self.id, "label": self.label, "weight": self.weight}


@dataclass(frozen=True)
class OwnerAccount:
    id: str
    username: str
    role: Role
    wheel_key: Optional[str] = None

    @property
    def is_admin(self) -> bool:
        return self.role == Role.ADMIN

    def may_act_for(self, owner_id: str) -> bool:
        return self.is_admin or self.id == owner_id

