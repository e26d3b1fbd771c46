"""
Weighted item store.

Every query is scoped by owner id: an item id that exists under another owner
behaves exactly like an id that does not exist at all. Methods are blocking;
async callers drive them through ``asyncio.to_thread`` (see ``wheelcast.sync``).
"""

from __future__ import annotations

import math
from typing import Any, Callable, List

from sqlalchemy import func
from sqlalchemy.orm import Session

from wheelcast.core.errors import NotFound, ValidationError
from wheelcast.database import Item, Owner, SessionLocal, session_scope
from wheelcast.domain.models import WheelItem


def validate_label(label: Any) -> str:
    if not isinstance(label, str) or not label.strip():
        raise ValidationError("Missing label")
    return label.strip()


def validate_weight(weight: Any) -> float:
    """Coerce ``weight`` to a float and require it to be finite and positive."""
    if isinstance(weight, bool) or weight is None:
        raise ValidationError("Invalid weight: must be a positive number")
    try:
        value = float(weight)
    except (TypeError, ValueError, OverflowError):
        raise ValidationError("Invalid weight: must be a positive number")
    if not math.isfinite(value) or value <= 0:
        raise ValidationError("Invalid weight: must be a positive number")
    return value


def _to_item(row: Item) -> WheelItem:
    return WheelItem(id=row.id, owner_id=row.owner_id, label=row.label, weight=row.weight)


def delete_owner_items(db: Session, owner_id: str) -> int:
    """Delete every item of ``owner_id`` inside the caller's transaction."""
    return (
        db.query(Item)
        .filter(Item.owner_id == owner_id)
        .delete(synchronize_session=False)
    )


class ItemStore:
    """Per-owner CRUD over the ``items`` table."""

    def __init__(self, session_factory: Callable[[], Session] = SessionLocal):
        self._session_factory = session_factory

    def list(self, owner_id: str) -> List[WheelItem]:
        with session_scope(self._session_factory) as db:
            rows = (
                db.query(Item)
                .filter(Item.owner_id == owner_id)
                .order_by(Item.position.asc())
                .all()
            )
            return [_to_item(r) for r in rows]

    def create(self, owner_id: str, label: Any, weight: Any) -> WheelItem:
        label = validate_label(label)
        weight = validate_weight(weight)
        with session_scope(self._session_factory) as db:
            if db.query(Owner.id).filter(Owner.id == owner_id).first() is None:
                # Owner deleted while this request was queued.
                raise NotFound("Owner not found")
            last = (
                db.query(func.max(Item.position))
                .filter(Item.owner_id == owner_id)
                .scalar()
            )
            row = Item(
                owner_id=owner_id,
                label=label,
                weight=weight,
                position=(last or 0) + 1,
            )
            db.add(row)
            db.flush()
            return _to_item(row)

    def update(self, owner_id: str, item_id: str, label: Any, weight: Any) -> WheelItem:
        label = validate_label(label)
        weight = validate_weight(weight)
        with session_scope(self._session_factory) as db:
            row = (
                db.query(Item)
                .filter(Item.id == item_id, Item.owner_id == owner_id)
                .first()
            )
            if row is None:
                raise NotFound("Item not found")
            row.label = label
            row.weight = weight
            db.flush()
            return _to_item(row)

    def delete(self, owner_id: str, item_id: str) -> int:
        with session_scope(self._session_factory) as db:
            return (
                db.query(Item)
                .filter(Item.id == item_id, Item.owner_id == owner_id)
                .delete(synchronize_session=False)
            )

    def delete_all_for_owner(self, owner_id: str) -> int:
        with session_scope(self._session_factory) as db:
            return delete_owner_items(db, owner_id)
