"""
Capability registry: wheel keys that grant read-only access to one owner's
wheel without a login session.
"""

from __future__ import annotations

import logging
import secrets
from typing import Callable, Optional

from sqlalchemy.orm import Session

from wheelcast import config
from wheelcast.core.errors import InvalidCapability, MissingCapability, NotFound
from wheelcast.database import Owner, SessionLocal, session_scope

logger = logging.getLogger(__name__)


def generate_token(nbytes: Optional[int] = None) -> str:
    return secrets.token_hex(max(16, nbytes or config.CAPABILITY_TOKEN_BYTES))


class CapabilityRegistry:
    def __init__(self, session_factory: Callable[[], Session] = SessionLocal):
        self._session_factory = session_factory

    def resolve_token(self, token: Optional[str]) -> str:
        """
        Return the owner id holding ``token``.

        Raises ``MissingCapability`` when no token was supplied and
        ``InvalidCapability`` when it matches no owner.
        """
        if not token:
            raise MissingCapability("Missing key")
        with session_scope(self._session_factory) as db:
            row = (
                db.query(Owner.id)
                .filter(Owner.wheel_key == token)
                .first()
            )
        if row is None:
            raise InvalidCapability("Invalid key")
        return row[0]

    def rotate(self, owner_id: str) -> str:
        """Issue a fresh key for ``owner_id``; the previous key stops resolving at once."""
        new_token = generate_token()
        with session_scope(self._session_factory) as db:
            updated = (
                db.query(Owner)
                .filter(Owner.id == owner_id)
                .update({Owner.wheel_key: new_token}, synchronize_session=False)
            )
            if updated == 0:
                raise NotFound("Owner not found")
        logger.info("Rotated wheel key for owner %s", owner_id)
        return new_token
