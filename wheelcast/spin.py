"""
Spin trigger for reward redemptions.

Built at startup with the sync coordinator it announces through; the external
event source (``wheelcast.eventsub``) is handed this object directly.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Optional

from wheelcast.owners import OwnerStore
from wheelcast.sync import WheelSync

logger = logging.getLogger(__name__)


class SpinTrigger:
    """Translates a redemption into a ``spin`` broadcast on one owner's room."""

    def __init__(self, sync: WheelSync, owners: OwnerStore, owner_username: str):
        self._sync = sync
        self._owners = owners
        self._owner_username = owner_username

    async def _target_owner_id(self) -> Optional[str]:
        account = await asyncio.to_thread(self._owners.find_by_username, self._owner_username)
        return account.id if account else None

    async def handle_reward_redemption(self, identifier: Optional[str]) -> int:
        """Spin the configured owner's wheel for ``identifier``; returns connections reached."""
        if not identifier:
            logger.warning("Reward redemption without a redeemer name; ignored")
            return 0
        owner_id = await self._target_owner_id()
        if owner_id is None:
            logger.error(
                "Reward redeemed by %s but owner %r does not exist; spin dropped",
                identifier, self._owner_username,
            )
            return 0
        logger.info("Reward redeemed by %s", identifier)
        return await self._sync.trigger_spin(owner_id, identifier, is_test=False)
