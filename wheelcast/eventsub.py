"""
Twitch EventSub listener.

Keeps a websocket open to Twitch EventSub, subscribes to channel-point reward
redemptions once the session is welcomed, and turns redemptions of the
configured reward into spins. When the socket drops it reconnects forever
after a fixed delay; events sent while disconnected are not replayed.
"""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Optional

import httpx
import websockets

from wheelcast import config
from wheelcast.spin import SpinTrigger

logger = logging.getLogger(__name__)

REDEMPTION_SUBSCRIPTION = "channel.channel_points_custom_reward_redemption.add"


class EventSubListener:
    def __init__(
        self,
        spin: SpinTrigger,
        url: str = config.EVENTSUB_URL,
        reward_id: str = config.TWITCH_REWARD_ID,
        reconnect_seconds: float = config.EVENTSUB_RECONNECT_SECONDS,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self._spin = spin
        self._url = url
        self._reward_id = reward_id
        self._reconnect_seconds = max(0.0, reconnect_seconds)
        self._transport = transport

    # ------------------------------------------------------------------
    # Subscription management
    # ------------------------------------------------------------------

    async def subscribe(self, session_id: str) -> bool:
        """Register the redemption subscription for ``session_id`` with Helix."""
        body = {
            "type": REDEMPTION_SUBSCRIPTION,
            "version": "1",
            "condition": {
                "broadcaster_user_id": config.TWITCH_BROADCASTER_ID,
                "reward_id": self._reward_id,
            },
            "transport": {"method": "websocket", "session_id": session_id},
        }
        headers = {
            "Client-Id": config.TWITCH_CLIENT_ID,
            "Authorization": f"Bearer {config.TWITCH_ACCESS_TOKEN}",
        }
        async with httpx.AsyncClient(transport=self._transport, timeout=10) as client:
            resp = await client.post(config.EVENTSUB_SUBSCRIPTIONS_URL, json=body, headers=headers)
        if resp.status_code not in (200, 202):
            logger.error(
                "EventSub subscription failed: HTTP %d: %s",
                resp.status_code, resp.text[:300],
            )
            return False
        logger.info("Subscribed to %s for session %s", REDEMPTION_SUBSCRIPTION, session_id)
        return True

    # ------------------------------------------------------------------
    # Message handling
    # ------------------------------------------------------------------

    async def handle_message(self, raw: str) -> Optional[str]:
        """
        Process one EventSub frame.

        Returns the reconnect URL when Twitch asks the client to move to a
        new session, otherwise None.
        """
        try:
            msg = json.loads(raw)
        except ValueError:
            logger.warning("Ignoring non-JSON EventSub frame")
            return None

        message_type = (msg.get("metadata") or {}).get("message_type")
        payload = msg.get("payload") or {}

        if message_type == "session_welcome":
            session_id = (payload.get("session") or {}).get("id")
            if session_id:
                await self.subscribe(session_id)
        elif message_type == "notification":
            event = payload.get("event") or {}
            reward = event.get("reward") or {}
            if reward.get("id") == self._reward_id:
                redeemer = event.get("user_name") or event.get("user_login")
                await self._spin.handle_reward_redemption(redeemer)
        elif message_type == "session_reconnect":
            return (payload.get("session") or {}).get("reconnect_url")
        elif message_type == "revocation":
            logger.warning(
                "EventSub subscription revoked: %s",
                (payload.get("subscription") or {}).get("status"),
            )
        return None

    # ------------------------------------------------------------------
    # Connection loop
    # ------------------------------------------------------------------

    async def _run_session(self, url: str) -> Optional[str]:
        async with websockets.connect(url) as ws:
            logger.info("Connected to Twitch EventSub WebSocket")
            async for raw in ws:
                reconnect_url = await self.handle_message(raw)
                if reconnect_url:
                    logger.info("EventSub asked to reconnect to %s", reconnect_url)
                    return reconnect_url
        return None

    async def run_forever(self, stop_event: asyncio.Event) -> None:
        """Stay connected until ``stop_event`` is set, retrying with a fixed delay."""
        url = self._url
        while not stop_event.is_set():
            try:
                reconnect_url = await self._run_session(url)
                if reconnect_url:
                    url = reconnect_url
                    continue
            except asyncio.CancelledError:
                raise
            except Exception:
                logger.exception("EventSub WebSocket error")

            url = self._url
            if stop_event.is_set():
                return
            logger.info(
                "EventSub connection closed. Reconnecting in %.0fs...",
                self._reconnect_seconds,
            )
            try:
                await asyncio.wait_for(stop_event.wait(), timeout=self._reconnect_seconds)
            except asyncio.TimeoutError:
                continue
