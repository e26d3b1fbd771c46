"""
Access gateway for Wheelcast.

Two kinds of credential reach the service:
  - Wheel keys (capability tokens) for display clients: read-only, one owner.
  - Signed session tokens for logged-in owners, sent either as
    ``Authorization: Bearer <token>``, as the ``wheelcast_session`` cookie, or
    (websocket handshakes only, since browsers cannot set headers there) as a
    ``?token=`` query parameter.

Session tokens are HMAC-SHA256 signed JSON payloads; no server-side session
table is kept. The owner record is re-read on every authenticated request so
a deleted account or changed role takes effect immediately.
"""

import asyncio
import base64
import hashlib
import hmac
import json
import logging
import time
from typing import Optional

from fastapi import Depends
from starlette.requests import HTTPConnection

from wheelcast import config
from wheelcast.capability import CapabilityRegistry
from wheelcast.core.errors import Forbidden, NotAuthenticated, ValidationError
from wheelcast.domain.models import OwnerAccount
from wheelcast.services import Services, get_services

logger = logging.getLogger(__name__)

COOKIE_NAME = "wheelcast_session"


# ---------------------------------------------------------------------------
# HMAC-signed session tokens
# ---------------------------------------------------------------------------

def _sign(payload_bytes: bytes) -> str:
    """Create HMAC-SHA256 signature."""
    return hmac.new(config.AUTH_SECRET.encode(), payload_bytes, hashlib.sha256).hexdigest()


def create_session_token(account: OwnerAccount, expires_in: Optional[int] = None) -> str:
    """Create a signed session token for ``account``."""
    payload = {
        "sub": account.id,
        "username": account.username,
        "exp": int(time.time()) + (expires_in or config.SESSION_EXPIRY_SECONDS),
    }
    payload_b64 = base64.urlsafe_b64encode(json.dumps(payload).encode()).decode()
    return f"{payload_b64}.{_sign(payload_b64.encode())}"


def decode_session_token(token: str) -> Optional[dict]:
    """Decode and verify a signed session token; None if forged or expired."""
    try:
        parts = token.split(".", 1)
        if len(parts) != 2:
            return None
        payload_b64, sig = parts
        if not hmac.compare_digest(sig, _sign(payload_b64.encode())):
            return None
        payload = json.loads(base64.urlsafe_b64decode(payload_b64))
        if payload.get("exp", 0) < time.time():
            return None
        return payload
    except (ValueError, TypeError, AttributeError):
        return None


def extract_session_token(conn: HTTPConnection) -> Optional[str]:
    auth_header = conn.headers.get("authorization", "")
    if auth_header.startswith("Bearer "):
        return auth_header[7:]
    token = conn.cookies.get(COOKIE_NAME)
    if token:
        return token
    if conn.scope.get("type") == "websocket":
        return conn.query_params.get("token")
    return None


async def resolve_session(conn: HTTPConnection, services: Services) -> Optional[OwnerAccount]:
    """Return the live owner account behind the connection's session, if any."""
    token = extract_session_token(conn)
    if not token:
        return None
    payload = decode_session_token(token)
    if not payload or not payload.get("sub"):
        return None
    return await asyncio.to_thread(services.owners.get, payload["sub"])


# ---------------------------------------------------------------------------
# FastAPI dependencies
# ---------------------------------------------------------------------------

async def require_owner(
    conn: HTTPConnection,
    services: Services = Depends(get_services),
) -> OwnerAccount:
    account = await resolve_session(conn, services)
    if account is None:
        raise NotAuthenticated("Not authenticated")
    return account


async def require_admin(account: OwnerAccount = Depends(require_owner)) -> OwnerAccount:
    if not account.is_admin:
        raise Forbidden("Admin access required")
    return account


# ---------------------------------------------------------------------------
# Authorization rules
# ---------------------------------------------------------------------------

async def authorize_display_join(registry: CapabilityRegistry, key: Optional[str]) -> str:
    """Resolve a wheel key to its owner id or raise Missing/InvalidCapability."""
    return await asyncio.to_thread(registry.resolve_token, key)


def authorize_owner_action(session: Optional[OwnerAccount], owner_id: Optional[str]) -> str:
    """
    Admin joins and test spins: the session must be the owner itself or an
    admin. Returns the target owner id.
    """
    if session is None:
        raise NotAuthenticated("Not authenticated")
    if not owner_id:
        raise ValidationError("Missing ownerId")
    if not session.may_act_for(owner_id):
        logger.warning("Owner %s denied access to room %s", session.id, owner_id)
        raise Forbidden("Not permitted for this wheel")
    return owner_id


def guard_owner_deletion(actor: OwnerAccount, target_owner_id: str) -> None:
    if actor.id == target_owner_id:
        raise Forbidden("You cannot delete your own account")
