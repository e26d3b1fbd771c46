"""
Owner accounts: provisioning, credential checks and the admin user-management
operations. Usernames are unique case-insensitively.
"""

from __future__ import annotations

import base64
import hashlib
import hmac
import logging
import secrets
from typing import Any, Callable, List, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from wheelcast import config
from wheelcast.capability import generate_token
from wheelcast.core.errors import Conflict, NotFound, ValidationError
from wheelcast.database import Owner, SessionLocal, session_scope
from wheelcast.domain.models import OwnerAccount, Role
from wheelcast.items import delete_owner_items

logger = logging.getLogger(__name__)

_PBKDF2_ITERATIONS = 240_000


# ---------------------------------------------------------------------------
# Password hashing (PBKDF2-SHA256, stored as algo$iterations$salt$hash)
# ---------------------------------------------------------------------------

def hash_password(password: str, iterations: Optional[int] = None) -> str:
    iterations = iterations or _PBKDF2_ITERATIONS
    salt = secrets.token_bytes(16)
    digest = hashlib.pbkdf2_hmac("sha256", password.encode("utf-8"), salt, iterations)
    return "pbkdf2_sha256${}${}${}".format(
        iterations,
        base64.b64encode(salt).decode(),
        base64.b64encode(digest).decode(),
    )


def verify_password(password: str, encoded: str) -> bool:
    try:
        algo, iterations, salt_b64, digest_b64 = encoded.split("$", 3)
        if algo != "pbkdf2_sha256":
            return False
        salt = base64.b64decode(salt_b64)
        expected = base64.b64decode(digest_b64)
    except ValueError:
        return False
    actual = hashlib.pbkdf2_hmac("sha256", password.encode("utf-8"), salt, int(iterations))
    return hmac.compare_digest(actual, expected)


def _to_account(row: Owner) -> OwnerAccount:
    try:
        role = Role(row.role)
    except ValueError:
        role = Role.USER
    return OwnerAccount(id=row.id, username=row.username, role=role, wheel_key=row.wheel_key)


def _parse_role(role: Any) -> Role:
    if role is None or role == "":
        return Role.USER
    try:
        return Role(role)
    except ValueError:
        raise ValidationError("Role must be 'admin' or 'user'")


def _require_text(value: Any, message: str) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(message)
    return value.strip()


class OwnerStore:
    def __init__(self, session_factory: Callable[[], Session] = SessionLocal):
        self._session_factory = session_factory

    def ensure_default_admin(self) -> Optional[OwnerAccount]:
        """Provision the default admin account when no owner exists yet."""
        with session_scope(self._session_factory) as db:
            if db.query(Owner.id).first() is not None:
                return None
            row = Owner(
                username=config.DEFAULT_ADMIN_USERNAME,
                username_key=config.DEFAULT_ADMIN_USERNAME.lower(),
                password_hash=hash_password(config.DEFAULT_ADMIN_PASSWORD),
                role=Role.ADMIN.value,
                wheel_key=generate_token(),
            )
            db.add(row)
            db.flush()
            account = _to_account(row)
        logger.warning(
            "Default admin created: %s (change the password after first login)",
            account.username,
        )
        return account

    def get(self, owner_id: str) -> Optional[OwnerAccount]:
        with session_scope(self._session_factory) as db:
            row = db.query(Owner).filter(Owner.id == owner_id).first()
            return _to_account(row) if row else None

    def find_by_username(self, username: str) -> Optional[OwnerAccount]:
        if not username:
            return None
        with session_scope(self._session_factory) as db:
            row = db.query(Owner).filter(Owner.username_key == username.lower()).first()
            return _to_account(row) if row else None

    def authenticate(self, username: str, password: str) -> Optional[OwnerAccount]:
        """Return the account when ``password`` matches, else None."""
        if not username or not password:
            return None
        with session_scope(self._session_factory) as db:
            row = db.query(Owner).filter(Owner.username_key == username.lower()).first()
            if row is None or not verify_password(password, row.password_hash):
                return None
            return _to_account(row)

    def list_owners(self) -> List[OwnerAccount]:
        with session_scope(self._session_factory) as db:
            rows = db.query(Owner).order_by(Owner.created_at.asc()).all()
            return [_to_account(r) for r in rows]

    def create_owner(self, username: Any, password: Any, role: Any = None) -> OwnerAccount:
        username = _require_text(username, "Username and password are required")
        if not isinstance(password, str) or not password:
            raise ValidationError("Username and password are required")
        parsed_role = _parse_role(role)

        with session_scope(self._session_factory) as db:
            if db.query(Owner.id).filter(Owner.username_key == username.lower()).first():
                raise Conflict("Username already exists")
            row = Owner(
                username=username,
                username_key=username.lower(),
                password_hash=hash_password(password),
                role=parsed_role.value,
                wheel_key=generate_token(),
            )
            db.add(row)
            try:
                db.flush()
            except IntegrityError:
                raise Conflict("Username already exists")
            account = _to_account(row)
        logger.info("Created owner %s (%s, role=%s)", account.username, account.id, account.role.value)
        return account

    def delete_owner(self, owner_id: str) -> int:
        """Delete an owner together with all of its items, in one transaction."""
        with session_scope(self._session_factory) as db:
            row = db.query(Owner).filter(Owner.id == owner_id).first()
            if row is None:
                raise NotFound("User not found")
            removed_items = delete_owner_items(db, owner_id)
            db.delete(row)
        logger.info("Deleted owner %s and %d item(s)", owner_id, removed_items)
        return removed_items

    def update_credentials(self, owner_id: str, new_username: Any, new_password: Any) -> OwnerAccount:
        new_username = _require_text(new_username, "Missing username or password")
        if not isinstance(new_password, str) or not new_password:
            raise ValidationError("Missing username or password")

        with session_scope(self._session_factory) as db:
            row = db.query(Owner).filter(Owner.id == owner_id).first()
            if row is None:
                raise NotFound("User not found")
            clash = (
                db.query(Owner.id)
                .filter(Owner.username_key == new_username.lower(), Owner.id != owner_id)
                .first()
            )
            if clash:
                raise Conflict("Username already exists")
            row.username = new_username
            row.username_key = new_username.lower()
            row.password_hash = hash_password(new_password)
            try:
                db.flush()
            except IntegrityError:
                raise Conflict("Username already exists")
            return _to_account(row)
