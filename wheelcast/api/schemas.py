"""
Wheelcast — API request/response schemas (Pydantic).

Request bodies are deliberately loose (``Any`` for label/weight): value rules
live in the stores, so a bad weight is a 400 from the same code path whether
it arrives over HTTP or anywhere else.
"""

from __future__ import annotations

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field

from wheelcast.domain.models import OwnerAccount, WheelItem


class _CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


# ---------------------------------------------------------------------------
# Items
# ---------------------------------------------------------------------------

class ItemBody(BaseModel):
    label: Any = None
    weight: Any = None


class ItemResponse(BaseModel):
    id: str
    label: str
    weight: float

    @classmethod
    def from_item(cls, item: WheelItem) -> "ItemResponse":
        return cls(id=item.id, label=item.label, weight=item.weight)


class DeleteResponse(BaseModel):
    removed: int


# ---------------------------------------------------------------------------
# Owners / auth
# ---------------------------------------------------------------------------

class OwnerResponse(_CamelModel):
    id: str
    username: str
    role: str
    wheel_key: Optional[str] = Field(default=None, alias="wheelKey")

    @classmethod
    def from_account(cls, account: OwnerAccount) -> "OwnerResponse":
        return cls(
            id=account.id,
            username=account.username,
            role=account.role.value,
            wheel_key=account.wheel_key,
        )


class CreateOwnerBody(BaseModel):
    username: Any = None
    password: Any = None
    role: Any = None


class LoginBody(BaseModel):
    username: Any = None
    password: Any = None


class LoginResponse(BaseModel):
    success: bool = True
    token: str
    owner: OwnerResponse


class CredentialsBody(_CamelModel):
    new_username: Any = Field(default=None, alias="newUsername")
    new_password: Any = Field(default=None, alias="newPassword")


class RotateResponse(_CamelModel):
    success: bool = True
    wheel_key: str = Field(alias="wheelKey")


class StatusResponse(BaseModel):
    success: bool = True


class HealthResponse(BaseModel):
    status: str = "ok"
    version: str
    websocket_clients: int = 0
    rooms: int = 0

