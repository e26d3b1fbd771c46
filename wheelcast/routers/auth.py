"""
Session endpoints.

  POST /api/auth/login        - username/password -> signed session token (+ cookie)
  POST /api/auth/logout       - clear the session cookie
  GET  /api/auth/me           - the logged-in owner, including its wheel key
  POST /api/auth/credentials  - change own username and password
"""

import asyncio
import logging

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from wheelcast import config
from wheelcast.api.schemas import (
    CredentialsBody, LoginBody, LoginResponse, OwnerResponse, StatusResponse,
)
from wheelcast.core.errors import NotAuthenticated, ValidationError
from wheelcast.domain.models import OwnerAccount
from wheelcast.gateway import COOKIE_NAME, create_session_token, require_owner
from wheelcast.services import Services, get_services

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/auth", tags=["auth"])


def _set_session_cookie(response: JSONResponse, token: str) -> None:
    response.set_cookie(
        COOKIE_NAME,
        token,
        max_age=config.SESSION_EXPIRY_SECONDS,
        httponly=True,
        samesite="lax",
        secure=config.SECURE_COOKIES,
    )


@router.post("/login", response_model=LoginResponse)
async def login(body: LoginBody, services: Services = Depends(get_services)):
    if not body.username or not body.password:
        raise ValidationError("Missing username or password")
    account = await asyncio.to_thread(
        services.owners.authenticate, str(body.username), str(body.password),
    )
    if account is None:
        logger.warning("Failed login for %r", body.username)
        raise NotAuthenticated("Invalid credentials")

    token = create_session_token(account)
    logger.info("User logged in: %s (%s)", account.username, account.id)
    payload = LoginResponse(token=token, owner=OwnerResponse.from_account(account))
    response = JSONResponse(payload.model_dump(by_alias=True))
    _set_session_cookie(response, token)
    return response


@router.post("/logout", response_model=StatusResponse)
async def logout():
    response = JSONResponse({"success": True})
    response.delete_cookie(COOKIE_NAME)
    return response


@router.get("/me", response_model=OwnerResponse)
async def me(owner: OwnerAccount = Depends(require_owner)):
    return OwnerResponse.from_account(owner)


@router.post("/credentials", response_model=LoginResponse)
async def change_credentials(
    body: CredentialsBody,
    owner: OwnerAccount = Depends(require_owner),
    services: Services = Depends(get_services),
):
    account = await asyncio.to_thread(
        services.owners.update_credentials, owner.id, body.new_username, body.new_password,
    )
    # The old token still names the same owner id, but reissue it so the
    # embedded username matches.
    token = create_session_token(account)
    payload = LoginResponse(token=token, owner=OwnerResponse.from_account(account))
    response = JSONResponse(payload.model_dump(by_alias=True))
    _set_session_cookie(response, token)
    return response
