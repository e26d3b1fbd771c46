"""
Owner management (admin only)

GET    /api/owners             - list owners (passwords never included)
POST   /api/owners             - create an owner {username, password, role}
DELETE /api/owners/{owner_id}  - delete an owner and all of its items
"""

import asyncio
import logging
from typing import List

from fastapi import APIRouter, Depends

from wheelcast.api.schemas import CreateOwnerBody, OwnerResponse, StatusResponse
from wheelcast.domain.models import OwnerAccount
from wheelcast.gateway import guard_owner_deletion, require_admin
from wheelcast.services import Services, get_services

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/owners", tags=["owners"])


@router.get("", response_model=List[OwnerResponse])
async def list_owners(
    admin: OwnerAccount = Depends(require_admin),
    services: Services = Depends(get_services),
):
    owners = await asyncio.to_thread(services.owners.list_owners)
    return [OwnerResponse.from_account(o) for o in owners]


@router.post("", response_model=OwnerResponse)
async def create_owner(
    body: CreateOwnerBody,
    admin: OwnerAccount = Depends(require_admin),
    services: Services = Depends(get_services),
):
    account = await asyncio.to_thread(
        services.owners.create_owner, body.username, body.password, body.role,
    )
    return OwnerResponse.from_account(account)


@router.delete("/{owner_id}", response_model=StatusResponse)
async def delete_owner(
    owner_id: str,
    admin: OwnerAccount = Depends(require_admin),
    services: Services = Depends(get_services),
):
    guard_owner_deletion(admin, owner_id)
    await services.sync.delete_owner(owner_id)
    logger.info("Owner %s deleted by %s", owner_id, admin.username)
    return StatusResponse()
