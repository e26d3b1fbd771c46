"""
POST /api/capability/rotate - issue a new wheel key for the logged-in owner.

The new key is returned to the caller only. Displays already joined with the
old key stay in the room until they reconnect.
"""

import asyncio

from fastapi import APIRouter, Depends

from wheelcast.api.schemas import RotateResponse
from wheelcast.domain.models import OwnerAccount
from wheelcast.gateway import require_owner
from wheelcast.services import Services, get_services

router = APIRouter(prefix="/api/capability", tags=["capability"])


@router.post("/rotate", response_model=RotateResponse)
async def rotate_key(
    owner: OwnerAccount = Depends(require_owner),
    services: Services = Depends(get_services),
):
    new_key = await asyncio.to_thread(services.capabilities.rotate, owner.id)
    return RotateResponse(wheel_key=new_key)
