"""
Item Endpoints for Wheelcast

GET    /api/items           - list the logged-in owner's items
GET    /api/items/public    - list items by wheel key (display clients)
POST   /api/items           - create an item
PUT    /api/items/{item_id} - update label/weight
DELETE /api/items/{item_id} - delete an item

Every mutation is broadcast to the owner's room before the response is sent.
"""

import asyncio
from typing import List, Optional

from fastapi import APIRouter, Depends, Query

from wheelcast.api.schemas import DeleteResponse, ItemBody, ItemResponse
from wheelcast.core.errors import NotFound
from wheelcast.domain.models import OwnerAccount
from wheelcast.gateway import require_owner
from wheelcast.services import Services, get_services

router = APIRouter(prefix="/api/items", tags=["items"])


@router.get("", response_model=List[ItemResponse])
async def list_items(
    owner: OwnerAccount = Depends(require_owner),
    services: Services = Depends(get_services),
):
    items = await services.sync.list_items(owner.id)
    return [ItemResponse.from_item(i) for i in items]


@router.get("/public", response_model=List[ItemResponse])
async def list_public_items(
    key: Optional[str] = Query(default=None),
    services: Services = Depends(get_services),
):
    """Items of the wheel key's owner. 401 without a key, 403 for an unknown one."""
    owner_id = await asyncio.to_thread(services.capabilities.resolve_token, key)
    items = await services.sync.list_items(owner_id)
    return [ItemResponse.from_item(i) for i in items]


@router.post("", response_model=ItemResponse)
async def create_item(
    body: ItemBody,
    owner: OwnerAccount = Depends(require_owner),
    services: Services = Depends(get_services),
):
    item = await services.sync.create_item(owner.id, body.label, body.weight)
    return ItemResponse.from_item(item)


@router.put("/{item_id}", response_model=ItemResponse)
async def update_item(
    item_id: str,
    body: ItemBody,
    owner: OwnerAccount = Depends(require_owner),
    services: Services = Depends(get_services),
):
    item = await services.sync.update_item(owner.id, item_id, body.label, body.weight)
    return ItemResponse.from_item(item)


@router.delete("/{item_id}", response_model=DeleteResponse)
async def delete_item(
    item_id: str,
    owner: OwnerAccount = Depends(require_owner),
    services: Services = Depends(get_services),
):
    removed = await services.sync.delete_item(owner.id, item_id)
    if removed == 0:
        raise NotFound("Item not found")
    return DeleteResponse(removed=removed)
