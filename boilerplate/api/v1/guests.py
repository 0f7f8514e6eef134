import logging
from http import HTTPStatus

from fastapi import APIRouter, status
from pydantic import BaseModel, Field

from boilerplate.core.uuid import NIL_UUID
from boilerplate.schemas.guest import (
    CreateGuestRequest,
    DeleteGuestByIDRequest,
    FindAllGuestRequest,
    FindAllGuestResponse,
    FindGuestByIDRequest,
    GuestResponse,
    UpdateGuestByIDRequest,
)
from boilerplate.schemas.response import ResponseEnvelope
from boilerplate.services.guest_service import guest_service

router = APIRouter()
log = logging.getLogger(__name__)

DEFAULT_TAKE = 10


class GuestBody(BaseModel):
    name: str = Field("", examples=["John Snow"])
    address: str = Field("", examples=["123 Main Street, Apt. 4B, New York, NY 10001, USA"])


# Actor fields carry the nil UUID until the service sits behind authentication.

@router.post(
    "",
    response_model=ResponseEnvelope[GuestResponse],
    response_model_exclude_none=True,
    status_code=status.HTTP_201_CREATED,
)
async def create_guest(body: GuestBody):
    """Creates a guest."""
    request = CreateGuestRequest.parse(name=body.name, address=body.address, created_by=NIL_UUID)
    response = await guest_service.create(request)
    return ResponseEnvelope.success(response, HTTPStatus.CREATED)


@router.get("", response_model=ResponseEnvelope[FindAllGuestResponse], response_model_exclude_none=True)
async def find_all_guests(keyword: str = "", sorts: str = "", take: int = 0, skip: int = 0):
    """Lists live guests; sorts looks like name.asc,address.desc. A zero take means the default page."""
    request = FindAllGuestRequest.parse(keyword=keyword, sorts=sorts, take=take or DEFAULT_TAKE, skip=skip)
    response = await guest_service.find_all(request)
    return ResponseEnvelope.success(response)


@router.get("/{guest_id}", response_model=ResponseEnvelope[GuestResponse], response_model_exclude_none=True)
async def find_guest_by_id(guest_id: str):
    request = FindGuestByIDRequest.parse(id=guest_id)
    response = await guest_service.find_by_id(request)
    return ResponseEnvelope.success(response)


@router.put("/{guest_id}", response_model=ResponseEnvelope[GuestResponse], response_model_exclude_none=True)
async def update_guest_by_id(guest_id: str, body: GuestBody):
    request = UpdateGuestByIDRequest.parse(id=guest_id, name=body.name, address=body.address, updated_by=NIL_UUID)
    response = await guest_service.update_by_id(request)
    return ResponseEnvelope.success(response)


@router.delete("/{guest_id}", response_model=ResponseEnvelope[bool], response_model_exclude_none=True)
async def delete_guest_by_id(guest_id: str):
    """Soft-deletes a guest."""
    request = DeleteGuestByIDRequest.parse(id=guest_id, deleted_by=NIL_UUID)
    await guest_service.delete_by_id(request)
    log.info("Guest %s deleted", guest_id)
    return ResponseEnvelope.success(True)
