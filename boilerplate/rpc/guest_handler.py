import logging

import grpc
from google.protobuf import empty_pb2

from boilerplate.core.errors import AppError, error_code
from boilerplate.core.uuid import NIL_UUID
from boilerplate.rpc.errors import abort_with
from boilerplate.rpc.stubs import guest_pb2, guest_pb2_grpc
from boilerplate.schemas.guest import (
    CreateGuestRequest,
    DeleteGuestByIDRequest,
    FindAllGuestRequest,
    FindAllGuestResponse,
    FindGuestByIDRequest,
    GuestResponse,
    UpdateGuestByIDRequest,
)
from boilerplate.services.guest_service import GuestService, guest_service

logger = logging.getLogger(__name__)

DEFAULT_TAKE = 10


def guest_response_vm(response: GuestResponse):
    # Empty optionals are left unset
    return guest_pb2.GuestResponseVM(**response.model_dump())


def find_all_guest_response_vm(response: FindAllGuestResponse):
    return guest_pb2.FindAllGuestResponseVM(
        list=[guest_response_vm(item) for item in response.list],
        count=response.count,
    )


class GuestHandler(guest_pb2_grpc.BoilerplateServicer):
    """gRPC methods of boilerplate.Boilerplate; method names follow the service definition."""

    def __init__(self, service: GuestService = guest_service):
        self.service = service

    async def _fail(self, context: grpc.aio.ServicerContext, method: str, exc: AppError):
        if error_code(exc) >= 500:
            logger.error("%s failed: %r", method, exc)
        else:
            logger.warning("%s rejected: %r", method, exc)
        await abort_with(context, exc)

    async def CreateGuest(self, request, context: grpc.aio.ServicerContext):
        try:
            dto = CreateGuestRequest.parse(name=request.name, address=request.address, created_by=NIL_UUID)
            response = await self.service.create(dto)
        except AppError as exc:
            await self._fail(context, "CreateGuest", exc)
            raise
        return guest_response_vm(response)

    async def DeleteGuestByID(self, request, context: grpc.aio.ServicerContext):
        try:
            dto = DeleteGuestByIDRequest.parse(id=request.id, deleted_by=NIL_UUID)
            await self.service.delete_by_id(dto)
        except AppError as exc:
            await self._fail(context, "DeleteGuestByID", exc)
            raise
        return empty_pb2.Empty()

    async def FindAllGuest(self, request, context: grpc.aio.ServicerContext):
        try:
            # take and skip are unsigned on the wire; zero take means the default page
            dto = FindAllGuestRequest.parse(
                keyword=request.keyword,
                sorts=request.sorts,
                take=request.take or DEFAULT_TAKE,
                skip=request.skip,
            )
            response = await self.service.find_all(dto)
        except AppError as exc:
            await self._fail(context, "FindAllGuest", exc)
            raise
        return find_all_guest_response_vm(response)

    async def FindGuestByID(self, request, context: grpc.aio.ServicerContext):
        try:
            dto = FindGuestByIDRequest.parse(id=request.id)
            response = await self.service.find_by_id(dto)
        except AppError as exc:
            await self._fail(context, "FindGuestByID", exc)
            raise
        return guest_response_vm(response)

    async def UpdateGuestByID(self, request, context: grpc.aio.ServicerContext):
        try:
            dto = UpdateGuestByIDRequest.parse(
                id=request.id,
                name=request.name,
                address=request.address,
                updated_by=NIL_UUID,
            )
            response = await self.service.update_by_id(dto)
        except AppError as exc:
            await self._fail(context, "UpdateGuestByID", exc)
            raise
        return guest_response_vm(response)
