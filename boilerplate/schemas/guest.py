import time
import uuid
from enum import Enum
from typing import ClassVar, List, NamedTuple, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, ValidationError, model_serializer
from tortoise.expressions import Q

from boilerplate.core.errors import BadRequestError
from boilerplate.core.uuid import uuid7

SORTABLE_FIELDS = ("name", "address")


def now_ms() -> int:
    return int(time.time() * 1000)


class SortDirection(str, Enum):
    ASC = "asc"
    DESC = "desc"


class Sort(NamedTuple):
    field: str
    direction: SortDirection = SortDirection.ASC


# --- Entity ---

class GuestEntity(BaseModel):
    """Row snapshot of the guests table; what repositories return and the cache stores."""
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    name: str
    address: Optional[str] = None
    created_at: int
    created_by: str
    updated_at: Optional[int] = None
    updated_by: Optional[str] = None
    deleted_at: Optional[int] = None
    deleted_by: Optional[str] = None

    def mark_as_deleted(self, deleted_by: str) -> "GuestEntity":
        self.deleted_at = now_ms()
        self.deleted_by = deleted_by
        return self


# --- Requests ---

class RequestSchema(BaseModel):
    @classmethod
    def parse(cls, **data):
        """Builds the request from transport values, raising BadRequestError on invalid input."""
        try:
            return cls.model_validate(data)
        except ValidationError as exc:
            raise BadRequestError.from_validation_error(exc) from exc

    def validate_fields(self) -> None:
        """Re-runs field validation, raising BadRequestError with per-field messages."""
        try:
            type(self).model_validate(self.model_dump())
        except ValidationError as exc:
            raise BadRequestError.from_validation_error(exc) from exc


class CreateGuestRequest(RequestSchema):
    name: str = Field(..., min_length=1, description="Guest name")
    address: str = Field("", description="Optional address; empty means none")
    created_by: str = Field(..., min_length=1, description="Actor creating the guest")

    def to_entity(self) -> GuestEntity:
        return GuestEntity(
            id=uuid7(),
            name=self.name,
            address=self.address or None,
            created_at=now_ms(),
            created_by=self.created_by,
        )


class UpdateGuestByIDRequest(RequestSchema):
    id: uuid.UUID
    name: str = Field(..., min_length=1)
    address: str = ""
    updated_by: str = Field(..., min_length=1)

    def to_existing_entity(self, entity: GuestEntity) -> GuestEntity:
        entity.name = self.name
        entity.address = self.address or None
        entity.updated_at = now_ms()
        entity.updated_by = self.updated_by
        return entity


class DeleteGuestByIDRequest(RequestSchema):
    id: uuid.UUID
    deleted_by: str = Field(..., min_length=1)


class FindGuestByIDRequest(RequestSchema):
    id: uuid.UUID


class FindAllGuestRequest(RequestSchema):
    keyword: str = Field("", description="Substring matched against name or address")
    sorts: str = Field("", description="Comma separated field.direction pairs, e.g. name.asc,address.desc")
    take: int = Field(10, ge=0)
    skip: int = Field(0, ge=0)

    def to_filter_and_sorts(self) -> Tuple[Q, List[Sort]]:
        condition = Q(deleted_at__isnull=True)
        if self.keyword:
            condition &= Q(name__contains=self.keyword) | Q(address__contains=self.keyword)

        return condition, parse_sorts(self.sorts)


def parse_sorts(value: str) -> List[Sort]:
    """Parses `field.direction,...`; a missing direction means ascending."""
    sorts: List[Sort] = []
    if not value:
        return sorts

    for item in value.split(","):
        parts = item.split(".")
        if parts[0] not in SORTABLE_FIELDS:
            raise BadRequestError.field("sorts", "invalid sorts field")

        if len(parts) == 1:
            sorts.append(Sort(parts[0], SortDirection.ASC))
            continue

        try:
            direction = SortDirection(parts[1])
        except ValueError:
            raise BadRequestError.field("sorts", "invalid sorts direction") from None
        sorts.append(Sort(parts[0], direction))

    return sorts


# --- Responses ---

class OmitEmptyModel(BaseModel):
    """Drops the fields named in `omit_empty` from serialized output while they hold a zero value."""
    omit_empty: ClassVar[Tuple[str, ...]] = ()

    @model_serializer(mode="wrap")
    def serialize_without_empty(self, handler):
        data = handler(self)
        return {key: value for key, value in data.items() if value or key not in self.omit_empty}


class GuestResponse(OmitEmptyModel):
    omit_empty: ClassVar[Tuple[str, ...]] = ("address", "updated_at", "updated_by")

    id: str
    name: str
    address: str = ""
    created_at: int
    created_by: str
    updated_at: int = 0
    updated_by: str = ""

    @classmethod
    def from_entity(cls, entity: GuestEntity) -> "GuestResponse":
        return cls(
            id=str(entity.id),
            name=entity.name,
            address=entity.address or "",
            created_at=entity.created_at,
            created_by=entity.created_by,
            updated_at=entity.updated_at or 0,
            updated_by=entity.updated_by or "",
        )


class FindAllGuestResponse(BaseModel):
    list: List[GuestResponse] = Field(default_factory=list)
    count: int = 0

    @classmethod
    def from_entities(cls, entities: List[GuestEntity], count: int) -> "FindAllGuestResponse":
        return cls(list=[GuestResponse.from_entity(e) for e in entities], count=count)
