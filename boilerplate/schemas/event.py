from typing import ClassVar, Dict, Generic, Optional, Tuple, TypeVar

from opentelemetry.context import Context
from pydantic import BaseModel, Field

from boilerplate.core.tracer import extract_context, inject_carrier
from boilerplate.schemas.guest import GuestEntity, OmitEmptyModel

T = TypeVar("T")


class Event(BaseModel, Generic[T]):
    """Envelope shared by the producer and the consumer side of the queue."""
    tracer_propagator: Dict[str, str] = Field(default_factory=dict)
    event_name: str
    message: Optional[T] = None

    def inject_tracer_propagator(self) -> "Event[T]":
        self.tracer_propagator = inject_carrier()
        return self

    def extract_tracer_propagator(self) -> Context:
        return extract_context(self.tracer_propagator)


class GuestEvent(OmitEmptyModel):
    """Flattened guest projection sent to other services."""
    omit_empty: ClassVar[Tuple[str, ...]] = ("address", "updated_at", "updated_by", "deleted_at", "deleted_by")

    id: str
    name: str
    address: str = ""
    created_at: int = 0
    created_by: str = ""
    updated_at: int = 0
    updated_by: str = ""
    deleted_at: int = 0
    deleted_by: str = ""

    @classmethod
    def from_entity(cls, entity: GuestEntity) -> "GuestEvent":
        return cls(
            id=str(entity.id),
            name=entity.name,
            address=entity.address or "",
            created_at=entity.created_at,
            created_by=entity.created_by,
            updated_at=entity.updated_at or 0,
            updated_by=entity.updated_by or "",
            deleted_at=entity.deleted_at or 0,
            deleted_by=entity.deleted_by or "",
        )
