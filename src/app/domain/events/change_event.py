from __future__ import annotations

from datetime import UTC, datetime
from enum import Enum
from typing import Any
from uuid import uuid4

from pydantic import BaseModel, Field

from src.app.domain.models.resource_type import ResourceType


class ChangeOperation(str, Enum):
    CREATED = "created"
    UPDATED = "updated"
    DELETED = "deleted"


class ChangeEvent(BaseModel):
    """One create/update/delete of one resource, as fanned out to clients."""

    event_id: str = Field(default_factory=lambda: uuid4().hex)
    resource_type: ResourceType
    operation: ChangeOperation
    payload: dict[str, Any]
    ts: datetime = Field(default_factory=lambda: datetime.now(UTC))

    @property
    def type(self) -> str:
        return f"{self.resource_type.value}:{self.operation.value}"

    def to_message(self) -> dict[str, Any]:
        """Wire shape sent over the push channel."""
        return {"type": self.type, "payload": self.payload}

    @classmethod
    def created(cls, resource_type: ResourceType, record: BaseModel) -> ChangeEvent:
        return cls(
            resource_type=resource_type,
            operation=ChangeOperation.CREATED,
            payload=record.model_dump(mode="json", by_alias=True),
        )

    @classmethod
    def updated(cls, resource_type: ResourceType, record: BaseModel) -> ChangeEvent:
        return cls(
            resource_type=resource_type,
            operation=ChangeOperation.UPDATED,
            payload=record.model_dump(mode="json", by_alias=True),
        )

    @classmethod
    def deleted(cls, resource_type: ResourceType, resource_id: int) -> ChangeEvent:
        # Receivers only need the identity to drop the entry.
        return cls(
            resource_type=resource_type,
            operation=ChangeOperation.DELETED,
            payload={"id": resource_id},
        )
