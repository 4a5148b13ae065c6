from __future__ import annotations

from typing import Any, Protocol

from src.app.domain.models import Comment, Resource, ResourceType


class ResourceRepository(Protocol):
    """Data-access contract for projects, tasks and comments."""

    async def list(
        self, resource: ResourceType, *, filters: dict[str, Any] | None = None
    ) -> list[Resource]:
        """Return all records of ``resource``, optionally filtered by column values."""

    async def get(self, resource: ResourceType, resource_id: int) -> Resource:
        """Fetch one record or raise ``ResourceNotFoundError``."""

    async def create(self, resource: ResourceType, data: dict[str, Any]) -> Resource:
        """Insert a record and return it with generated fields populated."""

    async def update(
        self, resource: ResourceType, resource_id: int, changes: dict[str, Any]
    ) -> Resource:
        """Apply ``changes`` and return the updated record."""

    async def delete(self, resource: ResourceType, resource_id: int) -> Resource:
        """Delete a record and return its last persisted state."""

    async def list_comments_for_task(self, task_id: int) -> list[Comment]:
        """Return the comments attached to one task."""
