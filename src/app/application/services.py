from __future__ import annotations

import logging
from typing import Any, cast

import inject

from src.app.application.broadcaster import ChangeBroadcaster
from src.app.domain.events.change_event import ChangeEvent
from src.app.domain.models import Comment, Resource, ResourcePayload, ResourceType
from src.app.domain.repositories import ResourceRepository

logger = logging.getLogger(__name__)


class ResourceService:
    """Runs one data-access operation per call and fans out the resulting change."""

    def __init__(
        self,
        repository: ResourceRepository | None = None,
        broadcaster: ChangeBroadcaster | None = None,
    ) -> None:
        self._repository = repository or cast(
            ResourceRepository, inject.instance(ResourceRepository)
        )
        self._broadcaster = broadcaster or cast(
            ChangeBroadcaster, inject.instance(ChangeBroadcaster)
        )

    async def list(
        self, resource: ResourceType, *, filters: dict[str, Any] | None = None
    ) -> list[Resource]:
        return await self._repository.list(resource, filters=filters)

    async def get(self, resource: ResourceType, resource_id: int) -> Resource:
        return await self._repository.get(resource, resource_id)

    async def list_comments_for_task(self, task_id: int) -> list[Comment]:
        return await self._repository.list_comments_for_task(task_id)

    async def create(self, resource: ResourceType, payload: ResourcePayload) -> Resource:
        """Persist a new record, then broadcast ``<resource>:created``."""
        record = await self._repository.create(resource, payload.model_dump())
        self._publish(ChangeEvent.created(resource, record))
        return record

    async def update(
        self, resource: ResourceType, resource_id: int, payload: ResourcePayload
    ) -> Resource:
        """Apply the fields present in ``payload``, then broadcast ``<resource>:updated``."""
        record = await self._repository.update(
            resource, resource_id, payload.model_dump(exclude_unset=True)
        )
        self._publish(ChangeEvent.updated(resource, record))
        return record

    async def delete(self, resource: ResourceType, resource_id: int) -> Resource:
        """Remove a record, then broadcast ``<resource>:deleted`` with its id only."""
        record = await self._repository.delete(resource, resource_id)
        self._publish(ChangeEvent.deleted(resource, resource_id))
        return record

    def _publish(self, event: ChangeEvent) -> None:
        sent = self._broadcaster.fan_out(event)
        logger.info(
            "Change broadcast from mutation endpoint",
            extra={"type": event.type, "event_id": event.event_id, "connections": sent},
        )
