import asyncio
import json
import logging
from typing import Any, cast

import inject

from src.app.application.broadcaster import ChangeBroadcaster
from src.app.application.router import MessageRouter, Reply
from src.app.domain.events.change_event import ChangeEvent, ChangeOperation
from src.app.domain.exceptions import (
    NotificationDecodeError,
    OversizedNotificationError,
    ResourceNotFoundError,
)
from src.app.domain.models import ResourceType
from src.app.domain.repositories import ResourceRepository
from src.app.infrastructure.postgres.serializers import decode_notification

logger = logging.getLogger(__name__)

CONNECTED_MESSAGE = "Connected to server"


class ChangeNotificationHandler:
    """Turns raw database change notifications into fanned-out ChangeEvents."""

    def __init__(
        self,
        broadcaster: ChangeBroadcaster | None = None,
        repository: ResourceRepository | None = None,
    ) -> None:
        self._broadcaster = broadcaster or cast(
            ChangeBroadcaster, inject.instance(ChangeBroadcaster)
        )
        self._repository = repository
        self._reloads: set[asyncio.Task[None]] = set()

    def handle(self, payload: str, *, channel: str | None = None) -> bool:
        """Decode and forward one notification; malformed input is logged and dropped."""
        try:
            event = decode_notification(payload)
        except OversizedNotificationError as exc:
            self._schedule_reload(exc, channel)
            return True
        except NotificationDecodeError as exc:
            logger.warning(
                "Dropping malformed change notification",
                extra={"channel": channel, "error": str(exc), "payload_preview": payload[:200]},
            )
            return False

        self._publish(event, channel)
        return True

    async def wait_idle(self) -> None:
        """Wait for record reloads started by truncated notifications."""
        while self._reloads:
            await asyncio.gather(*list(self._reloads), return_exceptions=True)

    def _publish(self, event: ChangeEvent, channel: str | None) -> None:
        sent = self._broadcaster.fan_out(event)
        logger.info(
            "Change broadcast from database notification",
            extra={"channel": channel, "type": event.type, "connections": sent},
        )

    def _schedule_reload(self, notice: OversizedNotificationError, channel: str | None) -> None:
        task = asyncio.get_running_loop().create_task(self._reload(notice, channel))
        self._reloads.add(task)
        task.add_done_callback(self._reloads.discard)

    async def _reload(self, notice: OversizedNotificationError, channel: str | None) -> None:
        if self._repository is None:
            self._repository = cast(ResourceRepository, inject.instance(ResourceRepository))
        try:
            record = await self._repository.get(notice.resource, notice.resource_id)
        except ResourceNotFoundError:
            logger.info(
                "Record behind truncated notification is gone",
                extra={"channel": channel, "resource": notice.resource.value},
            )
            return
        except Exception as exc:
            logger.error(
                "Reloading record for truncated notification failed",
                extra={"channel": channel, "resource": notice.resource.value, "error": str(exc)},
            )
            return

        if notice.operation == ChangeOperation.CREATED:
            event = ChangeEvent.created(notice.resource, record)
        else:
            event = ChangeEvent.updated(notice.resource, record)
        self._publish(event, channel)


class PushChannelHandler:
    """Answers control messages a client sends over its push connection."""

    def __init__(self, repository: ResourceRepository | None = None) -> None:
        self._repository = repository or cast(
            ResourceRepository, inject.instance(ResourceRepository)
        )
        self._router = MessageRouter()
        for resource in ResourceType:
            self._router.register(f"{resource.collection}:fetch", self._snapshot_handler(resource))
        self._router.register("ping", self.handle_ping)

    @staticmethod
    def welcome() -> dict[str, Any]:
        return {"type": "connected", "message": CONNECTED_MESSAGE}

    async def handle(self, raw: str, reply: Reply) -> None:
        try:
            message = json.loads(raw)
        except json.JSONDecodeError:
            logger.warning("Ignoring malformed push message", extra={"preview": raw[:200]})
            return
        if not isinstance(message, dict):
            logger.warning("Ignoring non-object push message", extra={"preview": raw[:200]})
            return
        try:
            await self._router.dispatch(message, reply)
        except Exception as exc:
            # The connection outlives a failed request; the client may retry.
            logger.error(
                "Push message handler failed",
                extra={"type": message.get("type"), "error": str(exc)},
            )

    async def handle_ping(self, message: dict[str, Any], reply: Reply) -> None:
        await reply({"type": "pong"})

    def _snapshot_handler(self, resource: ResourceType):
        async def handle_fetch(message: dict[str, Any], reply: Reply) -> None:
            records = await self._repository.list(resource)
            await reply(
                {
                    "type": f"{resource.collection}:data",
                    "payload": [
                        record.model_dump(mode="json", by_alias=True) for record in records
                    ],
                }
            )

        return handle_fetch
