"""
Client-side read cache reconciled from push-channel messages.

Each resource type owns one immutable tuple of records. Every message is
applied by a pure function ``(old collection, payload) -> new collection``
and the result replaces the old tuple in a single assignment, so readers
never observe a half-applied change.

Deliveries are at-least-once and unordered across the two server emission
paths, so ``created`` and ``updated`` are idempotent and ``updated`` /
``deleted`` for an unknown id leave the collection untouched.
"""
from __future__ import annotations

import logging
from collections.abc import Callable, Iterable, Mapping
from datetime import datetime
from typing import Any

from src.app.domain.events.change_event import ChangeOperation
from src.app.domain.models.resource_type import ResourceType

logger = logging.getLogger(__name__)

Record = dict[str, Any]
Collection = tuple[Record, ...]
CacheListener = Callable[[ResourceType, Collection], None]

TIMESTAMP_FIELDS = ("createdAt", "updatedAt")
INFORMATIONAL_TYPES = frozenset({"connected", "pong"})


def deserialize_record(payload: Mapping[str, Any]) -> Record:
    record = dict(payload)
    for field in TIMESTAMP_FIELDS:
        value = record.get(field)
        if isinstance(value, str):
            record[field] = datetime.fromisoformat(value)
    return record


def replace_snapshot(records: Iterable[Mapping[str, Any]]) -> Collection:
    return tuple(deserialize_record(record) for record in records)


def apply_created(collection: Collection, payload: Mapping[str, Any]) -> Collection:
    record = deserialize_record(payload)
    if any(existing.get("id") == record.get("id") for existing in collection):
        return tuple(record if existing.get("id") == record.get("id") else existing
                     for existing in collection)
    return (record, *collection)


def apply_updated(collection: Collection, payload: Mapping[str, Any]) -> Collection:
    record = deserialize_record(payload)
    if not any(existing.get("id") == record.get("id") for existing in collection):
        return collection
    return tuple(record if existing.get("id") == record.get("id") else existing
                 for existing in collection)


def apply_deleted(collection: Collection, payload: Mapping[str, Any]) -> Collection:
    resource_id = payload.get("id")
    if not any(existing.get("id") == resource_id for existing in collection):
        return collection
    return tuple(existing for existing in collection if existing.get("id") != resource_id)


_APPLIERS = {
    ChangeOperation.CREATED: apply_created,
    ChangeOperation.UPDATED: apply_updated,
    ChangeOperation.DELETED: apply_deleted,
}


class CacheReconciler:
    """Holds one cached collection per resource type and applies messages to it."""

    def __init__(self) -> None:
        self._collections: dict[ResourceType, Collection] = {}
        self._listeners: list[CacheListener] = []

    def collection(self, resource: ResourceType) -> Collection:
        return self._collections.get(resource, ())

    def subscribe(self, listener: CacheListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def apply(self, message: Mapping[str, Any]) -> bool:
        """Apply one decoded message; return True when a collection changed."""
        message_type = message.get("type")
        if not isinstance(message_type, str):
            logger.warning("Ignoring message without a type")
            return False
        if message_type in INFORMATIONAL_TYPES:
            logger.debug("Informational push message", extra={"type": message_type})
            return False

        name, _, action = message_type.partition(":")
        try:
            resource = ResourceType.parse(name)
        except ValueError:
            logger.info("Ignoring unknown message type", extra={"type": message_type})
            return False

        applier = None
        if action != "data":
            try:
                applier = _APPLIERS[ChangeOperation(action)]
            except ValueError:
                logger.info("Ignoring unknown message type", extra={"type": message_type})
                return False

        payload = message.get("payload")
        old = self.collection(resource)
        try:
            if applier is None:
                if not isinstance(payload, list):
                    raise TypeError("snapshot payload must be a list")
                new = replace_snapshot(payload)
            else:
                if not isinstance(payload, Mapping):
                    raise TypeError("change payload must be an object")
                new = applier(old, payload)
        except (TypeError, ValueError) as exc:
            logger.warning(
                "Ignoring push message with invalid payload",
                extra={"type": message_type, "error": str(exc)},
            )
            return False

        if new is old:
            return False
        self._collections[resource] = new
        for listener in list(self._listeners):
            listener(resource, new)
        return True
