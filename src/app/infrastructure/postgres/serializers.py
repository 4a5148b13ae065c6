from __future__ import annotations

import json
from typing import Any

from pydantic import ValidationError

from src.app.domain.events.change_event import ChangeEvent, ChangeOperation
from src.app.domain.exceptions import NotificationDecodeError, OversizedNotificationError
from src.app.domain.models import ResourceType, model_for

# Postgres rejects NOTIFY payloads of this many bytes or more.
MAX_NOTIFY_PAYLOAD_BYTES = 8000

_OPERATIONS = {
    "INSERT": ChangeOperation.CREATED,
    "UPDATE": ChangeOperation.UPDATED,
    "DELETE": ChangeOperation.DELETED,
}


def encode_notification(table: str, operation: str, record: dict[str, Any]) -> str:
    """Build the payload the database trigger sends with ``pg_notify``.

    Oversized rows fall back to ``{id}`` plus ``"truncated": true``, as the
    trigger does.
    """
    payload = json.dumps({"table": table, "operation": operation, "record": record}, default=str)
    if len(payload.encode("utf-8")) < MAX_NOTIFY_PAYLOAD_BYTES:
        return payload
    return json.dumps(
        {
            "table": table,
            "operation": operation,
            "record": {"id": record.get("id")},
            "truncated": True,
        }
    )


def decode_notification(payload: str) -> ChangeEvent:
    """Turn a ``{table, operation, record}`` notification into a ChangeEvent.

    Raises ``OversizedNotificationError`` for a truncated insert or update;
    the caller has to load the record itself.
    """
    try:
        data = json.loads(payload)
    except json.JSONDecodeError as exc:
        raise NotificationDecodeError("Invalid notification JSON") from exc
    if not isinstance(data, dict):
        raise NotificationDecodeError("Notification payload must be an object")

    table = data.get("table")
    try:
        resource = ResourceType.from_collection(str(table))
    except ValueError as exc:
        raise NotificationDecodeError(f"Unknown table '{table}'") from exc

    operation = _OPERATIONS.get(str(data.get("operation", "")).upper())
    if operation is None:
        raise NotificationDecodeError(f"Unknown operation '{data.get('operation')}'")

    record = data.get("record")
    if not isinstance(record, dict):
        raise NotificationDecodeError("Notification record is missing or invalid")

    if operation == ChangeOperation.DELETED or data.get("truncated"):
        try:
            resource_id = int(record["id"])
        except (KeyError, TypeError, ValueError) as exc:
            raise NotificationDecodeError("Notification record has no usable id") from exc
        if operation == ChangeOperation.DELETED:
            return ChangeEvent.deleted(resource, resource_id)
        raise OversizedNotificationError(resource, operation, resource_id)

    try:
        model = model_for(resource).model_validate(record)
    except ValidationError as exc:
        raise NotificationDecodeError(f"Invalid {resource.value} record") from exc
    if operation == ChangeOperation.CREATED:
        return ChangeEvent.created(resource, model)
    return ChangeEvent.updated(resource, model)
