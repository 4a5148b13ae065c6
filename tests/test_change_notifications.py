import asyncio
import json

import pytest

from src.app.application.handlers import ChangeNotificationHandler
from src.app.domain.exceptions import NotificationDecodeError, OversizedNotificationError
from src.app.domain.models import ResourceType
from src.app.infrastructure.postgres.listener import DEFAULT_CHANNELS, PostgresChangeListener
from src.app.infrastructure.postgres.serializers import (
    MAX_NOTIFY_PAYLOAD_BYTES,
    decode_notification,
    encode_notification,
)

from tests.conftest import RecordingBroadcaster, StubResourceRepository

TASK_ROW = {
    "id": 4,
    "project_id": 1,
    "title": "Write docs",
    "status": "in_progress",
    "priority": "high",
    "assignee_id": None,
    "created_at": "2025-01-01T10:00:00+00:00",
    "updated_at": "2025-01-02T10:00:00+00:00",
}


def test_insert_notification_becomes_created_event_with_camel_payload() -> None:
    event = decode_notification(encode_notification("tasks", "INSERT", TASK_ROW))

    assert event.type == "task:created"
    assert event.payload["id"] == 4
    assert event.payload["projectId"] == 1
    assert event.payload["status"] == "in_progress"
    assert "project_id" not in event.payload


def test_update_notification_becomes_updated_event() -> None:
    event = decode_notification(encode_notification("tasks", "UPDATE", TASK_ROW))

    assert event.type == "task:updated"
    assert event.payload["title"] == "Write docs"


def test_delete_notification_carries_only_the_id() -> None:
    payload = encode_notification("projects", "DELETE", {"id": 9, "name": "Old"})

    event = decode_notification(payload)

    assert event.type == "project:deleted"
    assert event.payload == {"id": 9}


@pytest.mark.parametrize(
    "payload",
    [
        "not json",
        json.dumps([1, 2, 3]),
        json.dumps({"table": "boards", "operation": "INSERT", "record": {"id": 1}}),
        json.dumps({"table": "tasks", "operation": "TRUNCATE", "record": TASK_ROW}),
        json.dumps({"table": "tasks", "operation": "INSERT"}),
        json.dumps({"table": "tasks", "operation": "INSERT", "record": {"id": 1}}),
        json.dumps({"table": "tasks", "operation": "DELETE", "record": {"title": "x"}}),
    ],
)
def test_malformed_notifications_raise_decode_error(payload: str) -> None:
    with pytest.raises(NotificationDecodeError):
        decode_notification(payload)


def test_handler_fans_out_decoded_event() -> None:
    broadcaster = RecordingBroadcaster()
    handler = ChangeNotificationHandler(broadcaster)

    handled = handler.handle(
        encode_notification("tasks", "INSERT", TASK_ROW), channel="tasks_changes"
    )

    assert handled is True
    assert broadcaster.types == ["task:created"]


def test_handler_drops_malformed_notification() -> None:
    broadcaster = RecordingBroadcaster()
    handler = ChangeNotificationHandler(broadcaster)

    assert handler.handle("{broken", channel="tasks_changes") is False
    assert broadcaster.events == []


def _long_comment_row(comment_id: int) -> dict:
    return {
        "id": comment_id,
        "task_id": 1,
        "text": "x" * MAX_NOTIFY_PAYLOAD_BYTES,
        "created_at": "2025-01-01T10:00:00+00:00",
        "updated_at": "2025-01-01T10:00:00+00:00",
    }


def test_oversized_row_is_announced_by_id_only() -> None:
    payload = encode_notification("comments", "INSERT", _long_comment_row(3))

    assert len(payload.encode("utf-8")) < MAX_NOTIFY_PAYLOAD_BYTES
    with pytest.raises(OversizedNotificationError) as caught:
        decode_notification(payload)
    assert caught.value.resource is ResourceType.COMMENT
    assert caught.value.resource_id == 3


def test_oversized_delete_still_decodes() -> None:
    event = decode_notification(encode_notification("comments", "DELETE", _long_comment_row(3)))

    assert event.type == "comment:deleted"
    assert event.payload == {"id": 3}


@pytest.mark.asyncio
async def test_handler_reloads_record_for_oversized_notification() -> None:
    repository = StubResourceRepository()
    project = repository.seed(ResourceType.PROJECT, name="Board")
    task = repository.seed(ResourceType.TASK, project_id=project.id, title="A")
    comment = repository.seed(ResourceType.COMMENT, task_id=task.id, text="y" * 9000)
    broadcaster = RecordingBroadcaster()
    handler = ChangeNotificationHandler(broadcaster, repository)

    row = dict(_long_comment_row(comment.id), text=comment.text)
    handled = handler.handle(
        encode_notification("comments", "UPDATE", row), channel="comments_changes"
    )
    await handler.wait_idle()

    assert handled is True
    assert broadcaster.types == ["comment:updated"]
    assert broadcaster.events[0].payload["text"] == comment.text


@pytest.mark.asyncio
async def test_handler_skips_oversized_notification_for_missing_record() -> None:
    broadcaster = RecordingBroadcaster()
    handler = ChangeNotificationHandler(broadcaster, StubResourceRepository())

    handler.handle(encode_notification("comments", "INSERT", _long_comment_row(99)))
    await handler.wait_idle()

    assert broadcaster.events == []


class FakePgConnection:
    def __init__(self) -> None:
        self.listeners: dict[str, object] = {}
        self.termination_listeners: list[object] = []
        self.closed = False

    async def add_listener(self, channel: str, callback) -> None:
        self.listeners[channel] = callback

    async def remove_listener(self, channel: str, callback) -> None:
        self.listeners.pop(channel, None)

    def add_termination_listener(self, callback) -> None:
        self.termination_listeners.append(callback)

    def remove_termination_listener(self, callback) -> None:
        self.termination_listeners.remove(callback)

    def is_closed(self) -> bool:
        return self.closed

    async def close(self) -> None:
        self.closed = True

    def notify(self, channel: str, payload: str) -> None:
        self.listeners[channel](self, 1234, channel, payload)

    def terminate(self) -> None:
        self.closed = True
        for callback in list(self.termination_listeners):
            callback(self)


class RecordingHandler:
    def __init__(self) -> None:
        self.calls: list[tuple[str, str | None]] = []

    def handle(self, payload: str, *, channel: str | None = None) -> bool:
        self.calls.append((payload, channel))
        return True

    async def wait_idle(self) -> None:
        return None


class ConnectionFactory:
    def __init__(self) -> None:
        self.connections: list[FakePgConnection] = []
        self.dsns: list[str] = []

    async def __call__(self, dsn: str) -> FakePgConnection:
        self.dsns.append(dsn)
        connection = FakePgConnection()
        self.connections.append(connection)
        return connection


@pytest.mark.asyncio
async def test_listener_subscribes_and_forwards_notifications() -> None:
    factory = ConnectionFactory()
    handler = RecordingHandler()
    listener = PostgresChangeListener("postgresql://db/test", handler, connect=factory)  # type: ignore[arg-type]

    await listener.start()
    connection = factory.connections[0]
    connection.notify("projects_changes", '{"table": "projects"}')

    assert listener.is_listening
    assert factory.dsns == ["postgresql://db/test"]
    assert set(connection.listeners) == set(DEFAULT_CHANNELS)
    assert handler.calls == [('{"table": "projects"}', "projects_changes")]

    await listener.stop()

    assert connection.closed
    assert connection.listeners == {}
    assert not listener.is_listening


@pytest.mark.asyncio
async def test_listener_resubscribes_after_connection_loss() -> None:
    factory = ConnectionFactory()
    listener = PostgresChangeListener(
        "postgresql://db/test",
        RecordingHandler(),  # type: ignore[arg-type]
        reconnect_base_delay=0.0,
        connect=factory,
    )
    await listener.start()

    factory.connections[0].terminate()
    assert not listener.is_listening

    for _ in range(50):
        if listener.is_listening:
            break
        await asyncio.sleep(0)

    assert listener.is_listening
    assert len(factory.connections) == 2
    assert set(factory.connections[1].listeners) == set(DEFAULT_CHANNELS)
    await listener.stop()


@pytest.mark.asyncio
async def test_listener_without_reconnect_stays_down() -> None:
    factory = ConnectionFactory()
    listener = PostgresChangeListener(
        "postgresql://db/test",
        RecordingHandler(),  # type: ignore[arg-type]
        reconnect=False,
        connect=factory,
    )
    await listener.start()

    factory.connections[0].terminate()
    await asyncio.sleep(0)

    assert not listener.is_listening
    assert len(factory.connections) == 1
    await listener.stop()
