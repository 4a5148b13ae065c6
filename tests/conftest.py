from __future__ import annotations

import json
from collections.abc import Callable
from datetime import UTC, datetime
from typing import Any

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from starlette.websockets import WebSocketState

from src.app.application.broadcaster import ChangeBroadcaster
from src.app.domain.events.change_event import ChangeEvent
from src.app.domain.exceptions import InvalidReferenceError, ResourceNotFoundError
from src.app.domain.models import Comment, Resource, ResourceType, model_for
from src.app.domain.repositories import ResourceRepository
from src.app.presentation.websockets import ConnectionRegistry, WebSocketChangeBroadcaster

_PARENTS = {
    ResourceType.TASK: ("project_id", ResourceType.PROJECT),
    ResourceType.COMMENT: ("task_id", ResourceType.TASK),
}
_NULLABLE = {"description", "assignee_id"}


class StubResourceRepository(ResourceRepository):
    """Simple in-memory store replacement for tests."""

    def __init__(self) -> None:
        self.records: dict[ResourceType, dict[int, Resource]] = {rt: {} for rt in ResourceType}
        self._counter = 0

    def seed(self, resource: ResourceType, **fields: Any) -> Resource:
        self._counter += 1
        now = datetime.now(UTC)
        record = model_for(resource)(id=self._counter, created_at=now, updated_at=now, **fields)
        self.records[resource][record.id] = record
        return record

    async def list(
        self, resource: ResourceType, *, filters: dict[str, Any] | None = None
    ) -> list[Resource]:
        records = list(self.records[resource].values())
        for field, value in (filters or {}).items():
            records = [record for record in records if getattr(record, field) == value]
        return records

    async def get(self, resource: ResourceType, resource_id: int) -> Resource:
        if resource_id not in self.records[resource]:
            raise ResourceNotFoundError(resource, resource_id)
        return self.records[resource][resource_id]

    async def create(self, resource: ResourceType, data: dict[str, Any]) -> Resource:
        self._check_parent(resource, data)
        return self.seed(resource, **data)

    async def update(
        self, resource: ResourceType, resource_id: int, changes: dict[str, Any]
    ) -> Resource:
        current = await self.get(resource, resource_id)
        self._check_parent(resource, changes)
        applied = {k: v for k, v in changes.items() if v is not None or k in _NULLABLE}
        applied["updated_at"] = datetime.now(UTC)
        record = current.model_copy(update=applied)
        self.records[resource][resource_id] = record
        return record

    async def delete(self, resource: ResourceType, resource_id: int) -> Resource:
        record = await self.get(resource, resource_id)
        del self.records[resource][resource_id]
        return record

    async def list_comments_for_task(self, task_id: int) -> list[Comment]:
        return [c for c in self.records[ResourceType.COMMENT].values() if c.task_id == task_id]

    def _check_parent(self, resource: ResourceType, data: dict[str, Any]) -> None:
        if resource not in _PARENTS:
            return
        field, parent = _PARENTS[resource]
        parent_id = data.get(field)
        if parent_id is not None and parent_id not in self.records[parent]:
            raise InvalidReferenceError(resource, f"{field}={parent_id} does not exist")


class RecordingBroadcaster(ChangeBroadcaster):
    """Keeps every fanned-out event and optionally forwards it."""

    def __init__(self, inner: ChangeBroadcaster | None = None) -> None:
        self.events: list[ChangeEvent] = []
        self._inner = inner

    def fan_out(self, event: ChangeEvent) -> int:
        self.events.append(event)
        if self._inner is None:
            return 0
        return self._inner.fan_out(event)

    @property
    def types(self) -> list[str]:
        return [event.type for event in self.events]


class FakeWebSocket:
    """Just enough of starlette's WebSocket for the connection registry."""

    def __init__(self, *, fail_with: BaseException | None = None) -> None:
        self.application_state = WebSocketState.CONNECTED
        self.client_state = WebSocketState.CONNECTED
        self.sent: list[str] = []
        self.accepted = False
        self.closed = False
        self._fail_with = fail_with
        self.gate = None

    @property
    def messages(self) -> list[dict[str, Any]]:
        return [json.loads(text) for text in self.sent]

    async def accept(self) -> None:
        self.accepted = True

    async def send_text(self, text: str) -> None:
        if self.gate is not None:
            await self.gate.wait()
        if self._fail_with is not None:
            raise self._fail_with
        self.sent.append(text)

    async def close(self) -> None:
        self.closed = True
        self.application_state = WebSocketState.DISCONNECTED
        self.client_state = WebSocketState.DISCONNECTED


class FakeTimer:
    def __init__(self, delay: float, callback: Callable[[], None]) -> None:
        self.delay = delay
        self.callback = callback
        self.cancelled = False
        self.fired = False

    def cancel(self) -> None:
        self.cancelled = True

    @property
    def pending(self) -> bool:
        return not self.cancelled and not self.fired


class FakeScheduler:
    """Manual clock: timers only run when a test fires them."""

    def __init__(self) -> None:
        self.timers: list[FakeTimer] = []

    def call_later(self, delay: float, callback: Callable[[], None]) -> FakeTimer:
        timer = FakeTimer(delay, callback)
        self.timers.append(timer)
        return timer

    @property
    def pending(self) -> list[FakeTimer]:
        return [timer for timer in self.timers if timer.pending]

    def fire(self, timer: FakeTimer) -> None:
        assert timer.pending
        timer.fired = True
        timer.callback()


class FakeTransport:
    def __init__(self, url: str, listener: Any) -> None:
        self.url = url
        self.listener = listener
        self.is_open = False
        self.sent: list[str] = []
        self.closed = False

    @property
    def messages(self) -> list[dict[str, Any]]:
        return [json.loads(text) for text in self.sent]

    def send(self, text: str) -> None:
        self.sent.append(text)

    def close(self) -> None:
        self.closed = True
        self.is_open = False


class TransportFactory:
    def __init__(self) -> None:
        self.created: list[FakeTransport] = []

    def __call__(self, url: str, listener: Any) -> FakeTransport:
        transport = FakeTransport(url, listener)
        self.created.append(transport)
        return transport

    @property
    def last(self) -> FakeTransport:
        return self.created[-1]


def _patch_inject_instance(
    monkeypatch: pytest.MonkeyPatch,
    repository: StubResourceRepository,
    broadcaster: RecordingBroadcaster,
    registry: ConnectionRegistry,
) -> Callable[[object], object]:
    """Patch `inject.instance` to return the stubs instead of the Postgres wiring."""
    import inject

    def fake_instance(interface: object) -> object:
        if interface is ResourceRepository:
            return repository
        if interface is ChangeBroadcaster:
            return broadcaster
        if interface is ConnectionRegistry:
            return registry
        raise RuntimeError(f"Unexpected dependency request: {interface}")

    monkeypatch.setattr(inject, "instance", fake_instance)
    return fake_instance


@pytest.fixture
def repository() -> StubResourceRepository:
    return StubResourceRepository()


@pytest.fixture
def registry() -> ConnectionRegistry:
    return ConnectionRegistry()


@pytest.fixture
def broadcaster(registry: ConnectionRegistry) -> RecordingBroadcaster:
    return RecordingBroadcaster(WebSocketChangeBroadcaster(registry))


@pytest.fixture
def app(
    monkeypatch: pytest.MonkeyPatch,
    repository: StubResourceRepository,
    broadcaster: RecordingBroadcaster,
    registry: ConnectionRegistry,
) -> FastAPI:
    """Routers without the production lifespan, wired to in-memory stubs."""
    from src.app.presentation.routes import router as api_router
    from src.app.presentation.rpc import router as rpc_router
    from src.app.presentation.websockets import router as ws_router

    _patch_inject_instance(monkeypatch, repository, broadcaster, registry)
    app = FastAPI()
    app.include_router(api_router)
    app.include_router(rpc_router)
    app.include_router(ws_router)
    return app


@pytest.fixture
def api_client(app: FastAPI, repository: StubResourceRepository, broadcaster: RecordingBroadcaster):
    client = TestClient(app)
    return client, repository, broadcaster
