import pytest

from src.app.domain.models import ResourceType
from src.client.scheduler import RepeatingTimer
from src.client.state import ConnectionSnapshot, ConnectionState, ConnectionStatus
from src.setup.db_config import DatabaseSettings

from tests.conftest import FakeScheduler


def test_state_notifies_only_on_change() -> None:
    state = ConnectionState()
    seen: list[ConnectionSnapshot] = []
    unsubscribe = state.subscribe(seen.append)

    state.update(status=ConnectionStatus.CONNECTING)
    state.update(status=ConnectionStatus.CONNECTED)
    state.update(reconnect_attempts=2)
    unsubscribe()
    state.update(status=ConnectionStatus.ERROR)

    assert seen == [
        ConnectionSnapshot(ConnectionStatus.CONNECTED, 0),
        ConnectionSnapshot(ConnectionStatus.CONNECTED, 2),
    ]
    assert state.snapshot == ConnectionSnapshot(ConnectionStatus.ERROR, 2)


def test_repeating_timer_stops_after_cancel() -> None:
    scheduler = FakeScheduler()
    ticks: list[int] = []
    timer = RepeatingTimer(scheduler, 5.0, lambda: ticks.append(1)).start()

    scheduler.fire(scheduler.pending[0])
    timer.cancel()

    assert ticks == [1]
    assert scheduler.pending == []


@pytest.mark.parametrize(
    ("name", "expected"),
    [("project", ResourceType.PROJECT), ("tasks", ResourceType.TASK), ("comment", ResourceType.COMMENT)],
)
def test_resource_type_accepts_singular_and_plural(name: str, expected: ResourceType) -> None:
    assert ResourceType.parse(name) is expected


def test_resource_type_rejects_unknown_names() -> None:
    with pytest.raises(ValueError):
        ResourceType.parse("boards")


def test_listen_dsn_strips_sqlalchemy_driver(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("DATABASE_URL", "postgresql+asyncpg://app:secret@db:5432/board")
    monkeypatch.delenv("LISTEN_DATABASE_URL", raising=False)

    assert DatabaseSettings().listen_dsn == "postgresql://app:secret@db:5432/board"

    monkeypatch.setenv("LISTEN_DATABASE_URL", "postgresql://listener@db/board")
    assert DatabaseSettings().listen_dsn == "postgresql://listener@db/board"
