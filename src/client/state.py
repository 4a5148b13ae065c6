from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass, replace
from enum import Enum

logger = logging.getLogger(__name__)


class ConnectionStatus(str, Enum):
    CONNECTING = "connecting"
    CONNECTED = "connected"
    DISCONNECTED = "disconnected"
    ERROR = "error"


@dataclass(frozen=True)
class ConnectionSnapshot:
    status: ConnectionStatus = ConnectionStatus.CONNECTING
    reconnect_attempts: int = 0


StateListener = Callable[[ConnectionSnapshot], None]


class ConnectionState:
    """Single observable connection state for one client process."""

    def __init__(self) -> None:
        self._snapshot = ConnectionSnapshot()
        self._listeners: list[StateListener] = []

    @property
    def snapshot(self) -> ConnectionSnapshot:
        return self._snapshot

    @property
    def status(self) -> ConnectionStatus:
        return self._snapshot.status

    @property
    def reconnect_attempts(self) -> int:
        return self._snapshot.reconnect_attempts

    def update(self, **changes: object) -> ConnectionSnapshot:
        previous = self._snapshot
        self._snapshot = replace(previous, **changes)
        if self._snapshot != previous:
            for listener in list(self._listeners):
                listener(self._snapshot)
        return self._snapshot

    def subscribe(self, listener: StateListener) -> Callable[[], None]:
        """Register a listener; the returned callable removes it again."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe
