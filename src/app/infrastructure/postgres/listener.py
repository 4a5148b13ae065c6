from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable, Sequence
from typing import Any

import asyncpg

from src.app.application.handlers import ChangeNotificationHandler

logger = logging.getLogger(__name__)

DEFAULT_CHANNELS = ("projects_changes", "tasks_changes", "comments_changes")

Connect = Callable[[str], Awaitable[Any]]


class PostgresChangeListener:
    """
    Holds one dedicated asyncpg connection that LISTENs on the table change
    channels and forwards every notification to the change handler.

    The connection is separate from the SQLAlchemy pool; LISTEN state is
    bound to a session and must not be handed back to a pool.
    """

    def __init__(
        self,
        dsn: str,
        handler: ChangeNotificationHandler,
        *,
        channels: Sequence[str] = DEFAULT_CHANNELS,
        reconnect: bool = True,
        reconnect_base_delay: float = 1.0,
        reconnect_max_delay: float = 30.0,
        connect: Connect | None = None,
    ) -> None:
        self._dsn = dsn
        self._handler = handler
        self._channels = tuple(channels)
        self._reconnect = reconnect
        self._base_delay = reconnect_base_delay
        self._max_delay = reconnect_max_delay
        self._connect = connect or asyncpg.connect
        self._connection: Any | None = None
        self._reconnect_task: asyncio.Task[None] | None = None
        self._running = False

    @property
    def is_listening(self) -> bool:
        return self._connection is not None and not self._connection.is_closed()

    async def start(self) -> None:
        """Connect and subscribe; raises if the first connection attempt fails."""
        self._running = True
        await self._subscribe()

    async def stop(self) -> None:
        self._running = False
        if self._reconnect_task is not None and not self._reconnect_task.done():
            self._reconnect_task.cancel()
            try:
                await self._reconnect_task
            except asyncio.CancelledError:
                pass
        self._reconnect_task = None
        await self._handler.wait_idle()

        connection, self._connection = self._connection, None
        if connection is None or connection.is_closed():
            return
        connection.remove_termination_listener(self._on_termination)
        for channel in self._channels:
            await connection.remove_listener(channel, self._on_notification)
        await connection.close()
        logger.info("Database change listener stopped")

    async def _subscribe(self) -> None:
        connection = await self._connect(self._dsn)
        for channel in self._channels:
            await connection.add_listener(channel, self._on_notification)
        connection.add_termination_listener(self._on_termination)
        self._connection = connection
        logger.info("Database change listener started", extra={"channels": list(self._channels)})

    def _on_notification(self, connection: Any, pid: int, channel: str, payload: str) -> None:
        self._handler.handle(payload, channel=channel)

    def _on_termination(self, connection: Any) -> None:
        if connection is not self._connection:
            return
        self._connection = None
        logger.error(
            "Database change listener lost its connection; "
            "external changes are not propagated until it is restored",
            extra={"channels": list(self._channels)},
        )
        if self._running and self._reconnect:
            self._reconnect_task = asyncio.get_running_loop().create_task(self._resubscribe())

    async def _resubscribe(self) -> None:
        attempt = 0
        while self._running:
            attempt += 1
            delay = min(self._base_delay * 2 ** (attempt - 1), self._max_delay)
            logger.info(
                "Reconnecting database change listener",
                extra={"attempt": attempt, "delay_sec": delay},
            )
            await asyncio.sleep(delay)
            try:
                await self._subscribe()
                return
            except (OSError, asyncpg.PostgresError, asyncpg.InterfaceError) as exc:
                logger.error(
                    "Database change listener reconnect failed",
                    extra={"attempt": attempt, "error": str(exc)},
                )
