from __future__ import annotations

import asyncio
import logging
from typing import Protocol

from websockets.asyncio.client import ClientConnection, connect
from websockets.exceptions import WebSocketException
from websockets.protocol import State

logger = logging.getLogger(__name__)


class Transport(Protocol):
    @property
    def is_open(self) -> bool:
        """True while frames can be written."""

    def send(self, text: str) -> None:
        """Queue one text frame without waiting for it to be written."""

    def close(self) -> None:
        """Ask the transport to close; completion arrives through ``on_close``."""


class TransportListener(Protocol):
    def on_open(self, transport: Transport) -> None: ...

    def on_message(self, transport: Transport, data: str) -> None: ...

    def on_error(self, transport: Transport, error: BaseException) -> None: ...

    def on_close(self, transport: Transport) -> None: ...


class WebSocketTransport:
    """One websocket connection attempt driven by a background task."""

    def __init__(
        self,
        url: str,
        listener: TransportListener,
        *,
        open_timeout: float = 10.0,
    ) -> None:
        self._url = url
        self._listener = listener
        self._open_timeout = open_timeout
        self._ws: ClientConnection | None = None
        self._sends: set[asyncio.Task[None]] = set()
        self._task = asyncio.get_running_loop().create_task(self._run())

    @property
    def is_open(self) -> bool:
        return self._ws is not None and self._ws.state is State.OPEN

    def send(self, text: str) -> None:
        if not self.is_open:
            return
        task = asyncio.get_running_loop().create_task(self._send(text))
        self._sends.add(task)
        task.add_done_callback(self._sends.discard)

    def close(self) -> None:
        if self._ws is not None:
            task = asyncio.get_running_loop().create_task(self._ws.close())
            self._sends.add(task)
            task.add_done_callback(self._sends.discard)
        elif not self._task.done():
            self._task.cancel()

    async def _send(self, text: str) -> None:
        ws = self._ws
        if ws is None:
            return
        try:
            await ws.send(text)
        except WebSocketException as exc:
            # The receive loop reports the close; nothing to do here.
            logger.debug("Send on closing websocket failed", extra={"error": str(exc)})

    async def _run(self) -> None:
        try:
            async with connect(self._url, open_timeout=self._open_timeout) as ws:
                self._ws = ws
                self._listener.on_open(self)
                async for message in ws:
                    if isinstance(message, bytes):
                        message = message.decode("utf-8", errors="replace")
                    self._listener.on_message(self, message)
        except (OSError, WebSocketException) as exc:
            self._listener.on_error(self, exc)
        finally:
            self._ws = None
            self._listener.on_close(self)
