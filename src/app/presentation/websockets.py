from __future__ import annotations

import asyncio
import json
import logging
from typing import Any, cast

import inject
from fastapi import APIRouter, Depends, WebSocket, WebSocketDisconnect
from starlette.websockets import WebSocketState

from src.app.application.broadcaster import ChangeBroadcaster
from src.app.application.handlers import PushChannelHandler
from src.app.domain.events.change_event import ChangeEvent

router = APIRouter(tags=["ws"])
logger = logging.getLogger(__name__)


class ConnectionRegistry:
    """Set of open push connections with best-effort, non-blocking fan-out."""

    def __init__(self) -> None:
        self._connections: set[WebSocket] = set()
        self._pending: set[asyncio.Task[None]] = set()

    def __len__(self) -> int:
        return len(self._connections)

    def __contains__(self, websocket: object) -> bool:
        return websocket in self._connections

    async def connect(self, websocket: WebSocket) -> None:
        await websocket.accept()
        self.register(websocket)

    def register(self, websocket: WebSocket) -> None:
        self._connections.add(websocket)
        logger.info("Push connection opened", extra={"connections": len(self._connections)})

    def unregister(self, websocket: WebSocket) -> None:
        if websocket not in self._connections:
            return
        self._connections.discard(websocket)
        logger.info("Push connection closed", extra={"connections": len(self._connections)})

    def fan_out(self, message: dict[str, Any]) -> int:
        """Schedule one send per open connection and return without awaiting delivery."""
        text = json.dumps(message)
        targets = [ws for ws in list(self._connections) if self._is_writable(ws)]
        if not targets:
            return 0
        loop = asyncio.get_running_loop()
        for websocket in targets:
            task = loop.create_task(self._send(websocket, text))
            self._pending.add(task)
            task.add_done_callback(self._pending.discard)
        return len(targets)

    async def wait_idle(self) -> None:
        """Wait until every scheduled send has finished."""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    async def close_all(self) -> None:
        await self.wait_idle()
        for websocket in list(self._connections):
            self.unregister(websocket)
            if self._is_writable(websocket):
                try:
                    await websocket.close()
                except RuntimeError:
                    pass

    async def _send(self, websocket: WebSocket, text: str) -> None:
        try:
            await websocket.send_text(text)
        except Exception as exc:
            logger.warning(
                "Dropping push connection after failed send",
                extra={"error": str(exc)},
            )
            self.unregister(websocket)

    @staticmethod
    def _is_writable(websocket: WebSocket) -> bool:
        return (
            websocket.application_state == WebSocketState.CONNECTED
            and websocket.client_state == WebSocketState.CONNECTED
        )


class WebSocketChangeBroadcaster(ChangeBroadcaster):
    def __init__(self, registry: ConnectionRegistry) -> None:
        self._registry = registry

    def fan_out(self, event: ChangeEvent) -> int:
        return self._registry.fan_out(event.to_message())


def get_connection_registry() -> ConnectionRegistry:
    return cast(ConnectionRegistry, inject.instance(ConnectionRegistry))


def get_push_channel_handler() -> PushChannelHandler:
    return PushChannelHandler()


@router.websocket("/ws")
async def push_channel(
    websocket: WebSocket,
    registry: ConnectionRegistry = Depends(get_connection_registry),
    handler: PushChannelHandler = Depends(get_push_channel_handler),
) -> None:
    await registry.connect(websocket)

    async def reply(message: dict[str, Any]) -> None:
        await websocket.send_json(message)

    try:
        await reply(handler.welcome())
        while True:
            raw = await websocket.receive_text()
            await handler.handle(raw, reply)
    except WebSocketDisconnect:
        pass
    finally:
        registry.unregister(websocket)
