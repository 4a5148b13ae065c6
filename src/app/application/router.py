from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from typing import Any

logger = logging.getLogger(__name__)

Reply = Callable[[dict[str, Any]], Awaitable[None]]
MessageHandler = Callable[[dict[str, Any], Reply], Awaitable[None]]


class MessageRouter:
    """Dispatches push-channel control messages by their ``type`` field."""

    def __init__(self) -> None:
        self._handlers: dict[str, MessageHandler] = {}

    def register(self, message_type: str, handler: MessageHandler) -> None:
        self._handlers[message_type] = handler

    def get_handler(self, message_type: str) -> MessageHandler | None:
        return self._handlers.get(message_type)

    async def dispatch(self, message: dict[str, Any], reply: Reply) -> bool:
        message_type = message.get("type")
        handler = self.get_handler(str(message_type))
        if handler is None:
            logger.warning(
                "No handler registered for message type",
                extra={"type": message_type},
            )
            return False
        await handler(message, reply)
        return True
