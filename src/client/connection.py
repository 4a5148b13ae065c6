from __future__ import annotations

import json
import logging
from collections.abc import Callable, Sequence
from typing import Any

from src.app.domain.models.resource_type import ResourceType
from src.client.cache import CacheReconciler
from src.client.scheduler import AsyncioScheduler, RepeatingTimer, Scheduler, TimerHandle
from src.client.state import ConnectionState, ConnectionStatus
from src.client.transport import Transport, TransportListener, WebSocketTransport

logger = logging.getLogger(__name__)

TransportFactory = Callable[[str, TransportListener], Transport]


def compute_backoff_delay(attempt: int, base: float = 1.0, cap: float = 30.0) -> float:
    """Delay before reconnect ``attempt`` (1-based): doubles from ``base`` up to ``cap``."""
    if attempt < 1:
        attempt = 1
    return min(base * 2 ** (attempt - 1), cap)


def _websocket_transport(url: str, listener: TransportListener) -> Transport:
    return WebSocketTransport(url, listener)


class ConnectionManager(TransportListener):
    """
    Owns the one logical push connection of a client process.

    Cycle: connecting -> connected -> disconnected -> connecting -> ...
    ``error`` is entered on transport failure and always followed by the
    close callback, which is what schedules the next attempt. Attempts are
    unbounded; only the delay is capped. After ``stop()`` every transport
    callback is ignored.
    """

    def __init__(
        self,
        url: str,
        reconciler: CacheReconciler,
        *,
        state: ConnectionState | None = None,
        transport_factory: TransportFactory | None = None,
        scheduler: Scheduler | None = None,
        tracked_resources: Sequence[ResourceType] = (ResourceType.PROJECT,),
        reconnect_base_delay: float = 1.0,
        reconnect_max_delay: float = 30.0,
        keepalive_interval: float = 30.0,
    ) -> None:
        self._url = url
        self._reconciler = reconciler
        self.state = state or ConnectionState()
        self._transport_factory = transport_factory or _websocket_transport
        self._scheduler = scheduler or AsyncioScheduler()
        self._tracked = tuple(tracked_resources)
        self._base_delay = reconnect_base_delay
        self._max_delay = reconnect_max_delay
        self._keepalive_interval = keepalive_interval

        self._transport: Transport | None = None
        self._reconnect_timer: TimerHandle | None = None
        self._keepalive_timer: RepeatingTimer | None = None
        self._started = False
        self._stopped = False

    @property
    def status(self) -> ConnectionStatus:
        return self.state.status

    @property
    def reconciler(self) -> CacheReconciler:
        return self._reconciler

    @property
    def is_stopped(self) -> bool:
        return self._stopped

    def start(self) -> None:
        if self._started:
            return
        self._started = True
        self._connect()

    def stop(self) -> None:
        """Tear down: cancel both timers and close the live transport."""
        if self._stopped:
            return
        self._stopped = True
        self._cancel_reconnect()
        self._cancel_keepalive()
        transport, self._transport = self._transport, None
        if transport is not None:
            transport.close()
        logger.info("Push connection manager stopped")

    def reconnect_now(self) -> None:
        """Skip any pending backoff and connect immediately when no transport is live."""
        if self._stopped or not self._started:
            return
        if self._transport is not None:
            return
        logger.info("Reconnecting immediately")
        self._connect()

    def send(self, message: dict[str, Any]) -> bool:
        transport = self._transport
        if transport is None or not transport.is_open:
            logger.warning("Push connection is not open", extra={"type": message.get("type")})
            return False
        transport.send(json.dumps(message))
        return True

    # Transport callbacks

    def on_open(self, transport: Transport) -> None:
        if not self._is_current(transport):
            return
        logger.info("Push connection open", extra={"url": self._url})
        self.state.update(status=ConnectionStatus.CONNECTED, reconnect_attempts=0)
        for resource in self._tracked:
            transport.send(json.dumps({"type": f"{resource.collection}:fetch"}))
        self._cancel_keepalive()
        self._keepalive_timer = RepeatingTimer(
            self._scheduler, self._keepalive_interval, self._send_keepalive
        ).start()

    def on_message(self, transport: Transport, data: str) -> None:
        if not self._is_current(transport):
            return
        try:
            message = json.loads(data)
        except json.JSONDecodeError:
            logger.warning("Ignoring malformed push message", extra={"preview": data[:200]})
            return
        if not isinstance(message, dict):
            logger.warning("Ignoring non-object push message", extra={"preview": data[:200]})
            return
        if message.get("type") == "connected":
            logger.info("Server greeting", extra={"server_message": message.get("message")})
        self._reconciler.apply(message)

    def on_error(self, transport: Transport, error: BaseException) -> None:
        if not self._is_current(transport):
            return
        logger.error("Push connection error", extra={"error": str(error)})
        self.state.update(status=ConnectionStatus.ERROR)

    def on_close(self, transport: Transport) -> None:
        if not self._is_current(transport):
            return
        self._transport = None
        self._cancel_keepalive()
        attempts = self.state.reconnect_attempts + 1
        self.state.update(status=ConnectionStatus.DISCONNECTED, reconnect_attempts=attempts)
        delay = compute_backoff_delay(attempts, self._base_delay, self._max_delay)
        logger.info(
            "Push connection closed; scheduling reconnect",
            extra={"attempt": attempts, "delay_sec": delay},
        )
        self._cancel_reconnect()
        self._reconnect_timer = self._scheduler.call_later(delay, self._on_reconnect_timer)

    # Internals

    def _connect(self) -> None:
        self._cancel_reconnect()
        self.state.update(status=ConnectionStatus.CONNECTING)
        # Transport callbacks fire from later loop iterations, never inside the factory.
        self._transport = self._transport_factory(self._url, self)

    def _on_reconnect_timer(self) -> None:
        self._reconnect_timer = None
        if self._stopped:
            return
        self._connect()

    def _send_keepalive(self) -> None:
        transport = self._transport
        if transport is not None and transport.is_open:
            transport.send(json.dumps({"type": "ping"}))

    def _is_current(self, transport: Transport) -> bool:
        return not self._stopped and transport is self._transport

    def _cancel_reconnect(self) -> None:
        if self._reconnect_timer is not None:
            self._reconnect_timer.cancel()
            self._reconnect_timer = None

    def _cancel_keepalive(self) -> None:
        if self._keepalive_timer is not None:
            self._keepalive_timer.cancel()
            self._keepalive_timer = None
