import asyncio
import logging

from src.app.domain.models.resource_type import ResourceType
from src.client.cache import CacheReconciler, Collection
from src.client.connection import ConnectionManager
from src.client.state import ConnectionSnapshot
from src.client.transport import WebSocketTransport
from src.setup.client_config import ClientSettings, get_client_settings
from src.setup.logging_config import configure_logging

logger = logging.getLogger(__name__)


def build_connection_manager(settings: ClientSettings | None = None) -> ConnectionManager:
    if settings is None:
        settings = get_client_settings()
    return ConnectionManager(
        settings.WS_URL,
        CacheReconciler(),
        transport_factory=lambda url, listener: WebSocketTransport(
            url, listener, open_timeout=settings.OPEN_TIMEOUT_SEC
        ),
        tracked_resources=[ResourceType.parse(name) for name in settings.TRACKED_RESOURCES],
        reconnect_base_delay=settings.RECONNECT_BASE_DELAY_SEC,
        reconnect_max_delay=settings.RECONNECT_MAX_DELAY_SEC,
        keepalive_interval=settings.KEEPALIVE_INTERVAL_SEC,
    )


async def run() -> None:
    manager = build_connection_manager()

    def _log_status(snapshot: ConnectionSnapshot) -> None:
        logger.info(
            "Connection status changed",
            extra={"status": snapshot.status.value, "attempts": snapshot.reconnect_attempts},
        )

    def _log_cache(resource: ResourceType, collection: Collection) -> None:
        logger.info("Cache updated", extra={"resource": resource.value, "size": len(collection)})

    manager.state.subscribe(_log_status)
    manager.reconciler.subscribe(_log_cache)
    manager.start()
    try:
        await asyncio.Event().wait()
    finally:
        manager.stop()


def main() -> None:
    configure_logging()
    try:
        asyncio.run(run())
    except KeyboardInterrupt:
        pass


if __name__ == "__main__":
    main()
