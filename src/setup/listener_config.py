from pydantic import ConfigDict
from pydantic_settings import BaseSettings

from src.app.application.handlers import ChangeNotificationHandler
from src.app.infrastructure.postgres.listener import DEFAULT_CHANNELS, PostgresChangeListener
from src.setup.db_config import DatabaseSettings, get_database_settings


class ListenerSettings(BaseSettings):
    """Configuration for the Postgres LISTEN/NOTIFY change listener."""
    LISTENER_ENABLED: bool = True
    LISTENER_CHANNELS: list[str] = list(DEFAULT_CHANNELS)
    LISTENER_RECONNECT_ENABLED: bool = True
    LISTENER_RECONNECT_BASE_DELAY_SEC: float = 1.0
    LISTENER_RECONNECT_MAX_DELAY_SEC: float = 30.0

    model_config = ConfigDict(env_file=".env", extra="ignore")


def get_listener_settings() -> ListenerSettings:
    return ListenerSettings()


def build_change_listener(
    settings: ListenerSettings | None = None,
    db_settings: DatabaseSettings | None = None,
) -> PostgresChangeListener:
    """Create the change listener bound to the notification handler."""
    if settings is None:
        settings = get_listener_settings()
    if db_settings is None:
        db_settings = get_database_settings()
    return PostgresChangeListener(
        db_settings.listen_dsn,
        ChangeNotificationHandler(),
        channels=settings.LISTENER_CHANNELS,
        reconnect=settings.LISTENER_RECONNECT_ENABLED,
        reconnect_base_delay=settings.LISTENER_RECONNECT_BASE_DELAY_SEC,
        reconnect_max_delay=settings.LISTENER_RECONNECT_MAX_DELAY_SEC,
    )
