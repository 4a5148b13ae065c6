import inject

from src.app.application.broadcaster import ChangeBroadcaster
from src.app.domain.repositories import ResourceRepository
from src.app.infrastructure.postgres.orm import PostgresOrm
from src.app.infrastructure.postgres.repositories import PostgresResourceRepository
from src.app.presentation.websockets import ConnectionRegistry, WebSocketChangeBroadcaster
from src.setup.db_config import DatabaseSettings, get_database_settings


def build_bindings(settings: DatabaseSettings | None = None):
    """Return a binder config with the Postgres repository and the push registry."""
    if settings is None:
        settings = get_database_settings()
    orm = PostgresOrm(settings.DATABASE_URL, echo=settings.DB_ECHO)
    registry = ConnectionRegistry()

    def _config(binder: inject.Binder) -> None:
        binder.bind(PostgresOrm, orm)
        binder.bind(ResourceRepository, PostgresResourceRepository(orm))
        binder.bind(ConnectionRegistry, registry)
        binder.bind(ChangeBroadcaster, WebSocketChangeBroadcaster(registry))

    return _config


def configure_di(settings: DatabaseSettings | None = None) -> None:
    """Configure the process-wide injector once."""
    if inject.is_configured():
        return
    inject.configure(build_bindings(settings))
