from pydantic import ConfigDict
from pydantic_settings import BaseSettings

_ASYNC_DRIVER_PREFIXES = ("postgresql+asyncpg://", "postgresql+psycopg://", "postgresql+psycopg2://")


class DatabaseSettings(BaseSettings):
    DATABASE_URL: str
    # Session-level connection for LISTEN; falls back to DATABASE_URL.
    LISTEN_DATABASE_URL: str | None = None
    DB_ECHO: bool = False

    model_config = ConfigDict(env_file=".env", extra="ignore")

    @property
    def listen_dsn(self) -> str:
        """Plain libpq-style DSN for asyncpg (no SQLAlchemy driver suffix)."""
        url = self.LISTEN_DATABASE_URL or self.DATABASE_URL
        for prefix in _ASYNC_DRIVER_PREFIXES:
            if url.startswith(prefix):
                return "postgresql://" + url[len(prefix):]
        return url


def get_database_settings() -> DatabaseSettings:
    return DatabaseSettings()  # type: ignore[call-arg]
