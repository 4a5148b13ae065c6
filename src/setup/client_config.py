from pydantic import ConfigDict
from pydantic_settings import BaseSettings


class ClientSettings(BaseSettings):
    """Configuration for the push-channel client."""
    WS_URL: str = "ws://localhost:8000/ws"
    RECONNECT_BASE_DELAY_SEC: float = 1.0
    RECONNECT_MAX_DELAY_SEC: float = 30.0
    KEEPALIVE_INTERVAL_SEC: float = 30.0
    OPEN_TIMEOUT_SEC: float = 10.0
    TRACKED_RESOURCES: list[str] = ["project"]

    model_config = ConfigDict(env_file=".env", extra="ignore")


def get_client_settings() -> ClientSettings:
    return ClientSettings()
