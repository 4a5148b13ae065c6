import logging
from contextlib import asynccontextmanager

import inject
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from src.app.infrastructure.postgres.orm import PostgresOrm
from src.app.presentation.routes import router as api_router
from src.app.presentation.rpc import router as rpc_router
from src.app.presentation.websockets import ConnectionRegistry, router as ws_router
from src.setup.api_config import get_api_settings
from src.setup.app_config import configure_di
from src.setup.listener_config import build_change_listener, get_listener_settings
from src.setup.logging_config import configure_logging

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    configure_logging()
    configure_di()
    listener = None
    if get_listener_settings().LISTENER_ENABLED:
        listener = build_change_listener()
        try:
            await listener.start()
        except Exception as exc:
            # Mutation endpoints still broadcast local writes without the listener.
            logger.error(
                "Database change listener failed to start; serving without it",
                extra={"error": str(exc)},
            )
    try:
        yield
    finally:
        if listener is not None:
            await listener.stop()
        await inject.instance(ConnectionRegistry).close_all()
        await inject.instance(PostgresOrm).dispose()


def create_app() -> FastAPI:
    settings = get_api_settings()
    app = FastAPI(
        title=settings.APP_NAME,
        version=settings.APP_VERSION,
        description="Task board API with real-time change propagation",
        lifespan=lifespan,
    )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=settings.CORS_ALLOW_CREDENTIALS,
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization"],
    )
    app.include_router(api_router, prefix="")
    app.include_router(rpc_router, prefix="")
    app.include_router(ws_router, prefix="")
    return app
