import logging.config
from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.api.metrics import router as metrics_router
from app.api.routes import router as api_router
from app.api.ws import router as ws_router
from app.config import get_settings
from app.database import get_db_session
from app.services import SqlMessageStore
from linkup.realtime import RealtimeHub

settings = get_settings()

LOGGING_CONFIG = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "standard": {
            "format": "%(asctime)s %(levelname)s [%(name)s] %(message)s",
        }
    },
    "handlers": {
        "default": {
            "class": "logging.StreamHandler",
            "formatter": "standard",
        }
    },
    "root": {
        "handlers": ["default"],
        "level": settings.log_level.upper(),
    },
    "loggers": {
        "linkup.realtime": {
            "handlers": ["default"],
            "level": settings.log_level.upper(),
            "propagate": False,
        }
    },
}


logging.config.dictConfig(LOGGING_CONFIG)

logger = logging.getLogger(__name__)


def build_hub() -> RealtimeHub:
    message_store = SqlMessageStore(get_db_session) if settings.realtime_persist_socket_messages else None
    return RealtimeHub(
        message_store=message_store,
        max_message_length=settings.chat_message_max_length,
    )


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    hub = build_hub()
    await hub.start()
    app.state.hub = hub
    try:
        yield
    finally:
        await hub.stop()
        app.state.hub = None


app = FastAPI(title=settings.app_name, debug=settings.debug, lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[str(origin).rstrip("/") for origin in settings.cors_origins],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    allow_origin_regex=settings.cors_allow_origin_regex,
)


@app.get("/health", tags=["system"])
async def health_check() -> dict[str, object]:
    """Simple health check endpoint."""

    hub = getattr(app.state, "hub", None)
    return {
        "status": "ok",
        "environment": settings.environment,
        "realtime": {
            "running": bool(hub and hub.running),
            "connections": await hub.connections.count() if hub else 0,
            "online_users": await hub.registry.count() if hub else 0,
        },
    }


app.include_router(api_router, prefix="/api")
app.include_router(ws_router)
app.include_router(metrics_router)
