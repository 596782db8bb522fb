from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager
import logging

from capability_loader.core.config import settings
from capability_loader.core.dependencies import get_capability_manager
from capability_loader.core.logging_config import configure_logging
from capability_loader.api import capabilities as capabilities_router
from capability_loader.api import ws as ws_router

_log = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler.

    Configures logging and wires the capability manager's state transitions
    to the websocket broadcaster. Nothing is loaded eagerly: capabilities are
    fetched when a client asks for them.
    """
    configure_logging(settings.log_level)
    for line in settings.diagnostics or []:
        _log.info("[config] %s", line)

    manager = get_capability_manager()
    subscription = manager.subscribe(ws_router.capability_state_listener)
    _log.info("capability manager ready capabilities=%d", len(manager.registry))

    yield

    subscription.unsubscribe()


app = FastAPI(title=settings.app_name, version=settings.version, lifespan=lifespan)

app.include_router(capabilities_router.router, prefix=settings.api_v1_prefix)
app.include_router(ws_router.router, prefix=settings.api_v1_prefix)

# Basic CORS (development); restrict as needed
app.add_middleware(
    CORSMiddleware,
    allow_origins=['*'],
    allow_credentials=True,
    allow_methods=['*'],
    allow_headers=['*'],
)


@app.get('/')
async def root():
    return {'status': 'ok', 'app': settings.app_name, 'version': settings.version}
