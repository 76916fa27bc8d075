from __future__ import annotations

from contextlib import asynccontextmanager

from fastapi import FastAPI

from usagelens import __version__
from usagelens.core.clients.http import close_http_client, init_http_client
from usagelens.core.handlers import add_exception_handlers
from usagelens.core.middleware import add_request_id_middleware
from usagelens.core.usage.refresh_scheduler import build_usage_refresh_scheduler
from usagelens.modules.health import api as health_api
from usagelens.modules.usage import api as usage_api
from usagelens.modules.usage.cache import get_usage_snapshot_cache


@asynccontextmanager
async def lifespan(_: FastAPI):
    await get_usage_snapshot_cache().invalidate()
    await init_http_client()
    usage_scheduler = build_usage_refresh_scheduler()
    await usage_scheduler.start()

    try:
        yield
    finally:
        await usage_scheduler.stop()
        await close_http_client()


def create_app() -> FastAPI:
    app = FastAPI(title="usagelens", version=__version__, lifespan=lifespan)

    add_request_id_middleware(app)
    add_exception_handlers(app)

    app.include_router(health_api.router)
    app.include_router(usage_api.router)
    return app


app = create_app()
