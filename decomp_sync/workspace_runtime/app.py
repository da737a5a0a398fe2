from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.routing import APIRouter
from loguru import logger
from sse_starlette.sse import AppStatus

from decomp_sync.workspace_runtime.log import setup_logging
from decomp_sync.workspace_runtime.settings import get_settings
from decomp_sync.workspace_runtime.workspace import Workspace


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncIterator[None]:
    # -- Startup ---------------------------------------------------------------
    settings = get_settings()
    setup_logging(settings.log_level, settings.log_file)

    logger.info("decomp-sync starting (host={}, port={})", settings.host, settings.port)
    logger.info("Workspace root: {} (storage={}, executor={})", settings.root_path, settings.storage_path, settings.executor)

    # View streams end when the workspace closes, not on the first signal.
    AppStatus.disable_automatic_graceful_drain()

    workspace = Workspace(settings.root_path, settings)
    _app.state.workspace = workspace
    await workspace.open()

    yield

    # -- Shutdown --------------------------------------------------------------
    # Let an in-flight build finish so its result is published before views
    # are disconnected.
    logger.info("decomp-sync shutting down (views={})", workspace.broadcaster.view_count)
    await workspace.close(timeout=settings.graceful_shutdown_timeout)
    _app.state.workspace = None

    AppStatus.should_exit = True
    logger.info("SSE: signalled streams to close")


app = FastAPI(title="decomp-sync", lifespan=lifespan)

# ---------------------------------------------------------------------------
# API router -- all endpoints live under /api
# ---------------------------------------------------------------------------
api = APIRouter(prefix="/api")


@api.get("/health")
async def health() -> dict[str, str]:
    return {"status": "ok"}


from decomp_sync.workspace_runtime.routers.commands import router as commands_router  # noqa: E402
from decomp_sync.workspace_runtime.routers.editor import router as editor_router  # noqa: E402
from decomp_sync.workspace_runtime.routers.state import router as state_router  # noqa: E402
from decomp_sync.workspace_runtime.routers.units import router as units_router  # noqa: E402
from decomp_sync.workspace_runtime.routers.views import router as views_router  # noqa: E402

api.include_router(views_router)
api.include_router(units_router)
api.include_router(editor_router)
api.include_router(commands_router)
api.include_router(state_router)

app.include_router(api)
