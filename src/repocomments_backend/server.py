import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from repocomments_backend.api.repos import repos_router
from repocomments_backend.exceptions import register_exception_handlers, validate_error_registry
from repocomments_backend.settings import settings
from repocomments_backend.websocket.hub import RealtimeHub
from repocomments_backend.websocket.router import ws_router

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    _, problems = validate_error_registry()
    for problem in problems:
        logger.warning(f"Error registry: {problem}")

    hub = RealtimeHub()
    app.state.realtime = hub
    await hub.start()
    try:
        yield
    finally:
        await hub.stop()


app = FastAPI(title="repocomments", lifespan=lifespan)

# Register custom exception handlers for structured error responses
register_exception_handlers(app)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials="*" not in settings.CORS_ORIGINS,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(ws_router, tags=["websocket"])
app.include_router(repos_router, tags=["repositories"])


@app.head("/", status_code=204)
def get_status_head():
    return


@app.get("/health")
async def health():
    return {"status": "ok"}
