from __future__ import annotations
import uuid
from contextlib import asynccontextmanager
from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from townhall.config import settings
from townhall.logging_setup import configure_logging
from townhall.routes.system import router as system_router
from townhall.routes.feed import router as feed_router
from townhall.routes.ideas import router as ideas_router
from townhall.routes.votes import router as votes_router
from townhall.routes.stats import router as stats_router
from townhall.services.backend import BackendClient
from townhall.services.errors import ActionError
from townhall.services.sessions import SessionRegistry
import structlog

configure_logging()
log = structlog.get_logger()

@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup
    log.info("startup", env=settings.environment, version=settings.app_version, git_sha=settings.git_sha)
    app.state.http = BackendClient.create_http()
    app.state.sessions = SessionRegistry()
    yield
    # Shutdown
    app.state.sessions.clear()
    await app.state.http.aclose()
    log.info("shutdown")

app = FastAPI(
    title=f"{settings.app_display_name} API",
    version=settings.app_version,
    lifespan=lifespan,
    description=f"{settings.app_display_name} API for civic ideas, weekly votes and ranked feeds"
)

# Usable before lifespan runs (e.g. TestClient without a context manager)
app.state.sessions = SessionRegistry()

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"] if settings.environment == "dev" else settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(system_router)
app.include_router(feed_router)
app.include_router(ideas_router)
app.include_router(votes_router)
app.include_router(stats_router)

@app.exception_handler(ActionError)
async def action_error_handler(request: Request, exc: ActionError):
    log.info("action_refused", path=request.url.path, kind=exc.kind.value, status_code=exc.status_code)
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message, "kind": exc.kind.value})

@app.middleware("http")
async def add_request_id(request: Request, call_next):
    rid = request.headers.get("x-request-id") or str(uuid.uuid4())
    request.state.request_id = rid
    structlog.contextvars.bind_contextvars(request_id=rid)
    response: Response = await call_next(request)
    response.headers["X-Request-ID"] = rid
    structlog.contextvars.clear_contextvars()
    return response
