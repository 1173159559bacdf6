from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from simplr.api.endpoints import organizations, tasks, teams
from simplr.core.exceptions import SimplrError, RemoteStoreError
from simplr.core.logging import capture_error, init_sentry, setup_logging
from simplr.db.base import Base
from simplr.db.session import engine_internal
from simplr.helpers.getters import isDebugMode, isTestMode
from simplr.middleware.logging import AccessLoggingMiddleware
from simplr.logging import get_logger

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    if not isTestMode():
        async with engine_internal.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
    yield
    await engine_internal.dispose()


app = FastAPI(
    title="Simplr API",
    description="""
## Authentication

Send the bearer token issued by the auth provider in the `Authorization`
header. Guest sessions use tokens whose subject starts with `guest_`.

## Tasks

Personal tasks, reminders, and `POST /api/tasks/sync` to reconcile tasks
edited offline. `GET /api/tasks/events` streams change notifications.

## Teams

Teams are joined with a short join code. Roles are owner > admin > member;
`GET /api/teams/{team_id}/permissions` returns the caller's flags.
    """,
    version="1.0.0",
    lifespan=lifespan,
)

# Initialize logging and error tracking
setup_logging()
init_sentry()

origins = [
    "*"
]

app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["X-Request-ID"],
)

app.add_middleware(AccessLoggingMiddleware, enabled=not isDebugMode())


@app.exception_handler(SimplrError)
async def simplr_error_handler(request: Request, exc: SimplrError):
    if isinstance(exc, RemoteStoreError):
        capture_error(exc, context={"request": {"path": request.url.path, "method": request.method}})
    else:
        logger.warning(exc.message, path=request.url.path, status_code=exc.status_code)

    content = {"detail": exc.message}
    if exc.detail:
        content["context"] = exc.detail
    return JSONResponse(status_code=exc.status_code, content=content)


app.include_router(tasks.router, prefix="/api/tasks", tags=["tasks"])
app.include_router(teams.router, prefix="/api/teams", tags=["teams"])
app.include_router(organizations.router, prefix="/api/organizations", tags=["organizations"])


@app.get("/")
def root():
    return {"message": "Welcome to the Simplr API. See /docs for the OpenAPI schema"}


@app.get("/health")
def health():
    return {"status": "ok"}
