import asyncio
import time
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse
from sqlmodel import Session

from .core.database import create_db_and_tables, engine
from .core.errors import OAuth2Error, RateLimitExceeded, ServerError
from .core.init_db import init_db
from .core.logging import clear_context, configure_logging, get_logger, set_request_id
from .core.settings import settings
from .models.AccessToken import AccessToken  # Import models to register them with SQLModel
from .models.User import User, Role, UserRoleLink
from .tasks.cleanup import run_cleanup_loop

from .auth.dependencies import token_rate_limiter
from .auth.router import router as auth_router
from .api.router import router as api_router

configure_logging("oauth2-jwe-server", settings.LOG_LEVEL)
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    create_db_and_tables()
    if settings.SEED_DEMO_USERS:
        init_db()

    cleanup_task = None
    if settings.CLEANUP_ENABLED:
        cleanup_task = asyncio.create_task(
            run_cleanup_loop(
                lambda: Session(engine),
                token_rate_limiter,
                token_interval=settings.TOKEN_CLEANUP_INTERVAL_SECONDS,
                bucket_interval=settings.BUCKET_CLEANUP_INTERVAL_SECONDS,
                bucket_retention=settings.RATE_LIMIT_BUCKET_RETENTION_SECONDS,
            )
        )
    logger.info(
        "Rate limiter initialized",
        requests_per_second=settings.RATE_LIMIT_REQUESTS_PER_SECOND,
        burst_capacity=settings.RATE_LIMIT_BURST_CAPACITY,
    )
    yield

    if cleanup_task is not None:
        cleanup_task.cancel()
        try:
            await cleanup_task
        except asyncio.CancelledError:
            pass
    token_rate_limiter.clear()


app = FastAPI(title=settings.PROJECT_NAME, lifespan=lifespan)

app.include_router(auth_router)
app.include_router(api_router)


@app.middleware("http")
async def log_requests(request: Request, call_next):
    set_request_id(request.headers.get("x-request-id"))
    started = time.perf_counter()
    try:
        response = await call_next(request)
    except Exception:
        logger.exception("Unhandled error", method=request.method, path=request.url.path)
        clear_context()
        raise
    duration_ms = round((time.perf_counter() - started) * 1000, 2)
    logger.info(
        "Request completed",
        method=request.method,
        path=request.url.path,
        status=response.status_code,
        duration_ms=duration_ms,
    )
    clear_context()
    return response


@app.exception_handler(OAuth2Error)
async def oauth2_error_handler(request: Request, exc: OAuth2Error):
    status_code = (
        status.HTTP_500_INTERNAL_SERVER_ERROR if isinstance(exc, ServerError) else status.HTTP_400_BAD_REQUEST
    )
    logger.warning("Rejected token request", code=exc.code, reason=exc.description)
    return JSONResponse(status_code=status_code, content=exc.to_response().model_dump())


@app.exception_handler(RateLimitExceeded)
async def rate_limit_handler(request: Request, exc: RateLimitExceeded):
    return JSONResponse(
        status_code=status.HTTP_429_TOO_MANY_REQUESTS,
        content=exc.to_response().model_dump(),
    )


@app.get("/")
def read_root():
    return {"message": f"Welcome to {settings.PROJECT_NAME}"}
