from contextlib import asynccontextmanager
from typing import AsyncGenerator

import structlog
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from sona import __version__
from sona.api.routers import generate_router, health_router, jobs_router
from sona.core.config import settings
from sona.core.errors import AuthenticationError, StorageError, ValidationError
from sona.core.logging import configure_logging

logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    configure_logging(settings.log_level, settings.log_json)
    logger.info("api_started", api_prefix=settings.api_prefix)
    yield


app = FastAPI(
    title="Sona - Prompt to Audio API",
    description="""
## Prompt-to-audio generation

Submit a text prompt and receive a generated audio track once a worker has
processed it.

### Flow

1. Obtain a token from the auth provider
2. Use it in the header `Authorization: Bearer {token}`
3. Submit a prompt to `/generate`
4. Follow the job at `/jobs/{id}` or `/jobs/{id}/events`
5. Download `wav_url` (master) or `mp3_url` (preview) once it is `completed`
    """,
    version=__version__,
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_tags=[
        {"name": "Health", "description": "Health check endpoints"},
        {"name": "Generation", "description": "Prompt submission"},
        {"name": "Jobs", "description": "Job status and change subscriptions"},
    ],
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def add_security_headers(request: Request, call_next):
    response = await call_next(request)
    response.headers["X-Content-Type-Options"] = "nosniff"
    response.headers["X-Frame-Options"] = "DENY"
    return response


@app.exception_handler(ValidationError)
async def validation_exception_handler(request: Request, exc: ValidationError) -> JSONResponse:
    return JSONResponse(
        status_code=400,
        content={"error": "Validation Error", "message": exc.message, "details": exc.details},
    )


@app.exception_handler(AuthenticationError)
async def authentication_exception_handler(request: Request, exc: AuthenticationError) -> JSONResponse:
    return JSONResponse(
        status_code=401,
        content={"error": "Unauthorized", "message": str(exc)},
        headers={"WWW-Authenticate": "Bearer"},
    )


@app.exception_handler(StorageError)
async def storage_exception_handler(request: Request, exc: StorageError) -> JSONResponse:
    logger.error("storage_failure", path=request.url.path, error=str(exc))
    return JSONResponse(
        status_code=500,
        content={"error": "Database Error", "message": "Failed to store job", "details": str(exc)},
    )


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.error("unhandled_exception", path=request.url.path, error=str(exc))
    return JSONResponse(
        status_code=500,
        content={"error": "Internal Server Error", "message": "An unexpected error occurred"},
    )


app.include_router(health_router)
app.include_router(generate_router, prefix=settings.api_prefix)
app.include_router(jobs_router, prefix=settings.api_prefix)


@app.get("/")
async def root():
    return {"service": "sona-api", "version": __version__, "docs": "/docs"}
