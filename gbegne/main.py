"""Main FastAPI application entry point."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from gbegne.api import auth, health, prompts, recordings
from gbegne.config import get_settings
from gbegne.db.session import init_db
from gbegne.exceptions import GbeGneError, SaveFailedError, VerificationThrottledError
from gbegne.middleware.rate_limit import limiter
from gbegne.services.artifacts import artifact_store

settings = get_settings()

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.log_level),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler for startup/shutdown."""
    # Startup
    logger.info("Starting Gbé-Gné collection service...")

    try:
        await init_db()
        logger.info("Databases initialized successfully")
    except Exception as e:
        logger.error(f"Database initialization failed: {e}")
        raise

    artifact_store.sweep()

    yield

    # Shutdown
    logger.info("Shutting down Gbé-Gné collection service...")


# Create FastAPI app
app = FastAPI(
    title="Gbé-Gné Collection Service",
    description="""
## French / Ewe audio collection

Record spoken Ewe for French and Ewe prompt sentences:
- **Prompts**: catalog sentences not yet recorded by the current user
- **Artifacts**: finished recordings waiting to be saved
- **Recordings**: saved audio with signed playback URLs

### Identity
Send `Authorization: Bearer <session token>` after logging in, or
`X-Guest-Id: <guest id>` after continuing as a guest.
    """,
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_url="/openapi.json",
    lifespan=lifespan,
)

# Add rate limiter
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Configure appropriately for production
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(GbeGneError)
async def domain_exception_handler(request: Request, exc: GbeGneError):
    """Render domain errors as JSON."""
    content = {"error": type(exc).__name__, "detail": exc.detail, "code": exc.code}
    headers = None
    if isinstance(exc, SaveFailedError):
        # Upload/insert failures keep the artifact; the client may retry
        content["stage"] = exc.stage
        content["retryable"] = True
    if isinstance(exc, VerificationThrottledError):
        headers = {"Retry-After": str(exc.retry_after)}
    return JSONResponse(status_code=exc.status_code, content=content, headers=headers)


# Global exception handler
@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Handle uncaught exceptions."""
    logger.exception(f"Unhandled exception: {exc}")
    return JSONResponse(
        status_code=500,
        content={
            "error": "Internal server error",
            "detail": str(exc) if settings.debug else "An unexpected error occurred",
        },
    )


# Include routers
app.include_router(health.router)
app.include_router(auth.router)
app.include_router(prompts.router)
app.include_router(recordings.router)


# Root endpoint
@app.get("/", tags=["Root"])
async def root():
    """Root endpoint with service info."""
    return {
        "service": "Gbé-Gné Collection Service",
        "version": "1.0.0",
        "docs": "/docs",
        "health": "/health",
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "gbegne.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.debug,
    )
