"""Health check and system info routes."""

from fastapi import APIRouter, Depends
from sqlalchemy import text

from gbegne.api.dependencies import get_archive
from gbegne.config import get_settings
from gbegne.schemas.schemas import HealthResponse, Language, LanguageInfo
from gbegne.services.catalog import load_catalog
from gbegne.services.storage import RecordingArchive

router = APIRouter(tags=["System"])

settings = get_settings()

VERSION = "1.0.0"


async def _ping(engine) -> str:
    try:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
        return "ok"
    except Exception:
        return "error"


@router.get(
    "/health",
    response_model=HealthResponse,
    summary="Health check",
    description="Check the health status of the service and its dependencies.",
)
async def health_check(archive: RecordingArchive = Depends(get_archive)):
    """
    Health check endpoint.

    Returns the status of:
    - Remote database connection
    - Local progress database
    - Object storage connection
    """
    from gbegne.db.session import engine, local_engine

    db_status = await _ping(engine)
    local_status = await _ping(local_engine)
    storage_status = "ok" if archive.health_check() else "error"

    overall_status = "healthy"
    if any(s == "error" for s in [db_status, local_status, storage_status]):
        overall_status = "degraded"

    return HealthResponse(
        status=overall_status,
        version=VERSION,
        database=db_status,
        local_database=local_status,
        storage=storage_status,
    )


@router.get(
    "/v1/languages",
    response_model=list[LanguageInfo],
    summary="List catalog languages",
    description="Get the languages that have a prompt catalog.",
)
async def list_languages():
    """Get list of catalog languages."""
    return [
        LanguageInfo(
            code=language.value,
            name=settings.language_names[language.value],
            prompt_count=len(load_catalog(language)),
        )
        for language in Language
    ]


@router.get(
    "/v1/info",
    summary="Service information",
    description="Get general information about the service.",
)
async def service_info():
    """Get service information."""
    return {
        "name": settings.app_name,
        "version": VERSION,
        "environment": settings.app_env,
        "supported_languages": [language.value for language in Language],
        "audio_bucket": settings.minio_bucket,
        "signed_url_ttl_seconds": settings.signed_url_ttl_seconds,
        "documentation": "/docs",
        "redoc": "/redoc",
    }
