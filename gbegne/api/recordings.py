"""Recording artifact and save routes."""

from typing import Optional

from fastapi import APIRouter, Depends, File, Form, Query, Request, UploadFile, status
from sqlalchemy.ext.asyncio import AsyncSession

from gbegne.api.dependencies import (
    get_archive,
    get_artifact_store,
    get_catalog_service,
    get_orchestrator,
    require_owner,
)
from gbegne.config import get_settings
from gbegne.db.session import get_db
from gbegne.exceptions import (
    GbeGneError,
    PromptNotFoundError,
    RecordingNotFoundError,
)
from gbegne.middleware.rate_limit import rate_limit_saves
from gbegne.schemas.schemas import (
    AnyOwner,
    ArtifactResponse,
    Language,
    PlaybackResponse,
    RecordingListResponse,
    RecordingResponse,
    SaveRecordingRequest,
    SaveRecordingResponse,
    owner_columns,
    owner_key,
)
from gbegne.services.artifacts import ArtifactStore
from gbegne.services.catalog import CatalogService
from gbegne.services.identity import SessionContext
from gbegne.services.saving import SaveOrchestrator
from gbegne.services.storage import RecordingArchive

router = APIRouter(prefix="/v1", tags=["Recordings"])

settings = get_settings()

MIN_CUSTOM_TEXT_LENGTH = 3


@router.post(
    "/artifacts",
    response_model=ArtifactResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Hand over a finished recording",
    description="Store a recorded audio file locally until it is saved or discarded.",
)
@rate_limit_saves()
async def create_artifact(
    request: Request,
    audio: UploadFile = File(..., description="Recorded audio (m4a)"),
    duration_ms: Optional[int] = Form(None, ge=0),
    owner: AnyOwner = Depends(require_owner),
    artifacts: ArtifactStore = Depends(get_artifact_store),
):
    content = await audio.read()
    artifact = artifacts.add(content, owner_key=owner_key(owner), duration_ms=duration_ms)

    return ArtifactResponse(
        artifact_id=artifact.id,
        duration_ms=artifact.duration_ms,
        size_bytes=len(content),
        created_at=artifact.created_at,
    )


@router.delete(
    "/artifacts/{artifact_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Discard a recording",
)
async def discard_artifact(
    artifact_id: str,
    owner: AnyOwner = Depends(require_owner),
    artifacts: ArtifactStore = Depends(get_artifact_store),
):
    artifacts.discard(artifacts.get(artifact_id, owner_key=owner_key(owner)))


@router.post(
    "/recordings",
    response_model=SaveRecordingResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Save a recording",
    description=(
        "Upload the artifact, store its metadata, and mark the prompt completed. "
        "On an upload or insert failure the artifact is kept so the save can be retried."
    ),
)
@rate_limit_saves()
async def save_recording(
    request: Request,
    payload: SaveRecordingRequest,
    db: AsyncSession = Depends(get_db),
    owner: AnyOwner = Depends(require_owner),
    artifacts: ArtifactStore = Depends(get_artifact_store),
    catalogs: CatalogService = Depends(get_catalog_service),
    orchestrator: SaveOrchestrator = Depends(get_orchestrator),
):
    if payload.prompt_id is not None:
        prompt = catalogs.get_prompt(payload.language, payload.prompt_id)
        if prompt is None:
            raise PromptNotFoundError(payload.language.value, payload.prompt_id)
        text = prompt.text
    else:
        if not payload.text or len(payload.text) < MIN_CUSTOM_TEXT_LENGTH:
            raise GbeGneError(
                detail=f"Please enter at least {MIN_CUSTOM_TEXT_LENGTH} characters of text.",
                code="TEXT_TOO_SHORT",
                status_code=status.HTTP_400_BAD_REQUEST,
            )
        text = payload.text

    artifact = artifacts.get(payload.artifact_id, owner_key=owner_key(owner))
    ctx = SessionContext(owner=owner, language=payload.language)
    attempt = await orchestrator.save(db, ctx, artifact, text, prompt_id=payload.prompt_id)

    return SaveRecordingResponse(
        recording_id=attempt.recording_id,
        audio_file_path=attempt.remote_path,
        stage=attempt.stage.value,
        completion_marked=attempt.completion_marked,
        prompt_id=attempt.prompt_id,
    )


@router.get(
    "/recordings",
    response_model=RecordingListResponse,
    summary="List recordings",
    description="Recordings saved by the current owner, newest first.",
)
async def list_recordings(
    language: Optional[Language] = Query(None, description="Filter by content language"),
    page: int = Query(1, ge=1, description="Page number"),
    page_size: int = Query(20, ge=1, le=100, description="Items per page"),
    db: AsyncSession = Depends(get_db),
    owner: AnyOwner = Depends(require_owner),
    archive: RecordingArchive = Depends(get_archive),
):
    recordings, total = await archive.list_recordings(db, owner, language, page, page_size)
    total_pages = (total + page_size - 1) // page_size

    return RecordingListResponse(
        recordings=[RecordingResponse.model_validate(r) for r in recordings],
        total=total,
        page=page,
        page_size=page_size,
        total_pages=total_pages,
    )


async def _owned_recording(
    db: AsyncSession, archive: RecordingArchive, recording_id: str, owner: AnyOwner
):
    recording = await archive.get_recording(db, recording_id)
    if recording is None:
        raise RecordingNotFoundError(recording_id)
    if (recording.user_id, recording.anonymous_user_id) != owner_columns(owner):
        raise RecordingNotFoundError(recording_id)
    return recording


@router.get(
    "/recordings/{recording_id}/playback",
    response_model=PlaybackResponse,
    summary="Playback URL",
    description="A signed URL that expires after the configured lifetime (one hour by default).",
)
async def playback_url(
    recording_id: str,
    db: AsyncSession = Depends(get_db),
    owner: AnyOwner = Depends(require_owner),
    archive: RecordingArchive = Depends(get_archive),
):
    recording = await _owned_recording(db, archive, recording_id, owner)
    url = archive.playback_url(recording.audio_file_path)
    return PlaybackResponse(url=url, expires_in=settings.signed_url_ttl_seconds)


@router.delete(
    "/recordings/{recording_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete a recording",
)
async def delete_recording(
    recording_id: str,
    db: AsyncSession = Depends(get_db),
    owner: AnyOwner = Depends(require_owner),
    archive: RecordingArchive = Depends(get_archive),
):
    recording = await _owned_recording(db, archive, recording_id, owner)
    await archive.remove(db, recording.id, recording.audio_file_path)
