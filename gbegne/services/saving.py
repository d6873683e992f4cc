"""Save flow: upload the artifact, insert its row, then mark the prompt completed."""

import enum
import logging
from dataclasses import dataclass, field
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from gbegne.exceptions import (
    CompletionMarkError,
    GbeGneError,
    OwnerRequiredError,
    RecorderError,
    SaveFailedError,
    SaveInProgressError,
)
from gbegne.schemas.schemas import NoOwner, RecordingArtifact, RecordingRow, owner_key
from gbegne.services.artifacts import ArtifactStore, artifact_store
from gbegne.services.identity import SessionContext
from gbegne.services.progress import LocalProgressStore, progress_store
from gbegne.services.storage import RecordingArchive, recording_archive

logger = logging.getLogger(__name__)


class SaveStage(str, enum.Enum):
    """Stage of a save attempt."""

    IDLE = "idle"
    UPLOADING = "uploading"
    INSERTING = "inserting"
    MARKING_COMPLETE = "marking_complete"
    DONE = "done"
    FAILED = "failed"


@dataclass
class SaveAttempt:
    """State of one save, carried from stage to stage."""

    artifact: RecordingArtifact
    text: str
    prompt_id: Optional[int] = None
    stage: SaveStage = SaveStage.IDLE
    failed_stage: Optional[SaveStage] = None
    remote_path: Optional[str] = None
    recording_id: Optional[str] = None
    completion_marked: bool = False
    history: list[SaveStage] = field(default_factory=list)

    @property
    def is_custom(self) -> bool:
        return self.prompt_id is None

    def advance(self, stage: SaveStage) -> None:
        self.history.append(self.stage)
        self.stage = stage

    def fail(self) -> None:
        self.failed_stage = self.stage
        self.advance(SaveStage.FAILED)


class SaveOrchestrator:
    """
    Runs save attempts as a sequence of independent writes.

    Upload and insert failures stop the attempt and keep the artifact so the
    user can press save again. Marking the prompt completed is local
    bookkeeping only: when it fails the recording is still saved remotely,
    so the attempt reports success and the discrepancy is logged. Nothing is
    retried automatically.
    """

    def __init__(
        self,
        archive: RecordingArchive,
        progress_store: LocalProgressStore,
        artifacts: ArtifactStore,
    ):
        self.archive = archive
        self.progress_store = progress_store
        self.artifacts = artifacts
        self._in_flight: set[str] = set()

    def is_saving(self, ctx: SessionContext) -> bool:
        key = owner_key(ctx.owner)
        return key is not None and key in self._in_flight

    async def save(
        self,
        db: AsyncSession,
        ctx: SessionContext,
        artifact: Optional[RecordingArtifact],
        text: str,
        prompt_id: Optional[int] = None,
    ) -> SaveAttempt:
        """
        Save ``artifact`` for ``text`` on behalf of the context owner.

        Args:
            db: Session on the remote store
            ctx: Owner and content language of the save
            artifact: The recording to save
            text: Prompt or custom text that was read
            prompt_id: Catalog prompt id; ``None`` for custom text

        Returns:
            The attempt in stage ``done``

        Raises:
            SaveFailedError: upload or insert failed; the artifact is kept
        """
        if artifact is None:
            raise RecorderError("No recording found. Please record audio first.")
        if isinstance(ctx.owner, NoOwner):
            raise OwnerRequiredError()

        if self.is_saving(ctx):
            raise SaveInProgressError()

        key = owner_key(ctx.owner)
        self._in_flight.add(key)
        try:
            return await self._run(db, ctx, SaveAttempt(artifact, text, prompt_id))
        finally:
            self._in_flight.discard(key)

    async def _run(self, db: AsyncSession, ctx: SessionContext, attempt: SaveAttempt) -> SaveAttempt:
        attempt.advance(SaveStage.UPLOADING)
        try:
            attempt.remote_path = await self.archive.upload(attempt.artifact.path)
        except GbeGneError as e:
            attempt.fail()
            logger.warning("Upload failed for artifact %s: %s", attempt.artifact.id, e.detail)
            raise SaveFailedError(SaveStage.UPLOADING.value, e, attempt) from e

        attempt.advance(SaveStage.INSERTING)
        try:
            recording = await self.archive.insert_metadata(
                db,
                RecordingRow(
                    text=attempt.text,
                    audio_file_path=attempt.remote_path,
                    is_custom=attempt.is_custom,
                    content_language=ctx.language,
                    owner=ctx.owner,
                ),
            )
        except GbeGneError as e:
            attempt.fail()
            # The blob stays in the bucket without a row pointing at it.
            logger.warning(
                "Metadata insert failed, orphaned blob %s left in storage: %s",
                attempt.remote_path,
                e.detail,
            )
            raise SaveFailedError(SaveStage.INSERTING.value, e, attempt) from e
        attempt.recording_id = recording.id

        if attempt.prompt_id is not None:
            attempt.advance(SaveStage.MARKING_COMPLETE)
            try:
                await self.progress_store.mark_completed(attempt.prompt_id, ctx.language, ctx.owner)
                attempt.completion_marked = True
            except CompletionMarkError as e:
                logger.warning(
                    "Recording %s saved but %s text %s was not marked completed: %s",
                    recording.id,
                    ctx.language.value,
                    attempt.prompt_id,
                    e.detail,
                )

        attempt.advance(SaveStage.DONE)
        self._discard_artifact(attempt.artifact)
        logger.info("Saved recording %s (%s)", recording.id, attempt.remote_path)
        return attempt

    def _discard_artifact(self, artifact: RecordingArtifact) -> None:
        try:
            self.artifacts.discard(artifact)
        except OSError as e:
            logger.warning("Failed to discard artifact %s after save: %s", artifact.id, e)


# Singleton instance
save_orchestrator = SaveOrchestrator(recording_archive, progress_store, artifact_store)
