"""Local recording artifacts awaiting a save."""

import logging
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Optional
from uuid import uuid4

from gbegne.config import get_settings
from gbegne.exceptions import ArtifactNotFoundError, RecorderError
from gbegne.schemas.schemas import RecordingArtifact

logger = logging.getLogger(__name__)

settings = get_settings()


class ArtifactStore:
    """
    Holds finished recordings on local disk until they are saved or discarded.

    Artifacts are ephemeral: the registry lives in memory and a restart
    forgets them.
    """

    def __init__(self, directory: Optional[str | Path] = None):
        self.directory = Path(directory or settings.artifact_dir)
        self._artifacts: dict[str, RecordingArtifact] = {}

    def add(
        self,
        content: bytes,
        owner_key: Optional[str] = None,
        duration_ms: Optional[int] = None,
        suffix: str = ".m4a",
    ) -> RecordingArtifact:
        """Write uploaded audio to disk and register it as an artifact."""
        if not content:
            raise RecorderError("Recording is empty. Please record audio first.")
        if len(content) > settings.max_artifact_bytes:
            raise RecorderError("Recording is too large")

        self.directory.mkdir(parents=True, exist_ok=True)
        artifact_id = str(uuid4())
        path = self.directory / f"{artifact_id}{suffix}"
        path.write_bytes(content)

        return self.register(
            RecordingArtifact(
                id=artifact_id,
                path=str(path),
                duration_ms=duration_ms,
                owner_key=owner_key,
                created_at=datetime.now(timezone.utc),
            )
        )

    def register(self, artifact: RecordingArtifact) -> RecordingArtifact:
        """Track an artifact whose file already exists (e.g. from a recorder)."""
        self._artifacts[artifact.id] = artifact
        return artifact

    def get(self, artifact_id: str, owner_key: Optional[str] = None) -> RecordingArtifact:
        """Get an artifact, optionally checking it belongs to ``owner_key``."""
        if not self.exists(artifact_id):
            raise ArtifactNotFoundError(artifact_id)
        artifact = self._artifacts[artifact_id]
        if owner_key is not None and artifact.owner_key not in (None, owner_key):
            raise ArtifactNotFoundError(artifact_id)
        return artifact

    def exists(self, artifact_id: str) -> bool:
        artifact = self._artifacts.get(artifact_id)
        return artifact is not None and Path(artifact.path).is_file()

    def discard(self, artifact: RecordingArtifact) -> None:
        """Forget an artifact and delete its file."""
        self._artifacts.pop(artifact.id, None)
        Path(artifact.path).unlink(missing_ok=True)

    def sweep(self, max_age: Optional[timedelta] = None) -> int:
        """
        Delete artifacts that were never saved or discarded.

        Registered artifacts older than ``max_age`` are discarded, and so are
        files in the artifact directory the registry no longer knows about
        (left over from a previous run). Returns the number of files removed.
        """
        max_age = max_age or timedelta(hours=settings.artifact_max_age_hours)
        cutoff = datetime.now(timezone.utc) - max_age
        removed = 0

        for artifact in list(self._artifacts.values()):
            if artifact.created_at < cutoff:
                self.discard(artifact)
                removed += 1

        if self.directory.is_dir():
            known = {Path(a.path).resolve() for a in self._artifacts.values()}
            for path in self.directory.iterdir():
                if not path.is_file() or path.resolve() in known:
                    continue
                modified = datetime.fromtimestamp(path.stat().st_mtime, timezone.utc)
                if modified < cutoff:
                    path.unlink(missing_ok=True)
                    removed += 1

        if removed:
            logger.info("Swept %d stale recording artifacts", removed)
        return removed


# Singleton instance
artifact_store = ArtifactStore()
