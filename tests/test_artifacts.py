"""Tests for the local artifact store."""

import os
import time
from datetime import datetime, timedelta, timezone

import pytest

from gbegne.exceptions import ArtifactNotFoundError, RecorderError
from gbegne.schemas.schemas import RecordingArtifact
from gbegne.services.artifacts import ArtifactStore


def test_add_and_get(artifact_store: ArtifactStore):
    artifact = artifact_store.add(b"m4a-bytes", owner_key="guest:1", duration_ms=900)

    assert artifact_store.exists(artifact.id)
    assert artifact_store.get(artifact.id, owner_key="guest:1") == artifact


def test_get_for_other_owner(artifact_store: ArtifactStore):
    artifact = artifact_store.add(b"m4a-bytes", owner_key="guest:1")

    with pytest.raises(ArtifactNotFoundError):
        artifact_store.get(artifact.id, owner_key="guest:2")


def test_empty_content_rejected(artifact_store: ArtifactStore):
    with pytest.raises(RecorderError):
        artifact_store.add(b"")


def test_missing_file_is_not_found(artifact_store: ArtifactStore, tmp_path):
    artifact = artifact_store.add(b"m4a-bytes")
    os.remove(artifact.path)

    assert not artifact_store.exists(artifact.id)
    with pytest.raises(ArtifactNotFoundError):
        artifact_store.get(artifact.id)


def test_sweep_removes_stale_artifacts(artifact_store: ArtifactStore):
    fresh = artifact_store.add(b"fresh")
    stale_file = artifact_store.directory / "stale.m4a"
    stale_file.write_bytes(b"stale")
    stale = artifact_store.register(
        RecordingArtifact(
            id="stale",
            path=str(stale_file),
            created_at=datetime.now(timezone.utc) - timedelta(days=2),
        )
    )

    removed = artifact_store.sweep(timedelta(hours=24))

    assert removed == 1
    assert not artifact_store.exists(stale.id)
    assert not stale_file.exists()
    assert artifact_store.exists(fresh.id)


def test_sweep_removes_files_left_by_previous_run(tmp_path):
    directory = tmp_path / "artifacts"
    directory.mkdir()
    leftover = directory / "left-over.m4a"
    leftover.write_bytes(b"old")
    two_days_ago = time.time() - 2 * 24 * 3600
    os.utime(leftover, (two_days_ago, two_days_ago))
    recent = directory / "recent.m4a"
    recent.write_bytes(b"new")

    store = ArtifactStore(directory)
    assert store.sweep(timedelta(hours=24)) == 1

    assert not leftover.exists()
    assert recent.exists()


def test_sweep_without_directory(tmp_path):
    assert ArtifactStore(tmp_path / "never-created").sweep() == 0
