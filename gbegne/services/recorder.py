"""Exclusive recording sessions over an opaque audio device.

This is the device-side seam for the app that embeds the service: it drives a
platform `Recorder` and hands each finished take to the `ArtifactStore`, which
the HTTP routes then save. The HTTP API itself never touches the device.
"""

import enum
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Awaitable, Callable, Optional, Protocol
from uuid import uuid4

from gbegne.exceptions import RecorderError, RecordingPermissionError
from gbegne.schemas.schemas import RecordingArtifact
from gbegne.services.artifacts import ArtifactStore

logger = logging.getLogger(__name__)


class Recorder(Protocol):
    """Platform audio capture capability."""

    async def request_permission(self) -> bool: ...

    async def start(self) -> None: ...

    async def stop(self) -> tuple[str, Optional[int]]:
        """Stop capturing; returns (file path, duration in ms)."""
        ...

    async def unload(self) -> None: ...


class RecordingState(str, enum.Enum):
    IDLE = "idle"
    RECORDING = "recording"
    RECORDED = "recorded"


class RecordingSession:
    """
    One recording screen's hold on the audio device.

    Only one capture may run at a time. The device is released on stop, on
    navigation away and on backgrounding, whichever comes first.
    """

    def __init__(
        self,
        recorder: Recorder,
        artifacts: ArtifactStore,
        owner_key: Optional[str] = None,
    ):
        self.recorder = recorder
        self.artifacts = artifacts
        self.owner_key = owner_key
        self.state = RecordingState.IDLE
        self.artifact: Optional[RecordingArtifact] = None

    @property
    def is_recording(self) -> bool:
        return self.state == RecordingState.RECORDING

    async def start(self) -> None:
        """Start capturing, replacing any unsaved take."""
        if self.is_recording:
            raise RecorderError("A recording is already in progress")

        if not await self.recorder.request_permission():
            raise RecordingPermissionError()

        if self.artifact is not None:
            self.discard()

        try:
            await self.recorder.start()
        except Exception as e:
            await self._unload()
            logger.error("Failed to start recording: %s", e)
            raise RecorderError("Failed to start recording. Please try again.") from e

        self.state = RecordingState.RECORDING

    async def stop(self) -> RecordingArtifact:
        """Stop capturing and keep the take as an artifact ready to save."""
        if not self.is_recording:
            raise RecorderError("No recording in progress")

        try:
            path, duration_ms = await self.recorder.stop()
        except Exception as e:
            self.state = RecordingState.IDLE
            await self._unload()
            logger.error("Failed to stop recording: %s", e)
            raise RecorderError("Failed to stop recording. Please try again.") from e
        await self._unload()

        self.artifact = self.artifacts.register(
            RecordingArtifact(
                id=str(uuid4()),
                path=path,
                duration_ms=duration_ms,
                owner_key=self.owner_key,
                created_at=datetime.now(timezone.utc),
            )
        )
        self.state = RecordingState.RECORDED
        return self.artifact

    def discard(self) -> None:
        """Throw away the current take."""
        if self.artifact is not None:
            self.artifacts.discard(self.artifact)
            self.artifact = None
        if self.state == RecordingState.RECORDED:
            self.state = RecordingState.IDLE

    def saved(self) -> None:
        """Forget the take after a successful save; the save already removed it."""
        self.artifact = None
        self.state = RecordingState.IDLE

    async def _unload(self) -> None:
        try:
            await self.recorder.unload()
        except Exception as e:
            logger.warning("Failed to unload recorder: %s", e)

    async def release(self) -> None:
        """Stop any running capture, drop it, and free the device."""
        if not self.is_recording:
            return
        try:
            path, _ = await self.recorder.stop()
            Path(path).unlink(missing_ok=True)
        except Exception as e:
            logger.warning("Failed to stop recorder during release: %s", e)
        await self._unload()
        self.state = RecordingState.IDLE

    async def confirm_leave(self, confirm: Callable[[], Awaitable[bool]]) -> bool:
        """
        Decide whether the screen may be left.

        While recording, leaving is blocked until ``confirm`` answers; a
        confirmed leave stops and discards the capture first.
        """
        if not self.is_recording:
            return True
        if not await confirm():
            return False
        await self.release()
        self.discard()
        return True
