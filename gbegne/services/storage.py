"""Remote archive for recordings: audio blobs in object storage, rows in the database."""

import logging
import secrets
import time
from pathlib import Path
from typing import Optional

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError
from fastapi.concurrency import run_in_threadpool
from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from gbegne.config import get_settings
from gbegne.db.models import Recording
from gbegne.exceptions import InsertError, RecordingNotFoundError, UploadError
from gbegne.schemas.schemas import Language, NoOwner, Owner, RecordingRow, owner_columns

logger = logging.getLogger(__name__)

settings = get_settings()

AUDIO_CONTENT_TYPE = "audio/m4a"


def generate_object_name() -> str:
    """Unique object name: ``recording_<epoch ms>_<random>.m4a``."""
    return f"recording_{int(time.time() * 1000)}_{secrets.token_hex(4)}.m4a"


class RecordingArchive:
    """
    Service for the remote half of a save: object storage plus metadata rows.

    The blob and its row are written separately with no transaction spanning
    both; callers sequence them and decide what a partial failure means.
    """

    def __init__(self, client=None, bucket: Optional[str] = None):
        self._client = client
        self._bucket = bucket or settings.minio_bucket

    @property
    def client(self):
        """Lazy initialization of S3 client."""
        if self._client is None:
            endpoint_url = f"{'https' if settings.minio_use_ssl else 'http'}://{settings.minio_endpoint}"
            self._client = boto3.client(
                "s3",
                endpoint_url=endpoint_url,
                aws_access_key_id=settings.minio_access_key,
                aws_secret_access_key=settings.minio_secret_key,
                config=Config(signature_version="s3v4"),
            )
            self._ensure_bucket()
        return self._client

    def _ensure_bucket(self):
        """Create bucket if it doesn't exist."""
        try:
            self.client.head_bucket(Bucket=self._bucket)
        except ClientError:
            self.client.create_bucket(Bucket=self._bucket)

    # ============== Blobs ==============

    def _put_file(self, local_path: Path, remote_path: str) -> None:
        with local_path.open("rb") as fh:
            self.client.upload_fileobj(
                fh,
                self._bucket,
                remote_path,
                ExtraArgs={"ContentType": AUDIO_CONTENT_TYPE},
            )

    async def upload(self, local_path: str | Path) -> str:
        """
        Copy a local audio file to the bucket under a generated name.
        Returns the object key (the remote path).
        """
        local_path = Path(local_path)
        if not local_path.is_file():
            raise UploadError(f"Recording file not found: {local_path.name}")

        remote_path = generate_object_name()
        try:
            await run_in_threadpool(self._put_file, local_path, remote_path)
        except (BotoCoreError, ClientError, OSError) as e:
            raise UploadError(f"Failed to upload recording: {e}") from e

        logger.info("Uploaded %s to %s/%s", local_path.name, self._bucket, remote_path)
        return remote_path

    def playback_url(self, remote_path: str, expires_in: Optional[int] = None) -> str:
        """Generate a time-limited presigned URL for playing a recording."""
        return self.client.generate_presigned_url(
            "get_object",
            Params={"Bucket": self._bucket, "Key": remote_path},
            ExpiresIn=expires_in or settings.signed_url_ttl_seconds,
        )

    # ============== Rows ==============

    async def insert_metadata(self, db: AsyncSession, row: RecordingRow) -> Recording:
        """Insert and commit the metadata row that points at an uploaded blob."""
        if isinstance(row.owner, NoOwner):
            raise InsertError("Recording must belong to a user or a guest")

        user_id, anonymous_user_id = owner_columns(row.owner)
        recording = Recording(
            text=row.text,
            audio_file_path=row.audio_file_path,
            is_custom=row.is_custom,
            content_language=row.content_language,
            user_id=user_id,
            anonymous_user_id=anonymous_user_id,
        )
        if row.id:
            recording.id = row.id

        try:
            db.add(recording)
            await db.commit()
            await db.refresh(recording)
        except SQLAlchemyError as e:
            await db.rollback()
            raise InsertError(f"Failed to save recording metadata: {e}") from e

        return recording

    async def get_recording(self, db: AsyncSession, recording_id: str) -> Optional[Recording]:
        """Get a recording row by ID."""
        return await db.get(Recording, recording_id)

    async def list_recordings(
        self,
        db: AsyncSession,
        owner: Owner,
        language: Optional[Language] = None,
        page: int = 1,
        page_size: int = 20,
    ) -> tuple[list[Recording], int]:
        """
        List recordings for an owner, newest first.

        Returns:
            Tuple of (recordings, total_count)
        """
        if isinstance(owner, NoOwner):
            return [], 0

        user_id, anonymous_user_id = owner_columns(owner)
        if user_id is not None:
            query = select(Recording).where(Recording.user_id == user_id)
        else:
            query = select(Recording).where(Recording.anonymous_user_id == anonymous_user_id)

        if language:
            query = query.where(Recording.content_language == language)

        # Get total count
        count_query = select(func.count()).select_from(query.subquery())
        total = (await db.execute(count_query)).scalar() or 0

        # Apply pagination
        query = (
            query.order_by(Recording.created_at.desc(), Recording.id.desc())
            .offset((page - 1) * page_size)
            .limit(page_size)
        )

        result = await db.execute(query)
        return list(result.scalars().all()), total

    async def remove(self, db: AsyncSession, recording_id: str, remote_path: str) -> None:
        """
        Delete a recording.

        The blob delete is best effort: a failure is logged and the metadata
        row is removed regardless.
        """
        try:
            await run_in_threadpool(
                self.client.delete_object, Bucket=self._bucket, Key=remote_path
            )
        except (BotoCoreError, ClientError) as e:
            logger.warning("Failed to delete blob %s for recording %s: %s", remote_path, recording_id, e)

        recording = await db.get(Recording, recording_id)
        if recording is None:
            raise RecordingNotFoundError(recording_id)

        await db.delete(recording)
        await db.commit()
        logger.info("Deleted recording %s", recording_id)

    def health_check(self) -> bool:
        """Check if storage is accessible."""
        try:
            self.client.head_bucket(Bucket=self._bucket)
            return True
        except Exception:
            return False


# Singleton instance
recording_archive = RecordingArchive()
