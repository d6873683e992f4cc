"""Pytest configuration and fixtures."""

import os

# Keep the module-level engines off real services before anything imports them
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("LOCAL_DATABASE_URL", "sqlite+aiosqlite:///:memory:")

from typing import AsyncGenerator

import pytest
import pytest_asyncio
from botocore.exceptions import ClientError
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from gbegne.api.dependencies import (
    get_archive,
    get_artifact_store,
    get_catalog_service,
    get_orchestrator,
    get_progress_store,
)
from gbegne.auth.security import account_service
from gbegne.db.session import Base, LocalBase, get_db
from gbegne.main import app
from gbegne.middleware.rate_limit import limiter
from gbegne.services.artifacts import ArtifactStore
from gbegne.services.catalog import CatalogService
from gbegne.services.progress import LocalProgressStore
from gbegne.services.saving import SaveOrchestrator
from gbegne.services.storage import RecordingArchive

TEST_BUCKET = "test-audio"


class FakeS3Client:
    """In-memory stand-in for the boto3 S3 client calls the archive makes."""

    def __init__(self):
        self.objects: dict[tuple[str, str], bytes] = {}
        self.fail_uploads = False
        self.fail_deletes = False

    @staticmethod
    def _error(operation: str) -> ClientError:
        return ClientError({"Error": {"Code": "AccessDenied", "Message": "Access Denied"}}, operation)

    def head_bucket(self, Bucket):
        return {}

    def upload_fileobj(self, Fileobj, Bucket, Key, ExtraArgs=None):
        if self.fail_uploads:
            raise self._error("PutObject")
        self.objects[(Bucket, Key)] = Fileobj.read()

    def delete_object(self, Bucket, Key):
        if self.fail_deletes:
            raise self._error("DeleteObject")
        self.objects.pop((Bucket, Key), None)
        return {}

    def generate_presigned_url(self, ClientMethod, Params, ExpiresIn):
        return (
            f"https://storage.test/{Params['Bucket']}/{Params['Key']}"
            f"?X-Amz-Expires={ExpiresIn}&X-Amz-Signature=test"
        )


class CapturingMailer:
    """Keeps verification tokens instead of sending them."""

    def __init__(self):
        self.tokens: dict[str, str] = {}

    async def send_verification(self, email: str, token: str) -> None:
        self.tokens[email] = token


@pytest_asyncio.fixture
async def remote_session_maker(tmp_path) -> AsyncGenerator[async_sessionmaker, None]:
    """Session factory on a fresh remote database."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'remote.db'}", echo=False)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    await engine.dispose()


@pytest_asyncio.fixture
async def db_session(remote_session_maker) -> AsyncGenerator[AsyncSession, None]:
    """Create a test database session."""
    async with remote_session_maker() as session:
        yield session
        await session.rollback()


@pytest_asyncio.fixture
async def local_session_maker(tmp_path) -> AsyncGenerator[async_sessionmaker, None]:
    """Session factory on a fresh local progress database."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'progress.db'}", echo=False)

    async with engine.begin() as conn:
        await conn.run_sync(LocalBase.metadata.create_all)

    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    await engine.dispose()


@pytest.fixture
def progress_store(local_session_maker) -> LocalProgressStore:
    return LocalProgressStore(local_session_maker)


@pytest.fixture
def s3_client() -> FakeS3Client:
    return FakeS3Client()


@pytest.fixture
def archive(s3_client: FakeS3Client) -> RecordingArchive:
    return RecordingArchive(client=s3_client, bucket=TEST_BUCKET)


@pytest.fixture
def artifact_store(tmp_path) -> ArtifactStore:
    return ArtifactStore(tmp_path / "artifacts")


@pytest.fixture
def catalog_service(progress_store: LocalProgressStore) -> CatalogService:
    return CatalogService(progress_store)


@pytest.fixture
def orchestrator(
    archive: RecordingArchive,
    progress_store: LocalProgressStore,
    artifact_store: ArtifactStore,
) -> SaveOrchestrator:
    return SaveOrchestrator(archive, progress_store, artifact_store)


@pytest.fixture
def mailer(monkeypatch) -> CapturingMailer:
    capturing = CapturingMailer()
    monkeypatch.setattr(account_service, "mailer", capturing)
    return capturing


@pytest_asyncio.fixture
async def client(
    db_session: AsyncSession,
    archive: RecordingArchive,
    progress_store: LocalProgressStore,
    artifact_store: ArtifactStore,
    catalog_service: CatalogService,
    orchestrator: SaveOrchestrator,
) -> AsyncGenerator[AsyncClient, None]:
    """Create a test HTTP client."""

    async def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_archive] = lambda: archive
    app.dependency_overrides[get_progress_store] = lambda: progress_store
    app.dependency_overrides[get_artifact_store] = lambda: artifact_store
    app.dependency_overrides[get_catalog_service] = lambda: catalog_service
    app.dependency_overrides[get_orchestrator] = lambda: orchestrator

    limiter.reset()
    limiter.enabled = False

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac

    limiter.enabled = True
    app.dependency_overrides.clear()


@pytest_asyncio.fixture
async def guest_headers(client: AsyncClient) -> dict:
    """Headers acting as a freshly created guest."""
    response = await client.post("/v1/guests", json={"username": "Marie"})
    assert response.status_code == 200
    return {"X-Guest-Id": response.json()["id"]}
