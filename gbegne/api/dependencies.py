"""Request-scoped dependencies shared by the API routers."""

from typing import Optional

from fastapi import Depends, Header
from sqlalchemy.ext.asyncio import AsyncSession

from gbegne.db.session import get_db
from gbegne.exceptions import OwnerRequiredError
from gbegne.schemas.schemas import AnyOwner, NoOwner, Owner
from gbegne.services.artifacts import ArtifactStore, artifact_store
from gbegne.services.catalog import CatalogService, catalog_service
from gbegne.services.identity import identity_resolver
from gbegne.services.progress import LocalProgressStore, progress_store
from gbegne.services.saving import SaveOrchestrator, save_orchestrator
from gbegne.services.storage import RecordingArchive, recording_archive


def bearer_token(authorization: Optional[str] = Header(None)) -> Optional[str]:
    """Session token from an ``Authorization: Bearer`` header, if any."""
    if authorization and authorization.startswith("Bearer "):
        return authorization[7:].strip() or None
    return None


async def get_current_owner(
    token: Optional[str] = Depends(bearer_token),
    x_guest_id: Optional[str] = Header(None, alias="X-Guest-Id"),
    db: AsyncSession = Depends(get_db),
) -> Owner:
    """Resolve the owner of the request (registered, guest or nobody)."""
    return await identity_resolver.current_owner(db, auth_token=token, guest_id=x_guest_id)


async def require_owner(owner: AnyOwner = Depends(get_current_owner)) -> Owner:
    """Like ``get_current_owner`` but rejects requests without an owner."""
    if isinstance(owner, NoOwner):
        raise OwnerRequiredError()
    return owner


def get_archive() -> RecordingArchive:
    return recording_archive


def get_progress_store() -> LocalProgressStore:
    return progress_store


def get_artifact_store() -> ArtifactStore:
    return artifact_store


def get_catalog_service() -> CatalogService:
    return catalog_service


def get_orchestrator() -> SaveOrchestrator:
    return save_orchestrator
