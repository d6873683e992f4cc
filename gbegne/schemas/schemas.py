"""Pydantic schemas for the domain and for request/response validation."""

from datetime import datetime
from typing import Annotated, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator

from gbegne.db.models import ContentLanguage

Language = ContentLanguage


# ============== Owners ==============


class RegisteredOwner(BaseModel):
    """A signed-in account."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["registered"] = "registered"
    id: str
    email: str


class AnonymousOwner(BaseModel):
    """A guest profile."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["anonymous"] = "anonymous"
    id: str
    username: str


class NoOwner(BaseModel):
    """Nobody is signed in and no guest profile is active."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["none"] = "none"


AnyOwner = Union[RegisteredOwner, AnonymousOwner, NoOwner]

Owner = Annotated[AnyOwner, Field(discriminator="kind")]


def owner_key(owner: Owner) -> Optional[str]:
    """Stable key identifying an owner across both variants."""
    if isinstance(owner, RegisteredOwner):
        return f"user:{owner.id}"
    if isinstance(owner, AnonymousOwner):
        return f"guest:{owner.id}"
    return None


def owner_columns(owner: Owner) -> tuple[Optional[str], Optional[str]]:
    """Collapse an owner into the ``(user_id, anonymous_user_id)`` storage columns."""
    if isinstance(owner, RegisteredOwner):
        return owner.id, None
    if isinstance(owner, AnonymousOwner):
        return None, owner.id
    return None, None


# ============== Catalog ==============


class Prompt(BaseModel):
    """A catalog sentence offered for recording."""

    model_config = ConfigDict(frozen=True)

    id: int
    text: str
    language: Language
    category: str


class CatalogPage(BaseModel):
    """Remaining prompts, cut to the pages loaded so far."""

    items: list[Prompt]
    total_remaining: int
    page: int
    page_size: int
    has_more: bool


class ProgressResponse(BaseModel):
    """How far the current owner is through a catalog."""

    language: Language
    completed: int
    total: int
    remaining: int


# ============== Recordings ==============


class RecordingArtifact(BaseModel):
    """A finished local recording that has not been saved yet."""

    model_config = ConfigDict(frozen=True)

    id: str
    path: str
    duration_ms: Optional[int] = None
    owner_key: Optional[str] = None
    created_at: datetime


class RecordingRow(BaseModel):
    """Metadata row written to the remote ``recordings`` table."""

    id: Optional[str] = None
    text: str
    audio_file_path: str
    is_custom: bool
    content_language: Language
    owner: Owner
    created_at: Optional[datetime] = None


class SaveRecordingRequest(BaseModel):
    """Request to save a recorded artifact against a prompt or custom text."""

    artifact_id: str
    language: Language
    prompt_id: Optional[int] = Field(None, description="Catalog prompt id; omit for custom text")
    text: Optional[str] = Field(
        None, max_length=500, description="Custom text (required when prompt_id is omitted)"
    )

    @field_validator("text", mode="before")
    @classmethod
    def strip_text(cls, v: str | None) -> str | None:
        if v is None:
            return None
        return v.strip()


class SaveRecordingResponse(BaseModel):
    """Outcome of a successful save."""

    recording_id: str
    audio_file_path: str
    stage: str
    completion_marked: bool
    prompt_id: Optional[int] = None


class RecordingResponse(BaseModel):
    """A saved recording as listed in the history."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    text: str
    audio_file_path: str
    is_custom: bool
    content_language: Language
    created_at: datetime


class RecordingListResponse(BaseModel):
    """Paginated list of recordings."""

    recordings: list[RecordingResponse]
    total: int
    page: int
    page_size: int
    total_pages: int


class PlaybackResponse(BaseModel):
    """Time-limited URL for playing a recording."""

    url: str
    expires_in: int


class ArtifactResponse(BaseModel):
    """Artifact registered from an uploaded recording."""

    artifact_id: str
    duration_ms: Optional[int] = None
    size_bytes: int
    created_at: datetime


# ============== Identity & accounts ==============


class GuestCreate(BaseModel):
    """Request to continue as a guest."""

    username: str = Field(..., max_length=50)


class OwnerResponse(BaseModel):
    """The owner resolved for the current request."""

    owner: Owner


class RegisterRequest(BaseModel):
    email: EmailStr
    password: str = Field(..., max_length=128)


class RegisterResponse(BaseModel):
    id: str
    email: str
    email_confirmed: bool
    created_at: datetime


class LoginRequest(BaseModel):
    email: EmailStr
    password: str


class LoginResponse(BaseModel):
    """Response after login (only time the session token is shown)."""

    session_token: str
    expires_at: Optional[datetime] = None
    owner: RegisteredOwner


class ConfirmEmailRequest(BaseModel):
    email: EmailStr
    token: str


class ResendVerificationRequest(BaseModel):
    email: EmailStr


# ============== Health & Misc Schemas ==============


class HealthResponse(BaseModel):
    """Health check response."""

    status: str
    version: str
    database: str
    local_database: str
    storage: str


class ErrorResponse(BaseModel):
    """Standard error response."""

    error: str
    detail: Optional[str] = None
    code: Optional[str] = None


class LanguageInfo(BaseModel):
    """Information about a prompt catalog language."""

    code: str
    name: str
    prompt_count: int
