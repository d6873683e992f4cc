"""Database models for the collection service."""

import enum
from datetime import datetime
from typing import Optional
from uuid import uuid4

from sqlalchemy import (
    CheckConstraint,
    DateTime,
    Enum,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    func,
    text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from gbegne.db.session import Base, LocalBase

# Exactly one of the two owner columns is set on every owned row.
ONE_OWNER_CHECK = "(user_id IS NULL) <> (anonymous_user_id IS NULL)"


def _uuid() -> str:
    return str(uuid4())


class ContentLanguage(str, enum.Enum):
    """Language of the prompt text a recording was made for."""

    FRENCH = "french"
    EWE = "ewe"


# ============== Remote store ==============


class User(Base):
    """A registered account."""

    __tablename__ = "users"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    email: Mapped[str] = mapped_column(String(255), unique=True, index=True)
    password_hash: Mapped[str] = mapped_column(String(255))
    email_confirmed_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    verification_token_hash: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    verification_sent_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    sessions: Mapped[list["AuthSession"]] = relationship(
        "AuthSession", back_populates="user", cascade="all, delete-orphan"
    )


class AuthSession(Base):
    """A login session identified by a bearer token."""

    __tablename__ = "auth_sessions"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    user_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("users.id", ondelete="CASCADE"), index=True
    )
    token_prefix: Mapped[str] = mapped_column(String(12), index=True)  # "gbs_" + 8 chars
    token_hash: Mapped[str] = mapped_column(String(255))
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
    expires_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    revoked_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    user: Mapped["User"] = relationship("User", back_populates="sessions")


class AnonymousUser(Base):
    """A guest profile, reusable by typing the same username again."""

    __tablename__ = "anonymous_users"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    username: Mapped[str] = mapped_column(String(50), unique=True, index=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )


class Recording(Base):
    """Metadata row for an uploaded audio recording."""

    __tablename__ = "recordings"
    __table_args__ = (CheckConstraint(ONE_OWNER_CHECK, name="ck_recordings_one_owner"),)

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    text: Mapped[str] = mapped_column(Text)
    audio_file_path: Mapped[str] = mapped_column(Text)  # Object key in the audio bucket
    is_custom: Mapped[bool] = mapped_column(default=False)
    content_language: Mapped[ContentLanguage] = mapped_column(
        Enum(ContentLanguage, values_callable=lambda e: [m.value for m in e])
    )
    user_id: Mapped[Optional[str]] = mapped_column(
        String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=True, index=True
    )
    anonymous_user_id: Mapped[Optional[str]] = mapped_column(
        String(36), ForeignKey("anonymous_users.id", ondelete="CASCADE"), nullable=True, index=True
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )


# ============== Local progress store ==============


class CompletedText(LocalBase):
    """Local marker that an owner has already recorded a catalog prompt."""

    __tablename__ = "completed_texts"
    __table_args__ = (
        CheckConstraint(ONE_OWNER_CHECK, name="ck_completed_texts_one_owner"),
        Index(
            "uq_completed_texts_user",
            "text_id",
            "language",
            "user_id",
            unique=True,
            sqlite_where=text("user_id IS NOT NULL"),
        ),
        Index(
            "uq_completed_texts_anonymous",
            "text_id",
            "language",
            "anonymous_user_id",
            unique=True,
            sqlite_where=text("anonymous_user_id IS NOT NULL"),
        ),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    text_id: Mapped[int] = mapped_column(Integer)
    language: Mapped[str] = mapped_column(String(10))
    user_id: Mapped[Optional[str]] = mapped_column(String(36), nullable=True)
    anonymous_user_id: Mapped[Optional[str]] = mapped_column(String(36), nullable=True)
    completed_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
