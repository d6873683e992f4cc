"""Password hashing, session tokens and account management."""

import logging
import secrets
from datetime import datetime, timedelta, timezone
from typing import Optional, Protocol

from passlib.context import CryptContext
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from gbegne.config import get_settings
from gbegne.db.models import AuthSession, User
from gbegne.exceptions import (
    EmailAlreadyRegisteredError,
    EmailNotConfirmedError,
    InvalidCredentialsError,
    InvalidVerificationTokenError,
    VerificationThrottledError,
    WeakPasswordError,
)

logger = logging.getLogger(__name__)

settings = get_settings()

# Password and token hashing context
pwd_context = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")

TOKEN_PREFIX = "gbs_"
TOKEN_LENGTH = 36
LOOKUP_PREFIX_LENGTH = 12


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Treat naive timestamps read back from the database as UTC."""
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=timezone.utc)


def generate_session_token() -> tuple[str, str]:
    """
    Generate a new session token.
    Returns: (full_token, prefix)
    Format: gbs_XXXXXXXXXXXXXXXXXXXXXXXXXXXXXXXX (32 random hex chars after prefix)
    """
    full_token = f"{TOKEN_PREFIX}{secrets.token_hex(16)}"
    return full_token, full_token[:LOOKUP_PREFIX_LENGTH]


def hash_secret(value: str) -> str:
    """Hash a password or token for storage."""
    return pwd_context.hash(value)


def verify_secret(plain: str, hashed: str) -> bool:
    """Verify a password or token against its hash."""
    return pwd_context.verify(plain, hashed)


def normalize_email(email: str) -> str:
    return email.strip().lower()


async def get_user_for_token(db: AsyncSession, token: str) -> Optional[User]:
    """Return the user behind a live session token, or ``None``."""
    if not token.startswith(TOKEN_PREFIX) or len(token) != TOKEN_LENGTH:
        return None

    result = await db.execute(
        select(AuthSession).where(
            AuthSession.token_prefix == token[:LOOKUP_PREFIX_LENGTH],
            AuthSession.revoked_at.is_(None),
        )
    )
    for session in result.scalars().all():
        expires_at = as_utc(session.expires_at)
        if expires_at and expires_at < utcnow():
            continue
        if verify_secret(token, session.token_hash):
            return await db.get(User, session.user_id)

    return None


class Mailer(Protocol):
    """Delivers account verification tokens."""

    async def send_verification(self, email: str, token: str) -> None: ...


class LoggingMailer:
    """Mailer that only writes to the log; the link itself is logged in debug mode."""

    async def send_verification(self, email: str, token: str) -> None:
        if settings.debug:
            logger.info(
                "Verification link for %s: %s/v1/auth/confirm?email=%s&token=%s",
                email,
                settings.public_base_url,
                email,
                token,
            )
        else:
            logger.info("Verification token issued for %s", email)


class AccountService:
    """Registration, email confirmation and login sessions."""

    def __init__(self, mailer: Optional[Mailer] = None):
        self.mailer = mailer or LoggingMailer()

    async def _get_user_by_email(self, db: AsyncSession, email: str) -> Optional[User]:
        result = await db.execute(select(User).where(User.email == normalize_email(email)))
        return result.scalar_one_or_none()

    async def _issue_verification(self, db: AsyncSession, user: User) -> None:
        token = secrets.token_urlsafe(24)
        user.verification_token_hash = hash_secret(token)
        user.verification_sent_at = utcnow()
        await db.flush()
        await self.mailer.send_verification(user.email, token)

    async def register(self, db: AsyncSession, email: str, password: str) -> User:
        """
        Create an unconfirmed account and send its verification token.

        The account cannot log in until the email is confirmed.
        """
        if len(password) < settings.min_password_length:
            raise WeakPasswordError(settings.min_password_length)

        if await self._get_user_by_email(db, email) is not None:
            raise EmailAlreadyRegisteredError()

        user = User(email=normalize_email(email), password_hash=hash_secret(password))
        db.add(user)
        try:
            await db.flush()
        except IntegrityError:
            # Another registration for the same email won the insert
            await db.rollback()
            raise EmailAlreadyRegisteredError()
        await db.refresh(user)

        await self._issue_verification(db, user)
        logger.info("Registered account %s", user.id)
        return user

    async def confirm_email(self, db: AsyncSession, email: str, token: str) -> User:
        """Confirm an account with the token from its verification email."""
        user = await self._get_user_by_email(db, email)
        if (
            user is None
            or user.verification_token_hash is None
            or not verify_secret(token, user.verification_token_hash)
        ):
            raise InvalidVerificationTokenError()

        user.email_confirmed_at = utcnow()
        user.verification_token_hash = None
        await db.flush()
        return user

    async def resend_verification(self, db: AsyncSession, email: str) -> None:
        """Send a fresh verification token, at most once per resend window.

        Unknown or already confirmed emails are accepted silently so the
        endpoint does not reveal which addresses have accounts.
        """
        user = await self._get_user_by_email(db, email)
        if user is None or user.email_confirmed_at is not None:
            return

        sent_at = as_utc(user.verification_sent_at)
        if sent_at is not None:
            elapsed = (utcnow() - sent_at).total_seconds()
            if elapsed < settings.verification_resend_seconds:
                raise VerificationThrottledError(
                    retry_after=int(settings.verification_resend_seconds - elapsed) + 1
                )

        await self._issue_verification(db, user)

    async def login(
        self, db: AsyncSession, email: str, password: str
    ) -> tuple[str, AuthSession, User]:
        """
        Open a session for a confirmed account.
        Returns: (full_token, AuthSession model, User model)
        """
        user = await self._get_user_by_email(db, email)
        if user is None or not verify_secret(password, user.password_hash):
            raise InvalidCredentialsError()
        if user.email_confirmed_at is None:
            raise EmailNotConfirmedError()

        full_token, prefix = generate_session_token()
        session = AuthSession(
            user_id=user.id,
            token_prefix=prefix,
            token_hash=hash_secret(full_token),
            expires_at=utcnow() + timedelta(days=settings.session_ttl_days),
        )
        db.add(session)
        await db.flush()
        await db.refresh(session)

        return full_token, session, user

    async def logout(self, db: AsyncSession, token: str) -> bool:
        """Revoke the session behind ``token``. Returns whether one was found."""
        if not token.startswith(TOKEN_PREFIX) or len(token) != TOKEN_LENGTH:
            return False

        result = await db.execute(
            select(AuthSession).where(
                AuthSession.token_prefix == token[:LOOKUP_PREFIX_LENGTH],
                AuthSession.revoked_at.is_(None),
            )
        )
        for session in result.scalars().all():
            if verify_secret(token, session.token_hash):
                session.revoked_at = utcnow()
                await db.flush()
                return True

        return False


# Singleton instance
account_service = AccountService()
