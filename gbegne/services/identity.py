"""Resolution of the current owner and guest profiles."""

import asyncio
import logging
import random
import weakref
from typing import Optional

from pydantic import BaseModel, ConfigDict
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from gbegne.auth.security import get_user_for_token
from gbegne.db.models import AnonymousUser
from gbegne.exceptions import IdentityLookupError, InvalidUsernameError
from gbegne.schemas.schemas import (
    AnonymousOwner,
    Language,
    NoOwner,
    Owner,
    RegisteredOwner,
)

logger = logging.getLogger(__name__)

MIN_USERNAME_LENGTH = 2
MAX_USERNAME_LENGTH = 50

_ADJECTIVES = ["Happy", "Clever", "Bright", "Swift", "Bold", "Kind", "Smart", "Cool"]
_NOUNS = ["User", "Guest", "Visitor", "Explorer", "Friend", "Learner", "Speaker", "Student"]


class SessionContext(BaseModel):
    """Who is acting and which catalog language they are working in."""

    model_config = ConfigDict(frozen=True)

    owner: Owner = NoOwner()
    language: Language = Language.FRENCH


def suggest_username() -> str:
    """Random guest name such as ``SwiftLearner42``."""
    return f"{random.choice(_ADJECTIVES)}{random.choice(_NOUNS)}{random.randint(1, 99)}"


class IdentityResolver:
    """
    Resolves the owner of a request.

    A live registered session wins over a guest profile; with neither the
    owner is ``NoOwner``. Guest profiles are looked up by exact username so
    a returning guest gets the same profile back without credentials.
    """

    def __init__(self):
        self._username_locks: "weakref.WeakValueDictionary[str, asyncio.Lock]" = (
            weakref.WeakValueDictionary()
        )

    async def current_owner(
        self,
        db: AsyncSession,
        auth_token: Optional[str] = None,
        guest_id: Optional[str] = None,
    ) -> Owner:
        try:
            if auth_token:
                user = await get_user_for_token(db, auth_token)
                if user is not None:
                    return RegisteredOwner(id=user.id, email=user.email)

            if guest_id:
                guest = await db.get(AnonymousUser, guest_id)
                if guest is not None:
                    return AnonymousOwner(id=guest.id, username=guest.username)
        except SQLAlchemyError as e:
            raise IdentityLookupError(f"Could not resolve the current user: {e}") from e

        return NoOwner()

    def _lock_for(self, username: str) -> asyncio.Lock:
        lock = self._username_locks.get(username)
        if lock is None:
            lock = asyncio.Lock()
            self._username_locks[username] = lock
        return lock

    async def _find_guest(self, db: AsyncSession, username: str) -> Optional[AnonymousUser]:
        result = await db.execute(select(AnonymousUser).where(AnonymousUser.username == username))
        return result.scalar_one_or_none()

    async def continue_as_guest(self, db: AsyncSession, username: str) -> AnonymousOwner:
        """
        Reuse the guest profile with this exact username, or create it.

        Calls for the same username from this process are serialised, so they
        never insert twice. Two devices racing on a brand-new username can
        still collide; the unique index makes the loser re-read the winner's
        profile.
        """
        username = username.strip()
        if not username:
            raise InvalidUsernameError("Please enter a username")
        if len(username) < MIN_USERNAME_LENGTH:
            raise InvalidUsernameError(
                f"Username must be at least {MIN_USERNAME_LENGTH} characters long"
            )
        if len(username) > MAX_USERNAME_LENGTH:
            raise InvalidUsernameError(
                f"Username must be at most {MAX_USERNAME_LENGTH} characters long"
            )

        async with self._lock_for(username):
            try:
                guest = await self._find_guest(db, username)
                if guest is not None:
                    logger.info("Welcome back guest %s", guest.id)
                    return AnonymousOwner(id=guest.id, username=guest.username)

                guest = AnonymousUser(username=username)
                db.add(guest)
                try:
                    await db.commit()
                except IntegrityError:
                    await db.rollback()
                    guest = await self._find_guest(db, username)
                    if guest is None:
                        raise
                    return AnonymousOwner(id=guest.id, username=guest.username)
            except SQLAlchemyError as e:
                raise IdentityLookupError(f"Could not load guest profile: {e}") from e

        logger.info("New guest user created: %s", guest.id)
        return AnonymousOwner(id=guest.id, username=guest.username)


# Singleton instance
identity_resolver = IdentityResolver()
