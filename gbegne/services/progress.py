"""Local record of which prompts each owner has already recorded."""

import logging

from sqlalchemy import func, select
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from gbegne.db.models import CompletedText
from gbegne.db.session import local_session_maker
from gbegne.exceptions import CompletionMarkError
from gbegne.schemas.schemas import Language, NoOwner, Owner, owner_columns

logger = logging.getLogger(__name__)


class LocalProgressStore:
    """
    Completion markers kept in the device-local SQLite database.

    Markers are keyed by (prompt id, language, owner). Partial unique indexes
    back that key, so marking the same prompt twice inserts nothing the
    second time. This store is the only source for "already completed"; it
    is never reconciled with the remote archive.
    """

    def __init__(self, session_maker: async_sessionmaker[AsyncSession]):
        self._session_maker = session_maker

    @staticmethod
    def _owner_filter(owner: Owner):
        user_id, anonymous_user_id = owner_columns(owner)
        if user_id is not None:
            return CompletedText.user_id == user_id
        return CompletedText.anonymous_user_id == anonymous_user_id

    async def mark_completed(self, prompt_id: int, language: Language, owner: Owner) -> None:
        """Record that ``owner`` recorded ``prompt_id``; repeat calls are no-ops."""
        if isinstance(owner, NoOwner):
            raise CompletionMarkError("Cannot mark a text as completed without a user")

        user_id, anonymous_user_id = owner_columns(owner)
        stmt = (
            sqlite_insert(CompletedText)
            .values(
                text_id=prompt_id,
                language=language.value,
                user_id=user_id,
                anonymous_user_id=anonymous_user_id,
            )
            .on_conflict_do_nothing()
        )

        try:
            async with self._session_maker() as session:
                await session.execute(stmt)
                await session.commit()
        except SQLAlchemyError as e:
            raise CompletionMarkError(f"Failed to mark text {prompt_id} as completed: {e}") from e

        logger.debug("Marked %s text %s completed for %s", language.value, prompt_id, owner.id)

    async def get_completed(self, language: Language, owner: Owner) -> set[int]:
        """Ids of prompts ``owner`` has completed; always empty when there is no owner."""
        if isinstance(owner, NoOwner):
            return set()

        async with self._session_maker() as session:
            result = await session.execute(
                select(CompletedText.text_id).where(
                    CompletedText.language == language.value,
                    self._owner_filter(owner),
                )
            )
            return set(result.scalars().all())

    async def completed_count(self, language: Language, owner: Owner) -> int:
        """Number of distinct prompts completed by ``owner``."""
        if isinstance(owner, NoOwner):
            return 0

        async with self._session_maker() as session:
            result = await session.execute(
                select(func.count(func.distinct(CompletedText.text_id))).where(
                    CompletedText.language == language.value,
                    self._owner_filter(owner),
                )
            )
            return result.scalar() or 0


# Singleton instance
progress_store = LocalProgressStore(local_session_maker)
