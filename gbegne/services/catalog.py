"""Prompt catalogs and the remaining-prompts filter."""

import json
from functools import lru_cache
from importlib import resources
from typing import Iterable, Optional, Sequence

from gbegne.config import get_settings
from gbegne.schemas.schemas import CatalogPage, Language, ProgressResponse, Prompt
from gbegne.services.identity import SessionContext
from gbegne.services.progress import LocalProgressStore, progress_store

settings = get_settings()

ALL_CATEGORIES = "All"


@lru_cache
def load_catalog(language: Language) -> tuple[Prompt, ...]:
    """Load the bundled catalog for a language, in file order."""
    path = resources.files("gbegne") / "data" / f"{language.value}.json"
    raw = path.read_text(encoding="utf-8")
    return tuple(Prompt(language=language, **item) for item in json.loads(raw))


def categories(catalog: Iterable[Prompt]) -> list[str]:
    """Distinct categories in order of first appearance."""
    seen: dict[str, None] = {}
    for prompt in catalog:
        seen.setdefault(prompt.category, None)
    return list(seen)


def remaining(
    catalog: Sequence[Prompt],
    completed: set[int] | frozenset[int],
    query: str = "",
    page: int = 1,
    page_size: int = 20,
    category: Optional[str] = None,
) -> CatalogPage:
    """
    Compute the prompts still left to record.

    Completed ids are dropped first, then the optional search query is
    matched case-insensitively against the prompt text or its category.
    Catalog order is preserved, and the result holds the first
    ``page * page_size`` matches so the caller can "load more" by asking
    for the next page.
    """
    if page < 1:
        raise ValueError("page must be >= 1")
    if page_size < 1:
        raise ValueError("page_size must be >= 1")

    needle = (query or "").strip().casefold()

    filtered = []
    for prompt in catalog:
        if prompt.id in completed:
            continue
        if category and category != ALL_CATEGORIES and prompt.category != category:
            continue
        if needle and needle not in prompt.text.casefold() and needle not in prompt.category.casefold():
            continue
        filtered.append(prompt)

    limit = page * page_size
    return CatalogPage(
        items=filtered[:limit],
        total_remaining=len(filtered),
        page=page,
        page_size=page_size,
        has_more=len(filtered) > limit,
    )


class CatalogService:
    """Serves remaining prompts for the owner in a session context."""

    def __init__(self, progress_store: LocalProgressStore):
        self.progress_store = progress_store

    def get_prompt(self, language: Language, prompt_id: int) -> Optional[Prompt]:
        """Look up a prompt by id, or ``None`` when the catalog has no such id."""
        for prompt in load_catalog(language):
            if prompt.id == prompt_id:
                return prompt
        return None

    async def remaining_for(
        self,
        ctx: SessionContext,
        query: str = "",
        page: int = 1,
        page_size: Optional[int] = None,
        category: Optional[str] = None,
    ) -> CatalogPage:
        """Remaining prompts in the context language for the context owner."""
        completed = await self.progress_store.get_completed(ctx.language, ctx.owner)
        return remaining(
            load_catalog(ctx.language),
            completed,
            query=query,
            page=page,
            page_size=page_size or settings.default_page_size,
            category=category,
        )

    async def progress_for(self, ctx: SessionContext) -> ProgressResponse:
        """Completed and remaining prompt counts for the context owner."""
        total = len(load_catalog(ctx.language))
        completed = await self.progress_store.completed_count(ctx.language, ctx.owner)
        return ProgressResponse(
            language=ctx.language,
            completed=completed,
            total=total,
            remaining=max(total - completed, 0),
        )


# Singleton instance
catalog_service = CatalogService(progress_store)
