"""Prompt catalog routes."""

from typing import Optional

from fastapi import APIRouter, Depends, Query

from gbegne.api.dependencies import get_catalog_service, get_current_owner
from gbegne.exceptions import PromptNotFoundError
from gbegne.schemas.schemas import AnyOwner, CatalogPage, Language, ProgressResponse, Prompt
from gbegne.services.catalog import CatalogService, categories, load_catalog
from gbegne.services.identity import SessionContext

router = APIRouter(prefix="/v1/prompts", tags=["Prompts"])


@router.get(
    "/{language}",
    response_model=CatalogPage,
    summary="Remaining prompts",
    description=(
        "Prompts the current owner has not recorded yet, in catalog order. "
        "Without an owner nothing counts as completed."
    ),
)
async def list_remaining_prompts(
    language: Language,
    q: str = Query("", max_length=200, description="Search text or category"),
    category: Optional[str] = Query(None, description="Only this category ('All' for every one)"),
    page: int = Query(1, ge=1, description="Number of pages loaded so far"),
    page_size: Optional[int] = Query(None, ge=1, le=100, description="Items per page"),
    owner: AnyOwner = Depends(get_current_owner),
    catalogs: CatalogService = Depends(get_catalog_service),
):
    ctx = SessionContext(owner=owner, language=language)
    return await catalogs.remaining_for(
        ctx, query=q, page=page, page_size=page_size, category=category
    )


@router.get(
    "/{language}/categories",
    response_model=list[str],
    summary="Prompt categories",
)
async def list_categories(language: Language):
    return categories(load_catalog(language))


@router.get(
    "/{language}/progress",
    response_model=ProgressResponse,
    summary="Recording progress",
    description="How many catalog prompts the current owner has recorded.",
)
async def get_progress(
    language: Language,
    owner: AnyOwner = Depends(get_current_owner),
    catalogs: CatalogService = Depends(get_catalog_service),
):
    return await catalogs.progress_for(SessionContext(owner=owner, language=language))


@router.get(
    "/{language}/{prompt_id}",
    response_model=Prompt,
    summary="Get a prompt",
)
async def get_prompt(
    language: Language,
    prompt_id: int,
    catalogs: CatalogService = Depends(get_catalog_service),
):
    prompt = catalogs.get_prompt(language, prompt_id)
    if prompt is None:
        raise PromptNotFoundError(language.value, prompt_id)
    return prompt
