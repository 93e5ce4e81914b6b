"""FastAPI dependencies for the DB session and the workspace-scoped engine objects."""

from typing import Annotated

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from docshelf.core.cache import TTLCache
from docshelf.core.config import get_settings
from docshelf.core.database import get_session
from docshelf.services.ranking import ProcessOffload, RelevanceRanker


def build_ranker() -> RelevanceRanker:
    settings = get_settings()
    return RelevanceRanker(
        offload=ProcessOffload() if settings.ranking_offload_enabled else None,
        timeout_ms=settings.ranking_offload_timeout_ms,
        min_candidates=settings.ranking_offload_min_candidates,
    )


def build_context_cache() -> TTLCache:
    return TTLCache(ttl=get_settings().context_cache_ttl_seconds)


def get_context_cache(request: Request) -> TTLCache:
    """The cache created with the app; lives as long as the workspace session."""
    cache = getattr(request.app.state, "context_cache", None)
    if cache is None:
        cache = request.app.state.context_cache = build_context_cache()
    return cache


def get_ranker(request: Request) -> RelevanceRanker:
    ranker = getattr(request.app.state, "ranker", None)
    if ranker is None:
        ranker = request.app.state.ranker = build_ranker()
    return ranker


# Typed shorthand for use in route signatures
Session = Annotated[AsyncSession, Depends(get_session)]
ContextCache = Annotated[TTLCache, Depends(get_context_cache)]
Ranker = Annotated[RelevanceRanker, Depends(get_ranker)]
