"""Character context — the entry points used when composing a chat turn.

Flow:
  1. Resolve the character's assignments and their documents
  2. Resolve each document's source text (pinned → active version → own text)
  3. Rank candidates against the query terms
  4. Pack the ranked list into the token budget
"""

from __future__ import annotations

import logging
import time
import uuid
from dataclasses import dataclass

from sqlalchemy.ext.asyncio import AsyncSession

from docshelf.core.cache import TTLCache
from docshelf.models.assignment import Assignment
from docshelf.models.document import Document
from docshelf.services import assignments as assignment_service
from docshelf.services import documents as document_service
from docshelf.services.budget import ContextUsage, allocate
from docshelf.services.ranking import (
    Candidate,
    RankingPath,
    RelevanceRanker,
    query_terms,
)

logger = logging.getLogger(__name__)


@dataclass
class ContextBundle:
    text: str
    usage: ContextUsage
    ranking_path: RankingPath = RankingPath.SYNC


@dataclass
class DocumentContextEntry:
    id: uuid.UUID
    name: str
    tags: list[str]
    folder: str
    pinned_version_id: uuid.UUID | None
    active_version_id: uuid.UUID | None


async def _assigned_documents(
    session: AsyncSession,
    character_id: str,
) -> list[tuple[Assignment, Document]]:
    """Assignment/document pairs for a character, skipping unusable documents."""
    pairs: list[tuple[Assignment, Document]] = []
    for assignment in await assignment_service.list_for_character(session, character_id):
        doc = await document_service.get_document(session, assignment.doc_id)
        if doc is None or not doc.is_usable:
            continue
        pairs.append((assignment, doc))
    return pairs


async def _source_text(
    session: AsyncSession,
    doc: Document,
    assignment: Assignment,
    cache: TTLCache | None,
) -> str:
    # Versions are immutable; updated_at covers edits to the document's own text
    key = ("source", doc.id, assignment.pinned_version_id or doc.active_version_id, doc.updated_at)
    if cache is not None:
        cached = cache.get(key)
        if cached is not None:
            return cached
    text = await document_service.resolve_source_text(session, doc, assignment.pinned_version_id)
    if cache is not None:
        cache.put(key, text)
    return text


async def document_context(session: AsyncSession, character_id: str) -> list[DocumentContextEntry]:
    """Lightweight listing of a character's usable documents."""
    return [
        DocumentContextEntry(
            id=doc.id,
            name=doc.name,
            tags=doc.tags,
            folder=doc.folder,
            pinned_version_id=assignment.pinned_version_id,
            active_version_id=doc.active_version_id,
        )
        for assignment, doc in await _assigned_documents(session, character_id)
    ]


async def context_bundle(
    session: AsyncSession,
    character_id: str,
    query: str,
    token_budget: int,
    reserve_tokens: int,
    *,
    ranker: RelevanceRanker,
    cache: TTLCache | None = None,
) -> ContextBundle:
    """Assemble the token-budgeted document context for one prompt.

    A character without usable assignments yields empty text and a zero
    usage report.
    """
    started = time.monotonic()
    candidates: list[Candidate] = []
    for assignment, doc in await _assigned_documents(session, character_id):
        text = await _source_text(session, doc, assignment, cache)
        candidates.append(Candidate(
            document=doc,
            assignment=assignment,
            source_text=text,
            recency=doc.updated_at.timestamp(),
        ))

    terms = query_terms(query)
    ranking = await ranker.rank(candidates, terms)
    allocation = allocate(ranking.candidates, token_budget, reserve_tokens)

    logger.info(
        "Context for character %s: %d/%d docs, %d tokens used, ranked %s in %d ms",
        character_id,
        len(allocation.usage.docs),
        len(candidates),
        allocation.usage.used_tokens,
        ranking.path,
        int((time.monotonic() - started) * 1000),
    )
    return ContextBundle(text=allocation.text, usage=allocation.usage, ranking_path=ranking.path)
