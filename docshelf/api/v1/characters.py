"""Character assignments and context assembly endpoints."""

import uuid

from fastapi import APIRouter, HTTPException, status

from docshelf.api.deps import ContextCache, Ranker, Session
from docshelf.core.config import get_settings
from docshelf.models.assignment import (
    Assignment,
    AssignmentOverview,
    AssignmentRead,
    PinVersionRequest,
)
from docshelf.models.context import (
    ContextBundleRead,
    ContextRequest,
    ContextUsageRead,
    DocumentContextItem,
    DocumentUsageRead,
)
from docshelf.services import assignments as assignment_service
from docshelf.services import context as context_service
from docshelf.services import documents as document_service

router = APIRouter(prefix="/characters", tags=["characters"])
assignments_router = APIRouter(prefix="/assignments", tags=["characters"])


def _to_read(assignment: Assignment) -> AssignmentRead:
    return AssignmentRead(
        id=assignment.id,
        character_id=assignment.character_id,
        doc_id=assignment.doc_id,
        pinned_version_id=assignment.pinned_version_id,
        created_at=assignment.created_at,
        updated_at=assignment.updated_at,
    )


@router.get("/{character_id}/documents", response_model=list[AssignmentRead])
async def list_character_documents(
    character_id: str,
    session: Session,
) -> list[AssignmentRead]:
    assignments = await assignment_service.list_for_character(session, character_id)
    return [_to_read(a) for a in assignments]


@router.put("/{character_id}/documents/{doc_id}", response_model=AssignmentRead)
async def assign_document(
    character_id: str,
    doc_id: uuid.UUID,
    session: Session,
) -> AssignmentRead:
    """Assign a document to a character. Repeating the call is a no-op."""
    if await document_service.get_document(session, doc_id) is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Document not found")
    return _to_read(await assignment_service.assign(session, character_id, doc_id))


@router.delete("/{character_id}/documents/{doc_id}", status_code=status.HTTP_204_NO_CONTENT)
async def unassign_document(
    character_id: str,
    doc_id: uuid.UUID,
    session: Session,
) -> None:
    if not await assignment_service.unassign(session, character_id, doc_id):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Assignment not found")


@router.put("/{character_id}/documents/{doc_id}/pin", response_model=AssignmentRead)
async def pin_document_version(
    character_id: str,
    doc_id: uuid.UUID,
    body: PinVersionRequest,
    session: Session,
) -> AssignmentRead:
    """Pin a version for this character, or unpin with ``version_id: null``."""
    try:
        assignment = await assignment_service.pin_version(session, character_id, doc_id, body.version_id)
    except document_service.VersionMismatchError as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc)) from exc
    if assignment is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Assignment not found")
    return _to_read(assignment)


@router.get("/{character_id}/document-context", response_model=list[DocumentContextItem])
async def get_document_context(
    character_id: str,
    session: Session,
) -> list[DocumentContextItem]:
    entries = await context_service.document_context(session, character_id)
    return [
        DocumentContextItem(
            id=e.id,
            name=e.name,
            tags=e.tags,
            folder=e.folder,
            pinned_version_id=e.pinned_version_id,
            active_version_id=e.active_version_id,
        )
        for e in entries
    ]


@router.post("/{character_id}/context", response_model=ContextBundleRead)
async def build_context(
    character_id: str,
    body: ContextRequest,
    session: Session,
    ranker: Ranker,
    cache: ContextCache,
) -> ContextBundleRead:
    """Rank the character's documents against the query and pack them into the budget."""
    reserve = body.reserve_tokens
    if reserve is None:
        reserve = get_settings().default_reserve_tokens

    bundle = await context_service.context_bundle(
        session,
        character_id,
        body.query,
        body.token_budget,
        reserve,
        ranker=ranker,
        cache=cache,
    )
    usage = bundle.usage
    return ContextBundleRead(
        text=bundle.text,
        usage=ContextUsageRead(
            budget_tokens=usage.budget_tokens,
            reserve_tokens=usage.reserve_tokens,
            used_tokens=usage.used_tokens,
            remaining_tokens=usage.remaining_tokens,
            docs=[
                DocumentUsageRead(
                    id=d.id,
                    name=d.name,
                    method=d.method,
                    used_tokens=d.used_tokens,
                    pinned=d.pinned,
                    score=d.score,
                )
                for d in usage.docs
            ],
        ),
        ranking_path=bundle.ranking_path,
    )


@assignments_router.get("", response_model=AssignmentOverview)
async def list_assignments(session: Session) -> AssignmentOverview:
    """Every assignment plus the number of characters using each document."""
    assignments = await assignment_service.list_all(session)
    counts = assignment_service.usage_counts(assignments)
    return AssignmentOverview(
        assignments=[_to_read(a) for a in assignments],
        usage_counts={str(doc_id): count for doc_id, count in counts.items()},
    )
