"""Workspace backup and restore."""

from typing import Any

from fastapi import APIRouter, Body

from docshelf.api.deps import ContextCache, Session
from docshelf.models.workspace import ImportSummary, WorkspaceSnapshot
from docshelf.services import transfer

router = APIRouter(prefix="/workspace", tags=["workspace"])


@router.get("/export", response_model=WorkspaceSnapshot)
async def export_workspace(session: Session) -> WorkspaceSnapshot:
    return await transfer.export_state(session)


@router.post("/import", response_model=ImportSummary)
async def import_workspace(
    session: Session,
    cache: ContextCache,
    payload: Any = Body(...),
) -> ImportSummary:
    """Replace the whole workspace with an exported snapshot.

    A bare JSON array is treated as a list of documents.
    """
    summary = await transfer.import_state(session, payload)
    cache.clear()
    return summary
