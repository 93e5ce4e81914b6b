"""Workspace export / import — full-state backup and restore.

Import replaces everything: the four collections are cleared and the
snapshot inserted in one transaction. Rows that point at a document or
version missing from the snapshot are not carried over.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Callable, Hashable
from typing import Any

from pydantic import ValidationError
from sqlalchemy import delete
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import SQLModel, select

from docshelf.models.assignment import Assignment
from docshelf.models.chunk import Chunk
from docshelf.models.document import Document, normalize_tags
from docshelf.models.version import DocumentVersion
from docshelf.models.workspace import (
    AssignmentSnapshot,
    ChunkSnapshot,
    DocumentSnapshot,
    ImportSummary,
    VersionSnapshot,
    WorkspaceSnapshot,
)

logger = logging.getLogger(__name__)


def _doc_to_snapshot(doc: Document) -> DocumentSnapshot:
    return DocumentSnapshot(
        id=doc.id,
        name=doc.name,
        size=doc.size,
        mime_type=doc.mime_type,
        doc_type=doc.doc_type,
        extracted_text=doc.extracted_text,
        processed_text=doc.processed_text,
        preprocess_preset=doc.preprocess_preset,
        preprocess_custom=doc.preprocess_custom,
        tags=doc.tags,
        folder=doc.folder,
        active_version_id=doc.active_version_id,
        last_chunk_strategy=doc.last_chunk_strategy,
        last_token_size=doc.last_token_size,
        parse_status=doc.parse_status,
        parse_error=doc.parse_error,
        created_at=doc.created_at,
        updated_at=doc.updated_at,
    )


async def _all(session: AsyncSession, model: type[SQLModel]) -> list[Any]:
    result = await session.execute(select(model))
    return list(result.scalars().all())


async def export_state(session: AsyncSession) -> WorkspaceSnapshot:
    docs = await _all(session, Document)
    versions = await _all(session, DocumentVersion)
    chunks = await _all(session, Chunk)
    assignments = await _all(session, Assignment)
    return WorkspaceSnapshot(
        docs=[_doc_to_snapshot(d) for d in docs],
        versions=[VersionSnapshot.model_validate(v, from_attributes=True) for v in versions],
        chunks=[ChunkSnapshot.model_validate(c, from_attributes=True) for c in chunks],
        associations=[AssignmentSnapshot.model_validate(a, from_attributes=True) for a in assignments],
    )


def _rows(payload: Any, key: str) -> list[Any]:
    rows = payload.get(key) if isinstance(payload, dict) else None
    return rows if isinstance(rows, list) else []


def _validate_rows(rows: list[Any], schema: type[SQLModel]) -> tuple[list[Any], int]:
    """Validate raw rows; rows without an id or with bad fields are skipped."""
    valid: list[Any] = []
    skipped = 0
    for row in rows:
        if not isinstance(row, dict) or not row.get("id"):
            skipped += 1
            continue
        try:
            valid.append(schema.model_validate(row))
        except ValidationError as exc:
            logger.warning("Skipping invalid %s row %s: %s", schema.__name__, row.get("id"), exc.errors()[:1])
            skipped += 1
    return valid, skipped


def _unique(rows: list[Any], key: Callable[[Any], Hashable]) -> tuple[list[Any], int]:
    """Keep the first row per key."""
    seen: set[Hashable] = set()
    kept: list[Any] = []
    for row in rows:
        k = key(row)
        if k in seen:
            continue
        seen.add(k)
        kept.append(row)
    return kept, len(rows) - len(kept)


def _drop_dangling(
    docs: list[DocumentSnapshot],
    versions: list[VersionSnapshot],
    chunks: list[ChunkSnapshot],
    associations: list[AssignmentSnapshot],
) -> tuple[list[VersionSnapshot], list[ChunkSnapshot], list[AssignmentSnapshot], int]:
    """Drop rows whose owner is missing and clear version pointers that lead nowhere.

    A version pointer must name a version of the same document. Each
    dropped row and each cleared pointer counts as one skip.
    """
    doc_ids = {d.id for d in docs}
    kept_versions = [v for v in versions if v.doc_id in doc_ids]
    version_owner = {v.id: v.doc_id for v in kept_versions}
    kept_chunks = [
        c for c in chunks
        if c.doc_id in doc_ids and version_owner.get(c.version_id) == c.doc_id
    ]
    kept_assoc = [a for a in associations if a.doc_id in doc_ids]
    skipped = (
        len(versions) - len(kept_versions)
        + len(chunks) - len(kept_chunks)
        + len(associations) - len(kept_assoc)
    )

    for doc in docs:
        if doc.active_version_id and version_owner.get(doc.active_version_id) != doc.id:
            logger.warning("Clearing unknown active version %s of document %s", doc.active_version_id, doc.id)
            doc.active_version_id = None
            skipped += 1
    for assoc in kept_assoc:
        if assoc.pinned_version_id and version_owner.get(assoc.pinned_version_id) != assoc.doc_id:
            logger.warning("Clearing unknown pin %s for %s", assoc.pinned_version_id, assoc.character_id)
            assoc.pinned_version_id = None
            skipped += 1

    return kept_versions, kept_chunks, kept_assoc, skipped


async def import_state(session: AsyncSession, payload: Any) -> ImportSummary:
    """Replace the workspace with ``payload``.

    Accepts a full snapshot ``{docs, versions, chunks, associations}`` or a
    bare list of documents (metadata-only backups).
    """
    if isinstance(payload, list):
        payload = {"docs": payload}

    docs, skipped_docs = _validate_rows(_rows(payload, "docs"), DocumentSnapshot)
    versions, skipped_versions = _validate_rows(_rows(payload, "versions"), VersionSnapshot)
    chunks, skipped_chunks = _validate_rows(_rows(payload, "chunks"), ChunkSnapshot)
    associations, skipped_assoc = _validate_rows(_rows(payload, "associations"), AssignmentSnapshot)

    docs, dup_docs = _unique(docs, lambda s: s.id)
    versions, dup_versions = _unique(versions, lambda s: s.id)
    chunks, dup_chunks = _unique(chunks, lambda s: s.id)
    associations, dup_assoc = _unique(associations, lambda s: (s.character_id, s.doc_id))
    associations, dup_assoc_ids = _unique(associations, lambda s: s.id)
    skipped_docs += dup_docs
    skipped_versions += dup_versions
    skipped_chunks += dup_chunks
    skipped_assoc += dup_assoc + dup_assoc_ids
    versions, chunks, associations, dangling = _drop_dangling(docs, versions, chunks, associations)

    try:
        await session.execute(delete(Assignment))
        await session.execute(delete(Chunk))
        await session.execute(delete(DocumentVersion))
        await session.execute(delete(Document))
        # Freshly inserted rows may reuse ids of instances still held by this session
        session.expunge_all()

        for snap in docs:
            fields = snap.model_dump(exclude={"tags"})
            session.add(Document(**fields, tags_json=json.dumps(normalize_tags(snap.tags))))
        session.add_all(DocumentVersion(**snap.model_dump()) for snap in versions)
        session.add_all(Chunk(**snap.model_dump()) for snap in chunks)
        session.add_all(Assignment(**snap.model_dump()) for snap in associations)

        await session.commit()
    except Exception:
        await session.rollback()
        logger.exception("Workspace import failed; previous state kept")
        raise

    summary = ImportSummary(
        docs=len(docs),
        versions=len(versions),
        chunks=len(chunks),
        associations=len(associations),
        skipped=skipped_docs + skipped_versions + skipped_chunks + skipped_assoc + dangling,
    )
    logger.info("Imported workspace: %s", summary.model_dump())
    return summary
