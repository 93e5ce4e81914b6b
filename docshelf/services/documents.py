"""Document store — versioned documents, their chunks, and cascading deletes.

Every write here is a single session commit: a version is never visible
without its chunks, and a document's ``active_version_id`` never points
at a version that was not written in the same transaction.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from enum import StrEnum

from sqlalchemy import delete
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from docshelf.models.assignment import Assignment
from docshelf.models.base import utcnow
from docshelf.models.chunk import Chunk
from docshelf.models.document import (
    BulkMetadataUpdate,
    Document,
    DocumentMetadataUpdate,
    ParseStatus,
)
from docshelf.models.version import DocumentVersion, VersionOrigin
from docshelf.services.chunking import DEFAULT_TOKEN_SIZE, ChunkStrategy, build_chunks
from docshelf.services.extract import MAX_FILE_SIZE, ParseError, parse_upload
from docshelf.services.preprocess import Preset, preprocess_text

logger = logging.getLogger(__name__)


class VersionMismatchError(ValueError):
    """A version id was used with a document it does not belong to."""


class DocumentNotUsableError(ValueError):
    """The document failed to parse and has no text to work with."""


class OperationStatus(StrEnum):
    OK = "ok"
    PARTIAL = "partial"
    FAILED = "failed"


@dataclass
class UploadedFile:
    filename: str
    content: bytes
    mime_type: str = ""


@dataclass
class UploadResult:
    filename: str
    status: OperationStatus
    document: Document | None = None
    error: str = ""


@dataclass
class BulkItemResult:
    doc_id: uuid.UUID
    status: OperationStatus
    error: str = ""


@dataclass
class ReprocessOptions:
    strategy: str = ChunkStrategy.PARAGRAPH
    token_size: int = DEFAULT_TOKEN_SIZE
    preset: str = Preset.NONE
    custom: str = ""


@dataclass
class VersionResult:
    version: DocumentVersion
    chunk_count: int


# ── Reads ─────────────────────────────────────────────────────


async def get_document(session: AsyncSession, doc_id: uuid.UUID) -> Document | None:
    return await session.get(Document, doc_id)


async def list_documents(session: AsyncSession, q: str | None = None) -> list[Document]:
    """All documents, newest first, optionally filtered by a name substring."""
    stmt = select(Document)
    term = (q or "").strip()
    if term:
        stmt = stmt.where(Document.name.ilike(f"%{term}%"))  # type: ignore[attr-defined]
    stmt = stmt.order_by(Document.created_at.desc())  # type: ignore[attr-defined]
    result = await session.execute(stmt)
    return list(result.scalars().all())


async def get_version(session: AsyncSession, version_id: uuid.UUID) -> DocumentVersion | None:
    return await session.get(DocumentVersion, version_id)


async def list_versions(session: AsyncSession, doc_id: uuid.UUID) -> list[DocumentVersion]:
    stmt = (
        select(DocumentVersion)
        .where(DocumentVersion.doc_id == doc_id)
        .order_by(DocumentVersion.created_at.desc())  # type: ignore[attr-defined]
    )
    result = await session.execute(stmt)
    return list(result.scalars().all())


async def list_chunks(session: AsyncSession, version_id: uuid.UUID) -> list[Chunk]:
    stmt = select(Chunk).where(Chunk.version_id == version_id).order_by(Chunk.order)
    result = await session.execute(stmt)
    return list(result.scalars().all())


async def resolve_source_text(
    session: AsyncSession,
    doc: Document,
    pinned_version_id: uuid.UUID | None = None,
) -> str:
    """Text a character sees for this document.

    Pinned version first, then the active version, then the document's own
    processed / extracted text.
    """
    preferred = pinned_version_id or doc.active_version_id
    if preferred is not None:
        version = await session.get(DocumentVersion, preferred)
        if version is not None and version.doc_id == doc.id and version.text_snapshot:
            return version.text_snapshot
    return doc.processed_text or doc.extracted_text or ""


def preview_chunks(
    doc: Document,
    strategy: str = ChunkStrategy.PARAGRAPH,
    token_size: int = DEFAULT_TOKEN_SIZE,
    preset: str | None = None,
    custom: str | None = None,
) -> list[str]:
    """Chunk the document with the given settings without persisting anything."""
    text = preprocess_text(
        doc.extracted_text,
        doc.preprocess_preset if preset is None else preset,
        doc.preprocess_custom if custom is None else custom,
    )
    return build_chunks(text, strategy, token_size)


# ── Writes ────────────────────────────────────────────────────


async def add_documents(
    session: AsyncSession,
    files: list[UploadedFile],
    max_bytes: int = MAX_FILE_SIZE,
) -> list[UploadResult]:
    """Parse and store each upload; every file succeeds or fails on its own.

    Files that fail to parse are still stored (with ``parse_status=error``)
    so they stay visible and deletable. Oversized files are rejected.
    """
    results: list[UploadResult] = []
    for upload in files:
        if len(upload.content) > max_bytes:
            results.append(UploadResult(
                filename=upload.filename,
                status=OperationStatus.FAILED,
                error=f"File too large. Maximum size is {max_bytes // (1024 * 1024)} MB.",
            ))
            continue

        parsed = parse_upload(upload.filename, upload.content)
        doc = Document(
            name=upload.filename or "untitled",
            size=len(upload.content),
            mime_type=upload.mime_type or "",
            doc_type=parsed.doc_type,
            extracted_text=parsed.extracted_text,
            processed_text=parsed.extracted_text,
            parse_status=parsed.parse_status,
            parse_error=parsed.parse_error,
        )
        session.add(doc)

        if parsed.parse_status == ParseStatus.ERROR:
            status = OperationStatus.FAILED
        elif parsed.parse_status == ParseStatus.PARTIAL:
            status = OperationStatus.PARTIAL
        else:
            status = OperationStatus.OK
        results.append(UploadResult(
            filename=upload.filename,
            status=status,
            document=doc,
            error=parsed.parse_error,
        ))

    await session.commit()
    for result in results:
        if result.document is not None:
            await session.refresh(result.document)

    logger.info(
        "Added %d document(s), %d failed",
        sum(1 for r in results if r.document is not None),
        sum(1 for r in results if r.status == OperationStatus.FAILED),
    )
    return results


async def update_metadata(
    session: AsyncSession,
    doc_id: uuid.UUID,
    body: DocumentMetadataUpdate,
) -> Document | None:
    doc = await session.get(Document, doc_id)
    if doc is None:
        return None

    update_data = body.model_dump(exclude_unset=True, exclude_none=True)
    if "tags" in update_data:
        doc.set_tags(update_data.pop("tags"))
    for field, value in update_data.items():
        setattr(doc, field, value)

    doc.updated_at = utcnow()
    session.add(doc)
    await session.commit()
    await session.refresh(doc)
    return doc


async def bulk_update_metadata(
    session: AsyncSession,
    body: BulkMetadataUpdate,
) -> list[BulkItemResult]:
    """Add / remove tags and move folders across many documents in one commit."""
    results: list[BulkItemResult] = []
    now = utcnow()
    for doc_id in body.doc_ids:
        doc = await session.get(Document, doc_id)
        if doc is None:
            results.append(BulkItemResult(doc_id, OperationStatus.FAILED, "Document not found"))
            continue
        tags = (set(doc.tags) | set(body.add_tags)) - set(body.remove_tags)
        doc.set_tags(sorted(tags))
        if body.folder is not None:
            doc.folder = body.folder
        doc.updated_at = now
        session.add(doc)
        results.append(BulkItemResult(doc_id, OperationStatus.OK))

    await session.commit()
    return results


async def delete_document(session: AsyncSession, doc_id: uuid.UUID) -> bool:
    """Delete a document with its versions, chunks and assignments."""
    doc = await session.get(Document, doc_id)
    if doc is None:
        return False

    await session.execute(delete(Chunk).where(Chunk.doc_id == doc_id))
    await session.execute(delete(DocumentVersion).where(DocumentVersion.doc_id == doc_id))
    await session.execute(delete(Assignment).where(Assignment.doc_id == doc_id))
    await session.delete(doc)
    await session.commit()
    logger.info("Deleted document %s", doc_id)
    return True


async def reprocess(
    session: AsyncSession,
    doc: Document,
    options: ReprocessOptions,
) -> VersionResult:
    """Preprocess → chunk → store a new active version for the document.

    Raises:
        DocumentNotUsableError: If the document failed to parse.
    """
    if not doc.is_usable:
        raise DocumentNotUsableError(f"Document {doc.id} has no parsed text")

    return await _write_version(
        session,
        doc,
        source_text=doc.extracted_text,
        options=options,
        origin=VersionOrigin.REPROCESS,
    )


async def upload_version(
    session: AsyncSession,
    doc: Document,
    upload: UploadedFile,
) -> VersionResult:
    """Replace the document's source file and store the result as a new version.

    The document's last preprocessing and chunking settings are reused.

    Raises:
        ParseError: If the new file cannot be parsed; the document is left as is.
    """
    parsed = parse_upload(upload.filename, upload.content)
    if not parsed.ok:
        raise ParseError(parsed.parse_error or "Failed to parse uploaded version.")

    doc.size = len(upload.content)
    doc.mime_type = upload.mime_type or doc.mime_type
    doc.doc_type = parsed.doc_type
    doc.extracted_text = parsed.extracted_text
    doc.parse_status = parsed.parse_status
    doc.parse_error = parsed.parse_error

    options = ReprocessOptions(
        strategy=doc.last_chunk_strategy or ChunkStrategy.PARAGRAPH,
        token_size=doc.last_token_size or DEFAULT_TOKEN_SIZE,
        preset=doc.preprocess_preset or Preset.NONE,
        custom=doc.preprocess_custom or "",
    )
    return await _write_version(
        session,
        doc,
        source_text=parsed.extracted_text,
        options=options,
        origin=VersionOrigin.UPLOAD,
    )


async def set_active_version(
    session: AsyncSession,
    doc_id: uuid.UUID,
    version_id: uuid.UUID,
) -> DocumentVersion | None:
    """Point the document at an existing version of its own.

    Returns None (and changes nothing) if either id is unknown or the
    version belongs to another document.
    """
    doc = await session.get(Document, doc_id)
    version = await session.get(DocumentVersion, version_id)
    if doc is None or version is None or version.doc_id != doc_id:
        return None

    doc.active_version_id = version.id
    doc.processed_text = version.text_snapshot or doc.processed_text or doc.extracted_text
    doc.last_chunk_strategy = version.strategy or doc.last_chunk_strategy
    doc.last_token_size = version.token_size or doc.last_token_size
    doc.preprocess_preset = version.preset or doc.preprocess_preset
    doc.preprocess_custom = version.custom_instructions or doc.preprocess_custom
    doc.updated_at = utcnow()
    session.add(doc)
    await session.commit()
    return version


async def _write_version(
    session: AsyncSession,
    doc: Document,
    source_text: str,
    options: ReprocessOptions,
    origin: VersionOrigin,
) -> VersionResult:
    # Rollback expires ``doc``; keep its id readable for logging
    doc_id = doc.id
    processed = preprocess_text(source_text, options.preset, options.custom)
    pieces = build_chunks(processed, options.strategy, options.token_size)

    version = DocumentVersion(
        doc_id=doc_id,
        strategy=options.strategy,
        token_size=options.token_size,
        preset=options.preset,
        custom_instructions=options.custom,
        text_snapshot=processed,
        chunk_count=len(pieces),
        origin=origin,
    )
    session.add(version)
    session.add_all([
        Chunk(doc_id=doc_id, version_id=version.id, order=index, text=piece)
        for index, piece in enumerate(pieces)
    ])

    doc.processed_text = processed
    doc.preprocess_preset = options.preset
    doc.preprocess_custom = options.custom
    doc.last_chunk_strategy = options.strategy
    doc.last_token_size = options.token_size
    doc.active_version_id = version.id
    doc.updated_at = utcnow()
    session.add(doc)

    try:
        await session.commit()
    except Exception:
        await session.rollback()
        logger.exception("Writing %s version failed for document %s", origin, doc_id)
        raise

    await session.refresh(version)
    logger.info(
        "Stored %s version %s for document %s: %d chunks (%s)",
        origin, version.id, doc_id, len(pieces), options.strategy,
    )
    return VersionResult(version=version, chunk_count=len(pieces))
