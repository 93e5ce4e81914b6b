"""Document library — uploads, metadata, versions and chunks."""

import uuid

from fastapi import APIRouter, HTTPException, UploadFile, status
from pydantic import BaseModel, Field

from docshelf.api.deps import Session
from docshelf.core.config import get_settings
from docshelf.models.chunk import ChunkRead
from docshelf.models.document import (
    BulkMetadataUpdate,
    Document,
    DocumentDetail,
    DocumentMetadataUpdate,
    DocumentRead,
)
from docshelf.models.version import DocumentVersion, VersionRead
from docshelf.services import documents as store
from docshelf.services.chunking import DEFAULT_TOKEN_SIZE, ChunkStrategy
from docshelf.services.extract import ParseError

router = APIRouter(prefix="/documents", tags=["documents"])

PREVIEW_CHARS = 160


# ── Schemas for upload / versioning endpoints ─────────────────


class UploadResultRead(BaseModel):
    filename: str
    status: store.OperationStatus
    error: str = ""
    document: DocumentRead | None = None


class BulkItemRead(BaseModel):
    doc_id: uuid.UUID
    status: store.OperationStatus
    error: str = ""


class ReprocessRequest(BaseModel):
    strategy: ChunkStrategy = ChunkStrategy.PARAGRAPH
    token_size: int = Field(default=DEFAULT_TOKEN_SIZE, ge=1, le=100_000)
    preset: str = Field(default="none", max_length=50)
    custom: str = Field(default="", max_length=2000)


class ReprocessResponse(BaseModel):
    version: VersionRead
    chunk_count: int


class ChunkPreviewRequest(BaseModel):
    strategy: ChunkStrategy = ChunkStrategy.PARAGRAPH
    token_size: int = Field(default=DEFAULT_TOKEN_SIZE, ge=1, le=100_000)
    preset: str | None = Field(default=None, max_length=50)
    custom: str | None = Field(default=None, max_length=2000)


class ChunkPreviewRead(BaseModel):
    strategy: ChunkStrategy
    chunk_count: int
    chunks: list[str]


# ── Helpers ───────────────────────────────────────────────────


def _preview(text: str, max_len: int = PREVIEW_CHARS) -> str:
    compact = " ".join(text.split())
    if len(compact) <= max_len:
        return compact
    return f"{compact[:max_len]}..."


def _to_read(doc: Document) -> DocumentRead:
    return DocumentRead(
        id=doc.id,
        name=doc.name,
        size=doc.size,
        mime_type=doc.mime_type,
        doc_type=doc.doc_type,
        preprocess_preset=doc.preprocess_preset,
        preprocess_custom=doc.preprocess_custom,
        tags=doc.tags,
        folder=doc.folder,
        active_version_id=doc.active_version_id,
        last_chunk_strategy=doc.last_chunk_strategy,
        last_token_size=doc.last_token_size,
        parse_status=doc.parse_status,
        parse_error=doc.parse_error,
        char_count=len(doc.processed_text or doc.extracted_text),
        preview=_preview(doc.processed_text or doc.extracted_text),
        created_at=doc.created_at,
        updated_at=doc.updated_at,
    )


def _to_detail(doc: Document) -> DocumentDetail:
    return DocumentDetail(
        **_to_read(doc).model_dump(),
        extracted_text=doc.extracted_text,
        processed_text=doc.processed_text,
    )


def _version_read(version: DocumentVersion, active_version_id: uuid.UUID | None) -> VersionRead:
    return VersionRead(
        id=version.id,
        doc_id=version.doc_id,
        strategy=version.strategy,
        token_size=version.token_size,
        preset=version.preset,
        custom_instructions=version.custom_instructions,
        chunk_count=version.chunk_count,
        origin=version.origin,
        is_active=version.id == active_version_id,
        created_at=version.created_at,
    )


async def _get_or_404(doc_id: uuid.UUID, session) -> Document:
    doc = await store.get_document(session, doc_id)
    if doc is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Document not found")
    return doc


async def _read_upload(file: UploadFile) -> store.UploadedFile:
    return store.UploadedFile(
        filename=file.filename or "untitled.txt",
        content=await file.read(),
        mime_type=file.content_type or "",
    )


# ── Endpoints ─────────────────────────────────────────────────


@router.post("", response_model=list[UploadResultRead], status_code=status.HTTP_201_CREATED)
async def upload_documents(
    files: list[UploadFile],
    session: Session,
) -> list[UploadResultRead]:
    """Upload one or more files. Each file is parsed and reported independently."""
    uploads = [await _read_upload(f) for f in files]
    results = await store.add_documents(session, uploads, max_bytes=get_settings().max_upload_bytes)
    return [
        UploadResultRead(
            filename=r.filename,
            status=r.status,
            error=r.error,
            document=_to_read(r.document) if r.document is not None else None,
        )
        for r in results
    ]


@router.get("", response_model=list[DocumentRead])
async def list_documents(
    session: Session,
    q: str | None = None,
) -> list[DocumentRead]:
    return [_to_read(d) for d in await store.list_documents(session, q)]


@router.patch("/bulk", response_model=list[BulkItemRead])
async def bulk_update_documents(
    body: BulkMetadataUpdate,
    session: Session,
) -> list[BulkItemRead]:
    results = await store.bulk_update_metadata(session, body)
    return [BulkItemRead(doc_id=r.doc_id, status=r.status, error=r.error) for r in results]


@router.get("/{doc_id}", response_model=DocumentDetail)
async def get_document(
    doc_id: uuid.UUID,
    session: Session,
) -> DocumentDetail:
    return _to_detail(await _get_or_404(doc_id, session))


@router.patch("/{doc_id}", response_model=DocumentRead)
async def update_document(
    doc_id: uuid.UUID,
    body: DocumentMetadataUpdate,
    session: Session,
) -> DocumentRead:
    doc = await store.update_metadata(session, doc_id, body)
    if doc is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Document not found")
    return _to_read(doc)


@router.delete("/{doc_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_document(
    doc_id: uuid.UUID,
    session: Session,
) -> None:
    if not await store.delete_document(session, doc_id):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Document not found")


# ── Versions ──────────────────────────────────────────────────


@router.post(
    "/{doc_id}/reprocess",
    response_model=ReprocessResponse,
    status_code=status.HTTP_201_CREATED,
)
async def reprocess_document(
    doc_id: uuid.UUID,
    body: ReprocessRequest,
    session: Session,
) -> ReprocessResponse:
    """Preprocess and re-chunk the document into a new active version."""
    doc = await _get_or_404(doc_id, session)
    options = store.ReprocessOptions(
        strategy=body.strategy,
        token_size=body.token_size,
        preset=body.preset,
        custom=body.custom,
    )
    try:
        result = await store.reprocess(session, doc, options)
    except store.DocumentNotUsableError as exc:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(exc)) from exc
    return ReprocessResponse(
        version=_version_read(result.version, doc.active_version_id),
        chunk_count=result.chunk_count,
    )


@router.post(
    "/{doc_id}/versions",
    response_model=ReprocessResponse,
    status_code=status.HTTP_201_CREATED,
)
async def upload_document_version(
    doc_id: uuid.UUID,
    file: UploadFile,
    session: Session,
) -> ReprocessResponse:
    """Upload a replacement file as a new version of the document."""
    doc = await _get_or_404(doc_id, session)
    upload = await _read_upload(file)

    max_bytes = get_settings().max_upload_bytes
    if len(upload.content) > max_bytes:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=f"File too large. Maximum size is {max_bytes // (1024 * 1024)} MB.",
        )

    try:
        result = await store.upload_version(session, doc, upload)
    except ParseError as exc:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(exc)) from exc
    return ReprocessResponse(
        version=_version_read(result.version, doc.active_version_id),
        chunk_count=result.chunk_count,
    )


@router.get("/{doc_id}/versions", response_model=list[VersionRead])
async def list_document_versions(
    doc_id: uuid.UUID,
    session: Session,
) -> list[VersionRead]:
    doc = await _get_or_404(doc_id, session)
    versions = await store.list_versions(session, doc_id)
    return [_version_read(v, doc.active_version_id) for v in versions]


@router.post("/{doc_id}/versions/{version_id}/activate", response_model=VersionRead)
async def activate_document_version(
    doc_id: uuid.UUID,
    version_id: uuid.UUID,
    session: Session,
) -> VersionRead:
    await _get_or_404(doc_id, session)
    version = await store.set_active_version(session, doc_id, version_id)
    if version is None:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Version does not belong to this document",
        )
    return _version_read(version, version.id)


@router.get("/{doc_id}/versions/{version_id}/chunks", response_model=list[ChunkRead])
async def list_version_chunks(
    doc_id: uuid.UUID,
    version_id: uuid.UUID,
    session: Session,
) -> list[ChunkRead]:
    version = await store.get_version(session, version_id)
    if version is None or version.doc_id != doc_id:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Version not found")
    chunks = await store.list_chunks(session, version_id)
    return [
        ChunkRead(id=c.id, doc_id=c.doc_id, version_id=c.version_id, order=c.order, text=c.text)
        for c in chunks
    ]


@router.post("/{doc_id}/chunk-preview", response_model=ChunkPreviewRead)
async def preview_document_chunks(
    doc_id: uuid.UUID,
    body: ChunkPreviewRequest,
    session: Session,
) -> ChunkPreviewRead:
    """Show how the document would be chunked, without storing a version."""
    doc = await _get_or_404(doc_id, session)
    chunks = store.preview_chunks(doc, body.strategy, body.token_size, body.preset, body.custom)
    return ChunkPreviewRead(strategy=body.strategy, chunk_count=len(chunks), chunks=chunks)
