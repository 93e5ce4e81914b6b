"""Workspace snapshot schemas — full-state backup / restore payloads."""

import uuid
from datetime import datetime

from sqlmodel import Field, SQLModel

from docshelf.models.base import utcnow
from docshelf.models.document import DocType, ParseStatus
from docshelf.models.version import VersionOrigin


class DocumentSnapshot(SQLModel):
    id: uuid.UUID
    name: str = "untitled"
    size: int = 0
    mime_type: str = ""
    doc_type: DocType = DocType.UNKNOWN
    extracted_text: str = ""
    processed_text: str = ""
    preprocess_preset: str = "none"
    preprocess_custom: str = ""
    tags: list[str] = Field(default_factory=list)
    folder: str = ""
    active_version_id: uuid.UUID | None = None
    last_chunk_strategy: str = "paragraph"
    last_token_size: int = 120
    parse_status: ParseStatus = ParseStatus.PARSED
    parse_error: str = ""
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)


class VersionSnapshot(SQLModel):
    id: uuid.UUID
    doc_id: uuid.UUID
    strategy: str = "paragraph"
    token_size: int = 120
    preset: str = "none"
    custom_instructions: str = ""
    text_snapshot: str = ""
    chunk_count: int = 0
    origin: VersionOrigin = VersionOrigin.IMPORT
    created_at: datetime = Field(default_factory=utcnow)


class ChunkSnapshot(SQLModel):
    id: uuid.UUID
    doc_id: uuid.UUID
    version_id: uuid.UUID
    order: int
    text: str


class AssignmentSnapshot(SQLModel):
    id: uuid.UUID
    character_id: str
    doc_id: uuid.UUID
    pinned_version_id: uuid.UUID | None = None
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)


class WorkspaceSnapshot(SQLModel):
    docs: list[DocumentSnapshot] = Field(default_factory=list)
    versions: list[VersionSnapshot] = Field(default_factory=list)
    chunks: list[ChunkSnapshot] = Field(default_factory=list)
    associations: list[AssignmentSnapshot] = Field(default_factory=list)


class ImportSummary(SQLModel):
    docs: int
    versions: int
    chunks: int
    associations: int
    skipped: int
