"""DocumentVersion model — an immutable (preprocessing, chunking) → text snapshot."""

import uuid
from datetime import datetime
from enum import StrEnum

from sqlalchemy import Text
from sqlmodel import Column, Field, SQLModel

from docshelf.models.base import new_uuid, utcnow


class VersionOrigin(StrEnum):
    REPROCESS = "reprocess"
    UPLOAD = "upload"
    IMPORT = "import"


class DocumentVersion(SQLModel, table=True):
    __tablename__ = "document_versions"

    id: uuid.UUID = Field(default_factory=new_uuid, primary_key=True)
    doc_id: uuid.UUID = Field(foreign_key="documents.id", nullable=False, index=True)

    # Chunking config
    strategy: str = Field(default="paragraph", max_length=20)
    token_size: int = Field(default=120)

    # Preprocessing config
    preset: str = Field(default="none", max_length=50)
    custom_instructions: str = Field(default="", max_length=2000)

    text_snapshot: str = Field(default="", sa_column=Column(Text, nullable=False, server_default=""))
    chunk_count: int = Field(default=0)
    origin: VersionOrigin = Field(default=VersionOrigin.REPROCESS)

    created_at: datetime = Field(default_factory=utcnow, nullable=False)


# ── Pydantic schemas ─────────────────────────────────────────

class VersionRead(SQLModel):
    id: uuid.UUID
    doc_id: uuid.UUID
    strategy: str
    token_size: int
    preset: str
    custom_instructions: str
    chunk_count: int
    origin: VersionOrigin
    is_active: bool = False
    created_at: datetime
