"""Chunk model — one ordered text segment produced from a version."""

import uuid

from sqlalchemy import Text
from sqlmodel import Column, Field, SQLModel

from docshelf.models.base import new_uuid


class Chunk(SQLModel, table=True):
    __tablename__ = "chunks"

    id: uuid.UUID = Field(default_factory=new_uuid, primary_key=True)
    doc_id: uuid.UUID = Field(foreign_key="documents.id", nullable=False, index=True)
    version_id: uuid.UUID = Field(foreign_key="document_versions.id", nullable=False, index=True)

    # Zero-based, contiguous within a version
    order: int = Field(nullable=False)

    text: str = Field(sa_column=Column(Text, nullable=False))


# ── Pydantic schemas ─────────────────────────────────────────

class ChunkRead(SQLModel):
    id: uuid.UUID
    doc_id: uuid.UUID
    version_id: uuid.UUID
    order: int
    text: str
