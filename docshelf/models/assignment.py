"""Assignment model — links a character to a document, optionally pinning a version."""

import uuid
from datetime import datetime

from sqlalchemy import UniqueConstraint
from sqlmodel import Field, SQLModel

from docshelf.models.base import TimestampMixin, new_uuid


class Assignment(TimestampMixin, SQLModel, table=True):
    __tablename__ = "assignments"
    __table_args__ = (UniqueConstraint("character_id", "doc_id", name="uq_assignment_character_doc"),)

    id: uuid.UUID = Field(default_factory=new_uuid, primary_key=True)
    # Characters live outside this engine; their ids are opaque strings
    character_id: str = Field(max_length=255, nullable=False, index=True)
    doc_id: uuid.UUID = Field(foreign_key="documents.id", nullable=False, index=True)

    # NULL means "follow the document's active version"
    pinned_version_id: uuid.UUID | None = Field(default=None)


# ── Pydantic schemas ─────────────────────────────────────────

class AssignmentRead(SQLModel):
    id: uuid.UUID
    character_id: str
    doc_id: uuid.UUID
    pinned_version_id: uuid.UUID | None
    created_at: datetime
    updated_at: datetime


class PinVersionRequest(SQLModel):
    version_id: uuid.UUID | None = None


class AssignmentOverview(SQLModel):
    assignments: list[AssignmentRead]
    usage_counts: dict[str, int]
