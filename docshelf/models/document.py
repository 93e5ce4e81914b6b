"""Document model — a user-supplied file and its derived text."""

import json
import uuid
from datetime import datetime
from enum import StrEnum

from pydantic import field_validator
from sqlalchemy import Text
from sqlmodel import Column, Field, SQLModel

from docshelf.models.base import TimestampMixin, new_uuid


class DocType(StrEnum):
    TXT = "txt"
    MD = "md"
    PDF = "pdf"
    DOCX = "docx"
    UNKNOWN = "unknown"


class ParseStatus(StrEnum):
    PARSED = "parsed"
    PARTIAL = "partial"  # usable text, but some of the file could not be read
    ERROR = "error"


def normalize_tags(value: list[str] | str | None) -> list[str]:
    """Lowercase, de-duplicate and sort tags; accepts a comma separated string."""
    if value is None:
        return []
    if isinstance(value, str):
        items = value.split(",")
    else:
        items = list(value)
    cleaned = {str(item).strip().lower() for item in items}
    return sorted(tag for tag in cleaned if tag)


class Document(TimestampMixin, SQLModel, table=True):
    __tablename__ = "documents"

    id: uuid.UUID = Field(default_factory=new_uuid, primary_key=True)

    name: str = Field(max_length=500, nullable=False, index=True)
    size: int = Field(default=0)
    mime_type: str = Field(default="", max_length=255)
    doc_type: DocType = Field(default=DocType.UNKNOWN)

    # Raw parse output, never rewritten by preprocessing
    extracted_text: str = Field(default="", sa_column=Column(Text, nullable=False, server_default=""))
    # Text of the active version (or extracted_text before any version exists)
    processed_text: str = Field(default="", sa_column=Column(Text, nullable=False, server_default=""))

    preprocess_preset: str = Field(default="none", max_length=50)
    preprocess_custom: str = Field(default="", max_length=2000)

    # JSON array of normalized tags
    tags_json: str = Field(default="[]", sa_column=Column(Text, nullable=False, server_default="[]"))
    folder: str = Field(default="", max_length=500)

    # Empty or the id of a version belonging to this document
    active_version_id: uuid.UUID | None = Field(default=None)
    last_chunk_strategy: str = Field(default="paragraph", max_length=20)
    last_token_size: int = Field(default=120)

    parse_status: ParseStatus = Field(default=ParseStatus.PARSED)
    parse_error: str = Field(default="", max_length=2000)

    @property
    def tags(self) -> list[str]:
        return json.loads(self.tags_json or "[]")

    def set_tags(self, value: list[str] | str | None) -> None:
        self.tags_json = json.dumps(normalize_tags(value))

    @property
    def is_usable(self) -> bool:
        """Documents that failed to parse carry no text and are skipped downstream."""
        return self.parse_status != ParseStatus.ERROR


# ── Pydantic schemas ─────────────────────────────────────────

class DocumentRead(SQLModel):
    id: uuid.UUID
    name: str
    size: int
    mime_type: str
    doc_type: DocType
    preprocess_preset: str
    preprocess_custom: str
    tags: list[str]
    folder: str
    active_version_id: uuid.UUID | None
    last_chunk_strategy: str
    last_token_size: int
    parse_status: ParseStatus
    parse_error: str
    char_count: int
    preview: str
    created_at: datetime
    updated_at: datetime


class DocumentDetail(DocumentRead):
    extracted_text: str
    processed_text: str


class DocumentMetadataUpdate(SQLModel):
    """Named optional fields for a single-document metadata edit."""
    name: str | None = Field(default=None, min_length=1, max_length=500)
    tags: list[str] | None = None
    folder: str | None = Field(default=None, max_length=500)

    @field_validator("tags", mode="before")
    @classmethod
    def _normalize_tags(cls, value):
        if value is None:
            return None
        return normalize_tags(value)

    @field_validator("folder")
    @classmethod
    def _strip_folder(cls, value: str | None) -> str | None:
        return value.strip().strip("/") if value is not None else None


class BulkMetadataUpdate(SQLModel):
    """Tag / folder edit applied to many documents at once."""
    doc_ids: list[uuid.UUID]
    add_tags: list[str] = Field(default_factory=list)
    remove_tags: list[str] = Field(default_factory=list)
    folder: str | None = Field(default=None, max_length=500)

    @field_validator("doc_ids")
    @classmethod
    def _require_ids(cls, value: list[uuid.UUID]) -> list[uuid.UUID]:
        if not value:
            raise ValueError("doc_ids must not be empty")
        return value

    @field_validator("add_tags", "remove_tags", mode="before")
    @classmethod
    def _normalize_tags(cls, value):
        return normalize_tags(value)

    @field_validator("folder")
    @classmethod
    def _strip_folder(cls, value: str | None) -> str | None:
        return value.strip().strip("/") if value is not None else None
