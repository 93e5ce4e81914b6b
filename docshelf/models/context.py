"""Schemas for the character context endpoints."""

import uuid

from sqlmodel import Field, SQLModel


class ContextRequest(SQLModel):
    query: str = Field(default="", max_length=20000)
    # Usually the character's context window
    token_budget: int = Field(ge=1, le=2_000_000)
    reserve_tokens: int | None = Field(default=None, ge=0)


class DocumentUsageRead(SQLModel):
    id: uuid.UUID
    name: str
    method: str
    used_tokens: int
    pinned: bool
    score: int


class ContextUsageRead(SQLModel):
    budget_tokens: int
    reserve_tokens: int
    used_tokens: int
    remaining_tokens: int
    docs: list[DocumentUsageRead]


class ContextBundleRead(SQLModel):
    text: str
    usage: ContextUsageRead
    ranking_path: str


class DocumentContextItem(SQLModel):
    id: uuid.UUID
    name: str
    tags: list[str]
    folder: str
    pinned_version_id: uuid.UUID | None
    active_version_id: uuid.UUID | None
