"""Character ↔ document assignments, with optional version pins."""

from __future__ import annotations

import logging
import uuid
from collections import Counter

from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from docshelf.models.assignment import Assignment
from docshelf.models.base import utcnow
from docshelf.models.version import DocumentVersion
from docshelf.services.documents import VersionMismatchError

logger = logging.getLogger(__name__)


async def get_assignment(
    session: AsyncSession,
    character_id: str,
    doc_id: uuid.UUID,
) -> Assignment | None:
    stmt = select(Assignment).where(
        Assignment.character_id == character_id,
        Assignment.doc_id == doc_id,
    )
    result = await session.execute(stmt)
    return result.scalar_one_or_none()


async def assign(session: AsyncSession, character_id: str, doc_id: uuid.UUID) -> Assignment:
    """Link a document to a character. Assigning twice returns the existing link."""
    existing = await get_assignment(session, character_id, doc_id)
    if existing is not None:
        return existing

    assignment = Assignment(character_id=character_id, doc_id=doc_id)
    session.add(assignment)
    await session.commit()
    await session.refresh(assignment)
    logger.info("Assigned document %s to character %s", doc_id, character_id)
    return assignment


async def unassign(session: AsyncSession, character_id: str, doc_id: uuid.UUID) -> bool:
    existing = await get_assignment(session, character_id, doc_id)
    if existing is None:
        return False
    await session.delete(existing)
    await session.commit()
    return True


async def pin_version(
    session: AsyncSession,
    character_id: str,
    doc_id: uuid.UUID,
    version_id: uuid.UUID | None,
) -> Assignment | None:
    """Pin (or with ``version_id=None`` unpin) a version for one character.

    Returns None without changes when the document is not assigned to the
    character.

    Raises:
        VersionMismatchError: If the version does not belong to the document.
    """
    existing = await get_assignment(session, character_id, doc_id)
    if existing is None:
        return None

    if version_id is not None:
        version = await session.get(DocumentVersion, version_id)
        if version is None or version.doc_id != doc_id:
            raise VersionMismatchError(f"Version {version_id} does not belong to document {doc_id}")

    existing.pinned_version_id = version_id
    existing.updated_at = utcnow()
    session.add(existing)
    await session.commit()
    await session.refresh(existing)
    return existing


async def list_for_character(session: AsyncSession, character_id: str) -> list[Assignment]:
    stmt = (
        select(Assignment)
        .where(Assignment.character_id == character_id)
        .order_by(Assignment.created_at)  # type: ignore[arg-type]
    )
    result = await session.execute(stmt)
    return list(result.scalars().all())


async def list_all(session: AsyncSession) -> list[Assignment]:
    result = await session.execute(select(Assignment))
    return list(result.scalars().all())


def usage_counts(assignments: list[Assignment]) -> dict[uuid.UUID, int]:
    """Number of characters each document is assigned to."""
    return dict(Counter(a.doc_id for a in assignments))
