"""Assignment registry tests — assign, pin, unassign, usage counts."""

import uuid

import pytest

from docshelf.services import assignments as registry
from docshelf.services import documents as store


async def _doc_with_version(session, name: str = "lore.txt", text: str = "Some lore."):
    [result] = await store.add_documents(session, [store.UploadedFile(name, text.encode())])
    version = await store.reprocess(session, result.document, store.ReprocessOptions())
    return result.document, version.version


async def test_assign_is_idempotent(session):
    doc, _ = await _doc_with_version(session)
    first = await registry.assign(session, "alice", doc.id)
    second = await registry.assign(session, "alice", doc.id)
    assert first.id == second.id
    assert len(await registry.list_for_character(session, "alice")) == 1


async def test_pin_and_unpin(session):
    doc, version = await _doc_with_version(session)
    await registry.assign(session, "alice", doc.id)

    pinned = await registry.pin_version(session, "alice", doc.id, version.id)
    assert pinned.pinned_version_id == version.id

    unpinned = await registry.pin_version(session, "alice", doc.id, None)
    assert unpinned.pinned_version_id is None


async def test_pin_rejects_version_of_other_document(session):
    doc, _ = await _doc_with_version(session)
    _, foreign = await _doc_with_version(session, "other.txt", "Other.")
    await registry.assign(session, "alice", doc.id)

    with pytest.raises(store.VersionMismatchError):
        await registry.pin_version(session, "alice", doc.id, foreign.id)
    with pytest.raises(store.VersionMismatchError):
        await registry.pin_version(session, "alice", doc.id, uuid.uuid4())

    [assignment] = await registry.list_for_character(session, "alice")
    assert assignment.pinned_version_id is None


async def test_pin_requires_assignment(session):
    doc, version = await _doc_with_version(session)
    assert await registry.pin_version(session, "bob", doc.id, version.id) is None


async def test_pins_are_per_character(session):
    doc, version = await _doc_with_version(session)
    await registry.assign(session, "alice", doc.id)
    await registry.assign(session, "bob", doc.id)
    await registry.pin_version(session, "alice", doc.id, version.id)

    bob = await registry.get_assignment(session, "bob", doc.id)
    assert bob.pinned_version_id is None


async def test_unassign(session):
    doc, _ = await _doc_with_version(session)
    await registry.assign(session, "alice", doc.id)
    assert await registry.unassign(session, "alice", doc.id) is True
    assert await registry.unassign(session, "alice", doc.id) is False
    assert await registry.list_for_character(session, "alice") == []


async def test_usage_counts(session):
    shared, _ = await _doc_with_version(session)
    solo, _ = await _doc_with_version(session, "solo.txt", "Solo.")
    await registry.assign(session, "alice", shared.id)
    await registry.assign(session, "bob", shared.id)
    await registry.assign(session, "bob", solo.id)

    counts = registry.usage_counts(await registry.list_all(session))
    assert counts == {shared.id: 2, solo.id: 1}
