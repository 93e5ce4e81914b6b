"""Context facade tests — document context listing and budgeted bundles."""

from docshelf.core.cache import TTLCache
from docshelf.services import assignments as registry
from docshelf.services import documents as store
from docshelf.services.budget import Method
from docshelf.services.context import context_bundle, document_context
from docshelf.services.ranking import RankingPath, RelevanceRanker


async def _add(session, name: str, text: str):
    [result] = await store.add_documents(session, [store.UploadedFile(name, text.encode())])
    return result.document


async def test_character_without_assignments(session):
    bundle = await context_bundle(session, "nobody", "castle", 4000, 300, ranker=RelevanceRanker())
    assert bundle.text == ""
    assert bundle.usage.used_tokens == 0
    assert bundle.usage.docs == []
    assert await document_context(session, "nobody") == []


async def test_unparsed_documents_are_left_out(session):
    good = await _add(session, "castle.txt", "The castle stands tall.")
    broken = await _add(session, "broken.pdf", "not a pdf")
    await registry.assign(session, "alice", good.id)
    await registry.assign(session, "alice", broken.id)

    entries = await document_context(session, "alice")
    assert [e.name for e in entries] == ["castle.txt"]
    # The document and its assignment are still listed
    assert len(await registry.list_for_character(session, "alice")) == 2
    assert {d.name for d in await store.list_documents(session)} == {"castle.txt", "broken.pdf"}

    bundle = await context_bundle(session, "alice", "castle", 4000, 300, ranker=RelevanceRanker())
    assert [d.name for d in bundle.usage.docs] == ["castle.txt"]
    assert "broken.pdf" not in bundle.text


async def test_bundle_uses_pinned_version(session):
    doc = await _add(session, "lore.txt", "Old lore about the keep.")
    pinned = await store.reprocess(session, doc, store.ReprocessOptions(custom="uppercase"))
    await store.reprocess(session, doc, store.ReprocessOptions(custom="lowercase"))
    await registry.assign(session, "alice", doc.id)
    await registry.assign(session, "bob", doc.id)
    await registry.pin_version(session, "alice", doc.id, pinned.version.id)

    alice = await context_bundle(session, "alice", "keep", 4000, 300, ranker=RelevanceRanker())
    bob = await context_bundle(session, "bob", "keep", 4000, 300, ranker=RelevanceRanker())

    assert alice.text == "Document: lore.txt\nOLD LORE ABOUT THE KEEP."
    assert bob.text == "Document: lore.txt\nold lore about the keep."
    assert alice.usage.docs[0].pinned is True
    assert bob.usage.docs[0].pinned is False


async def test_bundle_orders_by_relevance(session):
    for name, text in [
        ("recipes.txt", "Bread and soup."),
        ("castle.txt", "The castle has a gate."),
        ("harbor.txt", "Ships come to the castle harbor."),
    ]:
        doc = await _add(session, name, text)
        await registry.assign(session, "alice", doc.id)

    bundle = await context_bundle(session, "alice", "castle gate", 4000, 300, ranker=RelevanceRanker())
    assert [d.name for d in bundle.usage.docs] == ["castle.txt", "harbor.txt", "recipes.txt"]
    assert [d.score for d in bundle.usage.docs] == [2, 1, 0]
    assert all(d.method == Method.FULL for d in bundle.usage.docs)
    assert bundle.ranking_path == RankingPath.SYNC


async def test_cache_follows_active_version(session):
    doc = await _add(session, "lore.txt", "Some lore.")
    await registry.assign(session, "alice", doc.id)
    cache = TTLCache()
    ranker = RelevanceRanker()

    first = await context_bundle(session, "alice", "", 4000, 300, ranker=ranker, cache=cache)
    assert first.text.endswith("Some lore.")
    assert len(cache) == 1

    await store.reprocess(session, doc, store.ReprocessOptions(custom="uppercase"))
    second = await context_bundle(session, "alice", "", 4000, 300, ranker=ranker, cache=cache)
    assert second.text.endswith("SOME LORE.")


async def test_fifty_thousand_character_document_is_degraded(session):
    text = "The keep stands above the river and its walls are old. " * 1000
    assert len(text) >= 50_000
    doc = await _add(session, "tome.txt", text)
    await registry.assign(session, "alice", doc.id)

    bundle = await context_bundle(session, "alice", "keep river", 4096, 300, ranker=RelevanceRanker())
    [usage] = bundle.usage.docs
    assert usage.name == "tome.txt"
    assert usage.method in (Method.TRUNCATED, Method.SUMMARY)
    assert bundle.usage.used_tokens <= 4096 - 300
    assert bundle.text.startswith("Document: tome.txt\nThe keep stands")
    assert len(bundle.text) < len(text)
