"""Workspace export / import endpoint tests."""

from httpx import AsyncClient


async def test_export_then_import(client: AsyncClient):
    resp = await client.post("/v1/documents", files=[("files", ("lore.txt", b"Some lore.", "text/plain"))])
    doc = resp.json()[0]["document"]
    await client.post(f"/v1/documents/{doc['id']}/reprocess", json={})
    await client.put(f"/v1/characters/alice/documents/{doc['id']}")

    resp = await client.get("/v1/workspace/export")
    assert resp.status_code == 200
    snapshot = resp.json()
    assert set(snapshot) == {"docs", "versions", "chunks", "associations"}
    assert len(snapshot["versions"]) == 1

    await client.delete(f"/v1/documents/{doc['id']}")
    resp = await client.get("/v1/documents")
    assert resp.json() == []

    resp = await client.post("/v1/workspace/import", json=snapshot)
    assert resp.status_code == 200
    assert resp.json() == {"docs": 1, "versions": 1, "chunks": 1, "associations": 1, "skipped": 0}

    resp = await client.post("/v1/characters/alice/context", json={"query": "lore", "token_budget": 2000})
    assert resp.json()["text"] == "Document: lore.txt\nSome lore."


async def test_import_bare_list(client: AsyncClient):
    resp = await client.post("/v1/workspace/import", json=[{"id": "6f1c1d1e-9a65-4f51-8d64-2b0f4f1f2b11", "name": "x.txt"}])
    assert resp.status_code == 200
    assert resp.json()["docs"] == 1


async def test_health(client: AsyncClient):
    resp = await client.get("/health")
    assert resp.json() == {"status": "ok"}
