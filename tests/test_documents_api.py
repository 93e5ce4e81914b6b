"""Document endpoint tests for /v1/documents."""

import uuid

from httpx import AsyncClient

LORE = b"# Origins\nThe keep was built by river folk.\n\n# Fall\nIt burned in the long winter."


async def _upload(client: AsyncClient, name: str = "lore.md", content: bytes = LORE) -> dict:
    resp = await client.post("/v1/documents", files=[("files", (name, content, "text/markdown"))])
    assert resp.status_code == 201
    [result] = resp.json()
    assert result["status"] == "ok"
    return result["document"]


async def test_upload_many_files(client: AsyncClient, make_docx):
    resp = await client.post(
        "/v1/documents",
        files=[
            ("files", ("notes.txt", b"Plain notes", "text/plain")),
            ("files", ("report.docx", make_docx("Docx body"), "application/octet-stream")),
            ("files", ("broken.pdf", b"not a pdf", "application/pdf")),
            ("files", ("tool.exe", b"\x00", "application/octet-stream")),
        ],
    )
    assert resp.status_code == 201
    results = resp.json()
    assert [r["status"] for r in results] == ["ok", "ok", "failed", "failed"]
    assert results[0]["document"]["char_count"] == len("Plain notes")
    assert results[1]["document"]["doc_type"] == "docx"
    assert results[2]["document"]["parse_status"] == "error"
    assert "Unsupported file type" in results[3]["error"]

    resp = await client.get("/v1/documents")
    assert len(resp.json()) == 4


async def test_get_and_search(client: AsyncClient):
    doc = await _upload(client)
    await _upload(client, "recipes.txt", b"Bread.")

    resp = await client.get(f"/v1/documents/{doc['id']}")
    assert resp.status_code == 200
    detail = resp.json()
    assert detail["extracted_text"].startswith("# Origins")
    assert detail["preview"].startswith("# Origins The keep")

    resp = await client.get("/v1/documents", params={"q": "lore"})
    assert [d["name"] for d in resp.json()] == ["lore.md"]

    resp = await client.get(f"/v1/documents/{uuid.uuid4()}")
    assert resp.status_code == 404


async def test_update_and_bulk_update(client: AsyncClient):
    first = await _upload(client)
    second = await _upload(client, "b.txt", b"B.")

    resp = await client.patch(f"/v1/documents/{first['id']}", json={"tags": "Lore, History", "folder": "world/"})
    assert resp.status_code == 200
    assert resp.json()["tags"] == ["history", "lore"]
    assert resp.json()["folder"] == "world"

    resp = await client.patch("/v1/documents/bulk", json={
        "doc_ids": [first["id"], second["id"], str(uuid.uuid4())],
        "add_tags": ["shared"],
        "remove_tags": ["history"],
    })
    assert resp.status_code == 200
    assert [r["status"] for r in resp.json()] == ["ok", "ok", "failed"]

    resp = await client.get(f"/v1/documents/{first['id']}")
    assert resp.json()["tags"] == ["lore", "shared"]

    resp = await client.patch("/v1/documents/bulk", json={"doc_ids": []})
    assert resp.status_code == 422


async def test_reprocess_and_versions(client: AsyncClient):
    doc = await _upload(client)

    resp = await client.post(f"/v1/documents/{doc['id']}/reprocess", json={"strategy": "section"})
    assert resp.status_code == 201
    first = resp.json()
    assert first["chunk_count"] == 2
    assert first["version"]["is_active"] is True

    resp = await client.post(
        f"/v1/documents/{doc['id']}/reprocess",
        json={"strategy": "whole", "preset": "bullets"},
    )
    second = resp.json()
    assert second["chunk_count"] == 1

    resp = await client.get(f"/v1/documents/{doc['id']}/versions")
    versions = resp.json()
    assert [v["id"] for v in versions] == [second["version"]["id"], first["version"]["id"]]
    assert [v["is_active"] for v in versions] == [True, False]

    resp = await client.get(f"/v1/documents/{doc['id']}/versions/{first['version']['id']}/chunks")
    chunks = resp.json()
    assert [c["order"] for c in chunks] == [0, 1]
    assert chunks[1]["text"].startswith("# Fall")

    resp = await client.post(f"/v1/documents/{doc['id']}/versions/{first['version']['id']}/activate")
    assert resp.status_code == 200
    resp = await client.get(f"/v1/documents/{doc['id']}")
    assert resp.json()["active_version_id"] == first["version"]["id"]
    assert resp.json()["last_chunk_strategy"] == "section"


async def test_activate_foreign_version_conflicts(client: AsyncClient):
    doc = await _upload(client)
    other = await _upload(client, "other.txt", b"Other.")
    resp = await client.post(f"/v1/documents/{other['id']}/reprocess", json={})
    foreign_id = resp.json()["version"]["id"]

    resp = await client.post(f"/v1/documents/{doc['id']}/versions/{foreign_id}/activate")
    assert resp.status_code == 409

    resp = await client.get(f"/v1/documents/{doc['id']}/versions/{foreign_id}/chunks")
    assert resp.status_code == 404


async def test_reprocess_unparsed_document(client: AsyncClient):
    resp = await client.post("/v1/documents", files=[("files", ("broken.pdf", b"junk", "application/pdf"))])
    [result] = resp.json()
    resp = await client.post(f"/v1/documents/{result['document']['id']}/reprocess", json={})
    assert resp.status_code == 422


async def test_upload_new_version(client: AsyncClient):
    doc = await _upload(client, "notes.txt", b"Old notes.")
    resp = await client.post(
        f"/v1/documents/{doc['id']}/versions",
        files={"file": ("notes.txt", b"New notes.", "text/plain")},
    )
    assert resp.status_code == 201
    assert resp.json()["version"]["origin"] == "upload"

    resp = await client.get(f"/v1/documents/{doc['id']}")
    assert resp.json()["extracted_text"] == "New notes."

    resp = await client.post(
        f"/v1/documents/{doc['id']}/versions",
        files={"file": ("notes.pdf", b"not a pdf", "application/pdf")},
    )
    assert resp.status_code == 422
    resp = await client.get(f"/v1/documents/{doc['id']}")
    assert resp.json()["extracted_text"] == "New notes."


async def test_chunk_preview(client: AsyncClient):
    doc = await _upload(client)
    resp = await client.post(f"/v1/documents/{doc['id']}/chunk-preview", json={"strategy": "section"})
    assert resp.status_code == 200
    body = resp.json()
    assert body["chunk_count"] == 2
    assert body["chunks"][0].startswith("# Origins")

    resp = await client.get(f"/v1/documents/{doc['id']}/versions")
    assert resp.json() == []


async def test_delete_document(client: AsyncClient):
    doc = await _upload(client)
    await client.put(f"/v1/characters/alice/documents/{doc['id']}")

    resp = await client.delete(f"/v1/documents/{doc['id']}")
    assert resp.status_code == 204

    resp = await client.get("/v1/characters/alice/documents")
    assert resp.json() == []

    resp = await client.delete(f"/v1/documents/{doc['id']}")
    assert resp.status_code == 404
