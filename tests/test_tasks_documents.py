"""
Tests for tasks and documents.
"""

from datetime import datetime


def _ts(value: str) -> datetime:
    return datetime.fromisoformat(value.replace("Z", "+00:00"))


async def _task(client, headers, **body):
    res = await client.post("/api/tasks", json=body, headers=headers)
    assert res.status_code == 200
    return res.json()["task"]


async def test_create_task_accepts_client_field_names(client, alex):
    task = await _task(
        client,
        alex,
        title="Prepare IC memo",
        dueDate="2026-04-01T17:00:00Z",
        assigneeId="edgar-user-id",
        tags=["memo"],
    )

    assert task["created_by"] == "alex-user-id"
    assert task["assignee_id"] == "edgar-user-id"
    assert task["status"] == "pending"
    assert task["priority"] == "medium"
    assert _ts(task["due_date"]) == _ts("2026-04-01T17:00:00Z")
    assert task["tags"] == ["memo"]


async def test_task_filters(client, alex):
    project = (await client.post("/api/projects", json={"title": "Fund IV"}, headers=alex)).json()["project"]
    await _task(client, alex, title="a", status="done", assignee_id="edgar-user-id")
    await _task(client, alex, title="b", status="pending", assignee_id="alex-user-id", projectId=project["id"])
    await _task(client, alex, title="c", status="pending", assignee_id="edgar-user-id")

    async def titles(**params):
        res = await client.get("/api/tasks", params=params, headers=alex)
        return sorted(t["title"] for t in res.json()["tasks"])

    assert await titles() == ["a", "b", "c"]
    assert await titles(status="pending") == ["b", "c"]
    assert await titles(assignee_id="edgar-user-id") == ["a", "c"]
    assert await titles(status="pending", assignee_id="edgar-user-id") == ["c"]
    assert await titles(project_id=project["id"]) == ["b"]


async def test_complete_task(client, alex):
    task = await _task(client, alex, title="Close books", description="Q2")

    res = await client.put(
        f"/api/tasks/{task['id']}", json={"status": "done", "completedAt": "2026-04-02T12:00:00Z"}, headers=alex
    )

    updated = res.json()["task"]
    assert updated["status"] == "done"
    assert updated["description"] == "Q2"
    assert updated["completed_at"] is not None
    assert _ts(updated["updated_at"]) > _ts(task["updated_at"])


async def test_delete_task(client, alex):
    task = await _task(client, alex, title="Temp")

    assert (await client.delete(f"/api/tasks/{task['id']}", headers=alex)).json() == {"ok": True}
    res = await client.delete(f"/api/tasks/{task['id']}", headers=alex)
    assert res.json() == {"error": "Task not found"}


async def test_create_document_fills_storage_defaults(client, alex):
    res = await client.post(
        "/api/documents",
        json={"filename": "deck.pdf", "fileSize": 52311, "mimeType": "application/pdf", "category": "pitch"},
        headers=alex,
    )

    assert res.status_code == 200
    document = res.json()["document"]
    assert document["uploaded_by"] == "alex-user-id"
    assert document["original_filename"] == "deck.pdf"
    assert document["storage_path"] == "/uploads/deck.pdf"
    assert document["access_level"] == "private"
    assert document["confidential"] is False
    assert document["file_size"] == 52311


async def test_document_filters_get_update_delete(client, alex):
    pitch = (
        await client.post("/api/documents", json={"filename": "deck.pdf", "category": "pitch"}, headers=alex)
    ).json()["document"]
    await client.post("/api/documents", json={"filename": "nda.pdf", "category": "legal"}, headers=alex)

    res = await client.get("/api/documents", params={"category": "pitch"}, headers=alex)
    assert [d["id"] for d in res.json()["documents"]] == [pitch["id"]]

    res = await client.get(f"/api/documents/{pitch['id']}", headers=alex)
    assert res.json()["document"]["filename"] == "deck.pdf"

    res = await client.put(f"/api/documents/{pitch['id']}", json={"confidential": True, "tags": ["q3"]}, headers=alex)
    assert res.json()["document"]["confidential"] is True
    assert res.json()["document"]["category"] == "pitch"

    assert (await client.delete(f"/api/documents/{pitch['id']}", headers=alex)).json() == {"ok": True}
    assert (await client.get(f"/api/documents/{pitch['id']}", headers=alex)).json() == {"error": "Document not found"}


async def test_naive_task_datetimes_are_stored_as_utc(client, alex):
    task = await _task(client, alex, title="Filing", dueDate="2026-04-01T00:00:00")

    res = await client.put(f"/api/tasks/{task['id']}", json={"completedAt": "2026-04-02T09:30:00"}, headers=alex)
    listed = (await client.get("/api/tasks", headers=alex)).json()["tasks"][0]

    assert _ts(task["due_date"]) == _ts("2026-04-01T00:00:00Z")
    assert _ts(res.json()["task"]["completed_at"]) == _ts("2026-04-02T09:30:00Z")
    assert listed["due_date"] == task["due_date"]
    assert listed["completed_at"] == res.json()["task"]["completed_at"]
