import pytest


@pytest.mark.asyncio
async def test_export_account(client):
    await client.put("/settings/timer", json={"auto_start_break": True})
    task = (await client.post("/tasks", json={"title": "Export me"})).json()
    await client.post("/sessions", json={
        "mode": "focus", "duration_seconds": 1500, "task_id": task["id"],
    })

    response = await client.get("/account/export?tz=UTC")
    assert response.status_code == 200
    data = response.json()
    assert data["settings"]["auto_start_break"] is True
    assert len(data["sessions"]) == 1
    assert data["sessions"][0]["task_id"] == task["id"]
    assert [t["title"] for t in data["tasks"]] == ["Export me"]
    assert data["summary"]["total_sessions"] == 1
    assert "exported_at" in data


@pytest.mark.asyncio
async def test_delete_account_data(client):
    await client.put("/settings/timer", json={"long_break_interval": 6})
    await client.post("/tasks", json={"title": "Gone soon"})
    for _ in range(2):
        await client.post("/sessions", json={"mode": "focus", "duration_seconds": 1500})

    response = await client.delete("/account/data")
    assert response.status_code == 200
    assert response.json() == {
        "deleted_sessions": 2,
        "deleted_tasks": 1,
        "settings_reset": True,
    }

    assert (await client.get("/sessions")).json() == []
    assert (await client.get("/tasks")).json() == []
    assert (await client.get("/settings/timer")).json()["long_break_interval"] == 4


@pytest.mark.asyncio
async def test_delete_account_data_when_empty(client):
    response = await client.delete("/account/data")
    assert response.json() == {
        "deleted_sessions": 0,
        "deleted_tasks": 0,
        "settings_reset": False,
    }


@pytest.mark.asyncio
async def test_export_then_import_restores_data(client):
    await client.put("/settings/timer", json={"long_break_interval": 3})
    task = (await client.post("/tasks", json={
        "title": "Round trip", "estimated_pomodoros": 3,
    })).json()
    await client.post(f"/tasks/{task['id']}/pomodoros")
    await client.post("/sessions", json={
        "mode": "focus",
        "duration_seconds": 1500,
        "completed_at": "2024-06-03T10:00:00Z",
        "task_id": task["id"],
    })
    await client.post("/sessions", json={
        "mode": "shortBreak",
        "duration_seconds": 300,
        "completed_at": "2024-06-03T10:05:00Z",
    })
    export = (await client.get("/account/export")).json()

    await client.delete("/account/data")
    await client.post("/tasks", json={"title": "Replaced on import"})

    response = await client.post("/account/import", json=export)
    assert response.status_code == 200
    assert response.json() == {
        "imported_sessions": 2,
        "imported_tasks": 1,
        "skipped_sessions": 0,
        "skipped_tasks": 0,
    }

    tasks = (await client.get("/tasks")).json()
    assert [t["title"] for t in tasks] == ["Round trip"]
    assert tasks[0]["completed_pomodoros"] == 1

    sessions = (await client.get("/sessions")).json()
    assert [s["mode"] for s in sessions] == ["shortBreak", "focus"]
    assert sessions[1]["task_id"] == tasks[0]["id"]
    assert sessions[1]["completed_at"].startswith("2024-06-03T10:00:00")

    settings = (await client.get("/settings/timer")).json()
    assert settings["long_break_interval"] == 3


@pytest.mark.asyncio
async def test_import_skips_malformed_records(client):
    payload = {
        "sessions": [
            {
                "id": "not-a-uuid",
                "mode": "focus",
                "duration_seconds": 1500,
                "started_at": "2024-06-03T09:35:00Z",
                "completed_at": "2024-06-03T10:00:00Z",
                "was_completed": True,
            },
            {
                "id": "6f1c2b1e-2d0a-4f57-9a65-0d4f5a3c8b21",
                "mode": "focus",
                "duration_seconds": 1500,
                "started_at": "2024-06-04T09:35:00Z",
                "completed_at": "2024-06-04T10:00:00Z",
                "was_completed": True,
                "task_id": "0b7e9a64-6c7d-4c4e-8a59-3f0b4c2d1e10",
            },
        ],
        "tasks": [{"id": 42, "title": "Broken"}],
    }

    response = await client.post("/account/import", json=payload)
    assert response.json() == {
        "imported_sessions": 1,
        "imported_tasks": 0,
        "skipped_sessions": 1,
        "skipped_tasks": 1,
    }

    sessions = (await client.get("/sessions")).json()
    assert len(sessions) == 1
    # The referenced task was not imported, so the link is cleared
    assert sessions[0]["task_id"] is None
    assert (await client.get("/tasks")).json() == []
