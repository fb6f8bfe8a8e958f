"""HTTP tests for /api/todos: envelope, status codes and rank upgrade payload."""

from __future__ import annotations

import pytest

ALICE = {"Authorization": "Bearer alice-token"}
BOB = {"Authorization": "Bearer bob-token"}


async def _create(client, headers, text="task"):
    response = await client.post("/api/todos", json={"task": text}, headers=headers)
    assert response.status_code == 201
    return response.json()["todo"]


# ---------------------------------------------------------------------------
# Authentication
# ---------------------------------------------------------------------------


async def test_missing_token_is_401(client):
    response = await client.get("/api/todos")

    assert response.status_code == 401
    assert response.json() == {"success": False, "message": "No token provided"}


async def test_invalid_token_is_401(client):
    response = await client.get("/api/todos", headers={"Authorization": "Bearer nope"})

    assert response.status_code == 401
    assert response.json()["success"] is False


async def test_wrong_scheme_is_401(client):
    response = await client.get("/api/todos", headers={"Authorization": "Basic alice-token"})

    assert response.status_code == 401


# ---------------------------------------------------------------------------
# CRUD
# ---------------------------------------------------------------------------


async def test_create_and_list(client):
    first = await _create(client, ALICE, "  first ")
    second = await _create(client, ALICE, "second")

    response = await client.get("/api/todos", headers=ALICE)

    body = response.json()
    assert body["success"] is True
    assert [t["todo_id"] for t in body["todos"]] == [second["todo_id"], first["todo_id"]]
    assert body["todos"][1]["task"] == "first"
    assert body["todos"][1]["completed"] is False
    assert body["todos"][1]["completed_at"] is None


@pytest.mark.parametrize("payload", [{}, {"task": ""}, {"task": "   "}])
async def test_create_without_text_is_400(client, payload):
    response = await client.post("/api/todos", json=payload, headers=ALICE)

    assert response.status_code == 400
    assert response.json() == {"success": False, "message": "Task is required"}


async def test_get_own_todo(client):
    todo = await _create(client, ALICE)

    response = await client.get(f"/api/todos/{todo['todo_id']}", headers=ALICE)

    assert response.status_code == 200
    assert response.json()["todo"]["todo_id"] == todo["todo_id"]


async def test_get_missing_todo_is_404(client):
    response = await client.get("/api/todos/todo_missing", headers=ALICE)

    assert response.status_code == 404
    assert response.json() == {"success": False, "message": "Todo not found"}


async def test_get_other_users_todo_is_403(client):
    todo = await _create(client, BOB)

    response = await client.get(f"/api/todos/{todo['todo_id']}", headers=ALICE)

    assert response.status_code == 403
    assert response.json()["success"] is False


async def test_update_without_fields_is_400(client):
    todo = await _create(client, ALICE)

    response = await client.put(f"/api/todos/{todo['todo_id']}", json={}, headers=ALICE)

    assert response.status_code == 400
    assert response.json() == {"success": False, "message": "No fields to update"}


async def test_update_with_malformed_body_is_400(client):
    todo = await _create(client, ALICE)

    response = await client.put(
        f"/api/todos/{todo['todo_id']}", json={"completed": "sometimes"}, headers=ALICE
    )

    assert response.status_code == 400
    assert response.json()["success"] is False


async def test_update_text_and_completion(client):
    todo = await _create(client, ALICE, "old")

    response = await client.put(
        f"/api/todos/{todo['todo_id']}", json={"task": "new", "completed": True}, headers=ALICE
    )

    body = response.json()
    assert response.status_code == 200
    assert body["todo"]["task"] == "new"
    assert body["todo"]["completed"] is True
    assert body["todo"]["completed_at"] is not None
    assert "rankUpgrade" not in body


async def test_uncompleting_keeps_null_todo_fields(client):
    todo = await _create(client, ALICE)
    await client.put(f"/api/todos/{todo['todo_id']}", json={"completed": True}, headers=ALICE)

    response = await client.put(
        f"/api/todos/{todo['todo_id']}", json={"completed": False}, headers=ALICE
    )

    body = response.json()
    assert body["todo"]["completed_at"] is None
    assert "rankUpgrade" not in body


async def test_update_other_users_todo_is_403_and_counters_unchanged(client):
    await _create(client, ALICE)
    todo = await _create(client, BOB)

    response = await client.put(
        f"/api/todos/{todo['todo_id']}", json={"completed": True}, headers=ALICE
    )

    assert response.status_code == 403
    alice_rank = (await client.get("/api/ranks/info", headers=ALICE)).json()
    bob_rank = (await client.get("/api/ranks/info", headers=BOB)).json()
    assert alice_rank["rank"]["totalCompleted"] == 0
    assert bob_rank["rank"]["totalCompleted"] == 0


async def test_delete_todo(client):
    todo = await _create(client, ALICE)

    response = await client.delete(f"/api/todos/{todo['todo_id']}", headers=ALICE)

    assert response.status_code == 200
    assert response.json() == {"success": True, "message": "Todo deleted successfully"}
    assert (await client.get(f"/api/todos/{todo['todo_id']}", headers=ALICE)).status_code == 404


async def test_delete_other_users_todo_is_403(client):
    todo = await _create(client, BOB)

    response = await client.delete(f"/api/todos/{todo['todo_id']}", headers=ALICE)

    assert response.status_code == 403
    assert (await client.get(f"/api/todos/{todo['todo_id']}", headers=BOB)).status_code == 200


async def test_delete_completed_todo_decrements_rank_count(client):
    todo = await _create(client, ALICE)
    await client.put(f"/api/todos/{todo['todo_id']}", json={"completed": True}, headers=ALICE)

    await client.delete(f"/api/todos/{todo['todo_id']}", headers=ALICE)

    info = (await client.get("/api/ranks/info", headers=ALICE)).json()
    assert info["rank"]["totalCompleted"] == 0


async def test_stats(client):
    a = await _create(client, ALICE, "a")
    await _create(client, ALICE, "b")
    await client.put(f"/api/todos/{a['todo_id']}", json={"completed": True}, headers=ALICE)

    response = await client.get("/api/todos/stats", headers=ALICE)

    assert response.json() == {"success": True, "stats": {"total": 2, "completed": 1, "pending": 1}}


# ---------------------------------------------------------------------------
# Rank upgrade payload
# ---------------------------------------------------------------------------


async def test_tenth_completion_reports_rank_upgrade(client):
    todos = [await _create(client, ALICE, f"t{i}") for i in range(10)]

    responses = [
        await client.put(f"/api/todos/{t['todo_id']}", json={"completed": True}, headers=ALICE)
        for t in todos
    ]

    assert all("rankUpgrade" not in r.json() for r in responses[:9])
    assert responses[9].json()["rankUpgrade"] == {
        "upgraded": True,
        "fromRank": "iron",
        "toRank": "silver",
        "rankInfo": {"min": 10, "max": 24, "displayName": "Silver", "color": "#C0C0C0"},
    }
