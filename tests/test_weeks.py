"""Integration tests for week endpoints: plan edits and the approval workflow."""

import pytest
from fastapi import status


async def _set_status(client, week_id, headers, target, **extra):
    return await client.patch(
        f"/api/v1/weeks/{week_id}/status",
        json={"status": target, **extra},
        headers=headers,
    )


@pytest.mark.asyncio
async def test_plan_lifecycle(client, project, auditor_headers):
    """Test: Two-day week, add an item, delete the second day."""
    response = await client.post(
        f"/api/v1/projects/{project.id}/weeks",
        json={"title": "Kick-off", "start_date": "2024-01-01", "end_date": "2024-01-02"},
        headers=auditor_headers,
    )
    assert response.status_code == status.HTTP_201_CREATED
    week = response.json()
    assert week["plan"] == {"2024-01-01": {"tasks": []}, "2024-01-02": {"tasks": []}}
    assert week["status"] == "draft"

    response = await client.post(
        f"/api/v1/weeks/{week['id']}/days/2024-01-01/items",
        json={"content": "Request charter docs", "type": "task"},
        headers=auditor_headers,
    )
    assert response.status_code == status.HTTP_201_CREATED
    body = response.json()
    tasks = body["week"]["plan"]["2024-01-01"]["tasks"]
    assert len(tasks) == 1
    assert tasks[0]["content"] == "Request charter docs"
    assert tasks[0]["id"] == body["item"]["id"]

    response = await client.delete(
        f"/api/v1/weeks/{week['id']}/days/2024-01-02", headers=auditor_headers
    )
    assert response.status_code == status.HTTP_200_OK
    assert list(response.json()["plan"]) == ["2024-01-01"]


@pytest.mark.asyncio
async def test_create_week_inverted_dates(client, project, auditor_headers):
    response = await client.post(
        f"/api/v1/projects/{project.id}/weeks",
        json={"title": "Bad", "start_date": "2024-01-05", "end_date": "2024-01-01"},
        headers=auditor_headers,
    )
    assert response.status_code == status.HTTP_400_BAD_REQUEST


@pytest.mark.asyncio
async def test_approval_flow(client, week, auditor_headers, counterpart_headers):
    """Test: Submit, approve and complete with confirmation."""
    response = await _set_status(client, week.id, counterpart_headers, "pending_approval")
    assert response.status_code == status.HTTP_403_FORBIDDEN

    response = await _set_status(client, week.id, auditor_headers, "pending_approval")
    assert response.status_code == status.HTTP_200_OK
    assert response.json()["status"] == "pending_approval"

    response = await _set_status(client, week.id, auditor_headers, "approved")
    assert response.status_code == status.HTTP_403_FORBIDDEN

    response = await _set_status(client, week.id, counterpart_headers, "approved")
    assert response.status_code == status.HTTP_200_OK

    response = await _set_status(client, week.id, auditor_headers, "completed")
    assert response.status_code == status.HTTP_409_CONFLICT

    response = await _set_status(client, week.id, auditor_headers, "completed", confirmed=True)
    assert response.status_code == status.HTTP_200_OK
    assert response.json()["status"] == "completed"

    response = await _set_status(client, week.id, auditor_headers, "draft")
    assert response.status_code == status.HTTP_409_CONFLICT


@pytest.mark.asyncio
async def test_rejection_cleared_on_reopen(client, week, auditor_headers, counterpart_headers):
    """Test: Rejection stores the comment; reopening to draft clears it."""
    await _set_status(client, week.id, auditor_headers, "pending_approval")

    response = await _set_status(client, week.id, counterpart_headers, "rejected")
    assert response.status_code == status.HTTP_400_BAD_REQUEST

    response = await _set_status(
        client, week.id, counterpart_headers, "rejected", rejection_comment="Missing dates"
    )
    assert response.status_code == status.HTTP_200_OK
    assert response.json()["status"] == "rejected"
    assert response.json()["rejection_comment"] == "Missing dates"

    response = await _set_status(client, week.id, auditor_headers, "draft")
    assert response.status_code == status.HTTP_200_OK
    assert response.json()["status"] == "draft"
    assert response.json()["rejection_comment"] is None


@pytest.mark.asyncio
async def test_skipping_states_is_conflict(client, week, auditor_headers):
    response = await _set_status(client, week.id, auditor_headers, "completed", confirmed=True)
    assert response.status_code == status.HTTP_409_CONFLICT


@pytest.mark.asyncio
async def test_stale_plan_replacement(client, week, auditor_headers):
    """Test: Replacing the plan with an outdated row_version is a conflict."""
    plan = {"2024-01-01": {"tasks": [{"content": "Inventory count", "type": "task"}]}}
    response = await client.put(
        f"/api/v1/weeks/{week.id}/plan",
        json={"plan": plan, "expected_version": 1},
        headers=auditor_headers,
    )
    assert response.status_code == status.HTTP_200_OK
    assert response.json()["row_version"] == 2

    response = await client.put(
        f"/api/v1/weeks/{week.id}/plan",
        json={"plan": {}, "expected_version": 1},
        headers=auditor_headers,
    )
    assert response.status_code == status.HTTP_409_CONFLICT

    response = await client.get(f"/api/v1/weeks/{week.id}", headers=auditor_headers)
    assert response.json()["plan"]["2024-01-01"]["tasks"][0]["content"] == "Inventory count"


@pytest.mark.asyncio
async def test_duplicate_day(client, week, auditor_headers):
    response = await client.post(
        f"/api/v1/weeks/{week.id}/days", json={"date": "2024-01-03"}, headers=auditor_headers
    )
    assert response.status_code == status.HTTP_409_CONFLICT
    assert response.json()["detail"] == "Day already exists in plan"


@pytest.mark.asyncio
async def test_edit_missing_item(client, week, auditor_headers):
    response = await client.put(
        f"/api/v1/weeks/{week.id}/items/does-not-exist",
        json={"content": "Ghost"},
        headers=auditor_headers,
    )
    assert response.status_code == status.HTTP_404_NOT_FOUND
    assert response.json()["detail"] == "Plan item not found"


@pytest.mark.asyncio
async def test_edit_and_delete_item(client, week, auditor_headers):
    response = await client.post(
        f"/api/v1/weeks/{week.id}/days/2024-01-02/items",
        json={"content": "CFO interview", "type": "interview", "data": {"interviewee": "CFO"}},
        headers=auditor_headers,
    )
    item_id = response.json()["item"]["id"]

    response = await client.put(
        f"/api/v1/weeks/{week.id}/items/{item_id}",
        json={"content": "CFO and controller interview", "type": "interview", "data": {"time": "14:00"}},
        headers=auditor_headers,
    )
    assert response.status_code == status.HTTP_200_OK
    item = response.json()["plan"]["2024-01-02"]["tasks"][0]
    assert item["id"] == item_id
    assert item["data"]["time"] == "14:00"

    response = await client.delete(f"/api/v1/weeks/{week.id}/items/{item_id}", headers=auditor_headers)
    assert response.status_code == status.HTTP_200_OK
    assert response.json()["plan"]["2024-01-02"]["tasks"] == []


@pytest.mark.asyncio
async def test_invalid_item_data(client, week, auditor_headers):
    response = await client.post(
        f"/api/v1/weeks/{week.id}/days/2024-01-02/items",
        json={"content": "Meeting", "type": "meeting", "data": {"participants": "not-a-list"}},
        headers=auditor_headers,
    )
    assert response.status_code == status.HTTP_400_BAD_REQUEST


@pytest.mark.asyncio
async def test_counterpart_cannot_edit_plan(client, week, counterpart_headers):
    response = await client.post(
        f"/api/v1/weeks/{week.id}/days/2024-01-01/items",
        json={"content": "Sneaky"},
        headers=counterpart_headers,
    )
    assert response.status_code == status.HTTP_403_FORBIDDEN


@pytest.mark.asyncio
async def test_week_stats(client, week, auditor_headers):
    for content in ("A", "B"):
        await client.post(
            f"/api/v1/weeks/{week.id}/days/2024-01-01/items",
            json={"content": content},
            headers=auditor_headers,
        )
    response = await client.get(f"/api/v1/weeks/{week.id}/stats", headers=auditor_headers)
    assert response.status_code == status.HTTP_200_OK
    assert response.json() == {"total": 2, "completed": 0, "in_progress": 2, "progress": 0}


@pytest.mark.asyncio
async def test_delete_week_only_as_draft(client, week, auditor_headers):
    await _set_status(client, week.id, auditor_headers, "pending_approval")
    response = await client.delete(f"/api/v1/weeks/{week.id}", headers=auditor_headers)
    assert response.status_code == status.HTTP_409_CONFLICT


@pytest.mark.asyncio
async def test_list_weeks_ordered(client, project, week, auditor_headers):
    await client.post(
        f"/api/v1/projects/{project.id}/weeks",
        json={"title": "Stage 0", "start_date": "2023-12-25", "end_date": "2023-12-31"},
        headers=auditor_headers,
    )
    response = await client.get(f"/api/v1/projects/{project.id}/weeks", headers=auditor_headers)
    assert [w["title"] for w in response.json()] == ["Stage 0", "Stage 1"]
