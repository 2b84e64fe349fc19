"""Integration tests for event feed endpoints."""

from datetime import date

import pytest
from fastapi import status

from models.plan import PlanItemInput
from services import weeks_service


async def _add_item(db_session, auditor, week) -> str:
    _, item = await weeks_service.add_item(
        db_session,
        user=auditor,
        week_id=week.id,
        day=date(2024, 1, 1),
        payload=PlanItemInput(content="Review contracts"),
    )
    return item.id


async def _post_event(client, week_id, task_id, headers, **form):
    files = form.pop("files", None)
    return await client.post(
        f"/api/v1/weeks/{week_id}/tasks/{task_id}/events",
        data=form,
        files=files,
        headers=headers,
    )


@pytest.mark.asyncio
async def test_event_counts_follow_creates_and_deletes(
    client, db_session, auditor, project, week, auditor_headers
):
    """Test: N creates and M deletes leave event_count == N - M == aggregation."""
    task_id = await _add_item(db_session, auditor, week)

    event_ids = []
    for index in range(3):
        response = await _post_event(client, week.id, task_id, auditor_headers, content=f"Note {index}")
        assert response.status_code == status.HTTP_201_CREATED
        event_ids.append(response.json()["id"])

    response = await client.delete(f"/api/v1/events/{event_ids[1]}", headers=auditor_headers)
    assert response.status_code == status.HTTP_204_NO_CONTENT

    response = await client.get(f"/api/v1/weeks/{week.id}", headers=auditor_headers)
    assert response.json()["plan"]["2024-01-01"]["tasks"][0]["event_count"] == 2

    response = await client.get(f"/api/v1/projects/{project.id}/event-counts", headers=auditor_headers)
    assert response.json() == {task_id: 2}

    response = await client.post(
        f"/api/v1/projects/{project.id}/event-counts/resync", headers=auditor_headers
    )
    assert response.status_code == status.HTTP_200_OK
    assert response.json() == {task_id: 2}

    response = await client.get(f"/api/v1/weeks/{week.id}/stats", headers=auditor_headers)
    assert response.json()["completed"] == 1


@pytest.mark.asyncio
async def test_reply_quotes_parent(
    client, db_session, auditor, week, auditor_headers, counterpart_headers
):
    task_id = await _add_item(db_session, auditor, week)
    response = await _post_event(client, week.id, task_id, auditor_headers, content="Please upload Q4 invoices")
    parent_id = response.json()["id"]

    response = await _post_event(
        client,
        week.id,
        task_id,
        counterpart_headers,
        content="Done, see attached",
        parent_event_id=parent_id,
    )
    assert response.status_code == status.HTTP_201_CREATED
    assert response.json()["parent"] == {
        "content": "Please upload Q4 invoices",
        "author_email": "auditor@example.com",
    }

    response = await client.get(f"/api/v1/tasks/{task_id}/events", headers=auditor_headers)
    events = response.json()
    assert [e["content"] for e in events] == ["Please upload Q4 invoices", "Done, see attached"]
    assert events[1]["parent_event_id"] == parent_id
    assert events[1]["author_email"] == "owner@example.com"


@pytest.mark.asyncio
async def test_meeting_event_with_attachment(client, db_session, auditor, week, auditor_headers):
    """Test: Multipart upload stores the file and serves it back."""
    task_id = await _add_item(db_session, auditor, week)
    response = await _post_event(
        client,
        week.id,
        task_id,
        auditor_headers,
        type="meeting",
        content="Kick-off with finance",
        meeting_time="2024-01-01T10:00:00",
        participants=["CFO", "Controller"],
        files=[("files", ("minutes.txt", b"Agreed scope", "text/plain"))],
    )
    assert response.status_code == status.HTTP_201_CREATED
    event = response.json()
    assert event["type"] == "meeting"
    assert event["data"]["participants"] == ["CFO", "Controller"]
    attachment = event["data"]["file_urls"][0]
    assert attachment["name"] == "minutes.txt"
    assert attachment["type"] == "text/plain"

    path = attachment["url"].split("/api/v1", 1)[1]
    response = await client.get(f"/api/v1{path}")
    assert response.status_code == status.HTTP_200_OK
    assert response.content == b"Agreed scope"


@pytest.mark.asyncio
async def test_empty_comment_rejected(client, db_session, auditor, week, auditor_headers):
    task_id = await _add_item(db_session, auditor, week)
    response = await _post_event(client, week.id, task_id, auditor_headers, content="")
    assert response.status_code == status.HTTP_400_BAD_REQUEST


@pytest.mark.asyncio
async def test_event_on_missing_item(client, week, auditor_headers):
    response = await _post_event(client, week.id, "no-such-item", auditor_headers, content="Hello")
    assert response.status_code == status.HTTP_404_NOT_FOUND


@pytest.mark.asyncio
async def test_only_author_deletes_event(
    client, db_session, auditor, week, auditor_headers, counterpart_headers
):
    task_id = await _add_item(db_session, auditor, week)
    response = await _post_event(client, week.id, task_id, auditor_headers, content="Mine")
    event_id = response.json()["id"]

    response = await client.delete(f"/api/v1/events/{event_id}", headers=counterpart_headers)
    assert response.status_code == status.HTTP_403_FORBIDDEN


@pytest.mark.asyncio
async def test_week_history(client, db_session, auditor, week, auditor_headers):
    task_id = await _add_item(db_session, auditor, week)
    await _post_event(client, week.id, task_id, auditor_headers, content="First")
    response = await client.get(f"/api/v1/weeks/{week.id}/events", headers=auditor_headers)
    assert response.status_code == status.HTTP_200_OK
    assert [e["content"] for e in response.json()] == ["First"]


@pytest.mark.asyncio
async def test_resync_auditor_only(client, project, counterpart_headers):
    response = await client.post(
        f"/api/v1/projects/{project.id}/event-counts/resync", headers=counterpart_headers
    )
    assert response.status_code == status.HTTP_403_FORBIDDEN


@pytest.mark.asyncio
async def test_storage_rejects_unknown_bucket(client):
    response = await client.get("/api/v1/storage/other-bucket/a/b.txt")
    assert response.status_code == status.HTTP_404_NOT_FOUND
