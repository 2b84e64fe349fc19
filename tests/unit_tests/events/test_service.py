"""Unit tests for the events service layer.

The per-item event_count lives in the week's plan document and is shifted
in the same transaction as each event insert or delete.
"""

import io
from datetime import date

import pytest
from fastapi import HTTPException, UploadFile, status
from starlette.datastructures import Headers

from models.event import EventType
from models.plan import PlanItemInput, load_plan
from services import events_service, storage, weeks_service
from services.realtime import ChangeType


async def _add_item(db_session, auditor, week, content="Review ledger"):
    _, item = await weeks_service.add_item(
        db_session,
        user=auditor,
        week_id=week.id,
        day=date(2024, 1, 1),
        payload=PlanItemInput(content=content),
    )
    return item


async def _event_count(db_session, week, item_id) -> int:
    current = await weeks_service.get_week(db_session, week_id=week.id, for_update=True)
    for day in load_plan(current.plan).values():
        for item in day.tasks:
            if item.id == item_id:
                return item.event_count
    raise AssertionError(f"item {item_id} not found")


@pytest.mark.asyncio
async def test_service_event_count_matches_aggregation(db_session, auditor, counterpart, project, week):
    """Test: After N creates and M deletes the count is N-M, same as a resync."""
    item = await _add_item(db_session, auditor, week)

    created = []
    for index in range(4):
        author = auditor if index % 2 == 0 else counterpart
        created.append(
            await events_service.create_event(
                db_session,
                user=author,
                week_id=week.id,
                task_id=item.id,
                content=f"Comment {index}",
            )
        )
    await events_service.delete_event(db_session, user=auditor, event_id=created[0].id)

    assert await _event_count(db_session, week, item.id) == 3
    counts = await events_service.get_event_counts(db_session, project_id=project.id)
    assert counts == {item.id: 3}

    resynced = await events_service.resync_event_counts(db_session, user=auditor, project_id=project.id)
    assert resynced == {item.id: 3}
    assert await _event_count(db_session, week, item.id) == 3


@pytest.mark.asyncio
async def test_service_reply_quotes_parent(db_session, auditor, counterpart, week):
    """Test: A reply resolves its parent's content and author."""
    item = await _add_item(db_session, auditor, week)
    original = await events_service.create_event(
        db_session, user=auditor, week_id=week.id, task_id=item.id, content="Please upload the contracts"
    )
    reply = await events_service.create_event(
        db_session,
        user=counterpart,
        week_id=week.id,
        task_id=item.id,
        content="Uploaded",
        parent_event_id=original.id,
    )

    assert reply.parent.content == "Please upload the contracts"
    assert reply.parent.author_email == auditor.email

    feed = await events_service.list_task_events(db_session, task_id=item.id)
    assert [event.content for event in feed] == ["Please upload the contracts", "Uploaded"]
    assert feed[0].parent is None
    assert feed[1].parent.content == "Please upload the contracts"


@pytest.mark.asyncio
async def test_service_parent_from_other_item_rejected(db_session, auditor, week):
    first = await _add_item(db_session, auditor, week, "First")
    second = await _add_item(db_session, auditor, week, "Second")
    original = await events_service.create_event(
        db_session, user=auditor, week_id=week.id, task_id=first.id, content="Hello"
    )
    with pytest.raises(HTTPException) as exc_info:
        await events_service.create_event(
            db_session,
            user=auditor,
            week_id=week.id,
            task_id=second.id,
            content="Wrong thread",
            parent_event_id=original.id,
        )
    assert exc_info.value.status_code == status.HTTP_400_BAD_REQUEST


@pytest.mark.asyncio
async def test_service_empty_comment_rejected(db_session, auditor, week):
    item = await _add_item(db_session, auditor, week)
    with pytest.raises(HTTPException) as exc_info:
        await events_service.create_event(
            db_session, user=auditor, week_id=week.id, task_id=item.id, content="   "
        )
    assert exc_info.value.status_code == status.HTTP_400_BAD_REQUEST


@pytest.mark.asyncio
async def test_service_unknown_item_rejected(db_session, auditor, week):
    with pytest.raises(HTTPException) as exc_info:
        await events_service.create_event(
            db_session, user=auditor, week_id=week.id, task_id="missing", content="Hi"
        )
    assert exc_info.value.status_code == status.HTTP_404_NOT_FOUND


@pytest.mark.asyncio
async def test_service_attachments_are_stored(db_session, auditor, week, storage_dir):
    """Test: Attachments are written to storage and described in data.file_urls."""
    item = await _add_item(db_session, auditor, week)
    upload = UploadFile(
        file=io.BytesIO(b"%PDF-1.4"),
        filename="Bank statement.pdf",
        headers=Headers({"content-type": "application/pdf"}),
    )
    event = await events_service.create_event(
        db_session,
        user=auditor,
        week_id=week.id,
        task_id=item.id,
        event_type=EventType.DOCUMENTATION_REVIEW,
        files=[upload],
    )

    attachment = event.data.file_urls[0]
    assert attachment.name == "Bank statement.pdf"
    assert attachment.type == "application/pdf"
    assert attachment.url.endswith("-Bank_statement.pdf")
    assert len(list(storage_dir.rglob("*.pdf"))) == 1


@pytest.mark.asyncio
async def test_service_only_author_deletes(db_session, auditor, counterpart, week):
    item = await _add_item(db_session, auditor, week)
    event = await events_service.create_event(
        db_session, user=auditor, week_id=week.id, task_id=item.id, content="Mine"
    )
    with pytest.raises(HTTPException) as exc_info:
        await events_service.delete_event(db_session, user=counterpart, event_id=event.id)
    assert exc_info.value.status_code == status.HTTP_403_FORBIDDEN
    assert await _event_count(db_session, week, item.id) == 1


@pytest.mark.asyncio
async def test_service_publishes_event_and_week_changes(db_session, auditor, week, bus):
    item = await _add_item(db_session, auditor, week)
    events_feed = bus.subscribe("events", {"task_id": item.id})
    weeks_feed = bus.subscribe("weeks", {"id": week.id})

    event = await events_service.create_event(
        db_session, user=auditor, week_id=week.id, task_id=item.id, content="Hi", bus=bus
    )
    inserted = await events_feed.get()
    assert inserted.event_type == ChangeType.INSERT
    assert inserted.new["id"] == str(event.id)
    week_update = await weeks_feed.get()
    assert week_update.event_type == ChangeType.UPDATE

    await events_service.delete_event(db_session, user=auditor, event_id=event.id, bus=bus)
    deleted = await events_feed.get()
    assert deleted.event_type == ChangeType.DELETE
    assert deleted.old["id"] == str(event.id)


def _upload(content: bytes, filename: str) -> UploadFile:
    return UploadFile(
        file=io.BytesIO(content),
        filename=filename,
        headers=Headers({"content-type": "application/pdf"}),
    )


@pytest.mark.asyncio
async def test_service_same_named_attachments_kept_apart(db_session, auditor, week, storage_dir, monkeypatch):
    """Test: Files whose names sanitize alike in the same millisecond keep their own content."""
    monkeypatch.setattr(storage, "now_ms", lambda: 1700000000000)
    item = await _add_item(db_session, auditor, week)

    event = await events_service.create_event(
        db_session,
        user=auditor,
        week_id=week.id,
        task_id=item.id,
        files=[_upload(b"CHARTER", "Устав.pdf"), _upload(b"CONTRACT", "Договор.pdf")],
    )

    urls = [attachment.url for attachment in event.data.file_urls]
    assert len(set(urls)) == 2
    stored = sorted(path.read_bytes() for path in storage_dir.rglob("*.pdf"))
    assert stored == [b"CHARTER", b"CONTRACT"]


@pytest.mark.asyncio
async def test_service_failed_upload_aborts_event(db_session, auditor, week, storage_dir, monkeypatch):
    """Test: If any upload fails, written files are removed and no event is created."""
    item = await _add_item(db_session, auditor, week)
    save_upload = storage.save_upload
    calls = []

    async def flaky_save_upload(file, storage_key):
        calls.append(storage_key)
        if len(calls) == 2:
            raise OSError("disk full")
        return await save_upload(file, storage_key)

    monkeypatch.setattr(storage, "save_upload", flaky_save_upload)

    with pytest.raises(HTTPException) as exc_info:
        await events_service.create_event(
            db_session,
            user=auditor,
            week_id=week.id,
            task_id=item.id,
            files=[_upload(b"ONE", "first.pdf"), _upload(b"TWO", "second.pdf")],
        )

    assert exc_info.value.status_code == status.HTTP_500_INTERNAL_SERVER_ERROR
    assert len(calls) == 2
    assert list(storage_dir.rglob("*.pdf")) == []
    assert await events_service.list_task_events(db_session, task_id=item.id) == []
    assert await _event_count(db_session, week, item.id) == 0
