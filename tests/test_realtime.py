"""Tests for the realtime relay session (snapshot plus deduplicated changes)."""

import asyncio
import logging
from datetime import date

import pytest

from api.v1.realtime import RealtimeSession
from models.plan import PlanItemInput
from services import events_service, weeks_service
from services.realtime import ChangeBus


class FakeWebSocket:
    """Collects sent frames in place of a client connection."""

    def __init__(self):
        self.sent: list[dict] = []

    async def send_json(self, message: dict) -> None:
        self.sent.append(message)


async def _wait_for(websocket: FakeWebSocket, count: int) -> None:
    for _ in range(100):
        if len(websocket.sent) >= count:
            return
        await asyncio.sleep(0.01)
    raise AssertionError(f"expected {count} frames, got {websocket.sent}")


@pytest.mark.asyncio
async def test_snapshot_then_changes(db_session, auditor, week, bus):
    """Test: A task feed gets its snapshot, then new events once each."""
    _, item = await weeks_service.add_item(
        db_session,
        user=auditor,
        week_id=week.id,
        day=date(2024, 1, 1),
        payload=PlanItemInput(content="Review payroll"),
    )
    existing = await events_service.create_event(
        db_session, user=auditor, week_id=week.id, task_id=item.id, content="Before subscribing"
    )

    websocket = FakeWebSocket()
    session = RealtimeSession(websocket, bus, db_session)
    await session.subscribe("events", {"task_id": item.id})

    subscribed, snapshot = websocket.sent[:2]
    assert subscribed["type"] == "subscribed"
    assert snapshot["type"] == "snapshot"
    assert [record["id"] for record in snapshot["records"]] == [str(existing.id)]

    created = await events_service.create_event(
        db_session, user=auditor, week_id=week.id, task_id=item.id, content="After", bus=bus
    )
    # A redelivered insert for a record already shown is suppressed
    bus.publish_insert("events", created.model_dump(mode="json"))
    await events_service.delete_event(db_session, user=auditor, event_id=existing.id, bus=bus)

    await _wait_for(websocket, 4)
    await asyncio.sleep(0.05)
    changes = websocket.sent[2:]
    assert [(c["eventType"], (c["new"] or c["old"])["id"]) for c in changes] == [
        ("INSERT", str(created.id)),
        ("DELETE", str(existing.id)),
    ]
    session.close()
    assert bus.subscription_count == 0


@pytest.mark.asyncio
async def test_unknown_table_is_an_error(db_session, bus):
    websocket = FakeWebSocket()
    session = RealtimeSession(websocket, bus, db_session)
    await session.subscribe("users", {})
    assert websocket.sent == [{"type": "error", "detail": "Unknown table: users"}]
    assert bus.subscription_count == 0


@pytest.mark.asyncio
async def test_unsubscribe_stops_forwarding(db_session, bus):
    websocket = FakeWebSocket()
    session = RealtimeSession(websocket, bus, db_session)
    await session.subscribe("weeks", {"project_id": "p1"})
    subscription_id = websocket.sent[0]["subscription_id"]

    session.unsubscribe(subscription_id)
    assert bus.publish_update("weeks", {"id": "w1", "project_id": "p1"}) == 0
    await asyncio.sleep(0.01)
    assert len(websocket.sent) == 1


class StalledWebSocket(FakeWebSocket):
    """Holds every change frame until released, like a slow client."""

    def __init__(self):
        super().__init__()
        self.released = asyncio.Event()

    async def send_json(self, message: dict) -> None:
        if message["type"] == "change":
            await self.released.wait()
        self.sent.append(message)


@pytest.mark.asyncio
async def test_lagging_client_is_told_to_resync(db_session):
    """Test: Notifications dropped from a full queue are announced before the next change."""
    bus = ChangeBus(queue_size=2)
    websocket = StalledWebSocket()
    session = RealtimeSession(websocket, bus, db_session)
    await session.subscribe("weeks", {"project_id": "p1"})
    subscription_id = websocket.sent[0]["subscription_id"]

    bus.publish_update("weeks", {"id": "w0", "project_id": "p1"})
    await asyncio.sleep(0.01)
    for index in range(1, 6):
        bus.publish_update("weeks", {"id": f"w{index}", "project_id": "p1"})
    websocket.released.set()

    await _wait_for(websocket, 5)
    frames = websocket.sent[1:]
    assert [frame["type"] for frame in frames] == ["change", "resync", "change", "change"]
    assert frames[1] == {"type": "resync", "subscription_id": subscription_id, "dropped": 3}
    assert [frames[i]["new"]["id"] for i in (0, 2, 3)] == ["w0", "w4", "w5"]
    session.close()


class BrokenWebSocket(FakeWebSocket):
    async def send_json(self, message: dict) -> None:
        if message["type"] == "change":
            raise RuntimeError("connection closed")
        self.sent.append(message)


@pytest.mark.asyncio
async def test_forwarding_failure_is_logged(db_session, bus, caplog):
    websocket = BrokenWebSocket()
    session = RealtimeSession(websocket, bus, db_session)
    await session.subscribe("weeks", {"project_id": "p1"})

    with caplog.at_level(logging.WARNING, logger="api.v1.realtime"):
        bus.publish_update("weeks", {"id": "w1", "project_id": "p1"})
        for _ in range(100):
            if "Realtime forwarding stopped" in caplog.text:
                break
            await asyncio.sleep(0.01)

    assert "connection closed" in caplog.text
    session.close()
