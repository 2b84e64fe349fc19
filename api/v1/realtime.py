"""WebSocket endpoint relaying change notifications to clients.

Protocol (JSON text frames):

    -> {"action": "subscribe", "table": "events", "filter": {"task_id": "..."}}
    <- {"type": "subscribed", "subscription_id": "...", "table": "events"}
    <- {"type": "snapshot", "subscription_id": "...", "records": [...]}   (events by task_id only)
    <- {"type": "change", "subscription_id": "...", "table": ..., "eventType": ..., "new": ..., "old": ...}
    <- {"type": "resync", "subscription_id": "...", "dropped": n}   (before the next change after a full queue)
    -> {"action": "unsubscribe", "subscription_id": "..."}

The bus subscription is opened before the snapshot is read, so nothing
committed in between is missed; notifications already reflected in the
snapshot are suppressed. A resync frame means notifications were lost and
the client should refetch.
"""

import asyncio
import logging
from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Query, WebSocket, WebSocketDisconnect
from sqlalchemy.ext.asyncio import AsyncSession

from api.deps import authenticate_token, get_db
from services import events_service
from services.realtime import ChangeBus, Subscription
from services.reconcile import ReconcilingSet

logger = logging.getLogger(__name__)

router = APIRouter()

TABLES = {"projects", "weeks", "events", "company_profiles"}


class RealtimeSession:
    """One client connection and its subscriptions."""

    def __init__(self, websocket: WebSocket, bus: ChangeBus, db: AsyncSession):
        self.websocket = websocket
        self.bus = bus
        self.db = db
        self._send_lock = asyncio.Lock()
        self._tasks: dict[str, asyncio.Task] = {}
        self._subscriptions: dict[str, Subscription] = {}

    async def send(self, message: dict[str, Any]) -> None:
        async with self._send_lock:
            await self.websocket.send_json(message)

    async def subscribe(self, table: str, filters: dict[str, Any]) -> None:
        if table not in TABLES:
            await self.send({"type": "error", "detail": f"Unknown table: {table}"})
            return

        subscription = self.bus.subscribe(table, filters)
        self._subscriptions[subscription.id] = subscription
        feed: ReconcilingSet = ReconcilingSet(
            key=lambda record: record["id"],
            order_by=lambda record: record.get("created_at") or "",
        )
        await self.send({"type": "subscribed", "subscription_id": subscription.id, "table": table})

        if table == "events" and "task_id" in filters:
            events = await events_service.list_task_events(self.db, task_id=str(filters["task_id"]))
            feed.replace_all(event.model_dump(mode="json") for event in events)
            await self.send(
                {"type": "snapshot", "subscription_id": subscription.id, "records": feed.values()}
            )

        task = asyncio.create_task(self._forward(subscription, feed))
        task.add_done_callback(self._forward_done)
        self._tasks[subscription.id] = task

    async def _forward(self, subscription: Subscription, feed: ReconcilingSet) -> None:
        async for notification in subscription:
            dropped = subscription.take_dropped()
            if dropped:
                await self.send(
                    {"type": "resync", "subscription_id": subscription.id, "dropped": dropped}
                )
            if not feed.apply(notification):
                continue
            await self.send(
                {"type": "change", "subscription_id": subscription.id, **notification.to_message()}
            )

    @staticmethod
    def _forward_done(task: asyncio.Task) -> None:
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            logger.warning("Realtime forwarding stopped: %s", error)

    def unsubscribe(self, subscription_id: str) -> None:
        subscription = self._subscriptions.pop(subscription_id, None)
        if subscription is not None:
            subscription.close()
        task = self._tasks.pop(subscription_id, None)
        if task is not None:
            task.cancel()

    def close(self) -> None:
        for subscription_id in list(self._subscriptions):
            self.unsubscribe(subscription_id)


@router.websocket("/realtime")
async def realtime_endpoint(
    websocket: WebSocket,
    token: str = Query(...),
    db: AsyncSession = Depends(get_db),
):
    try:
        user = await authenticate_token(token, db)
    except HTTPException as e:
        await websocket.close(code=4401, reason=str(e.detail))
        return

    await websocket.accept()
    session = RealtimeSession(websocket, websocket.app.state.change_bus, db)
    logger.info("Realtime connection opened for user %s", user.id)
    try:
        while True:
            message = await websocket.receive_json()
            action = message.get("action")
            if action == "subscribe":
                await session.subscribe(message.get("table", ""), message.get("filter") or {})
            elif action == "unsubscribe":
                session.unsubscribe(message.get("subscription_id", ""))
            else:
                await session.send({"type": "error", "detail": f"Unknown action: {action}"})
    except WebSocketDisconnect:
        pass
    finally:
        session.close()
        logger.info("Realtime connection closed for user %s", user.id)
