"""Redis Pub/Sub: publisher, background subscriber and the cross-process fan-out relay."""
from __future__ import annotations

import asyncio
import json
import logging
from typing import Any, Callable, Coroutine, Iterable

import redis.asyncio as aioredis

from portal_chat.application.ports.bus import EventPublisher
from portal_chat.infrastructure.bus.serializer import deserialize_event, serialize_event
from portal_chat.infrastructure.ws.protocol import WsOutbound
from portal_chat.infrastructure.ws.relay import LocalRelay

logger = logging.getLogger(__name__)

FANOUT_EVENT = "chat.fanout"


class RedisPubSubPublisher:
    """Implements application.ports.bus.EventPublisher."""

    def __init__(self, redis: aioredis.Redis) -> None:
        self._redis = redis

    async def publish(self, channel: str, payload: dict[str, Any]) -> None:
        raw = serialize_event(payload.get("event_type", "unknown"), payload)
        await self._redis.publish(channel, raw)


OnEventCallback = Callable[[str, dict[str, Any]], Coroutine[Any, Any, None]]


class RedisPubSubSubscriber:
    """Background task that listens to a Redis channel and dispatches events."""

    def __init__(
        self,
        redis: aioredis.Redis,
        channel: str,
        callback: OnEventCallback,
    ) -> None:
        self._redis = redis
        self._channel = channel
        self._callback = callback
        self._task: asyncio.Task[None] | None = None

    async def start(self) -> None:
        self._task = asyncio.create_task(self._listen(), name="redis-pubsub-subscriber")
        logger.info("Redis Pub/Sub subscriber started on channel=%s", self._channel)

    async def stop(self) -> None:
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            logger.info("Redis Pub/Sub subscriber stopped")

    async def _listen(self) -> None:
        pubsub = self._redis.pubsub()
        await pubsub.subscribe(self._channel)
        try:
            async for message in pubsub.listen():
                if message["type"] != "message":
                    continue
                try:
                    event_type, data = deserialize_event(message["data"])
                    await self._callback(event_type, data)
                except Exception:
                    logger.exception("Error processing pubsub message")
        finally:
            await pubsub.unsubscribe(self._channel)
            await pubsub.aclose()


class RedisFanoutRelay:
    """Implements application.ports.bus.FanoutRelay across processes.

    Events are published once; every process (this one included) delivers
    them to its own registry through ``make_fanout_callback``. Returns 0
    because deliveries happen in the subscribers.
    """

    def __init__(self, publisher: EventPublisher, channel: str) -> None:
        self._publisher = publisher
        self._channel = channel

    async def deliver(self, user_ids: Iterable[str], event: WsOutbound) -> int:
        await self._publish({"recipients": list(user_ids), "exclude": None}, event)
        return 0

    async def broadcast(self, event: WsOutbound, *, exclude: str | None = None) -> int:
        await self._publish({"recipients": None, "exclude": exclude}, event)
        return 0

    async def _publish(self, routing: dict[str, Any], event: WsOutbound) -> None:
        payload = {
            "event_type": FANOUT_EVENT,
            **routing,
            "event": event.model_dump(mode="json", by_alias=True),
        }
        try:
            await self._publisher.publish(self._channel, payload)
        except Exception:
            # at-most-once: a lost publish is a missed push, the row is stored
            logger.exception("Failed to publish %s event", event.type)


def make_fanout_callback(local: LocalRelay) -> OnEventCallback:
    """Subscriber callback that hands relayed events to the local registry."""

    async def _on_event(event_type: str, data: dict[str, Any]) -> None:
        if event_type != FANOUT_EVENT:
            logger.debug("Ignoring pubsub event %s", event_type)
            return
        raw = json.dumps(data["event"])
        recipients = data.get("recipients")
        if recipients is None:
            await local.broadcast_raw(raw, exclude=data.get("exclude"))
        else:
            await local.deliver_raw(recipients, raw)

    return _on_event
