"""Redis Streams broker binding for domain events.

Each queue is a stream read by one consumer group. Entries carry
routing_key, payload (JSON), published_at and attempt. Acknowledge is
XACK; a negative acknowledge re-appends the entry with attempt + 1 and
acks the original in one MULTI/EXEC, so a message is never lost or
duplicated by the requeue itself.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Mapping
from dataclasses import dataclass
from datetime import datetime
from typing import Any

import redis.asyncio as redis

from app.core.config import Settings
from app.domain.exceptions import UpstreamUnavailableException
from app.infrastructure.messaging.topics import (
    QUEUE_BINDINGS,
    QueueBinding,
    dead_letter_stream,
    streams_for,
)
from app.shared.utils.datetime import parse_timestamp, utc_now

logger = logging.getLogger(__name__)

BROKER = "broker"


@dataclass(frozen=True)
class StreamMessage:
    """One delivered stream entry."""

    stream: str
    message_id: str
    routing_key: str
    payload: str
    published_at: datetime | None
    attempt: int

    @classmethod
    def from_entry(
        cls, stream: str, message_id: str, fields: Mapping[str, str] | None
    ) -> StreamMessage:
        # A pending entry whose data was trimmed comes back with no fields.
        fields = fields or {}
        try:
            attempt = max(1, int(fields.get("attempt", "1")))
        except ValueError:
            attempt = 1
        return cls(
            stream=stream,
            message_id=message_id,
            routing_key=fields.get("routing_key", ""),
            payload=fields.get("payload", ""),
            published_at=parse_timestamp(fields.get("published_at")),
            attempt=attempt,
        )

    def fields(self, **overrides: Any) -> dict[str, str]:
        data: dict[str, Any] = {
            "routing_key": self.routing_key,
            "payload": self.payload,
            "published_at": self.published_at.isoformat() if self.published_at else "",
            "attempt": self.attempt,
        }
        data.update(overrides)
        return {key: str(value) for key, value in data.items()}


def create_redis_client(settings: Settings) -> redis.Redis:
    """Build the async Redis client used by the broker (not connected yet)."""
    return redis.Redis(
        host=settings.redis_host,
        port=settings.redis_port,
        db=settings.redis_db,
        password=settings.redis_password.get_secret_value() if settings.redis_password else None,
        decode_responses=True,
        socket_connect_timeout=5,
        socket_keepalive=True,
    )


class RedisStreamBroker:
    """Consumer-group operations over the queue streams.

    Connection and timeout errors are raised as UpstreamUnavailableException
    so the consumer can reconnect with backoff.
    """

    def __init__(
        self,
        client: redis.Redis,
        *,
        group: str,
        consumer_name: str,
        block_ms: int = 1000,
        bindings: tuple[QueueBinding, ...] = QUEUE_BINDINGS,
    ) -> None:
        self.redis = client
        self.group = group
        self.consumer_name = consumer_name
        self.block_ms = block_ms
        self.bindings = bindings

    @property
    def streams(self) -> list[str]:
        return [b.stream for b in self.bindings]

    async def ping(self) -> None:
        try:
            await self.redis.ping()
        except (redis.ConnectionError, redis.TimeoutError) as e:
            raise UpstreamUnavailableException(BROKER, str(e)) from e

    async def declare(self) -> None:
        """Create each queue stream and its consumer group if missing."""
        for stream in self.streams:
            try:
                await self.redis.xgroup_create(stream, self.group, id="0", mkstream=True)
                logger.info("Created consumer group %s on %s", self.group, stream)
            except redis.ResponseError as e:
                if "BUSYGROUP" not in str(e):
                    raise
            except (redis.ConnectionError, redis.TimeoutError) as e:
                raise UpstreamUnavailableException(BROKER, str(e)) from e

    async def read(self, stream: str, *, pending: bool = False) -> StreamMessage | None:
        """Read the next entry for this consumer.

        pending=True re-reads entries delivered to this consumer but never
        acknowledged (returns immediately); otherwise blocks up to block_ms
        for a new entry. Returns None when there is nothing to read.
        """
        try:
            response = await self.redis.xreadgroup(
                self.group,
                self.consumer_name,
                {stream: "0" if pending else ">"},
                count=1,
                block=None if pending else self.block_ms,
            )
        except (redis.ConnectionError, redis.TimeoutError) as e:
            raise UpstreamUnavailableException(BROKER, str(e)) from e
        for _stream, entries in response or []:
            for message_id, fields in entries:
                return StreamMessage.from_entry(stream, message_id, fields)
        return None

    async def ack(self, message: StreamMessage) -> None:
        try:
            await self.redis.xack(message.stream, self.group, message.message_id)
        except (redis.ConnectionError, redis.TimeoutError) as e:
            raise UpstreamUnavailableException(BROKER, str(e)) from e

    async def requeue(self, message: StreamMessage) -> str:
        """Negative acknowledge: re-append with attempt + 1, ack the original."""
        try:
            async with self.redis.pipeline(transaction=True) as pipe:
                pipe.xadd(message.stream, message.fields(attempt=message.attempt + 1))
                pipe.xack(message.stream, self.group, message.message_id)
                new_id, _ = await pipe.execute()
        except (redis.ConnectionError, redis.TimeoutError) as e:
            raise UpstreamUnavailableException(BROKER, str(e)) from e
        return new_id

    async def dead_letter(self, message: StreamMessage, error: Mapping[str, Any]) -> str:
        """Move message to <stream>.dead_letter with the error, ack the original."""
        target = dead_letter_stream(message.stream)
        try:
            async with self.redis.pipeline(transaction=True) as pipe:
                pipe.xadd(
                    target,
                    message.fields(
                        original_id=message.message_id,
                        error=json.dumps(dict(error), default=str),
                        failed_at=utc_now().isoformat(),
                    ),
                )
                pipe.xack(message.stream, self.group, message.message_id)
                dead_id, _ = await pipe.execute()
        except (redis.ConnectionError, redis.TimeoutError) as e:
            raise UpstreamUnavailableException(BROKER, str(e)) from e
        return dead_id

    async def close(self) -> None:
        await self.redis.close()


class EventPublisher:
    """Publishes domain events to every stream bound to the routing key."""

    def __init__(
        self,
        client: redis.Redis,
        bindings: tuple[QueueBinding, ...] = QUEUE_BINDINGS,
    ) -> None:
        self.redis = client
        self.bindings = bindings

    async def publish(self, routing_key: str, payload: Mapping[str, Any]) -> list[str]:
        """Append the event to each bound stream.

        Returns:
            Entry ids written (empty when no queue is bound to routing_key).
        """
        streams = streams_for(routing_key, self.bindings)
        if not streams:
            logger.warning("No queue bound to %s; event not published", routing_key)
            return []
        fields = {
            "routing_key": routing_key,
            "payload": json.dumps(dict(payload), default=str),
            "published_at": utc_now().isoformat(),
            "attempt": "1",
        }
        try:
            ids = [await self.redis.xadd(stream, fields) for stream in streams]
        except (redis.ConnectionError, redis.TimeoutError) as e:
            raise UpstreamUnavailableException(BROKER, str(e)) from e
        logger.debug("Published %s to %s", routing_key, ", ".join(streams))
        return ids
