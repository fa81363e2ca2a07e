"""Event consumer: broker messages -> IndexSynchronizer, with explicit ack policy.

State machine: disconnected -> connecting -> connected -> (error)
reconnecting -> connected | terminated. One task per queue; within a queue
messages are handled one at a time, queues run independently.

Acknowledge policy per message:
- applied: ack.
- poison payload or unrecognized routing key: log, ack, drop.
- engine unavailable after the synchronizer's retries, or an unexpected
  error: requeue (attempt + 1) until max_deliveries, then dead-letter.
- other terminal errors (not found, rejected write): dead-letter at once.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from dataclasses import asdict, dataclass
from datetime import datetime
from enum import Enum
from typing import TYPE_CHECKING, Any

from app.domain.events import DomainEvent, UnrecognizedEvent
from app.domain.exceptions import (
    PoisonMessageException,
    SearchServiceException,
    UpstreamUnavailableException,
)
from app.infrastructure.messaging.event_parser import parse_event
from app.shared.telemetry.tracing import add_span_attributes, traced

if TYPE_CHECKING:
    from app.application.use_cases.index_sync import IndexSynchronizer
    from app.infrastructure.messaging.redis_streams import RedisStreamBroker, StreamMessage

logger = logging.getLogger(__name__)


class ConsumerState(str, Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    RECONNECTING = "reconnecting"
    TERMINATED = "terminated"


class MessageOutcome(str, Enum):
    ACKED = "acked"
    REQUEUED = "requeued"
    DEAD_LETTERED = "dead_lettered"
    DROPPED = "dropped"


@dataclass
class ConsumerStats:
    """Counters since start. dropped messages are also counted as acked."""

    processed: int = 0
    acked: int = 0
    requeued: int = 0
    dead_lettered: int = 0
    dropped: int = 0

    def to_dict(self) -> dict[str, int]:
        return asdict(self)


class EventConsumer:
    """Consumes queue streams and applies each event through the synchronizer."""

    def __init__(
        self,
        broker: RedisStreamBroker,
        synchronizer: IndexSynchronizer,
        *,
        max_deliveries: int = 5,
        reconnect_max_attempts: int = 10,
        initial_backoff: float = 1.0,
        max_backoff: float = 30.0,
        parser: Callable[[str, str, datetime | None], DomainEvent] = parse_event,
    ) -> None:
        self.broker = broker
        self.synchronizer = synchronizer
        self.max_deliveries = max(1, max_deliveries)
        self.reconnect_max_attempts = reconnect_max_attempts
        self.initial_backoff = initial_backoff
        self.max_backoff = max_backoff
        self._parse = parser
        self.stats = ConsumerStats()
        self._state = ConsumerState.DISCONNECTED
        self._stopping = asyncio.Event()
        self._task: asyncio.Task[None] | None = None
        self._read_ok = False

    @property
    def state(self) -> ConsumerState:
        return self._state

    def _set_state(self, state: ConsumerState) -> None:
        if state != self._state:
            logger.info("Event consumer %s -> %s", self._state.value, state.value)
            self._state = state

    async def start(self) -> None:
        """Start the supervisor task (returns immediately)."""
        if self._task is not None and not self._task.done():
            return
        self._stopping.clear()
        self._task = asyncio.create_task(self.run(), name="event-consumer")

    async def wait(self) -> None:
        """Wait until the supervisor exits (stopped or reconnects exhausted)."""
        if self._task is not None:
            await self._task

    async def stop(self, timeout: float | None = 30.0) -> None:
        """Stop accepting messages, let in-flight handling finish, then close."""
        self._stopping.set()
        if self._task is not None and not self._task.done():
            try:
                await asyncio.wait_for(asyncio.shield(self._task), timeout)
            except asyncio.TimeoutError:
                logger.warning("Event consumer did not drain within %ss; cancelling", timeout)
                self._task.cancel()
                await asyncio.gather(self._task, return_exceptions=True)
        elif self._task is not None and not self._task.cancelled() and self._task.exception():
            logger.error("Event consumer had failed: %r", self._task.exception())
        await self.broker.close()
        self._set_state(ConsumerState.TERMINATED)
        logger.info("Event consumer stopped: %s", self.stats.to_dict())

    async def run(self) -> None:
        """Connect, declare bindings, consume; reconnect with capped backoff.

        Any broker failure (connection loss, a missing consumer group after a
        broker restart, an unexpected error) moves to RECONNECTING, which
        declares the bindings again. The loop ends in TERMINATED when the
        reconnect budget runs out or it exits for any reason other than stop().
        """
        failures = 0
        try:
            while not self._stopping.is_set():
                self._set_state(
                    ConsumerState.CONNECTING if failures == 0 else ConsumerState.RECONNECTING
                )
                try:
                    await self.broker.ping()
                    await self.broker.declare()
                    self._set_state(ConsumerState.CONNECTED)
                    await self._consume_all()
                except Exception as e:
                    if self._stopping.is_set():
                        logger.warning("Broker error during shutdown: %r", e)
                        return
                    # Reads succeeded since the last failure: start a fresh budget.
                    if self._read_ok:
                        failures = 0
                    self._read_ok = False
                    failures += 1
                    if isinstance(e, UpstreamUnavailableException):
                        reason = e.details.get("reason")
                        logger.warning("Broker connection lost: %s", reason)
                    else:
                        reason = f"{type(e).__name__}: {e}"
                        logger.error("Broker error in event consumer: %s", reason, exc_info=e)
                    if failures > self.reconnect_max_attempts:
                        logger.error(
                            "Broker unavailable after %d reconnect attempts: %s",
                            self.reconnect_max_attempts,
                            reason,
                        )
                        return
                    delay = min(self.max_backoff, self.initial_backoff * (2 ** (failures - 1)))
                    self._set_state(ConsumerState.RECONNECTING)
                    logger.warning(
                        "Reconnecting event consumer %d/%d in %.1fs",
                        failures,
                        self.reconnect_max_attempts,
                        delay,
                    )
                    await self._pause(delay)
        finally:
            if not self._stopping.is_set():
                self._set_state(ConsumerState.TERMINATED)

    async def _pause(self, delay: float) -> None:
        try:
            await asyncio.wait_for(self._stopping.wait(), delay)
        except asyncio.TimeoutError:
            pass

    async def _consume_all(self) -> None:
        tasks = [
            asyncio.create_task(self._consume_queue(stream), name=f"consume:{stream}")
            for stream in self.broker.streams
        ]
        try:
            done, _ = await asyncio.wait(tasks, return_when=asyncio.FIRST_EXCEPTION)
        finally:
            for task in tasks:
                if not task.done():
                    task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
        for task in done:
            if not task.cancelled() and task.exception() is not None:
                raise task.exception()  # type: ignore[misc]

    async def _consume_queue(self, stream: str) -> None:
        # Entries delivered before a crash or disconnect, never acknowledged.
        while not self._stopping.is_set():
            message = await self.broker.read(stream, pending=True)
            self._read_ok = True
            if message is None:
                break
            await self.handle(message)
        while not self._stopping.is_set():
            message = await self.broker.read(stream)
            self._read_ok = True
            if message is None or self._stopping.is_set():
                continue
            await self.handle(message)

    @traced("events.handle")
    async def handle(self, message: StreamMessage) -> MessageOutcome:
        """Parse, apply and acknowledge one message according to the policy above."""
        self.stats.processed += 1
        add_span_attributes(
            stream=message.stream,
            routing_key=message.routing_key,
            attempt=message.attempt,
        )
        try:
            event = self._parse(message.routing_key, message.payload, message.published_at)
        except PoisonMessageException as e:
            logger.error(
                "Dropping poison message %s from %s (%s): %s",
                message.message_id,
                message.stream,
                message.routing_key,
                e.details.get("reason"),
            )
            return await self._drop(message)

        if isinstance(event, UnrecognizedEvent):
            logger.warning(
                "Dropping message %s with unrecognized routing key %r",
                message.message_id,
                message.routing_key,
            )
            return await self._drop(message)

        try:
            await self.synchronizer.apply(event)
        except UpstreamUnavailableException as e:
            return await self._requeue_or_dead_letter(message, e.to_dict())
        except SearchServiceException as e:
            return await self._dead_letter(message, e.to_dict())
        except Exception as e:
            logger.exception("Unexpected error handling %s (%s)", message.message_id, message.routing_key)
            return await self._requeue_or_dead_letter(
                message, {"error": type(e).__name__, "message": str(e)}
            )

        await self.broker.ack(message)
        self.stats.acked += 1
        return MessageOutcome.ACKED

    async def _drop(self, message: StreamMessage) -> MessageOutcome:
        await self.broker.ack(message)
        self.stats.acked += 1
        self.stats.dropped += 1
        return MessageOutcome.DROPPED

    async def _requeue_or_dead_letter(
        self, message: StreamMessage, error: dict[str, Any]
    ) -> MessageOutcome:
        if message.attempt >= self.max_deliveries:
            return await self._dead_letter(message, error)
        await self.broker.requeue(message)
        self.stats.requeued += 1
        logger.warning(
            "Requeued %s (%s), attempt %d/%d: %s",
            message.message_id,
            message.routing_key,
            message.attempt,
            self.max_deliveries,
            error.get("message"),
        )
        return MessageOutcome.REQUEUED

    async def _dead_letter(
        self, message: StreamMessage, error: dict[str, Any]
    ) -> MessageOutcome:
        await self.broker.dead_letter(message, error)
        self.stats.dead_lettered += 1
        logger.error(
            "Dead-lettered %s (%s) after %d attempt(s): %s",
            message.message_id,
            message.routing_key,
            message.attempt,
            error.get("message"),
        )
        return MessageOutcome.DEAD_LETTERED
