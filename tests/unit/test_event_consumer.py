"""Unit tests for EventConsumer (ack policy, requeue, dead-letter, lifecycle)."""

import asyncio
import json
from datetime import UTC, datetime
from unittest.mock import AsyncMock

import pytest
from redis.asyncio import ResponseError

from app.domain.exceptions import (
    IndexOperationException,
    ResourceNotFoundException,
    UpstreamUnavailableException,
)
from app.infrastructure.messaging.event_consumer import (
    ConsumerState,
    EventConsumer,
    MessageOutcome,
)
from app.infrastructure.messaging.redis_streams import StreamMessage

PUBLISHED = datetime(2024, 5, 1, 12, 0, tzinfo=UTC)
CREATED = json.dumps({"workItem": {"id": "wi1", "tenant_id": "t1", "title": "Launch plan"}})


def _message(
    routing_key: str = "work_item.created",
    payload: str = CREATED,
    attempt: int = 1,
    message_id: str = "1-0",
) -> StreamMessage:
    return StreamMessage(
        stream="search.work_items",
        message_id=message_id,
        routing_key=routing_key,
        payload=payload,
        published_at=PUBLISHED,
        attempt=attempt,
    )


class FakeBroker:
    """Broker double: serves pending entries, then new ones, and records acks."""

    streams = ["search.work_items"]

    def __init__(self, pending=(), new=()) -> None:
        self.pending = list(pending)
        self.new = list(new)
        self.acked: list[str] = []
        self.closed = False

    async def ping(self) -> None:
        return None

    async def declare(self) -> None:
        return None

    async def read(self, stream: str, *, pending: bool = False):
        source = self.pending if pending else self.new
        if source:
            await asyncio.sleep(0)
            return source.pop(0)
        if not pending:
            await asyncio.sleep(0.01)
        return None

    async def ack(self, message: StreamMessage) -> None:
        self.acked.append(message.message_id)

    async def close(self) -> None:
        self.closed = True


class GroupLostBroker(FakeBroker):
    """Fails its first read as if the consumer group vanished with a broker restart."""

    def __init__(self, *args, **kwargs) -> None:
        super().__init__(*args, **kwargs)
        self.declared = 0
        self.failed = False

    async def declare(self) -> None:
        self.declared += 1

    async def read(self, stream: str, *, pending: bool = False):
        if not self.failed:
            self.failed = True
            raise ResponseError("NOGROUP No such key 'search.work_items' or consumer group")
        return await super().read(stream, pending=pending)


@pytest.fixture
def broker() -> AsyncMock:
    mock = AsyncMock()
    mock.streams = ["search.work_items"]
    return mock


@pytest.fixture
def synchronizer() -> AsyncMock:
    return AsyncMock()


@pytest.fixture
def consumer(broker: AsyncMock, synchronizer: AsyncMock) -> EventConsumer:
    return EventConsumer(broker, synchronizer, max_deliveries=3)


async def test_applied_message_is_acked(
    consumer: EventConsumer, broker: AsyncMock, synchronizer: AsyncMock
) -> None:
    message = _message()
    assert await consumer.handle(message) == MessageOutcome.ACKED
    synchronizer.apply.assert_awaited_once()
    broker.ack.assert_awaited_once_with(message)
    assert consumer.stats.processed == 1
    assert consumer.stats.acked == 1


async def test_poison_message_is_acked_and_dropped(
    consumer: EventConsumer, broker: AsyncMock, synchronizer: AsyncMock
) -> None:
    message = _message(payload="{broken")
    assert await consumer.handle(message) == MessageOutcome.DROPPED
    synchronizer.apply.assert_not_awaited()
    broker.ack.assert_awaited_once_with(message)
    broker.dead_letter.assert_not_awaited()
    assert consumer.stats.dropped == 1


async def test_unrecognized_routing_key_is_dropped(
    consumer: EventConsumer, broker: AsyncMock, synchronizer: AsyncMock
) -> None:
    assert await consumer.handle(_message(routing_key="invoice.paid")) == MessageOutcome.DROPPED
    synchronizer.apply.assert_not_awaited()
    broker.ack.assert_awaited_once()


async def test_upstream_failure_requeues_without_ack(
    consumer: EventConsumer, broker: AsyncMock, synchronizer: AsyncMock
) -> None:
    synchronizer.apply.side_effect = UpstreamUnavailableException("search_engine", "timeout")
    message = _message(attempt=1)
    assert await consumer.handle(message) == MessageOutcome.REQUEUED
    broker.requeue.assert_awaited_once_with(message)
    broker.ack.assert_not_awaited()
    assert consumer.stats.requeued == 1


async def test_upstream_failure_on_last_delivery_dead_letters(
    consumer: EventConsumer, broker: AsyncMock, synchronizer: AsyncMock
) -> None:
    synchronizer.apply.side_effect = UpstreamUnavailableException("search_engine", "timeout")
    message = _message(attempt=3)
    assert await consumer.handle(message) == MessageOutcome.DEAD_LETTERED
    broker.requeue.assert_not_awaited()
    args = broker.dead_letter.await_args.args
    assert args[0] == message
    assert args[1]["error"] == "UPSTREAM_UNAVAILABLE"
    assert consumer.stats.dead_lettered == 1


@pytest.mark.parametrize(
    "error",
    [
        ResourceNotFoundException("work_items", "wi1"),
        IndexOperationException("upsert", "HTTP 400"),
    ],
)
async def test_terminal_failure_dead_letters_immediately(
    consumer: EventConsumer, broker: AsyncMock, synchronizer: AsyncMock, error: Exception
) -> None:
    synchronizer.apply.side_effect = error
    assert await consumer.handle(_message(attempt=1)) == MessageOutcome.DEAD_LETTERED
    broker.requeue.assert_not_awaited()
    broker.ack.assert_not_awaited()


async def test_unexpected_error_is_requeued(
    consumer: EventConsumer, broker: AsyncMock, synchronizer: AsyncMock
) -> None:
    synchronizer.apply.side_effect = RuntimeError("boom")
    assert await consumer.handle(_message()) == MessageOutcome.REQUEUED
    broker.ack.assert_not_awaited()


async def test_gives_up_after_reconnect_attempts(broker: AsyncMock, synchronizer: AsyncMock) -> None:
    broker.ping.side_effect = UpstreamUnavailableException("broker", "connection refused")
    consumer = EventConsumer(
        broker, synchronizer, reconnect_max_attempts=2, initial_backoff=0, max_backoff=0
    )
    await consumer.run()
    assert consumer.state == ConsumerState.TERMINATED
    assert broker.ping.await_count == 3


async def test_pending_entries_are_handled_before_new_ones() -> None:
    broker = FakeBroker(
        pending=[_message(message_id="1-0", attempt=2)],
        new=[_message(message_id="2-0")],
    )
    synchronizer = AsyncMock()
    consumer = EventConsumer(broker, synchronizer)

    await consumer.start()
    for _ in range(200):
        if len(broker.acked) == 2:
            break
        await asyncio.sleep(0.01)
    assert consumer.state == ConsumerState.CONNECTED

    await consumer.stop(timeout=1.0)
    assert broker.acked == ["1-0", "2-0"]
    assert broker.closed is True
    assert consumer.state == ConsumerState.TERMINATED
    assert consumer.stats.to_dict()["acked"] == 2


async def test_stop_without_start_closes_broker(consumer: EventConsumer, broker: AsyncMock) -> None:
    await consumer.stop()
    broker.close.assert_awaited_once()
    assert consumer.state == ConsumerState.TERMINATED


async def _wait_for(condition, attempts: int = 200) -> None:
    for _ in range(attempts):
        if condition():
            return
        await asyncio.sleep(0.01)


async def test_missing_group_reconnects_and_declares_again() -> None:
    broker = GroupLostBroker(new=[_message(message_id="5-0")])
    consumer = EventConsumer(broker, AsyncMock(), initial_backoff=0, max_backoff=0)

    await consumer.start()
    await _wait_for(lambda: broker.acked == ["5-0"])

    assert broker.declared == 2
    assert broker.acked == ["5-0"]
    assert consumer.state == ConsumerState.CONNECTED
    await consumer.stop(timeout=1.0)


async def test_unexpected_broker_error_terminates_after_reconnect_budget(
    broker: AsyncMock, synchronizer: AsyncMock
) -> None:
    broker.read.side_effect = ResponseError("NOGROUP gone")
    consumer = EventConsumer(
        broker, synchronizer, reconnect_max_attempts=2, initial_backoff=0, max_backoff=0
    )
    await consumer.run()
    assert consumer.state == ConsumerState.TERMINATED
    assert broker.declare.await_count == 3
