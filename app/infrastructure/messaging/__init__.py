"""Messaging: Redis Streams broker binding, event parsing and consumption."""

from app.infrastructure.messaging.event_consumer import (
    ConsumerState,
    ConsumerStats,
    EventConsumer,
    MessageOutcome,
)
from app.infrastructure.messaging.event_parser import SUPPORTED_ROUTING_KEYS, parse_event
from app.infrastructure.messaging.redis_streams import (
    EventPublisher,
    RedisStreamBroker,
    StreamMessage,
    create_redis_client,
)
from app.infrastructure.messaging.topics import (
    QUEUE_BINDINGS,
    QueueBinding,
    dead_letter_stream,
    streams_for,
    topic_matches,
)

__all__ = [
    "ConsumerState",
    "ConsumerStats",
    "EventConsumer",
    "EventPublisher",
    "MessageOutcome",
    "QUEUE_BINDINGS",
    "QueueBinding",
    "RedisStreamBroker",
    "SUPPORTED_ROUTING_KEYS",
    "StreamMessage",
    "create_redis_client",
    "dead_letter_stream",
    "parse_event",
    "streams_for",
    "topic_matches",
]
