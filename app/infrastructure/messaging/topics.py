"""Queue bindings and topic matching for domain event routing keys.

One durable stream per queue. Patterns follow AMQP topic semantics:
words are dot-separated, `*` matches exactly one word and `#` matches
zero or more words.
"""

from __future__ import annotations

from dataclasses import dataclass

DEAD_LETTER_SUFFIX = ".dead_letter"


@dataclass(frozen=True)
class QueueBinding:
    """A stream and the routing-key patterns routed into it."""

    stream: str
    patterns: tuple[str, ...]

    def accepts(self, routing_key: str) -> bool:
        return any(topic_matches(p, routing_key) for p in self.patterns)


QUEUE_BINDINGS: tuple[QueueBinding, ...] = (
    QueueBinding("search.work_items", ("work_item.*",)),
    QueueBinding("search.users", ("user.*",)),
    QueueBinding("search.templates", ("template.*",)),
    QueueBinding("search.reindex", ("search.reindex.*",)),
)


def topic_matches(pattern: str, routing_key: str) -> bool:
    """Return True if routing_key matches pattern (AMQP topic rules)."""
    return _match(pattern.split("."), routing_key.split("."))


def _match(pattern: list[str], words: list[str]) -> bool:
    if not pattern:
        return not words
    head, rest = pattern[0], pattern[1:]
    if head == "#":
        return any(_match(rest, words[i:]) for i in range(len(words) + 1))
    if not words:
        return False
    if head == "*" or head == words[0]:
        return _match(rest, words[1:])
    return False


def streams_for(
    routing_key: str, bindings: tuple[QueueBinding, ...] = QUEUE_BINDINGS
) -> list[str]:
    """Streams a message with routing_key is delivered to (may be empty)."""
    return [b.stream for b in bindings if b.accepts(routing_key)]


def dead_letter_stream(stream: str) -> str:
    return f"{stream}{DEAD_LETTER_SUFFIX}"
