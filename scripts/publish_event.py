"""Publish one domain event to the search queues (Redis Streams).

Usage:
    uv run python -m scripts.publish_event <routing_key> <payload.json | '{...}'>

Examples:
    uv run python -m scripts.publish_event work_item.created \
        '{"workItem": {"id": "wi1", "tenant_id": "t1", "title": "Launch plan", "status": "open"}}'
    uv run python -m scripts.publish_event work_item.deleted '{"workItemId": "wi1"}'

Requires: REDIS_HOST/REDIS_PORT (see app.core.config). The payload may be a
path to a JSON file or an inline JSON object.
"""

from __future__ import annotations

import asyncio
import json
import sys
from pathlib import Path

from dotenv import load_dotenv

from app.core.config import get_settings
from app.infrastructure.messaging.event_parser import SUPPORTED_ROUTING_KEYS
from app.infrastructure.messaging.redis_streams import EventPublisher, create_redis_client


def _project_root() -> Path:
    return Path(__file__).resolve().parent.parent


def _load_payload(arg: str) -> dict:
    path = Path(arg)
    text = path.read_text(encoding="utf-8") if path.is_file() else arg
    payload = json.loads(text)
    if not isinstance(payload, dict):
        raise ValueError("payload must be a JSON object")
    return payload


async def main() -> None:
    if len(sys.argv) < 3:
        print(
            "Usage: uv run python -m scripts.publish_event <routing_key> <payload.json | '{...}'>",
            file=sys.stderr,
        )
        sys.exit(1)
    routing_key = sys.argv[1]
    try:
        payload = _load_payload(sys.argv[2])
    except ValueError as e:
        print(f"Invalid payload: {e}", file=sys.stderr)
        sys.exit(1)
    if routing_key not in SUPPORTED_ROUTING_KEYS:
        print(f"Warning: {routing_key} is not handled by the search service", file=sys.stderr)

    load_dotenv(_project_root() / ".env", override=True)
    client = create_redis_client(get_settings())
    try:
        ids = await EventPublisher(client).publish(routing_key, payload)
    finally:
        await client.close()
    if not ids:
        print(f"No queue is bound to {routing_key}; nothing published", file=sys.stderr)
        sys.exit(1)
    for entry_id in ids:
        print(entry_id)


if __name__ == "__main__":
    asyncio.run(main())
