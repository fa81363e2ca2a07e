"""Mint a development JWT for calling the search API.

Usage:
    uv run python -m scripts.issue_token <tenant_id> <user_id> [role] [minutes]

Role defaults to "member"; use an admin role (see ADMIN_ROLES, default
admin,CEO,President) for /search/stats and /search/index. Signs with
SECRET_KEY from the environment or .env.
"""

import sys
from datetime import timedelta
from pathlib import Path

from dotenv import load_dotenv

from app.infrastructure.security.jwt import create_access_token


def main() -> None:
    if len(sys.argv) < 3:
        print(
            "Usage: uv run python -m scripts.issue_token <tenant_id> <user_id> [role] [minutes]",
            file=sys.stderr,
        )
        sys.exit(1)
    tenant_id = sys.argv[1]
    user_id = sys.argv[2]
    role = sys.argv[3] if len(sys.argv) > 3 else "member"
    minutes = int(sys.argv[4]) if len(sys.argv) > 4 else None

    load_dotenv(Path(__file__).resolve().parent.parent / ".env", override=True)
    token = create_access_token(
        {"userId": user_id, "tenantId": tenant_id, "role": role},
        expires_delta=timedelta(minutes=minutes) if minutes else None,
    )
    print(token)


if __name__ == "__main__":
    main()
