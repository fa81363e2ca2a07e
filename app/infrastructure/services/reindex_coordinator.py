"""Bulk reindex collaborator (implements IReindexCoordinator).

Full resynchronization needs the authoritative data store, which this
service does not own. Requests are recorded and logged for the owning
service to act on.
"""

from __future__ import annotations

import logging
from collections import deque
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from app.domain.events import ReindexRequested

logger = logging.getLogger(__name__)


class LoggingReindexCoordinator:
    """Records reindex requests (oldest first, bounded) and logs them."""

    def __init__(self, history_size: int = 100) -> None:
        self.requests: deque[ReindexRequested] = deque(maxlen=history_size)

    async def request_reindex(self, request: ReindexRequested) -> None:
        self.requests.append(request)
        if request.tenant_id:
            logger.info(
                "Reindex %s requested for tenant %s", request.scope.value, request.tenant_id
            )
        elif request.document_type:
            logger.info(
                "Reindex %s requested for type %s", request.scope.value, request.document_type
            )
        else:
            logger.info("Full reindex requested")
