"""Infrastructure implementations of application service interfaces."""

from app.infrastructure.services.reindex_coordinator import LoggingReindexCoordinator
from app.infrastructure.services.tombstone_purger import TombstonePurger

__all__ = ["LoggingReindexCoordinator", "TombstonePurger"]
