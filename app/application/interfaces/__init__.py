"""Application interfaces (ports): search engine and reindex protocols.

Define contracts for infrastructure implementations (DIP).
No runtime imports from app.infrastructure or app.api.
"""

from app.application.interfaces.gateways import IIndexGateway, IReindexCoordinator

__all__ = [
    "IIndexGateway",
    "IReindexCoordinator",
]
