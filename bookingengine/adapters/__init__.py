"""
Adapters layer - Data store integrations behind the query façade.
"""

from .memory_store import InMemoryReservationStore
from .rest_store import RestReservationStore

__all__ = ["InMemoryReservationStore", "RestReservationStore"]
