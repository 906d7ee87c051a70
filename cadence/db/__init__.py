"""
Persistence collaborator: SQLAlchemy models and the StateStore.
"""

from cadence.db.models import Base
from cadence.db.state_store import StateStore

__all__ = ["Base", "StateStore"]
