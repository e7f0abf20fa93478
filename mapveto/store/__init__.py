"""
Store - Persistence of veto session snapshots.

One row per session keyed by its identifier. The in-memory registry stays
authoritative; the store is written after every change and read at startup.
"""

from .database import Base, build_engine, build_sessionmaker
from .models import MatchRecord
from .repository import MatchStore

__all__ = [
    "Base",
    "build_engine",
    "build_sessionmaker",
    "MatchRecord",
    "MatchStore",
]
