"""
Long-term Memory Module

Typed, importance-weighted memory records and the stores that keep them:
- MemoryStore: the append/query contract used by the agent
- InMemoryMemoryStore: process-local reference implementation
- JsonFileMemoryStore: the same, persisted to a JSON file
"""

from .store import (
    MemoryType,
    MemoryRecord,
    MemoryStore,
    InMemoryMemoryStore,
    rank_records,
    tokenize,
)

from .json_store import JsonFileMemoryStore

__all__ = [
    "MemoryType",
    "MemoryRecord",
    "MemoryStore",
    "InMemoryMemoryStore",
    "JsonFileMemoryStore",
    "rank_records",
    "tokenize",
]
