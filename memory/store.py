"""
Memory Store - Long-term memory for the agent.

Handles memory-related operations:
- Typed, importance-weighted memory records with optional expiry
- Append-only writes (existing records are never mutated)
- Relevance-ranked retrieval for a free-text query
- Eviction of expired records

The orchestrator only appends and queries. Pruning happens independently
of any run.
"""

import json
import logging
import re
import threading
import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any, Dict, List, Optional, Set

logger = logging.getLogger(__name__)


# ============================================================================
# DATA STRUCTURES
# ============================================================================

class MemoryType(Enum):
    """Kinds of memory the agent keeps."""
    INTERACTION = "interaction"
    PATTERN = "pattern"
    PREFERENCE = "preference"
    FACT = "fact"


MIN_IMPORTANCE = 1
MAX_IMPORTANCE = 5


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _as_utc(value: datetime) -> datetime:
    """Naive datetimes are taken to be UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


@dataclass(frozen=True)
class MemoryRecord:
    """
    A single memory.

    Attributes:
        type: Kind of memory
        content: Opaque payload (must be JSON-serializable for file stores)
        importance: 1 (trivia) to 5 (always worth recalling)
        id: Unique identifier
        created_at: Creation time (naive values are read as UTC)
        expires_at: Optional expiry; expired records are never retrieved
    """
    type: MemoryType
    content: Dict[str, Any]
    importance: int = 3
    id: str = field(default_factory=lambda: uuid.uuid4().hex)
    created_at: datetime = field(default_factory=_utcnow)
    expires_at: Optional[datetime] = None

    def __post_init__(self):
        if not isinstance(self.importance, int) or not (
            MIN_IMPORTANCE <= self.importance <= MAX_IMPORTANCE
        ):
            raise ValueError(
                f"importance must be an integer between {MIN_IMPORTANCE} and "
                f"{MAX_IMPORTANCE}, got {self.importance!r}"
            )
        object.__setattr__(self, "created_at", _as_utc(self.created_at))
        if self.expires_at is not None:
            object.__setattr__(self, "expires_at", _as_utc(self.expires_at))

    @classmethod
    def create(
        cls,
        type: MemoryType,
        content: Dict[str, Any],
        importance: int = 3,
        ttl: Optional[timedelta] = None,
    ) -> "MemoryRecord":
        """Build a record, deriving expires_at from an optional time-to-live."""
        created_at = _utcnow()
        return cls(
            type=type,
            content=content,
            importance=importance,
            created_at=created_at,
            expires_at=created_at + ttl if ttl else None,
        )

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        if self.expires_at is None:
            return False
        return self.expires_at <= _as_utc(now or _utcnow())

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "type": self.type.value,
            "content": self.content,
            "importance": self.importance,
            "created_at": self.created_at.isoformat(),
            "expires_at": self.expires_at.isoformat() if self.expires_at else None,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "MemoryRecord":
        expires_at = data.get("expires_at")
        return cls(
            id=data["id"],
            type=MemoryType(data["type"]),
            content=data.get("content") or {},
            importance=int(data.get("importance", 3)),
            created_at=datetime.fromisoformat(data["created_at"]),
            expires_at=datetime.fromisoformat(expires_at) if expires_at else None,
        )


# ============================================================================
# RANKING
# ============================================================================

_TOKEN_RE = re.compile(r"[a-z0-9]+")

# Words too common to signal relevance
_STOPWORDS = {
    "the", "and", "for", "with", "that", "this", "are", "was", "you", "your",
    "all", "any", "can", "from", "have", "has", "into", "our", "out", "use",
    "like", "what", "how", "who", "please",
}

# Reusable knowledge ranks above one-off transcripts of past runs
_TYPE_BONUS = {
    MemoryType.PATTERN: 1.0,
    MemoryType.PREFERENCE: 1.0,
    MemoryType.FACT: 0.5,
    MemoryType.INTERACTION: 0.0,
}


def tokenize(text: str) -> Set[str]:
    """Lowercase word tokens, without stopwords and one/two-letter words."""
    return {
        t for t in _TOKEN_RE.findall(text.lower())
        if len(t) > 2 and t not in _STOPWORDS
    }


def score_record(query_tokens: Set[str], record: MemoryRecord) -> float:
    """
    Relevance of a record for a tokenized query, in [0, 1].

    Keyword overlap (70% weight), importance (20% weight) and memory type
    (10% weight). Returns 0.0 when a non-empty query shares no keyword with
    the record.
    """
    importance = record.importance / MAX_IMPORTANCE
    type_bonus = _TYPE_BONUS.get(record.type, 0.0)

    if not query_tokens:
        return 0.2 * importance + 0.1 * type_bonus

    content_tokens = tokenize(json.dumps(record.content, sort_keys=True, default=str))
    overlap = len(query_tokens & content_tokens) / len(query_tokens)
    if overlap == 0:
        return 0.0

    return 0.7 * overlap + 0.2 * importance + 0.1 * type_bonus


def rank_records(
    records: List[MemoryRecord],
    query: str,
    limit: int,
    now: Optional[datetime] = None,
) -> List[MemoryRecord]:
    """
    Rank live records for a query.

    Deterministic for identical inputs: ties break on importance, then
    newest first, then id.
    """
    if limit <= 0:
        return []

    now = now or _utcnow()
    query_tokens = tokenize(query or "")

    scored = []
    for record in records:
        if record.is_expired(now):
            continue
        score = score_record(query_tokens, record)
        if query_tokens and score == 0.0:
            continue
        scored.append((score, record))

    scored.sort(key=lambda item: (
        -item[0],
        -item[1].importance,
        -item[1].created_at.timestamp(),
        item[1].id,
    ))
    return [record for _, record in scored[:limit]]


# ============================================================================
# STORES
# ============================================================================

class MemoryStore(ABC):
    """Append/query contract every memory backend implements."""

    @abstractmethod
    def append(self, record: MemoryRecord) -> None:
        """Persist a new record."""

    @abstractmethod
    def retrieve_relevant(self, query: str, limit: int) -> List[MemoryRecord]:
        """Return at most `limit` non-expired records, most relevant first."""

    @abstractmethod
    def prune_expired(self, now: Optional[datetime] = None) -> int:
        """Evict expired records and return how many were removed."""


class InMemoryMemoryStore(MemoryStore):
    """Process-local memory store, safe for concurrent append/query."""

    def __init__(self, records: Optional[List[MemoryRecord]] = None):
        self._records: List[MemoryRecord] = list(records or [])
        self._lock = threading.RLock()

    def append(self, record: MemoryRecord) -> None:
        if not isinstance(record, MemoryRecord):
            raise TypeError(f"Expected MemoryRecord, got {type(record).__name__}")
        with self._lock:
            self._records.append(record)
        logger.debug(f"🧠 Stored {record.type.value} memory {record.id}")

    def retrieve_relevant(self, query: str, limit: int) -> List[MemoryRecord]:
        with self._lock:
            snapshot = list(self._records)
        return rank_records(snapshot, query, limit)

    def prune_expired(self, now: Optional[datetime] = None) -> int:
        now = now or _utcnow()
        with self._lock:
            before = len(self._records)
            self._records = [r for r in self._records if not r.is_expired(now)]
            removed = before - len(self._records)
        if removed:
            logger.info(f"🧹 Pruned {removed} expired memories")
        return removed

    def all_records(self) -> List[MemoryRecord]:
        """Copy of every stored record, including expired ones."""
        with self._lock:
            return list(self._records)

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)
