"""
JSON-file backed memory store.

Keeps the working set in memory and rewrites the whole file after every
append or prune. Intended for single-process deployments and local
development; swap in a database-backed MemoryStore for anything larger.
"""

import json
import logging
import os
import tempfile
from datetime import datetime
from pathlib import Path
from typing import List, Optional, Union

from .store import InMemoryMemoryStore, MemoryRecord

logger = logging.getLogger(__name__)


class JsonFileMemoryStore(InMemoryMemoryStore):
    """
    Memory store persisted to a JSON file.

    Args:
        path: File holding a JSON list of serialized records. Created on
            first write if missing.

    Raises:
        ValueError: If the file exists but does not contain a JSON list
    """

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)
        super().__init__(self._load())

    def _load(self) -> List[MemoryRecord]:
        if not self.path.exists():
            return []

        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except json.JSONDecodeError as e:
            raise ValueError(f"Invalid JSON in memory file {self.path}: {e}")

        if not isinstance(data, list):
            raise ValueError(f"Memory file {self.path} must contain a list of records")

        records = [MemoryRecord.from_dict(item) for item in data]
        logger.info(f"✅ Loaded {len(records)} memories from {self.path}")
        return records

    def _save(self) -> None:
        payload = [r.to_dict() for r in self.all_records()]
        self.path.parent.mkdir(parents=True, exist_ok=True)

        # Temp file + os.replace: readers never see a partial file
        fd, tmp_path = tempfile.mkstemp(dir=self.path.parent, suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(payload, f, ensure_ascii=False, indent=2, default=str)
            os.replace(tmp_path, self.path)
        except Exception:
            if os.path.exists(tmp_path):
                os.unlink(tmp_path)
            raise

    def append(self, record: MemoryRecord) -> None:
        with self._lock:
            super().append(record)
            self._save()

    def prune_expired(self, now: Optional[datetime] = None) -> int:
        with self._lock:
            removed = super().prune_expired(now)
            if removed:
                self._save()
        return removed
