"""
Transcript - the conversation state of one agent run.

Append-only ordered list of role-tagged entries. It is the only thing the
orchestrator mutates turn by turn, and it is never shared outside a run:
the planner receives a deep copy.
"""

import copy
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Iterator, List, Optional


class Role(Enum):
    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"
    TOOL = "tool"


@dataclass(frozen=True)
class TranscriptEntry:
    role: Role
    content: str
    name: Optional[str] = None

    def to_message(self) -> Dict[str, Any]:
        message: Dict[str, Any] = {"role": self.role.value, "content": self.content}
        if self.name:
            message["name"] = self.name
        return message


class Transcript:
    """Ordered, append-only sequence of TranscriptEntry."""

    def __init__(self):
        self._entries: List[TranscriptEntry] = []

    def append(self, role: Role, content: str, name: Optional[str] = None) -> TranscriptEntry:
        entry = TranscriptEntry(role=role, content=content, name=name)
        self._entries.append(entry)
        return entry

    def __iter__(self) -> Iterator[TranscriptEntry]:
        return iter(list(self._entries))

    def __len__(self) -> int:
        return len(self._entries)

    def last_assistant_text(self) -> Optional[str]:
        """Content of the most recent non-empty assistant entry."""
        for entry in reversed(self._entries):
            if entry.role is Role.ASSISTANT and entry.content:
                return entry.content
        return None

    def to_messages(self) -> List[Dict[str, Any]]:
        """Plain-dict copy of the transcript, safe to hand to the planner."""
        return copy.deepcopy([e.to_message() for e in self._entries])
