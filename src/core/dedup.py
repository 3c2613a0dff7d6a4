"""Duplicate tracking and retraction bookkeeping (core domain).

Both containers are bounded and ordered: the oldest record is evicted once
capacity is exceeded. They are owned by the runtime that builds the
processor and are only mutated between awaits, so no locking is needed.
"""

from __future__ import annotations

from collections import OrderedDict
from typing import Iterator, Optional, Tuple

from core.models import ForwardedEntry

SourceRef = Tuple[int, int]


def _matches(key: SourceRef, message_id: int, chat_id: Optional[int]) -> bool:
    # Deletion updates from private chats and basic groups carry no chat id.
    return key[1] == message_id and (chat_id is None or key[0] == chat_id)


class ForwardLedger:
    """Forwarded events keyed by source message, in forwarding order."""

    def __init__(self, capacity: int) -> None:
        if capacity < 1:
            raise ValueError("Ledger capacity must be at least 1")
        self._capacity = capacity
        self._entries: "OrderedDict[SourceRef, ForwardedEntry]" = OrderedDict()

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[ForwardedEntry]:
        return iter(list(self._entries.values()))

    def find_duplicate(self, room_id: str, date_time: str) -> Optional[ForwardedEntry]:
        """Return the live entry already forwarded for (room_id, date_time)."""

        for entry in self._entries.values():
            if entry.room_id == room_id and entry.date_time == date_time:
                return entry
        return None

    def record(self, entry: ForwardedEntry) -> Optional[ForwardedEntry]:
        """Append an entry and return the evicted oldest one, if any."""

        self._entries[(entry.source_chat_id, entry.source_message_id)] = entry
        if len(self._entries) > self._capacity:
            _, evicted = self._entries.popitem(last=False)
            return evicted
        return None

    def pop_source(self, message_id: int, chat_id: Optional[int] = None) -> Optional[ForwardedEntry]:
        """Remove and return the entry created for a source message."""

        for key in list(self._entries):
            if _matches(key, message_id, chat_id):
                return self._entries.pop(key)
        return None


class PendingWarnings:
    """Duplicate notices sent in reply to source messages, oldest first."""

    def __init__(self, capacity: int) -> None:
        if capacity < 1:
            raise ValueError("Warning capacity must be at least 1")
        self._capacity = capacity
        self._warnings: "OrderedDict[SourceRef, int]" = OrderedDict()

    def __len__(self) -> int:
        return len(self._warnings)

    def add(self, chat_id: int, message_id: int, warning_message_id: int) -> None:
        self._warnings[(chat_id, message_id)] = warning_message_id
        if len(self._warnings) > self._capacity:
            self._warnings.popitem(last=False)

    def pop_source(self, message_id: int, chat_id: Optional[int] = None) -> Optional[Tuple[int, int]]:
        """Remove the notice for a source message; return (chat_id, notice id)."""

        for key in list(self._warnings):
            if _matches(key, message_id, chat_id):
                return key[0], self._warnings.pop(key)
        return None
