"""Core domain models.

These dataclasses are shared across the core and adapters to avoid tight
coupling to any integration-specific types.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Tuple

NO_RESTRICTION = "无限制"
UNKNOWN_TIME = "时间未知"


@dataclass(frozen=True)
class MessageContext:
    """Minimal message context used by the core processing pipeline."""

    source_key: str
    chat_id: int
    message_id: int
    # Formatted content is what gets forwarded; text is the plain version
    # used for every check.
    content: str
    text: str
    has_media: bool = False


@dataclass(frozen=True)
class Reward:
    """One announced giveaway amount and who may claim it."""

    amount: float
    condition: str

    @property
    def amount_text(self) -> str:
        if float(self.amount).is_integer():
            return str(int(self.amount))
        return str(self.amount)


@dataclass(frozen=True)
class ParsedEvent:
    """A reward announcement: time label plus at least one reward."""

    date_time: str
    rewards: Tuple[Reward, ...]

    @property
    def has_known_time(self) -> bool:
        return self.date_time != UNKNOWN_TIME


@dataclass(frozen=True)
class ProfileStats:
    """Statistics fetched for the owner of a live room."""

    uid: int
    video_count: int


@dataclass(frozen=True)
class ForwardedEntry:
    """Everything the relay sent because of one source message."""

    source_chat_id: int
    source_message_id: int
    forwarded_message_id: int
    helper_message_id: Optional[int]
    room_id: str
    date_time: str
