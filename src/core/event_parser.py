"""Compose time and reward extraction into one event per message."""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from core.models import UNKNOWN_TIME, ParsedEvent
from core.rewards import extract_rewards
from core.time_label import extract_time


def parse_event(text: str, now: Optional[datetime] = None) -> Optional[ParsedEvent]:
    """Return the announced event, or None when no reward was found.

    The first line carrying a time expression sets the label for the whole
    message; later lines are not scanned for time.
    """

    lines = [line for line in text.splitlines() if line.strip()]

    date_time = UNKNOWN_TIME
    for line in lines:
        label = extract_time(line, now)
        if label:
            date_time = label
            break

    rewards = extract_rewards("\n".join(lines))
    if not rewards:
        return None
    return ParsedEvent(date_time=date_time, rewards=tuple(rewards))
