"""Shared message formatting helpers.

Keeping formatting here prevents drift between adapters and keeps messages
consistent regardless of delivery channel.
"""

from __future__ import annotations

from typing import Optional

from core.models import ParsedEvent, ProfileStats

NOTICE_PREFIX = "🐱 - "
DUPLICATE_NOTICE = f"{NOTICE_PREFIX}看到啦，这条已经转发过了"
FAILURE_NOTICE = f"{NOTICE_PREFIX}转发失败，请检查配置"
ENRICHMENT_APOLOGY = f"{NOTICE_PREFIX}没查到投稿数，先原样转发"

DIVIDER = "──────────────"


def format_forward(content: str, stats: Optional[ProfileStats]) -> str:
    """Return the forwarded copy: original content plus the statistics block."""

    if stats is None:
        return content
    lines = [
        content,
        "",
        DIVIDER,
        f"用户投稿数: {stats.video_count}",
    ]
    return "\n".join(lines)


def format_helper_note(room_id: str, stats: ProfileStats) -> str:
    """Return the short note relayed back to the source chat."""

    return f"{NOTICE_PREFIX}房间号: {room_id}\n投稿数: {stats.video_count}"


def format_acknowledgment(template: str, room_id: str, event: ParsedEvent) -> str:
    """Render the one-line live-room acknowledgment.

    The template may reference {room_id}, {date_time} and {rewards}.
    """

    rewards = " ".join(f"{reward.condition}{reward.amount_text}" for reward in event.rewards)
    return template.format(room_id=room_id, date_time=event.date_time, rewards=rewards)
