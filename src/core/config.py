"""Core configuration dataclasses.

We keep config parsing outside the core, but these dataclasses define the
shape the core expects so adapters and app layers can build safely.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import List

HISTORY_SIZE_DEFAULT = 30
HISTORY_SIZE_MIN = 1
HISTORY_SIZE_MAX = 200


@dataclass(frozen=True)
class MonitorTarget:
    """A monitored chat and whether the relay may reply in it."""

    source_key: str
    send_helper_messages: bool


@dataclass(frozen=True)
class DestinationConfig:
    """Where qualifying announcements are forwarded."""

    target: str
    is_group: bool


@dataclass(frozen=True)
class HistoryConfig:
    """Capacity of the forwarded-event ledger and duplicate notices."""

    size: int = HISTORY_SIZE_DEFAULT

    def __post_init__(self) -> None:
        if not HISTORY_SIZE_MIN <= self.size <= HISTORY_SIZE_MAX:
            raise ValueError(
                f"history.size must be between {HISTORY_SIZE_MIN} and {HISTORY_SIZE_MAX}, got {self.size}"
            )


@dataclass(frozen=True)
class EnrichmentPolicy:
    """Profile lookup settings; failures abort the forward by default."""

    base_url: str
    room_info_path: str = "/room-info"
    user_stats_path: str = "/user-stats"
    timeout_seconds: float = 10.0
    forward_on_failure: bool = False


@dataclass(frozen=True)
class NotificationTarget:
    """One account that posts the live-room acknowledgment."""

    label: str
    access_key: str
    app_key: str
    app_secret: str


@dataclass(frozen=True)
class NotificationConfig:
    """Acknowledgment fan-out settings consumed by the danmaku adapter."""

    enabled: bool = False
    url: str = ""
    message: str = "喵~"
    retry_attempts: int = 4
    retry_delay_seconds: float = 2.0
    rate_limit_phrases: List[str] = field(default_factory=lambda: ["频率过快"])
    targets: List[NotificationTarget] = field(default_factory=list)
