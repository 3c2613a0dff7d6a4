"""Static configuration for the relay.

All user-editable settings (monitored chats, destination, history size,
profile API, acknowledgments, filters, logging) live in a single JSON file
for quick edits without touching Python. Secrets stay in the environment.
"""

import json
import os

from dotenv import load_dotenv

from core.config import (
    DestinationConfig,
    EnrichmentPolicy,
    HistoryConfig,
    MonitorTarget,
    NotificationConfig,
    NotificationTarget,
)
from core.source_keys import expand_source_key_variants

PROJECT_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))

# CAT_RAISING_CONFIG lets several relays share one checkout.
CONFIG_PATH = os.getenv("CAT_RAISING_CONFIG", os.path.join(PROJECT_ROOT, "config.json"))


def _load_json_config() -> dict:
    """Load config.json with a flat, user-friendly schema."""

    if not os.path.exists(CONFIG_PATH):
        raise FileNotFoundError(f"Config file not found: {CONFIG_PATH}")

    with open(CONFIG_PATH, "r", encoding="utf-8") as handle:
        return json.load(handle)


def _normalize_monitors(raw_monitors: list[dict]) -> list[MonitorTarget]:
    """Expand each enabled monitor to all equivalent source keys."""

    monitors: dict[str, MonitorTarget] = {}
    for entry in raw_monitors:
        source_key = entry.get("source_key")
        if not source_key:
            continue
        if not entry.get("enabled", True):
            continue
        helper_messages = bool(entry.get("helper_messages", True))
        for key in expand_source_key_variants(source_key):
            monitors[key] = MonitorTarget(source_key=key, send_helper_messages=helper_messages)
    return list(monitors.values())


def _build_destination(raw: dict) -> DestinationConfig:
    target = raw.get("target")
    if not target:
        raise ValueError("destination.target is required")
    return DestinationConfig(target=str(target), is_group=bool(raw.get("is_group", False)))


def _build_notifications(raw: dict) -> NotificationConfig:
    """Resolve notification targets, reading their secrets from the environment.

    Targets are only resolved when notifications are enabled, so a disabled
    section may reference variables that are not set.
    """

    enabled = bool(raw.get("enabled", False))
    targets = []
    for index, entry in enumerate(raw.get("targets", []) if enabled else [], start=1):
        access_key = os.getenv(entry.get("access_key_env", ""), "")
        app_secret = os.getenv(entry.get("app_secret_env", ""), "")
        if not access_key or not app_secret or not entry.get("app_key"):
            raise ValueError(f"notifications.targets[{index}] is missing app_key or its secrets")
        targets.append(
            NotificationTarget(
                label=entry.get("label") or f"target-{index}",
                access_key=access_key,
                app_key=str(entry["app_key"]),
                app_secret=app_secret,
            )
        )
    return NotificationConfig(
        enabled=enabled,
        url=raw.get("url", ""),
        message=raw.get("message", NotificationConfig.message),
        retry_attempts=int(raw.get("retry_attempts", NotificationConfig.retry_attempts)),
        retry_delay_seconds=float(raw.get("retry_delay_seconds", NotificationConfig.retry_delay_seconds)),
        rate_limit_phrases=list(raw.get("rate_limit_phrases") or ["频率过快"]),
        targets=targets,
    )


load_dotenv()

_CONFIG = _load_json_config()

# Expose the raw config for modules that need structured access.
CONFIG = _CONFIG

# Enabled monitors, each expanded to every equivalent chat_id form.
MONITORS = _normalize_monitors(_CONFIG.get("monitors", []))

# Forward destination ("me", "@username" or "chat_id:<id>").
DESTINATION = _build_destination(_CONFIG.get("destination", {}))

# Ledger capacity; validated by HistoryConfig.
HISTORY = HistoryConfig(size=int(_CONFIG.get("history", {}).get("size", HistoryConfig.size)))

# Profile lookups. forward_on_failure=false aborts the forward when the
# lookup fails.
_enrichment = _CONFIG.get("enrichment", {})
ENRICHMENT = EnrichmentPolicy(
    base_url=_enrichment.get("base_url", ""),
    room_info_path=_enrichment.get("room_info_path", EnrichmentPolicy.room_info_path),
    user_stats_path=_enrichment.get("user_stats_path", EnrichmentPolicy.user_stats_path),
    timeout_seconds=float(_enrichment.get("timeout_seconds", EnrichmentPolicy.timeout_seconds)),
    forward_on_failure=bool(_enrichment.get("forward_on_failure", False)),
)

# Live-room acknowledgments after a forward.
NOTIFICATIONS = _build_notifications(_CONFIG.get("notifications", {}))

# Keyword overrides for the admission rules.
FILTERS_CONFIG = _CONFIG.get("filters", {})

# Logging configuration (optional).
LOGGING = _CONFIG.get("logging", {})
