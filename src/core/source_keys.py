"""Helpers for working with chat source keys.

A source key is either "@username" (lowercase) or "chat_id:<id>". The same
Telegram chat can surface under several numeric ids depending on the API
layer, so configured keys are expanded to every equivalent form.
"""

from __future__ import annotations

from typing import Optional, Union

CHAT_ID_PREFIX = "chat_id:"
CHANNEL_PEER_OFFSET = -1000000000000


def build_source_key(chat_id: int, username: Optional[str] = None) -> str:
    """Return the canonical key for a chat, preferring its public username."""

    if username:
        return f"@{username.lower()}"
    return f"{CHAT_ID_PREFIX}{chat_id}"


def parse_chat_id(source_key: str) -> Optional[int]:
    """Return the numeric id of a "chat_id:" key, or None."""

    if not source_key.startswith(CHAT_ID_PREFIX):
        return None
    try:
        return int(source_key[len(CHAT_ID_PREFIX):])
    except ValueError:
        return None


def chat_id_variants(raw_chat_id: int) -> set[int]:
    """Return equivalent chat id forms (peer id, basic chat id, channel id)."""

    variants: set[int] = {raw_chat_id}
    if raw_chat_id >= 0:
        variants.add(-raw_chat_id)
        variants.add(CHANNEL_PEER_OFFSET - raw_chat_id)
        return variants

    raw_text = str(raw_chat_id)
    channel_part = raw_text[4:]
    if raw_text.startswith("-100") and channel_part.isdigit():
        variants.add(int(channel_part))
    else:
        variants.add(abs(raw_chat_id))
    return variants


def expand_source_key_variants(source_key: str) -> set[str]:
    """Expand a configured key to every equivalent chat_id key."""

    if source_key.startswith("@"):
        return {source_key.lower()}
    chat_id = parse_chat_id(source_key)
    if chat_id is None:
        return {source_key}
    return {f"{CHAT_ID_PREFIX}{variant}" for variant in chat_id_variants(chat_id)}


def destination_peer(target: str) -> Union[str, int]:
    """Translate a destination key into something a client can resolve.

    "me", "@username" and bare strings pass through; "chat_id:" keys become
    their integer id.
    """

    chat_id = parse_chat_id(target)
    if chat_id is None:
        return target
    return chat_id
