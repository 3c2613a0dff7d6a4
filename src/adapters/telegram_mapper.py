"""Telegram-to-core message mapping adapter.

This keeps Telethon-specific details out of the core pipeline.
"""

from __future__ import annotations

from telethon.tl.custom import Message

from core.models import MessageContext
from core.source_keys import build_source_key


def source_key_from_message(message: Message) -> str:
    """Normalize a source key using a single rule enforced across the app."""

    chat = getattr(message, "chat", None)
    username = getattr(chat, "username", None)
    if not isinstance(username, str):
        username = None
    return build_source_key(message.chat_id, username)


def build_context(message: Message) -> MessageContext:
    """Build a core MessageContext from a Telethon Message.

    ``text`` keeps Telethon's Markdown rendering of entities so the forwarded
    copy looks like the original; ``raw_text`` has mentions and formatting
    stripped and is what the rules see.
    """

    return MessageContext(
        source_key=source_key_from_message(message),
        chat_id=message.chat_id,
        message_id=message.id,
        content=message.text or "",
        text=message.raw_text or "",
        has_media=getattr(message, "media", None) is not None,
    )
