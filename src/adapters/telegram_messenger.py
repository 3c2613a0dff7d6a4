"""Telegram messaging adapter.

Implements the core MessengerPort on top of a Telethon client: forwards to
the configured destination and replies or deletes in the source chats.
"""

from __future__ import annotations

from typing import Optional, Union

from telethon.tl.types import PeerChannel, PeerUser

from adapters.notification_formatting import (
    DUPLICATE_NOTICE,
    ENRICHMENT_APOLOGY,
    FAILURE_NOTICE,
    format_forward,
    format_helper_note,
)
from core.config import DestinationConfig
from core.models import MessageContext, ProfileStats
from core.source_keys import destination_peer


def resolve_destination(destination: DestinationConfig) -> Union[str, int, PeerChannel, PeerUser]:
    """Return the peer to send forwards to.

    Negative (marked) ids and usernames resolve on their own; a bare positive
    id is ambiguous, so ``is_group`` decides between a group and a user.
    """

    peer = destination_peer(destination.target)
    if isinstance(peer, int) and peer > 0:
        return PeerChannel(peer) if destination.is_group else PeerUser(peer)
    return peer


class TelegramMessenger:
    """Messenger adapter that sends and deletes through a Telethon client."""

    def __init__(self, client, destination: DestinationConfig) -> None:
        self._client = client
        self._destination = resolve_destination(destination)

    async def forward(self, context: MessageContext, stats: Optional[ProfileStats]) -> int:
        message = await self._client.send_message(
            self._destination,
            format_forward(context.content, stats),
            parse_mode="md",
            link_preview=False,
        )
        return message.id

    async def _reply(self, context: MessageContext, text: str) -> int:
        message = await self._client.send_message(
            context.chat_id,
            text,
            reply_to=context.message_id,
            parse_mode=None,
        )
        return message.id

    async def send_helper_note(self, context: MessageContext, room_id: str, stats: ProfileStats) -> int:
        return await self._reply(context, format_helper_note(room_id, stats))

    async def send_duplicate_notice(self, context: MessageContext) -> int:
        return await self._reply(context, DUPLICATE_NOTICE)

    async def send_enrichment_apology(self, context: MessageContext) -> int:
        return await self._reply(context, ENRICHMENT_APOLOGY)

    async def send_failure_notice(self, context: MessageContext) -> int:
        return await self._reply(context, FAILURE_NOTICE)

    async def _delete(self, peer, message_id: int) -> None:
        affected = await self._client.delete_messages(peer, [message_id])
        # Telegram reports pts_count=0 when the message was already gone.
        if not any(getattr(item, "pts_count", 0) for item in affected or []):
            raise RuntimeError(f"Message {message_id} was not deleted")

    async def delete_in_source(self, chat_id: int, message_id: int) -> None:
        await self._delete(chat_id, message_id)

    async def delete_forwarded(self, message_id: int) -> None:
        await self._delete(self._destination, message_id)
