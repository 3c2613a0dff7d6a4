"""Ports (interfaces) used by the core pipeline.

Ports define the minimal contracts for messaging, profile lookup and
acknowledgment adapters so that the core can be reused with different
backends.
"""

from __future__ import annotations

from typing import Optional, Protocol

from core.models import MessageContext, ParsedEvent, ProfileStats


class EnrichmentError(Exception):
    """The profile lookup failed or returned an unusable response."""


class MessengerPort(Protocol):
    """Messaging operations required by the core pipeline.

    Every send returns the id of the message it created.
    """

    async def forward(self, context: MessageContext, stats: Optional[ProfileStats]) -> int:
        ...

    async def send_helper_note(self, context: MessageContext, room_id: str, stats: ProfileStats) -> int:
        ...

    async def send_duplicate_notice(self, context: MessageContext) -> int:
        ...

    async def send_enrichment_apology(self, context: MessageContext) -> int:
        ...

    async def send_failure_notice(self, context: MessageContext) -> int:
        ...

    async def delete_in_source(self, chat_id: int, message_id: int) -> None:
        ...

    async def delete_forwarded(self, message_id: int) -> None:
        ...


class ProfilePort(Protocol):
    """Room owner statistics lookup; raises EnrichmentError on failure."""

    async def lookup(self, room_id: str) -> ProfileStats:
        ...


class AcknowledgerPort(Protocol):
    """Best-effort fan-out after a successful forward; never raises."""

    async def acknowledge(self, room_id: str, event: ParsedEvent) -> None:
        ...
