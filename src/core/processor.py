"""Core message processing pipeline.

This module is integration-agnostic. It only relies on ports for messaging,
profile lookups and acknowledgments, enabling future frontends or adapters
without changes here.
"""

from __future__ import annotations

from datetime import datetime
import logging
from typing import Callable, Iterable, Optional

from core.config import MonitorTarget
from core.dedup import ForwardLedger, PendingWarnings
from core.models import ForwardedEntry, MessageContext, ProfileStats
from core.ports import AcknowledgerPort, EnrichmentError, MessengerPort, ProfilePort
from core.rules_engine import FilterRules, screen_message

LOGGER = logging.getLogger(__name__)


class MessageProcessor:
    """Orchestrates screening, dedup, enrichment, forwarding and retraction."""

    def __init__(
        self,
        rules: FilterRules,
        messenger: MessengerPort,
        profiles: ProfilePort,
        monitors: Iterable[MonitorTarget],
        ledger: ForwardLedger,
        warnings: PendingWarnings,
        forward_on_enrichment_failure: bool = False,
        acknowledger: Optional[AcknowledgerPort] = None,
        clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        self._rules = rules
        self._messenger = messenger
        self._profiles = profiles
        self._monitors = {monitor.source_key: monitor for monitor in monitors}
        self._ledger = ledger
        self._warnings = warnings
        self._forward_on_enrichment_failure = forward_on_enrichment_failure
        self._acknowledger = acknowledger
        self._clock = clock

    async def handle(self, context: MessageContext) -> None:
        """Process one incoming message through the pipeline."""

        monitor = self._monitors.get(context.source_key)
        if monitor is None:
            return

        if not context.text.strip():
            if context.has_media:
                LOGGER.debug("Skipping %s/%s: media without caption", context.source_key, context.message_id)
            return

        admission = screen_message(context.text, self._rules, now=self._clock())
        if not admission.accepted:
            if len(admission.room_candidates) > 1:
                LOGGER.info(
                    "Skipping %s/%s: ambiguous room ids %s",
                    context.source_key,
                    context.message_id,
                    ", ".join(admission.room_candidates),
                )
            else:
                LOGGER.debug("Skipping %s/%s: %s", context.source_key, context.message_id, admission.reason)
            return

        room_id = admission.room_id
        event = admission.event

        duplicate = self._ledger.find_duplicate(room_id, event.date_time)
        if duplicate is not None:
            LOGGER.info("Duplicate event for room %s at %s, ignoring", room_id, event.date_time)
            if monitor.send_helper_messages:
                await self._send_duplicate_notice(context)
            return

        stats: Optional[ProfileStats] = None
        try:
            stats = await self._profiles.lookup(room_id)
        except EnrichmentError as exc:
            LOGGER.warning("Profile lookup failed for room %s: %s", room_id, exc)
            if not self._forward_on_enrichment_failure:
                return
            if monitor.send_helper_messages:
                await self._send_quietly(self._messenger.send_enrichment_apology(context), "enrichment apology")

        helper_message_id = None
        if stats is not None and monitor.send_helper_messages:
            helper_message_id = await self._send_quietly(
                self._messenger.send_helper_note(context, room_id, stats),
                "helper note",
            )

        try:
            forwarded_message_id = await self._messenger.forward(context, stats)
        except Exception:
            LOGGER.exception("Forward failed for %s/%s", context.source_key, context.message_id)
            await self._send_quietly(self._messenger.send_failure_notice(context), "failure notice")
            return

        evicted = self._ledger.record(
            ForwardedEntry(
                source_chat_id=context.chat_id,
                source_message_id=context.message_id,
                forwarded_message_id=forwarded_message_id,
                helper_message_id=helper_message_id,
                room_id=room_id,
                date_time=event.date_time,
            )
        )
        if evicted is not None:
            LOGGER.debug("Ledger full, evicted room %s at %s", evicted.room_id, evicted.date_time)
        LOGGER.info(
            "Forwarded room %s at %s (%s rewards) from %s",
            room_id,
            event.date_time,
            len(event.rewards),
            context.source_key,
        )

        if self._acknowledger is not None:
            try:
                await self._acknowledger.acknowledge(room_id, event)
            except Exception:
                LOGGER.exception("Acknowledgment fan-out failed for room %s", room_id)

    async def handle_deletion(self, message_id: int, chat_id: Optional[int] = None) -> None:
        """Retract everything that was sent because of a deleted source message."""

        entry = self._ledger.pop_source(message_id, chat_id)
        if entry is not None:
            if entry.helper_message_id is not None:
                await self._delete_quietly(
                    self._messenger.delete_in_source(entry.source_chat_id, entry.helper_message_id),
                    "helper note",
                )
            await self._delete_quietly(
                self._messenger.delete_forwarded(entry.forwarded_message_id),
                "forwarded copy",
            )
            LOGGER.info("Retracted forward of room %s at %s", entry.room_id, entry.date_time)
            return

        warning = self._warnings.pop_source(message_id, chat_id)
        if warning is not None:
            warning_chat_id, warning_message_id = warning
            await self._delete_quietly(
                self._messenger.delete_in_source(warning_chat_id, warning_message_id),
                "duplicate notice",
            )

    async def _send_duplicate_notice(self, context: MessageContext) -> None:
        warning_id = await self._send_quietly(self._messenger.send_duplicate_notice(context), "duplicate notice")
        if warning_id is not None:
            self._warnings.add(context.chat_id, context.message_id, warning_id)

    async def _send_quietly(self, send, what: str) -> Optional[int]:
        try:
            return await send
        except Exception:
            LOGGER.exception("Failed to send %s", what)
            return None

    async def _delete_quietly(self, delete, what: str) -> None:
        try:
            await delete
        except Exception:
            LOGGER.warning("Failed to retract %s", what, exc_info=True)
