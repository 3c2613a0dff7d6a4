from __future__ import annotations

import asyncio
import logging
from datetime import datetime
from typing import Optional

from core.config import MonitorTarget
from core.dedup import ForwardLedger, PendingWarnings
from core.models import MessageContext, ParsedEvent, ProfileStats
from core.ports import EnrichmentError
from core.processor import MessageProcessor
from core.rules_engine import build_filter_rules

ANNOUNCEMENT = "房间号12345678\n11月28日\n14级灯牌发2w"
SOURCE_KEY = "chat_id:-1001"


class FakeMessenger:
    def __init__(self, fail_forward: bool = False, fail_delete: bool = False) -> None:
        self.fail_forward = fail_forward
        self.fail_delete = fail_delete
        self.forwarded: list[tuple[MessageContext, Optional[ProfileStats]]] = []
        self.replies: list[tuple[str, int]] = []
        self.deleted_in_source: list[tuple[int, int]] = []
        self.deleted_forwarded: list[int] = []
        self._next_id = 900

    def _new_id(self) -> int:
        self._next_id += 1
        return self._next_id

    async def forward(self, context: MessageContext, stats: Optional[ProfileStats]) -> int:
        if self.fail_forward:
            raise RuntimeError("destination unreachable")
        self.forwarded.append((context, stats))
        return self._new_id()

    async def _reply(self, kind: str, context: MessageContext) -> int:
        self.replies.append((kind, context.message_id))
        return self._new_id()

    async def send_helper_note(self, context: MessageContext, room_id: str, stats: ProfileStats) -> int:
        return await self._reply("helper", context)

    async def send_duplicate_notice(self, context: MessageContext) -> int:
        return await self._reply("duplicate", context)

    async def send_enrichment_apology(self, context: MessageContext) -> int:
        return await self._reply("apology", context)

    async def send_failure_notice(self, context: MessageContext) -> int:
        return await self._reply("failure", context)

    async def delete_in_source(self, chat_id: int, message_id: int) -> None:
        self.deleted_in_source.append((chat_id, message_id))
        if self.fail_delete:
            raise RuntimeError("message already gone")

    async def delete_forwarded(self, message_id: int) -> None:
        self.deleted_forwarded.append(message_id)
        if self.fail_delete:
            raise RuntimeError("message already gone")


class FakeProfiles:
    def __init__(self, fail: bool = False) -> None:
        self.fail = fail
        self.lookups: list[str] = []

    async def lookup(self, room_id: str) -> ProfileStats:
        self.lookups.append(room_id)
        if self.fail:
            raise EnrichmentError("room-info: code -1")
        return ProfileStats(uid=42, video_count=500)


class FakeAcknowledger:
    def __init__(self, crash: bool = False) -> None:
        self.crash = crash
        self.calls: list[tuple[str, ParsedEvent]] = []

    async def acknowledge(self, room_id: str, event: ParsedEvent) -> None:
        self.calls.append((room_id, event))
        if self.crash:
            raise RuntimeError("boom")


def _context(message_id: int = 1, text: str = ANNOUNCEMENT, source_key: str = SOURCE_KEY) -> MessageContext:
    return MessageContext(
        source_key=source_key,
        chat_id=-1001,
        message_id=message_id,
        content=text,
        text=text,
    )


def _processor(
    messenger: FakeMessenger,
    profiles: Optional[FakeProfiles] = None,
    helper_messages: bool = True,
    forward_on_enrichment_failure: bool = False,
    acknowledger: Optional[FakeAcknowledger] = None,
    history: int = 30,
) -> tuple[MessageProcessor, ForwardLedger, PendingWarnings]:
    ledger = ForwardLedger(history)
    warnings = PendingWarnings(history)
    processor = MessageProcessor(
        rules=build_filter_rules(),
        messenger=messenger,
        profiles=profiles or FakeProfiles(),
        monitors=[MonitorTarget(source_key=SOURCE_KEY, send_helper_messages=helper_messages)],
        ledger=ledger,
        warnings=warnings,
        forward_on_enrichment_failure=forward_on_enrichment_failure,
        acknowledger=acknowledger,
        clock=lambda: datetime(2024, 11, 20, 10, 40),
    )
    return processor, ledger, warnings


def test_forwards_announcement_with_stats() -> None:
    messenger = FakeMessenger()
    profiles = FakeProfiles()
    acknowledger = FakeAcknowledger()
    processor, ledger, _ = _processor(messenger, profiles, acknowledger=acknowledger)

    asyncio.run(processor.handle(_context()))

    assert profiles.lookups == ["12345678"]
    assert len(messenger.forwarded) == 1
    assert messenger.forwarded[0][1] == ProfileStats(uid=42, video_count=500)
    assert messenger.replies == [("helper", 1)]

    entries = list(ledger)
    assert len(entries) == 1
    assert entries[0].room_id == "12345678"
    assert entries[0].date_time == "11月28日"
    assert entries[0].helper_message_id is not None

    assert [room_id for room_id, _ in acknowledger.calls] == ["12345678"]


def test_helper_messages_can_be_disabled() -> None:
    messenger = FakeMessenger()
    processor, ledger, _ = _processor(messenger, helper_messages=False)

    asyncio.run(processor.handle(_context()))

    assert len(messenger.forwarded) == 1
    assert messenger.replies == []
    assert list(ledger)[0].helper_message_id is None


def test_ignores_unmonitored_chat_and_empty_text() -> None:
    messenger = FakeMessenger()
    profiles = FakeProfiles()
    processor, ledger, _ = _processor(messenger, profiles)

    asyncio.run(processor.handle(_context(source_key="chat_id:-2002")))
    asyncio.run(processor.handle(_context(text="   ")))

    assert profiles.lookups == []
    assert messenger.forwarded == []
    assert len(ledger) == 0


def test_media_without_caption_is_skipped(caplog) -> None:
    messenger = FakeMessenger()
    profiles = FakeProfiles()
    processor, _, _ = _processor(messenger, profiles)
    context = MessageContext(source_key=SOURCE_KEY, chat_id=-1001, message_id=5, content="", text="", has_media=True)

    with caplog.at_level(logging.DEBUG, logger="core.processor"):
        asyncio.run(processor.handle(context))

    assert profiles.lookups == []
    assert "media without caption" in caplog.text


def test_rejected_message_is_not_looked_up() -> None:
    messenger = FakeMessenger()
    profiles = FakeProfiles()
    processor, _, _ = _processor(messenger, profiles)

    asyncio.run(processor.handle(_context(text="签到110+")))

    assert profiles.lookups == []
    assert messenger.forwarded == []
    assert messenger.replies == []


def test_duplicate_sends_notice_and_tracks_it() -> None:
    messenger = FakeMessenger()
    processor, ledger, warnings = _processor(messenger)

    asyncio.run(processor.handle(_context(message_id=1)))
    asyncio.run(processor.handle(_context(message_id=2)))

    assert len(messenger.forwarded) == 1
    assert ("duplicate", 2) in messenger.replies
    assert len(ledger) == 1
    assert len(warnings) == 1


def test_deleting_duplicate_retracts_only_the_notice() -> None:
    messenger = FakeMessenger()
    processor, ledger, warnings = _processor(messenger)

    async def scenario() -> None:
        await processor.handle(_context(message_id=1))
        await processor.handle(_context(message_id=2))
        await processor.handle_deletion(2, -1001)

    asyncio.run(scenario())

    assert len(messenger.deleted_in_source) == 1
    assert messenger.deleted_forwarded == []
    assert len(ledger) == 1
    assert len(warnings) == 0


def test_deletion_retracts_forward_and_helper_note() -> None:
    messenger = FakeMessenger()
    processor, ledger, _ = _processor(messenger)

    async def scenario() -> None:
        await processor.handle(_context(message_id=1))
        entry = list(ledger)[0]
        await processor.handle_deletion(1, -1001)
        assert messenger.deleted_forwarded == [entry.forwarded_message_id]
        assert messenger.deleted_in_source == [(-1001, entry.helper_message_id)]
        # A second deletion event for the same message is a no-op.
        await processor.handle_deletion(1, -1001)

    asyncio.run(scenario())

    assert len(ledger) == 0
    assert len(messenger.deleted_forwarded) == 1


def test_deleted_announcement_can_be_forwarded_again() -> None:
    messenger = FakeMessenger()
    processor, _, _ = _processor(messenger)

    async def scenario() -> None:
        await processor.handle(_context(message_id=1))
        await processor.handle_deletion(1)
        await processor.handle(_context(message_id=2))

    asyncio.run(scenario())

    assert len(messenger.forwarded) == 2


def test_failed_retraction_still_drops_entry() -> None:
    messenger = FakeMessenger(fail_delete=True)
    processor, ledger, _ = _processor(messenger)

    async def scenario() -> None:
        await processor.handle(_context(message_id=1))
        await processor.handle_deletion(1, -1001)

    asyncio.run(scenario())

    assert len(messenger.deleted_in_source) == 1
    assert len(messenger.deleted_forwarded) == 1
    assert len(ledger) == 0


def test_enrichment_failure_aborts_by_default() -> None:
    messenger = FakeMessenger()
    processor, ledger, _ = _processor(messenger, FakeProfiles(fail=True))

    asyncio.run(processor.handle(_context()))

    assert messenger.forwarded == []
    assert messenger.replies == []
    assert len(ledger) == 0


def test_enrichment_failure_can_forward_plain_copy() -> None:
    messenger = FakeMessenger()
    processor, ledger, _ = _processor(messenger, FakeProfiles(fail=True), forward_on_enrichment_failure=True)

    asyncio.run(processor.handle(_context()))

    assert messenger.forwarded[0][1] is None
    assert messenger.replies == [("apology", 1)]
    assert list(ledger)[0].helper_message_id is None


def test_forward_failure_sends_notice_and_records_nothing() -> None:
    messenger = FakeMessenger(fail_forward=True)
    acknowledger = FakeAcknowledger()
    processor, ledger, _ = _processor(messenger, acknowledger=acknowledger)

    asyncio.run(processor.handle(_context()))

    assert ("failure", 1) in messenger.replies
    assert len(ledger) == 0
    assert acknowledger.calls == []


def test_acknowledger_errors_are_contained() -> None:
    messenger = FakeMessenger()
    acknowledger = FakeAcknowledger(crash=True)
    processor, ledger, _ = _processor(messenger, acknowledger=acknowledger)

    asyncio.run(processor.handle(_context()))

    assert len(acknowledger.calls) == 1
    assert len(ledger) == 1


def test_history_evicts_oldest_event() -> None:
    messenger = FakeMessenger()
    processor, ledger, _ = _processor(messenger, history=1)

    async def scenario() -> None:
        await processor.handle(_context(message_id=1))
        await processor.handle(_context(message_id=2, text="房间号87654321\n12月1日\n神金3000"))
        await processor.handle(_context(message_id=3))

    asyncio.run(scenario())

    # The first event was evicted, so its repeat is forwarded again.
    assert len(messenger.forwarded) == 3
    assert [entry.source_message_id for entry in ledger] == [3]
