from __future__ import annotations

import pytest

from core.dedup import ForwardLedger, PendingWarnings
from core.models import ForwardedEntry


def _entry(message_id: int, room_id: str = "12345678", date_time: str = "11月28日", chat_id: int = -1001) -> ForwardedEntry:
    return ForwardedEntry(
        source_chat_id=chat_id,
        source_message_id=message_id,
        forwarded_message_id=message_id + 1000,
        helper_message_id=None,
        room_id=room_id,
        date_time=date_time,
    )


def test_find_duplicate_matches_room_and_time() -> None:
    ledger = ForwardLedger(capacity=5)
    ledger.record(_entry(1))
    assert ledger.find_duplicate("12345678", "11月28日") is not None
    assert ledger.find_duplicate("12345678", "12月1日") is None
    assert ledger.find_duplicate("87654321", "11月28日") is None


def test_capacity_evicts_oldest_first() -> None:
    ledger = ForwardLedger(capacity=2)
    assert ledger.record(_entry(1, room_id="1")) is None
    assert ledger.record(_entry(2, room_id="2")) is None
    evicted = ledger.record(_entry(3, room_id="3"))

    assert evicted is not None and evicted.room_id == "1"
    assert len(ledger) == 2
    assert [entry.room_id for entry in ledger] == ["2", "3"]
    assert ledger.find_duplicate("1", "11月28日") is None


def test_pop_source_is_idempotent() -> None:
    ledger = ForwardLedger(capacity=5)
    ledger.record(_entry(7))
    assert ledger.pop_source(7, -1001) is not None
    assert ledger.pop_source(7, -1001) is None
    assert len(ledger) == 0


def test_pop_source_without_chat_id_matches_message_id() -> None:
    ledger = ForwardLedger(capacity=5)
    ledger.record(_entry(7, chat_id=42))
    assert ledger.pop_source(7, -1001) is None
    assert ledger.pop_source(7) is not None


def test_invalid_capacity() -> None:
    with pytest.raises(ValueError):
        ForwardLedger(capacity=0)


def test_pending_warnings_are_bounded() -> None:
    warnings = PendingWarnings(capacity=1)
    warnings.add(-1001, 1, 501)
    warnings.add(-1001, 2, 502)

    assert len(warnings) == 1
    assert warnings.pop_source(1) is None
    assert warnings.pop_source(2, -1001) == (-1001, 502)
    assert warnings.pop_source(2, -1001) is None
