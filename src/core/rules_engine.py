"""Admission rules deciding whether a message announces a reward (core domain)."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
import re
from typing import List, Optional

from core.event_parser import parse_event
from core.models import ParsedEvent
from core.numerals import NUMERAL_CHARS, normalize_numerals
from core.rewards import CURRENCY_KEYWORDS, DIAMOND_KEYWORDS, GIVE_VERBS, TEN_THOUSAND_RE
from core.room_id import extract_room_ids

DEFAULT_HARD_REJECT = ("排行榜", "榜单", "战报", "日报", "周报")
DEFAULT_SOFT_REJECT = ("签到", "打卡", "出勤")

CHECK_IN_RE = re.compile(r"(?<!\d)\d{2,3}\+")
BARE_NUMBER_RE = re.compile(r"(?<!\d)\d{3,5}(?!\d)")
NUMERAL_RE = re.compile(f"[{NUMERAL_CHARS}]")


@dataclass(frozen=True)
class FilterRules:
    """Keyword lists used by the admission gates."""

    hard_reject: List[str]
    soft_reject: List[str]
    currency_keywords: List[str]
    override_keywords: List[str]


@dataclass(frozen=True)
class Admission:
    """Outcome of screening one message, with the gate that decided it."""

    accepted: bool
    reason: str
    room_id: Optional[str] = None
    room_candidates: tuple = ()
    event: Optional[ParsedEvent] = None


def build_filter_rules(filters_config: Optional[dict] = None) -> FilterRules:
    """Build FilterRules from the optional ``filters`` config section.

    Missing keys fall back to the built-in lists; the override list defaults
    to the currency keywords plus the "give" verb.
    """

    config = filters_config or {}
    currency = list(config.get("currency_keywords") or CURRENCY_KEYWORDS)
    overrides = config.get("override_keywords") or [*currency, "发"]
    return FilterRules(
        hard_reject=list(config.get("hard_reject") or DEFAULT_HARD_REJECT),
        soft_reject=list(config.get("soft_reject") or DEFAULT_SOFT_REJECT),
        currency_keywords=currency,
        override_keywords=list(overrides),
    )


def _contains_any(text: str, keywords) -> bool:
    return any(keyword in text for keyword in keywords)


def has_trigger(text: str, rules: FilterRules) -> bool:
    """Cheap check for anything that could be a reward cue."""

    if _contains_any(text, rules.currency_keywords):
        return True
    if _contains_any(text, GIVE_VERBS) or _contains_any(text, DIAMOND_KEYWORDS):
        return True
    if TEN_THOUSAND_RE.search(text) or BARE_NUMBER_RE.search(text):
        return True
    return bool(NUMERAL_RE.search(text))


def has_strong_context(text: str, rules: FilterRules) -> bool:
    if _contains_any(text, rules.currency_keywords) or "发" in text:
        return True
    return bool(TEN_THOUSAND_RE.search(text))


def _reject(reason: str, **extra) -> Admission:
    return Admission(accepted=False, reason=reason, **extra)


def screen_message(text: str, rules: FilterRules, now: Optional[datetime] = None) -> Admission:
    """Run the admission gates in order and stop at the first failure.

    Gates:
    - hard reject keyword (no override)
    - check-in tally such as "110+"
    - at least one reward cue
    - exactly one room id
    - soft reject keyword unless an override keyword is present
    - a parsable event with at least one reward
    - strong reward context or a known time
    """

    hard_hits = [keyword for keyword in rules.hard_reject if keyword in text]
    if hard_hits:
        return _reject(f"hard reject: {', '.join(hard_hits)}")

    check_in = CHECK_IN_RE.search(text)
    if check_in:
        return _reject(f"check-in tally: {check_in.group(0)}")

    if not has_trigger(text, rules):
        return _reject("no reward cue")

    room_ids = extract_room_ids(text)
    if len(room_ids) != 1:
        return _reject(f"room ids found: {len(room_ids)}", room_candidates=tuple(room_ids))
    room_id = room_ids[0]
    found = {"room_id": room_id, "room_candidates": (room_id,)}

    soft_hits = [keyword for keyword in rules.soft_reject if keyword in text]
    if soft_hits and not _contains_any(text, rules.override_keywords):
        return _reject(f"soft reject: {', '.join(soft_hits)}", **found)

    event = parse_event(normalize_numerals(text), now)
    if event is None:
        return _reject("no reward parsed", **found)

    if not event.has_known_time and not has_strong_context(text, rules):
        return _reject("weak context without time", event=event, **found)

    return Admission(accepted=True, reason="accepted", event=event, **found)
