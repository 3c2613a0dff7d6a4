"""Live-room identifier extraction (core domain).

Announcements usually contain several numbers (amounts, levels, times), so
the room id is found in stages: explicit labels first, then standalone long
numbers narrowed down by removing known reward amounts and finally by
preferring the longest candidate.

Callers treat anything other than exactly one result as "skip this message".
"""

from __future__ import annotations

import re
from typing import Iterable, List

from core.numerals import normalize_numerals
from core.rewards import CURRENCY_KEYWORDS, DIAMOND_KEYWORDS, extract_rewards

MARKUP_RE = re.compile(r"<[^<>]*>")
# A labeled number followed by a reward unit or "w" is an amount, not an id.
_AMOUNT_SUFFIX = "|".join(("[wW万]",) + CURRENCY_KEYWORDS + DIAMOND_KEYWORDS)
LABELED_ID_RE = re.compile(
    r"(?:房间号|直播间号|直播间|房号|房间|频道号)\s*[:：#]?\s*(?P<room>\d{3,15})(?!\d)" + rf"(?!\s*(?:{_AMOUNT_SUFFIX}))"
)
GENERIC_ID_RE = re.compile(r"(?<!\d)\d{6,15}(?!\d)")


def strip_markup(text: str) -> str:
    """Drop inline markup elements so attribute values are not read as ids."""

    return MARKUP_RE.sub(" ", text)


def _distinct(values: Iterable[str]) -> List[str]:
    return list(dict.fromkeys(values))


def labeled_room_ids(text: str) -> List[str]:
    return _distinct(match.group("room") for match in LABELED_ID_RE.finditer(text))


def generic_room_ids(text: str) -> List[str]:
    return _distinct(match.group(0) for match in GENERIC_ID_RE.finditer(text))


def exclude_reward_amounts(candidates: List[str], text: str) -> List[str]:
    """Remove candidates already explained as reward amounts."""

    amounts = {reward.amount_text for reward in extract_rewards(normalize_numerals(text))}
    return [candidate for candidate in candidates if candidate not in amounts]


def prefer_longest(candidates: List[str]) -> List[str]:
    """Keep the longest candidate; equally long leaders stay ambiguous."""

    if len(candidates) <= 1:
        return candidates
    longest = max(len(candidate) for candidate in candidates)
    return [candidate for candidate in candidates if len(candidate) == longest]


def extract_room_ids(text: str) -> List[str]:
    """Return room id candidates for ``text``; one entry means unambiguous."""

    text = strip_markup(text)

    labeled = labeled_room_ids(text)
    if labeled:
        return labeled

    candidates = generic_room_ids(text)
    if len(candidates) <= 1:
        return candidates

    candidates = exclude_reward_amounts(candidates, text)
    return prefer_longest(candidates)
