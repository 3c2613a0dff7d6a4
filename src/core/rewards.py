"""Reward amount/condition extraction (core domain).

Two confidence tiers are applied to a whole message:

- Strong: an amount tied to a reward unit ("神金3000", "3000钻") or to the
  ten-thousand suffix ("2w", "1.5w+"), optionally behind a level condition
  and a give/drop verb ("14级灯牌发2w").
- Weak: only when no strong match exists anywhere in the message. A line
  carrying a level condition turns every other 3-5 digit number on that
  line into an amount under that condition.
"""

from __future__ import annotations

import math
import re
from typing import Iterable, List, Optional

from core.models import NO_RESTRICTION, Reward

CURRENCY_KEYWORDS = ("神金", "金瓜子", "电池", "元", "块")
DIAMOND_KEYWORDS = ("钻石", "钻")
GIVE_VERBS = ("发", "掉落")

_UNIT = "(?:" + "|".join(CURRENCY_KEYWORDS + DIAMOND_KEYWORDS) + ")"
_TRIGGER = r"(?:发|掉落)?\s*"
_LEVEL = r"(?:(?P<level>(?<!\d)\d{1,3})\s*级(?:灯牌)?(?:以上)?[\s,，:：]*)?"

TEN_THOUSAND_RE = re.compile(r"\d\s*[wW万]")
LEVEL_RE = re.compile(r"(?<!\d)(?P<level>\d{1,3})\s*级(?:灯牌)?")
# Digits followed by a date/time unit are not amounts.
BARE_AMOUNT_RE = re.compile(r"(?<![\d.])\d{3,5}(?!\d)(?!\.\d)(?!\s*[年月日号点时分:：])")

STRONG_PATTERNS = (
    # "14级灯牌发2w", "神金1.5w+"
    re.compile(_LEVEL + _TRIGGER + rf"(?:{_UNIT}\s*)?" + r"(?<![\d.])(?P<amount>\d+(?:\.\d+)?)\s*(?P<ten_k>[wW万])\+?"),
    # "神金3000", "20级发钻石1000"
    re.compile(_LEVEL + _TRIGGER + _UNIT + r"\s*(?<![\d.])(?P<amount>\d{3,5})(?!\d)"),
    # "3000神金", "5级灯牌掉落2000钻"
    re.compile(_LEVEL + _TRIGGER + r"(?<![\d.])(?P<amount>\d{3,5})(?![\d.])\s*" + _UNIT),
)


def format_condition(level: Optional[str]) -> str:
    """Return the normalized condition label for a level (or none)."""

    if not level:
        return NO_RESTRICTION
    return f"{int(level)}级灯牌"


def _parse_amount(raw: str, ten_thousand: bool) -> Optional[float]:
    try:
        value = float(raw)
    except ValueError:
        return None
    if ten_thousand:
        value *= 10_000
    if not math.isfinite(value) or value <= 0:
        return None
    return value


def _level_before(line: str, position: int) -> Optional[str]:
    """Return the closest level phrase on the line that starts before ``position``."""

    level = None
    for match in LEVEL_RE.finditer(line):
        if match.start() >= position:
            break
        level = match.group("level")
    return level


def _strong_rewards(line: str) -> List[Reward]:
    hits = []
    for pattern in STRONG_PATTERNS:
        for match in pattern.finditer(line):
            amount = _parse_amount(match.group("amount"), bool(match.groupdict().get("ten_k")))
            if amount is None:
                continue
            level = match.group("level") or _level_before(line, match.start("amount"))
            hits.append((match.start("amount"), Reward(amount=amount, condition=format_condition(level))))
    hits.sort(key=lambda item: item[0])
    return [reward for _, reward in hits]


def _weak_rewards(line: str) -> List[Reward]:
    level_match = LEVEL_RE.search(line)
    if not level_match:
        return []

    condition = format_condition(level_match.group("level"))
    level_start, level_end = level_match.span("level")
    rewards: List[Reward] = []
    for match in BARE_AMOUNT_RE.finditer(line):
        if match.start() < level_end and match.end() > level_start:
            continue
        amount = _parse_amount(match.group(0), ten_thousand=False)
        if amount is not None:
            rewards.append(Reward(amount=amount, condition=condition))
    return rewards


def _dedupe(rewards: Iterable[Reward]) -> List[Reward]:
    seen: set[float] = set()
    unique: List[Reward] = []
    for reward in rewards:
        if reward.amount in seen:
            continue
        seen.add(reward.amount)
        unique.append(reward)
    return unique


def extract_rewards(text: str) -> List[Reward]:
    """Return every reward announced in ``text``.

    Lines are scanned in order; an amount already emitted is not emitted
    again, so the first condition seen for it wins.
    """

    lines = [line for line in text.splitlines() if line.strip()]

    strong = [reward for line in lines for reward in _strong_rewards(line)]
    if strong:
        return _dedupe(strong)

    return _dedupe(reward for line in lines for reward in _weak_rewards(line))
