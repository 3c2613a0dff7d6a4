"""Chinese numeral normalization (core domain).

Announcements mix Arabic digits with spelled-out numerals ("两千", "三万五"),
so every maximal run of numeral characters is rewritten to its decimal value
before any extractor runs.
"""

from __future__ import annotations

import re
from typing import Optional

DIGITS = {
    "零": 0,
    "一": 1,
    "二": 2,
    "两": 2,
    "三": 3,
    "四": 4,
    "五": 5,
    "六": 6,
    "七": 7,
    "八": 8,
    "九": 9,
}

MAGNITUDES = {
    "十": 10,
    "百": 100,
    "千": 1000,
}

SECTION_MAGNITUDES = {
    "万": 10_000,
    "亿": 100_000_000,
}

NUMERAL_CHARS = "".join([*DIGITS, *MAGNITUDES, *SECTION_MAGNITUDES])
NUMERAL_RUN_RE = re.compile(f"[{NUMERAL_CHARS}]+")

# A lone magnitude such as "万" or "千" is usually part of an ordinary word.
_STANDALONE_TOKENS = set(DIGITS) | {"十"}


def chinese_to_int(run: str) -> int:
    """Return the value of a run made only of numeral characters.

    "十" with no leading digit reads as ten, "零" is a placeholder that never
    resets the current section ("一千零八" is 1008).
    """

    total = 0
    section_total = 0
    current_digit: Optional[int] = None

    for char in run:
        if char in DIGITS:
            current_digit = DIGITS[char]
            continue

        if char in MAGNITUDES:
            magnitude = MAGNITUDES[char]
            if current_digit is None:
                current_digit = 1 if magnitude == 10 else 0
            section_total += current_digit * magnitude
            current_digit = None
            continue

        magnitude = SECTION_MAGNITUDES[char]
        section_value = section_total + (current_digit or 0)
        if magnitude > 10_000:
            # "亿" scales everything accumulated so far, including "万" sections.
            total = (total + section_value) * magnitude
        else:
            total += section_value * magnitude
        section_total = 0
        current_digit = None

    return total + section_total + (current_digit or 0)


def _replace_run(match: re.Match) -> str:
    run = match.group(0)
    if len(run) == 1 and run not in _STANDALONE_TOKENS:
        return run
    return str(chinese_to_int(run))


def normalize_numerals(text: str) -> str:
    """Rewrite each run of Chinese numerals in ``text`` as decimal digits."""

    return NUMERAL_RUN_RE.sub(_replace_run, text)
