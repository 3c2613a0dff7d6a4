"""Date/time label extraction (core domain).

Each matcher looks at a single line and returns a normalized label or None.
Matchers are tried in precedence order and the first label wins.
"""

from __future__ import annotations

from datetime import datetime
import re
from typing import Callable, Optional, Sequence

MONTH_DAY_RE = re.compile(r"(?<!\d)(?P<month>\d{1,2})\s*月\s*(?P<day>\d{1,2})\s*[日号]?")
DOTTED_DATE_RE = re.compile(r"(?<![\d.])(?P<month>\d{1,2})\.(?P<day>\d{1,2})(?![\d.])(?!\s*[wW万])")
NIGHTLY_RE = re.compile(r"每晚\s*(?P<hour>\d{1,2})\s*[点时]")
MONTH_PERIOD_RE = re.compile(r"(?<!\d)\d{1,2}\s*月\s*[上中下]旬")
HOUR_MINUTE_RE = re.compile(r"(?<![\d.])(?P<hour>\d{1,2})\s*[:：.点时]\s*(?P<minute>\d{1,2})(?![\d.])(?!\s*[wW万])")
HALF_HOUR_RE = re.compile(r"(?<![\d.])(?P<hour>\d{1,2})\s*点半")
HOUR_ONLY_RE = re.compile(r"(?<![\d.])(?P<hour>\d{1,2})\s*[点时.](?!\s*\d)")
MINUTE_ONLY_RE = re.compile(r"(?<![\d.:：点时])(?P<minute>\d{1,2})\s*分(?!钟)")

OCCASION_KEYWORDS = ("生日", "周年", "新衣", "活动")

TimeMatcher = Callable[[str, datetime], Optional[str]]


def _valid_hour(value: int) -> bool:
    return 0 <= value <= 24


def _valid_minute(value: int) -> bool:
    return 0 <= value <= 59


def _clock(hour: int, minute: int) -> str:
    return f"{hour:02d}:{minute:02d}"


def match_month_day(line: str, now: datetime) -> Optional[str]:
    for pattern in (MONTH_DAY_RE, DOTTED_DATE_RE):
        for match in pattern.finditer(line):
            month, day = int(match.group("month")), int(match.group("day"))
            if 1 <= month <= 12 and 1 <= day <= 31:
                return f"{month}月{day}日"
    return None


def match_nightly(line: str, now: datetime) -> Optional[str]:
    match = NIGHTLY_RE.search(line)
    if not match or not _valid_hour(int(match.group("hour"))):
        return None
    return f"每晚 {_clock(int(match.group('hour')), 0)}"


def match_month_period(line: str, now: datetime) -> Optional[str]:
    match = MONTH_PERIOD_RE.search(line)
    return match.group(0) if match else None


def match_hour_minute(line: str, now: datetime) -> Optional[str]:
    for match in HOUR_MINUTE_RE.finditer(line):
        hour, minute = int(match.group("hour")), int(match.group("minute"))
        if _valid_hour(hour) and _valid_minute(minute):
            return _clock(hour, minute)
    return None


def match_half_hour(line: str, now: datetime) -> Optional[str]:
    match = HALF_HOUR_RE.search(line)
    if not match or not _valid_hour(int(match.group("hour"))):
        return None
    return _clock(int(match.group("hour")), 30)


def match_hour_only(line: str, now: datetime) -> Optional[str]:
    for match in HOUR_ONLY_RE.finditer(line):
        hour = int(match.group("hour"))
        if _valid_hour(hour):
            return _clock(hour, 0)
    return None


def match_minute_only(line: str, now: datetime) -> Optional[str]:
    """Resolve "<minute>分" against the wall clock.

    A minute already past in the current hour means the next hour. The
    result therefore depends on ``now``.
    """

    match = MINUTE_ONLY_RE.search(line)
    if not match:
        return None
    minute = int(match.group("minute"))
    if not _valid_minute(minute):
        return None
    hour = now.hour
    if now.minute > minute:
        hour = (hour + 1) % 24
    return _clock(hour, minute)


def match_occasion(line: str, now: datetime) -> Optional[str]:
    if any(keyword in line for keyword in OCCASION_KEYWORDS):
        return line.strip()
    return None


TIME_MATCHERS: Sequence[TimeMatcher] = (
    match_month_day,
    match_nightly,
    match_month_period,
    match_hour_minute,
    match_half_hour,
    match_hour_only,
    match_minute_only,
    match_occasion,
)


def extract_time(line: str, now: Optional[datetime] = None) -> Optional[str]:
    """Return the time label for one line, or None when nothing matches."""

    now = now or datetime.now()
    for matcher in TIME_MATCHERS:
        label = matcher(line, now)
        if label:
            return label
    return None
