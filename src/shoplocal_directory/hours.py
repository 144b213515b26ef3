"""Open-now check for GeoDirectory business hours.

Hours are stored as ``["Mo,Tu 09:00-17:00","Sa 10:00-12:00,13:00-16:00"],["UTC":"-5"]``.
Day tokens may also be ranges such as ``Mo-Fr``.
"""

from __future__ import annotations

import logging
import re
from datetime import datetime, time, timedelta, timezone
from typing import Dict, List, Optional, Tuple

logger = logging.getLogger(__name__)

DAYS = ("Mo", "Tu", "We", "Th", "Fr", "Sa", "Su")

_ENTRY_RE = re.compile(r'"([A-Za-z][^"]*?\d{1,2}:\d{2}[^"]*)"')
_OFFSET_RE = re.compile(r'"UTC"\s*:\s*"([+-]?\d{1,2})(?::(\d{2}))?"')
_RANGE_RE = re.compile(r"^(\d{1,2}):(\d{2})-(\d{1,2}):(\d{2})$")

Schedule = Dict[int, List[Tuple[time, time]]]


def _expand_days(token: str) -> List[int]:
    token = token.strip()
    if "-" in token:
        start, _, end = token.partition("-")
        if start not in DAYS or end not in DAYS:
            return []
        first, last = DAYS.index(start), DAYS.index(end)
        if first <= last:
            return list(range(first, last + 1))
        return list(range(first, 7)) + list(range(0, last + 1))
    return [DAYS.index(token)] if token in DAYS else []


def _parse_range(token: str) -> Optional[Tuple[time, time]]:
    match = _RANGE_RE.match(token.strip())
    if not match:
        return None
    start_h, start_m, end_h, end_m = (int(part) for part in match.groups())
    if start_h > 24 or end_h > 24 or start_m > 59 or end_m > 59:
        return None
    start = time(start_h % 24, start_m)
    end = time(end_h % 24, end_m)
    return start, end


def parse_business_hours(value: Optional[str]) -> Tuple[Schedule, Optional[timedelta]]:
    """Return the weekly schedule and UTC offset; an empty schedule if unparseable."""

    schedule: Schedule = {}
    if not value:
        return schedule, None
    for entry in _ENTRY_RE.findall(value):
        days_part, _, ranges_part = entry.strip().partition(" ")
        days: List[int] = []
        for token in days_part.split(","):
            days.extend(_expand_days(token))
        ranges = [parsed for parsed in (_parse_range(token) for token in ranges_part.split(",")) if parsed]
        for day in days:
            schedule.setdefault(day, []).extend(ranges)

    offset = None
    match = _OFFSET_RE.search(value)
    if match:
        hours = int(match.group(1))
        minutes = int(match.group(2) or 0)
        sign = -1 if match.group(1).startswith("-") else 1
        offset = timedelta(hours=hours, minutes=sign * minutes)
    return schedule, offset


def is_open_now(value: Optional[str], now: Optional[datetime] = None) -> bool:
    """Return ``True`` when the hours say the business is open at ``now``.

    ``now`` defaults to the current UTC time; the stored UTC offset shifts it to
    the business's local time.  Missing or unparseable hours count as closed.
    """

    schedule, offset = parse_business_hours(value)
    if not schedule:
        return False
    current = now or datetime.now(timezone.utc)
    if current.tzinfo is not None:
        current = current.astimezone(timezone.utc).replace(tzinfo=None)
        if offset is not None:
            current = current + offset
    moment = current.time()
    for start, end in schedule.get(current.weekday(), []):
        if start == end:
            return True
        if start < end and start <= moment < end:
            return True
        if start > end and (moment >= start or moment < end):
            return True
    return False
