"""
Korean reminder phrases -> (when, what).

Understood forms, each followed by the reminder text:
    "30분 후 회의"          relative minutes
    "2시간 뒤 약 먹기"      relative hours
    "15:30 보고서 제출"     clock time, 24h
    "오후 3시 10분 전화"    clock time with 오전/오후
A clock time that has already passed today means tomorrow.
"""

import re
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional

from utils.time_utils import to_kst

MIN_REMINDER_MINUTES = 1
MAX_REMINDER_MINUTES = 1440
MAX_REMINDER_LENGTH = 200

_RELATIVE = re.compile(r"^(\d+)\s*(분|시간)\s*(?:후|뒤)\s*(.*)$", re.DOTALL)
_COLON_TIME = re.compile(r"^(\d{1,2}):(\d{2})\s*(.*)$", re.DOTALL)
_KOREAN_TIME = re.compile(r"^(오전|오후)?\s*(\d{1,2})\s*시(?:\s*(\d{1,2})\s*분)?\s*(.*)$", re.DOTALL)


class ReminderParseError(ValueError):
    """Text that does not start with a time this parser understands."""


@dataclass
class ParsedReminder:
    remind_at: datetime
    text: str


def _checked_body(body: str) -> str:
    body = body.strip()
    if not body:
        raise ReminderParseError("reminder text is empty")
    if len(body) > MAX_REMINDER_LENGTH:
        raise ReminderParseError(f"reminder text exceeds {MAX_REMINDER_LENGTH} characters")
    return body


def after_minutes(now: datetime, minutes: int) -> datetime:
    if not MIN_REMINDER_MINUTES <= minutes <= MAX_REMINDER_MINUTES:
        raise ReminderParseError(
            f"reminder must be {MIN_REMINDER_MINUTES}-{MAX_REMINDER_MINUTES} minutes ahead"
        )
    return now + timedelta(minutes=minutes)


def _next_clock_time(now: datetime, hour: int, minute: int) -> datetime:
    if not (0 <= hour <= 23 and 0 <= minute <= 59):
        raise ReminderParseError(f"invalid time {hour}:{minute:02d}")
    local = to_kst(now)
    target = local.replace(hour=hour, minute=minute, second=0, microsecond=0)
    if target <= local:
        target += timedelta(days=1)
    return target


def parse_reminder(raw: Optional[str], now: datetime) -> ParsedReminder:
    """Raises ReminderParseError when the time or the text is missing or invalid."""
    text = (raw or "").strip()

    match = _RELATIVE.match(text)
    if match:
        amount = int(match.group(1))
        minutes = amount * 60 if match.group(2) == "시간" else amount
        return ParsedReminder(after_minutes(now, minutes), _checked_body(match.group(3)))

    match = _COLON_TIME.match(text)
    if match:
        when = _next_clock_time(now, int(match.group(1)), int(match.group(2)))
        return ParsedReminder(when, _checked_body(match.group(3)))

    match = _KOREAN_TIME.match(text)
    if match:
        meridiem, hour, minute = match.group(1), int(match.group(2)), int(match.group(3) or 0)
        if meridiem:
            if not 1 <= hour <= 12:
                raise ReminderParseError(f"invalid hour {hour} with {meridiem}")
            hour = hour % 12 + (12 if meridiem == "오후" else 0)
        when = _next_clock_time(now, hour, minute)
        return ParsedReminder(when, _checked_body(match.group(4)))

    raise ReminderParseError(f"no time found in {text!r}")
