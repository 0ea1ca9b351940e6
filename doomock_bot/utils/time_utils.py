# time_utils.py
from datetime import date, datetime, timedelta, timezone
from typing import Optional
from zoneinfo import ZoneInfo

KST = ZoneInfo("Asia/Seoul")


def now_utc() -> datetime:
    return datetime.now(timezone.utc)


def now_kst() -> datetime:
    return datetime.now(KST)


def to_kst(dt: datetime) -> datetime:
    """Convert an aware datetime to Korean time; naive values are taken as UTC."""
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(KST)


def today_kst(now: Optional[datetime] = None) -> date:
    return to_kst(now).date() if now else now_kst().date()


def beautify_duration(seconds: float) -> str:
    """Seconds as Korean text, e.g. '1시간 5분', '3분 20초'."""
    total = max(0, int(round(seconds)))
    h, rem = divmod(total, 3600)
    m, s = divmod(rem, 60)
    if h:
        return f"{h}시간 {m}분" if m else f"{h}시간"
    if m:
        return f"{m}분 {s}초" if s else f"{m}분"
    return f"{s}초"


def format_kst(dt: datetime, fmt: str = "%Y-%m-%d %H:%M") -> str:
    return to_kst(dt).strftime(fmt)


def year_bounds_kst(year: int):
    """Return (start, end) of a calendar year in Korean time, end exclusive."""
    start = datetime(year, 1, 1, tzinfo=KST)
    end = datetime(year + 1, 1, 1, tzinfo=KST)
    return start, end


def day_bounds_kst(day: date):
    start = datetime(day.year, day.month, day.day, tzinfo=KST)
    return start, start + timedelta(days=1)
