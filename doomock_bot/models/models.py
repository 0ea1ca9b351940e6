from dataclasses import dataclass
from datetime import datetime, date
from typing import Optional


@dataclass
class Todo:
    user_id: int
    id: str               # Mongo ObjectId as hex string
    text: str
    completed: bool = False
    created_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None


@dataclass
class LeaveRecord:
    user_id: int
    days: float           # 1.0 | 0.5 | 0.25
    used_on: date         # Korean calendar date
    reason: str = ""
    id: Optional[str] = None
    created_at: Optional[datetime] = None


@dataclass
class LeaveSettings:
    user_id: int
    annual_days: int = 15


@dataclass
class LeaveBalance:
    year: int
    annual_days: float
    used_days: float

    @property
    def remaining_days(self) -> float:
        return self.annual_days - self.used_days


@dataclass
class TarotCard:
    number: int
    name: str             # Korean name
    english_name: str
    emoji: str
    upright: str
    reversed: str


@dataclass
class TarotDraw:
    user_id: int
    card_number: int
    is_reversed: bool
    drawn_on: date        # Korean calendar date
    created_at: Optional[datetime] = None


@dataclass
class TimerState:
    user_id: int
    chat_id: int
    minutes: int
    started_at: datetime
    ends_at: datetime
    job_name: str
    label: str = ""

    def remaining_seconds(self, now: datetime) -> float:
        return max(0.0, (self.ends_at - now).total_seconds())


@dataclass
class WeatherReport:
    city: str
    description: str
    temperature: float
    feels_like: float
    humidity: int
    wind_speed: float
    icon: str = ""
    fetched_at: Optional[datetime] = None


@dataclass
class WorkSession:
    user_id: int
    work_date: date       # Korean calendar date of check-in
    check_in_at: datetime
    check_out_at: Optional[datetime] = None
    break_minutes: int = 0
    break_started_at: Optional[datetime] = None
    id: Optional[str] = None

    @property
    def is_working(self) -> bool:
        return self.check_out_at is None

    @property
    def on_break(self) -> bool:
        return self.break_started_at is not None

    def worked_minutes(self, now: datetime) -> int:
        """Minutes at work, breaks excluded; an open session counts up to `now`."""
        end = self.check_out_at or now
        breaks = self.break_minutes
        if self.break_started_at is not None and self.check_out_at is None:
            breaks += int((now - self.break_started_at).total_seconds() // 60)
        total = int((end - self.check_in_at).total_seconds() // 60)
        return max(0, total - breaks)


@dataclass
class Reminder:
    user_id: int
    chat_id: int
    text: str
    remind_at: datetime
    id: Optional[str] = None
    delivered: bool = False
    created_at: Optional[datetime] = None
