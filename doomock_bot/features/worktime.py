"""
Work time tracking: check-in, breaks, check-out and weekly/monthly totals.
"""

from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from typing import Callable, List, Optional, Tuple

from cbdata import encode_cb
from handlers.base_feature import BaseFeatureHandler
from models.models import WorkSession
from platforms.interfaces import IResponseService
from platforms.types import CallbackQuery, Keyboard
from repositories.worktime_repo import WorktimeRepository, WorktimeStateError
from ui.keyboards import MenuItem, feature_menu_kb
from utils.logger import get_logger
from utils.time_utils import format_kst, now_utc, to_kst, today_kst

logger = get_logger(__name__)

LATE_GRACE_MINUTES = 10


def format_minutes(minutes: int) -> str:
    """'8시간 30분', '45분', '0분'."""
    if minutes <= 0:
        return "0분"
    hours, rest = divmod(int(minutes), 60)
    if not hours:
        return f"{rest}분"
    return f"{hours}시간 {rest}분" if rest else f"{hours}시간"


def parse_clock(raw: str, default: time = time(9, 0)) -> time:
    try:
        return datetime.strptime(raw.strip(), "%H:%M").time()
    except (AttributeError, ValueError):
        logger.warning(f"Invalid start time {raw!r}, using {default:%H:%M}")
        return default


def week_bounds(day: date) -> Tuple[date, date]:
    """Monday of `day`'s week and the Monday after."""
    start = day - timedelta(days=day.weekday())
    return start, start + timedelta(days=7)


def month_bounds(day: date) -> Tuple[date, date]:
    start = day.replace(day=1)
    end = date(start.year + 1, 1, 1) if start.month == 12 else date(start.year, start.month + 1, 1)
    return start, end


@dataclass
class WorkSummary:
    days: int
    total_minutes: int
    overtime_minutes: int

    @property
    def average_minutes(self) -> int:
        return self.total_minutes // self.days if self.days else 0


def summarize(sessions: List[WorkSession], now: datetime, standard_minutes: int) -> WorkSummary:
    """Totals over `sessions`; minutes beyond `standard_minutes` a day count as overtime."""
    worked = [s.worked_minutes(now) for s in sessions]
    worked = [m for m in worked if m > 0]
    return WorkSummary(
        days=len(worked),
        total_minutes=sum(worked),
        overtime_minutes=sum(max(0, m - standard_minutes) for m in worked),
    )


class WorktimeFeature(BaseFeatureHandler):
    key = "worktime"

    def __init__(
        self,
        repo: WorktimeRepository,
        standard_hours: float = 8.0,
        start_time: str = "09:00",
        clock: Callable[[], datetime] = now_utc,
    ):
        super().__init__()
        self.repo = repo
        self.standard_minutes = int(round(standard_hours * 60))
        self.start_time = parse_clock(start_time)
        self._clock = clock
        self.actions = {
            "menu": self.show_menu,
            "today": self.show_menu,
            "checkin": self._on_check_in,
            "checkout": self._on_check_out,
            "break_start": self._on_break_start,
            "break_end": self._on_break_end,
            "weekly": self._on_weekly,
            "monthly": self._on_monthly,
        }

    async def initialize(self) -> None:
        await self.repo.initialize()

    def arrival_note(self, check_in_at: datetime) -> str:
        local = to_kst(check_in_at)
        scheduled = datetime.combine(local.date(), self.start_time, tzinfo=local.tzinfo)
        late_by = int((local - scheduled).total_seconds() // 60)
        if late_by > LATE_GRACE_MINUTES:
            return f"⏰ 지각 ({format_minutes(late_by)} 늦음)"
        if late_by < 0:
            return "🌅 일찍 출근하셨네요!"
        return "👍 정시 출근"

    # ---------- rendering ----------

    async def render_today(self, user_id: int, notice: Optional[str] = None) -> Tuple[str, Keyboard]:
        now = self._clock()
        session = await self.repo.open_session(user_id) or await self.repo.for_day(user_id, today_kst(now))

        text = "🏢 <b>근무시간 관리</b>\n\n"
        if notice:
            text += f"{notice}\n\n"
        items: List[MenuItem] = []
        if session is None:
            text += "🏠 아직 출근 기록이 없습니다."
            items.append(MenuItem("출근", encode_cb(self.key, "checkin"), icon="💼"))
        else:
            worked = session.worked_minutes(now)
            text += f"출근: {format_kst(session.check_in_at, '%H:%M')}\n"
            if session.is_working:
                state = "☕ 휴식 중" if session.on_break else "💼 근무 중"
                text += f"상태: {state}\n"
            else:
                text += f"퇴근: {format_kst(session.check_out_at, '%H:%M')}\n"
            text += f"근무: <b>{format_minutes(worked)}</b>"
            if session.break_minutes:
                text += f" (휴식 {format_minutes(session.break_minutes)})"
            if worked > self.standard_minutes:
                text += f"\n🔥 초과근무 {format_minutes(worked - self.standard_minutes)}"
            elif session.is_working:
                text += f"\n남은 시간: {format_minutes(self.standard_minutes - worked)}"
            if session.is_working:
                if session.on_break:
                    items.append(MenuItem("휴식 종료", encode_cb(self.key, "break_end"), icon="▶️"))
                else:
                    items.append(MenuItem("휴식 시작", encode_cb(self.key, "break_start"), icon="☕"))
                items.append(MenuItem("퇴근", encode_cb(self.key, "checkout"), icon="🏠"))
        items.append(MenuItem("주간 통계", encode_cb(self.key, "weekly"), icon="📊"))
        items.append(MenuItem("월간 통계", encode_cb(self.key, "monthly"), icon="📈"))
        return text, feature_menu_kb(self.key, items)

    async def render_menu(self, user_id: int, first_name: Optional[str] = None) -> Tuple[str, Keyboard]:
        return await self.render_today(user_id)

    async def render_summary(self, user_id: int, title: str, start: date, end: date) -> Tuple[str, Keyboard]:
        sessions = await self.repo.between(user_id, start, end)
        summary = summarize(sessions, self._clock(), self.standard_minutes)
        text = f"📊 <b>{title}</b>\n{start:%m/%d} ~ {end - timedelta(days=1):%m/%d}\n\n"
        if not summary.days:
            text += "근무 기록이 없습니다."
        else:
            text += f"근무일: {summary.days}일\n"
            text += f"총 근무: <b>{format_minutes(summary.total_minutes)}</b>\n"
            text += f"일 평균: {format_minutes(summary.average_minutes)}\n"
            text += f"초과근무: {format_minutes(summary.overtime_minutes)}"
        return text, feature_menu_kb(self.key, [], back_to="menu")

    # ---------- callbacks ----------

    async def _apply(self, responder: IResponseService, query: CallbackQuery, change, success: Callable, failure: str) -> bool:
        try:
            session = await change(query.user_id, self._clock())
        except WorktimeStateError as e:
            logger.info(f"Worktime action refused for user {query.user_id}: {e}")
            notice = failure
        else:
            notice = success(session)
        text, keyboard = await self.render_today(query.user_id, notice=notice)
        return await self.reply(responder, query, text, keyboard)

    async def _on_check_in(self, responder: IResponseService, query: CallbackQuery, params: List[str], router) -> bool:
        return await self._apply(
            responder, query, self.repo.check_in,
            lambda s: f"✅ 출근 완료! {self.arrival_note(s.check_in_at)}",
            "⚠️ 이미 오늘 출근 기록이 있습니다.",
        )

    async def _on_check_out(self, responder: IResponseService, query: CallbackQuery, params: List[str], router) -> bool:
        return await self._apply(
            responder, query, self.repo.check_out,
            lambda s: f"🏠 퇴근 완료! 오늘 {format_minutes(s.worked_minutes(self._clock()))} 근무했습니다. 수고하셨어요!",
            "⚠️ 출근 기록이 없습니다.",
        )

    async def _on_break_start(self, responder: IResponseService, query: CallbackQuery, params: List[str], router) -> bool:
        return await self._apply(
            responder, query, self.repo.start_break,
            lambda s: "☕ 휴식을 시작했습니다.",
            "⚠️ 근무 중일 때만 휴식을 시작할 수 있습니다.",
        )

    async def _on_break_end(self, responder: IResponseService, query: CallbackQuery, params: List[str], router) -> bool:
        return await self._apply(
            responder, query, self.repo.end_break,
            lambda s: f"▶️ 휴식 종료 (누적 휴식 {format_minutes(s.break_minutes)})",
            "⚠️ 진행 중인 휴식이 없습니다.",
        )

    async def _on_weekly(self, responder: IResponseService, query: CallbackQuery, params: List[str], router) -> bool:
        start, end = week_bounds(today_kst(self._clock()))
        text, keyboard = await self.render_summary(query.user_id, "이번 주 근무", start, end)
        return await self.reply(responder, query, text, keyboard)

    async def _on_monthly(self, responder: IResponseService, query: CallbackQuery, params: List[str], router) -> bool:
        start, end = month_bounds(today_kst(self._clock()))
        text, keyboard = await self.render_summary(query.user_id, f"{start.month}월 근무", start, end)
        return await self.reply(responder, query, text, keyboard)
