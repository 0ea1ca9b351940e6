"""
Countdown timers (pomodoro by default). One active timer per user, kept in
memory; completion is delivered through the platform job scheduler.
"""

from datetime import datetime, timedelta
from typing import Callable, Dict, List, Optional, Tuple

from cbdata import encode_cb
from handlers.base_feature import BaseFeatureHandler, edit_or_send
from models.models import TimerState
from platforms.interfaces import IJobScheduler, IResponseService
from platforms.types import CallbackQuery, Keyboard, UserMessage
from ui.keyboards import MenuItem, feature_menu_kb
from utils.logger import get_logger
from utils.time_utils import beautify_duration, format_kst, now_utc

logger = get_logger(__name__)

PRESET_MINUTES = (5, 10, 25)
MIN_MINUTES = 1
MAX_MINUTES = 180
AWAITING_MINUTES = "custom_minutes"


def timer_job_name(user_id: int) -> str:
    return f"timer:{user_id}"


class TimerFeature(BaseFeatureHandler):
    key = "timer"

    def __init__(
        self,
        scheduler: IJobScheduler,
        notifier: IResponseService,
        default_minutes: int = 25,
        clock: Callable[[], datetime] = now_utc,
    ):
        super().__init__()
        self.scheduler = scheduler
        self.notifier = notifier
        self.default_minutes = default_minutes
        self._clock = clock
        self._timers: Dict[int, TimerState] = {}
        self.actions = {
            "menu": self.show_menu,
            "start": self._on_start,
            "custom": self._on_custom,
            "stop": self._on_stop,
            "status": self.show_menu,
        }
        self.input_actions = {AWAITING_MINUTES: self._on_minutes_text}

    async def cleanup(self) -> None:
        for user_id in list(self._timers):
            self.scheduler.cancel_job(timer_job_name(user_id))
        self._timers.clear()

    def active_timer(self, user_id: int) -> Optional[TimerState]:
        return self._timers.get(user_id)

    # ---------- timer lifecycle ----------

    def start_timer(self, user_id: int, chat_id: int, minutes: int) -> TimerState:
        if not MIN_MINUTES <= minutes <= MAX_MINUTES:
            raise ValueError(f"timer must be between {MIN_MINUTES} and {MAX_MINUTES} minutes")
        if user_id in self._timers:
            raise ValueError("a timer is already running")
        started = self._clock()
        state = TimerState(
            user_id=user_id,
            chat_id=chat_id,
            minutes=minutes,
            started_at=started,
            ends_at=started + timedelta(minutes=minutes),
            job_name=timer_job_name(user_id),
        )
        self._timers[user_id] = state
        try:
            self.scheduler.schedule_once(
                state.job_name,
                self._on_timer_done,
                state.ends_at,
                data={"user_id": user_id, "chat_id": chat_id, "minutes": minutes},
            )
        except Exception:
            self._timers.pop(user_id, None)
            raise
        logger.info(f"Timer of {minutes} min started for user {user_id}")
        return state

    def stop_timer(self, user_id: int) -> Optional[TimerState]:
        state = self._timers.pop(user_id, None)
        if state is not None:
            self.scheduler.cancel_job(state.job_name)
        return state

    async def _on_timer_done(self, data: dict) -> None:
        user_id = data.get("user_id")
        state = self._timers.pop(user_id, None)
        if state is None:
            return
        text = f"⏰ <b>타이머 완료!</b>\n\n{state.minutes}분이 지났습니다. 수고하셨어요! 🎉"
        keyboard = feature_menu_kb(self.key, [MenuItem("다시 시작", encode_cb(self.key, "start", state.minutes), icon="🔁")])
        await edit_or_send(self.notifier, state.user_id, state.chat_id, None, text, keyboard)

    # ---------- rendering ----------

    async def render_menu(self, user_id: int, first_name: Optional[str] = None) -> Tuple[str, Keyboard]:
        return self.render_status(user_id)

    def render_status(self, user_id: int, notice: Optional[str] = None) -> Tuple[str, Keyboard]:
        text = "⏱️ <b>타이머</b>\n\n"
        if notice:
            text += f"{notice}\n\n"
        state = self._timers.get(user_id)
        if state is not None:
            remaining = state.remaining_seconds(self._clock())
            text += f"▶️ {state.minutes}분 타이머 진행 중\n"
            text += f"남은 시간: <b>{beautify_duration(remaining)}</b>\n"
            text += f"종료 예정: {format_kst(state.ends_at, '%H:%M')}"
            items = [
                MenuItem("새로고침", encode_cb(self.key, "status"), icon="🔄"),
                MenuItem("중지", encode_cb(self.key, "stop"), icon="⏹️"),
            ]
        else:
            text += "실행 중인 타이머가 없습니다.\n시간을 선택해 시작하세요."
            minutes = sorted(set(PRESET_MINUTES) | {self.default_minutes})
            items = [
                MenuItem(f"{m}분{' (뽀모도로)' if m == 25 else ''}", encode_cb(self.key, "start", m), icon="⏱️")
                for m in minutes
            ]
            items.append(MenuItem("직접 입력", encode_cb(self.key, "custom"), icon="✏️"))
        return text, feature_menu_kb(self.key, items)

    # ---------- callbacks ----------

    async def _start_and_render(self, user_id: int, chat_id: int, minutes: int) -> Tuple[str, Keyboard]:
        try:
            self.start_timer(user_id, chat_id, minutes)
        except ValueError:
            if user_id in self._timers:
                return self.render_status(user_id, notice="⚠️ 이미 실행 중인 타이머가 있습니다.")
            return self.render_status(user_id, notice=f"⚠️ {MIN_MINUTES}~{MAX_MINUTES}분 사이로 설정해주세요.")
        return self.render_status(user_id, notice=f"✅ {minutes}분 타이머를 시작했습니다.")

    async def _on_start(self, responder: IResponseService, query: CallbackQuery, params: List[str], router) -> bool:
        try:
            minutes = int(params[0]) if params else self.default_minutes
        except ValueError:
            minutes = self.default_minutes
        text, keyboard = await self._start_and_render(query.user_id, query.chat_id, minutes)
        return await self.reply(responder, query, text, keyboard)

    async def _on_custom(self, responder: IResponseService, query: CallbackQuery, params: List[str], router) -> bool:
        if query.user_id in self._timers:
            text, keyboard = self.render_status(query.user_id, notice="⚠️ 이미 실행 중인 타이머가 있습니다.")
            return await self.reply(responder, query, text, keyboard)
        self.set_pending(query.user_id, AWAITING_MINUTES)
        text = f"✏️ 몇 분 타이머를 시작할까요? ({MIN_MINUTES}~{MAX_MINUTES} 사이 숫자)"
        return await self.reply(responder, query, text, feature_menu_kb(self.key, [], back_to="menu"))

    async def _on_stop(self, responder: IResponseService, query: CallbackQuery, params: List[str], router) -> bool:
        state = self.stop_timer(query.user_id)
        notice = "⏹️ 타이머를 중지했습니다." if state else "실행 중인 타이머가 없습니다."
        text, keyboard = self.render_status(query.user_id, notice=notice)
        return await self.reply(responder, query, text, keyboard)

    # ---------- text input ----------

    async def _on_minutes_text(self, responder: IResponseService, message: UserMessage) -> bool:
        raw = (message.text or "").strip().rstrip("분").strip()
        try:
            minutes = int(raw)
        except ValueError:
            minutes = 0
        if not MIN_MINUTES <= minutes <= MAX_MINUTES:
            text = f"⚠️ {MIN_MINUTES}~{MAX_MINUTES} 사이의 숫자를 입력해주세요."
            return await self.send(responder, message, text, feature_menu_kb(self.key, [], back_to="menu"))
        self.clear_pending(message.user_id)
        text, keyboard = await self._start_and_render(message.user_id, message.chat_id, minutes)
        return await self.send(responder, message, text, keyboard)
