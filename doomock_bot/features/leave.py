"""
Annual leave tracking: allowance per user, usage in 1 / 0.5 / 0.25 day units.
"""

from datetime import date
from typing import Callable, List, Optional, Tuple

from cbdata import encode_cb
from handlers.base_feature import BaseFeatureHandler
from models.models import LeaveBalance
from platforms.interfaces import IResponseService
from platforms.types import CallbackQuery, Keyboard, UserMessage
from repositories.leave_repo import (
    LEAVE_UNITS,
    MAX_ANNUAL_LEAVE,
    MIN_ANNUAL_LEAVE,
    LeaveBalanceError,
    LeaveRepository,
    leave_label,
)
from ui.keyboards import MenuItem, feature_menu_kb
from utils.logger import get_logger
from utils.time_utils import today_kst

logger = get_logger(__name__)

AWAITING_ALLOWANCE = "allowance"


def format_days(days: float) -> str:
    return f"{days:g}일"


def _usage_bar(balance: LeaveBalance, width: int = 10) -> str:
    if balance.annual_days <= 0:
        return "░" * width
    filled = min(width, int(round(balance.used_days / balance.annual_days * width)))
    return "█" * filled + "░" * (width - filled)


class LeaveFeature(BaseFeatureHandler):
    key = "leave"

    def __init__(self, repo: LeaveRepository, today: Callable[[], date] = today_kst):
        super().__init__()
        self.repo = repo
        self._today = today
        self.actions = {
            "menu": self.show_menu,
            "status": self.show_menu,
            "use": self._on_use,
            "history": self._on_history,
            "setting": self._on_setting,
        }
        self.input_actions = {AWAITING_ALLOWANCE: self._on_allowance_text}

    async def initialize(self) -> None:
        await self.repo.initialize()

    async def render_status(self, user_id: int, notice: Optional[str] = None) -> Tuple[str, Keyboard]:
        year = self._today().year
        balance = await self.repo.balance(user_id, year)

        text = f"🏖️ <b>{year}년 연차 현황</b>\n\n"
        if notice:
            text += f"{notice}\n\n"
        text += f"연간 연차: {format_days(balance.annual_days)}\n"
        text += f"사용: {format_days(balance.used_days)}\n"
        text += f"잔여: <b>{format_days(max(0.0, balance.remaining_days))}</b>\n"
        text += f"<code>[{_usage_bar(balance)}]</code>"

        items = [
            MenuItem(f"{label} 사용", encode_cb(self.key, "use", f"{days:g}"), icon="📅")
            for days, label in LEAVE_UNITS.items()
        ]
        items.append(MenuItem("사용 내역", encode_cb(self.key, "history"), icon="📋"))
        items.append(MenuItem("연차 설정", encode_cb(self.key, "setting"), icon="⚙️"))
        return text, feature_menu_kb(self.key, items)

    async def render_menu(self, user_id: int, first_name: Optional[str] = None) -> Tuple[str, Keyboard]:
        return await self.render_status(user_id)

    async def _on_use(self, responder: IResponseService, query: CallbackQuery, params: List[str], router) -> bool:
        try:
            days = float(params[0]) if params else 1.0
        except ValueError:
            days = 0.0
        if days not in LEAVE_UNITS:
            text, keyboard = await self.render_status(query.user_id, notice="⚠️ 지원하지 않는 연차 단위입니다.")
            return await self.reply(responder, query, text, keyboard)

        today = self._today()
        try:
            await self.repo.use(query.user_id, days, today)
        except LeaveBalanceError as e:
            notice = (
                f"⚠️ 잔여 연차가 부족합니다. "
                f"(요청 {format_days(e.requested)}, 잔여 {format_days(max(0.0, e.remaining))})"
            )
        else:
            logger.info(f"User {query.user_id} used {days} day(s) of leave")
            notice = f"✅ {leave_label(days)}({format_days(days)}) 사용을 기록했습니다. ({today.isoformat()})"
        text, keyboard = await self.render_status(query.user_id, notice=notice)
        return await self.reply(responder, query, text, keyboard)

    async def _on_history(self, responder: IResponseService, query: CallbackQuery, params: List[str], router) -> bool:
        year = self._today().year
        records = await self.repo.history(query.user_id, year)
        text = f"📋 <b>{year}년 연차 사용 내역</b>\n\n"
        if not records:
            text += "사용 내역이 없습니다."
        for record in records:
            text += f"• {record.used_on.isoformat()} {leave_label(record.days)} ({format_days(record.days)})\n"
        return await self.reply(responder, query, text, feature_menu_kb(self.key, [], back_to="menu"))

    async def _on_setting(self, responder: IResponseService, query: CallbackQuery, params: List[str], router) -> bool:
        settings = await self.repo.get_settings(query.user_id)
        self.set_pending(query.user_id, AWAITING_ALLOWANCE)
        text = (
            "⚙️ <b>연차 설정</b>\n\n"
            f"현재 연간 연차: {settings.annual_days}일\n"
            f"새 연간 연차 일수를 입력해주세요. ({MIN_ANNUAL_LEAVE}~{MAX_ANNUAL_LEAVE})"
        )
        return await self.reply(responder, query, text, feature_menu_kb(self.key, [], back_to="menu"))

    async def _on_allowance_text(self, responder: IResponseService, message: UserMessage) -> bool:
        raw = (message.text or "").strip().rstrip("일").strip()
        try:
            await self.repo.set_annual_days(message.user_id, int(raw))
        except ValueError:
            text = f"⚠️ {MIN_ANNUAL_LEAVE}~{MAX_ANNUAL_LEAVE} 사이의 숫자를 입력해주세요."
            return await self.send(responder, message, text, feature_menu_kb(self.key, [], back_to="menu"))
        self.clear_pending(message.user_id)
        text, keyboard = await self.render_status(message.user_id, notice=f"✅ 연간 연차를 {int(raw)}일로 설정했습니다.")
        return await self.send(responder, message, text, keyboard)
