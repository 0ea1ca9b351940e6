"""
Reminders: the user writes a time and a text, the bot sends the text back at
that time. Reminders live in MongoDB and are rescheduled on startup.
"""

from datetime import datetime, timedelta
from html import escape
from typing import Callable, Dict, List, Optional, Tuple

from cbdata import encode_cb
from handlers.base_feature import BaseFeatureHandler, edit_or_send
from models.models import Reminder
from platforms.interfaces import IJobScheduler, IResponseService
from platforms.types import CallbackQuery, Keyboard, KeyboardButton, UserMessage
from repositories.reminders_repo import ReminderLimitError, RemindersRepository
from services.reminder_parser import (
    MAX_REMINDER_LENGTH,
    MAX_REMINDER_MINUTES,
    MIN_REMINDER_MINUTES,
    ParsedReminder,
    ReminderParseError,
    after_minutes,
    parse_reminder,
)
from ui.keyboards import MenuItem, back_to_menu_item, build_keyboard, feature_menu_kb
from utils.logger import get_logger
from utils.time_utils import format_kst, now_utc

logger = get_logger(__name__)

QUICK_MINUTES = (5, 10, 30, 60)
AWAITING_FULL = "full"
AWAITING_TEXT = "text"
BUTTON_TEXT_LIMIT = 20
MAX_DELIVERY_ATTEMPTS = 3
RETRY_DELAY = timedelta(minutes=1)

EXAMPLES = "예시:\n• 30분 후 회의 준비\n• 2시간 뒤 약 먹기\n• 15:30 보고서 제출\n• 오후 6시 운동"


def reminder_job_name(reminder_id: str) -> str:
    return f"reminder:{reminder_id}"


def quick_label(minutes: int) -> str:
    """'5분 후', '1시간 후', '1시간 30분 후'."""
    hours, rest = divmod(minutes, 60)
    if not hours:
        return f"{rest}분 후"
    return f"{hours}시간 {rest}분 후" if rest else f"{hours}시간 후"


def _short(text: str, limit: int = BUTTON_TEXT_LIMIT) -> str:
    return text if len(text) <= limit else text[: limit - 1] + "…"


class ReminderFeature(BaseFeatureHandler):
    key = "reminder"

    def __init__(
        self,
        repo: RemindersRepository,
        scheduler: IJobScheduler,
        notifier: IResponseService,
        clock: Callable[[], datetime] = now_utc,
    ):
        super().__init__()
        self.repo = repo
        self.scheduler = scheduler
        self.notifier = notifier
        self._clock = clock
        self._quick_minutes: Dict[int, int] = {}
        self._scheduled: Dict[str, Reminder] = {}
        self._failed_deliveries: Dict[str, int] = {}
        self.actions = {
            "menu": self._on_list,
            "list": self._on_list,
            "create": self._on_create,
            "quick": self._on_quick,
            "cancel": self._on_cancel,
            "cancel_all": self._on_cancel_all,
        }
        self.input_actions = {
            AWAITING_FULL: self._on_full_text,
            AWAITING_TEXT: self._on_reminder_text,
        }

    async def initialize(self) -> None:
        await self.repo.initialize()
        pending = await self.repo.all_pending()
        for reminder in pending:
            self._schedule(reminder)
        logger.info(f"Rescheduled {len(pending)} pending reminder(s)")

    async def cleanup(self) -> None:
        for reminder_id in list(self._scheduled):
            self.scheduler.cancel_job(reminder_job_name(reminder_id))
        self._scheduled.clear()
        self._failed_deliveries.clear()

    # ---------- scheduling ----------

    def _schedule(self, reminder: Reminder, when: Optional[datetime] = None) -> None:
        # Overdue reminders (missed while the bot was down) fire right away.
        when = when or max(reminder.remind_at, self._clock())
        self.scheduler.schedule_once(
            reminder_job_name(reminder.id),
            self._deliver,
            when,
            data={"reminder_id": reminder.id},
        )
        self._scheduled[reminder.id] = reminder

    def _unschedule(self, reminder_id: str) -> None:
        self.scheduler.cancel_job(reminder_job_name(reminder_id))
        self._scheduled.pop(reminder_id, None)
        self._failed_deliveries.pop(reminder_id, None)

    async def create(self, user_id: int, chat_id: int, parsed: ParsedReminder) -> Reminder:
        reminder = await self.repo.add(user_id, chat_id, parsed.text, parsed.remind_at)
        try:
            self._schedule(reminder)
        except Exception:
            await self.repo.cancel(user_id, reminder.id)
            raise
        logger.info(f"Reminder {reminder.id} set for user {user_id} at {reminder.remind_at.isoformat()}")
        return reminder

    async def _deliver(self, data: dict) -> None:
        reminder_id = data.get("reminder_id")
        self._scheduled.pop(reminder_id, None)
        reminder = await self.repo.get(reminder_id)
        if reminder is None or reminder.delivered:
            return
        text = f"⏰ <b>리마인더</b>\n\n{escape(reminder.text)}"
        keyboard = feature_menu_kb(self.key, [MenuItem("새 리마인더", encode_cb(self.key, "create"), icon="➕")])
        if not await edit_or_send(self.notifier, reminder.user_id, reminder.chat_id, None, text, keyboard):
            self._retry_later(reminder)
            return
        self._failed_deliveries.pop(reminder_id, None)
        await self.repo.mark_delivered(reminder_id, self._clock())

    def _retry_later(self, reminder: Reminder) -> None:
        """Failed deliveries are retried a few times, then left pending until the next startup."""
        attempts = self._failed_deliveries.get(reminder.id, 0) + 1
        if attempts >= MAX_DELIVERY_ATTEMPTS:
            self._failed_deliveries.pop(reminder.id, None)
            logger.warning(f"Reminder {reminder.id} undeliverable after {attempts} attempts, keeping it pending")
            return
        self._failed_deliveries[reminder.id] = attempts
        logger.warning(f"Reminder {reminder.id} could not be delivered (attempt {attempts}), retrying")
        self._schedule(reminder, self._clock() + RETRY_DELAY)

    # ---------- rendering ----------

    async def render_list(self, user_id: int, notice: Optional[str] = None) -> Tuple[str, Keyboard]:
        reminders = await self.repo.pending_for(user_id)
        text = "⏰ <b>리마인더</b>\n\n"
        if notice:
            text += f"{notice}\n\n"
        if not reminders:
            text += "예약된 리마인더가 없습니다."
        else:
            text += f"예약 {len(reminders)}/{self.repo.max_per_user}\n\n"
            for reminder in reminders:
                text += f"• {format_kst(reminder.remind_at, '%m/%d %H:%M')} {escape(reminder.text)}\n"

        keyboard = Keyboard()
        for reminder in reminders:
            keyboard.add_row(KeyboardButton(
                text=f"❌ {format_kst(reminder.remind_at, '%H:%M')} {_short(reminder.text)}",
                callback_data=encode_cb(self.key, "cancel", reminder.id),
            ))
        items = [
            MenuItem(quick_label(m), encode_cb(self.key, "quick", m), icon="⏱️")
            for m in QUICK_MINUTES
        ]
        items.append(MenuItem("직접 입력", encode_cb(self.key, "create"), icon="✏️"))
        if reminders:
            items.append(MenuItem("모두 취소", encode_cb(self.key, "cancel_all"), icon="🗑️"))
        tail = build_keyboard(items, width=2, footer=[back_to_menu_item()])
        keyboard.buttons.extend(tail.buttons)
        return text, keyboard

    async def render_menu(self, user_id: int, first_name: Optional[str] = None) -> Tuple[str, Keyboard]:
        return await self.render_list(user_id)

    def _cancel_input_kb(self) -> Keyboard:
        return build_keyboard([MenuItem("취소", encode_cb(self.key, "list"), icon="❌")])

    # ---------- callbacks ----------

    async def _on_list(self, responder: IResponseService, query: CallbackQuery, params: List[str], router) -> bool:
        text, keyboard = await self.render_list(query.user_id)
        return await self.reply(responder, query, text, keyboard)

    async def _limit_reached(self, responder: IResponseService, query: CallbackQuery) -> bool:
        if await self.repo.count_pending(query.user_id) < self.repo.max_per_user:
            return False
        text, keyboard = await self.render_list(
            query.user_id, notice=f"⚠️ 리마인더는 최대 {self.repo.max_per_user}개까지 예약할 수 있습니다."
        )
        await self.reply(responder, query, text, keyboard)
        return True

    async def _on_create(self, responder: IResponseService, query: CallbackQuery, params: List[str], router) -> bool:
        if await self._limit_reached(responder, query):
            return True
        self.set_pending(query.user_id, AWAITING_FULL)
        text = f"✏️ <b>새 리마인더</b>\n\n시간과 내용을 함께 입력해주세요.\n\n{EXAMPLES}"
        return await self.reply(responder, query, text, self._cancel_input_kb())

    async def _on_quick(self, responder: IResponseService, query: CallbackQuery, params: List[str], router) -> bool:
        try:
            minutes = int(params[0])
        except (IndexError, ValueError):
            return False
        if not MIN_REMINDER_MINUTES <= minutes <= MAX_REMINDER_MINUTES:
            return False
        if await self._limit_reached(responder, query):
            return True
        self._quick_minutes[query.user_id] = minutes
        self.set_pending(query.user_id, AWAITING_TEXT)
        text = f"⏱️ <b>{quick_label(minutes)} 리마인더</b>\n\n알려드릴 내용을 입력해주세요. (최대 {MAX_REMINDER_LENGTH}자)"
        return await self.reply(responder, query, text, self._cancel_input_kb())

    async def _on_cancel(self, responder: IResponseService, query: CallbackQuery, params: List[str], router) -> bool:
        reminder_id = params[0] if params else ""
        cancelled = await self.repo.cancel(query.user_id, reminder_id)
        if cancelled:
            self._unschedule(reminder_id)
        notice = "🗑️ 리마인더를 취소했습니다." if cancelled else "⚠️ 해당 리마인더를 찾을 수 없습니다."
        text, keyboard = await self.render_list(query.user_id, notice=notice)
        return await self.reply(responder, query, text, keyboard)

    async def _on_cancel_all(self, responder: IResponseService, query: CallbackQuery, params: List[str], router) -> bool:
        removed = await self.repo.cancel_all(query.user_id)
        for reminder_id in removed:
            self._unschedule(reminder_id)
        text, keyboard = await self.render_list(query.user_id, notice=f"🗑️ 리마인더 {len(removed)}개를 취소했습니다.")
        return await self.reply(responder, query, text, keyboard)

    # ---------- text input ----------

    async def _save(self, responder: IResponseService, message: UserMessage, parsed: ParsedReminder) -> bool:
        self.clear_pending(message.user_id)
        self._quick_minutes.pop(message.user_id, None)
        try:
            reminder = await self.create(message.user_id, message.chat_id, parsed)
        except ReminderLimitError as e:
            text, keyboard = await self.render_list(
                message.user_id, notice=f"⚠️ 리마인더는 최대 {e.limit}개까지 예약할 수 있습니다."
            )
            return await self.send(responder, message, text, keyboard)
        notice = f"✅ {format_kst(reminder.remind_at, '%m/%d %H:%M')}에 알려드릴게요: {escape(reminder.text)}"
        text, keyboard = await self.render_list(message.user_id, notice=notice)
        return await self.send(responder, message, text, keyboard)

    async def _on_full_text(self, responder: IResponseService, message: UserMessage) -> bool:
        try:
            parsed = parse_reminder(message.text, self._clock())
        except ReminderParseError:
            text = f"⚠️ 시간과 내용을 이해하지 못했습니다.\n\n{EXAMPLES}"
            return await self.send(responder, message, text, self._cancel_input_kb())
        return await self._save(responder, message, parsed)

    async def _on_reminder_text(self, responder: IResponseService, message: UserMessage) -> bool:
        body = (message.text or "").strip()
        minutes = self._quick_minutes.get(message.user_id, QUICK_MINUTES[0])
        if not body or len(body) > MAX_REMINDER_LENGTH:
            text = f"⚠️ 내용은 1자 이상 {MAX_REMINDER_LENGTH}자 이하로 입력해주세요."
            return await self.send(responder, message, text, self._cancel_input_kb())
        parsed = ParsedReminder(after_minutes(self._clock(), minutes), body)
        return await self._save(responder, message, parsed)
