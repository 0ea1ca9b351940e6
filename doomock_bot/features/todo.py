"""
Personal todo list stored in MongoDB.
"""

from html import escape
from typing import List, Optional, Tuple

from cbdata import encode_cb
from handlers.base_feature import BaseFeatureHandler
from platforms.interfaces import IResponseService
from platforms.types import CallbackQuery, Keyboard, KeyboardButton, UserMessage
from repositories.todos_repo import MAX_TODO_LENGTH, TodoLimitError, TodosRepository, TodoValidationError
from ui.keyboards import MenuItem, back_to_menu_item, build_keyboard
from utils.logger import get_logger

logger = get_logger(__name__)

AWAITING_TODO_TEXT = "add"
BUTTON_TEXT_LIMIT = 28


def _page_param(params: List[str], index: int = 0) -> int:
    try:
        return max(0, int(params[index]))
    except (IndexError, ValueError):
        return 0


def _short(text: str, limit: int = BUTTON_TEXT_LIMIT) -> str:
    return text if len(text) <= limit else text[: limit - 1] + "…"


class TodoFeature(BaseFeatureHandler):
    key = "todo"

    def __init__(self, repo: TodosRepository, page_size: int = 8):
        super().__init__()
        self.repo = repo
        self.page_size = page_size
        self.actions = {
            "menu": self._on_list,
            "list": self._on_list,
            "add": self._on_add,
            "toggle": self._on_toggle,
            "delete": self._on_delete,
            "clear_completed": self._on_clear_completed,
            "cancel": self._on_list,
        }
        self.input_actions = {AWAITING_TODO_TEXT: self._on_todo_text}

    async def initialize(self) -> None:
        await self.repo.initialize()

    # ---------- rendering ----------

    async def render_list(self, user_id: int, page: int = 0, notice: Optional[str] = None) -> Tuple[str, Keyboard]:
        total = await self.repo.count(user_id)
        pages = max(1, -(-total // self.page_size))
        page = min(page, pages - 1)
        todos = await self.repo.list_page(user_id, page, self.page_size)
        done = await self.repo.count(user_id, completed=True) if total else 0

        text = "📝 <b>할일 목록</b>\n\n"
        if notice:
            text += f"{notice}\n\n"
        if not todos:
            text += "등록된 할일이 없습니다.\n'추가' 버튼으로 새 할일을 등록해보세요."
        else:
            text += f"완료 {done}/{total}"
            if pages > 1:
                text += f" · {page + 1}/{pages} 페이지"
            text += "\n\n"
            for index, todo in enumerate(todos, start=page * self.page_size + 1):
                mark = "✅" if todo.completed else "⬜"
                body = f"<s>{escape(todo.text)}</s>" if todo.completed else escape(todo.text)
                text += f"{mark} {index}. {body}\n"

        keyboard = Keyboard()
        for todo in todos:
            keyboard.add_row(
                KeyboardButton(
                    text=f"{'✅' if todo.completed else '⬜'} {_short(todo.text)}",
                    callback_data=encode_cb(self.key, "toggle", todo.id, page),
                ),
                KeyboardButton(text="🗑️", callback_data=encode_cb(self.key, "delete", todo.id, page)),
            )
        nav = []
        if page > 0:
            nav.append(KeyboardButton(text="◀️ 이전", callback_data=encode_cb(self.key, "list", page - 1)))
        if page < pages - 1:
            nav.append(KeyboardButton(text="다음 ▶️", callback_data=encode_cb(self.key, "list", page + 1)))
        if nav:
            keyboard.add_row(*nav)

        actions = [MenuItem("추가", encode_cb(self.key, "add"), icon="➕")]
        if done:
            actions.append(MenuItem("완료 항목 정리", encode_cb(self.key, "clear_completed"), icon="🧹"))
        tail = build_keyboard(actions, width=2, footer=[back_to_menu_item()])
        keyboard.buttons.extend(tail.buttons)
        return text, keyboard

    async def render_menu(self, user_id: int, first_name: Optional[str] = None) -> Tuple[str, Keyboard]:
        return await self.render_list(user_id)

    def _cancel_kb(self) -> Keyboard:
        return build_keyboard([MenuItem("취소", encode_cb(self.key, "cancel"), icon="❌")])

    # ---------- callbacks ----------

    async def _on_list(self, responder: IResponseService, query: CallbackQuery, params: List[str], router) -> bool:
        text, keyboard = await self.render_list(query.user_id, _page_param(params))
        return await self.reply(responder, query, text, keyboard)

    async def _on_add(self, responder: IResponseService, query: CallbackQuery, params: List[str], router) -> bool:
        if await self.repo.count(query.user_id) >= self.repo.max_per_user:
            text, keyboard = await self.render_list(
                query.user_id, notice=f"⚠️ 할일은 최대 {self.repo.max_per_user}개까지 등록할 수 있습니다."
            )
            return await self.reply(responder, query, text, keyboard)
        self.set_pending(query.user_id, AWAITING_TODO_TEXT)
        text = f"➕ <b>새 할일 추가</b>\n\n추가할 내용을 입력해주세요. (최대 {MAX_TODO_LENGTH}자)"
        return await self.reply(responder, query, text, self._cancel_kb())

    async def _on_toggle(self, responder: IResponseService, query: CallbackQuery, params: List[str], router) -> bool:
        todo_id = params[0] if params else ""
        todo = await self.repo.toggle(query.user_id, todo_id)
        if todo is None:
            notice = "⚠️ 해당 할일을 찾을 수 없습니다."
        elif todo.completed:
            notice = f"✅ 완료: {escape(todo.text)}"
        else:
            notice = f"↩️ 완료 취소: {escape(todo.text)}"
        text, keyboard = await self.render_list(query.user_id, _page_param(params, 1), notice=notice)
        return await self.reply(responder, query, text, keyboard)

    async def _on_delete(self, responder: IResponseService, query: CallbackQuery, params: List[str], router) -> bool:
        todo_id = params[0] if params else ""
        deleted = await self.repo.delete(query.user_id, todo_id)
        notice = "🗑️ 할일을 삭제했습니다." if deleted else "⚠️ 해당 할일을 찾을 수 없습니다."
        text, keyboard = await self.render_list(query.user_id, _page_param(params, 1), notice=notice)
        return await self.reply(responder, query, text, keyboard)

    async def _on_clear_completed(self, responder: IResponseService, query: CallbackQuery, params: List[str], router) -> bool:
        removed = await self.repo.clear_completed(query.user_id)
        text, keyboard = await self.render_list(query.user_id, notice=f"🧹 완료된 할일 {removed}개를 정리했습니다.")
        return await self.reply(responder, query, text, keyboard)

    # ---------- text input ----------

    async def _on_todo_text(self, responder: IResponseService, message: UserMessage) -> bool:
        try:
            todo = await self.repo.add(message.user_id, message.text or "")
        except TodoValidationError:
            text = f"⚠️ 할일 내용은 1자 이상 {MAX_TODO_LENGTH}자 이하로 입력해주세요."
            return await self.send(responder, message, text, self._cancel_kb())
        except TodoLimitError as e:
            self.clear_pending(message.user_id)
            text, keyboard = await self.render_list(
                message.user_id, notice=f"⚠️ 할일은 최대 {e.limit}개까지 등록할 수 있습니다."
            )
            return await self.send(responder, message, text, keyboard)

        self.clear_pending(message.user_id)
        logger.info(f"User {message.user_id} added todo {todo.id}")
        total = await self.repo.count(message.user_id)
        last_page = max(0, (total - 1) // self.page_size)
        text, keyboard = await self.render_list(message.user_id, last_page, notice=f"✅ 추가됨: {escape(todo.text)}")
        return await self.send(responder, message, text, keyboard)
