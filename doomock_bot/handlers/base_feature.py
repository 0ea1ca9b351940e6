"""
Feature handler contract.

Every feature (todo, timer, leave, ...) implements FeatureHandler. The routers
only ever call the two entry points and the lifecycle hooks; each feature owns
its own rendering, persistence and per-user input state.
"""

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Awaitable, Callable, Dict, List, Optional, Tuple

from platforms.interfaces import IResponseService
from platforms.types import CallbackQuery, Keyboard, UserMessage
from utils.logger import get_logger

if TYPE_CHECKING:
    from handlers.callback_router import CallbackRouter

logger = get_logger(__name__)

PARSE_MODE = "HTML"

CallbackAction = Callable[[IResponseService, CallbackQuery, List[str], "CallbackRouter"], Awaitable[bool]]
InputAction = Callable[[IResponseService, UserMessage], Awaitable[bool]]


async def edit_or_send(
    responder: IResponseService,
    user_id: int,
    chat_id: int,
    message_id: Optional[int],
    text: str,
    keyboard: Optional[Keyboard] = None,
    parse_mode: Optional[str] = PARSE_MODE,
) -> bool:
    """
    Replace the originating message when there is one, otherwise send a new
    message. A failed edit (deleted or too old message) falls back to sending.
    """
    if message_id is not None:
        edited = await responder.edit_message(
            user_id=user_id,
            chat_id=chat_id,
            message_id=message_id,
            text=text,
            keyboard=keyboard,
            parse_mode=parse_mode,
        )
        if edited:
            return True
        logger.debug(f"Edit of message {message_id} failed, sending a new message instead")

    sent = await responder.send_text(
        user_id=user_id,
        chat_id=chat_id,
        text=text,
        keyboard=keyboard,
        parse_mode=parse_mode,
    )
    return sent is not None


class FeatureHandler(ABC):
    """The two routed entry points plus optional lifecycle hooks."""

    async def initialize(self) -> None:
        """Called once at startup, in priority order."""

    async def cleanup(self) -> None:
        """Called once at shutdown."""

    @abstractmethod
    async def handle_message(self, responder: IResponseService, message: UserMessage) -> bool:
        """Try to claim a free-text message. Return True if it was handled."""

    @abstractmethod
    async def handle_callback(
        self,
        responder: IResponseService,
        query: CallbackQuery,
        sub_action: str,
        params: List[str],
        router: "CallbackRouter",
    ) -> bool:
        """Execute `sub_action`. Return True if a response was produced."""

    async def handle_command(
        self,
        responder: IResponseService,
        message: UserMessage,
        command: str,
        args: List[str],
    ) -> bool:
        """Slash command entry point for the commands a feature registers."""
        return False


class BaseFeatureHandler(FeatureHandler):
    """
    Action-table feature handler.

    Subclasses fill `self.actions` (sub_action -> coroutine) and, for
    multi-step flows, `self.input_actions` (pending kind -> coroutine). A user
    with a pending kind gets their next free-text message routed to the
    matching input action; any callback into the same feature clears it.
    """

    key: str = ""

    def __init__(self):
        self.actions: Dict[str, CallbackAction] = {}
        self.input_actions: Dict[str, InputAction] = {}
        self._pending: Dict[int, str] = {}

    # ---------- menu ----------

    @abstractmethod
    async def render_menu(self, user_id: int, first_name: Optional[str] = None) -> Tuple[str, Keyboard]:
        """Text and keyboard of the feature's main screen."""

    async def send_menu(self, responder: IResponseService, message: UserMessage) -> bool:
        """Send the feature menu as a new message (slash-command entry point)."""
        self.clear_pending(message.user_id)
        text, keyboard = await self.render_menu(message.user_id, message.first_name)
        return await self.send(responder, message, text, keyboard)

    async def show_menu(
        self,
        responder: IResponseService,
        query: CallbackQuery,
        params: List[str],
        router: "CallbackRouter",
    ) -> bool:
        text, keyboard = await self.render_menu(query.user_id, query.first_name)
        return await self.reply(responder, query, text, keyboard)

    # ---------- pending input ----------

    def set_pending(self, user_id: int, kind: str) -> None:
        self._pending[user_id] = kind

    def pending_for(self, user_id: int) -> Optional[str]:
        return self._pending.get(user_id)

    def clear_pending(self, user_id: int) -> None:
        self._pending.pop(user_id, None)

    # ---------- replies ----------

    async def reply(
        self,
        responder: IResponseService,
        query: CallbackQuery,
        text: str,
        keyboard: Optional[Keyboard] = None,
    ) -> bool:
        return await edit_or_send(responder, query.user_id, query.chat_id, query.message_id, text, keyboard)

    async def send(
        self,
        responder: IResponseService,
        message: UserMessage,
        text: str,
        keyboard: Optional[Keyboard] = None,
    ) -> bool:
        return await edit_or_send(responder, message.user_id, message.chat_id, None, text, keyboard)

    # ---------- entry points ----------

    async def handle_command(
        self,
        responder: IResponseService,
        message: UserMessage,
        command: str,
        args: List[str],
    ) -> bool:
        return await self.send_menu(responder, message)

    async def handle_message(self, responder: IResponseService, message: UserMessage) -> bool:
        kind = self.pending_for(message.user_id)
        if kind is None:
            return False
        action = self.input_actions.get(kind)
        if action is None:
            logger.warning(f"{self.key}: no input action for pending kind {kind!r}")
            self.clear_pending(message.user_id)
            return False
        return await action(responder, message)

    async def handle_callback(
        self,
        responder: IResponseService,
        query: CallbackQuery,
        sub_action: str,
        params: List[str],
        router: "CallbackRouter",
    ) -> bool:
        action = self.actions.get(sub_action)
        if action is None:
            logger.warning(f"{self.key}: unknown sub action {sub_action!r}")
            return False
        self.clear_pending(query.user_id)
        return await action(responder, query, params, router)
