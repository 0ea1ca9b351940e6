"""
IResponseService backed by a python-telegram-bot Bot.

Telegram errors are logged and turned into a None/False return so that a
failed delivery never escapes into the routers.
"""

from typing import Optional, Union

from telegram import Bot, Message
from telegram.error import BadRequest, Forbidden, TelegramError

from utils.logger import get_logger

from ..interfaces import IResponseService
from ..types import Keyboard
from .keyboard_adapter import to_inline_markup

logger = get_logger(__name__)


class TelegramResponseService(IResponseService):

    def __init__(self, bot: Bot):
        self._bot = bot

    async def send_text(
        self,
        user_id: int,
        chat_id: int,
        text: str,
        keyboard: Optional[Keyboard] = None,
        parse_mode: Optional[str] = None,
    ) -> Optional[Message]:
        try:
            return await self._bot.send_message(
                chat_id=chat_id,
                text=text,
                parse_mode=parse_mode,
                reply_markup=to_inline_markup(keyboard),
                disable_web_page_preview=True,
            )
        except Forbidden as e:
            # user blocked the bot
            logger.info(f"User {user_id} cannot be messaged: {e}")
        except TelegramError as e:
            logger.error(f"Error sending message to user {user_id}: {e}")
        return None

    async def edit_message(
        self,
        user_id: int,
        chat_id: int,
        message_id: int,
        text: str,
        keyboard: Optional[Keyboard] = None,
        parse_mode: Optional[str] = None,
    ) -> Union[Message, bool, None]:
        try:
            return await self._bot.edit_message_text(
                chat_id=chat_id,
                message_id=message_id,
                text=text,
                parse_mode=parse_mode,
                reply_markup=to_inline_markup(keyboard),
                disable_web_page_preview=True,
            )
        except BadRequest as e:
            # Re-tapping the same button produces an identical screen
            if "message is not modified" in str(e).lower():
                logger.debug(f"Message {message_id} of user {user_id} already up to date")
                return True
            logger.warning(f"Cannot edit message {message_id} of user {user_id}: {e}")
        except TelegramError as e:
            logger.warning(f"Cannot edit message {message_id} of user {user_id}: {e}")
        return None

    async def answer_callback(
        self,
        query_id: Optional[str],
        text: Optional[str] = None,
        show_alert: bool = False,
    ) -> bool:
        if not query_id:
            return False
        try:
            return await self._bot.answer_callback_query(
                callback_query_id=query_id,
                text=text,
                show_alert=show_alert,
            )
        except TelegramError as e:
            # "query is too old" once the 15 second answer window has passed
            logger.warning(f"Failed to answer callback {query_id}: {e}")
            return False
