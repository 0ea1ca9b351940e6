"""
Telegram Update -> UserMessage / CallbackQuery.
"""

from datetime import datetime

from telegram import Update

from ..types import CallbackQuery, MessageType, UserMessage


def _message_type(text) -> MessageType:
    if text is None:
        return MessageType.OTHER
    return MessageType.COMMAND if text.startswith("/") else MessageType.TEXT


def telegram_update_to_user_message(update: Update) -> UserMessage:
    user = update.effective_user
    chat = update.effective_chat
    if not user or not chat:
        raise ValueError("update has no effective user or chat")

    message = update.effective_message
    text = message.text if message else None
    return UserMessage(
        user_id=user.id,
        chat_id=chat.id,
        text=text,
        message_type=_message_type(text),
        message_id=message.message_id if message else None,
        timestamp=(message.date if message else None) or datetime.now(),
        first_name=user.first_name,
        metadata={"update": update},
    )


def telegram_callback_to_callback_query(update: Update) -> CallbackQuery:
    """
    The chat falls back to the user's private chat when Telegram no longer
    includes the originating message (too old, or an inline-mode button).
    """
    query = update.callback_query
    if not query:
        raise ValueError("update has no callback_query")

    user = query.from_user
    user_id = user.id if user else 0
    message = query.message
    return CallbackQuery(
        user_id=user_id,
        chat_id=message.chat.id if message else user_id,
        message_id=message.message_id if message else None,
        data=query.data,
        query_id=str(query.id) if query.id else None,
        first_name=user.first_name if user else None,
        timestamp=(message.date if message else None) or datetime.now(),
        metadata={"query": query},
    )
