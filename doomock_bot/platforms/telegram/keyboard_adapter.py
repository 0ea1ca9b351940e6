"""
Keyboard -> InlineKeyboardMarkup conversion.
"""

from typing import Optional

from telegram import InlineKeyboardButton, InlineKeyboardMarkup

from cbdata import MAX_CALLBACK_BYTES
from utils.logger import get_logger

from ..types import Keyboard, KeyboardButton

logger = get_logger(__name__)


def to_inline_button(button: KeyboardButton) -> Optional[InlineKeyboardButton]:
    if button.url:
        return InlineKeyboardButton(text=button.text, url=button.url)
    if len(button.callback_data.encode("utf-8")) > MAX_CALLBACK_BYTES:
        # Telegram rejects the whole message otherwise
        logger.error(f"Dropping button {button.text!r}: callback data over {MAX_CALLBACK_BYTES} bytes")
        return None
    return InlineKeyboardButton(text=button.text, callback_data=button.callback_data)


def to_inline_markup(keyboard: Optional[Keyboard]) -> Optional[InlineKeyboardMarkup]:
    """Markup for `keyboard`, or None when there is nothing to show."""
    if keyboard is None:
        return None
    rows = []
    for row in keyboard.buttons:
        converted = [b for b in (to_inline_button(button) for button in row) if b is not None]
        if converted:
            rows.append(converted)
    return InlineKeyboardMarkup(rows) if rows else None
