"""
python-telegram-bot implementations of the platform ports.
"""

from .adapter import TelegramPlatformAdapter
from .keyboard_adapter import to_inline_markup
from .response_service import TelegramResponseService
from .scheduler import TelegramJobScheduler

__all__ = [
    "TelegramJobScheduler",
    "TelegramPlatformAdapter",
    "TelegramResponseService",
    "to_inline_markup",
]
