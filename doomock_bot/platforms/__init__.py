"""
Platform layer: the event and keyboard types plus the outbound ports the
routers depend on. Telegram lives in `platforms.telegram`, test doubles in
`platforms.testing`.
"""

from .interfaces import IJobScheduler, IResponseService, JobCallback
from .types import CallbackQuery, Keyboard, KeyboardButton, MessageType, UserMessage

__all__ = [
    "CallbackQuery",
    "IJobScheduler",
    "IResponseService",
    "JobCallback",
    "Keyboard",
    "KeyboardButton",
    "MessageType",
    "UserMessage",
]
