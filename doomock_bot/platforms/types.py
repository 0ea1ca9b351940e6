"""
Bot-side view of inbound events and outbound keyboards.

The routers and features only ever see these dataclasses; the Telegram
adapter converts to and from python-telegram-bot objects at the edge.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional


class MessageType(Enum):
    TEXT = "text"
    COMMAND = "command"
    OTHER = "other"  # photos, stickers, anything without text


@dataclass
class KeyboardButton:
    """Inline button. Exactly one of `callback_data` and `url` is set."""
    text: str
    callback_data: Optional[str] = None
    url: Optional[str] = None

    def __post_init__(self):
        if bool(self.callback_data) == bool(self.url):
            raise ValueError(f"button {self.text!r} needs exactly one of callback_data or url")


@dataclass
class Keyboard:
    """Inline keyboard as rows of buttons, top to bottom."""
    buttons: List[List[KeyboardButton]] = field(default_factory=list)

    def add_row(self, *buttons: KeyboardButton) -> None:
        self.buttons.append(list(buttons))

    def row_sizes(self) -> List[int]:
        return [len(row) for row in self.buttons]

    def callback_data(self) -> List[str]:
        """Every callback payload on the keyboard, row by row."""
        return [b.callback_data for row in self.buttons for b in row if b.callback_data]


@dataclass
class UserMessage:
    """A message typed by the user (free text or a slash command)."""
    user_id: int
    chat_id: int
    text: Optional[str] = None
    message_type: MessageType = MessageType.TEXT
    message_id: Optional[int] = None
    timestamp: Optional[datetime] = None
    first_name: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        if self.timestamp is None:
            self.timestamp = datetime.now()


@dataclass
class CallbackQuery:
    """
    An inline-button tap. `message_id` is the bot message carrying the
    button, when the platform still knows it; `data` may be missing on
    malformed updates.
    """
    user_id: int
    chat_id: int
    message_id: Optional[int]
    data: Optional[str]
    query_id: Optional[str] = None
    first_name: Optional[str] = None
    timestamp: Optional[datetime] = None
    metadata: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        if self.timestamp is None:
            self.timestamp = datetime.now()
