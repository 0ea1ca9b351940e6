"""
Platform-agnostic types shared by the callback and message routers.
"""
from dataclasses import dataclass, field
from typing import List, Optional

DEFAULT_SUB_ACTION = "menu"


@dataclass
class CallbackEnvelope:
    """
    Parsed form of one inbound `module:action:param...` callback.
    Built fresh for every callback event and discarded after dispatch.
    """
    module_key: str  # empty string means unroutable
    sub_action: str = DEFAULT_SUB_ACTION
    params: List[str] = field(default_factory=list)
    raw_data: str = ""
    callback_id: Optional[str] = None
    user_id: int = 0
    chat_id: int = 0
    message_id: Optional[int] = None

    @property
    def is_routable(self) -> bool:
        return bool(self.module_key)

    @property
    def dedup_key(self) -> str:
        return f"{self.user_id}:{self.raw_data}"
