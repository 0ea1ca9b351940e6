"""
Outbound ports used by the routers and features.

IResponseService talks back to the user; IJobScheduler runs one-shot jobs
such as timer completions. Implementations never raise on delivery
failures: they log and report failure through the return value.
"""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, Awaitable, Callable, Optional

from .types import Keyboard


class IResponseService(ABC):

    @abstractmethod
    async def send_text(
        self,
        user_id: int,
        chat_id: int,
        text: str,
        keyboard: Optional[Keyboard] = None,
        parse_mode: Optional[str] = None,
    ) -> Optional[Any]:
        """Send a new message. Returns the sent message, or None on failure."""

    @abstractmethod
    async def edit_message(
        self,
        user_id: int,
        chat_id: int,
        message_id: int,
        text: str,
        keyboard: Optional[Keyboard] = None,
        parse_mode: Optional[str] = None,
    ) -> Optional[Any]:
        """
        Replace the text and keyboard of a bot message. Returns a truthy value
        on success (including "nothing changed") and None when the message can
        no longer be edited.
        """

    @abstractmethod
    async def answer_callback(
        self,
        query_id: Optional[str],
        text: Optional[str] = None,
        show_alert: bool = False,
    ) -> bool:
        """Acknowledge a button tap, optionally with a toast. False if it was not delivered."""


JobCallback = Callable[[dict], Awaitable[None]]


class IJobScheduler(ABC):

    @abstractmethod
    def schedule_once(
        self,
        name: str,
        callback: JobCallback,
        when_dt: datetime,
        data: Optional[dict] = None,
    ) -> None:
        """Run `callback(data)` once at `when_dt`, replacing any job called `name`."""

    @abstractmethod
    def cancel_job(self, name: str) -> None:
        """Drop the job called `name`; unknown names are ignored."""
