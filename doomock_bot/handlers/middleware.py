"""
Dispatch middleware for both routers.

A dispatch is an async callable taking a DispatchContext and returning True
when the event was handled. Middleware wraps a dispatch and returns a new
one; `compose` applies a list of them so that the first entry runs first:

    dispatch = compose([with_auth(policy), with_rate_limit(limiter)], base)
"""

import math
import time
from dataclasses import dataclass, field
from threading import Lock
from typing import Any, Awaitable, Callable, Dict, FrozenSet, Iterable, Optional, Sequence

from handlers.base_feature import edit_or_send
from platforms.interfaces import IResponseService
from platforms.types import CallbackQuery, Keyboard, UserMessage
from ui.messages import UNAUTHORIZED_TEXT, rate_limited_text
from utils.logger import get_logger

logger = get_logger(__name__)


@dataclass
class DispatchContext:
    responder: IResponseService
    user_id: int
    chat_id: int
    query: Optional[CallbackQuery] = None
    message: Optional[UserMessage] = None
    envelope: Any = None  # CallbackEnvelope for callbacks
    registration: Any = None  # resolved FeatureRegistration for callbacks
    extras: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def for_callback(cls, responder, query: CallbackQuery, envelope=None, registration=None) -> "DispatchContext":
        return cls(
            responder=responder,
            user_id=query.user_id,
            chat_id=query.chat_id,
            query=query,
            envelope=envelope,
            registration=registration,
        )

    @classmethod
    def for_message(cls, responder, message: UserMessage) -> "DispatchContext":
        return cls(responder=responder, user_id=message.user_id, chat_id=message.chat_id, message=message)

    @property
    def editable_message_id(self) -> Optional[int]:
        """The bot message a callback came from; user messages are never edited."""
        return self.query.message_id if self.query is not None else None

    async def reply(self, text: str, keyboard: Optional[Keyboard] = None) -> bool:
        return await edit_or_send(self.responder, self.user_id, self.chat_id, self.editable_message_id, text, keyboard)


Dispatch = Callable[[DispatchContext], Awaitable[bool]]
Middleware = Callable[[Dispatch], Dispatch]


def compose(middlewares: Sequence[Middleware], base: Dispatch) -> Dispatch:
    dispatch = base
    for middleware in reversed(list(middlewares)):
        dispatch = middleware(dispatch)
    return dispatch


# ---------- access control ----------

class AccessPolicy:
    """Allow-list of user ids. An empty allow-list admits everyone."""

    def __init__(self, allowed_users: Iterable[int] = (), admin_users: Iterable[int] = ()):
        self.allowed_users: FrozenSet[int] = frozenset(allowed_users)
        self.admin_users: FrozenSet[int] = frozenset(admin_users)

    def is_allowed(self, user_id: int) -> bool:
        if not self.allowed_users:
            return True
        return user_id in self.allowed_users or user_id in self.admin_users

    def is_admin(self, user_id: int) -> bool:
        return user_id in self.admin_users


def with_auth(policy: AccessPolicy) -> Middleware:
    def middleware(next_dispatch: Dispatch) -> Dispatch:
        async def dispatch(ctx: DispatchContext) -> bool:
            if policy.is_allowed(ctx.user_id):
                return await next_dispatch(ctx)
            logger.warning(f"Unauthorized access attempt by user {ctx.user_id}")
            await ctx.reply(UNAUTHORIZED_TEXT)
            return True
        return dispatch
    return middleware


# ---------- rate limiting ----------

@dataclass
class RateLimitResult:
    allowed: bool
    count: int
    max_requests: int
    reset_in_seconds: float

    @property
    def reset_minutes(self) -> int:
        return max(1, math.ceil(self.reset_in_seconds / 60))


class RateLimiter:
    """
    Fixed-window request counter per user.

    A user's window opens on their first request and lasts `window_seconds`;
    requests beyond `max_requests` inside it are refused.
    """

    def __init__(self, max_requests: int = 30, window_seconds: float = 60.0, clock: Callable[[], float] = time.monotonic):
        if max_requests < 1:
            raise ValueError("max_requests must be at least 1")
        self.max_requests = max_requests
        self.window_seconds = float(window_seconds)
        self._clock = clock
        self._windows: Dict[int, list] = {}  # user_id -> [count, reset_at]
        self._lock = Lock()

    def check(self, user_id: int) -> RateLimitResult:
        now = self._clock()
        with self._lock:
            window = self._windows.get(user_id)
            if window is None or now >= window[1]:
                window = [0, now + self.window_seconds]
                self._windows[user_id] = window
            window[0] += 1
            count, reset_at = window
        return RateLimitResult(
            allowed=count <= self.max_requests,
            count=count,
            max_requests=self.max_requests,
            reset_in_seconds=max(0.0, reset_at - now),
        )

    def cleanup(self) -> int:
        """Drop windows that have expired. Returns how many were removed."""
        now = self._clock()
        with self._lock:
            expired = [uid for uid, (_, reset_at) in self._windows.items() if now >= reset_at]
            for uid in expired:
                del self._windows[uid]
        return len(expired)


def with_rate_limit(limiter: RateLimiter) -> Middleware:
    def middleware(next_dispatch: Dispatch) -> Dispatch:
        async def dispatch(ctx: DispatchContext) -> bool:
            result = limiter.check(ctx.user_id)
            if result.allowed:
                return await next_dispatch(ctx)
            logger.warning(f"Rate limit exceeded for user {ctx.user_id}: {result.count}/{result.max_requests}")
            await ctx.reply(rate_limited_text(result.count, result.max_requests, result.reset_minutes))
            return True
        return dispatch
    return middleware
