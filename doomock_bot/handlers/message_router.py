"""
Offers free-text messages to features in priority order until one claims it.
"""

from typing import Sequence

from handlers.middleware import DispatchContext, Middleware, compose
from platforms.interfaces import IResponseService
from platforms.types import UserMessage
from services.feature_registry import FeatureRegistry
from utils.logger import get_logger

logger = get_logger(__name__)


class MessageRouter:
    def __init__(self, registry: FeatureRegistry, middlewares: Sequence[Middleware] = ()):
        self.registry = registry
        self._dispatch = compose(middlewares, self._offer_to_features)

    async def route(self, responder: IResponseService, message: UserMessage) -> bool:
        """Returns True if some feature (or a middleware) claimed the message."""
        if message.text and message.text.startswith("/"):
            return False
        ctx = DispatchContext.for_message(responder, message)
        try:
            return bool(await self._dispatch(ctx))
        except Exception as e:
            logger.exception(f"Message dispatch failed for user {message.user_id}: {e}")
            return False

    async def _offer_to_features(self, ctx: DispatchContext) -> bool:
        for registration in self.registry.ordered():
            try:
                claimed = await registration.handler.handle_message(ctx.responder, ctx.message)
            except Exception as e:
                logger.exception(f"Feature '{registration.key}' raised while handling a message: {e}")
                continue
            if claimed:
                logger.debug(f"Message from user {ctx.user_id} claimed by '{registration.key}'")
                return True
        return False
