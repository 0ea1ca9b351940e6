"""
Single entry point for inline-button taps.

Every tap that carries data is acknowledged exactly once and receives exactly
one reply: the feature's own, or the router's fallback when the feature is
missing, fails, or produces nothing.
"""

from typing import Dict, Optional, Sequence

from cbdata import envelope_from_query
from handlers.base_feature import edit_or_send
from handlers.middleware import DispatchContext, Middleware, compose
from platforms.interfaces import IResponseService
from platforms.types import CallbackQuery, Keyboard
from router_types import CallbackEnvelope
from services.dedup_store import DedupStore, InMemoryDedupStore
from services.feature_registry import FeatureRegistry
from ui.keyboards import back_to_menu_kb
from ui.messages import (
    BUSY_TEXT,
    FEATURE_UNAVAILABLE_ALERT,
    error_text,
    feature_unavailable_text,
    unhandled_text,
)
from utils.logger import get_logger

logger = get_logger(__name__)

DEFAULT_DEDUP_SECONDS = 1.0


class CallbackRouter:
    def __init__(
        self,
        registry: FeatureRegistry,
        dedup_store: Optional[DedupStore] = None,
        dedup_ttl_seconds: float = DEFAULT_DEDUP_SECONDS,
        middlewares: Sequence[Middleware] = (),
    ):
        self.registry = registry
        self.dedup_store = dedup_store if dedup_store is not None else InMemoryDedupStore()
        self.dedup_ttl_seconds = dedup_ttl_seconds
        self._dispatch = compose(middlewares, self._invoke_feature)
        self.stats: Dict[str, int] = {
            "received": 0,
            "dispatched": 0,
            "duplicates": 0,
            "ignored": 0,
            "unroutable": 0,
            "unhandled": 0,
            "errors": 0,
        }

    async def route(self, responder: IResponseService, query: CallbackQuery) -> bool:
        """
        Route one callback tap. Returns True only when a feature handled it.
        Never raises.
        """
        self.stats["received"] += 1

        if not query.data:
            self.stats["ignored"] += 1
            logger.debug(f"Callback without data from user {query.user_id}, acknowledging only")
            await self._acknowledge(responder, query)
            return False

        envelope = envelope_from_query(query)

        if self.dedup_store.seen(envelope.dedup_key):
            self.stats["duplicates"] += 1
            logger.debug(f"Duplicate callback {envelope.raw_data!r} from user {query.user_id}")
            await self._acknowledge(responder, query, BUSY_TEXT)
            return False
        self.dedup_store.mark_seen(envelope.dedup_key, self.dedup_ttl_seconds)

        registration = self.registry.resolve(envelope.module_key)
        if registration is None:
            self.stats["unroutable"] += 1
            logger.warning(
                f"Unroutable callback {envelope.raw_data!r} from user {query.user_id} "
                f"(module '{envelope.module_key}')"
            )
            await self._acknowledge(responder, query, FEATURE_UNAVAILABLE_ALERT)
            await self._reply(responder, envelope, feature_unavailable_text(envelope.module_key), back_to_menu_kb())
            return False

        await self._acknowledge(responder, query)

        ctx = DispatchContext.for_callback(responder, query, envelope=envelope, registration=registration)
        try:
            handled = bool(await self._dispatch(ctx))
        except Exception as e:
            self.stats["errors"] += 1
            logger.exception(
                f"Feature '{registration.key}' failed on {envelope.sub_action!r} "
                f"for user {query.user_id}: {e}"
            )
            await self._reply(responder, envelope, error_text(), back_to_menu_kb())
            return False

        if not handled:
            self.stats["unhandled"] += 1
            logger.warning(
                f"Feature '{registration.key}' did not handle {envelope.raw_data!r} for user {query.user_id}"
            )
            await self._reply(responder, envelope, unhandled_text(), back_to_menu_kb())
            return False

        self.stats["dispatched"] += 1
        return True

    async def _invoke_feature(self, ctx: DispatchContext) -> bool:
        envelope = ctx.envelope
        return await ctx.registration.handler.handle_callback(
            ctx.responder, ctx.query, envelope.sub_action, list(envelope.params), self
        )

    async def _acknowledge(self, responder: IResponseService, query: CallbackQuery, text: Optional[str] = None) -> None:
        try:
            acknowledged = await responder.answer_callback(query.query_id, text=text)
        except Exception as e:
            logger.warning(f"Failed to acknowledge callback {query.query_id}: {e}")
            return
        if not acknowledged:
            logger.debug(f"Callback {query.query_id} was not acknowledged (expired or already answered)")

    async def _reply(
        self,
        responder: IResponseService,
        envelope: CallbackEnvelope,
        text: str,
        keyboard: Optional[Keyboard] = None,
    ) -> None:
        try:
            await edit_or_send(responder, envelope.user_id, envelope.chat_id, envelope.message_id, text, keyboard)
        except Exception as e:
            logger.error(f"Failed to send router reply to user {envelope.user_id}: {e}")
