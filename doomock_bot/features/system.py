"""
Main menu, help, status and about screens.
"""

import time
from typing import Awaitable, Callable, Dict, List, Optional, Tuple

from handlers.base_feature import BaseFeatureHandler
from platforms.interfaces import IResponseService
from platforms.types import CallbackQuery, Keyboard, UserMessage
from services.feature_registry import FeatureRegistry
from ui.keyboards import MenuItem, back_to_menu_kb, feature_menu_kb, main_menu_kb
from ui.messages import about_text, help_text, main_menu_text, status_text
from cbdata import encode_cb
from utils.logger import get_logger

logger = get_logger(__name__)


class SystemFeature(BaseFeatureHandler):
    key = "system"

    def __init__(
        self,
        registry: FeatureRegistry,
        version: str = "1.0.0",
        environment: str = "development",
        db_ping: Optional[Callable[[], Awaitable[bool]]] = None,
        stats_provider: Optional[Callable[[], Dict[str, int]]] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        super().__init__()
        self.registry = registry
        self.version = version
        self.environment = environment
        self.db_ping = db_ping
        self.stats_provider = stats_provider
        self._clock = clock
        self._started_at = clock()
        self.actions = {
            "menu": self.show_menu,
            "start": self.show_menu,
            "help": self._on_help,
            "status": self._on_status,
            "about": self._on_about,
        }

    async def render_menu(self, user_id: int, first_name: Optional[str] = None) -> Tuple[str, Keyboard]:
        entries = self.registry.menu_entries()
        return main_menu_text(first_name, entries), main_menu_kb(entries)

    async def render_status(self, router_stats: Optional[Dict[str, int]] = None) -> Tuple[str, Keyboard]:
        if router_stats is None and self.stats_provider is not None:
            router_stats = self.stats_provider()
        database_ok = await self.db_ping() if self.db_ping else None
        text = status_text(
            uptime_seconds=self._clock() - self._started_at,
            feature_status=self.registry.status(),
            router_stats=router_stats or {},
            database_ok=database_ok,
            environment=self.environment,
        )
        keyboard = feature_menu_kb(self.key, [MenuItem("새로고침", encode_cb(self.key, "status"), icon="🔄")])
        return text, keyboard

    def render_help(self) -> Tuple[str, Keyboard]:
        return help_text(self.registry.menu_entries()), back_to_menu_kb()

    async def handle_message(self, responder: IResponseService, message: UserMessage) -> bool:
        return False

    async def handle_command(
        self,
        responder: IResponseService,
        message: UserMessage,
        command: str,
        args: List[str],
    ) -> bool:
        if command == "help":
            text, keyboard = self.render_help()
        elif command == "status":
            text, keyboard = await self.render_status()
        else:
            return await self.send_menu(responder, message)
        return await self.send(responder, message, text, keyboard)

    async def _on_help(self, responder: IResponseService, query: CallbackQuery, params: List[str], router) -> bool:
        text, keyboard = self.render_help()
        return await self.reply(responder, query, text, keyboard)

    async def _on_status(self, responder: IResponseService, query: CallbackQuery, params: List[str], router) -> bool:
        text, keyboard = await self.render_status(router.stats)
        return await self.reply(responder, query, text, keyboard)

    async def _on_about(self, responder: IResponseService, query: CallbackQuery, params: List[str], router) -> bool:
        return await self.reply(responder, query, about_text(self.version), back_to_menu_kb())
