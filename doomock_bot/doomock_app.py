"""
Telegram bootstrap for the Doomock bot.

Builds the python-telegram-bot Application, the MongoDB connection, the static
feature registry and the two routers, then wires Telegram updates to them.
"""
import logging as std_logging
from typing import List

from telegram import BotCommand
from telegram.error import TelegramError
from telegram.ext import Application, CallbackContext
from telegram.request import HTTPXRequest

from config import BotConfig
from features import build_feature_registrations
from handlers.base_feature import edit_or_send
from handlers.callback_router import CallbackRouter
from handlers.message_router import MessageRouter
from handlers.middleware import AccessPolicy, DispatchContext, RateLimiter, compose, with_auth, with_rate_limit
from platforms.interfaces import IResponseService
from platforms.telegram import TelegramPlatformAdapter
from platforms.types import UserMessage
from repositories.mongo import MongoManager
from services.dedup_store import InMemoryDedupStore
from services.feature_registry import FeatureRegistry
from ui.keyboards import back_to_menu_kb
from ui.messages import error_text, feature_unavailable_text
from utils.logger import get_logger
from utils.version import get_version

logger = get_logger(__name__)

HOUSEKEEPING_INTERVAL_SECONDS = 300

SYSTEM_COMMAND_DESCRIPTIONS = {
    "start": "시작하기",
    "menu": "메인 메뉴",
    "help": "도움말",
    "status": "봇 상태",
}


class DoomockTelegramBot:
    """Main Telegram bot class: one registry, one callback router, one message router."""

    def __init__(self, config: BotConfig):
        self.config = config
        self.version = get_version()

        request = HTTPXRequest(connect_timeout=10, read_timeout=20)
        self.application = (
            Application.builder()
            .token(config.bot_token)
            .request(request)
            .post_init(self._post_init)
            .post_shutdown(self._post_shutdown)
            .build()
        )
        self.platform = TelegramPlatformAdapter(self.application)
        self.mongo = MongoManager(config.mongo_url, config.mongo_db_name)

        self.registry = FeatureRegistry()
        for registration in build_feature_registrations(
            config,
            self.registry,
            self.mongo,
            scheduler=self.platform.job_scheduler,
            notifier=self.platform.response_service,
            version=self.version,
        ):
            self.registry.add(registration)

        self.access_policy = AccessPolicy(config.allowed_users, config.admin_users)
        self.rate_limiter = RateLimiter(config.rate_limit_max, config.rate_limit_window_seconds)
        self.dedup_store = InMemoryDedupStore()
        middlewares = [with_auth(self.access_policy), with_rate_limit(self.rate_limiter)]

        self.callback_router = CallbackRouter(
            self.registry,
            dedup_store=self.dedup_store,
            dedup_ttl_seconds=config.callback_dedup_seconds,
            middlewares=middlewares,
        )
        # Free text is not rate limited; only buttons and commands share the budget.
        self.message_router = MessageRouter(self.registry, middlewares=[with_auth(self.access_policy)])
        self._command_dispatch = compose(middlewares, self._run_command)

        system = self.registry.get("system")
        if system is not None:
            system.handler.stats_provider = lambda: self.callback_router.stats

        self._register_handlers()

    def _register_handlers(self) -> None:
        """Register command, message and callback handlers."""
        # Disabled features keep their handlers; the sink answers while they are off.
        for registration in self.registry.all():
            for command in registration.commands:
                self.platform.register_command(command, self._command_sink(registration.key, command))

        self.platform.register_message_sink(self.message_router.route)
        self.platform.register_callback_sink(self.callback_router.route)
        self.platform.register_error_handler()

    # ---------- commands ----------

    def _command_sink(self, feature_key: str, command: str):
        async def sink(responder: IResponseService, message: UserMessage, args: list) -> None:
            registration = self.registry.resolve(feature_key)
            if registration is None:
                await edit_or_send(
                    responder, message.user_id, message.chat_id, None,
                    feature_unavailable_text(feature_key), back_to_menu_kb(),
                )
                return
            ctx = DispatchContext.for_message(responder, message)
            ctx.registration = registration
            ctx.extras.update(command=command, args=args)
            try:
                await self._command_dispatch(ctx)
            except Exception as e:
                logger.exception(f"/{command} failed for user {message.user_id}: {e}")
                await edit_or_send(responder, message.user_id, message.chat_id, None, error_text(), back_to_menu_kb())

        return sink

    async def _run_command(self, ctx: DispatchContext) -> bool:
        return await ctx.registration.handler.handle_command(
            ctx.responder, ctx.message, ctx.extras["command"], list(ctx.extras.get("args") or [])
        )

    def _bot_commands(self) -> List[BotCommand]:
        commands = []
        for registration in self.registry.ordered():
            for command in registration.commands:
                description = SYSTEM_COMMAND_DESCRIPTIONS.get(command, registration.display_name)
                commands.append(BotCommand(command, description))
        return commands

    # ---------- lifecycle ----------

    async def _post_init(self, application: Application) -> None:
        if not await self.mongo.ping():
            logger.warning("MongoDB is not reachable yet; features will retry on first use")
        await self.registry.initialize_all()
        logger.info(f"Features ready: {', '.join(r.key for r in self.registry.ordered())}")

        try:
            await application.bot.set_my_commands(self._bot_commands())
        except TelegramError as e:
            logger.warning(f"Failed to publish bot commands: {e}")

        if application.job_queue is not None:
            application.job_queue.run_repeating(
                self._housekeeping,
                interval=HOUSEKEEPING_INTERVAL_SECONDS,
                first=HOUSEKEEPING_INTERVAL_SECONDS,
                name="housekeeping",
            )

    async def _post_shutdown(self, application: Application) -> None:
        await self.registry.cleanup_all()
        self.mongo.close()
        logger.info("Doomock bot stopped")

    async def _housekeeping(self, context: CallbackContext) -> None:
        windows = self.rate_limiter.cleanup()
        records = self.dedup_store.purge_expired()
        logger.debug(f"Housekeeping: dropped {windows} rate-limit window(s), {records} dedup record(s)")

    def run(self) -> None:
        logger.info(f"Doomock bot {self.version} starting")
        self.platform.run(webhook_url=self.config.webhook_url, port=self.config.webhook_port)


def _init_sentry(dsn: str) -> None:
    try:
        import sentry_sdk
        from sentry_sdk.integrations.logging import LoggingIntegration
        sentry_logging = LoggingIntegration(
            level=std_logging.INFO,  # capture >= INFO as breadcrumbs
            event_level=std_logging.ERROR,  # send >= ERROR as full Sentry events
        )
        sentry_sdk.init(dsn=dsn, integrations=[sentry_logging], traces_sample_rate=1.0)
        logger.info("Sentry initialized successfully")
    except Exception as e:
        logger.warning(f"Failed to initialize Sentry (optional): {str(e)}")


def main():
    """Main entry point for the bot."""
    config = BotConfig.from_env()

    if config.sentry_dsn:
        _init_sentry(config.sentry_dsn)

    # Configure httpx and apscheduler loggers to reduce noise
    std_logging.getLogger("httpx").setLevel(std_logging.WARNING)
    std_logging.getLogger("apscheduler.scheduler").setLevel(std_logging.WARNING)

    logger.info({"event": "config_loaded", **config.safe_summary()})

    bot = DoomockTelegramBot(config)
    bot.run()


if __name__ == '__main__':
    main()
