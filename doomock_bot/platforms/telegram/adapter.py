"""
Telegram platform adapter.

Connects the platform-agnostic routers to a python-telegram-bot Application:
converts updates, registers handlers, and owns the polling/webhook lifecycle.
"""

from typing import Awaitable, Callable, Optional
from telegram import Update
from telegram.ext import (
    Application,
    CallbackContext,
    CallbackQueryHandler,
    CommandHandler,
    MessageHandler,
    filters,
)

from ..interfaces import IJobScheduler, IResponseService
from ..types import CallbackQuery, UserMessage
from .response_service import TelegramResponseService
from .scheduler import TelegramJobScheduler
from .type_converters import telegram_update_to_user_message, telegram_callback_to_callback_query
from utils.logger import get_logger

logger = get_logger(__name__)

CallbackSink = Callable[[IResponseService, CallbackQuery], Awaitable[bool]]
MessageSink = Callable[[IResponseService, UserMessage], Awaitable[bool]]
CommandSink = Callable[[IResponseService, UserMessage, list], Awaitable[None]]


class TelegramPlatformAdapter:
    """Wires a Telegram Application to platform-agnostic sinks."""

    def __init__(self, application: Application):
        """
        Initialize Telegram platform adapter.

        Args:
            application: Telegram Application instance
        """
        self._application = application
        self._response_service = TelegramResponseService(application.bot)
        self._job_scheduler = TelegramJobScheduler(application.job_queue)

    @property
    def response_service(self) -> IResponseService:
        """Get the response service for this platform."""
        return self._response_service

    @property
    def job_scheduler(self) -> IJobScheduler:
        """Get the job scheduler for this platform."""
        return self._job_scheduler

    @property
    def application(self) -> Application:
        """Get the underlying Telegram Application."""
        return self._application

    def register_callback_sink(self, sink: CallbackSink) -> None:
        """Route every callback query to `sink`."""
        async def _on_callback(update: Update, context: CallbackContext) -> None:
            query = telegram_callback_to_callback_query(update)
            await sink(self._response_service, query)

        self._application.add_handler(CallbackQueryHandler(_on_callback))

    def register_message_sink(self, sink: MessageSink) -> None:
        """Route free-text (non-command) messages to `sink`."""
        async def _on_message(update: Update, context: CallbackContext) -> None:
            message = telegram_update_to_user_message(update)
            handled = await sink(self._response_service, message)
            if not handled:
                logger.debug(f"Message from user {message.user_id} not claimed by any feature")

        self._application.add_handler(MessageHandler(filters.TEXT & ~filters.COMMAND, _on_message))

    def register_command(self, command: str, sink: CommandSink) -> None:
        """Register a slash command."""
        async def _on_command(update: Update, context: CallbackContext) -> None:
            message = telegram_update_to_user_message(update)
            await sink(self._response_service, message, list(context.args or []))

        self._application.add_handler(CommandHandler(command, _on_command))

    def register_error_handler(self) -> None:
        """Log anything that escapes the routers instead of crashing the loop."""
        async def _on_error(update: object, context: CallbackContext) -> None:
            logger.error("Unhandled error while processing update", exc_info=context.error)

        self._application.add_error_handler(_on_error)

    def run(self, webhook_url: Optional[str] = None, port: int = 8443) -> None:
        """Start delivery: webhook when a URL is configured, long polling otherwise (blocking)."""
        if webhook_url:
            logger.info(f"Starting Telegram webhook on port {port}")
            self._application.run_webhook(
                listen="0.0.0.0",
                port=port,
                webhook_url=webhook_url,
                allowed_updates=Update.ALL_TYPES,
            )
        else:
            logger.info("Starting Telegram long polling")
            self._application.run_polling(allowed_updates=Update.ALL_TYPES)
