# src/ui/telegram_bot.py

"""Telegram front end: forwards updates to the command router."""

import logging

from telegram import Update
from telegram.ext import (
    Application,
    CommandHandler,
    ContextTypes,
    MessageHandler,
    filters,
)

from src.services.command_router import CommandRouter

logger = logging.getLogger("stockwatch.telegram")


def build_application(token: str) -> Application:
    """Create the bot application.

    Updates are processed concurrently so one subscriber's first
    availability check never delays another subscriber's command.
    """
    return (
        Application.builder()
        .token(token)
        .concurrent_updates(True)
        .build()
    )


class TelegramFrontend:
    """Registers handlers translating Telegram updates into router calls."""

    def __init__(self, router: CommandRouter) -> None:
        self.router = router

    def setup_handlers(self, application: Application) -> None:
        application.add_handler(
            CommandHandler(list(self.router.COMMANDS), self.on_command)
        )
        application.add_handler(
            MessageHandler(filters.TEXT & ~filters.COMMAND, self.on_text)
        )
        application.add_error_handler(self.on_error)

    @staticmethod
    def _chat_and_text(update: Update) -> tuple[str, str] | None:
        chat = update.effective_chat
        message = update.effective_message
        if chat is None or message is None or message.text is None:
            return None
        return str(chat.id), message.text

    async def on_command(
        self, update: Update, context: ContextTypes.DEFAULT_TYPE,
    ) -> None:
        parsed = self._chat_and_text(update)
        if parsed is None:
            return
        chat_id, text = parsed
        await self.router.handle_command(chat_id, text.split()[0])

    async def on_text(
        self, update: Update, context: ContextTypes.DEFAULT_TYPE,
    ) -> None:
        parsed = self._chat_and_text(update)
        if parsed is None:
            return
        chat_id, text = parsed
        await self.router.handle_text(chat_id, text)

    async def on_error(
        self, update: object, context: ContextTypes.DEFAULT_TYPE,
    ) -> None:
        logger.error(
            "Unhandled error while processing update %s",
            update,
            exc_info=context.error,
        )
