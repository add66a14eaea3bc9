# src/services/notifier.py

"""Outbound message delivery."""

import logging
from abc import ABC, abstractmethod

from telegram import Bot, LinkPreviewOptions
from telegram.constants import ParseMode
from telegram.error import TelegramError

from src.core.errors import NotifierError

logger = logging.getLogger("stockwatch.notifier")


class Notifier(ABC):
    """Delivers a text message to a recipient, best effort."""

    @abstractmethod
    async def send(
        self,
        recipient_id: str,
        text: str,
        rich_formatting: bool = False,
    ) -> None:
        """Send *text*; raises :class:`NotifierError` on failure."""
        ...


class TelegramNotifier(Notifier):
    """Sends messages through the Telegram Bot API."""

    def __init__(self, bot: Bot) -> None:
        self.bot = bot

    async def send(
        self,
        recipient_id: str,
        text: str,
        rich_formatting: bool = False,
    ) -> None:
        try:
            await self.bot.send_message(
                chat_id=recipient_id,
                text=text,
                parse_mode=ParseMode.HTML if rich_formatting else None,
                link_preview_options=LinkPreviewOptions(is_disabled=True),
            )
        except TelegramError as exc:
            msg = f"telegram delivery to {recipient_id} failed: {exc}"
            raise NotifierError(msg) from exc
        logger.debug("Sent message to %s (%d chars)", recipient_id, len(text))


async def deliver(
    notifier: Notifier,
    recipient_id: str,
    text: str,
    rich_formatting: bool = False,
) -> bool:
    """Send through *notifier*, logging instead of raising on failure.

    Returns whether the message was handed over successfully.
    """
    try:
        await notifier.send(recipient_id, text, rich_formatting)
    except NotifierError as exc:
        logger.error("Notification not delivered: %s", exc)
        return False
    return True
