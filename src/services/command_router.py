# src/services/command_router.py

"""Maps subscriber commands and free text onto subscription transitions."""

import logging

from src.core.errors import ValidationError
from src.filters.subscription_validator import SubscriptionValidator
from src.models.subscription import ConversationState
from src.services import message_formatter as messages
from src.services.notifier import Notifier, deliver
from src.services.subscription_manager import SubscriptionManager

logger = logging.getLogger("stockwatch.router")


class CommandRouter:
    """Transport-independent command handling.

    ``/track`` always restarts enrollment from scratch: an existing
    subscription, active or half-entered, is discarded without asking.
    Replies are sent through the notifier.
    """

    COMMANDS: tuple[str, ...] = ("start", "help", "track", "stop", "status")

    def __init__(
        self, manager: SubscriptionManager, notifier: Notifier,
    ) -> None:
        self.manager = manager
        self.notifier = notifier

    async def _reply(self, subscriber_id: str, text: str) -> None:
        await deliver(
            self.notifier, subscriber_id, text, rich_formatting=True,
        )

    # ── Commands ─────────────────────────────────────────

    async def handle_command(self, subscriber_id: str, command: str) -> None:
        """Dispatch ``command`` (with or without the leading slash)."""
        name = command.strip().lstrip("/").split("@", 1)[0].lower()
        logger.info("Command /%s from %s", name, subscriber_id)
        if name in ("start", "help"):
            await self.start(subscriber_id)
        elif name == "track":
            await self.track(subscriber_id)
        elif name == "stop":
            await self.stop(subscriber_id)
        elif name == "status":
            await self.status(subscriber_id)
        else:
            logger.debug("Ignoring unknown command /%s", name)

    async def start(self, subscriber_id: str) -> None:
        await self._reply(subscriber_id, messages.greeting())

    async def track(self, subscriber_id: str) -> None:
        await self.manager.begin_enrollment(subscriber_id)
        await self._reply(
            subscriber_id,
            messages.ask_product_ref(self.manager.storefront_host),
        )

    async def stop(self, subscriber_id: str) -> None:
        if await self.manager.unsubscribe(subscriber_id):
            await self._reply(subscriber_id, messages.stopped())
        else:
            await self._reply(subscriber_id, messages.nothing_to_stop())

    async def status(self, subscriber_id: str) -> None:
        record = self.manager.query_status(subscriber_id)
        if record is None:
            await self._reply(subscriber_id, messages.no_status())
            return
        await self._reply(subscriber_id, messages.status_report(record))

    # ── Free text ────────────────────────────────────────

    async def handle_text(self, subscriber_id: str, text: str) -> None:
        """Interpret free text according to the enrollment state."""
        subscription = self.manager.get(subscriber_id)
        if subscription is None:
            logger.debug("Ignoring text from idle %s", subscriber_id)
            return
        text = text.strip()

        if subscription.state is ConversationState.AWAITING_PRODUCT_REF:
            try:
                self.manager.accept_product_ref(subscriber_id, text)
            except ValidationError as exc:
                await self._reply(
                    subscriber_id,
                    messages.invalid_product_ref(
                        str(exc), self.manager.storefront_host,
                    ),
                )
                return
            await self._reply(subscriber_id, messages.ask_postal_code())

        elif subscription.state is ConversationState.AWAITING_POSTAL_CODE:
            product_ref = subscription.product_ref or ""
            try:
                postal_code = SubscriptionValidator.validate_postal_code(
                    text,
                )
            except ValidationError as exc:
                await self._reply(
                    subscriber_id, messages.invalid_postal_code(str(exc)),
                )
                return
            await self._reply(
                subscriber_id,
                messages.tracking_started(
                    product_ref,
                    postal_code,
                    self.manager.interval_seconds,
                ),
            )
            await self.manager.subscribe(
                subscriber_id, product_ref, postal_code,
            )

        else:
            logger.debug(
                "Ignoring text from %s in state %s",
                subscriber_id,
                subscription.state.value,
            )
