# src/services/subscription_manager.py

"""Owns subscriptions, their poll schedules and the probe cycle."""

import asyncio
import logging
from collections.abc import Callable
from dataclasses import replace
from datetime import datetime

from apscheduler.jobstores.base import JobLookupError
from apscheduler.schedulers.base import BaseScheduler

from src.config.settings import Settings
from src.core.errors import PersistenceError, ProbeError, ValidationError
from src.filters.subscription_validator import SubscriptionValidator
from src.models.status_record import StatusRecord, subscriber_from_key
from src.models.stock_status import StockStatus
from src.models.subscription import ConversationState, Subscription
from src.scrapers.availability_prober import AvailabilityProber
from src.services import message_formatter as messages
from src.services.notifier import Notifier, deliver
from src.storage.status_store import StatusStore

logger = logging.getLogger("stockwatch.subscriptions")


class SubscriptionManager:
    """Coordinates probing, persistence and notification per subscriber.

    Each subscriber has at most one :class:`Subscription`, either
    mid-enrollment or active.  Active subscriptions own one recurring
    scheduler job; cancelling a subscription removes the job and bumps
    its generation so a probe already in flight finishes as a no-op.
    """

    def __init__(
        self,
        prober: AvailabilityProber,
        store: StatusStore,
        notifier: Notifier,
        scheduler: BaseScheduler,
        interval_seconds: int | None = None,
        storefront_host: str | None = None,
        clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        self.prober = prober
        self.store = store
        self.notifier = notifier
        self.scheduler = scheduler
        self.interval_seconds = (
            interval_seconds or Settings.POLL_INTERVAL_SECONDS
        )
        self.storefront_host = storefront_host or Settings.STOREFRONT_HOST
        self._clock = clock
        self._subscriptions: dict[str, Subscription] = {}
        # Key of each subscriber's current or most recent watch
        self._last_keys: dict[str, str] = {}

    # ── Lookups ──────────────────────────────────────────

    def get(self, subscriber_id: str) -> Subscription | None:
        """Return the subscriber's subscription, if any."""
        return self._subscriptions.get(subscriber_id)

    def active_count(self) -> int:
        return sum(
            1 for s in self._subscriptions.values() if s.is_tracking
        )

    def query_status(self, subscriber_id: str) -> StatusRecord | None:
        """Stored status for the subscriber's current or last watch."""
        key = self._last_keys.get(subscriber_id)
        if key is None:
            return None
        return self.store.get(key)

    # ── Enrollment ───────────────────────────────────────

    async def begin_enrollment(self, subscriber_id: str) -> Subscription:
        """Start a fresh enrollment, discarding any existing subscription."""
        previous = self._subscriptions.pop(subscriber_id, None)
        if previous is not None:
            await self._retire(previous)
            logger.info(
                "Enrollment restarted for %s, previous subscription "
                "discarded",
                subscriber_id,
            )
        subscription = Subscription(subscriber_id=subscriber_id)
        self._subscriptions[subscriber_id] = subscription
        return subscription

    def accept_product_ref(
        self, subscriber_id: str, text: str,
    ) -> Subscription:
        """Record the product link of an enrollment in progress.

        Raises :class:`ValidationError` when the link is rejected or
        no enrollment is waiting for one.
        """
        subscription = self._subscriptions.get(subscriber_id)
        if (
            subscription is None
            or subscription.state
            is not ConversationState.AWAITING_PRODUCT_REF
        ):
            msg = "No enrollment is waiting for a product link"
            raise ValidationError(msg)
        subscription.product_ref = SubscriptionValidator.validate_product_ref(
            text, self.storefront_host,
        )
        subscription.state = ConversationState.AWAITING_POSTAL_CODE
        return subscription

    async def subscribe(
        self,
        subscriber_id: str,
        product_ref: str,
        postal_code: str,
        initial_status: StockStatus = StockStatus.UNKNOWN,
        run_now: bool = True,
    ) -> Subscription:
        """Activate polling of *product_ref* at *postal_code*.

        Validates both inputs before touching any state, replaces any
        existing subscription of the subscriber, runs one probe cycle
        immediately (unless *run_now* is false) and then installs the
        recurring schedule.
        """
        postal_code = SubscriptionValidator.validate_postal_code(
            postal_code,
        )
        product_ref = SubscriptionValidator.validate_product_ref(
            product_ref, self.storefront_host,
        )

        subscription = Subscription(
            subscriber_id=subscriber_id,
            product_ref=product_ref,
            postal_code=postal_code,
            state=ConversationState.ACTIVE,
            last_known_status=initial_status,
        )
        previous = self._subscriptions.pop(subscriber_id, None)
        if previous is not None:
            await self._retire(previous, keep_key=subscription.key)
        self._subscriptions[subscriber_id] = subscription
        self._last_keys[subscriber_id] = subscription.key
        await self._enroll_record(subscription)

        logger.info(
            "Subscribed %s to %s @ %s (every %ds)",
            subscriber_id,
            product_ref,
            postal_code,
            self.interval_seconds,
        )

        if run_now:
            await self.run_probe_cycle(subscription)
        if subscription.active:
            subscription.job = self.scheduler.add_job(
                self.run_probe_cycle,
                "interval",
                seconds=self.interval_seconds,
                args=[subscription],
                id=f"probe:{subscriber_id}",
                replace_existing=True,
                max_instances=1,
                coalesce=True,
                misfire_grace_time=self.interval_seconds,
            )
        return subscription

    async def unsubscribe(self, subscriber_id: str) -> bool:
        """Stop the subscriber's subscription.

        Returns ``False`` when there was nothing to stop.  The stored
        status record is kept.
        """
        subscription = self._subscriptions.pop(subscriber_id, None)
        if subscription is None:
            logger.info("Nothing to stop for %s", subscriber_id)
            return False
        await self._retire(subscription)
        logger.info("Unsubscribed %s", subscriber_id)
        return True

    async def restore_subscriptions(self) -> int:
        """Re-activate watches persisted by a previous run.

        The most recently checked active record of each subscriber is
        restored with its stored status as the last known status, so
        an unchanged status is not announced again.  Older active
        records of the same subscriber are flagged inactive.  Returns
        the number of restored subscriptions.
        """
        latest: dict[str, tuple[str, StatusRecord]] = {}
        superseded: list[str] = []
        for key, record in self.store.items():
            if not record.active:
                continue
            subscriber_id = subscriber_from_key(key, record)
            if subscriber_id is None:
                logger.warning("Cannot restore malformed key %r", key)
                continue
            current = latest.get(subscriber_id)
            if current is None:
                latest[subscriber_id] = (key, record)
            elif record.last_checked > current[1].last_checked:
                superseded.append(current[0])
                latest[subscriber_id] = (key, record)
            else:
                superseded.append(key)

        for key in superseded:
            try:
                await asyncio.to_thread(
                    self.store.upsert, key, self._deactivated,
                )
            except PersistenceError as exc:
                logger.error("Could not deactivate %s: %s", key, exc)

        restored = 0
        for subscriber_id, (_, record) in latest.items():
            if subscriber_id in self._subscriptions:
                continue
            try:
                await self.subscribe(
                    subscriber_id,
                    record.product_url,
                    record.pincode,
                    initial_status=record.current_status,
                    run_now=False,
                )
            except ValidationError as exc:
                logger.warning(
                    "Not restoring %s (%s): %s",
                    subscriber_id,
                    record.product_url,
                    exc,
                )
                continue
            restored += 1
        logger.info("Restored %d subscriptions", restored)
        return restored

    def shutdown(self) -> None:
        """Cancel every schedule without touching stored records."""
        for subscription in self._subscriptions.values():
            self._cancel(subscription)
        self._subscriptions.clear()

    # ── Probe cycle ──────────────────────────────────────

    async def run_probe_cycle(self, subscription: Subscription) -> bool:
        """Probe once, persist, and notify on a status change.

        A tick that arrives while the previous cycle of the same
        subscription is still running is dropped.  Never raises.
        Returns whether a verdict was recorded.
        """
        if not subscription.is_tracking:
            return False
        if subscription.lock.locked():
            logger.info(
                "Skipping tick for %s: previous check still running",
                subscription.key,
            )
            return False

        async with subscription.lock:
            generation = subscription.generation
            try:
                verdict = await self.prober.probe(
                    subscription.product_ref or "",
                    subscription.postal_code or "",
                )
            except Exception as exc:
                if self._is_stale(subscription, generation):
                    return False
                if isinstance(exc, ProbeError):
                    logger.warning(
                        "Probe failed for %s: %s", subscription.key, exc,
                    )
                    reason = str(exc)
                else:
                    logger.error(
                        "Unexpected probe failure for %s",
                        subscription.key,
                        exc_info=True,
                    )
                    reason = "unexpected error while checking the page"
                await deliver(
                    self.notifier,
                    subscription.subscriber_id,
                    messages.probe_failed(
                        subscription.product_ref or "",
                        subscription.postal_code or "",
                        reason,
                    ),
                    rich_formatting=True,
                )
                return False

            if self._is_stale(subscription, generation):
                logger.debug(
                    "Discarding verdict for cancelled %s", subscription.key,
                )
                return False

            status = StockStatus.from_available(verdict.available)
            checked_at = self._clock()
            try:
                await asyncio.to_thread(
                    self.store.upsert,
                    subscription.key,
                    lambda previous: self._observed(
                        subscription, previous, status,
                        verdict.product_name, checked_at,
                    ),
                )
            except PersistenceError as exc:
                logger.error(
                    "Status for %s not persisted: %s", subscription.key, exc,
                )

            if self._is_stale(subscription, generation):
                return False
            if status is not subscription.last_known_status:
                logger.info(
                    "Status change for %s: %s → %s",
                    subscription.key,
                    subscription.last_known_status.value,
                    status.value,
                )
                subscription.last_known_status = status
                await deliver(
                    self.notifier,
                    subscription.subscriber_id,
                    messages.status_change(
                        status,
                        verdict.product_name,
                        subscription.product_ref or "",
                        subscription.postal_code or "",
                    ),
                    rich_formatting=True,
                )
            return True

    # ── Internals ────────────────────────────────────────

    def _is_stale(self, subscription: Subscription, generation: int) -> bool:
        return (
            not subscription.active
            or subscription.generation != generation
            or self._subscriptions.get(subscription.subscriber_id)
            is not subscription
        )

    def _cancel(self, subscription: Subscription) -> None:
        """Remove the schedule and void any in-flight probe."""
        subscription.active = False
        subscription.generation += 1
        if subscription.job is not None:
            try:
                subscription.job.remove()
            except JobLookupError:
                logger.debug(
                    "Job for %s already gone", subscription.subscriber_id,
                )
            subscription.job = None

    async def _retire(
        self, subscription: Subscription, keep_key: str | None = None,
    ) -> None:
        """Cancel *subscription* and flag its stored record inactive."""
        was_tracking = subscription.is_tracking
        self._cancel(subscription)
        if not was_tracking or subscription.key == keep_key:
            return
        if self.store.get(subscription.key) is None:
            return
        try:
            await asyncio.to_thread(
                self.store.upsert,
                subscription.key,
                self._deactivated,
            )
        except PersistenceError as exc:
            logger.error(
                "Could not deactivate %s: %s", subscription.key, exc,
            )

    async def _enroll_record(self, subscription: Subscription) -> None:
        """Create (or re-activate) the stored record of a new watch."""
        now = self._clock()

        def enroll(previous: StatusRecord | None) -> StatusRecord:
            if previous is None:
                return StatusRecord.new(
                    subscription.product_ref or "",
                    subscription.postal_code or "",
                    now,
                )
            return replace(previous, active=True)

        try:
            await asyncio.to_thread(
                self.store.upsert, subscription.key, enroll,
            )
        except PersistenceError as exc:
            logger.error(
                "Could not record enrollment of %s: %s",
                subscription.key,
                exc,
            )

    @staticmethod
    def _deactivated(previous: StatusRecord | None) -> StatusRecord:
        if previous is None:
            msg = "cannot deactivate a missing record"
            raise PersistenceError(msg)
        return previous.deactivate()

    @staticmethod
    def _observed(
        subscription: Subscription,
        previous: StatusRecord | None,
        status: StockStatus,
        product_name: str,
        checked_at: datetime,
    ) -> StatusRecord:
        record = previous or StatusRecord.new(
            subscription.product_ref or "",
            subscription.postal_code or "",
            checked_at,
        )
        return record.observe(status, product_name, checked_at)
