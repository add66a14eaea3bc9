# tests/test_command_router.py

"""Tests for CommandRouter conversations."""

import tempfile
import unittest
from pathlib import Path
from unittest.mock import MagicMock

from src.models.availability_verdict import AvailabilityVerdict
from src.models.subscription import ConversationState
from src.services.command_router import CommandRouter
from src.services.notifier import Notifier
from src.services.subscription_manager import SubscriptionManager
from src.storage.status_store import StatusStore

HOST = "shop.example.com"
URL = "https://shop.example.com/product/x"


class _StubProber:
    def __init__(self) -> None:
        self.calls: list[tuple[str, str]] = []

    async def probe(self, url: str, pincode: str) -> AvailabilityVerdict:
        self.calls.append((url, pincode))
        return AvailabilityVerdict.from_signals(
            False, False, True, product_name="High Protein Lassi",
        )


class _Inbox(Notifier):
    def __init__(self) -> None:
        self.sent: list[tuple[str, str, bool]] = []

    async def send(
        self, recipient_id: str, text: str, rich_formatting: bool = False,
    ) -> None:
        self.sent.append((recipient_id, text, rich_formatting))

    def texts(self, recipient_id: str) -> list[str]:
        return [t for r, t, _ in self.sent if r == recipient_id]


class TestCommandRouter(unittest.IsolatedAsyncioTestCase):
    """Command and free-text handling over a real manager."""

    def setUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        self.addCleanup(self._tmp.cleanup)
        self.prober = _StubProber()
        self.inbox = _Inbox()
        self.scheduler = MagicMock()
        self.manager = SubscriptionManager(
            self.prober,  # type: ignore[arg-type]
            StatusStore(Path(self._tmp.name) / "status.json"),
            self.inbox,
            self.scheduler,
            interval_seconds=120,
            storefront_host=HOST,
        )
        self.router = CommandRouter(self.manager, self.inbox)

    async def test_full_enrollment(self) -> None:
        """/track, link, pincode → active watch with a stored record."""
        await self.router.handle_command("U1", "/track")
        await self.router.handle_text("U1", URL)
        await self.router.handle_text("U1", "302017")

        sub = self.manager.get("U1")
        assert sub is not None
        self.assertIs(sub.state, ConversationState.ACTIVE)
        self.assertEqual(self.prober.calls, [(URL, "302017")])
        record = self.manager.store.get(
            "U1_https://shop.example.com/product/x_302017"
        )
        assert record is not None
        self.assertEqual(record.current_status.value, "In Stock")

        texts = self.inbox.texts("U1")
        self.assertIn(HOST, texts[0])
        self.assertIn("pincode", texts[1])
        self.assertIn("Tracking started", texts[2])
        self.assertIn("IN STOCK", texts[3])
        self.scheduler.add_job.assert_called_once()

    async def test_replies_use_rich_formatting(self) -> None:
        await self.router.handle_command("U1", "/start")
        self.assertTrue(all(rich for _, _, rich in self.inbox.sent))

    async def test_invalid_link_reprompts(self) -> None:
        await self.router.handle_command("U1", "/track")
        await self.router.handle_text("U1", "https://elsewhere.com/p")

        sub = self.manager.get("U1")
        assert sub is not None
        self.assertIs(sub.state, ConversationState.AWAITING_PRODUCT_REF)
        self.assertIn("❌", self.inbox.texts("U1")[-1])

    async def test_invalid_pincode_reprompts(self) -> None:
        await self.router.handle_command("U1", "/track")
        await self.router.handle_text("U1", URL)
        await self.router.handle_text("U1", "30201")

        sub = self.manager.get("U1")
        assert sub is not None
        self.assertIs(sub.state, ConversationState.AWAITING_POSTAL_CODE)
        self.assertEqual(self.prober.calls, [])
        self.scheduler.add_job.assert_not_called()

    async def test_pincode_surrounding_whitespace_accepted(self) -> None:
        await self.router.handle_command("U1", "/track")
        await self.router.handle_text("U1", f"  {URL}\n")
        await self.router.handle_text("U1", " 302017 ")
        sub = self.manager.get("U1")
        assert sub is not None
        self.assertEqual(sub.postal_code, "302017")

    async def test_stop_without_subscription(self) -> None:
        await self.router.handle_command("U1", "/stop")
        self.assertIn("Nothing to stop", self.inbox.texts("U1")[-1])

    async def test_stop_active_subscription(self) -> None:
        await self.router.handle_command("U1", "/track")
        await self.router.handle_text("U1", URL)
        await self.router.handle_text("U1", "302017")
        await self.router.handle_command("U1", "/stop")

        self.assertIsNone(self.manager.get("U1"))
        self.assertIn("stopped", self.inbox.texts("U1")[-1])

    async def test_status_before_tracking(self) -> None:
        await self.router.handle_command("U1", "/status")
        self.assertIn("No status yet", self.inbox.texts("U1")[-1])

    async def test_status_report(self) -> None:
        await self.router.handle_command("U1", "/track")
        await self.router.handle_text("U1", URL)
        await self.router.handle_text("U1", "302017")
        await self.router.handle_command("U1", "/status")

        report = self.inbox.texts("U1")[-1]
        self.assertIn("High Protein Lassi", report)
        self.assertIn("In Stock", report)

    async def test_command_with_bot_suffix(self) -> None:
        await self.router.handle_command("U1", "/track@stock_bot")
        sub = self.manager.get("U1")
        assert sub is not None
        self.assertIs(sub.state, ConversationState.AWAITING_PRODUCT_REF)

    async def test_text_from_idle_subscriber_ignored(self) -> None:
        await self.router.handle_text("U1", "hello")
        self.assertEqual(self.inbox.sent, [])

    async def test_text_while_active_ignored(self) -> None:
        await self.router.handle_command("U1", "/track")
        await self.router.handle_text("U1", URL)
        await self.router.handle_text("U1", "302017")
        sent_before = len(self.inbox.sent)
        await self.router.handle_text("U1", "another message")
        self.assertEqual(len(self.inbox.sent), sent_before)

    async def test_subscribers_are_independent(self) -> None:
        await self.router.handle_command("U1", "/track")
        await self.router.handle_command("U2", "/track")
        await self.router.handle_text("U1", URL)

        u1 = self.manager.get("U1")
        u2 = self.manager.get("U2")
        assert u1 is not None and u2 is not None
        self.assertIs(u1.state, ConversationState.AWAITING_POSTAL_CODE)
        self.assertIs(u2.state, ConversationState.AWAITING_PRODUCT_REF)


if __name__ == "__main__":
    unittest.main()
