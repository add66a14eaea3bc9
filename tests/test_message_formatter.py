# tests/test_message_formatter.py

"""Tests for user-facing message texts."""

import unittest
from datetime import datetime

from src.models.status_record import StatusRecord
from src.models.stock_status import StockStatus
from src.services import message_formatter as messages

URL = "https://shop.example.com/product/x"
T0 = datetime(2026, 10, 19, 9, 5, 0)


class TestMessageFormatter(unittest.TestCase):
    """Message wording and escaping."""

    def test_display_name_falls_back(self) -> None:
        self.assertEqual(messages.display_name(""), "Product")
        self.assertEqual(messages.display_name(None), "Product")
        self.assertEqual(messages.display_name("  Lassi "), "Lassi")

    def test_format_timestamp(self) -> None:
        self.assertEqual(
            messages.format_timestamp(T0), "19 Oct 2026, 09:05 AM",
        )
        self.assertEqual(messages.format_timestamp(None), "-")

    def test_status_change_in_stock(self) -> None:
        text = messages.status_change(
            StockStatus.IN_STOCK, "Lassi", URL, "302017",
        )
        self.assertIn("IN STOCK", text)
        self.assertIn("Lassi", text)
        self.assertIn("302017", text)
        self.assertIn(URL, text)

    def test_status_change_out_of_stock_generic_name(self) -> None:
        text = messages.status_change(
            StockStatus.OUT_OF_STOCK, "", URL, "302017",
        )
        self.assertIn("out of stock", text)
        self.assertIn("<b>Product</b>", text)

    def test_html_is_escaped(self) -> None:
        text = messages.status_change(
            StockStatus.IN_STOCK, "Milk <500ml> & Curd", URL, "302017",
        )
        self.assertIn("Milk &lt;500ml&gt; &amp; Curd", text)

    def test_probe_failed_includes_reason(self) -> None:
        text = messages.probe_failed(URL, "302017", "page load timed out")
        self.assertIn("page load timed out", text)
        self.assertIn("next check", text)

    def test_tracking_started_interval_in_minutes(self) -> None:
        text = messages.tracking_started(URL, "302017", 120)
        self.assertIn("every 2 min", text)

    def test_status_report_never_available(self) -> None:
        record = StatusRecord.new(URL, "302017", T0)
        text = messages.status_report(record)
        self.assertIn("not seen in stock since tracking started", text)
        self.assertIn("Unknown", text)

    def test_status_report_with_last_available(self) -> None:
        record = StatusRecord.new(URL, "302017", T0).observe(
            StockStatus.IN_STOCK, "Lassi", T0,
        )
        text = messages.status_report(record)
        self.assertIn("Last available: 19 Oct 2026, 09:05 AM", text)
        self.assertIn("🟢 In Stock", text)

    def test_nothing_to_stop(self) -> None:
        self.assertIn("Nothing to stop", messages.nothing_to_stop())


if __name__ == "__main__":
    unittest.main()
