# tests/test_status_record.py

"""Tests for the StatusRecord model and key helpers."""

import unittest
from datetime import datetime, timedelta

from src.models.status_record import (
    StatusRecord,
    status_key,
    subscriber_from_key,
)
from src.models.stock_status import StockStatus

URL = "https://shop.example.com/product/x"
T0 = datetime(2026, 10, 19, 9, 0, 0)


class TestStatusKey(unittest.TestCase):
    """Composite key construction and parsing."""

    def test_key_layout(self) -> None:
        """Key is subscriber, URL and pincode joined by underscores."""
        self.assertEqual(
            status_key("U1", URL, "302017"),
            "U1_https://shop.example.com/product/x_302017",
        )

    def test_subscriber_round_trip(self) -> None:
        """The subscriber id is recovered from key + record."""
        record = StatusRecord.new(URL, "302017", T0)
        key = status_key("-100123", URL, "302017")
        self.assertEqual(subscriber_from_key(key, record), "-100123")

    def test_subscriber_with_underscore(self) -> None:
        """Underscores inside the subscriber id survive."""
        record = StatusRecord.new(URL, "302017", T0)
        key = status_key("team_a", URL, "302017")
        self.assertEqual(subscriber_from_key(key, record), "team_a")

    def test_mismatched_key_returns_none(self) -> None:
        """A key for another product yields None."""
        record = StatusRecord.new(URL, "302017", T0)
        self.assertIsNone(
            subscriber_from_key("U1_https://other/p_302017", record)
        )


class TestObserve(unittest.TestCase):
    """Invariants of StatusRecord.observe."""

    def test_new_record_defaults(self) -> None:
        """A new record is Unknown, active and never available."""
        record = StatusRecord.new(URL, "302017", T0)
        self.assertEqual(record.current_status, StockStatus.UNKNOWN)
        self.assertIsNone(record.last_available)
        self.assertTrue(record.active)
        self.assertEqual(record.tracking_started, T0)

    def test_tracking_started_is_immutable(self) -> None:
        """Observations never move tracking_started."""
        record = StatusRecord.new(URL, "302017", T0)
        later = record.observe(
            StockStatus.IN_STOCK, "Lassi", T0 + timedelta(minutes=2),
        )
        self.assertEqual(later.tracking_started, T0)

    def test_last_available_only_on_in_stock(self) -> None:
        """Out-of-stock observations keep last_available."""
        record = StatusRecord.new(URL, "302017", T0)
        t1 = T0 + timedelta(minutes=2)
        t2 = T0 + timedelta(minutes=4)
        record = record.observe(StockStatus.IN_STOCK, "", t1)
        self.assertEqual(record.last_available, t1)
        record = record.observe(StockStatus.OUT_OF_STOCK, "", t2)
        self.assertEqual(record.last_available, t1)
        self.assertEqual(record.last_checked, t2)
        self.assertEqual(record.current_status, StockStatus.OUT_OF_STOCK)

    def test_last_available_never_decreases(self) -> None:
        """An older in-stock timestamp does not overwrite a newer one."""
        t_new = T0 + timedelta(hours=1)
        record = StatusRecord.new(URL, "302017", T0).observe(
            StockStatus.IN_STOCK, "", t_new,
        )
        record = record.observe(StockStatus.IN_STOCK, "", T0)
        self.assertEqual(record.last_available, t_new)

    def test_empty_name_keeps_previous(self) -> None:
        """A probe without a title keeps the stored product name."""
        record = StatusRecord.new(URL, "302017", T0).observe(
            StockStatus.IN_STOCK, "Amul Lassi", T0,
        )
        record = record.observe(StockStatus.OUT_OF_STOCK, "", T0)
        self.assertEqual(record.product_name, "Amul Lassi")

    def test_deactivate(self) -> None:
        """deactivate clears only the active flag."""
        record = StatusRecord.new(URL, "302017", T0)
        inactive = record.deactivate()
        self.assertFalse(inactive.active)
        self.assertEqual(inactive.tracking_started, T0)

    def test_observe_keeps_inactive_flag(self) -> None:
        """A late observation does not re-enable a stopped record."""
        record = StatusRecord.new(URL, "302017", T0).deactivate()
        observed = record.observe(
            StockStatus.IN_STOCK, "Lassi", T0 + timedelta(minutes=2),
        )
        self.assertFalse(observed.active)
        self.assertEqual(observed.current_status, StockStatus.IN_STOCK)


class TestSerialisation(unittest.TestCase):
    """JSON layout of the status file."""

    def test_to_dict_layout(self) -> None:
        """to_dict uses the camelCase persisted field names."""
        record = StatusRecord.new(URL, "302017", T0).observe(
            StockStatus.IN_STOCK, "Lassi", T0,
        )
        data = record.to_dict()
        self.assertEqual(
            set(data),
            {
                "productUrl", "pincode", "productName",
                "trackingStarted", "lastAvailable", "currentStatus",
                "lastChecked", "active",
            },
        )
        self.assertEqual(data["currentStatus"], "In Stock")
        self.assertEqual(data["trackingStarted"], T0.isoformat())

    def test_null_last_available(self) -> None:
        """A never-available record serialises lastAvailable as None."""
        data = StatusRecord.new(URL, "302017", T0).to_dict()
        self.assertIsNone(data["lastAvailable"])

    def test_from_dict_round_trip(self) -> None:
        """from_dict(to_dict(r)) == r."""
        record = StatusRecord.new(URL, "302017", T0).observe(
            StockStatus.OUT_OF_STOCK, "Lassi", T0 + timedelta(minutes=1),
        )
        self.assertEqual(StatusRecord.from_dict(record.to_dict()), record)

    def test_from_dict_tolerates_missing_optional_fields(self) -> None:
        """Older entries without active/productName still load."""
        record = StatusRecord.from_dict({
            "productUrl": URL,
            "pincode": "302017",
            "trackingStarted": T0.isoformat(),
            "lastAvailable": None,
            "currentStatus": "Out of Stock",
            "lastChecked": T0.isoformat(),
        })
        self.assertTrue(record.active)
        self.assertEqual(record.product_name, "")
        self.assertEqual(record.current_status, StockStatus.OUT_OF_STOCK)

    def test_unknown_status_string(self) -> None:
        """Unrecognised status strings load as Unknown."""
        record = StatusRecord.from_dict({
            "productUrl": URL,
            "pincode": "302017",
            "trackingStarted": T0.isoformat(),
            "currentStatus": "Backordered",
        })
        self.assertEqual(record.current_status, StockStatus.UNKNOWN)

    def _with_active(self, value: object) -> StatusRecord:
        return StatusRecord.from_dict({
            "productUrl": URL,
            "pincode": "302017",
            "trackingStarted": T0.isoformat(),
            "active": value,
        })

    def test_active_strings_are_parsed(self) -> None:
        """Hand-edited files may store the flag as a string."""
        for value, expected in (
            ("false", False), ("False", False), ("0", False), ("", False),
            ("true", True), (" yes ", True), ("1", True),
        ):
            with self.subTest(value=value):
                self.assertIs(self._with_active(value).active, expected)

    def test_active_null_defaults_to_true(self) -> None:
        self.assertTrue(self._with_active(None).active)
        self.assertFalse(self._with_active(False).active)

    def test_missing_required_field_raises(self) -> None:
        """Entries without productUrl are rejected."""
        with self.assertRaises(KeyError):
            StatusRecord.from_dict({
                "pincode": "302017",
                "trackingStarted": T0.isoformat(),
            })


if __name__ == "__main__":
    unittest.main()
