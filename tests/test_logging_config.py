# tests/test_logging_config.py

"""Tests for the per-run logging configuration."""

import logging
import unittest
from unittest.mock import patch

from src.config.logging_config import LIBRARY_LOGGERS, setup_logging
from src.config.settings import Settings


class TestLoggingConfig(unittest.TestCase):
    """Verify logging setup behaviour."""

    def setUp(self) -> None:
        """Start every test from bare service and library loggers."""
        self.logger = logging.getLogger("stockwatch")
        self._drop_handlers()
        self.addCleanup(self._drop_handlers)

    def _drop_handlers(self) -> None:
        for handler in list(self.logger.handlers):
            handler.close()
            self.logger.removeHandler(handler)
        for name in LIBRARY_LOGGERS:
            library = logging.getLogger(name)
            for handler in list(library.handlers):
                library.removeHandler(handler)
            library.propagate = True
            library.setLevel(logging.NOTSET)

    def _file_handlers(self) -> list[logging.FileHandler]:
        return [
            h for h in self.logger.handlers
            if isinstance(h, logging.FileHandler)
        ]

    def _console_handlers(self) -> list[logging.Handler]:
        return [
            h for h in self.logger.handlers
            if not isinstance(h, logging.FileHandler)
        ]

    def test_log_file_created_in_logs_dir(self) -> None:
        """setup_logging creates run_YYYYMMDD_HHMMSS.log under logs/."""
        log_path = setup_logging()
        self.assertTrue(log_path.exists())
        self.assertEqual(log_path.parent, Settings.LOGS_DIR)
        self.assertRegex(log_path.name, r"^run_\d{8}_\d{6}\.log$")

    def test_logger_captures_debug(self) -> None:
        """The stockwatch logger itself passes DEBUG records."""
        setup_logging()
        self.assertEqual(self.logger.level, logging.DEBUG)

    def test_one_file_and_one_console_handler(self) -> None:
        setup_logging()
        self.assertEqual(len(self._file_handlers()), 1)
        self.assertEqual(len(self._console_handlers()), 1)
        self.assertEqual(self._file_handlers()[0].level, logging.DEBUG)

    def test_console_defaults_to_warning(self) -> None:
        with patch.object(Settings, "LOG_LEVEL", "WARNING"):
            setup_logging()
        self.assertEqual(self._console_handlers()[0].level, logging.WARNING)

    def test_console_level_follows_settings(self) -> None:
        """LOG_LEVEL=INFO lowers the console threshold."""
        with patch.object(Settings, "LOG_LEVEL", "INFO"):
            setup_logging()
        self.assertEqual(self._console_handlers()[0].level, logging.INFO)

    def test_unknown_level_falls_back_to_warning(self) -> None:
        with patch.object(Settings, "LOG_LEVEL", "CHATTY"):
            setup_logging()
        self.assertEqual(self._console_handlers()[0].level, logging.WARNING)

    def test_second_call_adds_nothing(self) -> None:
        """Repeated setup keeps the original handlers."""
        setup_logging()
        before = list(self.logger.handlers)
        setup_logging()
        self.assertEqual(self.logger.handlers, before)

    def test_child_loggers_propagate(self) -> None:
        """Module loggers reach the run log through the service logger."""
        setup_logging()
        with self.assertLogs("stockwatch", level="INFO") as logs:
            logging.getLogger("stockwatch.prober").info("cycle done")
        self.assertIn("cycle done", logs.output[0])

    def test_library_loggers_capped_at_warning(self) -> None:
        setup_logging()
        for name in ("apscheduler", "httpx", "telegram"):
            with self.subTest(name=name):
                library = logging.getLogger(name)
                self.assertEqual(library.level, logging.WARNING)
                self.assertFalse(library.propagate)
                self.assertIn(self._file_handlers()[0], library.handlers)

    def test_library_warnings_reach_run_log(self) -> None:
        """Scheduler warnings land in the run log, per-poll chatter does not."""
        log_path = setup_logging()
        logging.getLogger("httpx").info("HTTP Request: POST getUpdates")
        logging.getLogger("apscheduler.scheduler").warning("job missed")
        self._file_handlers()[0].flush()

        content = log_path.read_text(encoding="utf-8")
        self.assertIn("job missed", content)
        self.assertNotIn("getUpdates", content)


if __name__ == "__main__":
    unittest.main()
