# src/storage/status_store.py

"""JSON-file-backed store of the last known status per subscription key."""

import json
import logging
import os
import tempfile
import threading
from collections.abc import Callable
from pathlib import Path
from typing import Any

from src.config.settings import Settings
from src.core.errors import PersistenceError
from src.models.status_record import StatusRecord

logger = logging.getLogger("stockwatch.store")

Mutator = Callable[[StatusRecord | None], StatusRecord]


class StatusStore:
    """Durable mapping of subscription key to :class:`StatusRecord`.

    The whole mapping lives in one JSON document.  Every write
    serialises the full document to a temporary file in the same
    directory and atomically replaces the original, so a crash
    mid-write leaves the previous document intact.

    Read-modify-write cycles are serialised per key; the file flush
    is serialised across keys.
    """

    def __init__(self, path: Path | None = None) -> None:
        self.path: Path = path or Settings.STATUS_FILE
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self._records: dict[str, StatusRecord] = {}
        self._key_locks: dict[str, threading.Lock] = {}
        self._registry_lock = threading.Lock()
        self._flush_lock = threading.Lock()
        self._load()

    # ── Loading ──────────────────────────────────────────

    def _load(self) -> None:
        """Read the status file; missing or corrupt files start empty."""
        if not self.path.exists():
            logger.info("No status file at %s, starting empty", self.path)
            return
        try:
            with open(self.path, encoding="utf-8") as f:
                raw: Any = json.load(f)
        except (OSError, ValueError) as exc:
            logger.warning(
                "Status file %s unreadable (%s), starting empty",
                self.path,
                exc,
            )
            return
        if not isinstance(raw, dict):
            logger.warning(
                "Status file %s is not a JSON object, starting empty",
                self.path,
            )
            return

        skipped = 0
        for key, entry in raw.items():
            try:
                self._records[str(key)] = StatusRecord.from_dict(entry)
            except (KeyError, TypeError, ValueError) as exc:
                skipped += 1
                logger.warning(
                    "Skipping malformed status entry %r: %s", key, exc,
                )
        logger.debug(
            "StatusStore loaded %d records from %s (%d skipped)",
            len(self._records),
            self.path,
            skipped,
        )

    # ── Reading ──────────────────────────────────────────

    def get(self, key: str) -> StatusRecord | None:
        """Return the record stored under *key*, if any."""
        return self._records.get(key)

    def items(self) -> list[tuple[str, StatusRecord]]:
        """Snapshot of every stored ``(key, record)`` pair."""
        return list(self._records.items())

    def __len__(self) -> int:
        return len(self._records)

    # ── Writing ──────────────────────────────────────────

    def _lock_for(self, key: str) -> threading.Lock:
        with self._registry_lock:
            lock = self._key_locks.get(key)
            if lock is None:
                lock = threading.Lock()
                self._key_locks[key] = lock
            return lock

    def upsert(self, key: str, mutator: Mutator) -> StatusRecord:
        """Apply *mutator* to the current record and persist the result.

        Raises :class:`PersistenceError` when the file cannot be
        written; the in-memory record is left unchanged in that case.
        """
        with self._lock_for(key):
            previous = self._records.get(key)
            updated = mutator(previous)
            self._records[key] = updated
            try:
                self._flush()
            except OSError as exc:
                if previous is None:
                    self._records.pop(key, None)
                else:
                    self._records[key] = previous
                logger.error(
                    "Failed to persist status for %s: %s",
                    key,
                    exc,
                    exc_info=True,
                )
                msg = f"could not write {self.path}: {exc}"
                raise PersistenceError(msg) from exc
        logger.debug(
            "Upserted %s → %s", key, updated.current_status.value,
        )
        return updated

    def _flush(self) -> None:
        """Write the full mapping via temp file + ``os.replace``."""
        with self._flush_lock:
            snapshot = dict(self._records)
            data = {
                key: record.to_dict()
                for key, record in snapshot.items()
            }
            fd, tmp_name = tempfile.mkstemp(
                prefix=f".{self.path.name}.",
                suffix=".tmp",
                dir=str(self.path.parent),
            )
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as f:
                    json.dump(data, f, ensure_ascii=False, indent=2)
                    f.flush()
                    os.fsync(f.fileno())
                os.replace(tmp_name, self.path)
            except OSError:
                if os.path.exists(tmp_name):
                    os.unlink(tmp_name)
                raise
