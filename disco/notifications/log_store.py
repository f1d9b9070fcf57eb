"""Notification log store.

Merges two asynchronous observations of the same notification: the
scheduler asking for it ("attempted") and the delivery service reporting
it fired ("delivered"). Merging is idempotent and monotonic, so replays
and out-of-order arrivals are safe:

- status only moves attempted -> delivered
- is_read only moves False -> True
- created_at never changes after insert
"""

from __future__ import annotations

from datetime import datetime
from typing import Callable

from loguru import logger
from pydantic import ValidationError

from disco.notifications.schema import (
    ATTEMPTED,
    DELIVERED,
    LOG_FILE_VERSION,
    DeliveryStatus,
    NotificationLogEntry,
    validate_log_file,
)
from disco.notifications.storage import LogStorageBackend

LogListener = Callable[[tuple[NotificationLogEntry, ...]], None]


class NotificationLogStore:
    """
    Persisted, merge-on-write collection of notification log entries.

    Entries are ordered newest first by insertion. The whole collection is
    written through the storage backend after every mutation. Construct one
    per process and inject it where needed.
    """

    def __init__(
        self,
        storage_backend: LogStorageBackend,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self.storage_backend = storage_backend
        self._clock = clock
        self._entries: list[NotificationLogEntry] = []
        self._listeners: list[LogListener] = []
        self._load()

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    @property
    def entries(self) -> tuple[NotificationLogEntry, ...]:
        return tuple(self._entries)

    def get(self, identifier: str) -> NotificationLogEntry | None:
        idx = self._index_of(identifier)
        return None if idx is None else self._entries[idx]

    def unread_count(self) -> int:
        return sum(1 for e in self._entries if not e.is_read)

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def upsert(
        self,
        identifier: str,
        status: DeliveryStatus,
        title: str,
        body: str,
        copy_id: str | None = None,
    ) -> NotificationLogEntry:
        """Insert a new entry or merge into the existing one with the same id."""
        idx = self._index_of(identifier)
        if idx is not None:
            existing = self._entries[idx]
            merged_status = (
                DELIVERED if DELIVERED in (existing.status, status) else ATTEMPTED
            )
            entry = existing.model_copy(
                update={
                    "status": merged_status,
                    "title": title,
                    "body": body,
                    "copy_id": copy_id or existing.copy_id,
                }
            )
            self._entries[idx] = entry
            logger.debug(f"[LogStore] Merged {identifier} (status={merged_status})")
        else:
            entry = NotificationLogEntry(
                id=identifier,
                created_at=self._clock(),
                status=status,
                title=title,
                body=body,
                is_read=False,
                copy_id=copy_id or None,
            )
            self._entries.insert(0, entry)
            logger.debug(f"[LogStore] Inserted {identifier} (status={status})")

        self._changed()
        return entry

    def upsert_attempt(
        self, identifier: str, title: str, body: str, copy_id: str | None = None
    ) -> NotificationLogEntry:
        return self.upsert(identifier, ATTEMPTED, title, body, copy_id)

    def upsert_delivered(
        self, identifier: str, title: str, body: str, copy_id: str | None = None
    ) -> NotificationLogEntry:
        return self.upsert(identifier, DELIVERED, title, body, copy_id)

    def mark_read(self, identifier: str) -> bool:
        """Mark an entry read. Unknown ids are ignored. Returns True if the entry exists."""
        idx = self._index_of(identifier)
        if idx is None:
            logger.debug(f"[LogStore] mark_read: {identifier} not found, skip")
            return False

        entry = self._entries[idx]
        if not entry.is_read:
            self._entries[idx] = entry.model_copy(update={"is_read": True})
        self._changed()
        return True

    # ------------------------------------------------------------------
    # Observers
    # ------------------------------------------------------------------

    def subscribe(self, listener: LogListener) -> Callable[[], None]:
        """Register a listener called with the entries after every mutation."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _index_of(self, identifier: str) -> int | None:
        for i, entry in enumerate(self._entries):
            if entry.id == identifier:
                return i
        return None

    def _changed(self) -> None:
        self._save()
        snapshot = self.entries
        for listener in list(self._listeners):
            try:
                listener(snapshot)
            except Exception:
                logger.exception("[LogStore] Listener failed")

    def _save(self) -> None:
        data = {
            "version": LOG_FILE_VERSION,
            "entries": [e.model_dump(mode="json", by_alias=True) for e in self._entries],
        }
        ok, msg = self.storage_backend.save_log(data)
        if not ok:
            logger.error(f"[LogStore] Save failed: {msg}")

    def _load(self) -> None:
        data = self.storage_backend.load_log()
        try:
            log_file = validate_log_file(data)
        except ValidationError as e:
            logger.warning(f"[LogStore] Stored log is corrupt, starting empty: {e}")
            self._entries = []
            return

        seen: set[str] = set()
        entries: list[NotificationLogEntry] = []
        for entry in log_file.entries:
            if entry.id in seen:
                continue
            seen.add(entry.id)
            entries.append(entry)
        self._entries = entries
        logger.debug(f"[LogStore] Loaded {len(entries)} entries")
