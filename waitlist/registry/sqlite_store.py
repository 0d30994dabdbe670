"""SQLite-backed registry store.

Each save rewrites the ``subscribers`` table inside one transaction, so
readers on other connections observe either the old or the new registry.
Row order follows the ``position`` column, which preserves insertion order.
"""

from __future__ import annotations

import logging
import sqlite3
from pathlib import Path
from typing import Union

from waitlist.errors import StoreUnavailable
from waitlist.registry import RegistryStore
from waitlist.registry.models import (
    UNKNOWN_IP,
    Registry,
    Subscriber,
    parse_timestamp,
)

LOGGER = logging.getLogger(__name__)


class SQLiteRegistryStore(RegistryStore):
    """SQLite implementation of the ``RegistryStore`` interface."""

    def __init__(self, path: Union[str, Path], timeout: float = 5.0) -> None:
        super().__init__()
        self._path = Path(path)
        self._timeout = timeout
        self._initialized = False

    @property
    def path(self) -> Path:
        return self._path

    def _connect(self) -> sqlite3.Connection:
        return sqlite3.connect(str(self._path), timeout=self._timeout)

    def _init_db(self) -> None:
        if self._initialized:
            return
        with self.exclusive():
            if self._initialized:
                return
            self._path.parent.mkdir(parents=True, exist_ok=True)
            with self._connect() as conn:
                conn.execute(
                    """
                    CREATE TABLE IF NOT EXISTS subscribers (
                        position INTEGER PRIMARY KEY AUTOINCREMENT,
                        email TEXT NOT NULL UNIQUE,
                        subscribed_at TEXT,
                        ip TEXT
                    )
                    """
                )
                conn.commit()
            self._initialized = True

    def load(self) -> Registry:
        try:
            self._init_db()
            with self._connect() as conn:
                rows = conn.execute(
                    "SELECT email, subscribed_at, ip FROM subscribers "
                    "ORDER BY position"
                ).fetchall()
        except (OSError, sqlite3.Error) as exc:
            LOGGER.error("Failed to read registry %s: %s", self._path, exc)
            raise StoreUnavailable() from exc
        return Registry(
            [
                Subscriber(
                    email=email,
                    subscribed_at=parse_timestamp(subscribed_at),
                    ip=ip or UNKNOWN_IP,
                    raw={"email": email, "subscribedAt": subscribed_at, "ip": ip},
                )
                for email, subscribed_at, ip in rows
            ]
        )

    def save(self, registry: Registry) -> None:
        rows = [
            (doc.get("email"), doc.get("subscribedAt"), doc.get("ip"))
            for doc in (s.to_dict() for s in registry)
        ]
        try:
            self._init_db()
            with self._connect() as conn:
                # The connection context manager commits or rolls back the
                # whole rewrite as one transaction.
                conn.execute("DELETE FROM subscribers")
                conn.executemany(
                    "INSERT INTO subscribers (email, subscribed_at, ip) "
                    "VALUES (?, ?, ?)",
                    rows,
                )
        except (OSError, sqlite3.Error) as exc:
            LOGGER.error("Failed to write registry %s: %s", self._path, exc)
            raise StoreUnavailable() from exc


__all__ = ["SQLiteRegistryStore"]
