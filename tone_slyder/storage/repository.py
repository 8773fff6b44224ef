"""
Usage stores.

The meter only needs get/put by (user, month) key. Two implementations
are provided: a process-local dictionary and a SQLite table.
"""

import threading
from abc import ABC, abstractmethod
from decimal import Decimal
from typing import Dict, List, Optional, Tuple

from .db import DEFAULT_DB_PATH, get_connection
from .models import UserUsageRecord


class UsageStore(ABC):
    """Get/put access to usage records keyed by (user_id, month_year)."""

    @abstractmethod
    def get(self, user_id: str, month_year: str) -> Optional[UserUsageRecord]:
        """Return the stored record, or None if the user has no usage that month."""

    @abstractmethod
    def put(self, record: UserUsageRecord) -> None:
        """Store a record, replacing any record with the same key."""


class InMemoryUsageStore(UsageStore):
    """Dictionary-backed store for tests and single-process use."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._records: Dict[Tuple[str, str], UserUsageRecord] = {}

    def get(self, user_id: str, month_year: str) -> Optional[UserUsageRecord]:
        with self._lock:
            return self._records.get((user_id, month_year))

    def put(self, record: UserUsageRecord) -> None:
        with self._lock:
            self._records[(record.user_id, record.month_year)] = record

    def records(self) -> List[UserUsageRecord]:
        with self._lock:
            return list(self._records.values())


class SqliteUsageStore(UsageStore):
    """Store backed by the user_usage table of a SQLite database."""

    def __init__(self, db_path: str = DEFAULT_DB_PATH):
        """Initialize the store with a database path.

        Args:
            db_path: Path to SQLite database file
        """
        self.db_path = db_path

    def get(self, user_id: str, month_year: str) -> Optional[UserUsageRecord]:
        conn = get_connection(self.db_path)
        try:
            cursor = conn.execute("""
                SELECT user_id, month_year, rewrites_count, tokens_used, cost_usd
                FROM user_usage
                WHERE user_id = ? AND month_year = ?
            """, (user_id, month_year))
            row = cursor.fetchone()
            if row is None:
                return None
            return UserUsageRecord(
                user_id=row[0],
                month_year=row[1],
                rewrites_count=row[2],
                tokens_used=row[3],
                cost_usd=Decimal(row[4])
            )
        finally:
            conn.close()

    def put(self, record: UserUsageRecord) -> None:
        conn = get_connection(self.db_path)
        try:
            conn.execute("""
                INSERT INTO user_usage
                (user_id, month_year, rewrites_count, tokens_used, cost_usd)
                VALUES (?, ?, ?, ?, ?)
                ON CONFLICT (user_id, month_year) DO UPDATE SET
                    rewrites_count = excluded.rewrites_count,
                    tokens_used = excluded.tokens_used,
                    cost_usd = excluded.cost_usd
            """, (
                record.user_id,
                record.month_year,
                record.rewrites_count,
                record.tokens_used,
                str(record.cost_usd)
            ))
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    def list_user_history(self, user_id: str) -> List[UserUsageRecord]:
        """All monthly records for a user, newest month first."""
        conn = get_connection(self.db_path)
        try:
            cursor = conn.execute("""
                SELECT user_id, month_year, rewrites_count, tokens_used, cost_usd
                FROM user_usage
                WHERE user_id = ?
                ORDER BY month_year DESC
            """, (user_id,))
            return [
                UserUsageRecord(
                    user_id=row[0],
                    month_year=row[1],
                    rewrites_count=row[2],
                    tokens_used=row[3],
                    cost_usd=Decimal(row[4])
                )
                for row in cursor.fetchall()
            ]
        finally:
            conn.close()


def initialize_schema(db_path: str = DEFAULT_DB_PATH) -> None:
    """Create the user_usage table if it doesn't exist.

    One row per (user, month). Cost is stored as decimal text so no
    precision is lost to floating point.

    Args:
        db_path: Path to SQLite database file
    """
    conn = get_connection(db_path)
    try:
        conn.execute("""
            CREATE TABLE IF NOT EXISTS user_usage (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                user_id TEXT NOT NULL,
                month_year TEXT NOT NULL,
                rewrites_count INTEGER NOT NULL DEFAULT 0,
                tokens_used INTEGER NOT NULL DEFAULT 0,
                cost_usd TEXT NOT NULL DEFAULT '0',
                UNIQUE (user_id, month_year)
            )
        """)
        conn.commit()
    finally:
        conn.close()
