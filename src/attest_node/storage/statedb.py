"""StateDB — SQLite-backed oracle state.

Persists the oracle's permanent audit log:
  - task digests by index (append-only)
  - the single committed response digest per task
  - the successfully-challenged flag per task
  - the notification log, so responders and challengers can catch up
    after a restart

Schema:
  tasks:          task_index, task_digest, created_block, response fields,
                  challenge fields
  notifications:  seq, event_type, task_index, block, payload, timestamp
  metadata:       schema version

Every transition runs inside BEGIN IMMEDIATE ... COMMIT, so the digest
row and its notification are written together or not at all.
"""

from __future__ import annotations

import json
import logging
import sqlite3
from pathlib import Path
from typing import Any

from attest_node.errors import StoreError
from attest_node.models.notification import Notification, NotificationType
from attest_node.storage.base import StateStore, TaskRecord

logger = logging.getLogger(__name__)

SCHEMA_VERSION = 1


class StateDB(StateStore):
    """SQLite-backed state store.

    Thread-safe for reads (WAL mode). Writes must be serialized
    (single writer, enforced by SQLite and the task manager lock).
    """

    def __init__(self, db_path: str | Path) -> None:
        self._db_path = Path(db_path)
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._conn: sqlite3.Connection | None = None

    def open(self) -> None:
        """Open the database and create tables if needed."""
        self._conn = sqlite3.connect(
            str(self._db_path),
            isolation_level=None,  # Autocommit by default
            check_same_thread=False,
        )
        self._conn.row_factory = sqlite3.Row
        self._conn.execute("PRAGMA journal_mode=WAL")
        self._conn.execute("PRAGMA synchronous=NORMAL")
        self._create_tables()
        logger.info("StateDB opened: %s", self._db_path)

    def close(self) -> None:
        if self._conn:
            self._conn.close()
            self._conn = None

    def _create_tables(self) -> None:
        assert self._conn is not None
        self._conn.executescript("""
            CREATE TABLE IF NOT EXISTS metadata (
                key TEXT PRIMARY KEY,
                value TEXT NOT NULL
            );

            CREATE TABLE IF NOT EXISTS tasks (
                task_index INTEGER PRIMARY KEY,
                task_digest TEXT NOT NULL,
                created_block INTEGER NOT NULL,
                response_digest TEXT,
                responded_block INTEGER,
                challenged INTEGER NOT NULL DEFAULT 0,
                challenger TEXT
            );

            CREATE TABLE IF NOT EXISTS notifications (
                seq INTEGER PRIMARY KEY,
                event_type TEXT NOT NULL,
                task_index INTEGER NOT NULL,
                block INTEGER NOT NULL,
                payload TEXT NOT NULL,
                timestamp TEXT NOT NULL
            );

            CREATE INDEX IF NOT EXISTS idx_notif_task ON notifications(task_index);
            CREATE INDEX IF NOT EXISTS idx_notif_type ON notifications(event_type);
        """)

        self._conn.execute(
            "INSERT OR IGNORE INTO metadata (key, value) VALUES (?, ?)",
            ("schema_version", str(SCHEMA_VERSION)),
        )

    # ── Reads ────────────────────────────────────────────────────

    @property
    def task_count(self) -> int:
        assert self._conn is not None
        row = self._conn.execute("SELECT MAX(task_index) AS h FROM tasks").fetchone()
        h = row["h"]
        return (h + 1) if h is not None else 0

    def get_record(self, task_index: int) -> TaskRecord | None:
        assert self._conn is not None
        row = self._conn.execute(
            "SELECT * FROM tasks WHERE task_index = ?", (task_index,)
        ).fetchone()
        if row is None:
            return None
        return TaskRecord(
            task_index=row["task_index"],
            task_digest=row["task_digest"],
            created_block=row["created_block"],
            response_digest=row["response_digest"],
            responded_block=row["responded_block"],
            challenged=bool(row["challenged"]),
            challenger=row["challenger"],
        )

    def highest_block(self) -> int:
        assert self._conn is not None
        row = self._conn.execute(
            "SELECT MAX(MAX(created_block), COALESCE(MAX(responded_block), 0)) AS h FROM tasks"
        ).fetchone()
        return row["h"] or 0

    def notifications(
        self,
        since: int = 0,
        limit: int = 100,
        event_type: NotificationType | None = None,
    ) -> list[Notification]:
        assert self._conn is not None
        if event_type is None:
            rows = self._conn.execute(
                "SELECT * FROM notifications WHERE seq >= ? ORDER BY seq LIMIT ?",
                (since, limit),
            ).fetchall()
        else:
            rows = self._conn.execute(
                "SELECT * FROM notifications WHERE seq >= ? AND event_type = ? "
                "ORDER BY seq LIMIT ?",
                (since, event_type.value, limit),
            ).fetchall()
        return [self._row_to_notification(r) for r in rows]

    # ── Transitions ──────────────────────────────────────────────

    def append_task(
        self, task_digest: str, created_block: int, notification: Notification
    ) -> int:
        assert self._conn is not None
        self._conn.execute("BEGIN IMMEDIATE")
        try:
            index = self.task_count
            self._conn.execute(
                "INSERT INTO tasks (task_index, task_digest, created_block) VALUES (?, ?, ?)",
                (index, task_digest, created_block),
            )
            notification.task_index = index
            self._insert_notification(notification)
            self._conn.execute("COMMIT")
        except Exception:
            self._conn.execute("ROLLBACK")
            raise
        return index

    def record_response(
        self,
        task_index: int,
        response_digest: str,
        responded_block: int,
        notification: Notification,
    ) -> None:
        assert self._conn is not None
        self._conn.execute("BEGIN IMMEDIATE")
        try:
            cursor = self._conn.execute(
                "UPDATE tasks SET response_digest = ?, responded_block = ? "
                "WHERE task_index = ? AND response_digest IS NULL",
                (response_digest, responded_block, task_index),
            )
            if cursor.rowcount != 1:
                raise StoreError(f"Task {task_index} is unknown or already answered")
            self._insert_notification(notification)
            self._conn.execute("COMMIT")
        except Exception:
            self._conn.execute("ROLLBACK")
            raise

    def record_challenge(
        self, task_index: int, challenger: str, notification: Notification
    ) -> None:
        assert self._conn is not None
        self._conn.execute("BEGIN IMMEDIATE")
        try:
            cursor = self._conn.execute(
                "UPDATE tasks SET challenged = 1, challenger = ? "
                "WHERE task_index = ? AND response_digest IS NOT NULL AND challenged = 0",
                (challenger, task_index),
            )
            if cursor.rowcount != 1:
                raise StoreError(
                    f"Task {task_index} has no response or is already challenged"
                )
            self._insert_notification(notification)
            self._conn.execute("COMMIT")
        except Exception:
            self._conn.execute("ROLLBACK")
            raise

    def append_notification(self, notification: Notification) -> Notification:
        assert self._conn is not None
        self._conn.execute("BEGIN IMMEDIATE")
        try:
            self._insert_notification(notification)
            self._conn.execute("COMMIT")
        except Exception:
            self._conn.execute("ROLLBACK")
            raise
        return notification

    # ── Statistics ───────────────────────────────────────────────

    def get_stats(self) -> dict[str, Any]:
        assert self._conn is not None
        counts = self._conn.execute(
            "SELECT COUNT(*) AS tasks, "
            "COUNT(response_digest) AS responded, "
            "COALESCE(SUM(challenged), 0) AS challenged FROM tasks"
        ).fetchone()
        notif_count = self._conn.execute(
            "SELECT COUNT(*) AS c FROM notifications"
        ).fetchone()["c"]
        db_size = self._db_path.stat().st_size if self._db_path.exists() else 0
        return {
            "tasks": counts["tasks"],
            "responded": counts["responded"],
            "challenged": counts["challenged"],
            "notifications": notif_count,
            "db_size_bytes": db_size,
        }

    # ── Conversion helpers ───────────────────────────────────────

    def _insert_notification(self, notification: Notification) -> None:
        assert self._conn is not None
        row = self._conn.execute(
            "SELECT COALESCE(MAX(seq) + 1, 0) AS s FROM notifications"
        ).fetchone()
        notification.seq = row["s"]
        self._conn.execute(
            "INSERT INTO notifications (seq, event_type, task_index, block, payload, timestamp) "
            "VALUES (?, ?, ?, ?, ?, ?)",
            (
                notification.seq,
                notification.event_type.value,
                notification.task_index,
                notification.block,
                json.dumps(notification.payload),
                notification.timestamp.isoformat(),
            ),
        )

    @staticmethod
    def _row_to_notification(row: sqlite3.Row) -> Notification:
        return Notification(
            seq=row["seq"],
            event_type=NotificationType(row["event_type"]),
            task_index=row["task_index"],
            block=row["block"],
            payload=json.loads(row["payload"]),
            timestamp=row["timestamp"],
        )
