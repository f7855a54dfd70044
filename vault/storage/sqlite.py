# vault/storage/sqlite.py
import os
import sqlite3
import json
import uuid
from pathlib import Path
from typing import List, Optional, Tuple

from vault.core.types import Event
from vault.core.canon import canonical_json_str
from vault.core.errors import CorruptJournal
from vault.core.hashing import event_hash
from . import StorageBackend


class SQLiteStorage(StorageBackend):
    """SQLite persistent storage for vault event journals."""

    def __init__(self, db_path: str | Path | None = None):
        if db_path is None:
            env_path = os.environ.get("VAULT_DB_PATH")
            db_path = env_path if env_path else Path.cwd() / "vault.db"

        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self.db_path = self.db_path.resolve()

        self._conn: Optional[sqlite3.Connection] = None
        self._connect()

    def _connect(self):
        self._conn = sqlite3.connect(str(self.db_path), isolation_level=None)
        self._conn.execute("PRAGMA journal_mode=WAL")
        self._create_schema()

    def _create_schema(self):
        self.conn.execute("""
            CREATE TABLE IF NOT EXISTS events (
                vault_id        TEXT    NOT NULL,
                sequence        INTEGER NOT NULL,
                kind            TEXT    NOT NULL,
                account         TEXT    NOT NULL,
                amount          TEXT    NOT NULL,
                timestamp       TEXT    NOT NULL,
                prev_hash       TEXT    NOT NULL,
                event_hash      TEXT    NOT NULL,
                canonical_json  TEXT    NOT NULL,
                PRIMARY KEY (vault_id, sequence)
            )
        """)
        self.conn.execute("""
            CREATE TABLE IF NOT EXISTS reservations (
                token           TEXT    PRIMARY KEY,
                vault_id        TEXT    NOT NULL,
                account         TEXT    NOT NULL,
                amount          TEXT    NOT NULL
            )
        """)
        self.conn.execute("CREATE INDEX IF NOT EXISTS idx_timestamp ON events(vault_id, timestamp)")
        self.conn.execute("CREATE INDEX IF NOT EXISTS idx_account   ON events(account)")

    @property
    def conn(self) -> sqlite3.Connection:
        if self._conn is None:
            raise RuntimeError("Storage connection is closed")
        return self._conn

    def append(self, event: Event, release: Optional[str] = None) -> None:
        conn = self.conn
        conn.execute("BEGIN")
        try:
            # amount is TEXT: wei values overflow SQLite's 64-bit INTEGER
            conn.execute("""
                INSERT INTO events
                (vault_id, sequence, kind, account, amount, timestamp,
                 prev_hash, event_hash, canonical_json)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
            """, (
                event.vault_id, event.sequence, event.kind, event.account,
                str(event.amount), event.timestamp, event.prev_hash,
                event_hash(event), canonical_json_str(event.to_dict())
            ))
            if release is not None:
                conn.execute("DELETE FROM reservations WHERE token = ?", (release,))
        except BaseException:
            conn.execute("ROLLBACK")
            raise
        conn.execute("COMMIT")

    def reserve(self, vault_id: str, account: str, amount: int) -> str:
        token = str(uuid.uuid4())
        self.conn.execute(
            "INSERT INTO reservations (token, vault_id, account, amount) VALUES (?, ?, ?, ?)",
            (token, vault_id, account, str(amount))
        )
        return token

    def release(self, token: str) -> bool:
        cursor = self.conn.execute("DELETE FROM reservations WHERE token = ?", (token,))
        return cursor.rowcount > 0

    def load_reservations(self, vault_id: str) -> List[Tuple[str, int]]:
        cursor = self.conn.execute(
            "SELECT account, amount FROM reservations WHERE vault_id = ? ORDER BY rowid",
            (vault_id,)
        )
        return [(account, int(amount)) for account, amount in cursor]

    def _rows_to_events(self, cursor) -> List[Event]:
        return [Event.from_dict(json.loads(row[0])) for row in cursor]

    def load_events(self, vault_id: str) -> List[Event]:
        cursor = self.conn.execute("""
            SELECT canonical_json FROM events
            WHERE vault_id = ? ORDER BY sequence ASC
        """, (vault_id,))
        loaded = self._rows_to_events(cursor)

        for i, event in enumerate(loaded):
            if event.sequence != i:
                raise CorruptJournal(f"Sequence gap: expected {i}, got {event.sequence}", event.sequence)
            expected_prev = event_hash(loaded[i - 1]) if i else ""
            if event.prev_hash != expected_prev:
                raise CorruptJournal(f"Chain broken at sequence {event.sequence}", event.sequence)
        return loaded

    def close(self) -> None:
        if self._conn:
            self._conn.close()
            self._conn = None

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()

    def list_vaults(self) -> list[str]:
        """
        List all vault ids that have journaled events, most recently active first.
        """
        cursor = self.conn.execute("""
            SELECT vault_id
            FROM events
            GROUP BY vault_id
            ORDER BY MAX(timestamp) DESC
        """)
        return [row[0] for row in cursor.fetchall()]

    def get_event_count(self, vault_id: str) -> int:
        cursor = self.conn.execute(
            "SELECT COUNT(*) FROM events WHERE vault_id = ?",
            (vault_id,)
        )
        return cursor.fetchone()[0]

    def get_latest_timestamp(self, vault_id: str) -> Optional[str]:
        cursor = self.conn.execute(
            "SELECT MAX(timestamp) FROM events WHERE vault_id = ?",
            (vault_id,)
        )
        row = cursor.fetchone()
        return row[0] if row and row[0] else None

    def query_events(self, vault_id: str, limit: int = 50) -> List[Event]:
        """Most recent `limit` events, returned oldest first."""
        cursor = self.conn.execute("""
            SELECT canonical_json FROM events
            WHERE vault_id = ?
            ORDER BY sequence DESC
            LIMIT ?
        """, (vault_id, limit))
        loaded = self._rows_to_events(cursor)
        loaded.reverse()  # latest last
        return loaded
