"""SQLite-backed TokenStore."""

import json
import logging
import sqlite3
from dataclasses import replace
from datetime import datetime, timezone
from pathlib import Path
from threading import Lock
from typing import Any, List, Optional

from ...domain.constants import DEFAULT_CAS_MAX_ATTEMPTS, TokenStatus
from ...domain.entities import TokenRecord
from ...domain.exceptions import ConcurrencyConflictError, DuplicateTokenIdError, NotFoundError
from ...domain.ports import RecordMutation, TokenStore

logger = logging.getLogger(__name__)

_COLUMNS = (
    "token_id, owner_id, name, claims, issued_at, expires_at, key_id, "
    "status, version, revoked_at, revocation_reason, audience"
)


def _to_epoch(value: Optional[datetime]) -> Optional[int]:
    return None if value is None else int(value.timestamp())


def _from_epoch(value: Optional[int]) -> Optional[datetime]:
    return None if value is None else datetime.fromtimestamp(value, tz=timezone.utc)


class SQLiteTokenStore(TokenStore):
    """
    Durable token store on a single SQLite file.

    Timestamps are stored as whole epoch seconds. Writes are compare-and-swap
    on the `version` column; the connection is shared between threads behind
    a lock.
    """

    def __init__(self, db_path: str, max_attempts: int = DEFAULT_CAS_MAX_ATTEMPTS) -> None:
        """
        Args:
            db_path: SQLite database file; its directory is created if missing.
            max_attempts: CAS attempts before ConcurrencyConflictError.

        Raises:
            ValueError: if db_path is empty, max_attempts is not positive, or
                the directory cannot be created.
        """
        if not isinstance(db_path, str) or not db_path.strip():
            raise ValueError("db_path must be a non-empty string")
        if max_attempts <= 0:
            raise ValueError("max_attempts must be positive")

        db_file_path = Path(db_path).resolve()
        db_dir = db_file_path.parent
        if not db_dir.exists():
            try:
                db_dir.mkdir(parents=True, exist_ok=True)
            except OSError as e:
                raise ValueError(f"Could not create directory {db_dir}: {e}") from e
        if not db_dir.is_dir():
            raise ValueError(f"{db_dir} exists but is not a directory")

        self._db_path = str(db_file_path)
        self._max_attempts = max_attempts
        self._lock = Lock()
        self._conn = sqlite3.connect(self._db_path, check_same_thread=False)
        self._conn.execute("PRAGMA journal_mode=WAL;")
        self._conn.execute("PRAGMA synchronous=NORMAL;")
        self._conn.execute(
            """
            CREATE TABLE IF NOT EXISTS token_records (
                token_id TEXT PRIMARY KEY,
                owner_id TEXT NOT NULL,
                name TEXT NOT NULL,
                claims TEXT NOT NULL,
                issued_at INTEGER NOT NULL,
                expires_at INTEGER NOT NULL,
                key_id TEXT NOT NULL,
                status TEXT NOT NULL,
                version INTEGER NOT NULL,
                revoked_at INTEGER NULL,
                revocation_reason TEXT NULL,
                audience TEXT NOT NULL DEFAULT '[]'
            )
            """
        )
        self._conn.execute(
            """
            CREATE INDEX IF NOT EXISTS idx_token_records_owner
            ON token_records(owner_id, issued_at)
            """
        )
        self._conn.commit()

    def close(self) -> None:
        with self._lock:
            self._conn.close()

    def __enter__(self) -> "SQLiteTokenStore":
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self.close()

    # ------------------------------------------------------------------ #
    # row mapping
    # ------------------------------------------------------------------ #

    @staticmethod
    def _row_to_record(row: tuple) -> TokenRecord:
        return TokenRecord(
            token_id=row[0],
            owner_id=row[1],
            name=row[2],
            claims=json.loads(row[3]),
            issued_at=_from_epoch(row[4]),
            expires_at=_from_epoch(row[5]),
            key_id=row[6],
            status=TokenStatus(row[7]),
            version=row[8],
            revoked_at=_from_epoch(row[9]),
            revocation_reason=row[10],
            audience=tuple(json.loads(row[11])),
        )

    # ------------------------------------------------------------------ #
    # TokenStore
    # ------------------------------------------------------------------ #

    def create(self, record: TokenRecord) -> TokenRecord:
        with self._lock:
            try:
                self._conn.execute(
                    f"INSERT INTO token_records ({_COLUMNS}) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
                    (
                        record.token_id,
                        record.owner_id,
                        record.name,
                        json.dumps(record.claims, separators=(",", ":"), ensure_ascii=False),
                        _to_epoch(record.issued_at),
                        _to_epoch(record.expires_at),
                        record.key_id,
                        record.status.value,
                        record.version,
                        _to_epoch(record.revoked_at),
                        record.revocation_reason,
                        json.dumps(list(record.audience)),
                    ),
                )
                self._conn.commit()
            except sqlite3.IntegrityError as e:
                self._conn.rollback()
                raise DuplicateTokenIdError(f"Token id already exists: {record.token_id}") from e
        return record

    def get(self, token_id: str) -> TokenRecord:
        with self._lock:
            row = self._conn.execute(
                f"SELECT {_COLUMNS} FROM token_records WHERE token_id = ?",
                (token_id,),
            ).fetchone()
        if row is None:
            raise NotFoundError(f"Token not found: {token_id}")
        return self._row_to_record(row)

    def list_by_owner(self, owner_id: str) -> List[TokenRecord]:
        with self._lock:
            rows = self._conn.execute(
                f"SELECT {_COLUMNS} FROM token_records WHERE owner_id = ? "
                "ORDER BY issued_at DESC, rowid DESC",
                (owner_id,),
            ).fetchall()
        return [self._row_to_record(row) for row in rows]

    def update(self, token_id: str, mutation: RecordMutation) -> TokenRecord:
        for attempt in range(1, self._max_attempts + 1):
            current = self.get(token_id)
            changed = mutation(current)
            if changed is current:
                return current

            with self._lock:
                cursor = self._conn.execute(
                    """
                    UPDATE token_records
                    SET expires_at = ?, status = ?, version = ?, revoked_at = ?, revocation_reason = ?
                    WHERE token_id = ? AND version = ?
                    """,
                    (
                        _to_epoch(changed.expires_at),
                        changed.status.value,
                        current.version + 1,
                        _to_epoch(changed.revoked_at),
                        changed.revocation_reason,
                        token_id,
                        current.version,
                    ),
                )
                self._conn.commit()
            if cursor.rowcount == 1:
                return replace(changed, version=current.version + 1)

            logger.debug("CAS conflict on token %s (attempt %s/%s)", token_id, attempt, self._max_attempts)

        raise ConcurrencyConflictError(
            f"Could not update token {token_id} after {self._max_attempts} attempts"
        )

    def list_expired_active(self, now: datetime) -> List[TokenRecord]:
        with self._lock:
            rows = self._conn.execute(
                f"SELECT {_COLUMNS} FROM token_records WHERE status = ? AND expires_at <= ?",
                (TokenStatus.ACTIVE.value, _to_epoch(now)),
            ).fetchall()
        return [self._row_to_record(row) for row in rows]
