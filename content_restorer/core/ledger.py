"""
Append-only publication ledger.

Records every confirmed publication under a stable identity derived from the
article title, so the same article is never published twice. Backed by a
local SQLite file; the identity is the primary key, which keeps membership
lookups indexed at corpus scale.
"""

import asyncio
import hashlib
import logging
import re
import sqlite3
import unicodedata
from contextlib import asynccontextmanager
from datetime import date, datetime, timezone
from pathlib import Path
from typing import AsyncIterator, Dict, List, Optional

from ..models.content import LedgerEntry
from .errors import DuplicatePublishError, LedgerError

logger = logging.getLogger(__name__)

# Format written by the legacy publisher: "2025-01-31 09:15:00 - Title"
LEGACY_HISTORY_LINE = re.compile(r"^(\d{4}-\d{2}-\d{2} \d{2}:\d{2}:\d{2}) - (.+)$")
LEGACY_DESTINATION_REF = "legacy-history"


def normalize_title(title: str) -> str:
    """Normalize a title for identity comparison."""
    normalized = unicodedata.normalize("NFKC", title).casefold()
    normalized = re.sub(r"[^\w\s]", " ", normalized)
    return " ".join(normalized.split())


def identity_of(title: str, published_on: Optional[date] = None) -> str:
    """Derive a stable identity from a title and an optional date.

    Args:
        title: Article title
        published_on: Include this date when the same title may legitimately
            be published again on another day

    Returns:
        SHA256 hex digest of the normalized key
    """
    key = normalize_title(title)
    if published_on is not None:
        key = f"{key}|{published_on.isoformat()}"
    return hashlib.sha256(key.encode("utf-8")).hexdigest()


class PublicationLedger:
    """SQLite-backed record of published identities."""

    def __init__(self, db_path: str = ".cache/publication_ledger.db"):
        """Open (and create if needed) the ledger.

        Args:
            db_path: Path of the SQLite database file
        """
        self.db_path = Path(db_path)
        self._locks: Dict[str, asyncio.Lock] = {}
        self._lock_users: Dict[str, int] = {}
        try:
            self.db_path.parent.mkdir(parents=True, exist_ok=True)
            self._init_database()
        except (OSError, sqlite3.Error) as e:
            raise LedgerError(f"Cannot open ledger at {self.db_path}: {e}") from e

    def _init_database(self):
        """Create the ledger table."""
        with sqlite3.connect(self.db_path) as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS published (
                    identity TEXT PRIMARY KEY,
                    title TEXT NOT NULL DEFAULT '',
                    published_at TIMESTAMP NOT NULL,
                    destination_ref TEXT NOT NULL
                )
            """)
            conn.execute(
                "CREATE INDEX IF NOT EXISTS idx_published_at ON published(published_at)"
            )
            conn.commit()

    @staticmethod
    def identity_of(title: str, published_on: Optional[date] = None) -> str:
        return identity_of(title, published_on)

    def has_published(self, identity: str) -> bool:
        """Check whether an identity has already been published."""
        try:
            with sqlite3.connect(self.db_path) as conn:
                row = conn.execute(
                    "SELECT 1 FROM published WHERE identity = ? LIMIT 1", (identity,)
                ).fetchone()
        except sqlite3.Error as e:
            raise LedgerError(f"Ledger lookup failed: {e}") from e
        return row is not None

    def record(
        self,
        identity: str,
        destination_ref: str,
        timestamp: Optional[datetime] = None,
        title: str = "",
    ) -> LedgerEntry:
        """Append a confirmed publication.

        Call only after the publisher reported success.

        Raises:
            DuplicatePublishError: If the identity is already recorded
            LedgerError: If the ledger cannot be written
        """
        published_at = timestamp or datetime.now(timezone.utc)
        try:
            with sqlite3.connect(self.db_path) as conn:
                conn.execute(
                    """
                    INSERT INTO published (identity, title, published_at, destination_ref)
                    VALUES (?, ?, ?, ?)
                    """,
                    (identity, title, published_at.isoformat(), destination_ref),
                )
                conn.commit()
        except sqlite3.IntegrityError as e:
            raise DuplicatePublishError(identity) from e
        except sqlite3.Error as e:
            raise LedgerError(f"Ledger write failed: {e}") from e

        logger.debug(f"Ledger recorded {identity[:12]} -> {destination_ref}")
        return LedgerEntry(
            identity=identity,
            title=title,
            published_at=published_at,
            destination_ref=destination_ref,
        )

    @asynccontextmanager
    async def lock(self, identity: str) -> AsyncIterator[None]:
        """Serialize check-publish-record sequences for one identity."""
        lock = self._locks.setdefault(identity, asyncio.Lock())
        self._lock_users[identity] = self._lock_users.get(identity, 0) + 1
        try:
            async with lock:
                yield
        finally:
            # Drop the lock once nobody holds or waits on it
            self._lock_users[identity] -= 1
            if not self._lock_users[identity]:
                del self._lock_users[identity]
                del self._locks[identity]

    def entries(self) -> List[LedgerEntry]:
        """All recorded publications, oldest first."""
        try:
            with sqlite3.connect(self.db_path) as conn:
                conn.row_factory = sqlite3.Row
                rows = conn.execute(
                    "SELECT * FROM published ORDER BY published_at, identity"
                ).fetchall()
        except sqlite3.Error as e:
            raise LedgerError(f"Ledger read failed: {e}") from e

        return [
            LedgerEntry(
                identity=row["identity"],
                title=row["title"],
                published_at=datetime.fromisoformat(row["published_at"]),
                destination_ref=row["destination_ref"],
            )
            for row in rows
        ]

    def __len__(self) -> int:
        try:
            with sqlite3.connect(self.db_path) as conn:
                return conn.execute("SELECT COUNT(*) FROM published").fetchone()[0]
        except sqlite3.Error as e:
            raise LedgerError(f"Ledger read failed: {e}") from e

    def export_log(self, log_path: str) -> int:
        """Write the ledger as a line-oriented log.

        Each line reads ``timestamp | identity | destination_ref | title``.

        Returns:
            Number of lines written
        """
        entries = self.entries()
        lines = [
            f"{e.published_at.isoformat()} | {e.identity} | {e.destination_ref} | {e.title}"
            for e in entries
        ]
        path = Path(log_path)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text("\n".join(lines) + ("\n" if lines else ""), encoding="utf-8")
        logger.info(f"Exported {len(lines)} ledger entries to {path}")
        return len(lines)

    def import_history(self, history_path: str) -> int:
        """Import a legacy ``YYYY-MM-DD HH:MM:SS - title`` history file.

        Titles already present in the ledger are skipped.

        Returns:
            Number of newly recorded identities
        """
        try:
            content = Path(history_path).read_text(encoding="utf-8")
        except OSError as e:
            raise LedgerError(f"Cannot read history file {history_path}: {e}") from e

        imported = 0
        for line in content.splitlines():
            match = LEGACY_HISTORY_LINE.match(line.strip())
            if not match:
                continue

            title = match.group(2).strip()
            identity = identity_of(title)
            if self.has_published(identity):
                continue

            published_at = datetime.strptime(match.group(1), "%Y-%m-%d %H:%M:%S").replace(
                tzinfo=timezone.utc
            )
            try:
                self.record(identity, LEGACY_DESTINATION_REF, published_at, title=title)
            except DuplicatePublishError:
                continue
            imported += 1

        logger.info(f"Imported {imported} published titles from {history_path}")
        return imported
