"""Usage ledger: append-only log of correction attempts, backed by SQLite."""
from __future__ import annotations

import csv
import math
import sqlite3
import threading
import time
from contextlib import contextmanager
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, Iterator, List, Optional

from .exceptions import ValidationError
from .logger import get_logger
from .models import ProviderId, model_by_id

logger = get_logger(__name__)

# Entries kept; oldest are evicted first.
MAX_ENTRIES = 1000
DAY_MS = 24 * 60 * 60 * 1000


def now_ms() -> int:
    return int(time.time() * 1000)


def estimate_tokens(text: str) -> int:
    """Rough token estimate (about four characters per token).

    Only used for local cost display, never for request sizing.
    """
    return math.ceil(len(text) / 4)


@dataclass(frozen=True)
class UsageEntry:
    """One correction attempt, successful or not."""

    timestamp: int
    provider: ProviderId
    model: str
    tokens_estimated: int
    duration_ms: int
    success: bool
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["provider"] = self.provider.value
        return data


@dataclass
class ProviderUsage:
    requests: int = 0
    successful: int = 0
    failed: int = 0
    duration_ms: int = 0
    tokens: int = 0
    cost_usd: float = 0.0


@dataclass
class UsageStats:
    """Aggregates over a set of entries. Never stored."""

    total_requests: int = 0
    successful_requests: int = 0
    failed_requests: int = 0
    total_duration_ms: int = 0
    total_tokens: int = 0
    estimated_cost_usd: float = 0.0
    by_provider: Dict[ProviderId, ProviderUsage] = field(
        default_factory=lambda: {provider: ProviderUsage() for provider in ProviderId}
    )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total_requests": self.total_requests,
            "successful_requests": self.successful_requests,
            "failed_requests": self.failed_requests,
            "total_duration_ms": self.total_duration_ms,
            "total_tokens": self.total_tokens,
            "estimated_cost_usd": self.estimated_cost_usd,
            "by_provider": {
                provider.value: asdict(usage) for provider, usage in self.by_provider.items()
            },
        }


def aggregate(entries: Iterable[UsageEntry]) -> UsageStats:
    """Compute :class:`UsageStats` in a single pass.

    Cost assumes an even input/output token split, so it is an estimate
    rather than billing. Models without published prices add no cost.
    """
    stats = UsageStats()
    for entry in entries:
        bucket = stats.by_provider[entry.provider]
        stats.total_requests += 1
        bucket.requests += 1
        if entry.success:
            stats.successful_requests += 1
            bucket.successful += 1
        else:
            stats.failed_requests += 1
            bucket.failed += 1

        stats.total_duration_ms += entry.duration_ms
        bucket.duration_ms += entry.duration_ms
        stats.total_tokens += entry.tokens_estimated
        bucket.tokens += entry.tokens_estimated

        model = model_by_id(entry.model)
        if model and model.cost_per_1k_tokens and entry.tokens_estimated:
            cost = model.cost_per_1k_tokens.average * entry.tokens_estimated / 1000
            stats.estimated_cost_usd += cost
            bucket.cost_usd += cost
    return stats


class UsageLedger:
    """Persists usage entries with a FIFO cap and computes statistics."""

    def __init__(
        self,
        db_path: Optional[Path] = None,
        max_entries: int = MAX_ENTRIES,
        clock: Callable[[], int] = now_ms,
    ):
        """Initialize the ledger database."""
        if db_path is None:
            db_dir = Path.home() / ".correctify"
            db_dir.mkdir(exist_ok=True)
            db_path = db_dir / "usage_history.db"
        self.db_file = Path(db_path)
        self.max_entries = max_entries
        self._clock = clock
        self._lock = threading.Lock()
        self._init_database()

    @contextmanager
    def _connect(self) -> Iterator[sqlite3.Connection]:
        """Open a connection that commits on success and always closes."""
        conn = sqlite3.connect(self.db_file, timeout=5)
        try:
            with conn:
                yield conn
        finally:
            conn.close()

    def _init_database(self) -> None:
        """Initialize database schema."""
        with self._connect() as conn:
            cursor = conn.cursor()
            cursor.execute("PRAGMA journal_mode=WAL")
            cursor.execute("PRAGMA synchronous=NORMAL")
            cursor.execute("""
                CREATE TABLE IF NOT EXISTS usage_entries (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    timestamp INTEGER NOT NULL,
                    provider TEXT NOT NULL,
                    model TEXT NOT NULL,
                    tokens_estimated INTEGER NOT NULL,
                    duration_ms INTEGER NOT NULL,
                    success INTEGER NOT NULL,
                    error TEXT
                )
            """)
            cursor.execute("""
                CREATE INDEX IF NOT EXISTS idx_usage_timestamp
                ON usage_entries(timestamp)
            """)
        logger.debug(f"Usage database initialized: {self.db_file}")

    def record(self, entry: UsageEntry) -> bool:
        """Append ``entry`` and evict the oldest rows beyond the cap.

        Returns:
            False if the write failed (the failure is logged, not raised)
        """
        try:
            with self._lock, self._connect() as conn:
                conn.execute("""
                    INSERT INTO usage_entries
                    (timestamp, provider, model, tokens_estimated, duration_ms, success, error)
                    VALUES (?, ?, ?, ?, ?, ?, ?)
                """, (entry.timestamp, entry.provider.value, entry.model, entry.tokens_estimated,
                      entry.duration_ms, int(entry.success), entry.error))
                conn.execute("""
                    DELETE FROM usage_entries
                    WHERE id NOT IN (
                        SELECT id FROM usage_entries ORDER BY id DESC LIMIT ?
                    )
                """, (self.max_entries,))
            return True
        except sqlite3.Error as e:
            logger.error(f"Failed to record usage entry: {e}")
            return False

    def entries(self, limit: Optional[int] = None) -> List[UsageEntry]:
        """Return entries oldest first; ``limit`` keeps the most recent ones."""
        columns = "timestamp, provider, model, tokens_estimated, duration_ms, success, error"
        params: tuple = ()
        if limit is None:
            query = f"SELECT {columns} FROM usage_entries ORDER BY id"
        else:
            query = f"""
                SELECT {columns}
                FROM (SELECT * FROM usage_entries ORDER BY id DESC LIMIT ?)
                ORDER BY id
            """
            params = (limit,)

        with self._connect() as conn:
            rows = conn.execute(query, params).fetchall()
        return [self._row_to_entry(row) for row in rows]

    @staticmethod
    def _row_to_entry(row: tuple) -> UsageEntry:
        return UsageEntry(
            timestamp=row[0],
            provider=ProviderId(row[1]),
            model=row[2],
            tokens_estimated=row[3],
            duration_ms=row[4],
            success=bool(row[5]),
            error=row[6],
        )

    def stats(self) -> UsageStats:
        """Statistics over the whole retained history."""
        return aggregate(self.entries())

    def stats_for_window(self, days: int) -> UsageStats:
        """Statistics over entries from the last ``days`` days.

        A zero-day window is empty.

        Raises:
            ValidationError: If ``days`` is negative
        """
        if days < 0:
            raise ValidationError(f"Window must be zero or more days (got {days})")
        if days == 0:
            return UsageStats()
        cutoff = self._clock() - days * DAY_MS
        return aggregate(entry for entry in self.entries() if entry.timestamp >= cutoff)

    def clear(self) -> bool:
        """Delete every entry. Irreversible; confirm with the user first."""
        try:
            with self._lock, self._connect() as conn:
                conn.execute("DELETE FROM usage_entries")
            logger.info("Usage history cleared")
            return True
        except sqlite3.Error as e:
            logger.error(f"Failed to clear usage history: {e}")
            return False

    def export_to_csv(self, output_file: Path) -> bool:
        """Export history to CSV file."""
        try:
            with open(output_file, 'w', newline='', encoding='utf-8') as f:
                writer = csv.writer(f)
                writer.writerow([
                    'Timestamp', 'Provider', 'Model', 'Tokens (estimated)',
                    'Duration (ms)', 'Success', 'Error'
                ])
                for entry in self.entries():
                    writer.writerow([
                        entry.timestamp, entry.provider.value, entry.model, entry.tokens_estimated,
                        entry.duration_ms, entry.success, entry.error or "",
                    ])
            logger.info(f"Exported usage history to {output_file}")
            return True
        except (OSError, sqlite3.Error) as e:
            logger.error(f"Failed to export usage history: {e}")
            return False
