"""
Search history persistence layer.

Every completed analysis run leaves one summary record (ticker, exchange,
date range, beta and the peer symbols) so recent searches can be listed
outside the core analysis.
"""

import json
import sqlite3
import threading
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, Dict, Iterator, List, Optional, Union

import structlog

from beta_analyzer.exceptions import HistoryStorageError

logger = structlog.get_logger(__name__)

RECENT_SEARCH_LIMIT = 10


@dataclass
class SearchRecord:
    """
    Summary of one completed analysis run.

    Attributes:
        ticker: Canonical symbol analyzed (e.g. "TCS.NS")
        exchange: "NSE" or "BSE"
        start_date: First day of the requested range
        end_date: Last day of the requested range
        beta: Target beta against the exchange benchmark
        peers: Peer symbols in ranked order
        id: Database ID (set after save)
        created_at: Record creation timestamp
    """

    ticker: str
    exchange: str
    start_date: date
    end_date: date
    beta: Optional[float] = None
    peers: List[str] = field(default_factory=list)
    id: Optional[int] = None
    created_at: Optional[datetime] = None

    def __post_init__(self):
        self.ticker = self.ticker.strip().upper()
        self.exchange = self.exchange.strip().upper()
        self.start_date = _as_date(self.start_date)
        self.end_date = _as_date(self.end_date)
        if self.created_at is None:
            self.created_at = datetime.now()

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "id": self.id,
            "ticker": self.ticker,
            "exchange": self.exchange,
            "startDate": self.start_date.isoformat(),
            "endDate": self.end_date.isoformat(),
            "beta": self.beta,
            "peers": list(self.peers),
            "createdAt": self.created_at.isoformat() if self.created_at else None,
        }


def _as_date(value: Union[date, datetime, str]) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return date.fromisoformat(str(value)[:10])


class SearchHistoryStorage:
    """
    Persistent storage for search history using SQLite.

    File databases get a fresh connection per call, closed when the call
    ends. In-memory databases keep one connection shared across threads so
    writes can run off the event loop.

    Example:
        >>> storage = SearchHistoryStorage("data/search_history.db")
        >>> search_id = storage.save_search(record)
        >>> recent = storage.get_recent_searches(limit=10)
    """

    def __init__(self, db_path: str = "search_history.db"):
        """
        Initialize search history storage.

        Args:
            db_path: Path to SQLite database file
        """
        self.db_path = db_path
        self._connection = None
        self._lock = threading.Lock()

        # For in-memory databases, keep persistent connection
        if db_path == ":memory:":
            self._connection = sqlite3.connect(db_path, check_same_thread=False)

        self._init_database()
        logger.info("search_history_storage_initialized", db_path=self.db_path)

    @contextmanager
    def _connect(self) -> Iterator[sqlite3.Connection]:
        """Yield a connection; per-call connections are closed afterwards."""
        if self._connection:
            with self._lock:
                yield self._connection
            return

        conn = sqlite3.connect(self.db_path)
        try:
            yield conn
        finally:
            conn.close()

    def _init_database(self) -> None:
        try:
            with self._connect() as conn, conn:
                cursor = conn.cursor()
                cursor.execute("""
                    CREATE TABLE IF NOT EXISTS searches (
                        id INTEGER PRIMARY KEY AUTOINCREMENT,
                        ticker TEXT NOT NULL,
                        exchange TEXT NOT NULL,
                        start_date TEXT NOT NULL,
                        end_date TEXT NOT NULL,
                        beta REAL,
                        peers TEXT,
                        created_at TEXT NOT NULL
                    )
                """)
                cursor.execute("""
                    CREATE INDEX IF NOT EXISTS idx_searches_created_at
                    ON searches(created_at)
                """)
            logger.debug("search_history_schema_initialized")

        except sqlite3.Error as e:
            raise HistoryStorageError(
                "Failed to initialize search history database",
                details={"db_path": self.db_path},
                cause=e
            )

    def save_search(self, record: SearchRecord) -> int:
        """
        Save a search record.

        Returns:
            The database ID of the saved record

        Raises:
            HistoryStorageError: If save fails
        """
        try:
            with self._connect() as conn, conn:
                cursor = conn.cursor()
                cursor.execute("""
                    INSERT INTO searches (
                        ticker, exchange, start_date, end_date, beta, peers, created_at
                    ) VALUES (?, ?, ?, ?, ?, ?, ?)
                """, (
                    record.ticker,
                    record.exchange,
                    record.start_date.isoformat(),
                    record.end_date.isoformat(),
                    record.beta,
                    json.dumps(list(record.peers)),
                    record.created_at.isoformat(),
                ))
                search_id = cursor.lastrowid

            record.id = search_id
            logger.info(
                "search_saved",
                id=search_id,
                ticker=record.ticker,
                peers=len(record.peers),
            )
            return search_id

        except sqlite3.Error as e:
            raise HistoryStorageError(
                "Failed to save search",
                details={"ticker": record.ticker},
                cause=e
            )

    def _row_to_record(self, row: tuple) -> SearchRecord:
        """Convert a database row to a SearchRecord."""
        return SearchRecord(
            id=row[0],
            ticker=row[1],
            exchange=row[2],
            start_date=date.fromisoformat(row[3]),
            end_date=date.fromisoformat(row[4]),
            beta=row[5],
            peers=json.loads(row[6]) if row[6] else [],
            created_at=datetime.fromisoformat(row[7]),
        )

    def get_search_by_id(self, search_id: int) -> Optional[SearchRecord]:
        """Get a single search by its ID, or None."""
        try:
            with self._connect() as conn:
                cursor = conn.cursor()
                cursor.execute("""
                    SELECT id, ticker, exchange, start_date, end_date, beta, peers, created_at
                    FROM searches
                    WHERE id = ?
                """, (search_id,))
                row = cursor.fetchone()

            if row:
                return self._row_to_record(row)
            return None

        except sqlite3.Error as e:
            raise HistoryStorageError(
                "Failed to get search by ID",
                details={"search_id": search_id},
                cause=e
            )

    def get_recent_searches(self, limit: int = RECENT_SEARCH_LIMIT) -> List[SearchRecord]:
        """
        Get the most recent searches.

        Args:
            limit: Maximum number of records to return

        Returns:
            List of SearchRecords, newest first
        """
        try:
            with self._connect() as conn:
                cursor = conn.cursor()
                cursor.execute("""
                    SELECT id, ticker, exchange, start_date, end_date, beta, peers, created_at
                    FROM searches
                    ORDER BY created_at DESC, id DESC
                    LIMIT ?
                """, (limit,))
                rows = cursor.fetchall()

            return [self._row_to_record(row) for row in rows]

        except sqlite3.Error as e:
            raise HistoryStorageError(
                "Failed to get recent searches",
                details={"limit": limit},
                cause=e
            )

    def count(self) -> int:
        """Number of stored searches."""
        try:
            with self._connect() as conn:
                cursor = conn.cursor()
                cursor.execute("SELECT COUNT(*) FROM searches")
                return cursor.fetchone()[0]

        except sqlite3.Error as e:
            raise HistoryStorageError("Failed to count searches", cause=e)

    def close(self) -> None:
        """Close the persistent connection, if any."""
        if self._connection:
            self._connection.close()
            self._connection = None
