"""
grb SQLite Store -- the single file every grb process shares.

One WAL-mode SQLite database holds the ``snippets`` bucket (integer id ->
encoded record) and a ``buckets`` table whose per-bucket counter feeds
identifier allocation. SQLite supplies the whole concurrency contract:

* write transactions start with ``BEGIN IMMEDIATE``, taking the single
  RESERVED lock, so at most one writer runs at a time across processes;
* read views start a deferred transaction and read immediately, pinning a
  WAL snapshot that later commits cannot change.

Usage:
    with SnippetStore() as store:
        with store.write_transaction() as tx:
            snippet_id = tx.next_id()
            tx.put(Snippet(snippet_id, "hello"))
        with store.read_view() as view:
            snippets = list(view.scan())
"""

import logging
import os
import sqlite3
import stat
import threading
import time as _time
from contextlib import contextmanager
from pathlib import Path
from typing import Callable, Iterator, Optional, TypeVar

from grb import codec
from grb.config import default_db_path
from grb.errors import StorageUnavailable, StoreIOError
from grb.types import Snippet

logger = logging.getLogger("grb.sqlite_store")

T = TypeVar("T")

SCHEMA_VERSION = 1
SNIPPET_BUCKET = "snippets"

# ---------------------------------------------------------------------------
# SQLite retry -- handles multi-process write contention on the shared file.
# busy_timeout covers most waits; under heavy contention (daemon plus several
# commands) it can still expire, so BEGIN/COMMIT are retried with backoff.
# ---------------------------------------------------------------------------
_DB_RETRY_ATTEMPTS = 3
_DB_RETRY_BASE_DELAY = 0.5  # seconds
_BUSY_TIMEOUT_MS = 30000
_WAL_CHECKPOINT_INTERVAL = 20


def _is_locked_error(e: sqlite3.OperationalError) -> bool:
    msg = str(e)
    return "database is locked" in msg or "database is busy" in msg


def _private_file(path: Path) -> None:
    """Create the database file owner-only (0o600), or tighten an existing one."""
    if not path.exists():
        fd = os.open(str(path), os.O_CREAT | os.O_WRONLY, 0o600)
        os.close(fd)
    elif path.stat().st_mode & (stat.S_IRWXG | stat.S_IRWXO):
        os.chmod(str(path), 0o600)


def _retry_on_locked(fn, *args, **kwargs):
    """Call fn with retry on 'database is locked' OperationalError."""
    for attempt in range(_DB_RETRY_ATTEMPTS):
        try:
            return fn(*args, **kwargs)
        except sqlite3.OperationalError as e:
            if _is_locked_error(e) and attempt < _DB_RETRY_ATTEMPTS - 1:
                delay = _DB_RETRY_BASE_DELAY * (2 ** attempt)
                logger.warning("database is locked (attempt %d/%d), retrying in %.1fs",
                               attempt + 1, _DB_RETRY_ATTEMPTS, delay)
                _time.sleep(delay)
            else:
                raise


class ReadView:
    """Read access to one consistent snapshot of the store."""

    def __init__(self, conn: sqlite3.Connection):
        self._conn = conn

    def scan(self) -> Iterator[Snippet]:
        """Yield every snippet in key (numeric id) order."""
        rows = self._conn.execute(
            "SELECT id, value FROM snippets ORDER BY id"
        ).fetchall()
        for snippet_id, value in rows:
            yield codec.decode(value, snippet_id)

    def get(self, snippet_id: int) -> Optional[Snippet]:
        row = self._conn.execute(
            "SELECT value FROM snippets WHERE id = ?", (snippet_id,)
        ).fetchone()
        if row is None:
            return None
        return codec.decode(row[0], snippet_id)

    def count(self) -> int:
        return self._conn.execute("SELECT COUNT(*) FROM snippets").fetchone()[0]


class SequenceGenerator:
    """Strictly increasing ids from the bucket's persisted counter.

    Only valid inside a write transaction: the increment commits or rolls
    back together with the records that use it.
    """

    def __init__(self, conn: sqlite3.Connection, bucket: str = SNIPPET_BUCKET):
        self._conn = conn
        self._bucket = bucket

    def next(self) -> int:
        cur = self._conn.execute(
            "UPDATE buckets SET sequence = sequence + 1 WHERE name = ?",
            (self._bucket,),
        )
        if cur.rowcount == 0:
            self._conn.execute(
                "INSERT INTO buckets (name, sequence) VALUES (?, 1)", (self._bucket,)
            )
        return self._conn.execute(
            "SELECT sequence FROM buckets WHERE name = ?", (self._bucket,)
        ).fetchone()[0]


class WriteTransaction(ReadView):
    """Read-write access; every change commits together or not at all."""

    def __init__(self, conn: sqlite3.Connection):
        super().__init__(conn)
        self._sequence = SequenceGenerator(conn)

    def next_id(self) -> int:
        return self._sequence.next()

    def put(self, snippet: Snippet) -> None:
        self._conn.execute(
            "INSERT OR REPLACE INTO snippets (id, value) VALUES (?, ?)",
            (snippet.id, codec.encode(snippet)),
        )

    def delete(self, snippet_id: int) -> bool:
        cur = self._conn.execute("DELETE FROM snippets WHERE id = ?", (snippet_id,))
        return cur.rowcount > 0


class SnippetStore:
    """Owner of the open store file.

    Construct once per process (or use as a context manager) and close it
    when done; views and transactions borrow its connection.
    """

    def __init__(self, db_path=None):
        self.db_path = Path(db_path) if db_path else default_db_path()
        self._lock = threading.RLock()
        self._closed = False
        self._wal_write_count = 0
        try:
            self.db_path.parent.mkdir(parents=True, exist_ok=True, mode=0o700)
            self._conn = self._connect()
        except (OSError, sqlite3.Error) as e:
            self._closed = True
            raise StorageUnavailable(f"Cannot open store at {self.db_path}: {e}") from e
        try:
            self._init_schema()
        except (sqlite3.Error, StoreIOError) as e:
            self._closed = True
            self._conn.close()
            raise StorageUnavailable(f"Cannot initialize store at {self.db_path}: {e}") from e
        logger.debug("Opened store %s", self.db_path)

    def _connect(self) -> sqlite3.Connection:
        """Create the SQLite connection in autocommit mode with WAL enabled."""
        _private_file(self.db_path)
        conn = sqlite3.connect(
            str(self.db_path),
            timeout=_BUSY_TIMEOUT_MS / 1000,
            check_same_thread=False,
            isolation_level=None,
        )
        try:
            conn.execute(f"PRAGMA busy_timeout={_BUSY_TIMEOUT_MS}")
            mode = _retry_on_locked(conn.execute, "PRAGMA journal_mode=WAL").fetchone()
            if mode and str(mode[0]).lower() != "wal":
                logger.warning("WAL unavailable for %s (journal_mode=%s)", self.db_path, mode[0])
            conn.execute("PRAGMA synchronous=NORMAL")
        except sqlite3.Error:
            conn.close()
            raise
        return conn

    def _init_schema(self) -> None:
        """Create tables if they don't exist."""
        with self.write_transaction() as tx:
            c = tx._conn
            c.execute("""
                CREATE TABLE IF NOT EXISTS schema_version (
                    version INTEGER NOT NULL
                )
            """)
            c.execute("""
                CREATE TABLE IF NOT EXISTS buckets (
                    name TEXT PRIMARY KEY,
                    sequence INTEGER NOT NULL DEFAULT 0
                )
            """)
            c.execute("""
                CREATE TABLE IF NOT EXISTS snippets (
                    id INTEGER PRIMARY KEY,
                    value BLOB NOT NULL
                )
            """)
            row = c.execute("SELECT version FROM schema_version LIMIT 1").fetchone()
            if row is None:
                c.execute("INSERT INTO schema_version (version) VALUES (?)", (SCHEMA_VERSION,))
            elif row[0] > SCHEMA_VERSION:
                logger.warning("Store schema v%d is newer than this grb (v%d)", row[0], SCHEMA_VERSION)
            c.execute(
                "INSERT OR IGNORE INTO buckets (name, sequence) VALUES (?, 0)",
                (SNIPPET_BUCKET,),
            )

    # ------------------------------------------------------------------
    # Transactions
    # ------------------------------------------------------------------

    def _check_open(self) -> None:
        if self._closed:
            raise StoreIOError(f"Store {self.db_path} is closed")
        if self._conn.in_transaction:
            raise RuntimeError("grb store transactions cannot be nested")

    @contextmanager
    def read_view(self) -> Iterator[ReadView]:
        """Consistent read-only snapshot as of the start of the view."""
        with self._lock:
            self._check_open()
            try:
                self._conn.execute("BEGIN DEFERRED")
                # First read pins the WAL snapshot
                self._conn.execute("SELECT sequence FROM buckets LIMIT 1").fetchone()
            except sqlite3.Error as e:
                self._rollback()
                raise StoreIOError(f"Cannot start read view: {e}") from e
            try:
                yield ReadView(self._conn)
            except sqlite3.Error as e:
                raise StoreIOError(f"Read failed: {e}") from e
            finally:
                self._rollback()

    @contextmanager
    def write_transaction(self) -> Iterator[WriteTransaction]:
        """Exclusive, atomic read-write transaction.

        Blocks until no other process holds the write lock. Any exception
        raised inside the block rolls everything back and propagates.
        """
        with self._lock:
            self._check_open()
            try:
                _retry_on_locked(self._conn.execute, "BEGIN IMMEDIATE")
            except sqlite3.Error as e:
                raise StoreIOError(f"Cannot start write transaction: {e}") from e
            try:
                yield WriteTransaction(self._conn)
            except sqlite3.Error as e:
                self._rollback()
                raise StoreIOError(f"Write failed: {e}") from e
            except BaseException:
                self._rollback()
                raise
            try:
                _retry_on_locked(self._conn.execute, "COMMIT")
            except sqlite3.Error as e:
                self._rollback()
                raise StoreIOError(f"Commit failed: {e}") from e
            self._maybe_wal_checkpoint()

    def view(self, fn: Callable[[ReadView], T]) -> T:
        """Run fn inside a read view and return its result."""
        with self.read_view() as view:
            return fn(view)

    def update(self, fn: Callable[[WriteTransaction], T]) -> T:
        """Run fn inside a write transaction and return its result."""
        with self.write_transaction() as tx:
            return fn(tx)

    def _rollback(self) -> None:
        if not self._conn.in_transaction:
            return
        try:
            self._conn.execute("ROLLBACK")
        except sqlite3.Error as e:
            logger.debug("Rollback failed: %s", e)

    def _maybe_wal_checkpoint(self) -> None:
        """Run a PASSIVE WAL checkpoint every N writes.

        The daemon keeps a connection open indefinitely, which can starve
        automatic checkpoints. PASSIVE never blocks readers or writers.
        """
        self._wal_write_count += 1
        if self._wal_write_count < _WAL_CHECKPOINT_INTERVAL:
            return
        self._wal_write_count = 0
        try:
            result = self._conn.execute("PRAGMA wal_checkpoint(PASSIVE)").fetchone()
            if result and result[1] > 0:
                logger.debug("WAL checkpoint: %d/%d pages checkpointed (%d busy)",
                             result[2], result[1], result[0])
        except sqlite3.Error as e:
            logger.debug("WAL checkpoint failed (non-fatal): %s", e)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    @property
    def closed(self) -> bool:
        return self._closed

    def size_bytes(self) -> int:
        try:
            return os.path.getsize(self.db_path)
        except OSError:
            return 0

    def close(self) -> None:
        """Close the database connection. Safe to call more than once."""
        with self._lock:
            if self._closed:
                return
            self._closed = True
            self._rollback()
            try:
                # Flush WAL before closing -- helps other processes checkpoint
                self._conn.execute("PRAGMA wal_checkpoint(PASSIVE)")
            except sqlite3.Error:
                pass
            try:
                self._conn.close()
            except sqlite3.Error as e:
                logger.debug("Database close failed: %s", e)

    def __enter__(self) -> "SnippetStore":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def __del__(self):
        try:
            self.close()
        except Exception:
            pass  # Silence errors during GC -- no logger guarantee
