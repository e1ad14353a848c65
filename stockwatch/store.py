"""State store: previously seen stock history events.

One contract, two backends, picked by open_store() from STORE_URL:
  - JsonFileStore: a JSON array on local disk (oldest first), written with
    file_lock.locked_json (exclusive lock, tmp + fsync + os.replace)
  - SqlStore: a SQLAlchemy table, appended and pruned in one transaction

Either way, an append that returns has been made durable, and an append that
raises leaves the previous contents untouched.

With a retention window of N, only the N most recently inserted records are
kept. An event that has fallen out of the window looks new again if the page
still shows it, so N should be at least the number of rows the history page
displays.

Schema (JSON backend, oldest first):
    [
        {
            "timestamp": "Oct 18, 2026 14:02",
            "item": "Oat Milk 1L",
            "reason": "Receive items",
            "quantity": "+12",
            "location": "Main Store"
        }
    ]
"""

import logging
from abc import ABC, abstractmethod
from pathlib import Path
from urllib.parse import urlparse

from sqlalchemy import Column, DateTime, Index, Integer, String, create_engine, delete, select
from sqlalchemy.engine import make_url
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import declarative_base, sessionmaker
from sqlalchemy.sql import func

from .errors import StoreError
from .file_lock import locked_json, read_json
from .records import InventoryChangeRecord

log = logging.getLogger(__name__)

Base = declarative_base()


class SeenChange(Base):
    __tablename__ = "seen_changes"

    # Autoincrement id doubles as insertion order for pruning
    id = Column(Integer, primary_key=True, autoincrement=True)
    timestamp = Column(String(64), nullable=False)
    item = Column(String(255), nullable=False)
    reason = Column(String(255))
    quantity = Column(String(64), nullable=False, default="")
    location = Column(String(255), nullable=False, default="")
    seen_at = Column(DateTime, server_default=func.now())

    __table_args__ = (Index("ix_seen_changes_identity", "timestamp", "item"),)

    def to_record(self) -> InventoryChangeRecord:
        return InventoryChangeRecord(
            timestamp=self.timestamp,
            item=self.item,
            reason=self.reason,
            quantity=self.quantity,
            location=self.location,
        )


class StateStore(ABC):
    """Durable, append-only record of events already seen.

    Usable as a context manager; close() runs on every exit path.
    """

    def __init__(self, window: int | None = None):
        if window is not None and window <= 0:
            raise ValueError(f"window must be positive, got {window}")
        self.window = window

    @abstractmethod
    def ensure_schema(self) -> None:
        """Create whatever the backend needs before the first read or write."""

    @abstractmethod
    def load_recent(self, limit: int | None = None) -> list[InventoryChangeRecord]:
        """Return the `limit` most recently inserted records (all if None), oldest first."""

    @abstractmethod
    def append(self, records: list[InventoryChangeRecord]) -> None:
        """Durably add records in the given order, then prune to the window."""

    def close(self) -> None:
        pass

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()
        return False


def _decode(data, source: str) -> list[InventoryChangeRecord]:
    if not isinstance(data, list):
        raise StoreError(f"{source} does not hold a list of records")
    try:
        return [InventoryChangeRecord.from_dict(entry) for entry in data]
    except (KeyError, TypeError, AttributeError) as e:
        raise StoreError(f"{source} holds a malformed record: {e!r}") from e


class JsonFileStore(StateStore):
    def __init__(self, path, window: int | None = None):
        super().__init__(window)
        self.path = Path(path)

    def ensure_schema(self) -> None:
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise StoreError(f"Cannot create {self.path.parent}: {e}") from e

    def load_recent(self, limit: int | None = None) -> list[InventoryChangeRecord]:
        try:
            data = read_json(self.path, default_factory=list)
        except (OSError, ValueError) as e:
            raise StoreError(f"Cannot read {self.path}: {e}") from e
        records = _decode(data, self.path.name)
        if limit is not None:
            records = records[-limit:] if limit > 0 else []
        return records

    def append(self, records: list[InventoryChangeRecord]) -> None:
        if not records:
            return
        try:
            with locked_json(self.path, default_factory=list) as data:
                _decode(data, self.path.name)
                data.extend(r.to_dict() for r in records)
                if self.window is not None and len(data) > self.window:
                    dropped = len(data) - self.window
                    del data[:-self.window]
                    log.info(f"Pruned {dropped} oldest record(s) from {self.path.name}")
        except (OSError, ValueError) as e:
            raise StoreError(f"Cannot write {self.path}: {e}") from e
        log.info(f"Stored {len(records)} record(s) in {self.path.name}")


class SqlStore(StateStore):
    def __init__(self, url: str, window: int | None = None):
        super().__init__(window)
        try:
            self.engine = create_engine(url, echo=False)
        except (SQLAlchemyError, ImportError, ValueError) as e:
            raise StoreError(f"Cannot open database: {e}") from e
        self.Session = sessionmaker(autoflush=False, bind=self.engine)

    def ensure_schema(self) -> None:
        database = _sqlite_file(self.engine.url)
        if database is not None:
            try:
                Path(database).parent.mkdir(parents=True, exist_ok=True)
            except OSError as e:
                raise StoreError(f"Cannot create {Path(database).parent}: {e}") from e
        try:
            Base.metadata.create_all(bind=self.engine)
        except SQLAlchemyError as e:
            raise StoreError(f"Cannot create schema: {e}") from e

    def load_recent(self, limit: int | None = None) -> list[InventoryChangeRecord]:
        if limit is not None and limit <= 0:
            return []
        stmt = select(SeenChange).order_by(SeenChange.id.desc())
        if limit is not None:
            stmt = stmt.limit(limit)
        session = self.Session()
        try:
            rows = session.execute(stmt).scalars().all()
            return [row.to_record() for row in reversed(rows)]
        except SQLAlchemyError as e:
            raise StoreError(f"Cannot read seen changes: {e}") from e
        finally:
            session.close()

    def append(self, records: list[InventoryChangeRecord]) -> None:
        if not records:
            return
        session = self.Session()
        try:
            session.add_all(SeenChange(**r.to_dict()) for r in records)
            session.flush()
            if self.window is not None:
                # id of the newest row that falls outside the window
                cutoff = session.execute(
                    select(SeenChange.id)
                    .order_by(SeenChange.id.desc())
                    .offset(self.window)
                    .limit(1)
                ).scalar_one_or_none()
                if cutoff is not None:
                    result = session.execute(delete(SeenChange).where(SeenChange.id <= cutoff))
                    log.info(f"Pruned {result.rowcount} oldest record(s) from seen_changes")
            session.commit()
        except SQLAlchemyError as e:
            session.rollback()
            raise StoreError(f"Cannot store seen changes: {e}") from e
        finally:
            session.close()
        log.info(f"Stored {len(records)} record(s) in seen_changes")

    def close(self) -> None:
        self.engine.dispose()


def _sqlite_file(url) -> str | None:
    """Database path of a file-backed SQLite URL, else None."""
    if url.get_backend_name() != "sqlite":
        return None
    database = url.database
    if not database or database == ":memory:" or database.startswith("file:"):
        return None
    return database


def _anchor(path: Path, root) -> Path:
    return path if root is None or path.is_absolute() else Path(root) / path


def _database_url(descriptor: str, root=None) -> str:
    scheme = urlparse(descriptor).scheme
    try:
        url = make_url(descriptor)
        # Loads the dialect and its driver without connecting
        url.get_dialect().import_dbapi()
    except (SQLAlchemyError, ImportError, ValueError) as e:
        raise StoreError(f"Unsupported database URL ({scheme}): {e}") from e
    database = _sqlite_file(url)
    if database is None or root is None or Path(database).is_absolute():
        return descriptor
    return url.set(database=str(_anchor(Path(database), root))).render_as_string(hide_password=False)


def resolve_descriptor(descriptor: str, root=None) -> str:
    """Validate a store descriptor and anchor relative file paths at root.

    Returns a database URL or a JSON file path, ready for open_store().
    Raises StoreError when SQLAlchemy cannot load the URL's dialect or driver.
    """
    if "://" in descriptor:
        parsed = urlparse(descriptor)
        if parsed.scheme != "file":
            return _database_url(descriptor, root)
        descriptor = parsed.path
    return str(_anchor(Path(descriptor), root))


def open_store(descriptor: str, window: int | None = None) -> StateStore:
    """Pick a backend from a store descriptor.

    A URL with a scheme other than file:// goes to SQLAlchemy
    (sqlite:///data/seen.db, postgresql://...); anything else is a JSON path.
    """
    descriptor = resolve_descriptor(descriptor)
    if "://" in descriptor:
        log.info(f"Using SQL store ({urlparse(descriptor).scheme})")
        return SqlStore(descriptor, window)
    log.info(f"Using JSON file store ({Path(descriptor).name})")
    return JsonFileStore(descriptor, window)
