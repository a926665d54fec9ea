"""Append-only request log store on a single SQL table.

The table is keyed by an auto-increment id with secondary indexes on
``timestamp`` and ``ip_address``. Ids are never reused: SQLite tables are
created with AUTOINCREMENT and ``clear`` deletes rows instead of truncating.
"""

import logging
import threading
from contextlib import contextmanager
from datetime import datetime, timezone

from sqlalchemy import (
    Column,
    DateTime,
    Index,
    Integer,
    MetaData,
    String,
    Table,
    Text,
    create_engine,
    delete,
    event,
    func,
    insert,
    or_,
    select,
)
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.pool import StaticPool

from request_monitor.exceptions import StorageError
from request_monitor.models import LogFilter, LogRecord, as_utc, utc_now

logger = logging.getLogger(__name__)

SORTABLE_COLUMNS = (
    "timestamp",
    "ip_address",
    "url",
    "status_code",
    "user_agent",
    "id",
    "method",
    "browser",
    "device_type",
    "referer",
)
SEARCH_COLUMNS = ("url", "ip_address", "user_agent", "referer", "browser", "method")
SORT_DIRECTIONS = ("ASC", "DESC")


def build_table(metadata: MetaData, name: str) -> Table:
    return Table(
        name,
        metadata,
        Column("id", Integer, primary_key=True, autoincrement=True),
        Column("timestamp", DateTime, nullable=False),
        Column("method", String(10), nullable=False),
        Column("url", Text, nullable=False),
        Column("ip_address", String(45), nullable=False),
        Column("browser", String(255)),
        Column("device_type", String(50)),
        Column("referer", Text),
        Column("status_code", Integer, default=200),
        Column("user_agent", Text),
        Index(f"{name}_timestamp_idx", "timestamp"),
        Index(f"{name}_ip_idx", "ip_address"),
        sqlite_autoincrement=True,
    )


def _to_db_time(value: datetime) -> datetime:
    return as_utc(value).replace(tzinfo=None)


def _is_memory_sqlite(url: str) -> bool:
    return url.startswith("sqlite") and (url.rstrip("/") in ("sqlite:", "sqlite://") or ":memory:" in url)


def _unicode_lower(value):
    return value.lower() if isinstance(value, str) else value


def _register_sqlite_functions(dbapi_connection, connection_record):
    # SQLite's built-in lower() only folds ASCII.
    dbapi_connection.create_function("lower", 1, _unicode_lower, deterministic=True)


class LogStore:
    """Thread-safe request log table.

    Every operation runs under one store lock, so id assignment, inserts and
    clears are serialized and a page read sees one consistent snapshot.
    """

    def __init__(self, url: str = "sqlite:///request_monitor.db",
                 table_name: str = "request_logs", echo: bool = False):
        engine_kwargs = {}
        if _is_memory_sqlite(url):
            engine_kwargs = {
                "connect_args": {"check_same_thread": False},
                "poolclass": StaticPool,
            }
        self._url = url
        self._engine = create_engine(url, echo=echo, **engine_kwargs)
        if self._engine.dialect.name == "sqlite":
            event.listen(self._engine, "connect", _register_sqlite_functions)
        self._metadata = MetaData()
        self._table = build_table(self._metadata, table_name)
        self._lock = threading.RLock()

    @property
    def table(self) -> Table:
        return self._table

    @contextmanager
    def _transaction(self, action: str):
        with self._lock:
            try:
                with self._engine.begin() as conn:
                    yield conn
            except SQLAlchemyError as exc:
                logger.error("Request log %s failed on %s: %s", action, self._table.name, exc)
                raise StorageError(f"request log {action} failed") from exc

    def create_schema(self):
        with self._lock:
            try:
                self._metadata.create_all(self._engine)
            except SQLAlchemyError as exc:
                raise StorageError("could not create request log table") from exc
        logger.info("Request log table %s ready", self._table.name)

    def drop_schema(self):
        with self._lock:
            try:
                self._table.drop(self._engine, checkfirst=True)
            except SQLAlchemyError as exc:
                raise StorageError("could not drop request log table") from exc
        logger.info("Request log table %s dropped", self._table.name)

    def append(self, record: LogRecord) -> int:
        """Insert *record* and return the id the database assigned."""
        values = {
            "timestamp": _to_db_time(record.timestamp or utc_now()),
            "method": record.method,
            "url": record.url,
            "ip_address": record.ip_address,
            "browser": record.browser,
            "device_type": record.device_type,
            "referer": record.referer,
            "status_code": record.status_code,
            "user_agent": record.user_agent,
        }
        with self._transaction("append") as conn:
            result = conn.execute(insert(self._table).values(**values))
            new_id = result.inserted_primary_key[0]
        return new_id

    def _where(self, flt: LogFilter | None) -> list:
        if flt is None:
            return []
        c = self._table.c
        clauses = []
        if flt.search:
            clauses.append(
                or_(*(c[name].icontains(flt.search, autoescape=True) for name in SEARCH_COLUMNS))
            )
        if flt.device:
            clauses.append(c.device_type == flt.device)
        if flt.ip_address:
            clauses.append(c.ip_address == flt.ip_address)
        if flt.since:
            clauses.append(c.timestamp >= _to_db_time(flt.since))
        if flt.until:
            clauses.append(c.timestamp <= _to_db_time(flt.until))
        return clauses

    def _order_by(self, order_key: str, order_direction: str) -> list:
        if order_key not in SORTABLE_COLUMNS:
            raise ValueError(f"Unsortable column: {order_key!r}")
        direction = order_direction.upper()
        if direction not in SORT_DIRECTIONS:
            raise ValueError(f"Invalid sort direction: {order_direction!r}")

        columns = [self._table.c[order_key]]
        if order_key != "id":
            columns.append(self._table.c.id)
        if direction == "ASC":
            return [col.asc() for col in columns]
        return [col.desc() for col in columns]

    def _row_to_record(self, row) -> LogRecord:
        data = dict(row._mapping)
        data["timestamp"] = data["timestamp"].replace(tzinfo=timezone.utc)
        return LogRecord(**data)

    def _count(self, conn, clauses) -> int:
        stmt = select(func.count()).select_from(self._table).where(*clauses)
        return conn.execute(stmt).scalar_one()

    def _select(self, conn, clauses, order_key, order_direction, limit, offset) -> list[LogRecord]:
        stmt = (
            select(self._table)
            .where(*clauses)
            .order_by(*self._order_by(order_key, order_direction))
            .limit(limit)
            .offset(offset)
        )
        return [self._row_to_record(row) for row in conn.execute(stmt)]

    def count(self, flt: LogFilter | None = None) -> int:
        with self._transaction("count") as conn:
            return self._count(conn, self._where(flt))

    def query(self, flt: LogFilter | None = None, order_key: str = "timestamp",
              order_direction: str = "DESC", limit: int = 20, offset: int = 0) -> list[LogRecord]:
        self._order_by(order_key, order_direction)
        with self._transaction("query") as conn:
            return self._select(conn, self._where(flt), order_key, order_direction, limit, offset)

    def page(self, flt: LogFilter | None = None, order_key: str = "timestamp",
             order_direction: str = "DESC", limit: int = 20,
             offset: int = 0) -> tuple[list[LogRecord], int]:
        """Return one ordered slice together with the total match count.

        An offset at or past the total yields an empty slice without querying it.
        """
        self._order_by(order_key, order_direction)
        clauses = self._where(flt)
        with self._transaction("page") as conn:
            total = self._count(conn, clauses)
            if offset >= total:
                return [], total
            records = self._select(conn, clauses, order_key, order_direction, limit, offset)
        return records, total

    def get_by_id(self, log_id: int) -> LogRecord | None:
        with self._transaction("lookup") as conn:
            row = conn.execute(select(self._table).where(self._table.c.id == log_id)).first()
        return self._row_to_record(row) if row is not None else None

    def clear(self) -> int:
        """Delete every record. Returns the number of rows removed."""
        with self._transaction("clear") as conn:
            result = conn.execute(delete(self._table))
        return result.rowcount or 0

    def close(self):
        self._engine.dispose()
