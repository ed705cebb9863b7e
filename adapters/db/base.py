from __future__ import annotations

import logging
import threading
import time
from abc import ABC, abstractmethod
from contextlib import contextmanager, nullcontext
from typing import (
    Any,
    Callable,
    ContextManager,
    Iterator,
    List,
    NamedTuple,
    Optional,
    Sequence,
    Tuple,
    Type,
)

from sqlgate.errors import (
    BackendError,
    IndexesUnavailable,
    QueryTimeout,
    TableNotFound,
)
from sqlgate.identifiers import split_qualified
from sqlgate.metrics import (
    query_timeouts_total,
    row_count_fallbacks_total,
    statement_duration_ms,
)
from sqlgate.types import (
    BackendKind,
    ColumnDescriptor,
    CreateTableResult,
    IndexDescriptor,
    TableDescriptor,
    TableSummary,
)

log = logging.getLogger(__name__)

DEFAULT_COUNT_TIMEOUT_SEC = 1.0


class FetchResult(NamedTuple):
    rows: List[Tuple[Any, ...]]
    columns: List[str]
    rowcount: Optional[int] = None


class Deadline:
    """
    Arm a timer around one statement; when it fires, `cancel` interrupts the
    in-flight call on the driver side so the connection is freed, not leaked.
    """

    def __init__(self, cancel: Callable[[], None], seconds: Optional[float]) -> None:
        self._cancel = cancel
        self.seconds = seconds
        self.expired = False
        self._timer: Optional[threading.Timer] = None

    def _fire(self) -> None:
        self.expired = True
        try:
            self._cancel()
        except Exception:
            log.warning("Failed to cancel timed-out statement", exc_info=True)

    def __enter__(self) -> "Deadline":
        if self.seconds is not None and self.seconds > 0:
            self._timer = threading.Timer(self.seconds, self._fire)
            self._timer.daemon = True
            self._timer.start()
        return self

    def __exit__(self, *exc_info: Any) -> bool:
        if self._timer is not None:
            self._timer.cancel()
            self._timer.join()
        return False


class DBAdapter(ABC):
    """
    One backend's implementation of the catalog capability set
    (list_tables / describe_table / list_indexes / show_create_table)
    plus the execution hooks the executor needs (session, fetch, cancel).

    Public methods take user-supplied names and sanitize them; the
    underscore methods take (schema, table) pairs straight from the catalog.
    """

    name: str = ""
    backend: BackendKind
    dialect: str = ""
    explain_prefix: str = "EXPLAIN "
    quote_char: str = '"'
    driver_errors: Tuple[Type[BaseException], ...] = ()

    def __init__(self, *, count_timeout: float = DEFAULT_COUNT_TIMEOUT_SEC) -> None:
        self.count_timeout = count_timeout

    # ------------------------------------------------------------------
    # Connection lifecycle (backend-specific)
    # ------------------------------------------------------------------
    @abstractmethod
    def _session(self, *, read_only: bool) -> ContextManager[Any]:
        """Borrow a DB-API connection; read-only scopes are rolled back."""

    @abstractmethod
    def cancel(self, conn: Any) -> None:
        """Interrupt whatever statement `conn` is running. Thread-safe."""

    def close(self) -> None:
        return

    def _savepoint(self, conn: Any) -> ContextManager[Any]:
        """Scope that isolates a failed statement from the rest of the session."""
        return nullcontext()

    @contextmanager
    def session(self, *, read_only: bool = True) -> Iterator[Any]:
        try:
            with self._session(read_only=read_only) as conn:
                yield conn
        except self.driver_errors as exc:
            raise self._wrap(exc) from exc

    def _wrap(self, exc: BaseException) -> BackendError:
        return BackendError(
            f"{self.backend.value} error: {exc}",
            backend=self.backend.value,
            details=[type(exc).__name__],
            extra={"backend": self.backend.value},
        )

    # ------------------------------------------------------------------
    # Statement execution
    # ------------------------------------------------------------------
    def fetch(
        self,
        conn: Any,
        sql: str,
        *,
        timeout: Optional[float] = None,
        max_rows: Optional[int] = None,
        params: Optional[Sequence[Any]] = None,
        operation: str = "query",
    ) -> FetchResult:
        """
        Run one statement, racing it against `timeout` seconds.
        Returns at most `max_rows` rows; statements without a result set
        return no rows and the driver's affected row count.
        """
        t0 = time.perf_counter()
        cur = conn.cursor()
        deadline = Deadline(lambda: self.cancel(conn), timeout)
        try:
            with deadline:
                if params is None:
                    cur.execute(sql)
                else:
                    cur.execute(sql, params)
                if cur.description is None:
                    return FetchResult([], [], cur.rowcount)
                columns = [str(d[0]) for d in cur.description if d]
                rows = cur.fetchmany(max_rows) if max_rows else cur.fetchall()
                return FetchResult([tuple(r) for r in rows], columns)
        except self.driver_errors as exc:
            if deadline.expired:
                query_timeouts_total.labels(backend=self.backend.value).inc()
                raise QueryTimeout(
                    f"Query timed out after {timeout:g} seconds",
                    timeout_sec=float(timeout or 0),
                    extra={"backend": self.backend.value, "operation": operation},
                ) from exc
            raise self._wrap(exc) from exc
        finally:
            cur.close()
            statement_duration_ms.labels(
                backend=self.backend.value, operation=operation
            ).observe((time.perf_counter() - t0) * 1000)

    def _all(
        self, conn: Any, sql: str, params: Optional[Sequence[Any]] = None
    ) -> List[Tuple[Any, ...]]:
        """Catalog lookup helper: no deadline, all rows."""
        return self.fetch(conn, sql, params=params, operation="catalog").rows

    def ping(self) -> None:
        with self.session(read_only=True) as conn:
            self.fetch(conn, "SELECT 1", timeout=5.0, operation="catalog")

    # ------------------------------------------------------------------
    # Identifier helpers
    # ------------------------------------------------------------------
    def quote(self, ident: str) -> str:
        q = self.quote_char
        return f"{q}{ident.replace(q, q + q)}{q}"

    def qualified(self, schema: Optional[str], table: str) -> str:
        if schema:
            return f"{self.quote(schema)}.{self.quote(table)}"
        return self.quote(table)

    def display_name(self, schema: Optional[str], table: str) -> str:
        return f"{schema}.{table}" if schema else table

    def sample_sql(self, name: str, where: Optional[str], limit: int) -> str:
        schema, table = split_qualified(name)
        sql = f"SELECT * FROM {self.qualified(schema, table)}"
        if where:
            sql += f" WHERE {where}"
        return f"{sql} LIMIT {int(limit)}"

    # ------------------------------------------------------------------
    # Catalog primitives (backend-specific)
    # ------------------------------------------------------------------
    @abstractmethod
    def _table_names(self, conn: Any) -> List[Tuple[Optional[str], str]]:
        """(schema, table) pairs in display order."""

    @abstractmethod
    def _columns(
        self, conn: Any, schema: Optional[str], table: str
    ) -> List[ColumnDescriptor]:
        """Empty list when the table does not exist."""

    @abstractmethod
    def _indexes(
        self, conn: Any, schema: Optional[str], table: str
    ) -> List[IndexDescriptor]: ...

    @abstractmethod
    def _create_table(
        self, conn: Any, schema: Optional[str], table: str
    ) -> CreateTableResult: ...

    def _table_exists(self, conn: Any, schema: Optional[str], table: str) -> bool:
        return bool(self._columns(conn, schema, table))

    # ------------------------------------------------------------------
    # Capability set
    # ------------------------------------------------------------------
    def list_tables(self) -> List[TableSummary]:
        with self.session(read_only=True) as conn:
            return [
                TableSummary(
                    table_name=self.display_name(schema, table),
                    row_count=self._bounded_count(conn, schema, table),
                )
                for schema, table in self._table_names(conn)
            ]

    def _bounded_count(self, conn: Any, schema: Optional[str], table: str) -> int:
        """COUNT(*) under `count_timeout`; anything that does not finish reports 0."""
        sql = f"SELECT COUNT(*) FROM {self.qualified(schema, table)}"
        try:
            with self._savepoint(conn):
                result = self.fetch(
                    conn, sql, timeout=self.count_timeout, operation="count"
                )
        except QueryTimeout:
            row_count_fallbacks_total.labels(
                backend=self.backend.value, reason="timeout"
            ).inc()
            log.warning(
                "Row count timed out; reporting 0",
                extra={"table": table, "budget_sec": self.count_timeout},
            )
            return 0
        except (BackendError,) + self.driver_errors as exc:
            # Driver errors here come from releasing the savepoint, outside fetch.
            row_count_fallbacks_total.labels(
                backend=self.backend.value, reason="error"
            ).inc()
            log.warning(
                "Row count failed; reporting 0",
                extra={"table": table, "error": str(exc)},
            )
            return 0
        if not result.rows or result.rows[0][0] is None:
            return 0
        return int(result.rows[0][0])

    def describe_table(self, name: str, *, include_indexes: bool = True) -> TableDescriptor:
        schema, table = split_qualified(name)
        with self.session(read_only=True) as conn:
            return self._describe(conn, schema, table, include_indexes=include_indexes)

    def _describe(
        self,
        conn: Any,
        schema: Optional[str],
        table: str,
        *,
        include_indexes: bool,
    ) -> TableDescriptor:
        display = self.display_name(schema, table)
        columns = self._columns(conn, schema, table)
        if not columns:
            raise TableNotFound(f"Table '{display}' not found", extra={"table": display})
        indexes = self._indexes(conn, schema, table) if include_indexes else []
        return TableDescriptor(name=display, columns=tuple(columns), indexes=tuple(indexes))

    def describe_all(self) -> List[TableDescriptor]:
        """Every table's columns, in one session (indexes omitted)."""
        out: List[TableDescriptor] = []
        with self.session(read_only=True) as conn:
            for schema, table in self._table_names(conn):
                try:
                    out.append(
                        self._describe(conn, schema, table, include_indexes=False)
                    )
                except TableNotFound:
                    # Dropped between enumeration and describe.
                    log.debug("Skipping vanished table", extra={"table": table})
        return out

    def list_indexes(self, name: str) -> List[IndexDescriptor]:
        schema, table = split_qualified(name)
        with self.session(read_only=True) as conn:
            if not self._table_exists(conn, schema, table):
                display = self.display_name(schema, table)
                raise TableNotFound(f"Table '{display}' not found", extra={"table": display})
            try:
                return self._indexes(conn, schema, table)
            except BackendError as exc:
                display = self.display_name(schema, table)
                raise IndexesUnavailable(
                    f"Could not read indexes for '{display}': {exc.message}",
                    details=exc.details,
                    extra={"table": display, "backend": self.backend.value},
                ) from exc

    def show_create_table(self, name: str) -> CreateTableResult:
        schema, table = split_qualified(name)
        with self.session(read_only=True) as conn:
            if not self._table_exists(conn, schema, table):
                display = self.display_name(schema, table)
                raise TableNotFound(f"Table '{display}' not found", extra={"table": display})
            return self._create_table(conn, schema, table)


def group_index_rows(
    rows: Sequence[Tuple[str, Optional[str], bool]],
) -> List[IndexDescriptor]:
    """
    Fold (index_name, column_name, unique) rows, already ordered by index and
    column position, into one descriptor per index. Rows without a column
    name (expression parts) are skipped; indexes left with no columns vanish.
    """
    order: List[str] = []
    columns: dict[str, List[str]] = {}
    unique: dict[str, bool] = {}
    for index_name, column_name, is_unique in rows:
        if index_name not in columns:
            order.append(index_name)
            columns[index_name] = []
            unique[index_name] = bool(is_unique)
        if column_name:
            columns[index_name].append(column_name)
    return [
        IndexDescriptor(name=n, columns=tuple(columns[n]), unique=unique[n])
        for n in order
        if columns[n]
    ]


__all__ = [
    "DBAdapter",
    "Deadline",
    "FetchResult",
    "DEFAULT_COUNT_TIMEOUT_SEC",
    "group_index_rows",
]
