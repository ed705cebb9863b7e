import sqlite3
import logging
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Iterator, List, Optional, Tuple
from urllib.parse import quote as url_quote

from adapters.db.base import DBAdapter, DEFAULT_COUNT_TIMEOUT_SEC, group_index_rows
from sqlgate.errors import BackendError, ConfigError
from sqlgate.types import (
    BackendKind,
    ColumnDescriptor,
    CreateTableResult,
    IndexDescriptor,
)

log = logging.getLogger(__name__)

MEMORY = ":memory:"


def sqlite_path_from_url(url: str) -> str:
    """
    'sqlite:///abs/app.db' -> '/abs/app.db'
    'sqlite:data/app.db'   -> 'data/app.db'
    'sqlite::memory:'      -> ':memory:'
    """
    if not url.startswith("sqlite:"):
        raise ConfigError(f"Not a sqlite URL: {url!r}")
    path = url[len("sqlite:"):]
    if path.startswith("//"):
        path = path[2:]
    path = path.split("?", 1)[0]
    if not path or path == MEMORY:
        return MEMORY
    return path


class SQLiteAdapter(DBAdapter):
    name = "sqlite"
    backend = BackendKind.SQLITE
    dialect = "sqlite"
    explain_prefix = "EXPLAIN QUERY PLAN "
    quote_char = '"'
    driver_errors = (sqlite3.Error,)

    def __init__(
        self,
        path: str,
        *,
        count_timeout: float = DEFAULT_COUNT_TIMEOUT_SEC,
        busy_timeout: float = 3.0,
    ):
        super().__init__(count_timeout=count_timeout)
        self.busy_timeout = busy_timeout
        # Every session opens its own connection, so ':memory:' is empty per call.
        self.in_memory = path == MEMORY
        self.path = path if self.in_memory else Path(path).resolve()
        log.info("SQLiteAdapter initialized with DB path: %s", self.path)

    @classmethod
    def from_url(cls, url: str, **kwargs: Any) -> "SQLiteAdapter":
        return cls(sqlite_path_from_url(url), **kwargs)

    # ------------------------------------------------------------------
    # Connections
    # ------------------------------------------------------------------
    def _connect(self, read_only: bool) -> sqlite3.Connection:
        if self.in_memory:
            return sqlite3.connect(
                MEMORY, timeout=self.busy_timeout, check_same_thread=False
            )
        if not self.path.exists():
            raise BackendError(
                f"SQLite DB does not exist: {self.path}",
                backend=self.backend.value,
                extra={"path": str(self.path)},
            )
        if read_only:
            uri = f"file:{url_quote(str(self.path))}?mode=ro"
            return sqlite3.connect(
                uri, uri=True, timeout=self.busy_timeout, check_same_thread=False
            )
        return sqlite3.connect(
            str(self.path), timeout=self.busy_timeout, check_same_thread=False
        )

    @contextmanager
    def _session(self, *, read_only: bool) -> Iterator[sqlite3.Connection]:
        conn = self._connect(read_only)
        try:
            if read_only:
                conn.execute("PRAGMA query_only = ON")
            yield conn
            if read_only:
                conn.rollback()
            else:
                conn.commit()
        except BaseException:
            conn.rollback()
            raise
        finally:
            conn.close()

    def cancel(self, conn: sqlite3.Connection) -> None:
        conn.interrupt()

    # ------------------------------------------------------------------
    # Catalog
    # ------------------------------------------------------------------
    def _pragma(self, schema: Optional[str], pragma: str, arg: str) -> str:
        prefix = f"{self.quote(schema)}." if schema else ""
        return f"PRAGMA {prefix}{pragma}({self.quote(arg)})"

    def _master(self, schema: Optional[str]) -> str:
        return f"{self.quote(schema)}.sqlite_master" if schema else "sqlite_master"

    def _table_names(self, conn: Any) -> List[Tuple[Optional[str], str]]:
        rows = self._all(
            conn,
            "SELECT name FROM sqlite_master "
            "WHERE type='table' AND name NOT LIKE 'sqlite_%' "
            "ORDER BY name",
        )
        return [(None, r[0]) for r in rows if r and r[0]]

    def _primary_key_column(
        self, conn: Any, schema: Optional[str], table: str
    ) -> Optional[str]:
        rows = self._all(conn, self._pragma(schema, "table_info", table))
        pk = sorted((r[5], r[1]) for r in rows if r[5])
        return pk[0][1] if pk else None

    def _foreign_keys(self, conn: Any, schema: Optional[str], table: str) -> dict:
        # (id, seq, table, from, to, on_update, on_delete, match)
        out: dict = {}
        for row in self._all(conn, self._pragma(schema, "foreign_key_list", table)):
            ref_table, from_col, to_col = row[2], row[3], row[4]
            if not to_col:
                # REFERENCES parent with no column list targets the parent's PK.
                to_col = self._primary_key_column(conn, schema, ref_table) or from_col
            out.setdefault(from_col, f"{ref_table}.{to_col}")
        return out

    def _columns(
        self, conn: Any, schema: Optional[str], table: str
    ) -> List[ColumnDescriptor]:
        # (cid, name, type, notnull, dflt_value, pk)
        rows = self._all(conn, self._pragma(schema, "table_info", table))
        if not rows:
            return []
        fks = self._foreign_keys(conn, schema, table)
        return [
            ColumnDescriptor(
                name=r[1],
                data_type=r[2] or "",
                nullable=not r[3],
                default=None if r[4] is None else str(r[4]),
                primary_key=bool(r[5]),
                foreign_key=fks.get(r[1]),
            )
            for r in rows
        ]

    def _indexes(
        self, conn: Any, schema: Optional[str], table: str
    ) -> List[IndexDescriptor]:
        # (seq, name, unique, origin, partial)
        listed = self._all(conn, self._pragma(schema, "index_list", table))
        flat: List[Tuple[str, Optional[str], bool]] = []
        for row in sorted(listed, key=lambda r: r[1]):
            index_name, unique = row[1], bool(row[2])
            # (seqno, cid, name); name is NULL for expression parts
            parts = self._all(conn, self._pragma(schema, "index_info", index_name))
            for part in sorted(parts, key=lambda p: p[0]):
                flat.append((index_name, part[2], unique))
        return group_index_rows(flat)

    def _create_table(
        self, conn: Any, schema: Optional[str], table: str
    ) -> CreateTableResult:
        rows = self._all(
            conn,
            f"SELECT sql FROM {self._master(schema)} WHERE type='table' AND name = ?",
            (table,),
        )
        ddl = rows[0][0] if rows and rows[0][0] else ""
        return CreateTableResult(table=self.display_name(schema, table), ddl=ddl)
