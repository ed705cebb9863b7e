import logging
from contextlib import contextmanager
from typing import Any, Dict, Iterator, List, Optional, Tuple
from urllib.parse import parse_qs, unquote, urlsplit

import pymysql

from adapters.db.base import DBAdapter, DEFAULT_COUNT_TIMEOUT_SEC, group_index_rows
from sqlgate.errors import ConfigError
from sqlgate.types import (
    BackendKind,
    ColumnDescriptor,
    CreateTableResult,
    IndexDescriptor,
)

log = logging.getLogger(__name__)

_TABLES_SQL = (
    "SELECT table_name FROM information_schema.tables "
    "WHERE table_schema = DATABASE() AND table_type = 'BASE TABLE' "
    "ORDER BY table_name"
)

_COLUMNS_SQL = (
    "SELECT column_name, column_type, is_nullable, column_default, column_key "
    "FROM information_schema.columns "
    "WHERE table_schema = COALESCE(%s, DATABASE()) AND table_name = %s "
    "ORDER BY ordinal_position"
)

_FOREIGN_KEYS_SQL = (
    "SELECT column_name, referenced_table_schema, referenced_table_name, "
    "referenced_column_name "
    "FROM information_schema.key_column_usage "
    "WHERE table_schema = COALESCE(%s, DATABASE()) AND table_name = %s "
    "AND referenced_table_name IS NOT NULL "
    "ORDER BY constraint_name, ordinal_position"
)

_INDEXES_SQL = (
    "SELECT index_name, column_name, non_unique "
    "FROM information_schema.statistics "
    "WHERE table_schema = COALESCE(%s, DATABASE()) AND table_name = %s "
    "ORDER BY index_name, seq_in_index"
)


def _text(value: Any) -> Optional[str]:
    """information_schema columns come back as bytes on some server versions."""
    if value is None:
        return None
    if isinstance(value, (bytes, bytearray)):
        return value.decode("utf-8", errors="replace")
    return str(value)


def mysql_params_from_url(url: str) -> Dict[str, Any]:
    """
    'mysql://user:pw@host:3306/shop?charset=utf8mb4' -> pymysql.connect kwargs.
    'mariadb://' URLs are accepted as-is.
    """
    parts = urlsplit(url)
    if parts.scheme not in ("mysql", "mariadb"):
        raise ConfigError(f"Not a MySQL URL: {parts.scheme!r}")
    try:
        port = parts.port or 3306
    except ValueError as exc:
        raise ConfigError(f"Invalid port in MySQL URL: {exc}") from exc
    query = parse_qs(parts.query)
    return {
        "host": parts.hostname or "localhost",
        "port": port,
        "user": unquote(parts.username or ""),
        "password": unquote(parts.password or ""),
        "database": unquote(parts.path.lstrip("/")) or None,
        "charset": query.get("charset", ["utf8mb4"])[0],
    }


class MySQLAdapter(DBAdapter):
    name = "mysql"
    backend = BackendKind.MYSQL
    dialect = "mysql"
    explain_prefix = "EXPLAIN "
    quote_char = "`"
    driver_errors = (pymysql.MySQLError,)

    def __init__(
        self,
        url: str,
        *,
        count_timeout: float = DEFAULT_COUNT_TIMEOUT_SEC,
        connect_timeout: float = 10.0,
    ):
        super().__init__(count_timeout=count_timeout)
        self.params = mysql_params_from_url(url)
        self.params["connect_timeout"] = connect_timeout
        self.database = self.params["database"]
        log.info(
            "MySQLAdapter initialized for %s:%s/%s",
            self.params["host"],
            self.params["port"],
            self.database or "",
        )

    def _connect(self) -> pymysql.connections.Connection:
        return pymysql.connect(autocommit=False, **self.params)

    @contextmanager
    def _session(self, *, read_only: bool) -> Iterator[Any]:
        conn = self._connect()
        try:
            if read_only:
                with conn.cursor() as cur:
                    cur.execute("START TRANSACTION READ ONLY")
            yield conn
            if read_only:
                conn.rollback()
            else:
                conn.commit()
        except BaseException:
            if conn.open:
                conn.rollback()
            raise
        finally:
            if conn.open:
                conn.close()

    def cancel(self, conn: Any) -> None:
        # KILL QUERY stops the statement but keeps `conn` itself usable.
        thread_id = int(conn.thread_id())
        side = self._connect()
        try:
            with side.cursor() as cur:
                cur.execute(f"KILL QUERY {thread_id}")
        finally:
            side.close()

    # ------------------------------------------------------------------
    # Catalog
    # ------------------------------------------------------------------
    def _ref_display(self, schema: Optional[str], ref_schema: Optional[str], ref_table: str) -> str:
        if not ref_schema or ref_schema in (schema, self.database):
            return ref_table
        return f"{ref_schema}.{ref_table}"

    def _table_names(self, conn: Any) -> List[Tuple[Optional[str], str]]:
        return [(None, _text(r[0]) or "") for r in self._all(conn, _TABLES_SQL)]

    def _columns(
        self, conn: Any, schema: Optional[str], table: str
    ) -> List[ColumnDescriptor]:
        rows = self._all(conn, _COLUMNS_SQL, (schema, table))
        if not rows:
            return []
        fks: Dict[str, str] = {}
        for column, ref_schema, ref_table, ref_column in self._all(
            conn, _FOREIGN_KEYS_SQL, (schema, table)
        ):
            target = self._ref_display(schema, _text(ref_schema), _text(ref_table) or "")
            fks.setdefault(_text(column) or "", f"{target}.{_text(ref_column)}")
        out: List[ColumnDescriptor] = []
        for name, column_type, is_nullable, default, column_key in rows:
            col_name = _text(name) or ""
            out.append(
                ColumnDescriptor(
                    name=col_name,
                    data_type=_text(column_type) or "",
                    nullable=_text(is_nullable) == "YES",
                    default=_text(default),
                    primary_key=_text(column_key) == "PRI",
                    foreign_key=fks.get(col_name),
                )
            )
        return out

    def _indexes(
        self, conn: Any, schema: Optional[str], table: str
    ) -> List[IndexDescriptor]:
        rows = self._all(conn, _INDEXES_SQL, (schema, table))
        return group_index_rows(
            [(_text(r[0]) or "", _text(r[1]), int(r[2]) == 0) for r in rows]
        )

    def _create_table(
        self, conn: Any, schema: Optional[str], table: str
    ) -> CreateTableResult:
        rows = self._all(conn, f"SHOW CREATE TABLE {self.qualified(schema, table)}")
        ddl = _text(rows[0][1]) if rows else ""
        return CreateTableResult(table=self.display_name(schema, table), ddl=ddl or "")
