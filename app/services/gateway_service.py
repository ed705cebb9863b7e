from __future__ import annotations

import logging
from contextlib import contextmanager
from dataclasses import asdict, dataclass
from typing import Any, Dict, Iterator, List, Optional

from sqlgate.executor import Executor
from sqlgate.identifiers import split_qualified
from sqlgate.metrics import tool_calls_total
from sqlgate.registry import (
    ConnectionEntry,
    DatabaseRegistry,
    build_registry,
    load_database_specs,
)
from sqlgate.schema_diagram import generate_diagram
from sqlgate.types import ColumnDescriptor, IndexDescriptor

from app.settings import Settings

logger = logging.getLogger(__name__)


def _column_dict(col: ColumnDescriptor) -> Dict[str, Any]:
    return asdict(col)


def _index_dict(idx: IndexDescriptor) -> Dict[str, Any]:
    return {"name": idx.name, "columns": list(idx.columns), "unique": idx.unique}


@contextmanager
def _tool_call(tool: str) -> Iterator[None]:
    try:
        yield
    except Exception:
        tool_calls_total.labels(tool=tool, ok="false").inc()
        raise
    tool_calls_total.labels(tool=tool, ok="true").inc()


@dataclass
class GatewayService:
    """
    Application-level service: one method per tool.

    Responsibilities:
        - Resolve the target database through the registry.
        - Hand catalog calls to the entry's adapter.
        - Hand user statements to the executor.
        - Shape results into plain JSON-ready dicts.
    """

    registry: DatabaseRegistry
    executor: Executor

    @classmethod
    def from_settings(cls, settings: Settings) -> "GatewayService":
        specs = load_database_specs(
            settings.database_urls, settings.databases_config_path or None
        )
        registry = build_registry(
            specs,
            count_timeout=settings.count_timeout_sec,
            pool_size=settings.pool_size,
        )
        executor = Executor(
            row_limit=settings.row_limit,
            timeout_sec=settings.query_timeout_sec,
            allow_write=settings.allow_write,
            sample_limit=settings.sample_limit,
        )
        logger.info(
            "Gateway service ready",
            extra={
                "databases": registry.names,
                "allow_write": settings.allow_write,
                "row_limit": executor.row_limit,
            },
        )
        return cls(registry=registry, executor=executor)

    def close(self) -> None:
        self.registry.close()

    def _entry(self, database: Optional[str]) -> ConnectionEntry:
        return self.registry.resolve(database)

    # ------------------------------------------------------------------
    # Catalog tools
    # ------------------------------------------------------------------
    def list_databases(self) -> Dict[str, Any]:
        with _tool_call("list_databases"):
            return {
                "databases": [
                    {"name": e.name, "type": e.backend.value, "url": e.url_redacted}
                    for e in self.registry.entries
                ]
            }

    def list_tables(self, database: Optional[str] = None) -> Dict[str, Any]:
        with _tool_call("list_tables"):
            tables = self._entry(database).adapter.list_tables()
            return {
                "tables": [
                    {"table_name": t.table_name, "row_count": t.row_count}
                    for t in tables
                ]
            }

    def describe_table(self, table: str, database: Optional[str] = None) -> Dict[str, Any]:
        with _tool_call("describe_table"):
            desc = self._entry(database).adapter.describe_table(table)
            return {
                "table": desc.name,
                "columns": [_column_dict(c) for c in desc.columns],
                "indexes": [_index_dict(i) for i in desc.indexes],
            }

    def list_indexes(self, table: str, database: Optional[str] = None) -> Dict[str, Any]:
        with _tool_call("list_indexes"):
            adapter = self._entry(database).adapter
            indexes = adapter.list_indexes(table)
            return {
                "table": adapter.display_name(*split_qualified(table)),
                "indexes": [_index_dict(i) for i in indexes],
            }

    def show_create_table(
        self, table: str, database: Optional[str] = None
    ) -> Dict[str, Any]:
        with _tool_call("show_create_table"):
            result = self._entry(database).adapter.show_create_table(table)
            return asdict(result)

    def show_schema(self, database: Optional[str] = None) -> Dict[str, Any]:
        with _tool_call("show_schema"):
            return {"diagram": generate_diagram(self._entry(database).adapter)}

    # ------------------------------------------------------------------
    # Statement tools
    # ------------------------------------------------------------------
    def sample_data(
        self,
        table: str,
        where: Optional[str] = None,
        limit: Optional[int] = None,
        database: Optional[str] = None,
    ) -> Dict[str, Any]:
        with _tool_call("sample_data"):
            adapter = self._entry(database).adapter
            result = self.executor.sample_data(adapter, table, where=where, limit=limit)
            return {"table": table, "rows": result.rows, "count": result.count}

    def query(self, sql: str, database: Optional[str] = None) -> Dict[str, Any]:
        with _tool_call("query"):
            result = self.executor.run_query(self._entry(database).adapter, sql)
            return {
                "rows": result.rows,
                "count": result.count,
                "columns": result.columns,
                "sql": result.sql,
                "affected_rows": result.affected_rows,
            }

    def explain(self, sql: str, database: Optional[str] = None) -> Dict[str, Any]:
        with _tool_call("explain"):
            plan: List[Dict[str, Any]] = self.executor.explain(
                self._entry(database).adapter, sql
            )
            return {"plan": plan}

    def query_dry_run(self, sql: str, database: Optional[str] = None) -> Dict[str, Any]:
        with _tool_call("query_dry_run"):
            result = self.executor.dry_run(self._entry(database).adapter, sql)
            out: Dict[str, Any] = {"valid": result.valid}
            if result.valid:
                out["query_plan"] = result.query_plan
            else:
                out["error"] = result.error
            return out
