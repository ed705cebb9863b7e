from __future__ import annotations

import logging
import re
from typing import Any, Dict, List, Optional

from adapters.db.base import DBAdapter
from adapters.db.convert import rows_to_dicts
from sqlgate.errors import BackendError, StatementRejected
from sqlgate.metrics import safety_blocks_total
from sqlgate.safety import Safety, has_limit_clause, inject_limit
from sqlgate.types import DryRunResult, QueryResult

log = logging.getLogger(__name__)

DEFAULT_ROW_LIMIT = 100
DEFAULT_TIMEOUT_SEC = 30.0
DEFAULT_SAMPLE_LIMIT = 5

# A terminator or comment opener in a WHERE fragment could cut off the LIMIT.
_WHERE_FORBIDDEN_RE = re.compile(r";|--|/\*|#")


class Executor:
    """
    Drives user statements against one adapter: gate, bound, run.

    Restricted mode runs everything inside the adapter's read-only scope;
    unrestricted mode lets mutations through and commits them.
    """

    def __init__(
        self,
        *,
        row_limit: int = DEFAULT_ROW_LIMIT,
        timeout_sec: float = DEFAULT_TIMEOUT_SEC,
        allow_write: bool = False,
        sample_limit: int = DEFAULT_SAMPLE_LIMIT,
    ) -> None:
        self.row_limit = row_limit if row_limit > 0 else DEFAULT_ROW_LIMIT
        self.timeout_sec = timeout_sec
        self.allow_write = allow_write
        self.sample_limit = sample_limit if sample_limit > 0 else DEFAULT_SAMPLE_LIMIT

    def _safety(self, adapter: DBAdapter) -> Safety:
        return Safety(allow_write=self.allow_write, dialect=adapter.dialect)

    def run_query(self, adapter: DBAdapter, sql: str) -> QueryResult:
        classification = self._safety(adapter).check(sql)
        statement = classification.sql
        # An explicit top-level LIMIT is honoured as written; the cursor cap
        # only bounds statements that carry none.
        max_rows: Optional[int] = self.row_limit
        if classification.read_only:
            if has_limit_clause(statement, adapter.dialect):
                max_rows = None
            else:
                statement = inject_limit(statement, self.row_limit, adapter.dialect)

        log.debug(
            "Executing statement",
            extra={
                "backend": adapter.backend.value,
                "keyword": classification.keyword,
                "sql_length": len(statement),
            },
        )
        with adapter.session(read_only=not self.allow_write) as conn:
            result = adapter.fetch(
                conn,
                statement,
                timeout=self.timeout_sec,
                max_rows=max_rows,
                operation="query",
            )

        affected: Optional[int] = None
        if not result.columns and result.rowcount is not None and result.rowcount >= 0:
            affected = result.rowcount
        return QueryResult(
            sql=statement,
            columns=result.columns,
            rows=rows_to_dicts(result.rows, result.columns),
            affected_rows=affected,
        )

    def explain(self, adapter: DBAdapter, sql: str) -> List[Dict[str, Any]]:
        """Backend-native plan rows for one gated statement."""
        classification = self._safety(adapter).check(sql)
        statement = f"{adapter.explain_prefix}{classification.sql}"
        with adapter.session(read_only=not self.allow_write) as conn:
            result = adapter.fetch(
                conn, statement, timeout=self.timeout_sec, operation="explain"
            )
        return rows_to_dicts(result.rows, result.columns)

    def dry_run(self, adapter: DBAdapter, sql: str) -> DryRunResult:
        # Gating failures and timeouts propagate; only the backend's verdict
        # on the statement itself becomes valid=False.
        try:
            plan = self.explain(adapter, sql)
        except BackendError as exc:
            log.debug("Dry run found invalid SQL", extra={"error": exc.message})
            return DryRunResult(valid=False, error=exc.message)
        return DryRunResult(valid=True, query_plan=plan)

    def sample_data(
        self,
        adapter: DBAdapter,
        table: str,
        where: Optional[str] = None,
        limit: Optional[int] = None,
    ) -> QueryResult:
        where = (where or "").strip() or None
        if where and _WHERE_FORBIDDEN_RE.search(where):
            safety_blocks_total.labels(reason="where_clause").inc()
            raise StatementRejected(
                "WHERE clause may not contain ';' or comment markers",
                keyword=";",
                extra={"reason": "where_clause"},
            )

        n = self.sample_limit if limit is None else int(limit)
        n = max(1, min(n, self.row_limit))
        statement = adapter.sample_sql(table, where, n)

        with adapter.session(read_only=True) as conn:
            result = adapter.fetch(
                conn, statement, timeout=self.timeout_sec, max_rows=n, operation="sample"
            )
        return QueryResult(
            sql=statement,
            columns=result.columns,
            rows=rows_to_dicts(result.rows, result.columns),
        )
