"""
Minimal DB-API stand-ins for the server backends.

A responder maps (sql, params) to (columns, rows); columns=None means the
statement has no result set.
"""

from __future__ import annotations

from contextlib import contextmanager
from typing import Any, Callable, List, Optional, Sequence, Tuple

Responder = Callable[[str, Any], Tuple[Optional[Sequence[str]], Sequence[tuple]]]


def no_rows(sql: str, params: Any):
    return None, []


class FakeCursor:
    def __init__(self, conn: "FakeConn") -> None:
        self.conn = conn
        self.description = None
        self.rowcount = -1
        self._rows: List[tuple] = []

    def execute(self, sql: str, params: Any = None) -> None:
        self.conn.executed.append((sql, params))
        columns, rows = self.conn.responder(sql, params)
        self._rows = list(rows)
        if columns is None:
            self.description = None
            self.rowcount = len(self._rows) or 0
        else:
            self.description = [(c,) for c in columns]
            self.rowcount = len(self._rows)

    def fetchall(self) -> List[tuple]:
        return self._rows

    def fetchmany(self, size: int) -> List[tuple]:
        return self._rows[:size]

    def close(self) -> None:
        return None

    def __enter__(self) -> "FakeCursor":
        return self

    def __exit__(self, *exc: Any) -> bool:
        return False


class FakeConn:
    def __init__(self, responder: Responder = no_rows, thread: int = 42) -> None:
        self.responder = responder
        self.executed: List[Tuple[str, Any]] = []
        self.events: List[str] = []
        self.open = True
        self._thread = thread

    def cursor(self) -> FakeCursor:
        return FakeCursor(self)

    def execute(self, sql: str, params: Any = None) -> FakeCursor:
        cur = self.cursor()
        cur.execute(sql, params)
        return cur

    def commit(self) -> None:
        self.events.append("commit")

    def rollback(self) -> None:
        self.events.append("rollback")

    def close(self) -> None:
        self.events.append("close")
        self.open = False

    def thread_id(self) -> int:
        return self._thread

    @contextmanager
    def transaction(self):
        self.events.append("savepoint")
        yield self


class FakePool:
    def __init__(self, conn: FakeConn) -> None:
        self.conn = conn
        self.closed = False

    @contextmanager
    def connection(self):
        yield self.conn

    def close(self) -> None:
        self.closed = True
