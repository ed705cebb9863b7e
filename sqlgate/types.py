from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple


class BackendKind(str, Enum):
    POSTGRES = "postgres"
    MYSQL = "mysql"
    SQLITE = "sqlite"


# =====================
# Catalog descriptors
# =====================


@dataclass(frozen=True)
class ColumnDescriptor:
    name: str
    data_type: str
    nullable: bool
    default: Optional[str] = None
    primary_key: bool = False
    # "table.column" (or "schema.table.column" outside the default schema)
    foreign_key: Optional[str] = None

    def foreign_key_target(self) -> Optional[Tuple[str, str]]:
        """Split `foreign_key` into (table, column); None when not a FK."""
        if not self.foreign_key or "." not in self.foreign_key:
            return None
        table, column = self.foreign_key.rsplit(".", 1)
        return table, column


@dataclass(frozen=True)
class IndexDescriptor:
    name: str
    columns: Tuple[str, ...]
    unique: bool = False


@dataclass(frozen=True)
class TableDescriptor:
    name: str
    columns: Tuple[ColumnDescriptor, ...]
    indexes: Tuple[IndexDescriptor, ...] = ()


@dataclass(frozen=True)
class TableSummary:
    table_name: str
    row_count: int


@dataclass(frozen=True)
class CreateTableResult:
    table: str
    ddl: str
    reconstructed: bool = False
    note: Optional[str] = None


@dataclass(frozen=True)
class SchemaGraph:
    """Whole-database relationship view; edges are (owning, referenced) pairs."""

    tables: Tuple[TableDescriptor, ...]
    edges: Tuple[Tuple[str, str], ...] = ()
    # first FK column seen for each edge, used as the relationship label
    edge_labels: Dict[Tuple[str, str], str] = field(default_factory=dict)


# =====================
# Execution results
# =====================


@dataclass(frozen=True)
class QueryResult:
    sql: str
    columns: List[str]
    rows: List[Dict[str, Any]]
    affected_rows: Optional[int] = None

    @property
    def count(self) -> int:
        return len(self.rows)


@dataclass(frozen=True)
class DryRunResult:
    valid: bool
    query_plan: Optional[List[Dict[str, Any]]] = None
    error: Optional[str] = None
