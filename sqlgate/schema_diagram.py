"""
Mermaid ER diagrams from catalog descriptors.

Works on `TableDescriptor`s only, so every backend renders the same way.
"""

from __future__ import annotations

import re
from typing import Dict, Iterable, List, Tuple

from adapters.db.base import DBAdapter
from sqlgate.types import ColumnDescriptor, SchemaGraph, TableDescriptor

NO_TABLES_MARKER = "%% No tables found"

_ENTITY_BAD_RE = re.compile(r"[^A-Za-z0-9_-]")
# Mermaid attribute types are a single word; parentheses/commas/spaces break it.
_TYPE_BAD_RE = re.compile(r"[^A-Za-z0-9_\[\]-]")


def entity_name(name: str) -> str:
    return _ENTITY_BAD_RE.sub("_", name) or "_"


def attribute_type(data_type: str) -> str:
    cleaned = _TYPE_BAD_RE.sub("_", data_type.strip().upper())
    if cleaned[:1].isdigit():
        cleaned = "_" + cleaned
    return cleaned or "UNKNOWN"


def _key_marker(col: ColumnDescriptor) -> str:
    markers = []
    if col.primary_key:
        markers.append("PK")
    if col.foreign_key_target() is not None:
        markers.append("FK")
    return " " + ", ".join(markers) if markers else ""


def build_schema_graph(tables: Iterable[TableDescriptor]) -> SchemaGraph:
    """Collect FK references as (owning, referenced) pairs, deduplicated."""
    tables = tuple(tables)
    edges: List[Tuple[str, str]] = []
    labels: Dict[Tuple[str, str], str] = {}
    for table in tables:
        for col in table.columns:
            target = col.foreign_key_target()
            if target is None:
                continue
            pair = (table.name, target[0])
            if pair not in labels:
                edges.append(pair)
                labels[pair] = col.name
    return SchemaGraph(tables=tables, edges=tuple(edges), edge_labels=labels)


def render_mermaid(graph: SchemaGraph) -> str:
    lines = ["erDiagram"]
    if not graph.tables:
        lines.append(f"    {NO_TABLES_MARKER}")
        return "\n".join(lines)

    for table in graph.tables:
        lines.append(f"    {entity_name(table.name)} {{")
        for col in table.columns:
            lines.append(
                f"        {attribute_type(col.data_type)} "
                f"{entity_name(col.name)}{_key_marker(col)}"
            )
        lines.append("    }")

    for owning, referenced in graph.edges:
        label = entity_name(graph.edge_labels.get((owning, referenced), ""))
        lines.append(
            f'    {entity_name(referenced)} ||--o{{ {entity_name(owning)} : "{label}"'
        )
    return "\n".join(lines)


def generate_diagram(adapter: DBAdapter) -> str:
    return render_mermaid(build_schema_graph(adapter.describe_all()))
