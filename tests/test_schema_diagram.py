from adapters.db.sqlite_adapter import SQLiteAdapter
from sqlgate.schema_diagram import (
    NO_TABLES_MARKER,
    attribute_type,
    build_schema_graph,
    entity_name,
    generate_diagram,
    render_mermaid,
)
from sqlgate.types import ColumnDescriptor, TableDescriptor


def _relationship_lines(diagram: str):
    return [line.strip() for line in diagram.splitlines() if "||--o{" in line]


def test_diagram_has_one_line_per_table_pair(shop_db):
    diagram = generate_diagram(SQLiteAdapter(shop_db))
    assert diagram.startswith("erDiagram\n")
    assert sorted(_relationship_lines(diagram)) == sorted(
        [
            'users ||--o{ posts : "user_id"',
            'users ||--o{ comments : "user_id"',
            'posts ||--o{ comments : "post_id"',
        ]
    )


def test_diagram_attribute_markers(shop_db):
    diagram = generate_diagram(SQLiteAdapter(shop_db))
    assert "    users {" in diagram
    assert "        INTEGER id PK" in diagram
    assert "        INTEGER user_id FK" in diagram
    assert "        TEXT email\n" in diagram


def test_zero_tables_gives_marked_shell(empty_db):
    assert generate_diagram(SQLiteAdapter(empty_db)) == f"erDiagram\n    {NO_TABLES_MARKER}"


def test_two_fk_columns_to_same_table_dedupe():
    table = TableDescriptor(
        name="transfers",
        columns=(
            ColumnDescriptor("id", "integer", False, primary_key=True),
            ColumnDescriptor("from_account", "integer", False, foreign_key="accounts.id"),
            ColumnDescriptor("to_account", "integer", False, foreign_key="accounts.id"),
        ),
    )
    graph = build_schema_graph([table])
    assert graph.edges == (("transfers", "accounts"),)
    assert _relationship_lines(render_mermaid(graph)) == [
        'accounts ||--o{ transfers : "from_account"'
    ]


def test_pk_that_is_also_fk():
    table = TableDescriptor(
        name="profiles",
        columns=(
            ColumnDescriptor("user_id", "int", False, primary_key=True, foreign_key="users.id"),
        ),
    )
    assert "        INT user_id PK, FK" in render_mermaid(build_schema_graph([table]))


def test_schema_qualified_names_are_mermaid_safe():
    table = TableDescriptor(
        name="sales.orders",
        columns=(
            ColumnDescriptor("customer_id", "int", True, foreign_key="crm.customers.id"),
        ),
    )
    diagram = render_mermaid(build_schema_graph([table]))
    assert "    sales_orders {" in diagram
    assert 'crm_customers ||--o{ sales_orders : "customer_id"' in diagram


def test_type_and_entity_sanitizing():
    assert attribute_type("character varying(255)") == "CHARACTER_VARYING_255_"
    assert attribute_type("") == "UNKNOWN"
    assert attribute_type("numeric(10, 2)") == "NUMERIC_10__2_"
    assert entity_name("order items") == "order_items"
