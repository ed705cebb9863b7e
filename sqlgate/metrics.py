from prometheus_client import Counter, Histogram
from sqlgate.prom import REGISTRY


# -----------------------------------------------------------------------------
#  Safety metrics
# -----------------------------------------------------------------------------
safety_checks_total = Counter(
    "safety_checks_total",
    "Total SQL statements checked by safety",
    ["ok"],  # "true" or "false"
    registry=REGISTRY,
)

safety_blocks_total = Counter(
    "safety_blocks_total",
    "Count of statements rejected before reaching a backend",
    ["reason"],  # e.g. mutating, unparseable, multiple_statements, empty_sql
    registry=REGISTRY,
)

# -----------------------------------------------------------------------------
#  Execution metrics
# -----------------------------------------------------------------------------
statement_duration_ms = Histogram(
    "statement_duration_ms",
    "Duration (ms) of backend statements",
    ["backend", "operation"],  # operation: query|explain|sample|count|catalog
    buckets=(1, 2, 5, 10, 20, 50, 100, 200, 500, 1000, 2000, 5000, 10000, 30000),
    registry=REGISTRY,
)

query_timeouts_total = Counter(
    "query_timeouts_total",
    "Statements cancelled after exceeding their time budget",
    ["backend"],
    registry=REGISTRY,
)

row_count_fallbacks_total = Counter(
    "row_count_fallbacks_total",
    "Tables reported with row_count=0 because counting did not complete",
    ["backend", "reason"],  # reason: timeout|error
    registry=REGISTRY,
)

# -----------------------------------------------------------------------------
#  Tool-level metrics
# -----------------------------------------------------------------------------
tool_calls_total = Counter(
    "tool_calls_total",
    "Tool invocations by tool and outcome",
    ["tool", "ok"],
    registry=REGISTRY,
)

# -----------------------------------------------------------------------------
#  Prime label sets so dashboards always have series
# -----------------------------------------------------------------------------
for ok in ("true", "false"):
    safety_checks_total.labels(ok=ok).inc(0)

for reason in ("empty_sql", "mutating", "unparseable", "multiple_statements"):
    safety_blocks_total.labels(reason=reason).inc(0)

for backend in ("postgres", "mysql", "sqlite"):
    query_timeouts_total.labels(backend=backend).inc(0)
    for reason in ("timeout", "error"):
        row_count_fallbacks_total.labels(backend=backend, reason=reason).inc(0)
