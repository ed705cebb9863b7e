from __future__ import annotations

import datetime as dt
import uuid
from decimal import Decimal
from typing import Any, Dict, List, Sequence, Tuple


def to_jsonable(value: Any) -> Any:
    """Coerce one driver value into something JSON can carry."""
    if value is None or isinstance(value, (bool, int, float, str)):
        return value
    if isinstance(value, (bytes, bytearray, memoryview)):
        return f"(blob: {len(bytes(value))} bytes)"
    if isinstance(value, Decimal):
        return float(value)
    if isinstance(value, (dt.datetime, dt.date, dt.time)):
        return value.isoformat()
    if isinstance(value, dt.timedelta):
        return value.total_seconds()
    if isinstance(value, uuid.UUID):
        return str(value)
    if isinstance(value, (list, tuple)):
        return [to_jsonable(v) for v in value]
    if isinstance(value, dict):
        return {str(k): to_jsonable(v) for k, v in value.items()}
    return str(value)


def rows_to_dicts(
    rows: Sequence[Tuple[Any, ...]], columns: Sequence[str]
) -> List[Dict[str, Any]]:
    """Zip positional rows with column names; later duplicates win."""
    return [
        {col: to_jsonable(val) for col, val in zip(columns, row)} for row in rows
    ]
