from dataclasses import asdict
from typing import Optional

from fastapi import APIRouter
from pydantic import BaseModel

from sqlgate.safety import classify, has_limit_clause, inject_limit
from app.settings import get_settings

router = APIRouter(prefix="/_dev", tags=["dev"])


class ClassifyBody(BaseModel):
    sql: str
    dialect: Optional[str] = None


@router.post("/classify")
def dev_classify(body: ClassifyBody):
    """
    Run the lexical classifier and LIMIT rewrite on a raw SQL string
    without touching any database.
    """
    result = classify(body.sql, body.dialect)
    out = asdict(result)
    out["kind"] = result.kind.value
    out["has_limit"] = has_limit_clause(result.sql, body.dialect)
    out["rewritten"] = (
        inject_limit(result.sql, get_settings().row_limit, body.dialect)
        if result.read_only
        else result.sql
    )
    return out
