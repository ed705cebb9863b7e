from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Security
from fastapi.security import APIKeyHeader

from app.dependencies import get_gateway_service
from app.schemas import (
    CreateTableResponse,
    DatabaseRequest,
    DescribeTableResponse,
    DryRunResponse,
    ExplainResponse,
    ListDatabasesResponse,
    ListIndexesResponse,
    ListTablesResponse,
    QueryResponse,
    SampleDataRequest,
    SampleDataResponse,
    SchemaResponse,
    SQLRequest,
    TableRequest,
)
from app.services.gateway_service import GatewayService
from app.settings import get_settings

logger = logging.getLogger(__name__)
settings = get_settings()

api_key_header = APIKeyHeader(name="X-API-Key", auto_error=False)


def require_api_key(key: Optional[str] = Security(api_key_header)):
    """
    Simple API key check using X-API-Key header and configured API keys.

    - Settings.api_keys_raw is a comma-separated list of keys.
    - If api_keys_raw is empty → auth disabled (dev mode).
    """
    raw = settings.api_keys_raw or ""
    allowed = {k.strip() for k in raw.split(",") if k.strip()}
    if not allowed:
        # No keys configured → treat as dev mode (auth off).
        return
    if not key or key not in allowed:
        raise HTTPException(status_code=401, detail="invalid API key")


router = APIRouter(
    prefix="/tools", tags=["tools"], dependencies=[Depends(require_api_key)]
)

# Domain errors (GatewayError) propagate to the registered exception handler,
# which renders the error contract. Routes stay sync: drivers block.


@router.post("/list_databases", response_model=ListDatabasesResponse)
def list_databases(svc: GatewayService = Depends(get_gateway_service)):
    return svc.list_databases()


@router.post("/list_tables", response_model=ListTablesResponse)
def list_tables(
    body: DatabaseRequest, svc: GatewayService = Depends(get_gateway_service)
):
    return svc.list_tables(database=body.database)


@router.post("/describe_table", response_model=DescribeTableResponse)
def describe_table(body: TableRequest, svc: GatewayService = Depends(get_gateway_service)):
    return svc.describe_table(body.table, database=body.database)


@router.post("/list_indexes", response_model=ListIndexesResponse)
def list_indexes(body: TableRequest, svc: GatewayService = Depends(get_gateway_service)):
    return svc.list_indexes(body.table, database=body.database)


@router.post("/show_create_table", response_model=CreateTableResponse)
def show_create_table(
    body: TableRequest, svc: GatewayService = Depends(get_gateway_service)
):
    return svc.show_create_table(body.table, database=body.database)


@router.post("/show_schema", response_model=SchemaResponse)
def show_schema(body: DatabaseRequest, svc: GatewayService = Depends(get_gateway_service)):
    return svc.show_schema(database=body.database)


@router.post("/sample_data", response_model=SampleDataResponse)
def sample_data(
    body: SampleDataRequest, svc: GatewayService = Depends(get_gateway_service)
):
    return svc.sample_data(
        body.table, where=body.where, limit=body.limit, database=body.database
    )


@router.post("/query", response_model=QueryResponse)
def query(body: SQLRequest, svc: GatewayService = Depends(get_gateway_service)):
    logger.debug("query tool called", extra={"database": body.database})
    return svc.query(body.sql, database=body.database)


@router.post("/explain", response_model=ExplainResponse)
def explain(body: SQLRequest, svc: GatewayService = Depends(get_gateway_service)):
    return svc.explain(body.sql, database=body.database)


@router.post(
    "/query_dry_run", response_model=DryRunResponse, response_model_exclude_none=True
)
def query_dry_run(body: SQLRequest, svc: GatewayService = Depends(get_gateway_service)):
    return svc.query_dry_run(body.sql, database=body.database)
