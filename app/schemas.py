from typing import List, Optional, Any, Dict

from pydantic import BaseModel, ConfigDict, Field


# -------------------------------
# Requests
# -------------------------------
class DatabaseRequest(BaseModel):
    model_config = ConfigDict(extra="ignore")

    database: Optional[str] = None


class TableRequest(DatabaseRequest):
    table: str


class SampleDataRequest(TableRequest):
    where: Optional[str] = None
    limit: Optional[int] = Field(default=None, ge=1)


class SQLRequest(DatabaseRequest):
    sql: str


# -------------------------------
# Responses
# -------------------------------
class DatabaseInfo(BaseModel):
    name: str
    type: str
    url: str


class ListDatabasesResponse(BaseModel):
    databases: List[DatabaseInfo] = Field(default_factory=list)


class TableSummaryModel(BaseModel):
    table_name: str
    row_count: int


class ListTablesResponse(BaseModel):
    tables: List[TableSummaryModel] = Field(default_factory=list)


class ColumnModel(BaseModel):
    name: str
    data_type: str
    nullable: bool
    default: Optional[str] = None
    primary_key: bool = False
    foreign_key: Optional[str] = None


class IndexModel(BaseModel):
    name: str
    columns: List[str]
    unique: bool = False


class DescribeTableResponse(BaseModel):
    table: str
    columns: List[ColumnModel]
    indexes: List[IndexModel] = Field(default_factory=list)


class ListIndexesResponse(BaseModel):
    table: str
    indexes: List[IndexModel] = Field(default_factory=list)


class CreateTableResponse(BaseModel):
    table: str
    ddl: str
    reconstructed: bool = False
    note: Optional[str] = None


class SchemaResponse(BaseModel):
    diagram: str


class SampleDataResponse(BaseModel):
    table: str
    rows: List[Dict[str, Any]] = Field(default_factory=list)
    count: int = 0


class QueryResponse(BaseModel):
    rows: List[Dict[str, Any]] = Field(default_factory=list)
    count: int = 0
    columns: List[str] = Field(default_factory=list)
    sql: str
    affected_rows: Optional[int] = None


class ExplainResponse(BaseModel):
    plan: List[Dict[str, Any]] = Field(default_factory=list)


class DryRunResponse(BaseModel):
    model_config = ConfigDict(extra="ignore")

    valid: bool
    query_plan: Optional[List[Dict[str, Any]]] = None
    error: Optional[str] = None
