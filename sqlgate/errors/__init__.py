from sqlgate.errors.codes import ErrorCode
from sqlgate.errors.exceptions import (
    AmbiguousDatabase,
    BackendError,
    ConfigError,
    GatewayError,
    IndexesUnavailable,
    InvalidIdentifier,
    NoDatabaseConfigured,
    QueryTimeout,
    StatementRejected,
    TableNotFound,
    UnknownDatabase,
)
from sqlgate.errors.mapper import map_error

__all__ = [
    "ErrorCode",
    "map_error",
    "GatewayError",
    "UnknownDatabase",
    "AmbiguousDatabase",
    "NoDatabaseConfigured",
    "StatementRejected",
    "InvalidIdentifier",
    "TableNotFound",
    "IndexesUnavailable",
    "QueryTimeout",
    "BackendError",
    "ConfigError",
]
