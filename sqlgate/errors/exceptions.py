from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from sqlgate.errors.codes import ErrorCode


@dataclass
class GatewayError(Exception):
    """Base class for domain-level errors."""

    message: str
    code: ErrorCode = ErrorCode.BACKEND_ERROR
    details: Optional[List[str]] = None
    extra: Dict[str, Any] = field(default_factory=dict)

    def __str__(self) -> str:
        return self.message


# --- Registry ---
@dataclass
class UnknownDatabase(GatewayError):
    code: ErrorCode = ErrorCode.UNKNOWN_DATABASE


@dataclass
class AmbiguousDatabase(GatewayError):
    code: ErrorCode = ErrorCode.AMBIGUOUS_DATABASE


@dataclass
class NoDatabaseConfigured(GatewayError):
    code: ErrorCode = ErrorCode.NO_DATABASE_CONFIGURED


# --- Safety ---
@dataclass
class StatementRejected(GatewayError):
    code: ErrorCode = ErrorCode.STATEMENT_REJECTED
    keyword: Optional[str] = None


@dataclass
class InvalidIdentifier(GatewayError):
    code: ErrorCode = ErrorCode.INVALID_IDENTIFIER


# --- Catalog ---
@dataclass
class TableNotFound(GatewayError):
    code: ErrorCode = ErrorCode.TABLE_NOT_FOUND


@dataclass
class IndexesUnavailable(GatewayError):
    code: ErrorCode = ErrorCode.INDEXES_UNAVAILABLE


# --- Execution ---
@dataclass
class QueryTimeout(GatewayError):
    code: ErrorCode = ErrorCode.QUERY_TIMEOUT
    timeout_sec: float = 0.0


@dataclass
class BackendError(GatewayError):
    """Opaque passthrough of a driver failure, tagged with the backend."""

    code: ErrorCode = ErrorCode.BACKEND_ERROR
    backend: str = ""


# --- Startup ---
@dataclass
class ConfigError(GatewayError):
    code: ErrorCode = ErrorCode.CONFIG_ERROR
