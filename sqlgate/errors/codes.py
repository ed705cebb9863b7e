from enum import Enum


class ErrorCode(str, Enum):
    # --- Registry ---
    UNKNOWN_DATABASE = "UNKNOWN_DATABASE"
    AMBIGUOUS_DATABASE = "AMBIGUOUS_DATABASE"
    NO_DATABASE_CONFIGURED = "NO_DATABASE_CONFIGURED"

    # --- Safety ---
    STATEMENT_REJECTED = "STATEMENT_REJECTED"
    INVALID_IDENTIFIER = "INVALID_IDENTIFIER"

    # --- Catalog ---
    TABLE_NOT_FOUND = "TABLE_NOT_FOUND"
    INDEXES_UNAVAILABLE = "INDEXES_UNAVAILABLE"

    # --- Executor / DB ---
    QUERY_TIMEOUT = "QUERY_TIMEOUT"
    BACKEND_ERROR = "BACKEND_ERROR"

    # --- Startup ---
    CONFIG_ERROR = "CONFIG_ERROR"
