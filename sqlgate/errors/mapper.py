from sqlgate.errors.codes import ErrorCode

# Nothing is retryable: a timed-out write must never be re-sent blindly.
ERROR_MAP = {
    ErrorCode.UNKNOWN_DATABASE: (404, False),
    ErrorCode.AMBIGUOUS_DATABASE: (400, False),
    ErrorCode.NO_DATABASE_CONFIGURED: (503, False),
    ErrorCode.STATEMENT_REJECTED: (422, False),
    ErrorCode.INVALID_IDENTIFIER: (422, False),
    ErrorCode.TABLE_NOT_FOUND: (404, False),
    ErrorCode.INDEXES_UNAVAILABLE: (502, False),
    ErrorCode.QUERY_TIMEOUT: (504, False),
    ErrorCode.BACKEND_ERROR: (502, False),
    ErrorCode.CONFIG_ERROR: (500, False),
}


def map_error(code: ErrorCode | None) -> tuple[int, bool]:
    if code is None:
        return (500, False)
    return ERROR_MAP.get(code, (500, False))
