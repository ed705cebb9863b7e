"""
Identifier allow-listing for names that get interpolated into SQL text.

User-supplied full queries go through `sqlgate.safety`; this module guards the
other path, where a table/column/index name is spliced into a statement we
build ourselves (PRAGMA calls, COUNT(*), SELECT * FROM ...).
"""

from __future__ import annotations

import re
from typing import Optional, Tuple

from sqlgate.errors import InvalidIdentifier

_IDENT_RE = re.compile(r"[A-Za-z0-9_]+")


def sanitize_identifier(name: Optional[str]) -> str:
    """
    Return `name` unchanged if it is a safe bare identifier.

    Safe means: non-empty, ASCII letters/digits/underscore only, not purely
    numeric. Anything else (terminators, quotes, spaces, dots) raises
    InvalidIdentifier before any SQL text is built.
    """
    if name is None or not _IDENT_RE.fullmatch(name) or name.isdigit():
        raise InvalidIdentifier(
            f"Invalid identifier: {name!r}",
            details=["identifiers may contain only letters, digits and underscore"],
            extra={"identifier": name},
        )
    return name


def split_qualified(name: Optional[str]) -> Tuple[Optional[str], str]:
    """
    Split "schema.table" into (schema, table); a bare name gives (None, name).
    Each part is sanitized separately; more than one dot is rejected.
    """
    if name is None:
        raise InvalidIdentifier("Invalid identifier: None")
    parts = name.split(".")
    if len(parts) == 1:
        return None, sanitize_identifier(parts[0])
    if len(parts) == 2:
        return sanitize_identifier(parts[0]), sanitize_identifier(parts[1])
    raise InvalidIdentifier(
        f"Invalid identifier: {name!r}",
        details=["use 'table' or 'schema.table'"],
        extra={"identifier": name},
    )
