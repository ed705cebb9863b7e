from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum
from typing import FrozenSet, List, Optional

import sqlglot
from sqlglot.tokens import Token, TokenType

from sqlgate.errors import StatementRejected
from sqlgate.metrics import safety_blocks_total, safety_checks_total


# ------------------------- Zero-width & basic regexes -------------------------

_ZERO_WIDTH = [
    "\u200b",
    "\u200c",
    "\u200d",
    "\ufeff",
    "\u2060",
    "\u180e",
    "\u200e",
    "\u200f",
]
_ZERO_WIDTH_RE = re.compile("|".join(map(re.escape, _ZERO_WIDTH)))

# Markdown code fences: ```sql\n ... \n```
_FENCE_RE = re.compile(r"^\s*```[a-zA-Z]*\n(?P<body>.*)\n```\s*$", re.DOTALL)

# Any comment opener (MySQL also treats '#' as a line comment)
_COMMENT_MARK_RE = re.compile(r"--|/\*|#")

_WORD_RE = re.compile(r"[A-Za-z_]+")

_MAX_SQL_LEN = 200_000  # longer texts are not lexed


# ------------------------------ Keyword tables ------------------------------

READ_ONLY_KEYWORDS: FrozenSet[str] = frozenset(
    {"SELECT", "WITH", "SHOW", "PRAGMA", "EXPLAIN"}
)

MUTATING_KEYWORDS: FrozenSet[str] = frozenset(
    {
        "INSERT",
        "UPDATE",
        "DELETE",
        "MERGE",
        "UPSERT",
        "REPLACE",
        "CREATE",
        "DROP",
        "ALTER",
        "TRUNCATE",
        "RENAME",
        "COMMENT",
        "GRANT",
        "REVOKE",
        "ATTACH",
        "DETACH",
        "VACUUM",
        "REINDEX",
        "ANALYZE",
        "CLUSTER",
        "COPY",
        "LOAD",
        "CALL",
        "DO",
        "EXEC",
        "EXECUTE",
        "PREPARE",
        "DEALLOCATE",
        "SET",
        "RESET",
        "BEGIN",
        "START",
        "COMMIT",
        "ROLLBACK",
        "SAVEPOINT",
        "RELEASE",
        "LOCK",
        "UNLOCK",
        "USE",
        "KILL",
        "FLUSH",
        "OPTIMIZE",
        "REFRESH",
        "DISCARD",
        "LISTEN",
        "NOTIFY",
        "UNLISTEN",
        "INSTALL",
        "UNINSTALL",
        "HANDLER",
    }
)

# LIMIT is valid after these in every supported dialect.
LIMITABLE_KEYWORDS: FrozenSet[str] = frozenset({"SELECT", "WITH"})

# Tokens whose text is literal content, never a keyword.
_QUOTED_TOKENS = frozenset({TokenType.STRING, TokenType.IDENTIFIER})


class StatementKind(str, Enum):
    READ_ONLY = "read_only"
    MUTATING = "mutating"
    UNPARSEABLE = "unparseable"


@dataclass(frozen=True)
class Classification:
    kind: StatementKind
    keyword: Optional[str]
    sql: str
    multiple_statements: bool = False

    @property
    def read_only(self) -> bool:
        return self.kind is StatementKind.READ_ONLY


# ------------------------------ Normalization ------------------------------


def _strip_fences(sql: str) -> str:
    m = _FENCE_RE.match(sql)
    return m.group("body") if m else sql


def _strip_trailing_terminators(body: str) -> str:
    """'SELECT 1;;' -> 'SELECT 1'."""
    body = body.rstrip()
    while body.endswith(";"):
        body = body[:-1].rstrip()
    return body


def normalize(sql: Optional[str]) -> str:
    """
    Remove zero-width chars, strip markdown fences, trim, and drop trailing
    terminators. The result is the exact text that gets executed.
    """
    if not sql:
        return ""
    sql = _ZERO_WIDTH_RE.sub("", sql)
    sql = _strip_fences(sql)
    sql = sql.strip()
    return _strip_trailing_terminators(sql)


# ------------------------------ Lexing helpers ------------------------------


def _tokenize(sql: str, dialect: Optional[str]) -> Optional[List[Token]]:
    """Lex with sqlglot; None means the text could not be lexed at all."""
    try:
        return sqlglot.tokenize(sql, read=dialect)
    except Exception:
        # Unterminated literals/comments and friends. Callers fail closed.
        return None


def _leading_keyword(tokens: List[Token]) -> Optional[str]:
    if not tokens:
        return None
    first = tokens[0]
    if first.token_type in _QUOTED_TOKENS:
        return None
    # sqlglot folds some multi-word keywords into one token; keep the first word.
    words = first.text.split()
    if not words or not _WORD_RE.fullmatch(words[0]):
        return None
    return words[0].upper()


def _has_trailing_statement(tokens: List[Token]) -> bool:
    """True when a terminator is followed by anything but more terminators."""
    seen_terminator = False
    for tok in tokens:
        if tok.token_type == TokenType.SEMICOLON:
            seen_terminator = True
        elif seen_terminator:
            return True
    return False


def _has_top_level_limit(tokens: List[Token]) -> bool:
    depth = 0
    for tok in tokens:
        if tok.token_type == TokenType.L_PAREN:
            depth += 1
        elif tok.token_type == TokenType.R_PAREN:
            depth = max(depth - 1, 0)
        elif tok.token_type == TokenType.LIMIT and depth == 0:
            return True
    return False


_CTE_BODY_KEYWORDS = frozenset({"SELECT", "INSERT", "UPDATE", "DELETE", "MERGE"})


def _cte_body_keyword(tokens: List[Token]) -> Optional[str]:
    """Keyword of the statement that follows a WITH list, None if unrecognised."""
    depth = 0
    for tok in tokens[1:]:
        if tok.token_type == TokenType.L_PAREN:
            depth += 1
        elif tok.token_type == TokenType.R_PAREN:
            depth = max(depth - 1, 0)
        elif depth == 0 and tok.token_type not in _QUOTED_TOKENS:
            word = tok.text.upper()
            if word in _CTE_BODY_KEYWORDS:
                return word
    return None


# ------------------------------ Public API ------------------------------


def classify(sql: Optional[str], dialect: Optional[str] = None) -> Classification:
    """
    Lexical classification: look only at the first keyword after leading
    whitespace/comments. Pure and deterministic for a given text.
    """
    body = normalize(sql)
    if not body or len(body) > _MAX_SQL_LEN:
        return Classification(StatementKind.UNPARSEABLE, None, body)

    tokens = _tokenize(body, dialect)
    if not tokens:
        return Classification(StatementKind.UNPARSEABLE, None, body)

    keyword = _leading_keyword(tokens)
    multiple = _has_trailing_statement(tokens)
    if keyword in READ_ONLY_KEYWORDS:
        kind = StatementKind.READ_ONLY
    elif keyword in MUTATING_KEYWORDS:
        kind = StatementKind.MUTATING
    else:
        kind = StatementKind.UNPARSEABLE
    return Classification(kind, keyword, body, multiple_statements=multiple)


def has_limit_clause(sql: str, dialect: Optional[str] = None) -> bool:
    """LIMIT keyword at paren depth 0, ignoring strings, identifiers and comments."""
    tokens = _tokenize(sql, dialect)
    return bool(tokens) and _has_top_level_limit(tokens or [])


def inject_limit(sql: str, row_cap: int, dialect: Optional[str] = None) -> str:
    """
    Append `LIMIT <row_cap>` to a SELECT/WITH statement that has no top-level
    LIMIT. Statements that already carry one come back byte-for-byte.
    """
    tokens = _tokenize(sql, dialect)
    if not tokens:
        return sql
    keyword = _leading_keyword(tokens)
    if keyword not in LIMITABLE_KEYWORDS:
        return sql
    # WITH ... INSERT/UPDATE/DELETE takes no LIMIT.
    if keyword == "WITH" and _cte_body_keyword(tokens) != "SELECT":
        return sql
    if _has_top_level_limit(tokens):
        return sql

    body = sql
    # Cut at a trailing terminator so the clause lands inside the statement.
    while tokens and tokens[-1].token_type == TokenType.SEMICOLON:
        body = body[: tokens[-1].start]
        tokens = tokens[:-1]
    body = _strip_trailing_terminators(body)

    # A trailing line comment would swallow a same-line LIMIT.
    sep = "\n" if _COMMENT_MARK_RE.search(body) else " "
    return f"{body}{sep}LIMIT {int(row_cap)}"


class Safety:
    """
    Gate for user-supplied statements.

    Restricted mode (default) lets only read-only classes through; unrestricted
    mode lets everything through. Multi-statement batches are rejected in both.
    """

    def __init__(self, allow_write: bool = False, dialect: Optional[str] = None) -> None:
        self.allow_write = allow_write
        self.dialect = dialect

    def _block(self, reason: str, message: str, keyword: Optional[str]) -> None:
        safety_blocks_total.labels(reason=reason).inc()
        safety_checks_total.labels(ok="false").inc()
        raise StatementRejected(
            message,
            keyword=keyword,
            extra={"keyword": keyword, "reason": reason},
        )

    def check(self, sql: Optional[str]) -> Classification:
        body = normalize(sql)
        if not body:
            self._block("empty_sql", "Empty SQL statement", "<empty>")

        result = classify(body, self.dialect)

        if result.multiple_statements:
            self._block(
                "multiple_statements",
                "Multiple statements are not allowed; send one statement per call",
                ";",
            )

        if not self.allow_write and not result.read_only:
            keyword = result.keyword or "<unrecognized>"
            reason = (
                "mutating"
                if result.kind is StatementKind.MUTATING
                else "unparseable"
            )
            self._block(
                reason,
                f"Statement rejected in read-only mode: {keyword}. "
                "Only SELECT/WITH/SHOW/PRAGMA/EXPLAIN statements are allowed.",
                keyword,
            )

        safety_checks_total.labels(ok="true").inc()
        return result
