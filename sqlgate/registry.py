"""
Database registry: the immutable set of configured connections.

Built once at start-up from connection URLs; afterwards it is only read,
so request handlers can resolve against it concurrently without locks.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Tuple, Type
from urllib.parse import urlsplit, urlunsplit

import yaml

from adapters.db.base import DBAdapter, DEFAULT_COUNT_TIMEOUT_SEC
from adapters.db.mysql_adapter import MySQLAdapter
from adapters.db.postgres_adapter import PostgresAdapter
from adapters.db.sqlite_adapter import MEMORY, SQLiteAdapter, sqlite_path_from_url
from sqlgate.errors import (
    AmbiguousDatabase,
    ConfigError,
    NoDatabaseConfigured,
    UnknownDatabase,
)
from sqlgate.types import BackendKind

log = logging.getLogger(__name__)

BACKENDS: Dict[BackendKind, Type[DBAdapter]] = {
    BackendKind.POSTGRES: PostgresAdapter,
    BackendKind.MYSQL: MySQLAdapter,
    BackendKind.SQLITE: SQLiteAdapter,
}

_SCHEMES: Tuple[Tuple[str, BackendKind], ...] = (
    ("postgres://", BackendKind.POSTGRES),
    ("postgresql://", BackendKind.POSTGRES),
    ("mysql://", BackendKind.MYSQL),
    ("mariadb://", BackendKind.MYSQL),
    ("sqlite:", BackendKind.SQLITE),
)


@dataclass(frozen=True)
class DatabaseSpec:
    """One configured database before its adapter exists."""

    url: str
    name: Optional[str] = None


@dataclass(frozen=True)
class ConnectionEntry:
    name: str
    backend: BackendKind
    adapter: DBAdapter
    url_redacted: str


# ------------------------------ URL helpers ------------------------------


def backend_from_url(url: str) -> BackendKind:
    for prefix, kind in _SCHEMES:
        if url.startswith(prefix):
            return kind
    raise ConfigError(
        f"Unsupported database URL scheme: {redact_url(url)}",
        details=["expected postgres://, postgresql://, mysql://, mariadb:// or sqlite:"],
    )


def extract_db_name(url: str, backend: BackendKind) -> str:
    """
    Human-friendly name for an entry:
    sqlite -> file stem ('memory' for in-memory); servers -> database segment.
    """
    if backend is BackendKind.SQLITE:
        path = sqlite_path_from_url(url)
        if path == MEMORY:
            return "memory"
        return Path(path).stem or "sqlite"
    try:
        path = urlsplit(url).path.strip("/")
    except ValueError:
        path = ""
    return path or backend.value


def redact_url(url: str) -> str:
    """Mask the password component; URLs without one come back unchanged."""
    try:
        parts = urlsplit(url)
        if parts.password is None:
            return url
    except ValueError:
        return url
    userinfo = f"{parts.username or ''}:****"
    host = parts.hostname or ""
    if ":" in host:
        host = f"[{host}]"
    try:
        port = parts.port
    except ValueError:
        port = None
    netloc = f"{userinfo}@{host}" + (f":{port}" if port else "")
    return urlunsplit((parts.scheme, netloc, parts.path, parts.query, parts.fragment))


def _unique_name(base: str, taken: Iterable[str]) -> str:
    taken = set(taken)
    if base not in taken:
        return base
    n = 2
    while f"{base}_{n}" in taken:
        n += 1
    return f"{base}_{n}"


# ------------------------------ Config loading ------------------------------


def load_database_specs(
    urls_raw: str = "", config_path: Optional[str] = None
) -> List[DatabaseSpec]:
    """
    YAML entries first (`databases: [{url, name?}]`), then whitespace-separated
    URLs from the environment.
    """
    specs: List[DatabaseSpec] = []
    if config_path:
        specs.extend(_specs_from_yaml(Path(config_path)))
    specs.extend(DatabaseSpec(url=u) for u in urls_raw.split())
    return specs


def _specs_from_yaml(path: Path) -> List[DatabaseSpec]:
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except (OSError, yaml.YAMLError) as exc:
        raise ConfigError(
            f"Could not read database config {path}: {exc}",
            extra={"path": str(path)},
        ) from exc

    items = data.get("databases") if isinstance(data, dict) else None
    if items is None:
        items = []
    if not isinstance(items, list):
        raise ConfigError(
            f"Database config {path}: 'databases' must be a list",
            extra={"path": str(path)},
        )

    specs: List[DatabaseSpec] = []
    for i, item in enumerate(items):
        if isinstance(item, str):
            specs.append(DatabaseSpec(url=item))
            continue
        if not isinstance(item, dict) or not item.get("url"):
            raise ConfigError(
                f"Database config {path}: entry {i} needs a 'url'",
                extra={"path": str(path), "index": i},
            )
        name = item.get("name")
        specs.append(DatabaseSpec(url=str(item["url"]), name=str(name) if name else None))
    return specs


# ------------------------------ Registry ------------------------------


class DatabaseRegistry:
    """Resolves a requested database name (or its absence) to one entry."""

    def __init__(self, entries: Iterable[ConnectionEntry] = ()) -> None:
        self._entries: Tuple[ConnectionEntry, ...] = tuple(entries)
        names = [e.name for e in self._entries]
        if len(set(names)) != len(names):
            raise ConfigError(f"Duplicate database names: {names}")

    @property
    def entries(self) -> Tuple[ConnectionEntry, ...]:
        return self._entries

    @property
    def names(self) -> List[str]:
        return [e.name for e in self._entries]

    def __len__(self) -> int:
        return len(self._entries)

    def resolve(self, requested_name: Optional[str] = None) -> ConnectionEntry:
        if not self._entries:
            raise NoDatabaseConfigured(
                "No databases are configured",
                details=["set SQLGATE_DATABASE_URLS or SQLGATE_DATABASES_CONFIG"],
            )
        if requested_name:
            for entry in self._entries:
                if entry.name == requested_name:
                    return entry
            available = ", ".join(self.names)
            raise UnknownDatabase(
                f"Database '{requested_name}' not found. Available: {available}",
                extra={"requested": requested_name, "available": self.names},
            )
        if len(self._entries) == 1:
            return self._entries[0]
        raise AmbiguousDatabase(
            "Multiple databases configured; pass 'database' with one of: "
            + ", ".join(self.names),
            details=self.names,
            extra={"available": self.names},
        )

    def close(self) -> None:
        for entry in self._entries:
            try:
                entry.adapter.close()
            except Exception:
                log.warning(
                    "Failed to close database adapter",
                    extra={"database": entry.name},
                    exc_info=True,
                )


def _make_adapter(
    backend: BackendKind, url: str, *, count_timeout: float, pool_size: int
) -> DBAdapter:
    cls = BACKENDS[backend]
    if backend is BackendKind.SQLITE:
        return cls.from_url(url, count_timeout=count_timeout)  # type: ignore[attr-defined]
    if backend is BackendKind.POSTGRES:
        return cls(url, count_timeout=count_timeout, pool_size=pool_size)  # type: ignore[call-arg]
    return cls(url, count_timeout=count_timeout)  # type: ignore[call-arg]


def build_registry(
    specs: Iterable[DatabaseSpec],
    *,
    count_timeout: float = DEFAULT_COUNT_TIMEOUT_SEC,
    pool_size: int = 5,
) -> DatabaseRegistry:
    specs = list(specs)
    explicit = [spec.name for spec in specs if spec.name]
    duplicated = sorted({n for n in explicit if explicit.count(n) > 1})
    if duplicated:
        raise ConfigError(
            f"Duplicate database names: {', '.join(duplicated)}",
            details=duplicated,
        )

    entries: List[ConnectionEntry] = []
    try:
        for spec in specs:
            backend = backend_from_url(spec.url)
            if spec.name:
                name = spec.name
            else:
                # Derived names step around every explicit one.
                name = _unique_name(
                    extract_db_name(spec.url, backend),
                    [*explicit, *(e.name for e in entries)],
                )
            adapter = _make_adapter(
                backend, spec.url, count_timeout=count_timeout, pool_size=pool_size
            )
            entry = ConnectionEntry(
                name=name,
                backend=backend,
                adapter=adapter,
                url_redacted=redact_url(spec.url),
            )
            entries.append(entry)
            log.info(
                "Registered database",
                extra={
                    "database": name,
                    "backend": backend.value,
                    "url": entry.url_redacted,
                },
            )
    except Exception:
        # Release pools already opened for earlier entries.
        DatabaseRegistry(entries).close()
        raise
    return DatabaseRegistry(entries)
