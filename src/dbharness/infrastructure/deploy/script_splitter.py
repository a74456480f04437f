"""
Heuristic splitting and classification of deployment scripts.

Scripts are split into batches on ``GO`` separator lines; each batch is
classified by its leading DDL keyword so rapid deploy can create parents
before dependents. This is not a SQL parser: only the first statement of a
batch decides its kind.
"""

from __future__ import annotations

import re
from enum import Enum
from typing import Iterable

_BATCH_SEPARATOR = re.compile(r"^[ \t]*GO(?:[ \t]+\d+)?[ \t]*(?:--.*)?$", re.IGNORECASE | re.MULTILINE)
_LEADING_NOISE = re.compile(r"\A(?:\s+|--[^\n]*(?:\n|\Z)|/\*.*?\*/)+", re.DOTALL)


class StatementKind(Enum):
    """Rapid deploy buckets, in execution order."""

    FILEGROUP = "filegroup"
    SCHEMA = "schema"
    TYPE = "type"
    TABLE = "table"
    LOGIN = "login"
    OTHER = "other"


_KIND_PATTERNS = (
    (StatementKind.FILEGROUP, re.compile(r"^ALTER\s+DATABASE\s+.+?\s+ADD\s+(?:FILEGROUP|FILE)\b", re.IGNORECASE | re.DOTALL)),
    (StatementKind.SCHEMA, re.compile(r"^CREATE\s+SCHEMA\b", re.IGNORECASE)),
    (StatementKind.TYPE, re.compile(r"^CREATE\s+TYPE\b", re.IGNORECASE)),
    (StatementKind.TABLE, re.compile(r"^CREATE\s+TABLE\b", re.IGNORECASE)),
    (StatementKind.LOGIN, re.compile(r"^CREATE\s+LOGIN\b", re.IGNORECASE)),
)


def split_batches(script: str) -> list[str]:
    """Split a script on GO lines, dropping empty batches."""
    return [batch.strip() for batch in _BATCH_SEPARATOR.split(script) if strip_leading_noise(batch)]


def strip_leading_noise(statement: str) -> str:
    """Remove leading whitespace and comments."""
    return _LEADING_NOISE.sub("", statement)


def classify_statement(statement: str) -> StatementKind:
    body = strip_leading_noise(statement)
    for kind, pattern in _KIND_PATTERNS:
        if pattern.match(body):
            return kind
    return StatementKind.OTHER


def bucket_statements(statements: Iterable[str]) -> dict[StatementKind, list[str]]:
    """Group statements by kind, keeping original order within each bucket."""
    buckets: dict[StatementKind, list[str]] = {kind: [] for kind in StatementKind}
    for statement in statements:
        buckets[classify_statement(statement)].append(statement)
    return buckets


def preview(statement: str, limit: int = 80) -> str:
    """One-line preview of a statement for log and error messages."""
    flat = " ".join(strip_leading_noise(statement).split())
    return flat if len(flat) <= limit else flat[: limit - 3] + "..."
