"""PostgreSQL literal simplification."""

import re
from typing import Final, Optional

from sqlprep.core.dialects import Dialect
from sqlprep.core.masking import EditBuffer, mask, skip_whitespace

__all__ = ("preprocess_postgres_syntax",)

_AT_TIME_ZONE_RE: Final = re.compile(r"\bAT\s+TIME\s+ZONE\b", re.IGNORECASE)
_TYPE_PREFIX_RE: Final = re.compile(r"\b(?:timestamptz|timestamp|date|time|interval)\b", re.IGNORECASE)


def _string_literal_end(sql: str, position: int) -> int:
    """Offset just past the ``'...'`` literal opening at ``position``."""
    i = position + 1
    while i < len(sql):
        if sql[i] == "'":
            if i + 1 < len(sql) and sql[i + 1] == "'":
                i += 2
                continue
            return i + 1
        i += 1
    return len(sql)


def _strip_at_time_zone(sql: str) -> Optional[str]:
    masked = mask(sql)
    edits = EditBuffer(sql)
    for match in _AT_TIME_ZONE_RE.finditer(masked):
        end = skip_whitespace(sql, match.end())
        if end < len(sql) and sql[end] == "'":
            end = _string_literal_end(sql, end)
        else:
            while end < len(sql) and (sql[end].isalnum() or sql[end] == "_"):
                end += 1
        edits.add(match.start(), end, "")
    return edits.apply()


def _strip_type_prefixes(sql: str) -> Optional[str]:
    masked = mask(sql)
    edits = EditBuffer(sql)
    for match in _TYPE_PREFIX_RE.finditer(masked):
        position = match.end()
        if position >= len(sql) or not sql[position].isspace():
            continue
        literal_start = skip_whitespace(sql, position)
        if literal_start < len(sql) and sql[literal_start] == "'":
            edits.add(match.start(), literal_start, "")
    return edits.apply()


def preprocess_postgres_syntax(sql: str, dialect: Optional[Dialect]) -> Optional[str]:
    """Simplify PostgreSQL literal syntax the baseline grammar rejects.

    Rewrites:
    1. ``AT TIME ZONE 'tz'`` / ``AT TIME ZONE ident`` is removed; the zone
       conversion does not affect query structure.
    2. A type keyword directly before a string literal (``timestamptz '...'``,
       ``timestamp``, ``date``, ``time``, ``interval``) is dropped, leaving the
       literal.

    Args:
        sql: SQL text.
        dialect: Active dialect; anything but PostgreSQL is left alone.

    Returns:
        The rewritten SQL, or ``None`` if nothing changed.
    """
    if dialect is not Dialect.POSTGRESQL:
        return None

    result = sql
    changed = False
    without_zones = _strip_at_time_zone(result)
    if without_zones is not None:
        result = without_zones
        changed = True

    without_prefixes = _strip_type_prefixes(result)
    if without_prefixes is not None:
        result = without_prefixes
        changed = True

    return result if changed else None
