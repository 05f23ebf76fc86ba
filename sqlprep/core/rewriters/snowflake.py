"""Snowflake syntax simplification."""

import re
from typing import Final, Optional

from sqlprep.core.dialects import Dialect
from sqlprep.core.masking import (
    EditBuffer,
    find_clause_end,
    find_matching_paren,
    keyword_pattern,
    mask,
    split_top_level_commas,
)

__all__ = (
    "collapse_snowflake_paths",
    "remove_trailing_commas",
    "rewrite_snowflake_iff",
    "strip_snowflake_casts",
    "strip_snowflake_qualify",
)

MAX_IFF_PASSES: Final = 32

_QUALIFY_RE: Final = re.compile(r"\bQUALIFY\b", re.IGNORECASE)
_QUALIFY_TERMINATORS: Final = keyword_pattern(
    "WINDOW",
    "ORDER BY",
    "LIMIT",
    "FETCH",
    "OFFSET",
    "UNION",
    "INTERSECT",
    "EXCEPT",
    "MINUS",
)
_IFF_RE: Final = re.compile(r"\bIFF\s*\(", re.IGNORECASE)
_TRAILING_COMMA_RE: Final = re.compile(r",(?=\s*(?:FROM|WHERE)(?![A-Za-z0-9_$]))", re.IGNORECASE)
_CAST_RE: Final = re.compile(r"::\s*[A-Za-z_]\w*(?:\s*\(\s*\d+(?:\s*,\s*\d+)?\s*\))?")
_DEEP_PATH_RE: Final = re.compile(r"\b([A-Za-z0-9_][\w$]*)((?::(?!:)[A-Za-z0-9_][\w$]*){3,})")


def strip_snowflake_qualify(sql: str, dialect: Optional[Dialect]) -> Optional[str]:
    """Remove ``QUALIFY <predicate>`` up to the next clause keyword."""
    if dialect is not Dialect.SNOWFLAKE:
        return None
    masked = mask(sql)
    edits = EditBuffer(sql)
    for match in _QUALIFY_RE.finditer(masked):
        end = find_clause_end(masked, match.end(), _QUALIFY_TERMINATORS)
        edits.add(match.start(), end, "")
    return edits.apply()


def _rewrite_iff_pass(sql: str) -> Optional[str]:
    masked = mask(sql)
    edits = EditBuffer(sql)
    for match in _IFF_RE.finditer(masked):
        if match.start() < edits.last_end:
            # Nested call; handled on the next pass.
            continue
        open_paren = match.end() - 1
        close_paren = find_matching_paren(sql, open_paren)
        if close_paren == -1:
            continue
        arguments = split_top_level_commas(sql[open_paren + 1 : close_paren])
        if len(arguments) != 3:
            continue
        condition, when_true, when_false = (argument.strip() for argument in arguments)
        edits.add(
            match.start(),
            close_paren + 1,
            f"CASE WHEN {condition} THEN {when_true} ELSE {when_false} END",
        )
    return edits.apply()


def rewrite_snowflake_iff(sql: str, dialect: Optional[Dialect]) -> Optional[str]:
    """Rewrite ``IFF(cond, a, b)`` as ``CASE WHEN cond THEN a ELSE b END``.

    Each pass rewrites the outermost calls only, so nested calls are reached
    one level per pass. Calls without exactly three arguments are left alone.

    Args:
        sql: SQL text.
        dialect: Active dialect; anything but Snowflake is left alone.

    Returns:
        The rewritten SQL, or ``None`` if nothing changed.
    """
    if dialect is not Dialect.SNOWFLAKE:
        return None
    result = sql
    changed = False
    for _ in range(MAX_IFF_PASSES):
        rewritten = _rewrite_iff_pass(result)
        if rewritten is None:
            break
        result = rewritten
        changed = True
    return result if changed else None


def remove_trailing_commas(sql: str, dialect: Optional[Dialect]) -> Optional[str]:
    """Drop a dangling comma before ``FROM`` or ``WHERE``."""
    if dialect is not Dialect.SNOWFLAKE:
        return None
    masked = mask(sql)
    edits = EditBuffer(sql)
    for match in _TRAILING_COMMA_RE.finditer(masked):
        edits.add(match.start(), match.end(), "")
    return edits.apply()


def strip_snowflake_casts(sql: str, dialect: Optional[Dialect]) -> Optional[str]:
    """Remove ``::type`` and ``::type(p[, s])`` cast suffixes."""
    if dialect is not Dialect.SNOWFLAKE:
        return None
    masked = mask(sql)
    edits = EditBuffer(sql)
    for match in _CAST_RE.finditer(masked):
        edits.add(match.start(), match.end(), "")
    return edits.apply()


def collapse_snowflake_paths(sql: str, dialect: Optional[Dialect]) -> Optional[str]:
    """Collapse ``root:a:b:c[...]`` path chains to ``root:a:b``.

    Two path segments after the root are enough for structure extraction.
    Chains with a numeric root (``12:34:56:78``) are skipped so time-like
    values survive, and a trailing ``::type`` cast is never part of the match.

    Args:
        sql: SQL text.
        dialect: Active dialect; anything but Snowflake is left alone.

    Returns:
        The rewritten SQL, or ``None`` if nothing changed.
    """
    if dialect is not Dialect.SNOWFLAKE:
        return None
    masked = mask(sql)
    edits = EditBuffer(sql)
    for match in _DEEP_PATH_RE.finditer(masked):
        if match.group(1).isdigit():
            continue
        segments = sql[match.start() : match.end()].split(":")
        edits.add(match.start(), match.end(), ":".join(segments[:3]))
    return edits.apply()
