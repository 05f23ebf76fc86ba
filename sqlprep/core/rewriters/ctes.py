"""Nested CTE hoisting.

Generated SQL (BI tools in particular) often nests a ``WITH`` block inside a
derived table::

    SELECT * FROM ( WITH a AS (SELECT 1) SELECT * FROM a ) t

Grammars without nested-CTE support reject this. The hoister moves the CTE
definitions to the top of the statement, either as a new ``WITH`` or merged
into the existing top-level ``WITH`` list, and leaves only the inner body in
the subquery.
"""

import re
from typing import Final, NamedTuple, Optional

from sqlprep.core.dialects import Dialect
from sqlprep.core.masking import find_matching_paren, mask, skip_whitespace

__all__ = ("MAX_HOIST_PASSES", "hoist_nested_ctes")

MAX_HOIST_PASSES: Final = 20

_PAREN_WITH_RE: Final = re.compile(r"\(\s*WITH\b", re.IGNORECASE)
_WITH_PREFIX_RE: Final = re.compile(r"\s*(WITH)\s+(?:RECURSIVE\s+)?", re.IGNORECASE)
_AS_RE: Final = re.compile(r"AS\b", re.IGNORECASE)
_CTE_BODY_START_RE: Final = re.compile(r"(?:SELECT|INSERT|UPDATE|DELETE|MERGE)\b", re.IGNORECASE)
_QUOTE_CLOSERS: Final = {'"': '"', "`": "`", "[": "]"}


class CteBlock(NamedTuple):
    """CTE definitions found after a nested ``WITH``."""

    text: str
    """``WITH name AS (...), ...`` exactly as written."""
    body_start: int
    """Offset of the statement the CTEs belong to."""


def _skip_cte_name(sql: str, position: int) -> int:
    """Return the offset after a plain or quoted CTE name, ``position`` if none."""
    if position >= len(sql):
        return position
    closer = _QUOTE_CLOSERS.get(sql[position])
    if closer is not None:
        close = sql.find(closer, position + 1)
        return len(sql) if close == -1 else close + 1
    end = position
    while end < len(sql) and (sql[end].isalnum() or sql[end] == "_"):
        end += 1
    return end


def _skip_to_name(sql: str, masked: str, position: int) -> int:
    # Double-quoted names are blank in the masked text.
    while position < len(masked) and masked[position].isspace() and sql[position] != '"':
        position += 1
    return position


def _with_prefix_end(sql: str, masked: str, position: int) -> int:
    """Offset of the first CTE name after the ``WITH`` at ``position``, ``-1`` if there is no ``WITH``."""
    prefix = _WITH_PREFIX_RE.match(masked, position)
    if prefix is None:
        return -1
    quote = sql.find('"', prefix.end(1), prefix.end())
    return prefix.end() if quote == -1 else quote


def _skip_cte_list(sql: str, masked: str, position: int) -> int:
    """Walk ``name [(cols)] AS (...) [, ...]`` starting at ``position``.

    Returns:
        Offset just past the last definition, or ``-1`` if the list is malformed.
    """
    while True:
        position = _skip_to_name(sql, masked, position)
        name_end = _skip_cte_name(sql, position)
        if name_end == position:
            return -1
        position = skip_whitespace(masked, name_end)
        if position < len(sql) and sql[position] == "(":
            columns_end = find_matching_paren(sql, position)
            if columns_end == -1:
                return -1
            position = skip_whitespace(masked, columns_end + 1)
        if not _AS_RE.match(masked, position):
            return -1
        position = skip_whitespace(masked, position + 2)
        if position >= len(sql) or sql[position] != "(":
            return -1
        body_end = find_matching_paren(sql, position)
        if body_end == -1:
            return -1
        position = skip_whitespace(masked, body_end + 1)
        if position < len(sql) and sql[position] == ",":
            position += 1
            continue
        return position


def _extract_cte_block(sql: str, masked: str, with_start: int) -> Optional[CteBlock]:
    names_start = _with_prefix_end(sql, masked, with_start)
    if names_start == -1:
        return None
    block_end = _skip_cte_list(sql, masked, names_start)
    if block_end == -1:
        return None
    body_start = skip_whitespace(masked, block_end)
    if not _CTE_BODY_START_RE.match(masked, body_start):
        return None
    return CteBlock(sql[with_start:block_end].strip(), body_start)


def _top_level_cte_end(masked: str, sql: str) -> int:
    """Offset just past the top-level CTE list, ``-1`` if there is none."""
    names_start = _with_prefix_end(sql, masked, 0)
    if names_start == -1:
        return -1
    return _skip_cte_list(sql, masked, names_start)


def _hoist_one(sql: str, masked: str) -> Optional[str]:
    for match in _PAREN_WITH_RE.finditer(masked):
        open_paren = match.start()
        if not masked[:open_paren].strip():
            continue
        block = _extract_cte_block(sql, masked, open_paren + 1)
        if block is None:
            continue
        close_paren = find_matching_paren(sql, open_paren)
        if close_paren == -1:
            continue

        inner = sql[block.body_start : close_paren].strip()
        rewritten = f"{sql[: open_paren + 1]}\n{inner}\n{sql[close_paren:]}"

        if _WITH_PREFIX_RE.match(masked) is None:
            return f"{block.text}\n{rewritten}"

        rewritten_masked = mask(rewritten)
        merge_point = _top_level_cte_end(rewritten_masked, rewritten)
        if merge_point == -1:
            continue
        definitions = _WITH_PREFIX_RE.sub("", block.text, count=1)
        return f"{rewritten[:merge_point].rstrip()},\n{definitions}\n{rewritten[merge_point:]}"
    return None


def hoist_nested_ctes(sql: str, dialect: Optional[Dialect] = None) -> Optional[str]:
    """Lift CTE blocks nested in subqueries to the top of the statement.

    Hoists one block per pass and re-masks the result, for at most
    :data:`MAX_HOIST_PASSES` passes. A candidate whose definitions cannot be
    walked is skipped rather than aborting the pass.

    Args:
        sql: SQL text.
        dialect: Ignored; nested CTEs are hoisted for every dialect.

    Returns:
        The rewritten SQL, or ``None`` if nothing was hoisted.
    """
    current = sql
    masked = mask(sql)
    hoisted = False
    for _ in range(MAX_HOIST_PASSES):
        result = _hoist_one(current, masked)
        if result is None:
            break
        current = result
        masked = mask(current)
        hoisted = True
    return current if hoisted else None
