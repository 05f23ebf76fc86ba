"""GROUPING SETS flattening.

``GROUP BY a GROUPING SETS ((a), (b), (a, b))`` becomes ``GROUP BY a, b``:
every column of every grouping set is merged with the plain ``GROUP BY``
columns and de-duplicated on a whitespace-collapsed, case-folded key. This
loses the grouping-set semantics but keeps the column references, which is
all structure extraction needs.
"""

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
from sqlprep.utils.text import normalize_sql_expression

__all__ = ("rewrite_grouping_sets",)

_GROUP_BY_RE: Final = re.compile(r"\bGROUP\s+BY\b", re.IGNORECASE)
_GROUPING_SETS_RE: Final = re.compile(r"\bGROUPING\s+SETS\s*\(", re.IGNORECASE)
_GROUP_BY_TERMINATORS: Final = keyword_pattern(
    "HAVING",
    "QUALIFY",
    "WINDOW",
    "LIMIT",
    "FETCH",
    "OFFSET",
    "UNION",
    "INTERSECT",
    "EXCEPT",
    "ORDER BY",
)


def _dedupe(expressions: list[str]) -> list[str]:
    seen: set[str] = set()
    unique: list[str] = []
    for expression in expressions:
        stripped = expression.strip()
        if not stripped:
            continue
        key = normalize_sql_expression(stripped)
        if key in seen:
            continue
        seen.add(key)
        unique.append(stripped)
    return unique


def _grouping_set_columns(body: str) -> list[str]:
    """Flatten ``(a), (b, c), d`` into ``a, b, c, d``."""
    columns: list[str] = []
    for item in split_top_level_commas(body):
        item = item.strip()
        if item.startswith("(") and item.endswith(")"):
            columns.extend(split_top_level_commas(item[1:-1]))
        else:
            columns.append(item)
    return _dedupe(columns)


def _rewrite_clause(clause_sql: str, clause_masked: str) -> Optional[str]:
    """Flatten the body of one ``GROUP BY`` clause.

    Returns:
        The new column list (possibly empty), or ``None`` if the clause holds no
        ``GROUPING SETS``.
    """
    fragments: list[str] = []
    extracted: list[str] = []
    cursor = 0
    for match in _GROUPING_SETS_RE.finditer(clause_masked):
        if match.start() < cursor:
            continue
        open_paren = match.end() - 1
        close_paren = find_matching_paren(clause_masked, open_paren)
        if close_paren == -1:
            continue
        fragments.append(clause_sql[cursor : match.start()])
        extracted.extend(_grouping_set_columns(clause_sql[open_paren + 1 : close_paren]))
        cursor = close_paren + 1

    if cursor == 0:
        return None

    fragments.append(clause_sql[cursor:])
    plain_columns = [part for fragment in fragments for part in split_top_level_commas(fragment)]
    return ", ".join(_dedupe(plain_columns + extracted))


def rewrite_grouping_sets(sql: str, dialect: Optional[Dialect] = None) -> Optional[str]:
    """Flatten every ``GROUP BY ... GROUPING SETS (...)`` clause.

    The clause runs from ``GROUP BY`` to the next ``HAVING``, ``QUALIFY``,
    ``WINDOW``, ``LIMIT``, ``FETCH``, ``OFFSET``, set operator or
    ``ORDER BY`` at the same depth, a ``;``, or the ``)`` closing an enclosing
    subquery. A clause left without columns is removed entirely.

    Args:
        sql: SQL text.
        dialect: Ignored; grouping sets are rewritten for every dialect.

    Returns:
        The rewritten SQL, or ``None`` if nothing changed.
    """
    masked = mask(sql)
    edits = EditBuffer(sql)
    for match in _GROUP_BY_RE.finditer(masked):
        if match.start() < edits.last_end:
            continue
        clause_start = match.end()
        clause_end = find_clause_end(masked, clause_start, _GROUP_BY_TERMINATORS)
        columns = _rewrite_clause(sql[clause_start:clause_end], masked[clause_start:clause_end])
        if columns is None:
            continue
        edits.add(match.start(), clause_end, f"GROUP BY {columns}" if columns else "")
    return edits.apply()
