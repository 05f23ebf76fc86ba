"""Oracle syntax stripping.

Oracle-only constructs are either removed or replaced with their standard
equivalent so that structure extraction can proceed:

- ``(+)`` outer join markers are removed.
- ``MINUS`` becomes ``EXCEPT``.
- ``START WITH`` / ``CONNECT BY`` / ``ORDER SIBLINGS BY`` clauses are blanked.
- ``PIVOT (...)`` / ``UNPIVOT (...)`` and ``MODEL ... RULES (...)`` are removed.
- ``AS OF SCN|TIMESTAMP <expr>`` flashback modifiers are removed.
- ``INTO :bind, ...`` after a ``RETURNING`` list is removed.

Each step re-masks the text produced by the previous one.
"""

import re
from collections.abc import Callable
from typing import Final, Optional

from sqlprep.core.dialects import Dialect
from sqlprep.core.masking import EditBuffer, find_clause_end, find_matching_paren, keyword_pattern, mask

__all__ = ("preprocess_oracle_syntax",)

_OUTER_JOIN_RE: Final = re.compile(r"\(\s*\+\s*\)")
_MINUS_RE: Final = re.compile(r"\bMINUS\b", re.IGNORECASE)
_HIERARCHICAL_RE: Final = re.compile(r"\b(?:START\s+WITH|CONNECT\s+BY|ORDER\s+SIBLINGS\s+BY)\b", re.IGNORECASE)
_HIERARCHICAL_TERMINATORS: Final = keyword_pattern(
    "SELECT",
    "FROM",
    "WHERE",
    "GROUP BY",
    "HAVING",
    "ORDER BY",
    "UNION",
    "INTERSECT",
    "EXCEPT",
    "MINUS",
    "FETCH",
    "LIMIT",
    "OFFSET",
    "START WITH",
    "CONNECT BY",
    "ORDER SIBLINGS BY",
)
_PIVOT_RE: Final = re.compile(r"\b(?:UN)?PIVOT\s*(?:(?:INCLUDE|EXCLUDE)\s+NULLS\s*)?\(", re.IGNORECASE)
_MODEL_RE: Final = re.compile(r"\bMODEL\s+(?=PARTITION\s+BY|DIMENSION\s+BY|MEASURES|RULES)", re.IGNORECASE)
_MODEL_RULES_RE: Final = re.compile(
    r"\bRULES\b(?:\s+(?:UPSERT(?:\s+ALL)?|UPDATE))?(?:\s+(?:AUTOMATIC|SEQUENTIAL)\s+ORDER)?"
    r"(?:\s+ITERATE\s*\(\s*\d+\s*\)(?:\s+UNTIL\s*)?)?\s*",
    re.IGNORECASE,
)
_FLASHBACK_RE: Final = re.compile(r"\bAS\s+OF\s+(?:SCN|TIMESTAMP)\b", re.IGNORECASE)
_FLASHBACK_TERMINATORS: Final = keyword_pattern(
    "WHERE",
    "JOIN",
    "INNER",
    "LEFT",
    "RIGHT",
    "FULL",
    "CROSS",
    "ON",
    "GROUP BY",
    "HAVING",
    "ORDER BY",
    "UNION",
    "INTERSECT",
    "EXCEPT",
    "MINUS",
    "FETCH",
    "CONNECT BY",
    "START WITH",
    "PIVOT",
    "UNPIVOT",
)
_RETURNING_RE: Final = re.compile(r"\bRETURNING\b", re.IGNORECASE)
_RETURNING_INTO_RE: Final = re.compile(r"\s+INTO\s+:\w+(?:\s*,\s*:\w+)*", re.IGNORECASE)


def _remove_outer_join_markers(sql: str, masked: str) -> Optional[str]:
    edits = EditBuffer(sql)
    for match in _OUTER_JOIN_RE.finditer(masked):
        edits.add(match.start(), match.end(), "")
    return edits.apply()


def _rewrite_minus(sql: str, masked: str) -> Optional[str]:
    edits = EditBuffer(sql)
    for match in _MINUS_RE.finditer(masked):
        edits.add(match.start(), match.end(), "EXCEPT")
    return edits.apply()


def _strip_hierarchical_clauses(sql: str, masked: str) -> Optional[str]:
    edits = EditBuffer(sql)
    for match in _HIERARCHICAL_RE.finditer(masked):
        end = find_clause_end(masked, match.end(), _HIERARCHICAL_TERMINATORS)
        edits.add(match.start(), end)
    return edits.apply()


def _strip_pivot_clauses(sql: str, masked: str) -> Optional[str]:
    edits = EditBuffer(sql)
    for match in _PIVOT_RE.finditer(masked):
        if match.start() < edits.last_end:
            continue
        close = find_matching_paren(sql, match.end() - 1)
        if close == -1:
            continue
        edits.add(match.start(), close + 1, "")
    return edits.apply()


def _strip_model_clauses(sql: str, masked: str) -> Optional[str]:
    edits = EditBuffer(sql)
    for match in _MODEL_RE.finditer(masked):
        if match.start() < edits.last_end:
            continue
        rules = _MODEL_RULES_RE.search(masked, match.end())
        if rules is None or rules.end() >= len(masked) or masked[rules.end()] != "(":
            continue
        close = find_matching_paren(sql, rules.end())
        if close == -1:
            continue
        edits.add(match.start(), close + 1, "")
    return edits.apply()


def _strip_flashback_queries(sql: str, masked: str) -> Optional[str]:
    edits = EditBuffer(sql)
    for match in _FLASHBACK_RE.finditer(masked):
        end = find_clause_end(masked, match.end(), _FLASHBACK_TERMINATORS, stop_at_comma=True)
        edits.add(match.start(), end, "")
    return edits.apply()


def _strip_returning_into(sql: str, masked: str) -> Optional[str]:
    edits = EditBuffer(sql)
    for match in _RETURNING_RE.finditer(masked):
        statement_end = masked.find(";", match.end())
        if statement_end == -1:
            statement_end = len(masked)
        into = _RETURNING_INTO_RE.search(masked, match.end(), statement_end)
        if into is None or into.start() < edits.last_end:
            continue
        edits.add(into.start(), into.end(), "")
    return edits.apply()


_ORACLE_STEPS: Final[tuple[Callable[[str, str], Optional[str]], ...]] = (
    _remove_outer_join_markers,
    _rewrite_minus,
    _strip_hierarchical_clauses,
    _strip_pivot_clauses,
    _strip_model_clauses,
    _strip_flashback_queries,
    _strip_returning_into,
)


def preprocess_oracle_syntax(sql: str, dialect: Optional[Dialect]) -> Optional[str]:
    """Rewrite Oracle-specific syntax into a form the baseline grammar accepts.

    Args:
        sql: SQL text.
        dialect: Active dialect; anything but Oracle is left alone.

    Returns:
        The rewritten SQL, or ``None`` if nothing changed.
    """
    if dialect is not Dialect.ORACLE:
        return None

    result = sql
    masked = mask(sql)
    changed = False
    for step in _ORACLE_STEPS:
        rewritten = step(result, masked)
        if rewritten is not None:
            result = rewritten
            masked = mask(result)
            changed = True
    return result if changed else None
