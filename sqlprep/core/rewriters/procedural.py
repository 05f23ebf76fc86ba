"""Keyword rewrites for procedural dialects.

T-SQL scripts carry ``GO`` batch separators and ``WITH (NOLOCK)`` style table
hints; Teradata scripts use the ``SEL``/``INS``/``UPD``/``DEL`` statement
abbreviations and ``LOCKING ... FOR ACCESS`` request modifiers. None of these
change the structure of a query.
"""

import re
from typing import Final, Optional

from sqlprep.core.dialects import PROCEDURAL_DIALECTS, Dialect
from sqlprep.core.masking import EditBuffer, mask

__all__ = ("preprocess_procedural_keywords",)

_TABLE_HINTS: Final = (
    "NOLOCK",
    "READUNCOMMITTED",
    "READCOMMITTED",
    "REPEATABLEREAD",
    "SERIALIZABLE",
    "HOLDLOCK",
    "UPDLOCK",
    "ROWLOCK",
    "PAGLOCK",
    "TABLOCKX",
    "TABLOCK",
    "XLOCK",
    "READPAST",
    "NOWAIT",
)
_HINT_ALTERNATION: Final = "|".join(_TABLE_HINTS)

_GO_LINE_RE: Final = re.compile(r"^[ \t]*GO(?:[ \t]+\d+)?[ \t]*;?[ \t]*\r?$", re.IGNORECASE | re.MULTILINE)
_TABLE_HINT_RE: Final = re.compile(
    rf"\s*\bWITH\s*\(\s*(?:{_HINT_ALTERNATION})\b(?:\s*,\s*(?:{_HINT_ALTERNATION})\b)*\s*\)",
    re.IGNORECASE,
)
_ABBREVIATIONS: Final = {"SEL": "SELECT", "INS": "INSERT", "UPD": "UPDATE", "DEL": "DELETE"}
# Statement start: beginning of input, after ``;``, ``(``, a locking modifier or a set operator.
_ABBREVIATION_RE: Final = re.compile(
    r"(?:^|[;(]|\bACCESS(?:\s+MODE)?\b|\b(?:UNION(?:\s+ALL)?|INTERSECT|EXCEPT|MINUS)\b)"
    r"\s*(SEL|INS|UPD|DEL)(?![A-Za-z0-9_$])",
    re.IGNORECASE,
)
_LOCKING_RE: Final = re.compile(
    r"(?:^|;)\s*(LOCK(?:ING)?\s+(?:ROW|(?:TABLE|DATABASE|VIEW)\s+[\w$.\"]+)\s+(?:FOR|IN)\s+ACCESS(?:\s+MODE)?\b\s*)",
    re.IGNORECASE,
)


def _rewrite_transact_sql(sql: str) -> Optional[str]:
    masked = mask(sql)
    edits = EditBuffer(sql)
    hits: list[tuple[int, int, Optional[str]]] = [(m.start(), m.end(), None) for m in _GO_LINE_RE.finditer(masked)]
    hits.extend((m.start(), m.end(), "") for m in _TABLE_HINT_RE.finditer(masked))
    hits.sort(key=lambda hit: (hit[0], hit[1]))
    for start, end, replacement in hits:
        edits.add(start, end, replacement)
    return edits.apply()


def _rewrite_teradata(sql: str) -> Optional[str]:
    masked = mask(sql)
    edits = EditBuffer(sql)
    hits = sorted(
        [(m.start(1), m.end(1), "") for m in _LOCKING_RE.finditer(masked)]
        + [(m.start(1), m.end(1), _ABBREVIATIONS[m.group(1).upper()]) for m in _ABBREVIATION_RE.finditer(masked)],
        key=lambda hit: (hit[0], hit[1]),
    )
    for start, end, replacement in hits:
        edits.add(start, end, replacement)
    return edits.apply()


def preprocess_procedural_keywords(sql: str, dialect: Optional[Dialect]) -> Optional[str]:
    """Drop or expand procedural-dialect keywords the baseline grammar rejects.

    TransactSQL:
        ``GO`` batch separator lines are blanked and ``WITH (NOLOCK, ...)``
        table hints are removed.
    Teradata:
        ``SEL``, ``INS``, ``UPD`` and ``DEL`` at statement start are expanded,
        and a leading ``LOCKING ROW|TABLE t FOR ACCESS`` modifier is removed.

    Args:
        sql: SQL text.
        dialect: Active dialect; only the procedural dialects are rewritten.

    Returns:
        The rewritten SQL, or ``None`` if nothing changed.
    """
    if dialect not in PROCEDURAL_DIALECTS:
        return None
    if dialect is Dialect.TRANSACTSQL:
        return _rewrite_transact_sql(sql)
    return _rewrite_teradata(sql)
