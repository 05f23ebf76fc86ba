"""Character and expression helpers shared by the scanners and rewriters."""

import re
from typing import Final, Optional

__all__ = (
    "blank_out",
    "is_identifier_char",
    "is_sql_whitespace",
    "normalize_sql_expression",
)

_WHITESPACE_RUN_RE: Final = re.compile(r"\s+")

SQL_WHITESPACE: Final = frozenset(" \t\n\r")


def is_identifier_char(ch: Optional[str]) -> bool:
    """ASCII letters, digits and underscore."""
    if not ch:
        return False
    return ("0" <= ch <= "9") or ("A" <= ch <= "Z") or ("a" <= ch <= "z") or ch == "_"


def is_sql_whitespace(ch: Optional[str]) -> bool:
    return bool(ch) and ch in SQL_WHITESPACE


def normalize_sql_expression(expression: str) -> str:
    """Collapse whitespace and case-fold an expression for de-duplication."""
    return _WHITESPACE_RUN_RE.sub(" ", expression).strip().lower()


def blank_out(text: str) -> str:
    """Replace every character except newlines with a space."""
    return "".join(ch if ch in "\r\n" else " " for ch in text)
