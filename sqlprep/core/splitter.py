"""SQL script statement splitter.

Splits a multi-statement script in a single forward pass over the raw text.
The scanner keeps one lexical mode at a time (code, line comment, block
comment, string, dollar quote); while a non-code mode is active every other
rule is suspended until that mode's terminator is seen.

In code mode the scanner tracks:

- parenthesis depth
- ``CASE ... END`` depth
- procedural ``BEGIN ... END`` depth (see :func:`is_procedural_begin`)
- a custom terminator set by a ``DELIMITER <token>`` line

A statement boundary fires only when the active terminator matches in code
mode with both the paren and ``BEGIN ... END`` depths at zero. Unterminated
strings, comments, dollar quotes and blocks swallow the rest of the input into
the current statement.
"""

import re
from collections.abc import Callable
from enum import Enum
from typing import Final, Optional

from mypy_extensions import mypyc_attr

from sqlprep.core.masking import strip_leading_comments
from sqlprep.utils.logging import get_logger
from sqlprep.utils.text import is_identifier_char

__all__ = (
    "LexicalMode",
    "ScanState",
    "StatementSplitter",
    "count_sql_statements",
    "is_procedural_begin",
    "scan_sql_statements",
    "split_sql_statements",
)

logger = get_logger("core.splitter")

DEFAULT_DELIMITER: Final = ";"
BEGIN_LOOKAHEAD_CHARS: Final = 20
BEGIN_LOOKBEHIND_CHARS: Final = 200
END_LOOKAHEAD_CHARS: Final = 12

_NON_PROCEDURAL_BEGIN_RE: Final = re.compile(r"^(?:TRANSACTION|WORK|TRAN|TRY|CATCH)\b")
_PROCEDURAL_PRECEDER_RE: Final = re.compile(r"\b(?:AS|THEN|ELSE|LOOP|IS)\s*$")
_ROUTINE_HEADER_RE: Final = re.compile(r"\bCREATE\s+(?:OR\s+REPLACE\s+)?(?:FUNCTION|PROCEDURE|TRIGGER)\b[^;]*$")
_BLOCK_QUALIFIER_RE: Final = re.compile(r"^(?:TRY|CATCH|IF|LOOP|WHILE)\b")
_DELIMITER_RE: Final = re.compile(r"DELIMITER\s+(\S+)", re.IGNORECASE)
_DOLLAR_TAG_CHAR_RE: Final = re.compile(r"[A-Za-z0-9_]")

StatementCallback = Callable[[str], None]


class LexicalMode(Enum):
    """The single lexical mode the scanner is in."""

    CODE = "code"
    LINE_COMMENT = "line_comment"
    BLOCK_COMMENT = "block_comment"
    STRING = "string"
    DOLLAR_QUOTE = "dollar_quote"


@mypyc_attr(allow_interpreted_subclasses=False)
class ScanState:
    """Mutable state for one scan. Created per call and never shared."""

    __slots__ = (
        "begin_end_depth",
        "case_depth",
        "custom_delimiter",
        "dollar_tag",
        "mode",
        "paren_depth",
        "string_delimiter",
    )

    def __init__(self) -> None:
        self.mode = LexicalMode.CODE
        self.string_delimiter = ""
        self.dollar_tag = ""
        self.paren_depth = 0
        self.begin_end_depth = 0
        self.case_depth = 0
        self.custom_delimiter: Optional[str] = None

    @property
    def delimiter(self) -> str:
        return self.custom_delimiter or DEFAULT_DELIMITER

    @property
    def at_top_level(self) -> bool:
        return self.mode is LexicalMode.CODE and self.paren_depth == 0 and self.begin_end_depth == 0

    def enter(self, mode: LexicalMode, *, delimiter: str = "", tag: str = "") -> None:
        self.mode = mode
        self.string_delimiter = delimiter
        self.dollar_tag = tag

    def leave(self) -> None:
        self.enter(LexicalMode.CODE)

    def open_paren(self) -> None:
        self.paren_depth += 1

    def close_paren(self) -> None:
        if self.paren_depth > 0:
            self.paren_depth -= 1

    def __repr__(self) -> str:
        return (
            f"ScanState(mode={self.mode.value}, parens={self.paren_depth}, "
            f"begin_end={self.begin_end_depth}, case={self.case_depth}, delimiter={self.delimiter!r})"
        )


def _matches_keyword(sql: str, index: int, keyword: str) -> bool:
    """Case-insensitive whole-word match of an upper-case ``keyword`` at ``index``."""
    end = index + len(keyword)
    if end > len(sql) or sql[index:end].upper() != keyword:
        return False
    if index > 0 and is_identifier_char(sql[index - 1]):
        return False
    return not (end < len(sql) and is_identifier_char(sql[end]))


def is_procedural_begin(sql: str, index: int) -> bool:
    """Decide whether the ``BEGIN`` at ``index`` opens a procedural block.

    ``BEGIN TRANSACTION|WORK|TRAN|TRY|CATCH`` never does. Otherwise a block is
    procedural when ``BEGIN`` follows ``AS``, ``THEN``, ``ELSE``, ``LOOP`` or
    ``IS``, or sits inside a ``CREATE [OR REPLACE] FUNCTION|PROCEDURE|TRIGGER``
    header, looking back at most 200 characters.
    """
    after = sql[index + 5 : index + 5 + BEGIN_LOOKAHEAD_CHARS].strip().upper()
    if _NON_PROCEDURAL_BEGIN_RE.match(after):
        return False

    before = sql[max(0, index - BEGIN_LOOKBEHIND_CHARS) : index].upper()
    if _PROCEDURAL_PRECEDER_RE.search(before):
        return True
    return _ROUTINE_HEADER_RE.search(before) is not None


@mypyc_attr(allow_interpreted_subclasses=False)
class StatementSplitter:
    """Single-pass statement scanner over one script."""

    __slots__ = ("_buffer", "_buffer_blank", "_sql", "_state")

    def __init__(self, sql: str) -> None:
        self._sql = sql
        self._state = ScanState()
        self._buffer: list[str] = []
        self._buffer_blank = True

    @property
    def state(self) -> ScanState:
        return self._state

    def scan(self, on_statement: StatementCallback) -> None:
        """Feed every statement of the script to ``on_statement``.

        Statements are trimmed and exclude their terminator. Fragments that
        hold only comments are dropped.
        """
        sql = self._sql
        state = self._state
        length = len(sql)
        i = 0
        while i < length:
            char = sql[i]
            next_char = sql[i + 1] if i + 1 < length else ""

            if state.mode is LexicalMode.LINE_COMMENT:
                self._append(char)
                if char == "\n":
                    state.leave()
                i += 1
                continue

            if state.mode is LexicalMode.BLOCK_COMMENT:
                self._append(char)
                if char == "*" and next_char == "/":
                    self._append("/")
                    state.leave()
                    i += 2
                    continue
                i += 1
                continue

            # A custom delimiter such as $$ or // wins over quote and comment openers.
            at_custom_delimiter = (
                state.mode is LexicalMode.CODE
                and state.custom_delimiter is not None
                and sql.startswith(state.custom_delimiter, i)
            )

            if state.mode is LexicalMode.CODE and not at_custom_delimiter:
                consumed = self._open_comment(char, next_char)
                if consumed:
                    i += consumed
                    continue

            if state.mode is not LexicalMode.STRING and char == "$" and not at_custom_delimiter:
                consumed = self._dollar_quote(i)
                if consumed:
                    i += consumed
                    continue

            if state.mode is LexicalMode.CODE and char in "Dd" and self._buffer_blank:
                resume = self._delimiter_directive(i)
                if resume is not None:
                    i = resume
                    continue

            if state.mode is not LexicalMode.DOLLAR_QUOTE and char in "'\"" and (i == 0 or sql[i - 1] != "\\"):
                if state.mode is LexicalMode.CODE:
                    state.enter(LexicalMode.STRING, delimiter=char)
                elif char == state.string_delimiter:
                    state.leave()

            if state.mode is LexicalMode.CODE:
                self._track_structure(i, char)

            delimiter = state.delimiter
            if state.at_top_level and sql.startswith(delimiter, i):
                self._flush(on_statement)
                i += len(delimiter)
                continue

            self._append(char)
            i += 1

        self._flush(on_statement)

    def _append(self, text: str) -> None:
        self._buffer.append(text)
        if self._buffer_blank and not text.isspace():
            self._buffer_blank = False

    def _reset_buffer(self) -> None:
        self._buffer.clear()
        self._buffer_blank = True

    def _open_comment(self, char: str, next_char: str) -> int:
        if char == "/" and next_char == "*":
            self._state.enter(LexicalMode.BLOCK_COMMENT)
            self._append("/*")
            return 2
        if (char == "-" and next_char == "-") or (char == "/" and next_char == "/"):
            self._state.enter(LexicalMode.LINE_COMMENT)
            self._append(char + next_char)
            return 2
        if char == "#":
            self._state.enter(LexicalMode.LINE_COMMENT)
            self._append(char)
            return 1
        return 0

    def _dollar_quote(self, index: int) -> int:
        """Open or close a ``$tag$`` quote starting at ``index``.

        Returns:
            Number of characters consumed, ``0`` when no quote transition happened.
        """
        sql = self._sql
        state = self._state
        j = index + 1
        while j < len(sql) and _DOLLAR_TAG_CHAR_RE.match(sql[j]):
            j += 1
        if j >= len(sql) or sql[j] != "$":
            return 0
        tag = sql[index + 1 : j]
        if state.mode is LexicalMode.DOLLAR_QUOTE:
            if tag != state.dollar_tag:
                return 0
            state.leave()
        else:
            state.enter(LexicalMode.DOLLAR_QUOTE, tag=tag)
        self._append(sql[index : j + 1])
        return j + 1 - index

    def _delimiter_directive(self, index: int) -> Optional[int]:
        """Handle a ``DELIMITER <token>`` line at statement start.

        Returns:
            The offset of the line's newline, or ``None`` if this is not a directive.
        """
        sql = self._sql
        if not sql[index : index + 10].upper().startswith("DELIMITER "):
            return None
        match = _DELIMITER_RE.match(sql, index)
        if match is None:
            return None
        token = match.group(1)
        self._state.custom_delimiter = None if token == DEFAULT_DELIMITER else token
        logger.debug("Statement delimiter set to %r", self._state.delimiter)
        newline = sql.find("\n", index)
        self._reset_buffer()
        # The newline itself is skipped along with the directive.
        return len(sql) if newline == -1 else newline + 1

    def _track_structure(self, index: int, char: str) -> None:
        state = self._state
        sql = self._sql
        if char == "(":
            state.open_paren()
        elif char == ")":
            state.close_paren()

        if char not in "BbCcEe":
            return
        if _matches_keyword(sql, index, "CASE"):
            state.case_depth += 1
        elif _matches_keyword(sql, index, "BEGIN"):
            if is_procedural_begin(sql, index):
                state.begin_end_depth += 1
        elif _matches_keyword(sql, index, "END"):
            after = sql[index + 3 : index + 3 + END_LOOKAHEAD_CHARS].strip().upper()
            if _BLOCK_QUALIFIER_RE.match(after):
                return
            if state.case_depth > 0:
                state.case_depth -= 1
            elif state.begin_end_depth > 0:
                state.begin_end_depth -= 1

    def _flush(self, on_statement: StatementCallback) -> None:
        statement = "".join(self._buffer).strip()
        self._reset_buffer()
        if statement and strip_leading_comments(statement):
            on_statement(statement)


def scan_sql_statements(sql: str, on_statement: StatementCallback) -> None:
    """Scan ``sql`` and hand each statement to ``on_statement`` as it is found."""
    StatementSplitter(sql).scan(on_statement)


def split_sql_statements(sql: str) -> list[str]:
    """Split a script into its statements.

    Args:
        sql: The SQL script to split.

    Returns:
        Trimmed statements without their terminators.
    """
    statements: list[str] = []
    scan_sql_statements(sql, statements.append)
    return statements


def count_sql_statements(sql: str) -> int:
    """Count the statements :func:`split_sql_statements` would return."""
    count = 0

    def _count(_: str) -> None:
        nonlocal count
        count += 1

    scan_sql_statements(sql, _count)
    return count
