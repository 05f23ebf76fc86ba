"""Offset-preserving masking and edit application.

The masker blanks out string literals and comments while keeping every other
character at its original offset. Rewriters run their pattern matches against
the masked copy, record :class:`Edit` objects whose spans refer to the shared
offsets, and then splice the *original* text back to front so that pending
offsets are never invalidated by earlier replacements.

Components:
- mask: length-preserving string/comment blanking
- find_matching_paren: balanced-paren lookup on raw text
- Span / Edit / EditBuffer: edit collection with overlap merging
- find_clause_end: forward clause scan with paren depth tracking
"""

import re
from collections.abc import Iterator
from dataclasses import dataclass
from re import Pattern
from typing import Final, Optional

from mypy_extensions import mypyc_attr

from sqlprep.utils.text import blank_out, is_sql_whitespace

__all__ = (
    "Edit",
    "EditBuffer",
    "Span",
    "find_clause_end",
    "find_matching_paren",
    "keyword_pattern",
    "mask",
    "skip_whitespace",
    "split_top_level_commas",
    "strip_leading_comments",
    "strip_sql_comments",
)

_BLOCK_COMMENT_RE: Final = re.compile(r"/\*.*?\*/", re.DOTALL)
_DASH_COMMENT_RE: Final = re.compile(r"--[^\n\r]*")
_HASH_COMMENT_RE: Final = re.compile(r"#[^\n\r]*")


def mask(text: str) -> str:
    """Replace string literal and comment content with spaces.

    Block comments run to ``*/``, ``--`` and ``#`` comments to end of line,
    and ``'``/``"`` strings to the next unescaped quote (a doubled quote is an
    escape). Unterminated constructs are masked to end of input.

    Args:
        text: Raw SQL text.

    Returns:
        A string of identical length where every character is either the
        original character or a space.
    """
    chars = list(text)
    length = len(chars)
    i = 0
    while i < length:
        ch = chars[i]
        nxt = chars[i + 1] if i + 1 < length else ""
        if ch == "/" and nxt == "*":
            chars[i] = chars[i + 1] = " "
            i += 2
            while i < length:
                if chars[i] == "*" and i + 1 < length and chars[i + 1] == "/":
                    chars[i] = chars[i + 1] = " "
                    i += 2
                    break
                chars[i] = " "
                i += 1
            continue
        if (ch == "-" and nxt == "-") or ch == "#":
            while i < length and chars[i] != "\n":
                chars[i] = " "
                i += 1
            continue
        if ch in {"'", '"'}:
            quote = ch
            chars[i] = " "
            i += 1
            while i < length:
                if chars[i] == quote:
                    if i + 1 < length and chars[i + 1] == quote:
                        chars[i] = chars[i + 1] = " "
                        i += 2
                        continue
                    chars[i] = " "
                    i += 1
                    break
                chars[i] = " "
                i += 1
            continue
        i += 1
    return "".join(chars)


def find_matching_paren(text: str, open_index: int) -> int:
    """Find the ``)`` closing the ``(`` at ``open_index``.

    Quotes and comments are skipped inline so the function can be called on
    raw text at any offset.

    Returns:
        Index of the matching ``)``, or ``-1`` if there is none.
    """
    if open_index < 0 or open_index >= len(text) or text[open_index] != "(":
        return -1
    length = len(text)
    depth = 1
    i = open_index + 1
    while i < length:
        ch = text[i]
        if ch == "'":
            i += 1
            while i < length:
                if text[i] == "'":
                    if i + 1 < length and text[i + 1] == "'":
                        i += 2
                        continue
                    i += 1
                    break
                i += 1
            continue
        if ch == '"':
            close = text.find('"', i + 1)
            i = length if close == -1 else close + 1
            continue
        if ch == "/" and text.startswith("*", i + 1):
            close = text.find("*/", i + 2)
            i = length if close == -1 else close + 2
            continue
        if ch == "-" and text.startswith("-", i + 1):
            newline = text.find("\n", i)
            i = length if newline == -1 else newline
            continue
        if ch == "(":
            depth += 1
        elif ch == ")":
            depth -= 1
            if depth == 0:
                return i
        i += 1
    return -1


def strip_sql_comments(text: str) -> str:
    """Replace each comment with a single space."""
    text = _BLOCK_COMMENT_RE.sub(" ", text)
    text = _DASH_COMMENT_RE.sub(" ", text)
    return _HASH_COMMENT_RE.sub(" ", text)


def strip_leading_comments(text: str) -> str:
    """Drop any run of comments at the start of ``text``.

    An unterminated leading comment swallows the rest of the input, so the
    result is empty.
    """
    result = text.strip()
    changed = True
    while changed:
        changed = False
        while result.startswith(("--", "#")):
            newline = result.find("\n")
            if newline == -1:
                return ""
            result = result[newline + 1 :].strip()
            changed = True
        if result.startswith("/*"):
            end = result.find("*/")
            if end == -1:
                return ""
            result = result[end + 2 :].strip()
            changed = True
    return result


def skip_whitespace(text: str, position: int) -> int:
    """Return the first offset at or after ``position`` that is not whitespace."""
    length = len(text)
    while position < length and text[position].isspace():
        position += 1
    return position


def split_top_level_commas(text: str) -> list[str]:
    """Split ``text`` on commas that are outside parentheses, quotes and comments."""
    masked = mask(text)
    parts: list[str] = []
    depth = 0
    segment_start = 0
    for i, ch in enumerate(masked):
        if ch == "(":
            depth += 1
        elif ch == ")":
            if depth > 0:
                depth -= 1
        elif ch == "," and depth == 0:
            parts.append(text[segment_start:i])
            segment_start = i + 1
    parts.append(text[segment_start:])
    return parts


def keyword_pattern(*keywords: str) -> Pattern[str]:
    """Compile a case-insensitive alternation of keywords.

    Spaces inside a keyword match any whitespace run and every keyword must
    end at a word boundary.
    """
    alternatives = sorted(keywords, key=len, reverse=True)
    body = "|".join(r"\s+".join(re.escape(part) for part in kw.split()) for kw in alternatives)
    return re.compile(rf"(?:{body})(?![A-Za-z0-9_$])", re.IGNORECASE)


def find_clause_end(masked: str, position: int, terminators: Pattern[str], stop_at_comma: bool = False) -> int:
    """Scan forward from ``position`` to the end of a clause.

    The clause ends at the whitespace run preceding a terminator keyword at
    paren depth zero, at a ``;``, at a ``)`` that closes an enclosing group, or
    at end of input.

    Args:
        masked: Masked SQL text.
        position: Offset where the clause body starts.
        terminators: Pattern matched at the first non-space character after whitespace.
        stop_at_comma: Also end the clause at a depth-zero comma.

    Returns:
        The exclusive end offset of the clause.
    """
    length = len(masked)
    depth = 0
    i = position
    while i < length:
        ch = masked[i]
        if ch == "(":
            depth += 1
        elif ch == ")":
            if depth == 0:
                return i
            depth -= 1
        elif ch == ";":
            return i
        elif depth == 0 and stop_at_comma and ch == ",":
            return i
        elif depth == 0 and is_sql_whitespace(ch):
            keyword_start = skip_whitespace(masked, i)
            if keyword_start >= length:
                return i
            if terminators.match(masked, keyword_start):
                return i
            i = keyword_start
            continue
        i += 1
    return length


@dataclass(frozen=True)
class Span:
    """Half-open ``[start, end)`` offsets into the original text."""

    start: int
    end: int

    def __post_init__(self) -> None:
        if not 0 <= self.start <= self.end:
            msg = f"Invalid span [{self.start}, {self.end})"
            raise ValueError(msg)

    def __len__(self) -> int:
        return self.end - self.start

    def overlaps(self, other: "Span") -> bool:
        return self.start < other.end and other.start < self.end


@dataclass(frozen=True)
class Edit:
    """Replacement of one span of the original text.

    A ``replacement`` of ``None`` blanks the span, keeping its newlines so that
    line numbers in the rewritten text still line up with the original.
    """

    span: Span
    replacement: Optional[str] = None

    def render(self, text: str) -> str:
        if self.replacement is None:
            return blank_out(text[self.span.start : self.span.end])
        return self.replacement


@mypyc_attr(allow_interpreted_subclasses=False)
class EditBuffer:
    """Ordered, non-overlapping edits for a single rewrite pass.

    Edits must be added in ascending discovery order. An edit that overlaps
    the last one is merged into it instead of being appended.
    """

    __slots__ = ("_edits", "_text")

    def __init__(self, text: str) -> None:
        self._text = text
        self._edits: list[Edit] = []

    def __bool__(self) -> bool:
        return bool(self._edits)

    def __len__(self) -> int:
        return len(self._edits)

    def __iter__(self) -> Iterator[Edit]:
        return iter(self._edits)

    @property
    def last_end(self) -> int:
        """End offset of the most recent edit, ``-1`` when empty."""
        return self._edits[-1].span.end if self._edits else -1

    def add(self, start: int, end: int, replacement: Optional[str] = None) -> None:
        """Record an edit, merging it into the previous one when they overlap."""
        span = Span(start, end)
        if self._edits and start < self._edits[-1].span.end:
            previous = self._edits[-1]
            merged = Span(previous.span.start, max(previous.span.end, end))
            if previous.replacement is None and replacement is None:
                self._edits[-1] = Edit(merged)
            else:
                tail = "" if end <= previous.span.end else (replacement if replacement is not None else "")
                self._edits[-1] = Edit(merged, previous.render(self._text) + tail)
            return
        self._edits.append(Edit(span, replacement))

    def apply(self) -> Optional[str]:
        """Splice all edits into the text, highest start offset first.

        Returns:
            The rewritten text, or ``None`` when no edit was recorded.
        """
        if not self._edits:
            return None
        text = self._text
        if self._edits[-1].span.end > len(text):
            msg = f"Edit span {self._edits[-1].span} exceeds text length {len(text)}"
            raise ValueError(msg)
        result = text
        for edit in sorted(self._edits, key=lambda e: e.span.start, reverse=True):
            result = result[: edit.span.start] + edit.render(text) + result[edit.span.end :]
        return result
