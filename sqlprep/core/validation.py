"""Input size and statement-count limits.

Checked before batch processing so that oversized scripts are truncated by the
caller instead of being fed whole to the rewriters and the parser.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Final, Optional

from sqlprep.core.splitter import count_sql_statements

__all__ = (
    "DEFAULT_MAX_SQL_SIZE_BYTES",
    "DEFAULT_MAX_STATEMENT_COUNT",
    "ValidationIssue",
    "ValidationIssueType",
    "ValidationLimits",
    "format_bytes",
    "sql_size_bytes",
    "validate_sql",
)

DEFAULT_MAX_SQL_SIZE_BYTES: Final = 100 * 1024
DEFAULT_MAX_STATEMENT_COUNT: Final = 50


@dataclass(frozen=True)
class ValidationLimits:
    """Ceilings applied to a script before it is processed."""

    max_sql_size_bytes: int = DEFAULT_MAX_SQL_SIZE_BYTES
    max_statement_count: int = DEFAULT_MAX_STATEMENT_COUNT


class ValidationIssueType(str, Enum):
    EMPTY_INPUT = "empty_input"
    SIZE_LIMIT = "size_limit"
    QUERY_COUNT_LIMIT = "query_count_limit"


@dataclass(frozen=True)
class ValidationIssue:
    """The first limit a script violates."""

    type: ValidationIssueType
    message: str
    actual: int
    limit: int
    unit: str


def sql_size_bytes(sql: str) -> int:
    """Size of ``sql`` encoded as UTF-8."""
    return len(sql.encode("utf-8"))


def format_bytes(size: int) -> str:
    """Render a byte count as ``N bytes``, ``N.NKB`` or ``N.NMB``."""
    if size < 1024:
        return f"{size} bytes"
    if size < 1024 * 1024:
        return f"{size / 1024:.1f}KB"
    return f"{size / (1024 * 1024):.1f}MB"


def validate_sql(sql: str, limits: Optional[ValidationLimits] = None) -> Optional[ValidationIssue]:
    """Check a script against size and statement-count limits.

    Checks run in order (empty input, byte size, statement count) and the first
    violation is returned.

    Args:
        sql: The SQL script.
        limits: Limits to apply, defaults to :class:`ValidationLimits`.

    Returns:
        The violated limit, or ``None`` if the script is acceptable.
    """
    limits = limits or ValidationLimits()
    if not sql or not sql.strip():
        return ValidationIssue(
            type=ValidationIssueType.EMPTY_INPUT, message="No SQL provided", actual=0, limit=1, unit="characters"
        )

    size = sql_size_bytes(sql)
    if size > limits.max_sql_size_bytes:
        return ValidationIssue(
            type=ValidationIssueType.SIZE_LIMIT,
            message=f"SQL input exceeds maximum size limit of {format_bytes(limits.max_sql_size_bytes)}",
            actual=size,
            limit=limits.max_sql_size_bytes,
            unit="bytes",
        )

    statement_count = count_sql_statements(sql)
    if statement_count > limits.max_statement_count:
        return ValidationIssue(
            type=ValidationIssueType.QUERY_COUNT_LIMIT,
            message=(
                f"SQL contains {statement_count} statements, "
                f"exceeding the limit of {limits.max_statement_count}"
            ),
            actual=statement_count,
            limit=limits.max_statement_count,
            unit="statements",
        )
    return None
