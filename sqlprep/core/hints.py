"""Dialect hints and parse-retry dialect selection.

Hints tell the user that a query carries syntax belonging to another dialect
than the one selected, without switching dialects on their behalf.
"""

import re
from dataclasses import dataclass
from enum import Enum
from typing import Final, Optional

from sqlprep.core.detection import DetectionResult, detect_dialect, detect_dialect_syntax_patterns
from sqlprep.core.dialects import Dialect
from sqlprep.core.masking import strip_sql_comments

__all__ = (
    "DialectHint",
    "HintSeverity",
    "HintType",
    "RetrySelection",
    "detect_dialect_specific_syntax",
    "select_retry_dialect",
)

RETRY_MIN_SCORE: Final = 2

_MERGE_INTO_RE: Final = re.compile(r"\bMERGE\s+INTO\b", re.IGNORECASE)
_UNNEST_DIALECTS: Final = frozenset({Dialect.BIGQUERY, Dialect.POSTGRESQL, Dialect.TRINO, Dialect.ATHENA})
_MERGE_DIALECTS: Final = frozenset({Dialect.TRANSACTSQL, Dialect.ORACLE, Dialect.SNOWFLAKE, Dialect.BIGQUERY})


class HintType(str, Enum):
    INFO = "info"
    WARNING = "warning"


class HintSeverity(str, Enum):
    LOW = "low"
    MEDIUM = "medium"


@dataclass(frozen=True)
class DialectHint:
    """A suggestion about dialect-specific syntax in a query."""

    type: HintType
    message: str
    suggestion: str
    severity: HintSeverity
    category: str = "best-practice"


@dataclass(frozen=True)
class RetrySelection:
    """Dialect chosen for a second parse attempt, with the detection behind it."""

    dialect: Optional[Dialect]
    detection: DetectionResult


def _warning(message: str, suggestion: str) -> DialectHint:
    return DialectHint(type=HintType.WARNING, message=message, suggestion=suggestion, severity=HintSeverity.MEDIUM)


def _info(message: str, suggestion: str) -> DialectHint:
    return DialectHint(type=HintType.INFO, message=message, suggestion=suggestion, severity=HintSeverity.LOW)


def detect_dialect_specific_syntax(sql: str, current_dialect: Dialect) -> list[DialectHint]:
    """Collect hints for syntax that belongs to another dialect.

    Args:
        sql: Raw SQL text.
        current_dialect: The dialect the query is being parsed with.

    Returns:
        Hints in a stable order: Snowflake, BigQuery, PostgreSQL, MySQL,
        T-SQL, then MERGE advice.
    """
    stripped = strip_sql_comments(sql)
    signals = detect_dialect_syntax_patterns(stripped)
    hints: list[DialectHint] = []

    if (
        signals.has_snowflake_path_operator or signals.has_snowflake_named_args or signals.has_flatten
    ) and current_dialect is not Dialect.SNOWFLAKE:
        if current_dialect in {Dialect.MYSQL, Dialect.POSTGRESQL}:
            suggestion = (
                "This query uses Snowflake syntax (e.g., : path operator or => named arguments). "
                "Try Snowflake dialect for full support."
            )
        else:
            suggestion = "This query uses Snowflake-specific syntax. Consider switching to Snowflake dialect."
        hints.append(_warning("Snowflake-specific syntax detected", suggestion))

    bigquery_unnest = signals.has_bigquery_unnest and current_dialect not in _UNNEST_DIALECTS
    if (
        signals.has_bigquery_struct or signals.has_bigquery_array_type or bigquery_unnest
    ) and current_dialect is not Dialect.BIGQUERY:
        hints.append(
            _warning(
                "BigQuery-specific syntax detected",
                "This query uses BigQuery syntax (e.g., STRUCT, UNNEST, or ARRAY<>). "
                "Try BigQuery dialect for full support.",
            )
        )

    if (
        signals.has_postgres_interval
        or signals.has_postgres_dollar_quotes
        or signals.has_postgres_array_access
        or signals.has_postgres_json_operators
    ) and current_dialect not in {Dialect.POSTGRESQL, Dialect.SNOWFLAKE}:
        hints.append(
            _warning(
                "PostgreSQL-specific syntax detected",
                "This query uses PostgreSQL syntax (e.g., INTERVAL '...', $$ quotes, or JSON operators). "
                "Try PostgreSQL dialect.",
            )
        )

    if (
        signals.has_mysql_backticks or signals.has_mysql_group_by_rollup or signals.has_mysql_dual
    ) and current_dialect not in {Dialect.MYSQL, Dialect.MARIADB}:
        hints.append(
            _info(
                "MySQL-specific syntax detected",
                "This query uses MySQL syntax (e.g., backtick identifiers or WITH ROLLUP). Try MySQL dialect.",
            )
        )

    if (signals.has_tsql_apply or signals.has_tsql_top or signals.has_pivot) and (
        current_dialect is not Dialect.TRANSACTSQL
    ):
        hints.append(
            _warning(
                "SQL Server (T-SQL) syntax detected",
                "This query uses SQL Server syntax (e.g., CROSS APPLY, TOP, or PIVOT). Try TransactSQL dialect.",
            )
        )

    if _MERGE_INTO_RE.search(stripped):
        if current_dialect in _MERGE_DIALECTS:
            hints.append(
                _info(
                    "MERGE statement",
                    "MERGE statements are complex and may not render fully in all cases. If parsing fails, "
                    "try simplifying the query or using dialect-specific alternatives "
                    "(ON CONFLICT, ON DUPLICATE KEY, etc.).",
                )
            )
        else:
            hints.append(
                _warning(
                    "MERGE statement detected",
                    "MERGE statements are supported in TransactSQL, Oracle, Snowflake, and BigQuery dialects. "
                    f"Current dialect ({current_dialect}) may have limited support. Consider using "
                    "dialect-specific alternatives: PostgreSQL (INSERT ... ON CONFLICT), "
                    "MySQL (INSERT ... ON DUPLICATE KEY UPDATE), or SQLite (INSERT OR REPLACE/IGNORE).",
                )
            )

    return hints


def select_retry_dialect(sql: str, current_dialect: Dialect) -> RetrySelection:
    """Pick a dialect for a second parse attempt after a parse failure.

    A high-confidence detection of another dialect wins. Otherwise a
    low-confidence leader qualifies when it scored at least 2 points and
    strictly leads the runner-up.

    Args:
        sql: The SQL that failed to parse.
        current_dialect: Dialect of the failed attempt.

    Returns:
        The selection; ``dialect`` is ``None`` when no retry is warranted.
    """
    detection = detect_dialect(sql)
    if detection.dialect is not None and detection.dialect is not current_dialect:
        return RetrySelection(detection.dialect, detection)

    ranked = detection.ranked()
    if not ranked or ranked[0].dialect is current_dialect:
        return RetrySelection(None, detection)

    top = ranked[0]
    runner_up = ranked[1].score if len(ranked) > 1 else 0
    if top.score >= RETRY_MIN_SCORE and top.score > runner_up:
        return RetrySelection(top.dialect, detection)
    return RetrySelection(None, detection)
