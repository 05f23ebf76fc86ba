"""Preprocessing pipeline.

Sequences dialect resolution, the rewriters and the downstream sqlglot parser:

1. Resolve the dialect: explicit argument, then a high-confidence detection,
   then the configured default.
2. Run the enabled rewriters in registry order, feeding each output to the
   next rewriter.
3. Parse the normalized text with sqlglot. On failure, retry once with a
   dialect picked from the detection scores.

Batch entry points validate the input limits first, truncate oversized input
and parse each statement independently.
"""

import uuid
from dataclasses import dataclass, field
from typing import Optional, Union

import sqlglot
from sqlglot import exp
from sqlglot.errors import ParseError, TokenError
from typing_extensions import TypeAlias

from sqlprep.core.config import PreprocessorConfig
from sqlprep.core.detection import DetectionResult, detect_dialect
from sqlprep.core.dialects import Dialect, coerce_dialect
from sqlprep.core.hints import DialectHint, detect_dialect_specific_syntax, select_retry_dialect
from sqlprep.core.rewriters import CTE_HOISTING, GROUPING_SETS, REWRITERS, Rewriter
from sqlprep.core.splitter import count_sql_statements, split_sql_statements
from sqlprep.core.validation import (
    ValidationIssue,
    ValidationIssueType,
    ValidationLimits,
    format_bytes,
    sql_size_bytes,
    validate_sql,
)
from sqlprep.exceptions import SQLParsingError, SQLValidationError
from sqlprep.utils.logging import correlation_id_var, get_logger

__all__ = (
    "BatchResult",
    "ParseOutcome",
    "PreprocessResult",
    "SQLPreprocessor",
    "StatementOutcome",
)

logger = get_logger("core.pipeline")

DialectLike: TypeAlias = Union[str, Dialect]


@dataclass(frozen=True)
class PreprocessResult:
    """Normalized SQL and how it was produced."""

    sql: str
    original_sql: str
    dialect: Dialect
    applied_rewrites: tuple[str, ...] = ()
    detection: Optional[DetectionResult] = None

    @property
    def changed(self) -> bool:
        return bool(self.applied_rewrites)


@dataclass(frozen=True)
class ParseOutcome:
    """Successful parse of preprocessed SQL.

    Attributes:
        expressions: sqlglot expressions, one per parsed statement.
        preprocess: The preprocessing run that produced the parsed text.
        retried: Whether the first attempt failed and ``preprocess.dialect`` is the retry dialect.
        hints: Dialect hints for the original text.
    """

    expressions: list[exp.Expression]
    preprocess: PreprocessResult
    retried: bool = False
    hints: list[DialectHint] = field(default_factory=list)

    @property
    def dialect(self) -> Dialect:
        return self.preprocess.dialect


@dataclass(frozen=True)
class StatementOutcome:
    """Result for one statement of a batch; exactly one of ``outcome`` and ``error`` is set."""

    index: int
    sql: str
    outcome: Optional[ParseOutcome] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass(frozen=True)
class BatchResult:
    statements: list[StatementOutcome]
    validation_issue: Optional[ValidationIssue] = None
    truncated: bool = False

    @property
    def success_count(self) -> int:
        return sum(1 for statement in self.statements if statement.ok)

    @property
    def error_count(self) -> int:
        return len(self.statements) - self.success_count


class SQLPreprocessor:
    """Normalize dialect-specific SQL and hand it to sqlglot.

    Instances hold only their (frozen) configuration and can be shared between
    threads.
    """

    __slots__ = ("_config", "_rewriters")

    def __init__(self, config: Optional[PreprocessorConfig] = None) -> None:
        self._config = config or PreprocessorConfig()
        self._rewriters = self._select_rewriters()

    @property
    def config(self) -> PreprocessorConfig:
        return self._config

    @property
    def rewriter_names(self) -> tuple[str, ...]:
        """Names of the enabled rewriters, in application order."""
        return tuple(name for name, _ in self._rewriters)

    def _select_rewriters(self) -> tuple[tuple[str, Rewriter], ...]:
        settings = self._config.rewrites
        selected = []
        for name, rewriter in REWRITERS:
            if name in settings.disabled_rewriters:
                continue
            if name == CTE_HOISTING:
                enabled = settings.enable_cte_hoisting
            elif name == GROUPING_SETS:
                enabled = settings.enable_grouping_sets
            else:
                enabled = settings.enable_dialect_rewrites
            if enabled:
                selected.append((name, rewriter))
        return tuple(selected)

    def _resolve(self, sql: str, dialect: Optional[DialectLike]) -> tuple[Dialect, Optional[DetectionResult]]:
        explicit = coerce_dialect(dialect)
        if explicit is not None:
            return explicit, None
        default = self._config.default_dialect
        if not self._config.detection.enable_auto_detection:
            return default, None
        detection = detect_dialect(sql)
        if detection.is_high_confidence and detection.dialect is not None:
            if detection.dialect is not default:
                logger.info("Auto-detected %s dialect, switching from %s", detection.dialect, default)
            return detection.dialect, detection
        return default, detection

    def resolve_dialect(self, sql: str, dialect: Optional[DialectLike] = None) -> Dialect:
        """Dialect that :meth:`preprocess` would use for ``sql``.

        Args:
            sql: SQL text.
            dialect: Explicit dialect or dialect name; wins over detection.

        Returns:
            The resolved dialect.
        """
        return self._resolve(sql, dialect)[0]

    def preprocess(self, sql: str, dialect: Optional[DialectLike] = None) -> PreprocessResult:
        """Run the enabled rewriters over ``sql``.

        Args:
            sql: SQL text.
            dialect: Explicit dialect or dialect name. Resolved from ``sql`` when omitted.

        Returns:
            The normalized SQL with the names of the rewriters that changed it.
        """
        resolved, detection = self._resolve(sql, dialect)
        current = sql
        applied: list[str] = []
        for name, rewriter in self._rewriters:
            rewritten = rewriter(current, resolved)
            if rewritten is None:
                continue
            logger.debug("Rewriter %s applied for %s", name, resolved)
            current = rewritten
            applied.append(name)
        return PreprocessResult(
            sql=current, original_sql=sql, dialect=resolved, applied_rewrites=tuple(applied), detection=detection
        )

    def hints(self, sql: str, dialect: Optional[DialectLike] = None) -> list[DialectHint]:
        """Dialect hints for ``sql`` relative to the resolved dialect."""
        return detect_dialect_specific_syntax(sql, self.resolve_dialect(sql, dialect))

    def parse(self, sql: str, dialect: Optional[DialectLike] = None) -> ParseOutcome:
        """Preprocess ``sql`` and parse it with sqlglot.

        Args:
            sql: SQL text.
            dialect: Explicit dialect or dialect name.

        Raises:
            SQLParsingError: If sqlglot rejects the text with both the resolved
                and the retry dialect.

        Returns:
            The parsed expressions and the preprocessing that preceded them.
        """
        result = self.preprocess(sql, dialect)
        hints = detect_dialect_specific_syntax(sql, result.dialect)
        try:
            return ParseOutcome(expressions=_parse_with(result), preprocess=result, hints=hints)
        except (ParseError, TokenError) as e:
            primary_error = e

        retry_dialect = None
        if self._config.detection.enable_parse_retry:
            retry_dialect = select_retry_dialect(sql, result.dialect).dialect
        if retry_dialect is None:
            msg = f"SQL parsing failed for {result.dialect}: {primary_error}"
            raise SQLParsingError(msg, sql=sql, dialect=str(result.dialect)) from primary_error

        logger.info("Retrying parse with %s after %s parse failure", retry_dialect, result.dialect)
        retry = self.preprocess(sql, retry_dialect)
        try:
            expressions = _parse_with(retry)
        except (ParseError, TokenError) as e:
            msg = f"SQL parsing failed for {result.dialect} and retry dialect {retry_dialect}: {primary_error}"
            raise SQLParsingError(msg, sql=sql, dialect=str(result.dialect)) from e
        return ParseOutcome(
            expressions=expressions,
            preprocess=retry,
            retried=True,
            hints=detect_dialect_specific_syntax(sql, retry_dialect),
        )

    def validate(
        self, sql: str, limits: Optional[ValidationLimits] = None, raise_on_error: bool = False
    ) -> Optional[ValidationIssue]:
        """Check ``sql`` against the configured (or given) limits.

        Raises:
            SQLValidationError: If ``raise_on_error`` is set and a limit is violated.
        """
        issue = validate_sql(sql, limits or self._config.limits)
        if issue is not None and raise_on_error:
            raise SQLValidationError(issue)
        return issue

    def split(self, sql: str) -> list[str]:
        return split_sql_statements(sql)

    def count(self, sql: str) -> int:
        return count_sql_statements(sql)

    def parse_batch(self, sql: str, dialect: Optional[DialectLike] = None) -> BatchResult:
        """Parse every statement of a script.

        Input over the size limit is cut to the limit; input with too many
        statements is cut to the first ``max_statement_count`` statements. A
        statement that fails to parse is recorded with its error and does not
        stop the batch.

        Args:
            sql: SQL script.
            dialect: Explicit dialect for every statement. Resolved per statement when omitted.

        Returns:
            Per-statement outcomes plus the validation issue that caused truncation, if any.
        """
        token = None
        if correlation_id_var.get() is None:
            token = correlation_id_var.set(uuid.uuid4().hex)
        try:
            return self._parse_batch(sql, dialect)
        finally:
            if token is not None:
                correlation_id_var.reset(token)

    def _parse_batch(self, sql: str, dialect: Optional[DialectLike]) -> BatchResult:
        limits = self._config.limits
        issue = validate_sql(sql, limits)
        if issue is not None and issue.type is ValidationIssueType.EMPTY_INPUT:
            return BatchResult(statements=[], validation_issue=issue)

        truncated = False
        if issue is not None and issue.type is ValidationIssueType.SIZE_LIMIT:
            sql = _truncate_to_bytes(sql, limits.max_sql_size_bytes)
            truncated = True
            logger.warning(
                "Input truncated to %s of %s",
                format_bytes(limits.max_sql_size_bytes),
                format_bytes(issue.actual),
            )

        statements = split_sql_statements(sql)
        if len(statements) > limits.max_statement_count:
            logger.warning("Showing first %d of %d statements", limits.max_statement_count, len(statements))
            if issue is None:
                issue = validate_sql(sql, limits)
            statements = statements[: limits.max_statement_count]
            truncated = True

        outcomes = []
        for index, statement in enumerate(statements):
            try:
                outcomes.append(StatementOutcome(index=index, sql=statement, outcome=self.parse(statement, dialect)))
            except SQLParsingError as e:
                logger.debug("Statement %d failed to parse: %s", index, e)
                outcomes.append(StatementOutcome(index=index, sql=statement, error=str(e)))
        return BatchResult(statements=outcomes, validation_issue=issue, truncated=truncated)


def _parse_with(result: PreprocessResult) -> list[exp.Expression]:
    parsed = sqlglot.parse(result.sql, read=result.dialect.sqlglot_dialect)
    return [expression for expression in parsed if expression is not None]


def _truncate_to_bytes(sql: str, max_bytes: int) -> str:
    """Cut ``sql`` to at most ``max_bytes`` UTF-8 bytes without splitting a character."""
    if sql_size_bytes(sql) <= max_bytes:
        return sql
    return sql.encode("utf-8")[:max_bytes].decode("utf-8", errors="ignore")
