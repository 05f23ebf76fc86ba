"""Tests for the preprocessing pipeline."""

import logging

import pytest
from sqlglot import exp
from sqlglot.errors import ParseError

from sqlprep.core import pipeline as pipeline_module
from sqlprep.core.config import DetectionConfiguration, PreprocessorConfig, RewriteConfiguration, ValidationLimits
from sqlprep.core.detection import Confidence
from sqlprep.core.dialects import Dialect
from sqlprep.core.pipeline import PreprocessResult, SQLPreprocessor, _truncate_to_bytes
from sqlprep.core.validation import ValidationIssueType
from sqlprep.exceptions import SQLParsingError, SQLValidationError
from sqlprep.utils.logging import correlation_id_var

# Dialect resolution and rewriting


def test_explicit_dialect_skips_detection(preprocessor: SQLPreprocessor) -> None:
    """Test that an explicit dialect is used as given."""
    result = preprocessor.preprocess("SELECT payload:a:b:c:d FROM t", Dialect.SNOWFLAKE)
    assert result.sql == "SELECT payload:a:b FROM t"
    assert result.original_sql == "SELECT payload:a:b:c:d FROM t"
    assert result.dialect is Dialect.SNOWFLAKE
    assert result.applied_rewrites == ("snowflake_paths",)
    assert result.detection is None
    assert result.changed


def test_dialect_name_is_accepted(preprocessor: SQLPreprocessor) -> None:
    """Test that a dialect may be passed by name."""
    assert preprocessor.preprocess("SELECT 1", "snowflake").dialect is Dialect.SNOWFLAKE


def test_high_confidence_detection_switches_dialect(
    preprocessor: SQLPreprocessor, caplog: pytest.LogCaptureFixture
) -> None:
    """Test that a confidently detected dialect replaces the default."""
    with caplog.at_level(logging.INFO, logger="sqlprep.core.pipeline"):
        result = preprocessor.preprocess("SELECT * FROM a, b WHERE a.id = b.id(+)")
    assert result.dialect is Dialect.ORACLE
    assert result.sql == "SELECT * FROM a, b WHERE a.id = b.id"
    assert result.applied_rewrites == ("oracle_syntax",)
    assert result.detection is not None
    assert result.detection.is_high_confidence
    assert "Auto-detected Oracle dialect, switching from MySQL" in caplog.text


def test_low_confidence_keeps_default(preprocessor: SQLPreprocessor) -> None:
    """Test that a low-confidence guess does not switch dialects."""
    result = preprocessor.preprocess("SELECT * FROM t QUALIFY x = 1")
    assert result.dialect is Dialect.MYSQL
    assert result.applied_rewrites == ()
    assert not result.changed
    assert result.detection is not None
    assert result.detection.confidence is Confidence.LOW


def test_auto_detection_can_be_disabled(fixed_dialect_preprocessor: SQLPreprocessor) -> None:
    """Test that detection is skipped when disabled."""
    assert fixed_dialect_preprocessor.resolve_dialect("SELECT * FROM a, b WHERE a.id = b.id(+)") is Dialect.MYSQL


def test_configured_default_dialect() -> None:
    """Test that the configured default is used when nothing is detected."""
    preprocessor = SQLPreprocessor(PreprocessorConfig(default_dialect=Dialect.POSTGRESQL))
    assert preprocessor.resolve_dialect("SELECT 1") is Dialect.POSTGRESQL


def test_rewriters_are_chained(preprocessor: SQLPreprocessor) -> None:
    """Test that each rewriter sees the previous rewriter's output."""
    result = preprocessor.preprocess("SELECT IFF(v:a:b:c:d::int > 1, 1, 0), FROM t", Dialect.SNOWFLAKE)
    assert result.sql == "SELECT CASE WHEN v:a:b > 1 THEN 1 ELSE 0 END FROM t"
    assert result.applied_rewrites == ("snowflake_paths", "snowflake_casts", "snowflake_iff", "trailing_commas")


def test_structural_rewriters_run_for_default_dialect(preprocessor: SQLPreprocessor) -> None:
    """Test that grouping sets are flattened regardless of dialect."""
    sql = "SELECT a, b FROM t GROUP BY GROUPING SETS ((a), (b))"
    result = preprocessor.preprocess(sql)
    assert result.sql == "SELECT a, b FROM t GROUP BY a, b"
    assert result.applied_rewrites == ("grouping_sets",)


class TestRewriterSelection:
    """Test enabling and disabling rewriters through configuration."""

    def test_all_rewriters_enabled_by_default(self, preprocessor: SQLPreprocessor) -> None:
        """Test the default rewriter order."""
        assert preprocessor.rewriter_names == (
            "hoist_nested_ctes",
            "grouping_sets",
            "postgres_syntax",
            "oracle_syntax",
            "snowflake_paths",
            "snowflake_casts",
            "snowflake_qualify",
            "snowflake_iff",
            "trailing_commas",
            "procedural_keywords",
        )

    def test_disabled_rewriter_is_skipped(self) -> None:
        """Test that a rewriter listed as disabled does not run."""
        config = PreprocessorConfig(rewrites=RewriteConfiguration(disabled_rewriters=frozenset({"snowflake_paths"})))
        preprocessor = SQLPreprocessor(config)
        assert "snowflake_paths" not in preprocessor.rewriter_names
        result = preprocessor.preprocess("SELECT payload:a:b:c:d FROM t", Dialect.SNOWFLAKE)
        assert result.sql == "SELECT payload:a:b:c:d FROM t"
        assert result.applied_rewrites == ()

    def test_dialect_rewrites_disabled(self) -> None:
        """Test that only structural rewriters remain."""
        config = PreprocessorConfig(rewrites=RewriteConfiguration(enable_dialect_rewrites=False))
        assert SQLPreprocessor(config).rewriter_names == ("hoist_nested_ctes", "grouping_sets")

    def test_structural_rewriters_disabled(self) -> None:
        """Test switching off CTE hoisting and grouping sets."""
        config = PreprocessorConfig(
            rewrites=RewriteConfiguration(enable_cte_hoisting=False, enable_grouping_sets=False)
        )
        names = SQLPreprocessor(config).rewriter_names
        assert "hoist_nested_ctes" not in names
        assert "grouping_sets" not in names
        assert names[0] == "postgres_syntax"


# Parsing


def test_parse_plain_sql(preprocessor: SQLPreprocessor) -> None:
    """Test parsing portable SQL with the default dialect."""
    outcome = preprocessor.parse("SELECT a FROM t")
    assert len(outcome.expressions) == 1
    assert isinstance(outcome.expressions[0], exp.Select)
    assert outcome.dialect is Dialect.MYSQL
    assert not outcome.retried
    assert outcome.hints == []


def test_parse_rewritten_sql(preprocessor: SQLPreprocessor) -> None:
    """Test that rewritten dialect syntax parses."""
    outcome = preprocessor.parse("SELECT * FROM a, b WHERE a.id = b.id(+)")
    assert outcome.dialect is Dialect.ORACLE
    assert outcome.preprocess.applied_rewrites == ("oracle_syntax",)
    assert isinstance(outcome.expressions[0], exp.Select)


def test_parse_multiple_statements(preprocessor: SQLPreprocessor) -> None:
    """Test that every statement of the text is returned."""
    assert len(preprocessor.parse("SELECT 1; SELECT 2").expressions) == 2


def test_parse_failure_raises(preprocessor: SQLPreprocessor) -> None:
    """Test that a parse failure without a retry candidate raises."""
    with pytest.raises(SQLParsingError) as exc_info:
        preprocessor.parse("SELECT 1)")
    assert str(exc_info.value).startswith("SQL parsing failed for MySQL")
    assert exc_info.value.sql == "SELECT 1)"
    assert exc_info.value.dialect == "MySQL"
    assert isinstance(exc_info.value.__cause__, ParseError)


class TestParseRetry:
    """Test the single retry with a detected dialect."""

    def test_retry_with_detected_dialect(
        self, preprocessor: SQLPreprocessor, monkeypatch: pytest.MonkeyPatch, caplog: pytest.LogCaptureFixture
    ) -> None:
        """Test that a failed parse is retried with the low-confidence leader."""
        attempts: list[Dialect] = []

        def fake_parse(result: PreprocessResult) -> "list[exp.Expression]":
            attempts.append(result.dialect)
            if result.dialect is Dialect.MYSQL:
                raise ParseError("boom")
            return [exp.Select()]

        monkeypatch.setattr(pipeline_module, "_parse_with", fake_parse)
        with caplog.at_level(logging.INFO, logger="sqlprep.core.pipeline"):
            outcome = preprocessor.parse("SELECT * FROM t QUALIFY x = 1")

        assert attempts == [Dialect.MYSQL, Dialect.SNOWFLAKE]
        assert outcome.retried
        assert outcome.dialect is Dialect.SNOWFLAKE
        assert "snowflake_qualify" in outcome.preprocess.applied_rewrites
        assert "Retrying parse with Snowflake after MySQL parse failure" in caplog.text

    def test_retry_disabled(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Test that no retry happens when disabled."""

        def fake_parse(result: PreprocessResult) -> "list[exp.Expression]":
            raise ParseError("boom")

        monkeypatch.setattr(pipeline_module, "_parse_with", fake_parse)
        preprocessor = SQLPreprocessor(PreprocessorConfig(detection=DetectionConfiguration(enable_parse_retry=False)))
        with pytest.raises(SQLParsingError, match="SQL parsing failed for MySQL"):
            preprocessor.parse("SELECT * FROM t QUALIFY x = 1")

    def test_retry_failure_raises(self, preprocessor: SQLPreprocessor, monkeypatch: pytest.MonkeyPatch) -> None:
        """Test that a failed retry raises with both dialects named."""

        def fake_parse(result: PreprocessResult) -> "list[exp.Expression]":
            raise ParseError(f"boom in {result.dialect}")

        monkeypatch.setattr(pipeline_module, "_parse_with", fake_parse)
        with pytest.raises(SQLParsingError, match="retry dialect Snowflake") as exc_info:
            preprocessor.parse("SELECT * FROM t QUALIFY x = 1")
        assert str(exc_info.value.__cause__) == "boom in Snowflake"


def test_hints(preprocessor: SQLPreprocessor) -> None:
    """Test hints relative to the resolved dialect."""
    hints = preprocessor.hints("SELECT payload:items FROM t", Dialect.MYSQL)
    assert [hint.message for hint in hints] == ["Snowflake-specific syntax detected"]
    assert preprocessor.hints("SELECT payload:items FROM t") == []


# Validation and batches


def test_validate(preprocessor: SQLPreprocessor) -> None:
    """Test validation against configured and explicit limits."""
    assert preprocessor.validate("SELECT 1") is None
    issue = preprocessor.validate("SELECT 1; SELECT 2", ValidationLimits(max_statement_count=1))
    assert issue is not None
    assert issue.type is ValidationIssueType.QUERY_COUNT_LIMIT


def test_validate_raise_on_error(preprocessor: SQLPreprocessor) -> None:
    """Test that validation can raise instead of returning the issue."""
    with pytest.raises(SQLValidationError, match="No SQL provided") as exc_info:
        preprocessor.validate("  ", raise_on_error=True)
    assert exc_info.value.issue.type is ValidationIssueType.EMPTY_INPUT


def test_split_and_count(preprocessor: SQLPreprocessor) -> None:
    """Test the splitter pass-throughs."""
    sql = "SELECT 1; CREATE PROCEDURE p() BEGIN SELECT 2; END; SELECT 3"
    assert preprocessor.count(sql) == 3
    assert preprocessor.split(sql)[1] == "CREATE PROCEDURE p() BEGIN SELECT 2; END"


class TestParseBatch:
    """Test statement-by-statement parsing of scripts."""

    def test_all_statements_parse(self, preprocessor: SQLPreprocessor) -> None:
        """Test a batch without errors."""
        batch = preprocessor.parse_batch("SELECT 1; SELECT 2")
        assert batch.success_count == 2
        assert batch.error_count == 0
        assert batch.validation_issue is None
        assert not batch.truncated
        assert [statement.index for statement in batch.statements] == [0, 1]

    def test_failed_statement_does_not_stop_batch(self, preprocessor: SQLPreprocessor) -> None:
        """Test that parse errors are recorded per statement."""
        batch = preprocessor.parse_batch("SELECT 1; SELECT 1); SELECT 3")
        assert batch.success_count == 2
        assert batch.error_count == 1
        failed = batch.statements[1]
        assert not failed.ok
        assert failed.outcome is None
        assert failed.sql == "SELECT 1)"
        assert failed.error is not None
        assert failed.error.startswith("SQL parsing failed")

    def test_statements_resolve_dialect_independently(self, preprocessor: SQLPreprocessor) -> None:
        """Test that each statement gets its own dialect resolution."""
        batch = preprocessor.parse_batch("SELECT 1; SELECT * FROM a, b WHERE a.id = b.id(+)")
        dialects = [statement.outcome.dialect for statement in batch.statements if statement.outcome]
        assert dialects == [Dialect.MYSQL, Dialect.ORACLE]

    def test_empty_input(self, preprocessor: SQLPreprocessor) -> None:
        """Test that empty input yields no statements and an issue."""
        batch = preprocessor.parse_batch("")
        assert batch.statements == []
        assert batch.validation_issue is not None
        assert batch.validation_issue.type is ValidationIssueType.EMPTY_INPUT

    def test_statement_count_truncation(self, caplog: pytest.LogCaptureFixture) -> None:
        """Test that only the first statements up to the limit are parsed."""
        preprocessor = SQLPreprocessor(PreprocessorConfig(limits=ValidationLimits(max_statement_count=2)))
        with caplog.at_level(logging.WARNING, logger="sqlprep.core.pipeline"):
            batch = preprocessor.parse_batch("SELECT 1; SELECT 2; SELECT 3")
        assert batch.truncated
        assert len(batch.statements) == 2
        assert batch.validation_issue is not None
        assert batch.validation_issue.type is ValidationIssueType.QUERY_COUNT_LIMIT
        assert "Showing first 2 of 3 statements" in caplog.text

    def test_size_truncation(self) -> None:
        """Test that oversized input is cut to the byte limit."""
        preprocessor = SQLPreprocessor(PreprocessorConfig(limits=ValidationLimits(max_sql_size_bytes=9)))
        batch = preprocessor.parse_batch("SELECT 1; SELECT 2")
        assert batch.truncated
        assert [statement.sql for statement in batch.statements] == ["SELECT 1"]
        assert batch.validation_issue is not None
        assert batch.validation_issue.type is ValidationIssueType.SIZE_LIMIT

    def test_correlation_id_is_scoped_to_batch(
        self, preprocessor: SQLPreprocessor, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        """Test that a batch sets a correlation id only while it runs."""
        seen: list[object] = []
        original = pipeline_module._parse_with

        def spy(result: PreprocessResult) -> "list[exp.Expression]":
            seen.append(correlation_id_var.get())
            return original(result)

        monkeypatch.setattr(pipeline_module, "_parse_with", spy)
        preprocessor.parse_batch("SELECT 1; SELECT 2")
        assert len(seen) == 2
        assert seen[0] is not None
        assert seen[0] == seen[1]
        assert correlation_id_var.get() is None

    def test_existing_correlation_id_is_kept(self, preprocessor: SQLPreprocessor) -> None:
        """Test that a caller's correlation id is not replaced."""
        token = correlation_id_var.set("caller-id")
        try:
            preprocessor.parse_batch("SELECT 1")
            assert correlation_id_var.get() == "caller-id"
        finally:
            correlation_id_var.reset(token)


def test_truncate_to_bytes_keeps_characters_whole() -> None:
    """Test that truncation never splits a multi-byte character."""
    assert _truncate_to_bytes("ééé", 3) == "é"
    assert _truncate_to_bytes("abc", 10) == "abc"
