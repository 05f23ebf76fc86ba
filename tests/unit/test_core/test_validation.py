"""Tests for input limit validation."""

import pytest

from sqlprep.core.validation import (
    DEFAULT_MAX_SQL_SIZE_BYTES,
    DEFAULT_MAX_STATEMENT_COUNT,
    ValidationIssueType,
    ValidationLimits,
    format_bytes,
    sql_size_bytes,
    validate_sql,
)


def test_default_limits() -> None:
    """Test the default limits."""
    limits = ValidationLimits()
    assert limits.max_sql_size_bytes == DEFAULT_MAX_SQL_SIZE_BYTES == 100 * 1024
    assert limits.max_statement_count == DEFAULT_MAX_STATEMENT_COUNT == 50


@pytest.mark.parametrize("sql", ["", "   ", "\n\t"])
def test_empty_input(sql: str) -> None:
    """Test that blank input is reported first."""
    issue = validate_sql(sql)
    assert issue is not None
    assert issue.type is ValidationIssueType.EMPTY_INPUT
    assert issue.message == "No SQL provided"


def test_size_limit() -> None:
    """Test that oversized input is reported with its byte size."""
    issue = validate_sql("SELECT 1", ValidationLimits(max_sql_size_bytes=4))
    assert issue is not None
    assert issue.type is ValidationIssueType.SIZE_LIMIT
    assert issue.actual == 8
    assert issue.limit == 4
    assert issue.message == "SQL input exceeds maximum size limit of 4 bytes"


def test_size_is_measured_in_utf8_bytes() -> None:
    """Test that multi-byte characters count by their encoded size."""
    sql = "SELECT 'é'"
    assert len(sql) == 10
    assert sql_size_bytes(sql) == 11
    issue = validate_sql(sql, ValidationLimits(max_sql_size_bytes=10))
    assert issue is not None
    assert issue.type is ValidationIssueType.SIZE_LIMIT
    assert issue.actual == 11


def test_statement_count_limit() -> None:
    """Test that too many statements are reported."""
    issue = validate_sql("SELECT 1; SELECT 2; SELECT 3", ValidationLimits(max_statement_count=2))
    assert issue is not None
    assert issue.type is ValidationIssueType.QUERY_COUNT_LIMIT
    assert issue.actual == 3
    assert issue.limit == 2
    assert issue.message == "SQL contains 3 statements, exceeding the limit of 2"


def test_size_is_checked_before_count() -> None:
    """Test that the size limit wins when both limits are exceeded."""
    issue = validate_sql("SELECT 1; SELECT 2", ValidationLimits(max_sql_size_bytes=5, max_statement_count=1))
    assert issue is not None
    assert issue.type is ValidationIssueType.SIZE_LIMIT


def test_valid_input() -> None:
    """Test that acceptable input yields no issue."""
    assert validate_sql("SELECT 1; SELECT 2") is None


@pytest.mark.parametrize(
    ("size", "expected"),
    [(0, "0 bytes"), (512, "512 bytes"), (1536, "1.5KB"), (100 * 1024, "100.0KB"), (3 * 1024 * 1024, "3.0MB")],
)
def test_format_bytes(size: int, expected: str) -> None:
    """Test human readable byte sizes."""
    assert format_bytes(size) == expected
