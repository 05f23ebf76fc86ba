"""Tests for the statement splitter.

The splitter must only split on delimiters that sit outside literals,
comments, dollar quotes, parentheses and procedural blocks.
"""

import pytest

from sqlprep.core.splitter import (
    LexicalMode,
    ScanState,
    StatementSplitter,
    count_sql_statements,
    is_procedural_begin,
    scan_sql_statements,
    split_sql_statements,
)

# Basic splitting


def test_split_simple_statements() -> None:
    """Test splitting on top-level semicolons."""
    assert split_sql_statements("SELECT 1; SELECT 2;") == ["SELECT 1", "SELECT 2"]


def test_split_without_trailing_delimiter() -> None:
    """Test that the final statement does not need a terminator."""
    assert split_sql_statements("SELECT 1") == ["SELECT 1"]


@pytest.mark.parametrize("sql", ["", "   \n\t", ";;;", "-- comment only", "/* a */ ; -- b"])
def test_split_returns_nothing_for_blank_or_comment_input(sql: str) -> None:
    """Test that blank and comment-only fragments are dropped."""
    assert split_sql_statements(sql) == []
    assert count_sql_statements(sql) == 0


def test_comment_only_fragments_are_dropped() -> None:
    """Test that a comment between delimiters does not produce a statement."""
    assert split_sql_statements("-- only a comment\n; SELECT 1; /* trailing */") == ["SELECT 1"]


def test_leading_comment_is_kept_with_statement() -> None:
    """Test that a comment in front of a statement stays attached to it."""
    assert split_sql_statements("-- load users\nSELECT * FROM users;") == ["-- load users\nSELECT * FROM users"]


# Literals and comments


def test_semicolons_in_literals_do_not_split() -> None:
    """Test that quoted semicolons are ignored."""
    assert split_sql_statements("SELECT 'a;b'; SELECT \"c;d\"") == ["SELECT 'a;b'", 'SELECT "c;d"']


def test_backslash_escaped_quote() -> None:
    """Test that a backslash-escaped quote does not close the literal."""
    assert count_sql_statements("SELECT 'it\\'s;'; SELECT 2") == 2


def test_doubled_quote() -> None:
    """Test that a doubled quote keeps the literal open."""
    assert split_sql_statements("SELECT 'it''s; fine'; SELECT 2") == ["SELECT 'it''s; fine'", "SELECT 2"]


def test_unterminated_string_swallows_rest() -> None:
    """Test that an unterminated literal runs to end of input."""
    assert split_sql_statements("SELECT 'abc; SELECT 2") == ["SELECT 'abc; SELECT 2"]


@pytest.mark.parametrize(
    "sql", ["SELECT $$ a; SELECT 2", "CREATE PROCEDURE p() BEGIN SELECT 1; SELECT 2", "SELECT 1 /* a; SELECT 2"]
)
def test_unterminated_blocks_swallow_rest(sql: str) -> None:
    """Test that unclosed dollar quotes, blocks and comments run to end of input."""
    assert split_sql_statements(sql) == [sql]


def test_semicolons_in_comments_do_not_split() -> None:
    """Test that commented semicolons are ignored."""
    sql = "SELECT 1 -- a; b\n, 2 /* c; d */ FROM t; SELECT 3 # e;\n; SELECT 4"
    assert count_sql_statements(sql) == 3


def test_dollar_quoted_body() -> None:
    """Test that a dollar-quoted function body is one unit."""
    sql = "CREATE FUNCTION f() RETURNS int AS $$ BEGIN RETURN 1; END; $$ LANGUAGE plpgsql; SELECT f();"
    statements = split_sql_statements(sql)
    assert len(statements) == 2
    assert statements[0].endswith("LANGUAGE plpgsql")
    assert statements[1] == "SELECT f()"


def test_tagged_dollar_quote_requires_same_tag() -> None:
    """Test that a different tag does not close a dollar quote."""
    assert split_sql_statements("SELECT $body$ a; $$ b; $body$; SELECT 2") == [
        "SELECT $body$ a; $$ b; $body$",
        "SELECT 2",
    ]


# Parentheses and procedural blocks


def test_unbalanced_close_paren_does_not_block_splitting() -> None:
    """Test that paren depth never goes negative."""
    assert split_sql_statements("SELECT 1); SELECT 2") == ["SELECT 1)", "SELECT 2"]


def test_create_procedure_body_is_one_statement() -> None:
    """Test that semicolons inside a procedure body do not split."""
    sql = "CREATE PROCEDURE p() BEGIN SELECT 1; INSERT INTO t VALUES(1); END; SELECT 2;"
    statements = split_sql_statements(sql)
    assert statements == ["CREATE PROCEDURE p() BEGIN SELECT 1; INSERT INTO t VALUES(1); END", "SELECT 2"]


def test_begin_transaction_is_not_a_block() -> None:
    """Test that transaction control statements split normally."""
    assert split_sql_statements("BEGIN TRANSACTION; UPDATE t SET a = 1; COMMIT;") == [
        "BEGIN TRANSACTION",
        "UPDATE t SET a = 1",
        "COMMIT",
    ]


def test_case_end_does_not_close_block() -> None:
    """Test that a CASE ... END inside a block does not close the block."""
    sql = "CREATE PROCEDURE p() BEGIN SELECT CASE WHEN x THEN 1 END; SELECT 2; END; SELECT 3"
    assert count_sql_statements(sql) == 2


def test_try_catch_blocks() -> None:
    """Test T-SQL TRY/CATCH blocks inside a procedure."""
    sql = (
        "CREATE PROCEDURE p AS BEGIN BEGIN TRY SELECT 1; END TRY "
        "BEGIN CATCH SELECT 2; END CATCH END; SELECT 3"
    )
    statements = split_sql_statements(sql)
    assert len(statements) == 2
    assert statements[1] == "SELECT 3"


def test_nested_blocks_and_end_if() -> None:
    """Test nested BEGIN blocks and END IF qualifiers."""
    sql = "CREATE PROCEDURE p() BEGIN IF x THEN BEGIN SELECT 1; END; END IF; END; SELECT 2"
    assert count_sql_statements(sql) == 2


# DELIMITER directives


def test_delimiter_directive() -> None:
    """Test MySQL DELIMITER switching."""
    sql = "DELIMITER //\nCREATE PROCEDURE p() BEGIN SELECT 1; END //\nDELIMITER ;\nSELECT 2;"
    assert split_sql_statements(sql) == ["CREATE PROCEDURE p() BEGIN SELECT 1; END", "SELECT 2"]


def test_custom_delimiter_wins_over_dollar_quote() -> None:
    """Test that a $$ delimiter ends statements instead of opening a quote."""
    sql = "DELIMITER $$\nSELECT 1$$\nSELECT 2$$\nDELIMITER ;\n"
    assert split_sql_statements(sql) == ["SELECT 1", "SELECT 2"]


# Helpers


class TestIsProceduralBegin:
    """Test BEGIN classification."""

    @pytest.mark.parametrize(
        "sql", ["BEGIN TRANSACTION", "BEGIN WORK", "BEGIN TRAN", "BEGIN TRY", "BEGIN CATCH", "BEGIN; SELECT 1"]
    )
    def test_non_procedural(self, sql: str) -> None:
        """Test that transaction and TRY/CATCH forms are not blocks."""
        assert not is_procedural_begin(sql, 0)

    @pytest.mark.parametrize(
        "sql",
        [
            "CREATE PROCEDURE p AS BEGIN SELECT 1 END",
            "CREATE OR REPLACE FUNCTION f() RETURNS int BEGIN RETURN 1; END",
            "IF x THEN BEGIN SELECT 1; END",
        ],
    )
    def test_procedural(self, sql: str) -> None:
        """Test that blocks after AS/THEN or in routine headers are procedural."""
        assert is_procedural_begin(sql, sql.index("BEGIN"))


class TestScanState:
    """Test scanner state bookkeeping."""

    def test_initial_state(self) -> None:
        """Test a fresh state is at top level with the default delimiter."""
        state = ScanState()
        assert state.mode is LexicalMode.CODE
        assert state.at_top_level
        assert state.delimiter == ";"

    def test_close_paren_floors_at_zero(self) -> None:
        """Test that closing more parens than opened keeps depth at zero."""
        state = ScanState()
        state.close_paren()
        assert state.paren_depth == 0
        state.open_paren()
        assert not state.at_top_level

    def test_enter_and_leave(self) -> None:
        """Test entering and leaving a lexical mode."""
        state = ScanState()
        state.enter(LexicalMode.STRING, delimiter="'")
        assert state.string_delimiter == "'"
        assert not state.at_top_level
        state.leave()
        assert state.mode is LexicalMode.CODE

    def test_custom_delimiter(self) -> None:
        """Test that a custom delimiter replaces the default."""
        state = ScanState()
        state.custom_delimiter = "//"
        assert state.delimiter == "//"


def test_scan_reports_statements_in_order() -> None:
    """Test the streaming scan interface."""
    seen: list[str] = []
    scan_sql_statements("SELECT 1; SELECT 2", seen.append)
    assert seen == ["SELECT 1", "SELECT 2"]


def test_splitter_state_after_scan() -> None:
    """Test that the splitter leaves its state at top level for balanced input."""
    splitter = StatementSplitter("SELECT (1); SELECT 2")
    splitter.scan(lambda _: None)
    assert splitter.state.at_top_level


def test_count_matches_split() -> None:
    """Test that counting agrees with splitting."""
    sql = "SELECT 1; CREATE PROCEDURE p() BEGIN SELECT 2; END; -- x\nSELECT 'a;b';"
    assert count_sql_statements(sql) == len(split_sql_statements(sql)) == 3
