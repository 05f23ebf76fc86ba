"""Command line interface.

``sqlprep detect|split|count|preprocess|parse FILE`` runs one pipeline step
over a SQL file (``-`` reads stdin). ``--json`` prints machine-readable output.
"""

import sys
from typing import IO, TYPE_CHECKING, Any, Optional

import rich_click as click
from rich import get_console
from rich.table import Table

from sqlprep._serialization import encode_json
from sqlprep.core.config import load_config_from_env
from sqlprep.core.dialects import Dialect
from sqlprep.core.pipeline import SQLPreprocessor
from sqlprep.exceptions import SQLPrepError
from sqlprep.utils.logging import configure_logging

if TYPE_CHECKING:
    from click import Group

__all__ = ("get_sqlprep_group", "run_cli")

_DIALECT_CHOICES = [dialect.value for dialect in Dialect]


def _print_json(data: Any) -> None:
    click.echo(encode_json(data))


def get_sqlprep_group() -> "Group":
    """Build the sqlprep CLI group.

    Returns:
        The sqlprep CLI group.
    """
    console = get_console()

    dialect_option = click.option(
        "--dialect",
        "-d",
        help="SQL dialect. Detected from the input when omitted.",
        type=click.Choice(_DIALECT_CHOICES, case_sensitive=False),
        default=None,
    )
    json_option = click.option("--json", "as_json", help="Print JSON output.", is_flag=True, default=False)
    source_argument = click.argument("source", type=click.File("r", encoding="utf-8"), default="-")

    @click.group(name="sqlprep")
    @click.option("--log-level", help="Logging level.", type=str, default="WARNING", show_default=True)
    @click.pass_context
    def sqlprep_group(ctx: "click.Context", log_level: str) -> None:
        """Normalize dialect-specific SQL for a baseline grammar."""
        configure_logging(level=log_level, format_style="simple")
        ctx.ensure_object(dict)
        try:
            ctx.obj["preprocessor"] = SQLPreprocessor(load_config_from_env())
        except SQLPrepError as e:
            console.print(f"[red]Error loading configuration: {e}[/]")
            ctx.exit(1)

    def get_preprocessor() -> SQLPreprocessor:
        ctx = click.get_current_context()
        return ctx.obj["preprocessor"]  # type: ignore[no-any-return]

    @sqlprep_group.command(name="detect", help="Detect the dialect of a SQL file.")
    @json_option
    @source_argument
    def detect(as_json: bool, source: "IO[str]") -> None:  # pyright: ignore[reportUnusedFunction]
        """Print the detected dialect and its scores."""
        from sqlprep.core.detection import detect_dialect

        result = detect_dialect(source.read())
        ranked = result.ranked()
        if as_json:
            _print_json(
                {
                    "dialect": result.dialect,
                    "confidence": result.confidence,
                    "scores": [{"dialect": entry.dialect, "score": entry.score} for entry in ranked],
                    "signals": list(result.signals.fired()),
                }
            )
            return
        console.print(f"Dialect: [bold]{result.dialect or '-'}[/] (confidence: {result.confidence})")
        if ranked:
            table = Table("Dialect", "Score")
            for entry in ranked:
                table.add_row(str(entry.dialect), str(entry.score))
            console.print(table)

    @sqlprep_group.command(name="split", help="Split a SQL script into statements.")
    @json_option
    @source_argument
    def split(as_json: bool, source: "IO[str]") -> None:  # pyright: ignore[reportUnusedFunction]
        """Print each statement of the script."""
        statements = get_preprocessor().split(source.read())
        if as_json:
            _print_json(statements)
            return
        for index, statement in enumerate(statements, start=1):
            console.rule(f"[yellow]Statement {index}[/]", align="left")
            console.print(statement, markup=False, highlight=False)

    @sqlprep_group.command(name="count", help="Count the statements of a SQL script.")
    @json_option
    @source_argument
    def count(as_json: bool, source: "IO[str]") -> None:  # pyright: ignore[reportUnusedFunction]
        """Print the statement count."""
        total = get_preprocessor().count(source.read())
        if as_json:
            _print_json({"count": total})
            return
        click.echo(total)

    @sqlprep_group.command(name="preprocess", help="Rewrite dialect-specific syntax.")
    @dialect_option
    @json_option
    @source_argument
    def preprocess(  # pyright: ignore[reportUnusedFunction]
        dialect: Optional[str], as_json: bool, source: "IO[str]"
    ) -> None:
        """Print the normalized SQL."""
        result = get_preprocessor().preprocess(source.read(), dialect)
        if as_json:
            _print_json(
                {"dialect": result.dialect, "applied_rewrites": list(result.applied_rewrites), "sql": result.sql}
            )
            return
        if result.applied_rewrites:
            console.print(f"[dim]-- {result.dialect}: {', '.join(result.applied_rewrites)}[/]", highlight=False)
        click.echo(result.sql)

    @sqlprep_group.command(name="parse", help="Preprocess and parse every statement with sqlglot.")
    @dialect_option
    @json_option
    @source_argument
    def parse(  # pyright: ignore[reportUnusedFunction]
        dialect: Optional[str], as_json: bool, source: "IO[str]"
    ) -> None:
        """Parse a script statement by statement and report failures."""
        batch = get_preprocessor().parse_batch(source.read(), dialect)
        if as_json:
            _print_json(
                {
                    "truncated": batch.truncated,
                    "validation_issue": batch.validation_issue,
                    "statements": [
                        {
                            "index": statement.index,
                            "dialect": statement.outcome.dialect if statement.outcome else None,
                            "retried": statement.outcome.retried if statement.outcome else False,
                            "error": statement.error,
                        }
                        for statement in batch.statements
                    ],
                }
            )
        else:
            if batch.validation_issue is not None:
                console.print(f"[yellow]{batch.validation_issue.message}[/]")
            table = Table("#", "Dialect", "Status")
            for statement in batch.statements:
                if statement.outcome is not None:
                    status = "[green]ok[/]" + (" (retried)" if statement.outcome.retried else "")
                    table.add_row(str(statement.index + 1), str(statement.outcome.dialect), status)
                else:
                    table.add_row(str(statement.index + 1), "-", f"[red]{statement.error}[/]")
            console.print(table)
        if batch.error_count:
            sys.exit(1)

    return sqlprep_group


def run_cli() -> None:
    """Console script entry point."""
    get_sqlprep_group()()
