from typing import TYPE_CHECKING, Any, Optional

if TYPE_CHECKING:
    from sqlprep.core.validation import ValidationIssue

__all__ = (
    "ImproperConfigurationError",
    "SQLParsingError",
    "SQLPrepError",
    "SQLValidationError",
    "SerializationError",
)


class SQLPrepError(Exception):
    """Base exception class from which all sqlprep exceptions inherit."""

    detail: str

    def __init__(self, *args: Any, detail: str = "") -> None:
        """Initialize ``SQLPrepError``.

        Args:
            *args: args are converted to :class:`str` before passing to :class:`Exception`
            detail: detail of the exception.
        """
        str_args = [str(arg) for arg in args if arg]
        if not detail:
            if str_args:
                detail, *str_args = str_args
            elif hasattr(self, "detail"):
                detail = self.detail
        self.detail = detail
        super().__init__(*str_args)

    def __repr__(self) -> str:
        if self.detail:
            return f"{self.__class__.__name__} - {self.detail}"
        return self.__class__.__name__

    def __str__(self) -> str:
        return " ".join((*self.args, self.detail)).strip()


class SQLParsingError(SQLPrepError):
    """The downstream grammar rejected the normalized SQL."""

    sql: Optional[str]
    dialect: Optional[str]

    def __init__(self, message: Optional[str] = None, sql: Optional[str] = None, dialect: Optional[str] = None) -> None:
        if message is None:
            message = "Issues parsing SQL statement."
        super().__init__(message)
        self.sql = sql
        self.dialect = dialect


class SQLValidationError(SQLPrepError):
    """SQL input exceeded a configured limit or was empty."""

    issue: "ValidationIssue"

    def __init__(self, issue: "ValidationIssue") -> None:
        super().__init__(detail=issue.message)
        self.issue = issue


class ImproperConfigurationError(SQLPrepError):
    """Improper Configuration error.

    This exception is raised when a setting or dialect name cannot be resolved.
    """


class SerializationError(SQLPrepError):
    """Encoding or decoding of an object failed."""
