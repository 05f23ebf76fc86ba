"""SQL dialect identifiers.

The enum values are the display names used by detection scores and hints; the
sqlglot read dialect for each member is exposed through
:attr:`Dialect.sqlglot_dialect`.
"""

from enum import Enum
from typing import Final, Optional, Union

from sqlprep.exceptions import ImproperConfigurationError

__all__ = ("PROCEDURAL_DIALECTS", "Dialect", "coerce_dialect")


class Dialect(str, Enum):
    """Named SQL vendor syntax variants."""

    MYSQL = "MySQL"
    POSTGRESQL = "PostgreSQL"
    TRANSACTSQL = "TransactSQL"
    MARIADB = "MariaDB"
    SQLITE = "SQLite"
    SNOWFLAKE = "Snowflake"
    BIGQUERY = "BigQuery"
    HIVE = "Hive"
    REDSHIFT = "Redshift"
    ATHENA = "Athena"
    TRINO = "Trino"
    ORACLE = "Oracle"
    TERADATA = "Teradata"

    def __str__(self) -> str:
        return self.value

    @property
    def sqlglot_dialect(self) -> str:
        """Name of the sqlglot dialect used to parse this variant."""
        return _SQLGLOT_DIALECTS[self]

    @classmethod
    def from_name(cls, name: str) -> "Dialect":
        """Resolve a dialect from its display name or a common alias.

        Args:
            name: Case-insensitive name such as ``"Snowflake"``, ``"postgres"`` or ``"mssql"``.

        Raises:
            ImproperConfigurationError: If the name is not recognized.

        Returns:
            The matching dialect.
        """
        key = name.strip().lower()
        dialect = _ALIASES.get(key)
        if dialect is None:
            msg = f"Unknown SQL dialect {name!r}. Expected one of: {', '.join(d.value for d in cls)}"
            raise ImproperConfigurationError(msg)
        return dialect


_SQLGLOT_DIALECTS: Final[dict[Dialect, str]] = {
    Dialect.MYSQL: "mysql",
    Dialect.POSTGRESQL: "postgres",
    Dialect.TRANSACTSQL: "tsql",
    Dialect.MARIADB: "mysql",
    Dialect.SQLITE: "sqlite",
    Dialect.SNOWFLAKE: "snowflake",
    Dialect.BIGQUERY: "bigquery",
    Dialect.HIVE: "hive",
    Dialect.REDSHIFT: "redshift",
    Dialect.ATHENA: "athena",
    Dialect.TRINO: "trino",
    Dialect.ORACLE: "oracle",
    Dialect.TERADATA: "teradata",
}

_ALIASES: Final[dict[str, Dialect]] = {
    **{d.value.lower(): d for d in Dialect},
    "postgres": Dialect.POSTGRESQL,
    "postgresql": Dialect.POSTGRESQL,
    "psql": Dialect.POSTGRESQL,
    "tsql": Dialect.TRANSACTSQL,
    "t-sql": Dialect.TRANSACTSQL,
    "mssql": Dialect.TRANSACTSQL,
    "sqlserver": Dialect.TRANSACTSQL,
    "sql server": Dialect.TRANSACTSQL,
    "bq": Dialect.BIGQUERY,
    "presto": Dialect.TRINO,
    "plsql": Dialect.ORACLE,
}

PROCEDURAL_DIALECTS: Final = frozenset({Dialect.TRANSACTSQL, Dialect.TERADATA})


def coerce_dialect(dialect: Optional[Union[str, Dialect]]) -> Optional[Dialect]:
    """Accept a :class:`Dialect`, a dialect name, or ``None``."""
    if dialect is None or isinstance(dialect, Dialect):
        return dialect
    return Dialect.from_name(dialect)
