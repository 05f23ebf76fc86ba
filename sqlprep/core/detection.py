"""Dialect detection from syntax signals.

A battery of independent regular-expression probes runs against masked SQL.
Each probe that fires adds a fixed number of points to one or more dialects.
The ranking is then graded:

- ``high``: exactly one dialect scored, or the leader has at least 3 points
  and leads the runner-up by at least 2.
- ``low``: several plausible dialects; no dialect is reported.
- ``none``: no probe fired.

The weights and thresholds are calibrated constants. Hint text and callers
that auto-switch on ``high`` depend on their exact values.
"""

import re
from dataclasses import dataclass, field, fields
from enum import Enum
from re import Pattern
from typing import Final, Optional

from sqlprep.core.dialects import Dialect
from sqlprep.core.masking import mask, strip_sql_comments

__all__ = (
    "Confidence",
    "DetectionResult",
    "DialectScore",
    "DialectSignals",
    "detect_dialect",
    "detect_dialect_syntax_patterns",
    "rank_dialect_scores",
)

HIGH_CONFIDENCE_MIN_SCORE: Final = 3
HIGH_CONFIDENCE_MIN_MARGIN: Final = 2


class Confidence(str, Enum):
    """How trustworthy a dialect guess is."""

    HIGH = "high"
    LOW = "low"
    NONE = "none"

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True)
class DialectSignals:
    """Boolean outcome of every syntax probe."""

    has_snowflake_path_operator: bool = False
    has_snowflake_named_args: bool = False
    has_flatten: bool = False
    has_three_part_names: bool = False
    has_qualify: bool = False
    has_ilike: bool = False
    has_create_or_replace_table: bool = False
    has_merge_into: bool = False
    has_bigquery_struct: bool = False
    has_bigquery_unnest: bool = False
    has_bigquery_array_type: bool = False
    has_postgres_interval: bool = False
    has_postgres_type_cast: bool = False
    has_postgres_at_time_zone: bool = False
    has_postgres_dollar_quotes: bool = False
    has_postgres_array_access: bool = False
    has_postgres_json_operators: bool = False
    has_mysql_backticks: bool = False
    has_mysql_group_by_rollup: bool = False
    has_mysql_dual: bool = False
    has_tsql_apply: bool = False
    has_tsql_top: bool = False
    has_pivot: bool = False
    has_oracle_connect_by: bool = False
    has_oracle_rownum: bool = False
    has_oracle_nvl_decode: bool = False
    has_oracle_minus: bool = False
    has_oracle_sequence: bool = False
    has_oracle_outer_join_operator: bool = False
    has_oracle_sysdate: bool = False
    has_flashback: bool = False
    has_model_clause: bool = False
    has_hive_lateral_view: bool = False
    has_hive_distribute_by: bool = False
    has_hive_cluster_by: bool = False
    has_hive_sort_by: bool = False
    has_hive_serde: bool = False
    has_trino_rows_from: bool = False
    has_trino_map_functions: bool = False
    has_external_table: bool = False
    has_tbl_properties: bool = False
    has_distkey: bool = False
    has_sortkey: bool = False
    has_diststyle: bool = False
    has_redshift_copy: bool = False
    has_redshift_unload: bool = False
    has_sqlite_autoincrement: bool = False
    has_sqlite_glob: bool = False
    has_sqlite_pragma: bool = False

    def fired(self) -> list[str]:
        """Names of the probes that matched."""
        return [f.name for f in fields(self) if getattr(self, f.name)]


_I: Final = re.IGNORECASE

_MASKED_PROBES: Final[dict[str, Pattern[str]]] = {
    "has_snowflake_path_operator": re.compile(r"\b[A-Za-z_][\w$]*\s*:\s*[A-Za-z_][\w$]*(?!:)"),
    "has_snowflake_named_args": re.compile(r"\w+\s*=>\s*"),
    "has_flatten": re.compile(r"\bFLATTEN\s*\(", _I),
    "has_three_part_names": re.compile(r"\b[\w$]+\.[\w$]+\.[\w$]+\b"),
    "has_qualify": re.compile(r"\bQUALIFY\b", _I),
    "has_ilike": re.compile(r"\bILIKE\b", _I),
    "has_create_or_replace_table": re.compile(r"\bCREATE\s+OR\s+REPLACE\s+TABLE\b", _I),
    "has_merge_into": re.compile(r"\bMERGE\s+INTO\b", _I),
    "has_bigquery_struct": re.compile(r"\bSTRUCT\s*\(", _I),
    "has_bigquery_unnest": re.compile(r"\bUNNEST\s*\(", _I),
    "has_bigquery_array_type": re.compile(r"\bARRAY<.*>", _I),
    "has_postgres_type_cast": re.compile(r"::\s*[a-z_][\w$]*(?:\s*\(\s*\d+(?:\s*,\s*\d+)?\s*\))?", _I),
    "has_postgres_at_time_zone": re.compile(r"\bAT\s+TIME\s+ZONE\b", _I),
    "has_postgres_dollar_quotes": re.compile(r"\$\$"),
    "has_postgres_array_access": re.compile(r"\w+\[\d+\]"),
    "has_postgres_json_operators": re.compile(r"->>|#>|\?&|\?\|"),
    "has_mysql_backticks": re.compile(r"`[\w-]+`"),
    "has_mysql_group_by_rollup": re.compile(r"GROUP BY.*WITH ROLLUP", _I),
    "has_mysql_dual": re.compile(r"FROM\s+DUAL", _I),
    "has_tsql_apply": re.compile(r"\b(?:CROSS|OUTER)\s+APPLY\b", _I),
    "has_tsql_top": re.compile(r"TOP\s*\(", _I),
    "has_pivot": re.compile(r"\bPIVOT\s*\(", _I),
    "has_oracle_connect_by": re.compile(r"\bCONNECT\s+BY\b", _I),
    "has_oracle_rownum": re.compile(r"\bROWNUM\b", _I),
    "has_oracle_nvl_decode": re.compile(r"\b(?:NVL2?|DECODE)\s*\(", _I),
    "has_oracle_minus": re.compile(r"\bMINUS\b", _I),
    "has_oracle_sequence": re.compile(r"\.\s*(?:NEXTVAL|CURRVAL)\b", _I),
    "has_oracle_outer_join_operator": re.compile(r"\(\+\)"),
    "has_oracle_sysdate": re.compile(r"\bSYS(?:DATE|TIMESTAMP)\b", _I),
    "has_flashback": re.compile(r"\bAS\s+OF\s+(?:SCN|TIMESTAMP)\b", _I),
    "has_model_clause": re.compile(r"\bMODEL\s+(?:PARTITION\s+BY|DIMENSION\s+BY|MEASURES|RULES)\b", _I),
    "has_hive_lateral_view": re.compile(r"\bLATERAL\s+VIEW\b", _I),
    "has_hive_distribute_by": re.compile(r"\bDISTRIBUTE\s+BY\b", _I),
    "has_hive_cluster_by": re.compile(r"\bCLUSTER\s+BY\b", _I),
    "has_hive_sort_by": re.compile(r"\bSORT\s+BY\b", _I),
    "has_hive_serde": re.compile(r"\b(?:SERDE|ROW\s+FORMAT)\b", _I),
    "has_trino_rows_from": re.compile(r"\bROWS\s+FROM\s*\(", _I),
    "has_trino_map_functions": re.compile(r"\b(?:MAP_FROM_ENTRIES|MAP_AGG|ARRAY_JOIN)\s*\(", _I),
    "has_external_table": re.compile(r"\bCREATE\s+EXTERNAL\s+TABLE\b", _I),
    "has_tbl_properties": re.compile(r"\bTBLPROPERTIES\s*\(", _I),
    "has_distkey": re.compile(r"\bDISTKEY\b", _I),
    "has_sortkey": re.compile(r"\bSORTKEY\b", _I),
    "has_diststyle": re.compile(r"\bDISTSTYLE\s+(?:KEY|ALL|EVEN|AUTO)\b", _I),
    "has_redshift_copy": re.compile(r"\bCOPY\s+\w+\s+FROM\b", _I),
    "has_redshift_unload": re.compile(r"\bUNLOAD\s*\(", _I),
    "has_sqlite_autoincrement": re.compile(r"\bAUTOINCREMENT\b", _I),
    "has_sqlite_glob": re.compile(r"\bGLOB\b", _I),
    "has_sqlite_pragma": re.compile(r"\bPRAGMA\s+", _I),
}

# Evaluated on unmasked text: the quoted literal is the signal.
_RAW_PROBES: Final[dict[str, Pattern[str]]] = {
    "has_postgres_interval": re.compile(r"INTERVAL\s+'[^']+'", _I),
}

# (signal, dialect, points)
SIGNAL_WEIGHTS: Final[tuple[tuple[str, Dialect, int], ...]] = (
    ("has_snowflake_path_operator", Dialect.SNOWFLAKE, 1),
    ("has_snowflake_named_args", Dialect.SNOWFLAKE, 1),
    ("has_flatten", Dialect.SNOWFLAKE, 1),
    ("has_create_or_replace_table", Dialect.SNOWFLAKE, 2),
    ("has_qualify", Dialect.SNOWFLAKE, 2),
    ("has_merge_into", Dialect.SNOWFLAKE, 1),
    ("has_three_part_names", Dialect.SNOWFLAKE, 3),
    ("has_ilike", Dialect.SNOWFLAKE, 1),
    ("has_bigquery_struct", Dialect.BIGQUERY, 1),
    ("has_bigquery_array_type", Dialect.BIGQUERY, 1),
    ("has_qualify", Dialect.BIGQUERY, 1),
    ("has_postgres_dollar_quotes", Dialect.POSTGRESQL, 1),
    ("has_postgres_json_operators", Dialect.POSTGRESQL, 1),
    ("has_postgres_interval", Dialect.POSTGRESQL, 1),
    ("has_postgres_type_cast", Dialect.POSTGRESQL, 1),
    ("has_postgres_at_time_zone", Dialect.POSTGRESQL, 1),
    ("has_ilike", Dialect.POSTGRESQL, 1),
    ("has_mysql_backticks", Dialect.MYSQL, 1),
    ("has_mysql_group_by_rollup", Dialect.MYSQL, 1),
    ("has_mysql_dual", Dialect.MYSQL, 1),
    ("has_tsql_apply", Dialect.TRANSACTSQL, 1),
    ("has_tsql_top", Dialect.TRANSACTSQL, 1),
    ("has_pivot", Dialect.TRANSACTSQL, 1),
    ("has_three_part_names", Dialect.TRANSACTSQL, 1),
    ("has_merge_into", Dialect.TRANSACTSQL, 1),
    ("has_three_part_names", Dialect.REDSHIFT, 1),
    ("has_ilike", Dialect.REDSHIFT, 1),
    ("has_oracle_connect_by", Dialect.ORACLE, 3),
    ("has_oracle_rownum", Dialect.ORACLE, 2),
    ("has_oracle_nvl_decode", Dialect.ORACLE, 1),
    ("has_oracle_sequence", Dialect.ORACLE, 2),
    ("has_oracle_outer_join_operator", Dialect.ORACLE, 3),
    ("has_oracle_sysdate", Dialect.ORACLE, 1),
    ("has_oracle_minus", Dialect.ORACLE, 1),
    ("has_merge_into", Dialect.ORACLE, 1),
    ("has_pivot", Dialect.ORACLE, 1),
    ("has_flashback", Dialect.ORACLE, 3),
    ("has_model_clause", Dialect.ORACLE, 2),
    ("has_hive_lateral_view", Dialect.HIVE, 3),
    ("has_hive_distribute_by", Dialect.HIVE, 3),
    ("has_hive_cluster_by", Dialect.HIVE, 2),
    ("has_hive_sort_by", Dialect.HIVE, 2),
    ("has_hive_serde", Dialect.HIVE, 2),
    ("has_trino_rows_from", Dialect.TRINO, 3),
    ("has_trino_map_functions", Dialect.TRINO, 2),
    ("has_external_table", Dialect.ATHENA, 2),
    ("has_tbl_properties", Dialect.ATHENA, 1),
    ("has_distkey", Dialect.REDSHIFT, 3),
    ("has_sortkey", Dialect.REDSHIFT, 3),
    ("has_diststyle", Dialect.REDSHIFT, 2),
    ("has_redshift_copy", Dialect.REDSHIFT, 2),
    ("has_redshift_unload", Dialect.REDSHIFT, 3),
    ("has_sqlite_autoincrement", Dialect.SQLITE, 3),
    ("has_sqlite_glob", Dialect.SQLITE, 2),
    ("has_sqlite_pragma", Dialect.SQLITE, 3),
)


@dataclass(frozen=True)
class DialectScore:
    dialect: Dialect
    score: int


@dataclass(frozen=True)
class DetectionResult:
    """Best-guess dialect for one document.

    Attributes:
        dialect: The detected dialect, only set when ``confidence`` is high.
        scores: Points accumulated per dialect.
        confidence: Grade of the guess.
        signals: Probe outcomes the scores were computed from.
    """

    dialect: Optional[Dialect]
    scores: dict[Dialect, int]
    confidence: Confidence
    signals: DialectSignals = field(default_factory=DialectSignals)

    @property
    def is_high_confidence(self) -> bool:
        return self.confidence is Confidence.HIGH

    def ranked(self) -> list[DialectScore]:
        return rank_dialect_scores(self.scores)


def detect_dialect_syntax_patterns(sql: str) -> DialectSignals:
    """Run every syntax probe against ``sql``.

    Args:
        sql: SQL text, normally with comments already stripped.

    Returns:
        The probe outcomes.
    """
    masked = mask(sql)
    values = {name: pattern.search(masked) is not None for name, pattern in _MASKED_PROBES.items()}
    values.update({name: pattern.search(sql) is not None for name, pattern in _RAW_PROBES.items()})
    return DialectSignals(**values)


def rank_dialect_scores(scores: dict[Dialect, int]) -> list[DialectScore]:
    """Positive scores, highest first. Ties keep insertion order."""
    ranked = [DialectScore(dialect, score) for dialect, score in scores.items() if score > 0]
    ranked.sort(key=lambda entry: entry.score, reverse=True)
    return ranked


def _score_signals(signals: DialectSignals) -> dict[Dialect, int]:
    scores: dict[Dialect, int] = {}

    def add_score(dialect: Dialect, points: int = 1) -> None:
        scores[dialect] = scores.get(dialect, 0) + points

    for signal, dialect, points in SIGNAL_WEIGHTS:
        if getattr(signals, signal):
            add_score(dialect, points)
    # UNNEST alone is shared by PostgreSQL, Trino and Athena.
    if signals.has_bigquery_unnest and (signals.has_bigquery_struct or signals.has_bigquery_array_type):
        add_score(Dialect.BIGQUERY)
    return scores


def detect_dialect(sql: str) -> DetectionResult:
    """Guess the dialect of ``sql``.

    Args:
        sql: Raw SQL text.

    Returns:
        The detection result. ``dialect`` is ``None`` unless confidence is high.
    """
    stripped = strip_sql_comments(sql)
    if not stripped.strip():
        return DetectionResult(dialect=None, scores={}, confidence=Confidence.NONE)

    signals = detect_dialect_syntax_patterns(stripped)
    scores = _score_signals(signals)
    ranked = rank_dialect_scores(scores)
    if not ranked:
        return DetectionResult(dialect=None, scores=scores, confidence=Confidence.NONE, signals=signals)

    top = ranked[0]
    runner_up = ranked[1].score if len(ranked) > 1 else 0
    is_high_confidence = len(ranked) == 1 or (
        top.score >= HIGH_CONFIDENCE_MIN_SCORE and top.score >= runner_up + HIGH_CONFIDENCE_MIN_MARGIN
    )
    if not is_high_confidence:
        return DetectionResult(dialect=None, scores=scores, confidence=Confidence.LOW, signals=signals)
    return DetectionResult(dialect=top.dialect, scores=scores, confidence=Confidence.HIGH, signals=signals)
