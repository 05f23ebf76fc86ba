"""sqlprep: normalize dialect-specific SQL for a baseline grammar."""

from sqlprep import core, exceptions, utils
from sqlprep.__metadata__ import __version__
from sqlprep.core import (
    Confidence,
    DetectionResult,
    Dialect,
    PreprocessorConfig,
    SQLPreprocessor,
    count_sql_statements,
    detect_dialect,
    find_matching_paren,
    mask,
    split_sql_statements,
    validate_sql,
)
from sqlprep.core.rewriters import (
    collapse_snowflake_paths,
    hoist_nested_ctes,
    preprocess_oracle_syntax,
    preprocess_postgres_syntax,
    preprocess_procedural_keywords,
    remove_trailing_commas,
    rewrite_grouping_sets,
    rewrite_snowflake_iff,
    strip_snowflake_casts,
    strip_snowflake_qualify,
)
from sqlprep.exceptions import ImproperConfigurationError, SQLParsingError, SQLPrepError, SQLValidationError

__all__ = (
    "Confidence",
    "DetectionResult",
    "Dialect",
    "ImproperConfigurationError",
    "PreprocessorConfig",
    "SQLParsingError",
    "SQLPrepError",
    "SQLPreprocessor",
    "SQLValidationError",
    "__version__",
    "collapse_snowflake_paths",
    "core",
    "count_sql_statements",
    "detect_dialect",
    "exceptions",
    "find_matching_paren",
    "hoist_nested_ctes",
    "mask",
    "preprocess_oracle_syntax",
    "preprocess_postgres_syntax",
    "preprocess_procedural_keywords",
    "remove_trailing_commas",
    "rewrite_grouping_sets",
    "rewrite_snowflake_iff",
    "split_sql_statements",
    "strip_snowflake_casts",
    "strip_snowflake_qualify",
    "utils",
    "validate_sql",
)
