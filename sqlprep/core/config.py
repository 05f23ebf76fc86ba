"""Preprocessor configuration.

Settings are grouped into frozen dataclasses, so a configuration can be shared
between threads and updated only through :meth:`PreprocessorConfig.replace`.

Environment variables (see :func:`load_config_from_env`):

- ``SQLPREP_DEFAULT_DIALECT``: dialect used when detection is not confident
- ``SQLPREP_AUTO_DETECT``: switch to a high-confidence detected dialect (true/false)
- ``SQLPREP_PARSE_RETRY``: retry a failed parse with a detected dialect (true/false)
- ``SQLPREP_DIALECT_REWRITES``: run dialect-specific rewriters (true/false)
- ``SQLPREP_GROUPING_SETS``: flatten GROUPING SETS (true/false)
- ``SQLPREP_CTE_HOISTING``: hoist nested CTEs (true/false)
- ``SQLPREP_DISABLED_REWRITERS``: comma separated rewriter names to skip
- ``SQLPREP_MAX_SQL_SIZE``: byte limit for batch input (integer)
- ``SQLPREP_MAX_STATEMENTS``: statement limit for batch input (integer)
"""

import os
from dataclasses import dataclass, field, replace
from typing import Any

from sqlprep.core.dialects import Dialect
from sqlprep.core.rewriters import REWRITERS
from sqlprep.core.validation import DEFAULT_MAX_SQL_SIZE_BYTES, DEFAULT_MAX_STATEMENT_COUNT, ValidationLimits
from sqlprep.exceptions import ImproperConfigurationError
from sqlprep.utils.logging import get_logger

__all__ = (
    "DetectionConfiguration",
    "PreprocessorConfig",
    "RewriteConfiguration",
    "ValidationLimits",
    "load_config_from_env",
)

logger = get_logger("core.config")


@dataclass(frozen=True)
class DetectionConfiguration:
    """Dialect detection behavior."""

    enable_auto_detection: bool = True
    enable_parse_retry: bool = True


@dataclass(frozen=True)
class RewriteConfiguration:
    """Which rewriters the pipeline runs.

    ``disabled_rewriters`` holds registry names, for example
    ``frozenset({"snowflake_iff"})``.
    """

    enable_dialect_rewrites: bool = True
    enable_grouping_sets: bool = True
    enable_cte_hoisting: bool = True
    disabled_rewriters: frozenset[str] = field(default_factory=frozenset)


@dataclass(frozen=True)
class PreprocessorConfig:
    """Complete configuration for :class:`~sqlprep.core.pipeline.SQLPreprocessor`."""

    default_dialect: Dialect = Dialect.MYSQL
    detection: DetectionConfiguration = field(default_factory=DetectionConfiguration)
    rewrites: RewriteConfiguration = field(default_factory=RewriteConfiguration)
    limits: ValidationLimits = field(default_factory=ValidationLimits)

    def replace(self, **changes: Any) -> "PreprocessorConfig":
        """Return a copy with ``changes`` applied."""
        return replace(self, **changes)

    def validate(self) -> "list[str]":
        """Check configuration consistency.

        Returns:
            List of validation errors (empty if valid)
        """
        errors = []
        if self.limits.max_sql_size_bytes <= 0:
            errors.append("max_sql_size_bytes must be positive")
        if self.limits.max_statement_count <= 0:
            errors.append("max_statement_count must be positive")
        known = {name for name, _ in REWRITERS}
        errors.extend(
            f"unknown rewriter {name!r} in disabled_rewriters"
            for name in sorted(self.rewrites.disabled_rewriters - known)
        )
        return errors


def load_config_from_env() -> PreprocessorConfig:
    """Load configuration from ``SQLPREP_*`` environment variables.

    Raises:
        ImproperConfigurationError: If ``SQLPREP_DEFAULT_DIALECT`` names an unknown dialect.

    Returns:
        PreprocessorConfig loaded from environment variables
    """
    dialect_name = os.getenv("SQLPREP_DEFAULT_DIALECT")
    default_dialect = Dialect.from_name(dialect_name) if dialect_name else Dialect.MYSQL

    detection = DetectionConfiguration(
        enable_auto_detection=_env_bool("SQLPREP_AUTO_DETECT", True),
        enable_parse_retry=_env_bool("SQLPREP_PARSE_RETRY", True),
    )
    rewrites = RewriteConfiguration(
        enable_dialect_rewrites=_env_bool("SQLPREP_DIALECT_REWRITES", True),
        enable_grouping_sets=_env_bool("SQLPREP_GROUPING_SETS", True),
        enable_cte_hoisting=_env_bool("SQLPREP_CTE_HOISTING", True),
        disabled_rewriters=_env_set("SQLPREP_DISABLED_REWRITERS"),
    )
    limits = ValidationLimits(
        max_sql_size_bytes=_env_int("SQLPREP_MAX_SQL_SIZE", DEFAULT_MAX_SQL_SIZE_BYTES),
        max_statement_count=_env_int("SQLPREP_MAX_STATEMENTS", DEFAULT_MAX_STATEMENT_COUNT),
    )
    config = PreprocessorConfig(default_dialect=default_dialect, detection=detection, rewrites=rewrites, limits=limits)

    errors = config.validate()
    if errors:
        msg = f"Invalid configuration: {', '.join(errors)}"
        raise ImproperConfigurationError(msg)
    return config


def _env_bool(key: str, default: bool) -> bool:
    """Get boolean value from environment variable."""
    value = os.getenv(key)
    if value is None:
        return default
    return value.lower() in ("true", "1", "yes", "on", "enabled")


def _env_int(key: str, default: int) -> int:
    """Get integer value from environment variable."""
    value = os.getenv(key)
    if value is None:
        return default
    try:
        return int(value)
    except ValueError:
        logger.warning("Invalid integer value for %s: %s, using default %d", key, value, default)
        return default


def _env_set(key: str) -> frozenset[str]:
    value = os.getenv(key, "")
    return frozenset(part.strip() for part in value.split(",") if part.strip())
