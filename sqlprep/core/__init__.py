"""sqlprep core: lexical normalization of dialect-specific SQL.

Architecture Overview:
- dialects.py: Dialect identifiers and sqlglot dialect mapping
- masking.py: Length-preserving masking, paren matching and edit application
- detection.py: Syntax probes, weighted dialect scoring and confidence grading
- hints.py: Dialect hints and parse-retry dialect selection
- rewriters/: One module per rewrite family plus the ordered registry
- splitter.py: Statement splitter for multi-statement scripts
- validation.py: Input size and statement-count limits
- config.py: Frozen configuration with environment loading
- pipeline.py: SQLPreprocessor orchestrating detection, rewriting and parsing
"""

from sqlprep.core.config import DetectionConfiguration, PreprocessorConfig, RewriteConfiguration, load_config_from_env
from sqlprep.core.detection import Confidence, DetectionResult, DialectSignals, detect_dialect
from sqlprep.core.dialects import Dialect
from sqlprep.core.hints import DialectHint, detect_dialect_specific_syntax, select_retry_dialect
from sqlprep.core.masking import Edit, EditBuffer, Span, find_matching_paren, mask
from sqlprep.core.pipeline import BatchResult, ParseOutcome, PreprocessResult, SQLPreprocessor, StatementOutcome
from sqlprep.core.rewriters import REWRITERS, Rewriter
from sqlprep.core.splitter import StatementSplitter, count_sql_statements, split_sql_statements
from sqlprep.core.validation import ValidationIssue, ValidationLimits, validate_sql

__all__ = (
    "REWRITERS",
    "BatchResult",
    "Confidence",
    "DetectionConfiguration",
    "DetectionResult",
    "Dialect",
    "DialectHint",
    "DialectSignals",
    "Edit",
    "EditBuffer",
    "ParseOutcome",
    "PreprocessResult",
    "PreprocessorConfig",
    "RewriteConfiguration",
    "Rewriter",
    "SQLPreprocessor",
    "Span",
    "StatementOutcome",
    "StatementSplitter",
    "ValidationIssue",
    "ValidationLimits",
    "count_sql_statements",
    "detect_dialect",
    "detect_dialect_specific_syntax",
    "find_matching_paren",
    "load_config_from_env",
    "mask",
    "select_retry_dialect",
    "split_sql_statements",
    "validate_sql",
)
