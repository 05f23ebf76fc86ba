"""Text rewriters.

Every rewriter has the signature ``(sql, dialect) -> Optional[str]``: ``None``
means the input needs no change, a string is the complete rewritten text.
:data:`REWRITERS` fixes the order in which the pipeline applies them.
"""

from collections.abc import Callable
from typing import Final, Optional

from typing_extensions import TypeAlias

from sqlprep.core.dialects import Dialect
from sqlprep.core.rewriters.ctes import hoist_nested_ctes
from sqlprep.core.rewriters.grouping_sets import rewrite_grouping_sets
from sqlprep.core.rewriters.oracle import preprocess_oracle_syntax
from sqlprep.core.rewriters.postgres import preprocess_postgres_syntax
from sqlprep.core.rewriters.procedural import preprocess_procedural_keywords
from sqlprep.core.rewriters.snowflake import (
    collapse_snowflake_paths,
    remove_trailing_commas,
    rewrite_snowflake_iff,
    strip_snowflake_casts,
    strip_snowflake_qualify,
)

__all__ = (
    "CTE_HOISTING",
    "DIALECT_AGNOSTIC_REWRITERS",
    "GROUPING_SETS",
    "REWRITERS",
    "Rewriter",
    "collapse_snowflake_paths",
    "hoist_nested_ctes",
    "preprocess_oracle_syntax",
    "preprocess_postgres_syntax",
    "preprocess_procedural_keywords",
    "remove_trailing_commas",
    "rewrite_grouping_sets",
    "rewrite_snowflake_iff",
    "strip_snowflake_casts",
    "strip_snowflake_qualify",
)

Rewriter: TypeAlias = Callable[[str, Optional[Dialect]], Optional[str]]

CTE_HOISTING: Final = "hoist_nested_ctes"
GROUPING_SETS: Final = "grouping_sets"

REWRITERS: Final[tuple[tuple[str, Rewriter], ...]] = (
    (CTE_HOISTING, hoist_nested_ctes),
    (GROUPING_SETS, rewrite_grouping_sets),
    ("postgres_syntax", preprocess_postgres_syntax),
    ("oracle_syntax", preprocess_oracle_syntax),
    ("snowflake_paths", collapse_snowflake_paths),
    ("snowflake_casts", strip_snowflake_casts),
    ("snowflake_qualify", strip_snowflake_qualify),
    ("snowflake_iff", rewrite_snowflake_iff),
    ("trailing_commas", remove_trailing_commas),
    ("procedural_keywords", preprocess_procedural_keywords),
)

DIALECT_AGNOSTIC_REWRITERS: Final = frozenset({CTE_HOISTING, GROUPING_SETS})
