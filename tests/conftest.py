from __future__ import annotations

import logging
from collections.abc import Generator
from pathlib import Path

import pytest

from sqlprep.core.config import DetectionConfiguration, PreprocessorConfig
from sqlprep.core.pipeline import SQLPreprocessor

here = Path(__file__).parent
root_path = here.parent


@pytest.fixture(autouse=True)
def reset_sqlprep_logging() -> Generator[None, None, None]:
    """Undo ``configure_logging`` side effects so caplog sees sqlprep records."""
    logger = logging.getLogger("sqlprep")
    handlers = list(logger.handlers)
    level = logger.level
    propagate = logger.propagate
    yield
    logger.handlers[:] = handlers
    logger.setLevel(level)
    logger.propagate = propagate


@pytest.fixture
def preprocessor() -> SQLPreprocessor:
    return SQLPreprocessor()


@pytest.fixture
def fixed_dialect_preprocessor() -> SQLPreprocessor:
    """Preprocessor that never switches away from the default dialect."""
    config = PreprocessorConfig(detection=DetectionConfiguration(enable_auto_detection=False))
    return SQLPreprocessor(config)
