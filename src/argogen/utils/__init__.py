"""argogen utility modules.

- logging: Standardized logging with human/verbose/JSON modes
- preflight: External tool availability checks
"""

from argogen.utils.logging import get_logger, setup_logging
from argogen.utils.preflight import PreflightChecker, PreflightResult

__all__ = [
    "get_logger",
    "setup_logging",
    "PreflightChecker",
    "PreflightResult",
]
