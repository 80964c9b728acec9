"""
Logger package.
"""
from .logger import (
    setup_logging,
    get_logger,
    set_run_id,
    get_run_id,
    StructuredFormatter,
    StructuredLogger,
)

__all__ = [
    "setup_logging",
    "get_logger",
    "set_run_id",
    "get_run_id",
    "StructuredFormatter",
    "StructuredLogger",
]
