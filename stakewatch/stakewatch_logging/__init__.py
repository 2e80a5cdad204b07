"""
Structured logging for Stakewatch.

JSON logs with timestamp, event_type, voter and authority context.
Use get_logger() in all modules for aggregation-friendly output.
"""

from stakewatch.stakewatch_logging.logger import (
    bind_authority,
    bind_validator,
    configure_logging,
    get_logger,
)

__all__ = ["bind_authority", "bind_validator", "configure_logging", "get_logger"]
