"""
Structured logging setup for dutytrack
"""

from dutytrack.logging.context import bind_subject, current_context
from dutytrack.logging.setup import get_logger, setup_logging

__all__ = ["bind_subject", "current_context", "get_logger", "setup_logging"]
