"""
Core utilities and configuration for the Singr back office.

This package provides core functionality including logging configuration,
monitoring, database setup, credential hashing and input normalization helpers.
"""

from singr_backoffice.core.logging_config import get_logger, setup_logging

__all__ = ["get_logger", "setup_logging"]
