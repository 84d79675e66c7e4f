"""
Exception handlers for the Singr back office server.

This package contains custom exception handlers for different error types
and a setup function to register them with the FastAPI application.
"""

from .global_handler import setup_exception_handlers
from .validation_handler import first_error_message

__all__ = ["first_error_message", "setup_exception_handlers"]
