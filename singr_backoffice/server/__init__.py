"""
Singr Back Office Server Package.

This package contains the web server implementation for the Singr back office.

Subpackages:
    api: FastAPI route definitions and endpoint logic.
    core: Server configuration and constants.
    exception_handlers: Application-wide error responses.
    middleware: Request timing and monitoring.
    services: Business logic wrapping Stripe, HERE, attachments and OpenKJ.
"""
