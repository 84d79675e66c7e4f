"""
Logfire monitoring for the back office.

``initialize_logfire`` is a no-op unless ``LOGFIRE_ENABLED`` is set and a
``LOGFIRE_TOKEN`` is present. When active it instruments SQLAlchemy, HTTPX
(outbound HERE calls) and the FastAPI app.

The ``log_*`` helpers send one structured event each: API requests, Stripe
webhook outcomes, OpenKJ commands and errors. Monitoring must never break a
request, so a failing exporter only produces a debug line.
"""

import logging
import os
from typing import Any, Callable, Optional

import logfire
from fastapi import FastAPI

logger = logging.getLogger(__name__)


def _env_flag(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() in ("true", "1", "yes")


LOGFIRE_ENABLED = _env_flag("LOGFIRE_ENABLED", "false")
LOGFIRE_TOKEN = os.getenv("LOGFIRE_TOKEN", "")
LOGFIRE_PROJECT_NAME = os.getenv("LOGFIRE_PROJECT_NAME", "singr-backoffice")
LOGFIRE_ENVIRONMENT = os.getenv("LOGFIRE_ENVIRONMENT", "development")
LOGFIRE_SERVICE_NAME = os.getenv("LOGFIRE_SERVICE_NAME", "singr-backoffice-server")
LOGFIRE_SERVICE_VERSION = os.getenv("LOGFIRE_SERVICE_VERSION", "0.0.0")

LOGFIRE_SAMPLE_RATE = float(os.getenv("LOGFIRE_SAMPLE_RATE", "1.0"))
LOGFIRE_TRACE_SAMPLE_RATE = float(os.getenv("LOGFIRE_TRACE_SAMPLE_RATE", "1.0"))

LOGFIRE_TRACE_SQLALCHEMY = _env_flag("LOGFIRE_TRACE_SQLALCHEMY", "true")
LOGFIRE_TRACE_HTTPX = _env_flag("LOGFIRE_TRACE_HTTPX", "true")
LOGFIRE_TRACE_FASTAPI = _env_flag("LOGFIRE_TRACE_FASTAPI", "true")


def _instrument(label: str, instrument: Callable[[], Any]) -> None:
    try:
        instrument()
    except Exception as e:
        logger.warning(f"Failed to instrument {label}: {e}")
        return
    logger.info(f"Logfire: {label} instrumentation enabled")


def initialize_logfire(app: Optional[FastAPI] = None) -> None:
    """
    Configure Logfire and turn on the enabled instrumentations.

    Args:
        app: The FastAPI application; FastAPI instrumentation is skipped without it.
    """
    if not LOGFIRE_ENABLED:
        logger.info("Logfire monitoring is disabled. Set LOGFIRE_ENABLED=true to enable.")
        return

    if not LOGFIRE_TOKEN:
        logger.warning("Logfire is enabled but LOGFIRE_TOKEN is not set, so no telemetry will be exported.")
        return

    try:
        logfire.configure(
            token=LOGFIRE_TOKEN,
            service_name=LOGFIRE_SERVICE_NAME,
            service_version=LOGFIRE_SERVICE_VERSION,
            environment=LOGFIRE_ENVIRONMENT,
            sampling=logfire.SamplingOptions(head=LOGFIRE_SAMPLE_RATE, tail=LOGFIRE_TRACE_SAMPLE_RATE),
        )

        if LOGFIRE_TRACE_SQLALCHEMY:
            _instrument("SQLAlchemy", logfire.instrument_sqlalchemy)
        if LOGFIRE_TRACE_HTTPX:
            _instrument("HTTPX", logfire.instrument_httpx)
        if LOGFIRE_TRACE_FASTAPI:
            if app is None:
                logger.debug("No FastAPI app given, skipping FastAPI instrumentation")
            else:
                _instrument("FastAPI", lambda: logfire.instrument_fastapi(app=app))

        logger.info(
            f"Logfire monitoring initialized: project={LOGFIRE_PROJECT_NAME}, "
            f"environment={LOGFIRE_ENVIRONMENT}, service={LOGFIRE_SERVICE_NAME}"
        )
    except Exception as e:
        logger.error(f"Failed to initialize Logfire: {e}", exc_info=True)


def _emit(message: str, fallback: str, **attributes: Any) -> None:
    try:
        logfire.info(message, **attributes)
    except Exception:
        logger.debug(f"Could not send to Logfire: {fallback}")


def log_api_request(method: str, path: str, status_code: int, duration_ms: float) -> None:
    _emit(
        "API request completed",
        f"{method} {path}",
        method=method,
        path=path,
        status_code=status_code,
        duration_ms=duration_ms,
    )


def log_webhook_event(event_id: str, event_type: str, processed: bool, error: Optional[str] = None) -> None:
    """
    Record the outcome of one Stripe webhook delivery.

    Args:
        event_id: Stripe event id (``evt_...``)
        event_type: e.g. ``customer.subscription.updated``
        processed: Whether the handler finished
        error: The failure message when it did not
    """
    _emit(
        "Stripe webhook handled",
        f"{event_type} {event_id}",
        event_id=event_id,
        event_type=event_type,
        processed=processed,
        error=error,
    )


def log_openkj_command(command: str, user_id: Optional[str], success: bool) -> None:
    """Record an OpenKJ command; ``user_id`` is None when the API key did not match."""
    _emit("OpenKJ command handled", command, command=command, user_id=user_id, success=success)


def log_error(error_type: str, error_message: str, context: Optional[dict] = None) -> None:
    try:
        logfire.error(f"{error_type}: {error_message}", **(context or {}))
    except Exception:
        logger.debug(f"Could not send error to Logfire: {error_type}")


initialize_logfire()
