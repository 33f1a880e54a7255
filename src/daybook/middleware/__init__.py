"""Middleware registration."""

from fastapi import FastAPI

from daybook.config import Settings
from daybook.middleware.error_handler import setup_error_handlers
from daybook.middleware.logging import setup_logging
from daybook.middleware.request_id import RequestIdMiddleware


def setup_middleware(app: FastAPI, settings: Settings) -> None:
    """Register logging, error handlers and request-id middleware."""
    setup_logging(settings)
    setup_error_handlers(app)
    app.add_middleware(RequestIdMiddleware)
